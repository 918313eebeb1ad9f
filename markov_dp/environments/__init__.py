# Benchmark models
from . import benchmarks
