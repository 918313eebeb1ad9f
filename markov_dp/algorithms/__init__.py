# Dynamic programming and model-based learning
from . import policy_evaluation
from . import policy_improvement
from . import policy_iteration
from . import model_based
