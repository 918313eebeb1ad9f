# Core model contract
from . import exceptions
from . import mdp
from . import policy
