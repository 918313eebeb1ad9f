"""
Dynamic Programming for Finite (Semi-)Markov Decision Processes

Core Components:
- Model contract for finite-state MDPs and SMDPs
- Tabular policies, value and action-value functions
- Iterative, exact and finite-horizon policy evaluation
- Value iteration and policy iteration
- Model estimation from samples (R-MAX style)
"""

__version__ = "1.0.0"
__author__ = "Industrial AI Systems"

from .core.exceptions import (
    InvalidConfigurationError,
    InvalidObservationError,
    TimestepOutOfRangeError,
)
from .core.mdp import (
    MDP,
    SMDP,
    Action,
    ActionOutcome,
    ActionSet,
    DiscountFactor,
    FiniteStateMDP,
    FiniteStateSMDP,
    ListActionSet,
    Optimization,
    RewardBounded,
    Simulator,
    State,
)
from .core.policy import (
    DiscountedQFunction,
    DiscountedVFunction,
    FiniteHorizonPolicy,
    FiniteHorizonToInfiniteHorizonPolicy,
    HorizonMapVFunction,
    MapPolicy,
    MapQFunction,
    MapVFunction,
    Option,
    Policy,
    SequenceOfStationaryPolicies,
    StationaryPolicy,
)
from .algorithms.policy_evaluation import (
    FiniteHorizonPolicyEvaluation,
    IterativePolicyEvaluation,
    MatrixInversePolicyEvaluation,
)
from .algorithms.policy_improvement import StationaryPolicyImprovement, ValueIteration
from .algorithms.policy_iteration import (
    AbstractPolicyIteration,
    LoggingPolicyIterationListener,
    PolicyIteration,
    PolicyIterationListener,
)
from .algorithms.model_based import RMax, SMDPEstimator
from .environments.benchmarks import ChainMDP, MDPSimulator, TwoStateMDP
from .config import EstimatorConfig, SolverConfig, load_config, setup_logging

__all__ = [
    "InvalidConfigurationError",
    "InvalidObservationError",
    "TimestepOutOfRangeError",
    "MDP",
    "SMDP",
    "Action",
    "ActionOutcome",
    "ActionSet",
    "DiscountFactor",
    "FiniteStateMDP",
    "FiniteStateSMDP",
    "ListActionSet",
    "Optimization",
    "RewardBounded",
    "Simulator",
    "State",
    "DiscountedQFunction",
    "DiscountedVFunction",
    "FiniteHorizonPolicy",
    "FiniteHorizonToInfiniteHorizonPolicy",
    "HorizonMapVFunction",
    "MapPolicy",
    "MapQFunction",
    "MapVFunction",
    "Option",
    "Policy",
    "SequenceOfStationaryPolicies",
    "StationaryPolicy",
    "FiniteHorizonPolicyEvaluation",
    "IterativePolicyEvaluation",
    "MatrixInversePolicyEvaluation",
    "StationaryPolicyImprovement",
    "ValueIteration",
    "AbstractPolicyIteration",
    "LoggingPolicyIterationListener",
    "PolicyIteration",
    "PolicyIterationListener",
    "RMax",
    "SMDPEstimator",
    "ChainMDP",
    "MDPSimulator",
    "TwoStateMDP",
    "EstimatorConfig",
    "SolverConfig",
    "load_config",
    "setup_logging",
]
