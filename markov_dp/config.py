"""
Configuration

Solver and estimator settings as dataclasses, loaded from YAML files, plus
helpers that build the configured algorithms and set up logging.
"""

from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple, Union
import logging
import yaml

from .algorithms.model_based import RMax, SMDPEstimator
from .algorithms.policy_evaluation import (
    IterativePolicyEvaluation,
    MatrixInversePolicyEvaluation,
    PolicyEvaluation,
)
from .algorithms.policy_improvement import ValueIteration
from .algorithms.policy_iteration import PolicyIteration
from .core.exceptions import InvalidConfigurationError
from .core.mdp import (
    ActionSet,
    DiscountFactor,
    FiniteStateSMDP,
    Optimization,
    Simulator,
    State,
)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

logger = logging.getLogger(__name__)


def _from_mapping(cls, data: Optional[Dict[str, Any]]):
    data = data or {}
    names = {f.name for f in fields(cls)}
    unknown = set(data) - names
    if unknown:
        raise InvalidConfigurationError(
            f"Unknown {cls.__name__} keys: {sorted(unknown)}"
        )
    return cls(**data)


@dataclass
class SolverConfig:
    """Settings shared by the dynamic programming solvers"""

    discount_factor: float = 0.95
    max_iterations: int = 1000
    convergence_threshold: float = 1e-6
    evaluation: str = "exact"
    solve_method: str = "svd"
    policy_iteration_max_iterations: int = -1

    EVALUATIONS = ("exact", "iterative")

    def __post_init__(self):
        if self.evaluation not in self.EVALUATIONS:
            raise InvalidConfigurationError(
                f"Unsupported evaluation: {self.evaluation}. "
                f"Expected one of {self.EVALUATIONS}."
            )
        if self.solve_method not in MatrixInversePolicyEvaluation.METHODS:
            raise InvalidConfigurationError(
                f"Unsupported solve method: {self.solve_method}. "
                f"Expected one of {MatrixInversePolicyEvaluation.METHODS}."
            )
        if self.convergence_threshold < 0:
            raise InvalidConfigurationError(
                f"Convergence threshold must be non-negative. Found {self.convergence_threshold}."
            )
        DiscountFactor(self.discount_factor)

    @property
    def gamma(self) -> DiscountFactor:
        return DiscountFactor(self.discount_factor)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SolverConfig":
        return _from_mapping(cls, data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class EstimatorConfig:
    """Settings of the SMDP estimator and the model-based learning loop"""

    num_samples_before_known: int = 5
    optimistic: bool = True
    rmin: float = 0.0
    rmax: float = 1.0
    op_type: str = "maximize"
    replan_every: int = 1

    def __post_init__(self):
        if self.num_samples_before_known < 1:
            raise InvalidConfigurationError(
                "num_samples_before_known must be a positive integer. "
                f"Found {self.num_samples_before_known}."
            )
        if self.rmin > self.rmax:
            raise InvalidConfigurationError(
                f"Invalid reward interval [{self.rmin}, {self.rmax}]."
            )
        try:
            Optimization(self.op_type)
        except ValueError as e:
            raise InvalidConfigurationError(f"Unknown op_type: {self.op_type}") from e

    @property
    def optimization(self) -> Optimization:
        return Optimization(self.op_type)

    @property
    def reward_interval(self) -> Tuple[float, float]:
        return (self.rmin, self.rmax)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "EstimatorConfig":
        return _from_mapping(cls, data)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def load_config(path: Union[str, Path]) -> Dict[str, Any]:
    """
    Load a YAML configuration file

    Recognized top-level sections are `solver`, `estimator` and `logging`;
    the first two are parsed into their dataclasses and a missing section
    takes the defaults.
    """
    path = Path(path)
    try:
        with open(path, "r") as f:
            raw = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as e:
        logger.error(f"Failed to load config: {e}")
        raise InvalidConfigurationError(f"Cannot load config from {path}") from e

    if not isinstance(raw, dict):
        raise InvalidConfigurationError(
            f"Expected a mapping at the top of {path}. Found {type(raw).__name__}."
        )

    return {
        "solver": SolverConfig.from_dict(raw.get("solver")),
        "estimator": EstimatorConfig.from_dict(raw.get("estimator")),
        "logging": raw.get("logging", {}),
    }


def build_evaluation(model: FiniteStateSMDP, config: SolverConfig) -> PolicyEvaluation:
    if config.evaluation == "iterative":
        return IterativePolicyEvaluation(
            model, config.gamma, config.max_iterations, config.convergence_threshold
        )
    return MatrixInversePolicyEvaluation(model, config.gamma, config.solve_method)


def build_value_iteration(model: FiniteStateSMDP, config: SolverConfig) -> ValueIteration:
    return ValueIteration(
        model, config.gamma, config.max_iterations, config.convergence_threshold
    )


def build_policy_iteration(
    model: FiniteStateSMDP, config: SolverConfig
) -> PolicyIteration:
    return PolicyIteration(
        model,
        config.gamma,
        config.policy_iteration_max_iterations,
        build_evaluation(model, config),
    )


def build_estimator(
    dummy_state: State, action_set: ActionSet, config: EstimatorConfig
) -> SMDPEstimator:
    return SMDPEstimator(
        dummy_state,
        action_set,
        config.num_samples_before_known,
        config.optimistic,
        config.reward_interval,
        config.optimization,
    )


def build_rmax(
    dummy_state: State,
    action_set: ActionSet,
    simulator: Simulator,
    solver_config: SolverConfig,
    estimator_config: EstimatorConfig,
) -> RMax:
    return RMax(
        build_estimator(dummy_state, action_set, estimator_config),
        simulator,
        solver_config.gamma,
        {
            "max_iterations": solver_config.max_iterations,
            "convergence_threshold": solver_config.convergence_threshold,
            "replan_every": estimator_config.replan_every,
        },
    )


def setup_logging(name: str = "markov_dp", level: Union[int, str] = logging.INFO) -> logging.Logger:
    """Setup logging configuration"""
    log = logging.getLogger(name)
    log.setLevel(level)

    if not any(getattr(h, "_markov_dp", False) for h in log.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._markov_dp = True
        log.addHandler(handler)

    return log
