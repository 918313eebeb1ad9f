"""
Policy Evaluation Algorithms

Estimates (or solves for) the expected discounted sum of rewards received
for following a policy from each state of a finite-state SMDP.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List
import logging
import numpy as np
import scipy.linalg as la

from ..core.exceptions import InvalidConfigurationError
from ..core.mdp import (
    Action,
    DiscountFactor,
    FiniteStateSMDP,
    State,
    avg_next_v,
    avg_next_v_at,
    avg_r,
)
from ..core.policy import (
    DiscountedVFunction,
    FiniteHorizonPolicy,
    HorizonMapVFunction,
    MapVFunction,
    StationaryPolicy,
)

logger = logging.getLogger(__name__)


class PolicyEvaluation(ABC):
    """Abstract base class for policy evaluation algorithms"""

    @abstractmethod
    def eval(self, policy: Any) -> Any:
        """Estimate the value function of policy"""
        pass


def _weighted_actions(
    model: FiniteStateSMDP, policy: StationaryPolicy, state: State
) -> List[tuple]:
    """(action, probability) pairs the policy may select at state"""
    if policy.is_deterministic():
        return [(policy.policy(state), 1.0)]
    weighted = []
    for action in model.actions(state):
        aprob = policy.aprob(state, action)
        if aprob > 0:
            weighted.append((action, aprob))
    return weighted


class IterativePolicyEvaluation(PolicyEvaluation):
    """
    Sweep-based policy evaluation with asynchronous (in-place) backups

    States are backed up in the order given by the model's `states()`, and
    each new value is visible to the states after it in the same sweep.
    The order changes the rate of convergence but not the fixed point.
    A non-positive `max_iterations` sweeps until convergence; a sweep that
    changes no value always ends the loop.
    """

    def __init__(
        self,
        model: FiniteStateSMDP,
        discount_factor: DiscountFactor,
        max_iterations: int = 1000,
        convergence_threshold: float = 1e-6,
    ):
        if model is None:
            raise InvalidConfigurationError("Model cannot be None.")
        if discount_factor is None:
            raise InvalidConfigurationError("Discount factor cannot be None.")
        if convergence_threshold < 0:
            raise InvalidConfigurationError(
                f"Convergence threshold must be non-negative. Found {convergence_threshold}."
            )
        self.model = model
        self.discount_factor = discount_factor
        self.max_iterations = max_iterations
        self.convergence_threshold = convergence_threshold

    def eval(self, policy: StationaryPolicy) -> MapVFunction:
        vfunc = MapVFunction(default_value=0.0)
        states = list(self.model.states())

        sweep = 0
        while self.max_iterations <= 0 or sweep < self.max_iterations:
            sweep += 1
            delta = 0.0
            for state in states:
                old_v = vfunc.value(state)
                new_v = self.backup(policy, state, vfunc)
                vfunc.set(state, new_v)
                delta = max(delta, abs(old_v - new_v))

            if delta < self.convergence_threshold or delta == 0.0:
                logger.debug(f"Policy evaluation converged after {sweep} sweeps")
                break

        return vfunc

    def backup(
        self, policy: StationaryPolicy, state: State, vfunc: DiscountedVFunction
    ) -> float:
        """Bellman expectation backup at state"""
        value = 0.0
        for action, aprob in _weighted_actions(self.model, policy, state):
            value += aprob * (
                avg_r(self.model, state, action)
                + avg_next_v(self.model, state, action, vfunc, self.discount_factor)
            )
        return value


class MatrixInversePolicyEvaluation(PolicyEvaluation):
    """
    Exact policy evaluation by solving (I - Gamma) V = R

    Gamma[i][j] sums the duration-discounted transition probabilities from
    the i-th to the j-th enumerated state under the policy, and R[i] is the
    expected immediate reward at the i-th state. The default "svd" method
    solves by SVD-based least squares, which also copes with singular
    systems (e.g. absorbing chains with gamma = 1). The "inverse" method is
    a direct solve, only reliable for well-conditioned systems.
    """

    METHODS = ("svd", "inverse")

    def __init__(
        self,
        model: FiniteStateSMDP,
        discount_factor: DiscountFactor,
        method: str = "svd",
    ):
        if model is None:
            raise InvalidConfigurationError("Model cannot be None.")
        if discount_factor is None:
            raise InvalidConfigurationError("Discount factor cannot be None.")
        if method not in self.METHODS:
            raise InvalidConfigurationError(
                f"Unsupported solve method: {method}. Expected one of {self.METHODS}."
            )
        self.model = model
        self.discount_factor = discount_factor
        self.method = method

    def _gamma_p_pi(
        self, policy: StationaryPolicy, states: List[State], index: Dict[State, int]
    ) -> np.ndarray:
        n = len(states)
        gpp = np.zeros((n, n))
        for i, state in enumerate(states):
            for action, aprob in _weighted_actions(self.model, policy, state):
                for terminal_state in self.model.successors(state, action):
                    j = index.get(terminal_state)
                    if j is None:
                        continue
                    for duration in self.model.durations(state, action, terminal_state):
                        gpp[i, j] += aprob * self.model.dtprob(
                            state, action, terminal_state, duration, self.discount_factor
                        )
        return gpp

    def _r_pi(self, policy: StationaryPolicy, states: List[State]) -> np.ndarray:
        rp = np.zeros(len(states))
        for i, state in enumerate(states):
            for action, aprob in _weighted_actions(self.model, policy, state):
                rp[i] += aprob * avg_r(self.model, state, action)
        return rp

    def eval(self, policy: StationaryPolicy) -> MapVFunction:
        states = list(self.model.states())
        if not states:
            return MapVFunction(default_value=0.0)
        index = {state: i for i, state in enumerate(states)}

        a = np.eye(len(states)) - self._gamma_p_pi(policy, states, index)
        b = self._r_pi(policy, states)

        if self.method == "inverse":
            vpi = la.solve(a, b)
        else:
            vpi, _, rank, _ = la.lstsq(a, b, lapack_driver="gelsd")
            if rank < len(states):
                logger.debug(
                    f"Singular evaluation system (rank {rank} of {len(states)}), "
                    "using the least-squares solution"
                )

        values = {state: float(vpi[i]) for i, state in enumerate(states)}
        return MapVFunction(values, default_value=0.0)


class FiniteHorizonPolicyEvaluation(PolicyEvaluation):
    """Backward induction over the timesteps of a finite-horizon policy"""

    def __init__(self, model: FiniteStateSMDP, discount_factor: DiscountFactor):
        if model is None:
            raise InvalidConfigurationError("Model cannot be None.")
        if discount_factor is None:
            raise InvalidConfigurationError("Discount factor cannot be None.")
        self.model = model
        self.discount_factor = discount_factor

    def eval(self, policy: FiniteHorizonPolicy) -> HorizonMapVFunction:
        horizon = policy.horizon
        vfunc = HorizonMapVFunction(horizon, default_value=0.0)
        states = list(self.model.states())

        for timestep in range(horizon - 1, -1, -1):
            for state in states:
                action = policy.policy(state, timestep)
                vfunc.set(state, timestep, self._backup(state, action, timestep, vfunc))

        return vfunc

    def _backup(
        self,
        state: State,
        action: Action,
        timestep: int,
        vfunc: HorizonMapVFunction,
    ) -> float:
        return avg_r(self.model, state, action) + avg_next_v_at(
            self.model, state, action, timestep, vfunc, self.discount_factor
        )
