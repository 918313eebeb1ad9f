"""
Policy Improvement and Value Iteration

One-step lookahead (Bellman) backups over a finite-state SMDP under the
model's optimization objective.
"""

from abc import ABC, abstractmethod
from typing import Any
import logging

from ..core.exceptions import InvalidConfigurationError
from ..core.mdp import Action, DiscountFactor, FiniteStateSMDP, State, avg_next_v, avg_r
from ..core.policy import DiscountedVFunction, MapQFunction, MapVFunction, StationaryPolicy

logger = logging.getLogger(__name__)


class PolicyImprovement(ABC):
    """Abstract base class for policy improvement rules"""

    @abstractmethod
    def improve(self, old_policy: Any, vfunc: Any) -> Any:
        """Improve old_policy given an estimate of its value function"""
        pass


def q_backup(
    model: FiniteStateSMDP,
    state: State,
    action: Action,
    vfunc: DiscountedVFunction,
    discount_factor: DiscountFactor,
) -> float:
    """Q(s,a) = expected immediate reward + discounted expected next value"""
    return avg_r(model, state, action) + avg_next_v(
        model, state, action, vfunc, discount_factor
    )


class StationaryPolicyImprovement(PolicyImprovement):
    """Greedy improvement with respect to a state value function"""

    def __init__(self, model: FiniteStateSMDP, discount_factor: DiscountFactor):
        if model is None:
            raise InvalidConfigurationError("SMDP model cannot be None.")
        if discount_factor is None:
            raise InvalidConfigurationError(
                "Cannot perform policy improvement with a None discount factor."
            )
        self.model = model
        self.discount_factor = discount_factor

    def improve(
        self, old_policy: StationaryPolicy, vfunc: DiscountedVFunction
    ) -> MapQFunction:
        qfunc = MapQFunction(
            self.model.action_set, 0.0, self.model.op_type, self.model.actions
        )
        for state in self.model.states():
            for action in self.model.actions(state):
                qfunc.set(
                    state,
                    action,
                    q_backup(self.model, state, action, vfunc, self.discount_factor),
                )
        return qfunc


class ValueIteration:
    """
    Value Iteration

    Repeats in-place Bellman optimality backups until the largest change in
    a sweep drops below the convergence threshold or `max_iterations` sweeps
    have run (a non-positive cap sweeps until convergence). A sweep that
    changes no value always ends the loop. Returns the
    action-value function of the final state values, which is also the
    greedy policy.
    """

    def __init__(
        self,
        model: FiniteStateSMDP,
        discount_factor: DiscountFactor,
        max_iterations: int = 1000,
        convergence_threshold: float = 1e-6,
    ):
        if model is None:
            raise InvalidConfigurationError("SMDP model cannot be None.")
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
        self.sweeps = 0

    def run(self) -> MapQFunction:
        vfunc = MapVFunction(default_value=0.0)
        states = list(self.model.states())

        self.sweeps = 0
        while self.max_iterations <= 0 or self.sweeps < self.max_iterations:
            self.sweeps += 1
            delta = 0.0
            for state in states:
                old_v = vfunc.value(state)
                new_v = self.backup(state, vfunc)
                vfunc.set(state, new_v)
                delta = max(delta, abs(old_v - new_v))

            if delta < self.convergence_threshold or delta == 0.0:
                break

        logger.debug(f"Value iteration stopped after {self.sweeps} sweeps")
        return self.to_q(vfunc)

    def to_q(self, vfunc: DiscountedVFunction) -> MapQFunction:
        qfunc = MapQFunction(
            self.model.action_set, 0.0, self.model.op_type, self.model.actions
        )
        for state in self.model.states():
            for action in self.model.actions(state):
                qfunc.set(state, action, self.qbackup(state, action, vfunc))
        return qfunc

    def backup(self, state: State, vfunc: DiscountedVFunction) -> float:
        """Bellman optimality backup; states without actions keep their value"""
        optimal = self.model.op_type.search(
            (action, self.qbackup(state, action, vfunc))
            for action in self.model.actions(state)
        )
        return vfunc.value(state) if optimal is None else optimal[1]

    def qbackup(
        self, state: State, action: Action, vfunc: DiscountedVFunction
    ) -> float:
        return q_backup(self.model, state, action, vfunc, self.discount_factor)
