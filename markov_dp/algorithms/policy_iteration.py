"""
Policy Iteration

A generic policy iteration driver alternating policy evaluation and
policy improvement until a termination rule fires, reporting progress to
registered listeners.
"""

from abc import ABC, abstractmethod
from typing import Any, List, Optional, Tuple
import logging
import time

from ..core.exceptions import InvalidConfigurationError
from ..core.mdp import DiscountFactor, FiniteStateSMDP
from ..core.policy import DiscountedVFunction, MapPolicy, StationaryPolicy
from .policy_evaluation import MatrixInversePolicyEvaluation, PolicyEvaluation
from .policy_improvement import PolicyImprovement, StationaryPolicyImprovement

logger = logging.getLogger(__name__)


class PolicyIterationListener(ABC):
    """Receives the events that occur during policy iteration"""

    @abstractmethod
    def initial_evaluation(
        self,
        policy: Any,
        vfunc: Any,
        generation_time_ms: float,
        evaluation_time_ms: float,
    ) -> None:
        """Called after the initial policy is generated and evaluated"""
        pass

    @abstractmethod
    def iteration(
        self,
        iteration: int,
        old_policy: Any,
        old_vfunc: Any,
        new_policy: Any,
        new_vfunc: Any,
        improvement_time_ms: float,
        evaluation_time_ms: float,
    ) -> None:
        """Called after each improve-then-evaluate iteration"""
        pass

    @abstractmethod
    def finished(self, policy: Any, vfunc: Any) -> None:
        """Called once with the final policy and its value"""
        pass


class LoggingPolicyIterationListener(PolicyIterationListener):
    """Reports policy iteration progress through the logging module"""

    def __init__(self, log: Optional[logging.Logger] = None, level: int = logging.INFO):
        self.log = log or logger
        self.level = level

    def initial_evaluation(self, policy, vfunc, generation_time_ms, evaluation_time_ms):
        self.log.log(
            self.level,
            f"Initial policy generated in {generation_time_ms:.2f} ms, "
            f"evaluated in {evaluation_time_ms:.2f} ms",
        )

    def iteration(
        self,
        iteration,
        old_policy,
        old_vfunc,
        new_policy,
        new_vfunc,
        improvement_time_ms,
        evaluation_time_ms,
    ):
        self.log.log(
            self.level,
            f"Iteration {iteration}: improvement {improvement_time_ms:.2f} ms, "
            f"evaluation {evaluation_time_ms:.2f} ms",
        )

    def finished(self, policy, vfunc):
        self.log.log(self.level, "Policy iteration finished")


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0


class AbstractPolicyIteration(ABC):
    """
    Generic policy iteration

    Depending on the evaluation and improvement algorithms supplied this
    implements exact or approximate policy iteration. Listeners are
    notified in registration order; each dispatch works on a snapshot of
    the listener list, so a listener adding or removing listeners affects
    the next dispatch only.
    """

    def __init__(self, evaluation: PolicyEvaluation, improvement: PolicyImprovement):
        if evaluation is None or improvement is None:
            raise InvalidConfigurationError(
                "Policy iteration requires evaluation and improvement algorithms."
            )
        self._evaluation = evaluation
        self._improvement = improvement
        self._listeners: List[PolicyIterationListener] = []

    @property
    def policy_evaluation(self) -> PolicyEvaluation:
        return self._evaluation

    @property
    def policy_improvement(self) -> PolicyImprovement:
        return self._improvement

    def add_listener(self, listener: PolicyIterationListener) -> None:
        self._listeners.append(listener)

    def remove_listener(self, listener: PolicyIterationListener) -> None:
        self._listeners.remove(listener)

    def _snapshot(self) -> Tuple[PolicyIterationListener, ...]:
        return tuple(self._listeners)

    @abstractmethod
    def initial_policy(self) -> Any:
        """Generate the policy iteration starts from"""
        pass

    @abstractmethod
    def is_finished(self, policy: Any, vfunc: Any, iteration: int) -> bool:
        """Check if iteration can stop after `iteration` completed iterations"""
        pass

    def run(self) -> Any:
        start = time.perf_counter()
        policy = self.initial_policy()
        generation_time = _elapsed_ms(start)

        start = time.perf_counter()
        vfunc = self._evaluation.eval(policy)
        evaluation_time = _elapsed_ms(start)

        for listener in self._snapshot():
            listener.initial_evaluation(policy, vfunc, generation_time, evaluation_time)

        iteration = 0
        while not self.is_finished(policy, vfunc, iteration):
            iteration += 1

            start = time.perf_counter()
            new_policy = self._improvement.improve(policy, vfunc)
            improvement_time = _elapsed_ms(start)

            start = time.perf_counter()
            new_vfunc = self._evaluation.eval(new_policy)
            evaluation_time = _elapsed_ms(start)

            for listener in self._snapshot():
                listener.iteration(
                    iteration,
                    policy,
                    vfunc,
                    new_policy,
                    new_vfunc,
                    improvement_time,
                    evaluation_time,
                )

            policy = new_policy
            vfunc = new_vfunc

        for listener in self._snapshot():
            listener.finished(policy, vfunc)

        logger.debug(f"Policy iteration finished after {iteration} iterations")
        return policy


class PolicyIteration(AbstractPolicyIteration):
    """
    Policy iteration for discounted finite-state SMDPs

    Starts from a uniformly random deterministic policy and stops when the
    greedy policy is unchanged at every state, or after `max_iterations`
    iterations when that cap is positive.
    """

    def __init__(
        self,
        model: FiniteStateSMDP,
        discount_factor: DiscountFactor,
        max_iterations: int = -1,
        evaluation: Optional[PolicyEvaluation] = None,
    ):
        if model is None:
            raise InvalidConfigurationError("SMDP model cannot be None.")
        if evaluation is None:
            evaluation = MatrixInversePolicyEvaluation(model, discount_factor)
        super().__init__(evaluation, StationaryPolicyImprovement(model, discount_factor))
        self.model = model
        self.max_iterations = max_iterations
        self._last_policy: Optional[StationaryPolicy] = None

    def initial_policy(self) -> MapPolicy:
        action_set = self.model.action_set
        return MapPolicy(
            {state: action_set.uniform_random(state) for state in self.model.states()}
        )

    def is_finished(
        self, policy: StationaryPolicy, vfunc: DiscountedVFunction, iteration: int
    ) -> bool:
        last_policy, self._last_policy = self._last_policy, policy

        if self.max_iterations > 0 and iteration >= self.max_iterations:
            return True
        if last_policy is None:
            return False

        return all(
            last_policy.policy(state) == policy.policy(state)
            for state in self.model.states()
        )

    def run(self) -> StationaryPolicy:
        self._last_policy = None
        return super().run()
