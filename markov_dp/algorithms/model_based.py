"""
Model-Based Reinforcement Learning

Maximum-likelihood estimation of a finite-state SMDP from observed action
outcomes, with optimistic (R-MAX style) or pessimistic treatment of
state-action pairs that have not been sampled often enough, and a learning
loop that plans on the estimated model.
"""

from collections import Counter, defaultdict
from typing import Any, Dict, Iterable, List, Optional, Tuple
import logging

from ..core.exceptions import InvalidConfigurationError, InvalidObservationError
from ..core.mdp import (
    Action,
    ActionOutcome,
    ActionSet,
    DiscountFactor,
    FiniteStateSMDP,
    Optimization,
    RewardBounded,
    Simulator,
    State,
)
from ..core.policy import MapQFunction
from .policy_improvement import ValueIteration

logger = logging.getLogger(__name__)


class SMDPEstimator(FiniteStateSMDP, RewardBounded):
    """
    SMDP estimated from samples

    A state-action pair is "known" once it has been sampled at least
    `num_samples_before_known` times. Known pairs use empirical transition
    frequencies and mean rewards. Unknown pairs transition to the reserved
    `dummy_state` in a single step with probability one and receive the
    objective-favorable reward bound when optimistic (the unfavorable one
    otherwise). The dummy state itself is never sampled, so it is
    absorbing under the same rule.

    Counts only grow between calls to `reset()`. The estimator is not
    synchronized; callers sharing it between threads must serialize
    `update` against every other call.
    """

    def __init__(
        self,
        dummy_state: State,
        action_set: ActionSet,
        num_samples_before_known: int,
        optimistic: bool,
        reward_interval: Tuple[float, float],
        op_type: Optimization = Optimization.MAXIMIZE,
    ):
        super().__init__(action_set, op_type)
        if dummy_state is None:
            raise InvalidConfigurationError("Dummy state cannot be None.")
        if num_samples_before_known < 1:
            raise InvalidConfigurationError(
                "The number of samples needed before a state-action pair can be "
                "considered known must be positive. Expected positive integer. "
                f"Found {num_samples_before_known}."
            )
        rmin, rmax = reward_interval
        if rmin > rmax:
            raise InvalidConfigurationError(
                f"Invalid reward interval [{rmin}, {rmax}]."
            )

        self._dummy_state = dummy_state
        self._m = num_samples_before_known
        self._optimistic = optimistic
        self._rmin = rmin
        self._rmax = rmax

        self.reset()

    def reset(self) -> None:
        """Forget every observation"""
        self._states: Dict[State, None] = {}
        self._max_duration = 1

        self._succs: Dict[Tuple[State, Action], Dict[State, None]] = defaultdict(dict)
        self._durations: Dict[Tuple[State, Action, State], Dict[int, None]] = (
            defaultdict(dict)
        )

        self._s_counts: Counter = Counter()
        self._sa_counts: Counter = Counter()
        self._sas_counts: Counter = Counter()
        self._sasd_counts: Counter = Counter()
        self._rsum: Dict[Tuple[State, Action, State, int], float] = defaultdict(float)

    @property
    def dummy_state(self) -> State:
        return self._dummy_state

    def num_samples_until_known(self) -> int:
        return self._m

    def is_optimistic(self) -> bool:
        return self._optimistic

    def is_known(self, state: State, action: Action) -> bool:
        return self.counts(state, action) >= self._m

    def rmin(self) -> float:
        return self._rmin

    def rmax(self) -> float:
        return self._rmax

    def update(
        self,
        state: State,
        action: Action,
        terminal_state: State,
        reward: float,
        duration: int = 1,
    ) -> None:
        """Record one observed action outcome"""
        if duration < 1:
            raise InvalidObservationError(
                "Expected positive integer for action's duration. "
                f"Found : {duration}."
            )
        if duration > self._max_duration:
            self._max_duration = duration

        self._states.setdefault(state)
        self._states.setdefault(terminal_state)

        self._succs[(state, action)].setdefault(terminal_state)
        self._durations[(state, action, terminal_state)].setdefault(duration)

        self._s_counts[state] += 1
        self._sa_counts[(state, action)] += 1
        self._sas_counts[(state, action, terminal_state)] += 1
        self._sasd_counts[(state, action, terminal_state, duration)] += 1
        self._rsum[(state, action, terminal_state, duration)] += reward

    def update_outcome(self, outcome: ActionOutcome) -> None:
        self.update(
            outcome.state,
            outcome.action,
            outcome.terminal_state,
            outcome.reward,
            outcome.duration,
        )

    def counts(self, state: State, *key: Any) -> int:
        """
        Number of observations matching a key prefix

        Accepts (state), (state, action), (state, action, terminal_state) or
        (state, action, terminal_state, duration).
        """
        tables = (self._sa_counts, self._sas_counts, self._sasd_counts)
        if not key:
            return self._s_counts.get(state, 0)
        if len(key) > len(tables):
            raise TypeError(f"counts() takes at most 4 keys ({len(key) + 1} given)")
        return tables[len(key) - 1].get((state,) + key, 0)

    def unknown_r(self) -> float:
        """Reward assumed for state-action pairs that are not yet known"""
        if self._optimistic:
            return self.op_type.best(self._rmin, self._rmax)
        return self.op_type.worst(self._rmin, self._rmax)

    def unknown_tprob(self, terminal_state: State, duration: int) -> float:
        """Transition model for pairs that are not yet known"""
        return 1.0 if terminal_state == self._dummy_state and duration == 1 else 0.0

    def r(
        self, state: State, action: Action, terminal_state: State, duration: int
    ) -> float:
        if not self.is_known(state, action):
            return self.unknown_r()

        key = (state, action, terminal_state, duration)
        n = self._sasd_counts.get(key, 0)
        if n == 0:
            return self._rmin
        return self._rsum[key] / n

    def tprob(
        self, state: State, action: Action, terminal_state: State, duration: int
    ) -> float:
        sa_count = self.counts(state, action)
        if sa_count < self._m:
            return self.unknown_tprob(terminal_state, duration)
        return self.counts(state, action, terminal_state, duration) / sa_count

    def max_action_duration(self) -> int:
        return self._max_duration

    def durations(
        self, state: State, action: Action, terminal_state: State
    ) -> List[int]:
        observed = self._durations.get((state, action, terminal_state), {})
        return [1] + [d for d in observed if d != 1]

    def states(self) -> List[State]:
        """Visited states in the order they were first observed"""
        return list(self._states)

    def number_of_states(self) -> int:
        return len(self._states)

    def successors(self, state: State, action: Action) -> List[State]:
        observed = self._succs.get((state, action), {})
        return [self._dummy_state] + [s for s in observed if s != self._dummy_state]


class _PlanningModel(FiniteStateSMDP):
    """Estimated model whose state space also contains the dummy state"""

    def __init__(self, estimator: SMDPEstimator):
        super().__init__(estimator.action_set, estimator.op_type)
        self.estimator = estimator

    def states(self) -> List[State]:
        states = self.estimator.states()
        if self.estimator.dummy_state not in states:
            states.append(self.estimator.dummy_state)
        return states

    def successors(self, state: State, action: Action) -> Iterable[State]:
        return self.estimator.successors(state, action)

    def r(self, state, action, terminal_state, duration):
        return self.estimator.r(state, action, terminal_state, duration)

    def tprob(self, state, action, terminal_state, duration):
        return self.estimator.tprob(state, action, terminal_state, duration)

    def durations(self, state, action, terminal_state):
        return self.estimator.durations(state, action, terminal_state)

    def max_action_duration(self):
        return self.estimator.max_action_duration()


class RMax:
    """
    Model-based learning under optimism (or pessimism) in the face of uncertainty

    Acts greedily with respect to value iteration on the estimated model,
    feeds every simulated outcome back to the estimator and re-plans every
    `replan_every` steps.
    """

    def __init__(
        self,
        estimator: SMDPEstimator,
        simulator: Simulator,
        discount_factor: DiscountFactor,
        config: Optional[Dict[str, Any]] = None,
    ):
        if estimator is None or simulator is None or discount_factor is None:
            raise InvalidConfigurationError(
                "RMax requires an estimator, a simulator and a discount factor."
            )
        self.estimator = estimator
        self.simulator = simulator
        self.discount_factor = discount_factor
        self.config = config or {}

        self.max_iterations = self.config.get("max_iterations", 1000)
        self.convergence_threshold = self.config.get("convergence_threshold", 1e-6)
        self.replan_every = self.config.get("replan_every", 1)
        if self.replan_every < 1:
            raise InvalidConfigurationError(
                f"replan_every must be a positive integer. Found {self.replan_every}."
            )

        self.step_count = 0
        self.replan_count = 0
        self.qfunc: Optional[MapQFunction] = None

    def plan(self) -> MapQFunction:
        """Solve the current estimated model"""
        vi = ValueIteration(
            _PlanningModel(self.estimator),
            self.discount_factor,
            self.max_iterations,
            self.convergence_threshold,
        )
        self.qfunc = vi.run()
        self.replan_count += 1
        return self.qfunc

    def select_action(self, state: State) -> Action:
        if self.qfunc is None:
            self.plan()
        return self.qfunc.greedy_action(state)

    def step(self, state: State) -> ActionOutcome:
        """Act once from state, learn from the outcome"""
        action = self.select_action(state)
        outcome = self.simulator.sim(state, action)
        self.estimator.update_outcome(outcome)

        self.step_count += 1
        if self.step_count % self.replan_every == 0:
            self.plan()

        return outcome

    def run(self, start_state: State, num_steps: int) -> Dict[str, List[Any]]:
        """Act for num_steps steps starting at start_state"""
        stats = {"rewards": [], "durations": [], "states": []}

        state = start_state
        for _ in range(num_steps):
            outcome = self.step(state)
            stats["states"].append(state)
            stats["rewards"].append(outcome.reward)
            stats["durations"].append(outcome.duration)
            state = outcome.terminal_state

        known = sum(
            1
            for s in self.estimator.states()
            for a in self.estimator.actions(s)
            if self.estimator.is_known(s, a)
        )
        logger.info(
            f"RMax ran {num_steps} steps, {self.replan_count} plans, "
            f"{known} known state-action pairs"
        )
        return stats
