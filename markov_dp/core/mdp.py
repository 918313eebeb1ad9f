"""
Core (Semi-)Markov Decision Process Framework

Implements the model contract consumed by the dynamic programming
algorithms: optimization objectives, discount factors, action sets and
the SMDP/MDP capabilities for finite state spaces.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Hashable, Iterable, List, Optional, Sequence, Tuple
import numpy as np

from .exceptions import InvalidConfigurationError, InvalidObservationError

State = Hashable
Action = Hashable


class Optimization(Enum):
    MINIMIZE = "minimize"
    MAXIMIZE = "maximize"

    def first_is_better(self, first: float, second: float) -> bool:
        """Strict comparison under this objective; ties are never better"""
        if self is Optimization.MINIMIZE:
            return first < second
        return first > second

    def best(self, lower: float, upper: float) -> float:
        """Objective-favorable end of the interval [lower, upper]"""
        return upper if self is Optimization.MAXIMIZE else lower

    def worst(self, lower: float, upper: float) -> float:
        """Objective-unfavorable end of the interval [lower, upper]"""
        return lower if self is Optimization.MAXIMIZE else upper

    def search(
        self, pairs: Iterable[Tuple[Any, float]]
    ) -> Optional[Tuple[Any, float]]:
        """
        Optimal (key, value) pair in enumeration order

        Returns None for an empty enumeration. The first pair reaching the
        optimal value is kept.
        """
        optimal = None
        for key, value in pairs:
            if optimal is None or self.first_is_better(value, optimal[1]):
                optimal = (key, value)
        return optimal


@dataclass(frozen=True)
class DiscountFactor:
    """Rate in [0, 1] at which reinforcements are discounted per timestep"""

    gamma: float

    def __post_init__(self):
        if self.gamma is None or not 0.0 <= self.gamma <= 1.0:
            raise InvalidConfigurationError(
                f"Expected discount factor to be in [0, 1]. Found {self.gamma}."
            )

    def discount(self, duration: int) -> float:
        """Multi-step discount for an action lasting `duration` timesteps"""
        return self.gamma**duration

    def __float__(self) -> float:
        return float(self.gamma)


@dataclass(frozen=True)
class ActionOutcome:
    """Observed result of executing an action until it terminates"""

    state: State
    action: Action
    terminal_state: State
    reward: float
    duration: int = 1

    def __post_init__(self):
        if self.duration < 1:
            raise InvalidObservationError(
                "Expected positive integer for action's duration. "
                f"Found : {self.duration}."
            )


class Simulator(ABC):
    """Samples action outcomes from an environment"""

    @abstractmethod
    def sim(self, state: State, action: Action) -> ActionOutcome:
        """Execute action at state and report the outcome"""
        pass


class ActionSet(ABC):
    """Admissible actions per state with a dense integer index space"""

    @abstractmethod
    def is_valid(self, state: State, action: Action) -> bool:
        """Check if action is admissible at state"""
        pass

    @abstractmethod
    def indices(self, state: State) -> List[int]:
        """Indices of the admissible actions at state"""
        pass

    @abstractmethod
    def actions(self, state: State) -> List[Action]:
        """Admissible actions at state, in a stable order"""
        pass

    @abstractmethod
    def action(self, index: int) -> Action:
        """Action symbol for an index"""
        pass

    @abstractmethod
    def index(self, action: Action) -> int:
        """Index of an action symbol"""
        pass

    @abstractmethod
    def number_of_actions(self) -> int:
        """Size of the action index space"""
        pass

    @abstractmethod
    def uniform_random(self, state: State) -> Action:
        """Sample an admissible action uniformly at random"""
        pass


class ListActionSet(ActionSet):
    """The same list of actions admissible at every state"""

    def __init__(self, actions: Sequence[Action], seed: Optional[int] = None):
        self._actions = list(actions)
        self._rng = np.random.default_rng(seed)

    @classmethod
    def build(cls, num_actions: int, seed: Optional[int] = None) -> "ListActionSet":
        """Action set over the integers 0..num_actions-1"""
        return cls(list(range(num_actions)), seed=seed)

    def is_valid(self, state: State, action: Action) -> bool:
        return action in self._actions

    def indices(self, state: State) -> List[int]:
        return list(range(len(self._actions)))

    def actions(self, state: State) -> List[Action]:
        return list(self._actions)

    def action(self, index: int) -> Action:
        return self._actions[index]

    def index(self, action: Action) -> int:
        return self._actions.index(action)

    def number_of_actions(self) -> int:
        return len(self._actions)

    def uniform_random(self, state: State) -> Action:
        return self._actions[int(self._rng.integers(len(self._actions)))]


class SMDP(ABC):
    """
    Semi-Markov Decision Process

    Actions may take a variable number of timesteps. Every quantity is
    defined per (state, action, terminal state, duration) observation.
    Implementations are trusted to be internally consistent: the
    transition probabilities over terminal states and durations must sum
    to one for every admissible state-action pair.
    """

    def __init__(self, op_type: Optimization):
        self._op_type = op_type

    @property
    def op_type(self) -> Optimization:
        """Whether rewards are maximized or costs minimized"""
        return self._op_type

    @abstractmethod
    def r(
        self, state: State, action: Action, terminal_state: State, duration: int
    ) -> float:
        """Expected reward for the observation"""
        pass

    @abstractmethod
    def tprob(
        self, state: State, action: Action, terminal_state: State, duration: int
    ) -> float:
        """Probability of terminating in terminal_state after duration steps"""
        pass

    @abstractmethod
    def durations(
        self, state: State, action: Action, terminal_state: State
    ) -> List[int]:
        """Durations with possibly non-zero probability"""
        pass

    @abstractmethod
    def max_action_duration(self) -> int:
        """Upper bound on any action's duration"""
        pass

    def dr(
        self,
        state: State,
        action: Action,
        terminal_state: State,
        duration: int,
        gamma: DiscountFactor,
    ) -> float:
        """Reward discounted by gamma**duration"""
        return gamma.discount(duration) * self.r(
            state, action, terminal_state, duration
        )

    def dtprob(
        self,
        state: State,
        action: Action,
        terminal_state: State,
        duration: int,
        gamma: DiscountFactor,
    ) -> float:
        """Transition probability discounted by gamma**duration"""
        return gamma.discount(duration) * self.tprob(
            state, action, terminal_state, duration
        )


class UnitDuration(ABC):
    """
    Degenerate SMDP behaviour for models whose actions all last one step

    Subclasses implement the one-step `reward_function` and
    `transition_probability`; every other duration has zero probability
    and zero reward.
    """

    @abstractmethod
    def reward_function(
        self, state: State, action: Action, next_state: State
    ) -> float:
        """Reward R(s,a,s')"""
        pass

    @abstractmethod
    def transition_probability(
        self, state: State, action: Action, next_state: State
    ) -> float:
        """Transition probability P(s'|s,a)"""
        pass

    def r(
        self, state: State, action: Action, terminal_state: State, duration: int = 1
    ) -> float:
        if duration != 1:
            return 0.0
        return self.reward_function(state, action, terminal_state)

    def tprob(
        self, state: State, action: Action, terminal_state: State, duration: int = 1
    ) -> float:
        if duration != 1:
            return 0.0
        return self.transition_probability(state, action, terminal_state)

    def durations(
        self, state: State, action: Action, terminal_state: State
    ) -> List[int]:
        return [1]

    def max_action_duration(self) -> int:
        return 1


class MDP(UnitDuration, SMDP):
    """Markov Decision Process: an SMDP whose actions last exactly one step"""

    pass


class FiniteStateSMDP(SMDP):
    """SMDP with an enumerable state space"""

    def __init__(self, action_set: ActionSet, op_type: Optimization):
        super().__init__(op_type)
        if action_set is None:
            raise InvalidConfigurationError("Action set cannot be None.")
        self._action_set = action_set

    @property
    def action_set(self) -> ActionSet:
        return self._action_set

    @abstractmethod
    def states(self) -> Iterable[State]:
        """All states, in a stable order"""
        pass

    @abstractmethod
    def successors(self, state: State, action: Action) -> Iterable[State]:
        """Terminal states with possibly non-zero probability"""
        pass

    def actions(self, state: State) -> List[Action]:
        """Admissible actions at state"""
        return self._action_set.actions(state)

    def number_of_states(self) -> int:
        return sum(1 for _ in self.states())

    def number_of_actions(self) -> int:
        return self._action_set.number_of_actions()


class FiniteStateMDP(UnitDuration, FiniteStateSMDP):
    """MDP with an enumerable state space"""

    pass


class RewardBounded(ABC):
    """Capability of models whose immediate rewards lie in [rmin, rmax]"""

    @abstractmethod
    def rmin(self) -> float:
        pass

    @abstractmethod
    def rmax(self) -> float:
        pass


def _outcomes(
    model: FiniteStateSMDP, state: State, action: Action
) -> Iterable[Tuple[State, int, float]]:
    for terminal_state in model.successors(state, action):
        for duration in model.durations(state, action, terminal_state):
            tprob = model.tprob(state, action, terminal_state, duration)
            if tprob > 0:
                yield terminal_state, duration, tprob


def avg_r(model: FiniteStateSMDP, state: State, action: Action) -> float:
    """Expected immediate reward of taking action at state"""
    ravg = 0.0
    for terminal_state, duration, tprob in _outcomes(model, state, action):
        ravg += tprob * model.r(state, action, terminal_state, duration)
    return ravg


def avg_next_v(
    model: FiniteStateSMDP,
    state: State,
    action: Action,
    vfunc: Any,
    gamma: DiscountFactor,
) -> float:
    """Duration-discounted expected value of the terminal state"""
    avg_v = 0.0
    for terminal_state, duration, tprob in _outcomes(model, state, action):
        avg_v += gamma.discount(duration) * tprob * vfunc.value(terminal_state)
    return avg_v


def avg_next_v_at(
    model: FiniteStateSMDP,
    state: State,
    action: Action,
    timestep: int,
    vfunc: Any,
    gamma: DiscountFactor,
) -> float:
    """Finite-horizon variant of `avg_next_v`; values past the horizon are 0"""
    avg_v = 0.0
    for terminal_state, duration, tprob in _outcomes(model, state, action):
        next_timestep = timestep + duration
        if next_timestep >= vfunc.horizon:
            continue
        avg_v += (
            gamma.discount(duration) * tprob * vfunc.value(terminal_state, next_timestep)
        )
    return avg_v
