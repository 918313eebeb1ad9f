"""
Policy and Value Function Framework

Implements policy representations and exact tabular value functions
for dynamic programming on finite (Semi-)Markov Decision Processes.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Iterable, List, Optional

from .exceptions import InvalidConfigurationError, TimestepOutOfRangeError
from .mdp import Action, ActionSet, Optimization, State


class Policy(ABC):
    """Abstract base class for policies"""

    @abstractmethod
    def policy(self, state: State, timestep: int) -> Action:
        """Action selected at state and timestep"""
        pass


class StationaryPolicy(Policy):
    """Policy whose action selection does not depend on the timestep"""

    @abstractmethod
    def policy(self, state: State, timestep: Optional[int] = None) -> Action:
        pass

    @abstractmethod
    def aprob(self, state: State, action: Action) -> float:
        """Probability of selecting action at state"""
        pass

    @abstractmethod
    def is_deterministic(self) -> bool:
        pass


class DeterministicPolicy(StationaryPolicy):
    """Stationary policy that always selects one action per state"""

    def aprob(self, state: State, action: Action) -> float:
        return 1.0 if action == self.policy(state) else 0.0

    def is_deterministic(self) -> bool:
        return True


class MapPolicy(DeterministicPolicy):
    """Deterministic policy backed by a state to action mapping"""

    def __init__(self, mapping: Dict[State, Action]):
        if mapping is None:
            raise InvalidConfigurationError("Cannot construct policy from a None map.")
        self._mapping = mapping

    def policy(self, state: State, timestep: Optional[int] = None) -> Action:
        return self._mapping.get(state)

    def set(self, state: State, action: Action) -> None:
        """Set this policy's action at state"""
        self._mapping[state] = action

    def as_dict(self) -> Dict[State, Action]:
        return dict(self._mapping)


class Option(StationaryPolicy):
    """Temporally-extended action: a policy with initiation and termination"""

    @abstractmethod
    def termination_prob(self, state: State, duration: int) -> float:
        """Probability of terminating at state after running for duration"""
        pass

    @abstractmethod
    def in_initial_set(self, state: State) -> bool:
        """Check if the option can be initiated at state"""
        pass


class FiniteHorizonPolicy(Policy):
    """Policy defined over the timesteps [0, horizon)"""

    @property
    @abstractmethod
    def horizon(self) -> int:
        pass


class SequenceOfStationaryPolicies(FiniteHorizonPolicy):
    """Follows the i-th stationary policy at timestep i"""

    def __init__(self, policies: Iterable[StationaryPolicy]):
        self._policies = list(policies)

    @property
    def horizon(self) -> int:
        return len(self._policies)

    def prepend(self, policy: StationaryPolicy) -> None:
        self._policies.insert(0, policy)

    def append(self, policy: StationaryPolicy) -> None:
        self._policies.append(policy)

    def stationary_policy(self, index: int) -> StationaryPolicy:
        return self._policies[index]

    def policy(self, state: State, timestep: int) -> Action:
        if not 0 <= timestep < self.horizon:
            raise TimestepOutOfRangeError(timestep, self.horizon)
        return self._policies[timestep].policy(state)


class FiniteHorizonToInfiniteHorizonPolicy(Policy):
    """Repeats a finite-horizon policy forever"""

    def __init__(self, policy: FiniteHorizonPolicy):
        self._policy = policy

    @property
    def finite_horizon_policy(self) -> FiniteHorizonPolicy:
        return self._policy

    def policy(self, state: State, timestep: int) -> Action:
        return self._policy.policy(state, timestep % self._policy.horizon)


class VFunction(ABC):
    """Abstract base class for state value functions"""

    @abstractmethod
    def value(self, state: State, timestep: int) -> float:
        pass


class DiscountedVFunction(VFunction):
    """Time-homogeneous state value function"""

    @abstractmethod
    def value(self, state: State, timestep: Optional[int] = None) -> float:
        pass


class QFunction(ABC):
    """Abstract base class for action-value functions"""

    @property
    @abstractmethod
    def op_type(self) -> Optimization:
        pass

    @abstractmethod
    def value(self, state: State, action: Action, timestep: int) -> float:
        pass

    @abstractmethod
    def greedy_value(self, state: State, timestep: int) -> float:
        """Best action-value at state under the objective"""
        pass

    @abstractmethod
    def greedy_action(self, state: State, timestep: int) -> Action:
        """First action reaching the best action-value at state"""
        pass

    @abstractmethod
    def greedy(self) -> VFunction:
        """State value function of acting greedily"""
        pass


class DiscountedQFunction(QFunction, StationaryPolicy):
    """
    Time-homogeneous action-value function

    Also a deterministic stationary policy that selects the greedy action.
    """

    @abstractmethod
    def value(
        self, state: State, action: Action, timestep: Optional[int] = None
    ) -> float:
        pass

    @abstractmethod
    def greedy_value(self, state: State, timestep: Optional[int] = None) -> float:
        pass

    @abstractmethod
    def greedy_action(self, state: State, timestep: Optional[int] = None) -> Action:
        pass

    def policy(self, state: State, timestep: Optional[int] = None) -> Action:
        return self.greedy_action(state)

    def aprob(self, state: State, action: Action) -> float:
        return 1.0 if action == self.policy(state) else 0.0

    def is_deterministic(self) -> bool:
        return True


class GreedyQ(DiscountedVFunction, DeterministicPolicy):
    """Greedy projection of an action-value function"""

    def __init__(self, qfunc: DiscountedQFunction):
        self._qfunc = qfunc

    @property
    def qfunc(self) -> DiscountedQFunction:
        return self._qfunc

    def value(self, state: State, timestep: Optional[int] = None) -> float:
        return self._qfunc.greedy_value(state)

    def policy(self, state: State, timestep: Optional[int] = None) -> Action:
        return self._qfunc.greedy_action(state)


class MapVFunction(DiscountedVFunction):
    """Tabular value function; unseen states map to the default value"""

    def __init__(
        self, values: Optional[Dict[State, float]] = None, default_value: float = 0.0
    ):
        self._values = {} if values is None else values
        self.default_value = default_value

    def value(self, state: State, timestep: Optional[int] = None) -> float:
        return self._values.get(state, self.default_value)

    def set(self, state: State, value: float) -> None:
        self._values[state] = value

    def as_dict(self) -> Dict[State, float]:
        return dict(self._values)


class HorizonMapVFunction(VFunction):
    """Tabular value function indexed by timestep over [0, horizon)"""

    def __init__(self, horizon: int, default_value: float = 0.0):
        if horizon < 1:
            raise InvalidConfigurationError(
                f"Expected positive integer for 'horizon'. Found : {horizon}."
            )
        self._horizon = horizon
        self.default_value = default_value
        self._values: List[Dict[State, float]] = [{} for _ in range(horizon)]

    @property
    def horizon(self) -> int:
        return self._horizon

    def _table(self, timestep: int) -> Dict[State, float]:
        if not 0 <= timestep < self._horizon:
            raise TimestepOutOfRangeError(timestep, self._horizon)
        return self._values[timestep]

    def value(self, state: State, timestep: int) -> float:
        return self._table(timestep).get(state, self.default_value)

    def set(self, state: State, timestep: int, value: float) -> None:
        self._table(timestep)[state] = value


class MapQFunction(DiscountedQFunction):
    """
    Tabular action-value function with greedy selection over an action set

    Greedy selection scans `actions(state)` when given, so a model that
    restricts its admissible actions per state can pass its own `actions`;
    otherwise the action set's actions are scanned.
    """

    def __init__(
        self,
        action_set: ActionSet,
        default_value: float = 0.0,
        op_type: Optimization = Optimization.MAXIMIZE,
        actions: Optional[Callable[[State], Iterable[Action]]] = None,
    ):
        if action_set is None:
            raise InvalidConfigurationError("Action set cannot be None.")
        self._action_set = action_set
        self._actions = actions or action_set.actions
        self.default_value = default_value
        self._op_type = op_type
        self._qvals: Dict[State, Dict[Action, float]] = {}

    @property
    def op_type(self) -> Optimization:
        return self._op_type

    def value(
        self, state: State, action: Action, timestep: Optional[int] = None
    ) -> float:
        return self._qvals.get(state, {}).get(action, self.default_value)

    def set(self, state: State, action: Action, value: float) -> None:
        self._qvals.setdefault(state, {})[action] = value

    def _search(self, state: State) -> Optional[Any]:
        return self._op_type.search(
            (action, self.value(state, action)) for action in self._actions(state)
        )

    def greedy_value(self, state: State, timestep: Optional[int] = None) -> float:
        optimal = self._search(state)
        return self.default_value if optimal is None else optimal[1]

    def greedy_action(self, state: State, timestep: Optional[int] = None) -> Action:
        optimal = self._search(state)
        return None if optimal is None else optimal[0]

    def greedy(self) -> GreedyQ:
        return GreedyQ(self)
