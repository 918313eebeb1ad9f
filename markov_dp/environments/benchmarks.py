"""
Benchmark Environments

Small finite-state MDPs with known optimal policies, and a simulator that
samples action outcomes from any finite-state model.
"""

from typing import List, Optional
import numpy as np

from ..core.exceptions import InvalidConfigurationError
from ..core.mdp import (
    Action,
    ActionOutcome,
    FiniteStateMDP,
    FiniteStateSMDP,
    ListActionSet,
    Optimization,
    RewardBounded,
    Simulator,
    State,
)
from ..core.policy import MapPolicy


class ChainMDP(FiniteStateMDP, RewardBounded):
    """
    Chain of states where reaching the last state pays the maximum reward

    From the last state every action returns to the first state. Elsewhere
    ACTION1 stays with probability 0.2 and advances with probability 0.8;
    ACTION2 stays with probability 0.1, resets to the first state with
    probability 0.2 and advances with probability 0.7; ACTION3 resets.
    """

    DEFAULT_NUM_STATES = 20
    NUM_ACTIONS = 3

    ACTION1 = 0
    ACTION2 = 1
    ACTION3 = 2

    RMAX = 1.0
    RMIN = 0.0

    def __init__(self, num_states: int = DEFAULT_NUM_STATES, seed: Optional[int] = None):
        super().__init__(ListActionSet.build(self.NUM_ACTIONS, seed=seed), Optimization.MAXIMIZE)
        if num_states < 1:
            raise InvalidConfigurationError(
                f"Cannot construct an MDP with {num_states} states."
            )
        self.num_states = num_states

    @property
    def last_state(self) -> int:
        return self.num_states - 1

    def reward_function(self, state: int, action: int, next_state: int) -> float:
        return self.RMAX if next_state == self.last_state else self.RMIN

    def transition_probability(self, state: int, action: int, next_state: int) -> float:
        if state == self.last_state:
            return 1.0 if next_state == 0 else 0.0

        # A state's probabilities accumulate when next_state matches several roles
        prob = 0.0
        if action == self.ACTION1:
            if next_state == state:
                prob += 0.2
            if next_state == state + 1:
                prob += 0.8
        elif action == self.ACTION2:
            if next_state == state:
                prob += 0.1
            if next_state == 0:
                prob += 0.2
            if next_state == state + 1:
                prob += 0.7
        elif action == self.ACTION3:
            if next_state == 0:
                prob += 1.0
        return prob

    def states(self) -> List[int]:
        return list(range(self.num_states))

    def number_of_states(self) -> int:
        return self.num_states

    def successors(self, state: int, action: int) -> List[int]:
        succs = [0]
        if state not in succs:
            succs.append(state)
        if state != self.last_state:
            succs.append(state + 1)
        return succs

    def optimal_policy(self) -> MapPolicy:
        return MapPolicy({state: self.ACTION1 for state in self.states()})

    def rmax(self) -> float:
        return self.RMAX

    def rmin(self) -> float:
        return self.RMIN


class TwoStateMDP(FiniteStateMDP, RewardBounded):
    """Two states, four actions; entering STATE2 pays 1, entering STATE1 pays 0"""

    NUM_STATES = 2
    NUM_ACTIONS = 4

    ACTION1 = 0
    ACTION2 = 1
    ACTION3 = 2
    ACTION4 = 3

    STATE1 = 0
    STATE2 = 1

    RMAX = 1.0
    RMIN = 0.0

    def __init__(self, seed: Optional[int] = None):
        super().__init__(ListActionSet.build(self.NUM_ACTIONS, seed=seed), Optimization.MAXIMIZE)
        self._tmat = self._build_tmat()

    def _build_tmat(self) -> np.ndarray:
        tmat = np.zeros((self.NUM_STATES, self.NUM_ACTIONS, self.NUM_STATES))

        tmat[self.STATE1, :, self.STATE2] = [0.5, 0.8, 0.2, 0.1]
        tmat[self.STATE2, :, self.STATE2] = [0.1, 0.2, 0.3, 0.4]
        tmat[:, :, self.STATE1] = 1.0 - tmat[:, :, self.STATE2]

        return tmat

    def reward_function(self, state: int, action: int, next_state: int) -> float:
        return self.RMAX if next_state == self.STATE2 else self.RMIN

    def transition_probability(self, state: int, action: int, next_state: int) -> float:
        return float(self._tmat[state, action, next_state])

    def states(self) -> List[int]:
        return [self.STATE1, self.STATE2]

    def number_of_states(self) -> int:
        return self.NUM_STATES

    def successors(self, state: int, action: int) -> List[int]:
        return self.states()

    @classmethod
    def optimal_policy(cls) -> MapPolicy:
        return MapPolicy({cls.STATE1: cls.ACTION2, cls.STATE2: cls.ACTION4})

    def rmax(self) -> float:
        return self.RMAX

    def rmin(self) -> float:
        return self.RMIN


class MDPSimulator(Simulator):
    """Samples outcomes from the transition model of a finite-state SMDP"""

    def __init__(self, model: FiniteStateSMDP, seed: Optional[int] = None):
        if model is None:
            raise InvalidConfigurationError("Model cannot be None.")
        self.model = model
        self.rng = np.random.default_rng(seed)

    def sim(self, state: State, action: Action) -> ActionOutcome:
        outcomes = []
        probs = []
        for terminal_state in self.model.successors(state, action):
            for duration in self.model.durations(state, action, terminal_state):
                tprob = self.model.tprob(state, action, terminal_state, duration)
                if tprob > 0:
                    outcomes.append((terminal_state, duration))
                    probs.append(tprob)

        probs = np.asarray(probs) / np.sum(probs)
        terminal_state, duration = outcomes[int(self.rng.choice(len(outcomes), p=probs))]
        reward = self.model.r(state, action, terminal_state, duration)
        return ActionOutcome(state, action, terminal_state, reward, duration)
