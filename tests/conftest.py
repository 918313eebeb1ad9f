"""Shared fixtures and small models"""

from typing import List

import pytest

from markov_dp.core.mdp import FiniteStateMDP, FiniteStateSMDP, ListActionSet, Optimization
from markov_dp.environments.benchmarks import ChainMDP, TwoStateMDP


class SlowLoopSMDP(FiniteStateSMDP):
    """Single state whose only action returns to it after two timesteps with reward 1"""

    def __init__(self):
        super().__init__(ListActionSet.build(1), Optimization.MAXIMIZE)

    def r(self, state, action, terminal_state, duration):
        return 1.0 if duration == 2 else 0.0

    def tprob(self, state, action, terminal_state, duration):
        return 1.0 if duration == 2 else 0.0

    def durations(self, state, action, terminal_state) -> List[int]:
        return [2]

    def max_action_duration(self) -> int:
        return 2

    def states(self):
        return ["loop"]

    def successors(self, state, action):
        return ["loop"]


class AbsorbingMDP(FiniteStateMDP):
    """State 0 moves to the absorbing state 1 with reward 1; state 1 pays nothing"""

    def __init__(self):
        super().__init__(ListActionSet.build(1), Optimization.MAXIMIZE)

    def reward_function(self, state, action, next_state):
        return 1.0 if state == 0 else 0.0

    def transition_probability(self, state, action, next_state):
        return 1.0 if next_state == 1 else 0.0

    def states(self):
        return [0, 1]

    def successors(self, state, action):
        return [1]


@pytest.fixture
def chain():
    return ChainMDP(seed=7)


@pytest.fixture
def two_state():
    return TwoStateMDP(seed=7)


@pytest.fixture
def slow_loop():
    return SlowLoopSMDP()


@pytest.fixture
def absorbing():
    return AbsorbingMDP()
