"""Tests for policy improvement, value iteration and the policy iteration driver"""

import logging

import pytest

from markov_dp.algorithms.policy_evaluation import (
    IterativePolicyEvaluation,
    MatrixInversePolicyEvaluation,
)
from markov_dp.algorithms.policy_improvement import StationaryPolicyImprovement, ValueIteration
from markov_dp.algorithms.policy_iteration import (
    LoggingPolicyIterationListener,
    PolicyIteration,
    PolicyIterationListener,
)
from markov_dp.core.exceptions import InvalidConfigurationError
from markov_dp.core.mdp import DiscountFactor, FiniteStateMDP, ListActionSet, Optimization
from markov_dp.core.policy import MapPolicy, MapVFunction

DF = DiscountFactor(0.95)


class RecordingListener(PolicyIterationListener):
    def __init__(self, name, events):
        self.name = name
        self.events = events

    def initial_evaluation(self, policy, vfunc, generation_time_ms, evaluation_time_ms):
        self.events.append((self.name, "initial", None))

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
        self.events.append((self.name, "iteration", iteration))

    def finished(self, policy, vfunc):
        self.events.append((self.name, "finished", None))


class AddingListener(RecordingListener):
    """Registers another listener while the initial evaluation is dispatched"""

    def __init__(self, name, events, driver, late):
        super().__init__(name, events)
        self.driver = driver
        self.late = late

    def initial_evaluation(self, policy, vfunc, generation_time_ms, evaluation_time_ms):
        super().initial_evaluation(policy, vfunc, generation_time_ms, evaluation_time_ms)
        self.driver.add_listener(self.late)


def _policies_match(model, policy, expected):
    return all(policy.policy(s) == expected.policy(s) for s in model.states())


def test_value_iteration_finds_optimal_chain_policy(chain):
    vi = ValueIteration(chain, DF, -1, 1e-9)

    qfunc = vi.run()

    assert _policies_match(chain, qfunc, chain.optimal_policy())
    assert vi.sweeps > 1


def test_value_iteration_values_match_exact_evaluation(chain):
    qfunc = ValueIteration(chain, DF, -1, 1e-9).run()
    exact = MatrixInversePolicyEvaluation(chain, DF).eval(chain.optimal_policy())

    for state in chain.states():
        assert qfunc.greedy_value(state) == pytest.approx(exact.value(state), abs=1e-5)


def test_policy_iteration_finds_optimal_chain_policy(chain):
    policy = PolicyIteration(chain, DF).run()

    assert _policies_match(chain, policy, chain.optimal_policy())


def test_policy_iteration_with_iterative_evaluation(chain):
    evaluation = IterativePolicyEvaluation(chain, DF, 1000, 0.0)

    policy = PolicyIteration(chain, DF, evaluation=evaluation).run()

    assert _policies_match(chain, policy, chain.optimal_policy())


def test_two_state_policy_iteration_converges_quickly(two_state):
    events = []
    driver = PolicyIteration(two_state, DF)
    driver.add_listener(RecordingListener("rec", events))

    policy = driver.run()

    assert policy.policy(0) == 1
    assert policy.policy(1) == 3
    iterations = [e[2] for e in events if e[1] == "iteration"]
    assert 1 <= len(iterations) <= 20


def test_policy_iteration_respects_iteration_cap(chain):
    events = []
    driver = PolicyIteration(chain, DF, max_iterations=1)
    driver.add_listener(RecordingListener("rec", events))

    driver.run()

    assert [e[2] for e in events if e[1] == "iteration"] == [1]


def test_listeners_are_notified_in_order(two_state):
    events = []
    driver = PolicyIteration(two_state, DF)
    driver.add_listener(RecordingListener("first", events))
    driver.add_listener(RecordingListener("second", events))

    driver.run()

    assert events[0] == ("first", "initial", None)
    assert events[1] == ("second", "initial", None)
    assert events[-2] == ("first", "finished", None)
    assert events[-1] == ("second", "finished", None)

    iterations = [e for e in events if e[1] == "iteration"]
    assert [e[0] for e in iterations[:2]] == ["first", "second"]
    numbers = [e[2] for e in iterations if e[0] == "first"]
    assert numbers == list(range(1, len(numbers) + 1))


def test_listener_added_during_dispatch_sees_next_event_only(two_state):
    events = []
    driver = PolicyIteration(two_state, DF)
    late = RecordingListener("late", events)
    driver.add_listener(AddingListener("adder", events, driver, late))

    driver.run()

    late_events = [e[1] for e in events if e[0] == "late"]
    assert "initial" not in late_events
    assert late_events[-1] == "finished"
    assert "iteration" in late_events


def test_removed_listener_stops_receiving_events(two_state):
    events = []
    driver = PolicyIteration(two_state, DF)
    listener = RecordingListener("rec", events)
    driver.add_listener(listener)
    driver.remove_listener(listener)

    driver.run()

    assert events == []


def test_logging_listener_reports_progress(two_state, caplog):
    driver = PolicyIteration(two_state, DF)
    driver.add_listener(LoggingPolicyIterationListener(level=logging.INFO))

    with caplog.at_level(logging.INFO):
        driver.run()

    assert "Initial policy generated" in caplog.text
    assert "Policy iteration finished" in caplog.text


def test_improvement_is_greedy_in_value(two_state):
    improvement = StationaryPolicyImprovement(two_state, DF)
    vfunc = MatrixInversePolicyEvaluation(two_state, DF).eval(MapPolicy({0: 0, 1: 0}))

    qfunc = improvement.improve(MapPolicy({0: 0, 1: 0}), vfunc)

    for state in two_state.states():
        best = max(qfunc.value(state, a) for a in two_state.actions(state))
        assert qfunc.greedy_value(state) == best


def test_drivers_reject_missing_model():
    with pytest.raises(InvalidConfigurationError):
        PolicyIteration(None, DF)
    with pytest.raises(InvalidConfigurationError):
        ValueIteration(None, DF)


class RestrictedActionsMDP(FiniteStateMDP):
    """Single looping state; only actions 1 and 2 of the set are admissible, both costly"""

    def __init__(self):
        super().__init__(ListActionSet.build(3), Optimization.MAXIMIZE)

    def actions(self, state):
        return [1, 2]

    def reward_function(self, state, action, next_state):
        return -float(action)

    def transition_probability(self, state, action, next_state):
        return 1.0

    def states(self):
        return [0]

    def successors(self, state, action):
        return [0]


def test_uncapped_value_iteration_stops_at_exact_fixed_point(two_state):
    vi = ValueIteration(two_state, DiscountFactor(0.0), -1, 0.0)

    qfunc = vi.run()

    assert vi.sweeps == 2
    assert qfunc.greedy_action(0) == 1
    assert qfunc.greedy_value(1) == pytest.approx(0.4)


def test_greedy_selection_ignores_inadmissible_actions():
    model = RestrictedActionsMDP()
    df = DiscountFactor(0.5)

    qfunc = ValueIteration(model, df, -1, 1e-9).run()
    assert qfunc.greedy_action(0) == 1
    assert qfunc.greedy_value(0) == pytest.approx(-2.0, abs=1e-6)

    improved = StationaryPolicyImprovement(model, df).improve(
        MapPolicy({0: 2}), MapVFunction({0: -4.0})
    )
    assert improved.policy(0) == 1
    assert improved.greedy_value(0) == pytest.approx(-1.0 + 0.5 * -4.0)
