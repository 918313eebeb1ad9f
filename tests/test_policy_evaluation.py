"""Tests for iterative, exact and finite-horizon policy evaluation"""

import pytest

from markov_dp.algorithms.policy_evaluation import (
    FiniteHorizonPolicyEvaluation,
    IterativePolicyEvaluation,
    MatrixInversePolicyEvaluation,
)
from markov_dp.core.exceptions import InvalidConfigurationError, TimestepOutOfRangeError
from markov_dp.core.mdp import DiscountFactor
from markov_dp.core.policy import MapPolicy, SequenceOfStationaryPolicies
from markov_dp.environments.benchmarks import ChainMDP, TwoStateMDP

DF = DiscountFactor(0.95)
VALUE_EPSILON = 0.05


def _assert_close(model, v1, v2, tol=VALUE_EPSILON):
    for state in model.states():
        assert abs(v1.value(state) - v2.value(state)) < tol


def test_exact_and_iterative_evaluation_agree_on_optimal_policy(chain):
    policy = chain.optimal_policy()

    exact = MatrixInversePolicyEvaluation(chain, DF).eval(policy)
    iterative = IterativePolicyEvaluation(chain, DF, 1000, 0.0).eval(policy)

    _assert_close(chain, exact, iterative)


def test_exact_and_iterative_evaluation_agree_on_random_policy(chain):
    policy = MapPolicy(
        {state: chain.action_set.uniform_random(state) for state in chain.states()}
    )

    exact = MatrixInversePolicyEvaluation(chain, DF, method="inverse").eval(policy)
    iterative = IterativePolicyEvaluation(chain, DF, -1, 1e-8).eval(policy)

    _assert_close(chain, exact, iterative)


def test_solve_methods_agree_on_well_conditioned_system(two_state):
    policy = two_state.optimal_policy()

    svd = MatrixInversePolicyEvaluation(two_state, DF, "svd").eval(policy)
    inverse = MatrixInversePolicyEvaluation(two_state, DF, "inverse").eval(policy)

    _assert_close(two_state, svd, inverse, tol=1e-9)


def test_two_state_values_match_closed_form(two_state):
    vfunc = MatrixInversePolicyEvaluation(two_state, DF).eval(two_state.optimal_policy())
    v1, v2 = vfunc.value(0), vfunc.value(1)

    assert v1 == pytest.approx(0.8 + 0.95 * (0.2 * v1 + 0.8 * v2))
    assert v2 == pytest.approx(0.4 + 0.95 * (0.6 * v1 + 0.4 * v2))


def test_singular_system_is_solved_by_least_squares(absorbing):
    policy = MapPolicy({0: 0, 1: 0})

    vfunc = MatrixInversePolicyEvaluation(absorbing, DiscountFactor(1.0)).eval(policy)

    # Any solution of V(0) = 1 + V(1), V(1) = V(1) is acceptable
    assert vfunc.value(0) - vfunc.value(1) == pytest.approx(1.0)


def test_duration_discounting_in_exact_and_iterative_evaluation(slow_loop):
    df = DiscountFactor(0.9)
    policy = MapPolicy({"loop": 0})
    expected = 1.0 / (1.0 - 0.9**2)

    exact = MatrixInversePolicyEvaluation(slow_loop, df).eval(policy)
    iterative = IterativePolicyEvaluation(slow_loop, df, -1, 1e-9).eval(policy)

    assert exact.value("loop") == pytest.approx(expected)
    assert iterative.value("loop") == pytest.approx(expected, abs=1e-6)


def test_iterative_evaluation_respects_sweep_cap(two_state):
    policy = two_state.optimal_policy()

    one_sweep = IterativePolicyEvaluation(two_state, DF, 1, 0.0).eval(policy)

    # One in-place sweep from zero: state 1 already sees the new value of state 0
    assert one_sweep.value(0) == pytest.approx(0.8)
    assert one_sweep.value(1) == pytest.approx(0.4 + 0.95 * 0.6 * 0.8)


def test_finite_horizon_backward_induction(two_state):
    policy = SequenceOfStationaryPolicies(
        [two_state.optimal_policy(), two_state.optimal_policy()]
    )

    vfunc = FiniteHorizonPolicyEvaluation(two_state, DF).eval(policy)

    assert vfunc.value(0, 1) == pytest.approx(0.8)
    assert vfunc.value(1, 1) == pytest.approx(0.4)
    assert vfunc.value(0, 0) == pytest.approx(0.8 + 0.95 * (0.2 * 0.8 + 0.8 * 0.4))

    with pytest.raises(TimestepOutOfRangeError):
        vfunc.value(0, 2)


def test_evaluation_rejects_bad_configuration(two_state):
    with pytest.raises(InvalidConfigurationError):
        IterativePolicyEvaluation(two_state, DF, 10, -1.0)
    with pytest.raises(InvalidConfigurationError):
        MatrixInversePolicyEvaluation(two_state, DF, method="qr")
    with pytest.raises(InvalidConfigurationError):
        MatrixInversePolicyEvaluation(None, DF)


def test_uncapped_sweeps_stop_at_exact_fixed_point(two_state):
    evaluation = IterativePolicyEvaluation(two_state, DiscountFactor(0.0), -1, 0.0)

    vfunc = evaluation.eval(two_state.optimal_policy())

    assert vfunc.value(0) == pytest.approx(0.8)
    assert vfunc.value(1) == pytest.approx(0.4)
