"""Tests for the lateral problem callbacks."""

import logging

import numpy as np
import pytest

from latopt.core.problem import IndexStyle
from latopt.core.settings import CostWeights, HessianMode, OptimizerSettings
from latopt.errors import CallbackContractError, FormulationError
from latopt.optimization.formulation import LateralProblem
from latopt.trajectory.constant_jerk import ConstantJerkSegment
from latopt.utils.sparse import triplets_to_csr


def _make_problem(N=5, delta_s=0.5, init=(0.2, -0.1, 0.05), **kwargs):
    corridors = [(-1.0 - 0.1 * i, 1.5 + 0.2 * i) for i in range(N)]
    return LateralProblem(*init, delta_s, corridors, **kwargs)


def _dense_jacobian(problem, x):
    rows, cols = problem.jacobian_structure()
    values = problem.jacobian_values(x)
    return triplets_to_csr(rows, cols, values, (problem.n_constraints, problem.n_vars)).toarray()


def _feasible_point(problem, rng):
    """Integrate random d'' samples forward so every equality row holds."""
    N, ds = problem.N, problem.delta_s
    d = np.zeros(N)
    d_prime = np.zeros(N)
    d_pprime = rng.uniform(-1.0, 1.0, N)
    d[0], d_prime[0], d_pprime[0] = problem.d_init, problem.d_prime_init, problem.d_pprime_init

    for i in range(N - 1):
        jerk = (d_pprime[i + 1] - d_pprime[i]) / ds
        segment = ConstantJerkSegment(d[i], d_prime[i], d_pprime[i], jerk, ds)
        d[i + 1] = segment.end_position()
        d_prime[i + 1] = segment.end_velocity()

    return np.concatenate([d, d_prime, d_pprime])


def test_sizes():
    problem = _make_problem(N=6)
    info = problem.describe_sizes()

    assert info.n_vars == 18
    assert info.n_constraints == 18
    assert info.nnz_jacobian == 11 * 5 + 3
    assert info.nnz_hessian == 18
    assert info.index_style == IndexStyle.C


def test_minimum_station_count():
    """N = 2: three single-row blocks plus three initial-state rows."""
    problem = _make_problem(N=2, init=(0.0, 0.0, 0.0))
    x = problem.initial_guess()

    assert problem.describe_sizes().n_constraints == 6
    assert problem.constraints(x).shape == (6,)
    rows, cols = problem.jacobian_structure()
    assert rows.max() == 5
    assert cols.max() == 5

    problem.finalize(x)
    assert problem.result.num_segments == 1
    assert problem.result.param_length == pytest.approx(0.5)


def test_bounds_layout():
    settings = OptimizerSettings(jerk_bound=3.0, rate_bound=7.0)
    problem = _make_problem(N=4, delta_s=0.5, settings=settings)
    x_l, x_u, g_l, g_u = problem.bounds()
    N = 4

    assert np.array_equal(x_l[:N], problem.d_bounds[:, 0])
    assert np.array_equal(x_u[:N], problem.d_bounds[:, 1])
    assert np.all(x_l[N:] == -7.0)
    assert np.all(x_u[N:] == 7.0)

    assert np.all(g_l[: N - 1] == -1.5)
    assert np.all(g_u[: N - 1] == 1.5)
    assert np.all(g_l[N - 1 :] == 0.0)
    assert np.all(g_u[N - 1 :] == 0.0)


def test_default_rate_bound():
    problem = _make_problem(N=3)
    x_l, x_u, _, _ = problem.bounds()
    assert np.all(x_u[3:] == 10.0)
    assert np.all(x_l[3:] == -10.0)


def test_initial_guess():
    problem = _make_problem(N=4, init=(0.3, -0.2, 0.1))
    x0 = problem.initial_guess()

    expected = np.zeros(12)
    expected[0], expected[4], expected[8] = 0.3, -0.2, 0.1
    assert np.array_equal(x0, expected)


def test_objective_non_negative():
    rng = np.random.default_rng(0)
    problem = _make_problem(N=5, weights=CostWeights(0.5, 2.0, 0.1, 3.0))

    for _ in range(20):
        x = rng.normal(scale=3.0, size=problem.n_vars)
        assert problem.objective(x) >= 0.0


def test_objective_zero_only_at_centers():
    """With w_d = 0 the minimum sits at the midpoints with zero rates."""
    problem = _make_problem(N=4, weights=CostWeights(d=0.0))
    x = np.zeros(problem.n_vars)
    x[:4] = 0.5 * (problem.d_bounds[:, 0] + problem.d_bounds[:, 1])

    assert problem.objective(x) == pytest.approx(0.0)

    for k in range(problem.n_vars):
        perturbed = x.copy()
        perturbed[k] += 1e-3
        assert problem.objective(perturbed) > 0.0


def test_objective_value():
    problem = LateralProblem(0.0, 0.0, 0.0, 1.0, [(-1.0, 1.0), (0.0, 2.0)])
    x = np.array([0.0, 2.0, 1.0, 0.0, 0.0, 3.0])

    # d: 0 + 4, d': 1, d'': 9, obstacle: (0-0)^2 + (2-1)^2
    assert problem.objective(x) == pytest.approx(15.0)


def test_gradient_matches_finite_differences():
    rng = np.random.default_rng(1)
    problem = _make_problem(N=5, weights=CostWeights(0.7, 1.3, 2.1, 0.4))
    x = rng.normal(size=problem.n_vars)
    eps = 1e-6

    fd = np.zeros(problem.n_vars)
    for k in range(problem.n_vars):
        e = np.zeros(problem.n_vars)
        e[k] = eps
        fd[k] = (problem.objective(x + e) - problem.objective(x - e)) / (2 * eps)

    np.testing.assert_allclose(problem.objective_gradient(x), fd, atol=1e-5)


def test_gradient_closed_form():
    weights = CostWeights(d=2.0, d_prime=3.0, d_pprime=4.0, obstacle=5.0)
    problem = LateralProblem(0.0, 0.0, 0.0, 1.0, [(0.0, 2.0), (-4.0, 0.0)], weights=weights)
    x = np.array([1.0, -1.0, 0.5, 0.25, -2.0, 1.0])
    grad = problem.objective_gradient(x)

    # 2(w_d + w_obs) d - 2 w_obs mid
    assert grad[0] == pytest.approx(2 * 7 * 1.0 - 2 * 5 * 1.0)
    assert grad[1] == pytest.approx(2 * 7 * -1.0 - 2 * 5 * -2.0)
    assert grad[2:4] == pytest.approx([3.0, 1.5])
    assert grad[4:] == pytest.approx([-16.0, 8.0])


def test_constraint_blocks():
    problem = _make_problem(N=3, delta_s=1.0, init=(0.0, 0.0, 0.0))
    d = np.array([0.0, 0.5, 1.0])
    d_prime = np.array([0.0, 1.0, 0.0])
    d_pprime = np.array([0.0, 2.0, 4.0])
    g = problem.constraints(np.concatenate([d, d_prime, d_pprime]))

    assert g.shape == (9,)
    # d''_i - d''_{i+1}
    assert g[0:2] == pytest.approx([-2.0, -2.0])
    # v0 + ds/2 (a0 + a1) - v1
    assert g[2:4] == pytest.approx([0.0, 0.0 + 1.0 + 3.0 - 0.0])
    # p0 + v0 ds + ds^2 (a0/3 + a1/6) - p1
    assert g[4] == pytest.approx(0.0 + 0.0 + 2.0 / 6.0 - 0.5)
    assert g[5] == pytest.approx(0.5 + 1.0 + 2.0 / 3.0 + 4.0 / 6.0 - 1.0)
    # initial state
    assert g[6:] == pytest.approx([0.0, 0.0, 0.0])


def test_affine_residual_matches_simulation():
    """Jacobian-times-x and direct constant-jerk simulation agree."""
    rng = np.random.default_rng(2)

    for _ in range(50):
        p0, v0, a0, p1, v1, a1 = rng.uniform(-5.0, 5.0, 6)
        ds = rng.uniform(0.05, 3.0)
        problem = LateralProblem(p0, v0, a0, ds, [(p0 - 10.0, p0 + 10.0)] * 2)
        x = np.array([p0, p1, v0, v1, a0, a1])

        segment = ConstantJerkSegment(p0, v0, a0, (a1 - a0) / ds, ds)
        simulated = np.array([
            a0 - a1,
            segment.end_velocity() - v1,
            segment.end_position() - p1,
        ])

        J = _dense_jacobian(problem, x)
        affine = J @ x
        affine[3:] -= [p0, v0, a0]

        g = problem.constraints(x)
        np.testing.assert_allclose(g[:3], simulated, atol=1e-9)
        np.testing.assert_allclose(affine, g, atol=1e-9)


def test_jacobian_matches_finite_differences():
    rng = np.random.default_rng(3)
    problem = _make_problem(N=5, delta_s=0.7)
    x = rng.normal(size=problem.n_vars)
    eps = 1e-6

    fd = np.zeros((problem.n_constraints, problem.n_vars))
    for k in range(problem.n_vars):
        e = np.zeros(problem.n_vars)
        e[k] = eps
        fd[:, k] = (problem.constraints(x + e) - problem.constraints(x - e)) / (2 * eps)

    np.testing.assert_allclose(_dense_jacobian(problem, x), fd, atol=1e-6)


def test_jacobian_independent_of_x():
    rng = np.random.default_rng(4)
    problem = _make_problem(N=6)

    first = problem.jacobian_values(rng.normal(size=problem.n_vars))
    second = problem.jacobian_values(rng.normal(scale=10.0, size=problem.n_vars), new_x=False)

    assert np.array_equal(first, second)


def test_jacobian_fills_caller_buffer():
    problem = _make_problem(N=4)
    out = np.full(problem.describe_sizes().nnz_jacobian, np.nan)

    values = problem.jacobian_values(problem.initial_guess(), out=out)

    assert values is out
    assert np.all(np.isfinite(out))


def test_jacobian_structure_unique_entries():
    problem = _make_problem(N=7)
    rows, cols = problem.jacobian_structure()
    pairs = set(zip(rows.tolist(), cols.tolist()))

    assert len(pairs) == len(rows)
    assert rows.min() == 0
    assert rows.max() == problem.n_constraints - 1


def test_hessian_weighted():
    weights = CostWeights(d=2.0, d_prime=3.0, d_pprime=4.0, obstacle=5.0)
    problem = _make_problem(N=3, weights=weights)
    rows, cols = problem.hessian_structure()
    values = problem.hessian_values(
        problem.initial_guess(), 0.5, np.ones(problem.n_constraints)
    )

    assert np.array_equal(rows, np.arange(9))
    assert np.array_equal(cols, np.arange(9))
    np.testing.assert_allclose(values, [7.0] * 3 + [3.0] * 3 + [4.0] * 3)


def test_hessian_matches_gradient_differences():
    rng = np.random.default_rng(5)
    problem = _make_problem(N=4, weights=CostWeights(0.3, 1.7, 0.9, 2.2))
    x = rng.normal(size=problem.n_vars)
    eps = 1e-6

    diag = np.zeros(problem.n_vars)
    for k in range(problem.n_vars):
        e = np.zeros(problem.n_vars)
        e[k] = eps
        diag[k] = (
            problem.objective_gradient(x + e)[k] - problem.objective_gradient(x - e)[k]
        ) / (2 * eps)

    values = problem.hessian_values(x, 1.0, np.zeros(problem.n_constraints))
    np.testing.assert_allclose(values, diag, atol=1e-5)


def test_hessian_unit_weight_mode_ignores_weights():
    settings = OptimizerSettings(hessian_mode=HessianMode.UNIT_WEIGHT)
    problem = _make_problem(N=3, weights=CostWeights(9.0, 9.0, 9.0, 9.0), settings=settings)
    values = problem.hessian_values(problem.initial_guess(), 2.0, np.zeros(9))

    np.testing.assert_allclose(values, [8.0] * 3 + [4.0] * 6)


def test_hessian_modes_agree_for_unit_weights():
    weighted = _make_problem(N=3)
    legacy = _make_problem(N=3, settings=OptimizerSettings(hessian_mode=HessianMode.UNIT_WEIGHT))
    x = weighted.initial_guess()

    assert np.array_equal(
        weighted.hessian_values(x, 1.0, np.zeros(9)),
        legacy.hessian_values(x, 1.0, np.zeros(9)),
    )


def test_finalize_round_trip():
    """Samples of the result reproduce every station of a feasible point."""
    rng = np.random.default_rng(6)
    problem = _make_problem(N=8, delta_s=0.4)
    x = _feasible_point(problem, rng)
    N = problem.N

    g = problem.constraints(x)
    assert np.max(np.abs(g[N - 1 :])) < 1e-9

    problem.finalize(x)
    trajectory = problem.result

    assert trajectory.num_segments == N - 1
    assert trajectory.sample(0.0) == pytest.approx(
        (problem.d_init, problem.d_prime_init, problem.d_pprime_init), abs=1e-6
    )
    for k in range(N):
        assert trajectory.sample(k * problem.delta_s) == pytest.approx(
            (x[k], x[N + k], x[2 * N + k]), abs=1e-6
        )


def test_finalize_appends_jerks_in_order():
    problem = LateralProblem(0.0, 0.0, 0.0, 0.5, [(-1.0, 1.0)] * 4)
    x = np.zeros(12)
    x[8:] = [0.0, 1.0, 0.5, 2.0]

    problem.finalize(x)

    jerks = [segment.jerk for segment in problem.result.segments]
    assert jerks == pytest.approx([2.0, -1.0, 3.0])


@pytest.mark.parametrize(
    "corridors, delta_s",
    [
        ([(-1.0, 1.0)], 1.0),              # single station
        ([], 1.0),                         # no stations
        ([(-1.0, 1.0)] * 3, 0.0),          # zero step
        ([(-1.0, 1.0)] * 3, -0.5),         # negative step
        ([(-1.0, 1.0), (2.0, 1.0)], 1.0),  # inverted corridor
        ([(-1.0, np.inf)] * 3, 1.0),       # unbounded corridor
        ([(-1.0, 1.0, 0.0)] * 3, 1.0),     # not a pair
    ],
)
def test_construction_errors(corridors, delta_s):
    with pytest.raises(FormulationError):
        LateralProblem(0.0, 0.0, 0.0, delta_s, corridors)


def test_initial_state_outside_its_box_is_accepted():
    problem = LateralProblem(2.0, 0.0, 0.0, 1.0, [(-1.0, 1.0), (-1.0, 3.0)])
    assert problem.initial_state_violation() == pytest.approx(1.0)


@pytest.mark.parametrize(
    "init, expected",
    [
        ((0.0, 0.0, 0.0), 0.0),
        ((-1.0, 10.0, -10.0), 0.0),
        ((-1.5, 0.0, 0.0), 0.5),
        ((0.0, 12.0, 0.0), 2.0),
        ((0.0, 0.0, -13.0), 3.0),
        ((1.5, -11.0, 14.0), 4.0),
    ],
)
def test_initial_state_violation(init, expected):
    problem = LateralProblem(*init, 1.0, [(-1.0, 1.0)] * 3)
    assert problem.initial_state_violation() == pytest.approx(expected)


def test_construction_error_is_value_error():
    with pytest.raises(ValueError):
        LateralProblem(0.0, 0.0, 0.0, 1.0, [(-1.0, 1.0)])


def test_mis_sized_buffers_abort():
    problem = _make_problem(N=3)
    x = problem.initial_guess()

    with pytest.raises(CallbackContractError):
        problem.objective(np.zeros(5))
    with pytest.raises(CallbackContractError):
        problem.constraints(np.zeros(10))
    with pytest.raises(CallbackContractError):
        problem.jacobian_values(x, out=np.zeros(3))
    with pytest.raises(CallbackContractError):
        problem.hessian_values(x, 1.0, np.zeros(4))
    with pytest.raises(CallbackContractError):
        problem.hessian_values(x, 1.0, np.zeros(9), out=np.zeros(8))

    # Integer or non-array buffers
    nnz = problem.describe_sizes().nnz_jacobian
    with pytest.raises(CallbackContractError):
        problem.jacobian_values(x, out=np.zeros(nnz, dtype=int))
    with pytest.raises(CallbackContractError):
        problem.jacobian_values(x, out=[0.0] * nnz)
    with pytest.raises(CallbackContractError):
        problem.hessian_values(x, 1.0, np.zeros(9), out=np.zeros(9, dtype=np.int64))


def test_finalize_twice_aborts():
    problem = _make_problem(N=3)
    x = problem.initial_guess()
    problem.finalize(x)

    with pytest.raises(CallbackContractError):
        problem.finalize(x)
    assert problem.result.num_segments == 2


def test_setters_before_and_after_finalize():
    problem = _make_problem(N=3, delta_s=0.5)
    problem.set_weights(CostWeights(obstacle=4.0))
    problem.set_jerk_bound(2.0)

    assert problem.weights.obstacle == 4.0
    _, _, g_l, g_u = problem.bounds()
    assert g_u[0] == pytest.approx(1.0)
    assert g_l[0] == pytest.approx(-1.0)

    problem.finalize(problem.initial_guess())
    with pytest.raises(CallbackContractError):
        problem.set_weights(CostWeights())
    with pytest.raises(CallbackContractError):
        problem.set_jerk_bound(5.0)


def test_construction_logs_at_debug(caplog):
    with caplog.at_level(logging.DEBUG, logger="latopt.optimization.formulation"):
        _make_problem(N=4)

    records = [r for r in caplog.records if r.name == "latopt.optimization.formulation"]
    assert len(records) == 1
    assert records[0].levelno == logging.DEBUG
    assert "4 stations" in records[0].getMessage()


def test_callbacks_do_not_log(caplog):
    problem = _make_problem(N=4)
    x = _feasible_point(problem, np.random.default_rng(3))
    lagrange = np.ones(problem.n_constraints)

    with caplog.at_level(logging.DEBUG, logger="latopt.optimization.formulation"):
        problem.objective(x)
        problem.objective_gradient(x)
        problem.constraints(x)
        problem.jacobian_values(x)
        problem.hessian_values(x, 1.0, lagrange)
        problem.finalize(x)

    assert caplog.records == []
