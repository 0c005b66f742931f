"""Lateral offset optimization problem for an external NLP solver."""

from typing import Optional, Sequence
import numpy as np
from numpy.typing import NDArray

from latopt.core.problem import IndexStyle, NLPInfo
from latopt.core.settings import CostWeights, HessianMode, OptimizerSettings
from latopt.errors import CallbackContractError, FormulationError
from latopt.logging import get_logger
from latopt.trajectory.constant_jerk import ConstantJerkSegment
from latopt.trajectory.piecewise import PiecewiseJerkTrajectory
from latopt.utils.sparse import check_length, output_buffer

log = get_logger(__name__)


class LateralProblem:
    """
    Lateral offset d(s) over N stations spaced Δs apart.

    Decision vector x (length 3N), three contiguous blocks:
        x[0:N]    d     offset
        x[N:2N]   d'    offset rate
        x[2N:3N]  d''   offset curvature-rate

    Constraint rows g (length 3N), 0-based:
        [0, N-1)       d''_i - d''_{i+1}             in [-d'''_max Δs, d'''_max Δs]
        [N-1, 2N-2)    velocity continuity           == 0
        [2N-2, 3N-3)   position continuity           == 0
        [3N-3, 3N)     initial d, d', d''            == 0

    Continuity uses constant jerk (d''_{i+1} - d''_i) / Δs on each segment,
    which makes every row affine in x and the Jacobian constant.
    """

    def __init__(
        self,
        d_init: float,
        d_prime_init: float,
        d_pprime_init: float,
        delta_s: float,
        d_bounds: Sequence[tuple[float, float]],
        weights: Optional[CostWeights] = None,
        settings: Optional[OptimizerSettings] = None,
    ):
        """
        Initialize lateral problem.

        Args:
            d_init: Initial offset
            d_prime_init: Initial offset rate
            d_pprime_init: Initial offset curvature-rate
            delta_s: Station spacing (positive)
            d_bounds: Per-station corridor (lower, upper), at least two
            weights: Cost weights (all 1.0 if not provided)
            settings: Bounds and Hessian options (defaults if not provided)
        """
        bounds = np.asarray(d_bounds, dtype=float)
        if bounds.ndim != 2 or bounds.shape[1] != 2:
            raise FormulationError(
                f"Corridor bounds must be (lower, upper) pairs, got shape {bounds.shape}"
            )
        if bounds.shape[0] < 2:
            raise FormulationError(
                f"At least two stations are required, got {bounds.shape[0]}"
            )
        if not np.all(np.isfinite(bounds)):
            raise FormulationError("Corridor bounds must be finite")
        inverted = np.nonzero(bounds[:, 0] > bounds[:, 1])[0]
        if inverted.size > 0:
            raise FormulationError(
                f"Corridor lower bound exceeds upper bound at stations {inverted.tolist()}"
            )
        if not np.isfinite(delta_s) or delta_s <= 0.0:
            raise FormulationError(f"Step length must be positive, got {delta_s}")

        init = np.array([d_init, d_prime_init, d_pprime_init], dtype=float)
        if not np.all(np.isfinite(init)):
            raise FormulationError(f"Initial state must be finite, got {init}")

        self.N = bounds.shape[0]
        self.delta_s = float(delta_s)
        self.d_bounds = bounds
        self.d_init, self.d_prime_init, self.d_pprime_init = init
        self.weights = weights if weights is not None else CostWeights()
        self.settings = settings if settings is not None else OptimizerSettings()

        self._centers = 0.5 * (bounds[:, 0] + bounds[:, 1])
        self._jac_rows, self._jac_cols = self._build_jacobian_structure()
        self._finalized = False
        self.result = PiecewiseJerkTrajectory(*init)

        log.debug(
            "Lateral problem: %d stations, delta_s=%.3f, %d Jacobian nonzeros",
            self.N,
            self.delta_s,
            len(self._jac_rows),
        )

    @property
    def n_vars(self) -> int:
        return 3 * self.N

    @property
    def n_constraints(self) -> int:
        return 3 * self.N

    @property
    def jerk_bound(self) -> float:
        return self.settings.jerk_bound

    def set_weights(self, weights: CostWeights) -> None:
        """Replace the cost weights; only legal before the solve finishes."""
        self._check_not_finalized()
        self.weights = weights

    def set_jerk_bound(self, jerk_bound: float) -> None:
        """Replace the jerk bound; only legal before the solve finishes."""
        self._check_not_finalized()
        self.settings = self.settings.replace(jerk_bound=jerk_bound)

    def describe_sizes(self) -> NLPInfo:
        return NLPInfo(
            n_vars=self.n_vars,
            n_constraints=self.n_constraints,
            nnz_jacobian=len(self._jac_rows),
            nnz_hessian=self.n_vars,
            index_style=IndexStyle.C,
        )

    def bounds(self) -> tuple[NDArray, NDArray, NDArray, NDArray]:
        """
        Variable and constraint bounds.

        Returns:
            x_lower, x_upper (3N,) and g_lower, g_upper (3N,)
        """
        N = self.N
        rate_bound = self.settings.rate_bound

        x_lower = np.full(self.n_vars, -rate_bound)
        x_upper = np.full(self.n_vars, rate_bound)
        x_lower[:N] = self.d_bounds[:, 0]
        x_upper[:N] = self.d_bounds[:, 1]

        # Only the d'' difference rows are inequalities
        g_lower = np.zeros(self.n_constraints)
        g_upper = np.zeros(self.n_constraints)
        g_lower[: N - 1] = -self.jerk_bound * self.delta_s
        g_upper[: N - 1] = self.jerk_bound * self.delta_s

        return x_lower, x_upper, g_lower, g_upper

    def initial_guess(self) -> NDArray:
        """Zeros everywhere except the initial state."""
        x0 = np.zeros(self.n_vars)
        x0[0] = self.d_init
        x0[self.N] = self.d_prime_init
        x0[2 * self.N] = self.d_pprime_init
        return x0

    def initial_state_violation(self) -> float:
        """
        How far the fixed initial state lies outside the boxes it is forced into.

        d0 is checked against the first corridor, d0' and d0'' against the
        rate bound. A positive value means no feasible point exists.
        """
        lower, upper = self.d_bounds[0]
        rate_bound = self.settings.rate_bound
        return float(
            max(
                lower - self.d_init,
                self.d_init - upper,
                abs(self.d_prime_init) - rate_bound,
                abs(self.d_pprime_init) - rate_bound,
                0.0,
            )
        )

    def objective(self, x: NDArray, new_x: bool = True) -> float:
        d, d_prime, d_pprime = self._split(x)
        w = self.weights
        return float(
            w.d * np.dot(d, d)
            + w.d_prime * np.dot(d_prime, d_prime)
            + w.d_pprime * np.dot(d_pprime, d_pprime)
            + w.obstacle * np.sum((d - self._centers) ** 2)
        )

    def objective_gradient(self, x: NDArray, new_x: bool = True) -> NDArray:
        d, d_prime, d_pprime = self._split(x)
        w = self.weights
        N = self.N

        grad = np.zeros(self.n_vars)
        grad[:N] = 2.0 * w.d * d + 2.0 * w.obstacle * (d - self._centers)
        grad[N : 2 * N] = 2.0 * w.d_prime * d_prime
        grad[2 * N :] = 2.0 * w.d_pprime * d_pprime
        return grad

    def constraints(self, x: NDArray, new_x: bool = True) -> NDArray:
        d, d_prime, d_pprime = self._split(x)
        N = self.N
        ds = self.delta_s

        g = np.zeros(self.n_constraints)
        for i in range(N - 1):
            g[i] = d_pprime[i] - d_pprime[i + 1]

            jerk = (d_pprime[i + 1] - d_pprime[i]) / ds
            segment = ConstantJerkSegment(d[i], d_prime[i], d_pprime[i], jerk, ds)
            g[N - 1 + i] = segment.end_velocity() - d_prime[i + 1]
            g[2 * (N - 1) + i] = segment.end_position() - d[i + 1]

        offset = 3 * (N - 1)
        g[offset] = d[0] - self.d_init
        g[offset + 1] = d_prime[0] - self.d_prime_init
        g[offset + 2] = d_pprime[0] - self.d_pprime_init
        return g

    def jacobian_structure(self) -> tuple[NDArray, NDArray]:
        return self._jac_rows.copy(), self._jac_cols.copy()

    def jacobian_values(
        self, x: NDArray, new_x: bool = True, out: Optional[NDArray] = None
    ) -> NDArray:
        """
        Constraint Jacobian nonzeros, ordered as in :meth:`jacobian_structure`.

        Independent of x: the rows are affine once jerk is substituted.
        """
        check_length("x", x, self.n_vars)
        values = output_buffer(out, len(self._jac_rows))
        values.fill(0.0)

        ds = self.delta_s
        m = self.N - 1
        pos = 0

        # d''_i - d''_{i+1}
        values[pos : pos + 2 * m] = np.tile([1.0, -1.0], m)
        pos += 2 * m

        # d'_i - d'_{i+1} + ds/2 (d''_i + d''_{i+1})
        values[pos : pos + 4 * m] = np.tile([1.0, -1.0, 0.5 * ds, 0.5 * ds], m)
        pos += 4 * m

        # d_i - d_{i+1} + ds d'_i + ds²/3 d''_i + ds²/6 d''_{i+1}
        values[pos : pos + 5 * m] = np.tile(
            [1.0, -1.0, ds, ds * ds / 3.0, ds * ds / 6.0], m
        )
        pos += 5 * m

        # initial state
        values[pos : pos + 3] = 1.0
        pos += 3

        if pos != len(values):
            raise CallbackContractError(
                f"Filled {pos} Jacobian values, pattern has {len(values)}"
            )
        return values

    def hessian_structure(self) -> tuple[NDArray, NDArray]:
        diag = np.arange(self.n_vars)
        return diag, diag.copy()

    def hessian_values(
        self,
        x: NDArray,
        obj_factor: float,
        lagrange: NDArray,
        new_x: bool = True,
        out: Optional[NDArray] = None,
    ) -> NDArray:
        """
        Diagonal of the Lagrangian Hessian.

        Constraints are affine so the multipliers do not contribute.
        """
        check_length("x", x, self.n_vars)
        check_length("lagrange", lagrange, self.n_constraints)
        values = output_buffer(out, self.n_vars)
        N = self.N

        if self.settings.hessian_mode == HessianMode.UNIT_WEIGHT:
            values[:N] = 4.0
            values[N:] = 2.0
        else:
            w = self.weights
            values[:N] = 2.0 * (w.d + w.obstacle)
            values[N : 2 * N] = 2.0 * w.d_prime
            values[2 * N :] = 2.0 * w.d_pprime

        values *= obj_factor
        return values

    def finalize(self, x: NDArray) -> None:
        """Convert the terminal d'' samples into jerk segments of the result."""
        self._check_not_finalized()
        _, _, d_pprime = self._split(x)

        for jerk in np.diff(d_pprime) / self.delta_s:
            self.result.append_segment(jerk, self.delta_s)
        self._finalized = True

    def _split(self, x: NDArray) -> tuple[NDArray, NDArray, NDArray]:
        """View x as its (d, d', d'') blocks."""
        x = check_length("x", x, self.n_vars)
        N = self.N
        return x[:N], x[N : 2 * N], x[2 * N :]

    def _check_not_finalized(self) -> None:
        if self._finalized:
            raise CallbackContractError(
                "Problem already finalized; construct a new instance for another solve"
            )

    def _build_jacobian_structure(self) -> tuple[NDArray, NDArray]:
        """Row/column pattern; order must match :meth:`jacobian_values`."""
        N = self.N
        rows = []
        cols = []
        row = 0

        for i in range(N - 1):
            rows += [row, row]
            cols += [2 * N + i, 2 * N + i + 1]
            row += 1

        for i in range(N - 1):
            rows += [row] * 4
            cols += [N + i, N + i + 1, 2 * N + i, 2 * N + i + 1]
            row += 1

        for i in range(N - 1):
            rows += [row] * 5
            cols += [i, i + 1, N + i, 2 * N + i, 2 * N + i + 1]
            row += 1

        for col in (0, N, 2 * N):
            rows.append(row)
            cols.append(col)
            row += 1

        return np.array(rows, dtype=int), np.array(cols, dtype=int)
