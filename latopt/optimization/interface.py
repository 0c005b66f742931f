"""Lateral trajectory optimizer facade."""

from dataclasses import dataclass
from typing import Optional, Sequence
import time
from numpy.typing import NDArray

from latopt.core.settings import CostWeights, OptimizerSettings
from latopt.logging import get_logger
from latopt.optimization.formulation import LateralProblem
from latopt.solvers.base import NLPSolver, SolveStatus, resolve_status
from latopt.solvers.factory import create_solver
from latopt.trajectory.piecewise import PiecewiseJerkTrajectory

log = get_logger(__name__)


@dataclass
class OptimizationResult:
    """Outcome of one lateral solve."""

    status: SolveStatus
    trajectory: Optional[PiecewiseJerkTrajectory] = None
    solution: Optional[NDArray] = None
    objective_value: Optional[float] = None
    iterations: int = 0
    solve_time: float = 0.0
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status == SolveStatus.CONVERGED


class LateralTrajectoryOptimizer:
    """
    Builds the lateral problem, runs a solver on it and returns the trajectory.

    One instance performs one solve. Retry by constructing a new optimizer,
    possibly with relaxed corridors or different weights.
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
        solver: Optional[NLPSolver] = None,
    ):
        """
        Initialize lateral optimizer.

        Args:
            d_init: Initial offset
            d_prime_init: Initial offset rate
            d_pprime_init: Initial offset curvature-rate
            delta_s: Station spacing
            d_bounds: Per-station corridor (lower, upper)
            weights: Cost weights (all 1.0 if not provided)
            settings: Optimizer settings (defaults if not provided)
            solver: NLP solver (built from settings.solver if not provided)
        """
        self.settings = settings if settings is not None else OptimizerSettings()
        self.problem = LateralProblem(
            d_init,
            d_prime_init,
            d_pprime_init,
            delta_s,
            d_bounds,
            weights=weights,
            settings=self.settings,
        )
        self.solver = solver if solver is not None else create_solver(settings=self.settings)
        self._trajectory = self.problem.result
        self._result: Optional[OptimizationResult] = None

    def set_weights(self, weights: CostWeights) -> None:
        self.problem.set_weights(weights)

    def set_jerk_bound(self, jerk_bound: float) -> None:
        self.problem.set_jerk_bound(jerk_bound)

    @property
    def result(self) -> Optional[OptimizationResult]:
        return self._result

    def solve(self) -> OptimizationResult:
        """
        Run the solver and interpret its terminal status.

        Returns:
            Result carrying the trajectory only when the solve converged
        """
        if self._result is not None:
            raise RuntimeError("Optimizer already solved; construct a new instance")

        log.info(
            "Solving lateral trajectory over %d stations with %s",
            self.problem.N,
            type(self.solver).__name__,
        )
        start = time.perf_counter()
        outcome = self.solver.solve(self.problem)
        elapsed = time.perf_counter() - start

        # A fixed start outside its own box can never become feasible
        status = resolve_status(
            outcome.status,
            outcome.constraint_violation,
            self.settings.feasibility_tol,
            fixed_violation=self.problem.initial_state_violation(),
        )

        if status == SolveStatus.CONVERGED:
            self._result = OptimizationResult(
                status=status,
                trajectory=self._trajectory,
                solution=outcome.x,
                objective_value=self.problem.objective(outcome.x),
                iterations=outcome.iterations,
                solve_time=elapsed,
                message=outcome.message,
            )
            log.info(
                "Lateral solve converged in %d iterations (%.3f s), cost %.6f",
                outcome.iterations,
                elapsed,
                self._result.objective_value,
            )
        else:
            self._result = OptimizationResult(
                status=status,
                iterations=outcome.iterations,
                solve_time=elapsed,
                message=outcome.message,
            )
            log.warning(
                "Lateral solve ended with status %s: %s",
                status.value,
                outcome.message,
            )

        return self._result
