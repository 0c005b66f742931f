"""Sequential least squares solver adapter."""

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import Bounds, minimize

from latopt.core.problem import NLPProblem
from latopt.logging import get_logger
from latopt.solvers.base import (
    NLPSolver,
    SolverResult,
    SolveStatus,
    constraint_violation,
    derivative_callbacks,
    resolve_status,
)

log = get_logger(__name__)

# SLSQP exit modes
_STATUS_MAP = {
    0: SolveStatus.CONVERGED,
    4: SolveStatus.INFEASIBLE,       # inequality constraints incompatible
    9: SolveStatus.ITERATION_LIMIT,
}


class SLSQPSolver(NLPSolver):
    """
    Dense SQP; constraint rows are split into equality and one-sided
    inequality blocks because SLSQP only accepts ``c(x) == 0`` and
    ``c(x) >= 0``.
    """

    def __init__(
        self,
        max_iterations: int = 1000,
        tolerance: float = 1e-8,
        feasibility_tol: float = 1e-6,
        verbose: int = 0,
    ):
        self.max_iterations = max_iterations
        self.tolerance = tolerance
        self.feasibility_tol = feasibility_tol
        self.verbose = verbose

    def solve(self, problem: NLPProblem) -> SolverResult:
        x_l, x_u, g_l, g_u = problem.bounds()
        jacobian, _ = derivative_callbacks(problem)

        eq = np.nonzero(g_l == g_u)[0]
        lower = np.nonzero((g_l != g_u) & np.isfinite(g_l))[0]
        upper = np.nonzero((g_l != g_u) & np.isfinite(g_u))[0]

        def dense_jacobian(x: NDArray) -> NDArray:
            return jacobian(x).toarray()

        constraints = []
        if eq.size:
            constraints.append({
                "type": "eq",
                "fun": lambda x: problem.constraints(x)[eq] - g_l[eq],
                "jac": lambda x: dense_jacobian(x)[eq],
            })
        if lower.size:
            constraints.append({
                "type": "ineq",
                "fun": lambda x: problem.constraints(x)[lower] - g_l[lower],
                "jac": lambda x: dense_jacobian(x)[lower],
            })
        if upper.size:
            constraints.append({
                "type": "ineq",
                "fun": lambda x: g_u[upper] - problem.constraints(x)[upper],
                "jac": lambda x: -dense_jacobian(x)[upper],
            })

        log.debug(
            "SLSQP: %d equality, %d inequality rows", eq.size, lower.size + upper.size
        )
        res = minimize(
            problem.objective,
            problem.initial_guess(),
            method="SLSQP",
            jac=problem.objective_gradient,
            bounds=Bounds(x_l, x_u),
            constraints=constraints,
            options={
                "maxiter": self.max_iterations,
                "ftol": self.tolerance,
                "disp": self.verbose > 0,
            },
        )

        x = np.asarray(res.x, dtype=float)
        violation = constraint_violation(problem, x)
        status = resolve_status(
            _STATUS_MAP.get(res.status, SolveStatus.OTHER_FAILURE),
            violation,
            self.feasibility_tol,
        )
        problem.finalize(x)

        return SolverResult(
            status=status,
            x=x,
            message=str(res.message),
            iterations=int(getattr(res, "nit", 0)),
            raw_status=int(res.status),
            constraint_violation=violation,
        )
