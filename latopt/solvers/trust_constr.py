"""Interior-point solver adapter around scipy's trust-constr."""

import numpy as np
from numpy.typing import NDArray
from scipy.optimize import Bounds, NonlinearConstraint, minimize

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

# trust-constr exit codes
_STATUS_MAP = {
    0: SolveStatus.ITERATION_LIMIT,  # maxiter reached
    1: SolveStatus.CONVERGED,        # gtol satisfied
    2: SolveStatus.CONVERGED,        # xtol satisfied
}


class TrustConstrSolver(NLPSolver):
    """
    Byrd-Omojokun trust region with a barrier method for inequalities.

    The problem's constraint rows become one ``NonlinearConstraint`` whose
    Jacobian and Hessian come from the sparse callbacks.
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
        info = problem.describe_sizes()
        x_l, x_u, g_l, g_u = problem.bounds()
        jacobian, hessian = derivative_callbacks(problem)
        no_multipliers = np.zeros(info.n_constraints)

        def objective_hessian(x: NDArray):
            return hessian(x, 1.0, no_multipliers)

        def constraint_hessian(x: NDArray, v: NDArray):
            return hessian(x, 0.0, v)

        constraint = NonlinearConstraint(
            problem.constraints, g_l, g_u, jac=jacobian, hess=constraint_hessian
        )

        log.debug(
            "trust-constr: %d variables, %d constraints", info.n_vars, info.n_constraints
        )
        res = minimize(
            problem.objective,
            problem.initial_guess(),
            method="trust-constr",
            jac=problem.objective_gradient,
            hess=objective_hessian,
            bounds=Bounds(x_l, x_u),
            constraints=[constraint],
            options={
                "maxiter": self.max_iterations,
                "gtol": self.tolerance,
                "xtol": self.tolerance,
                "verbose": self.verbose,
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
            iterations=int(res.nit),
            raw_status=int(res.status),
            constraint_violation=violation,
        )
