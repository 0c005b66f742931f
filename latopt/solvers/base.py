"""Base NLP solver interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional
import numpy as np
from numpy.typing import NDArray
from scipy.sparse import csr_matrix

from latopt.core.problem import IndexStyle, NLPProblem
from latopt.errors import CallbackContractError
from latopt.utils.sparse import symmetric_from_triangle, triplets_to_csr


class SolveStatus(Enum):
    """Terminal verdict of a solve."""
    CONVERGED = "converged"
    INFEASIBLE = "infeasible"
    ITERATION_LIMIT = "iteration_limit"
    OTHER_FAILURE = "other_failure"


@dataclass
class SolverResult:
    """What a solver hands back after its last iteration."""

    status: SolveStatus
    x: NDArray                            # terminal primal point (n,)
    message: str = ""
    iterations: int = 0
    raw_status: Optional[int] = None      # solver-specific exit code
    constraint_violation: float = 0.0

    @property
    def converged(self) -> bool:
        return self.status == SolveStatus.CONVERGED


class NLPSolver(ABC):
    """Drives an :class:`NLPProblem` to a terminal point."""

    @abstractmethod
    def solve(self, problem: NLPProblem) -> SolverResult:
        """
        Run the solver on a problem.

        Implementations pull sizes, bounds, the starting point and derivative
        callbacks from the problem, and call ``problem.finalize(x)`` exactly
        once with the terminal point before returning.

        Args:
            problem: Callback object implementing the NLP protocol

        Returns:
            Terminal status and point
        """
        ...


def constraint_violation(problem: NLPProblem, x: NDArray) -> float:
    """Largest violation of the variable and constraint bounds at x."""
    x_l, x_u, g_l, g_u = problem.bounds()
    g = problem.constraints(x)
    return float(
        max(
            np.max(np.maximum(x_l - x, 0.0), initial=0.0),
            np.max(np.maximum(x - x_u, 0.0), initial=0.0),
            np.max(np.maximum(g_l - g, 0.0), initial=0.0),
            np.max(np.maximum(g - g_u, 0.0), initial=0.0),
        )
    )


def resolve_status(
    status: SolveStatus,
    violation: float,
    feasibility_tol: float,
    fixed_violation: float = 0.0,
) -> SolveStatus:
    """
    Reinterpret a solver exit in light of the terminal bound violation.

    A solver claiming convergence at an infeasible point reports infeasible.
    Any other exit at an infeasible point is infeasible too when the fixed
    part of the problem (``fixed_violation``) already breaks its bounds.

    Args:
        status: Status mapped from the solver exit code
        violation: Largest bound or constraint violation at the terminal point
        feasibility_tol: Violation above which the point counts as infeasible
        fixed_violation: Violation of the data fixed before the solve

    Returns:
        Status to report
    """
    if violation <= feasibility_tol:
        return status
    if status == SolveStatus.CONVERGED or fixed_violation > feasibility_tol:
        return SolveStatus.INFEASIBLE
    return status


def derivative_callbacks(
    problem: NLPProblem,
) -> tuple[Callable[[NDArray], csr_matrix], Callable[[NDArray, float, NDArray], csr_matrix]]:
    """
    Wrap the two-phase sparse protocol into matrix-valued callables.

    The sparsity patterns are requested once here; every call afterwards
    only fills values.

    Args:
        problem: Callback object implementing the NLP protocol

    Returns:
        jacobian(x) -> (m, n) matrix
        hessian(x, obj_factor, lagrange) -> (n, n) symmetric matrix
    """
    info = problem.describe_sizes()
    n, m = info.n_vars, info.n_constraints
    base = 1 if info.index_style == IndexStyle.FORTRAN else 0

    jac_rows, jac_cols = problem.jacobian_structure()
    hess_rows, hess_cols = problem.hessian_structure()
    if len(jac_rows) != info.nnz_jacobian or len(hess_rows) != info.nnz_hessian:
        raise CallbackContractError(
            f"Pattern sizes ({len(jac_rows)}, {len(hess_rows)}) differ from "
            f"reported ({info.nnz_jacobian}, {info.nnz_hessian})"
        )
    jac_rows, jac_cols = jac_rows - base, jac_cols - base
    hess_rows, hess_cols = hess_rows - base, hess_cols - base

    def jacobian(x: NDArray) -> csr_matrix:
        values = problem.jacobian_values(x, out=np.zeros(info.nnz_jacobian))
        return triplets_to_csr(jac_rows, jac_cols, values, (m, n))

    def hessian(x: NDArray, obj_factor: float, lagrange: NDArray) -> csr_matrix:
        values = problem.hessian_values(
            x, obj_factor, lagrange, out=np.zeros(info.nnz_hessian)
        )
        return symmetric_from_triangle(hess_rows, hess_cols, values, n)

    return jacobian, hessian
