"""Nonlinear program callback protocol."""

from dataclasses import dataclass
from enum import Enum, auto
from typing import Optional, Protocol
from numpy.typing import NDArray


class IndexStyle(Enum):
    """Index base used in sparsity patterns."""
    C = auto()        # 0-based
    FORTRAN = auto()  # 1-based


@dataclass(frozen=True)
class NLPInfo:
    """Sizes a solver needs before the first evaluation."""

    n_vars: int
    n_constraints: int
    nnz_jacobian: int
    nnz_hessian: int
    index_style: IndexStyle = IndexStyle.C


class NLPProblem(Protocol):
    """
    Callbacks an external NLP solver drives.

    Solves  min f(x)  s.t.  x_l <= x <= x_u,  g_l <= g(x) <= g_u.

    Sparse derivatives follow a two-phase protocol: the ``*_structure`` call
    reports the (row, col) pattern once, every ``*_values`` call returns
    numbers aligned with that pattern.
    """

    def describe_sizes(self) -> NLPInfo:
        """Variable, constraint and nonzero counts plus the index base."""
        ...

    def bounds(self) -> tuple[NDArray, NDArray, NDArray, NDArray]:
        """(x_lower, x_upper, g_lower, g_upper)."""
        ...

    def initial_guess(self) -> NDArray:
        """Starting point for the primal variables."""
        ...

    def objective(self, x: NDArray, new_x: bool = True) -> float:
        """Objective value f(x)."""
        ...

    def objective_gradient(self, x: NDArray, new_x: bool = True) -> NDArray:
        """Dense gradient ∇f(x)."""
        ...

    def constraints(self, x: NDArray, new_x: bool = True) -> NDArray:
        """Constraint residuals g(x)."""
        ...

    def jacobian_structure(self) -> tuple[NDArray, NDArray]:
        """Row and column indices of the constraint Jacobian nonzeros."""
        ...

    def jacobian_values(
        self, x: NDArray, new_x: bool = True, out: Optional[NDArray] = None
    ) -> NDArray:
        """Jacobian nonzeros aligned with :meth:`jacobian_structure`."""
        ...

    def hessian_structure(self) -> tuple[NDArray, NDArray]:
        """Row and column indices of the Lagrangian Hessian nonzeros."""
        ...

    def hessian_values(
        self,
        x: NDArray,
        obj_factor: float,
        lagrange: NDArray,
        new_x: bool = True,
        out: Optional[NDArray] = None,
    ) -> NDArray:
        """
        Nonzeros of  obj_factor * ∇²f(x) + Σ_j lagrange_j ∇²g_j(x).

        Aligned with :meth:`hessian_structure`.
        """
        ...

    def finalize(self, x: NDArray) -> None:
        """Receive the terminal point from the solver."""
        ...
