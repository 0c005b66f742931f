"""Solver factory and dispatch logic."""

from typing import Optional

from latopt.core.settings import OptimizerSettings
from latopt.solvers.base import NLPSolver
from latopt.solvers.slsqp import SLSQPSolver
from latopt.solvers.trust_constr import TrustConstrSolver

_SOLVERS = {
    "trust-constr": TrustConstrSolver,
    "slsqp": SLSQPSolver,
}


def create_solver(
    name: Optional[str] = None, settings: Optional[OptimizerSettings] = None
) -> NLPSolver:
    """
    Build a solver adapter by name.

    Args:
        name: "trust-constr" or "slsqp" (defaults to settings.solver)
        settings: Iteration limit, tolerances and verbosity

    Returns:
        Configured solver
    """
    if settings is None:
        settings = OptimizerSettings()
    key = (name if name is not None else settings.solver).lower()

    if key not in _SOLVERS:
        raise ValueError(
            f"Unknown solver '{key}', expected one of {sorted(_SOLVERS)}"
        )

    return _SOLVERS[key](
        max_iterations=settings.max_iterations,
        tolerance=settings.tolerance,
        feasibility_tol=settings.feasibility_tol,
        verbose=settings.verbose,
    )
