"""External NLP solver adapters."""

from latopt.solvers.base import NLPSolver, SolverResult, SolveStatus
from latopt.solvers.trust_constr import TrustConstrSolver
from latopt.solvers.slsqp import SLSQPSolver
from latopt.solvers.factory import create_solver

__all__ = [
    "NLPSolver",
    "SolverResult",
    "SolveStatus",
    "TrustConstrSolver",
    "SLSQPSolver",
    "create_solver",
]
