"""Lateral problem formulation and optimizer facade."""

from latopt.optimization.formulation import LateralProblem
from latopt.optimization.interface import LateralTrajectoryOptimizer, OptimizationResult

__all__ = [
    "LateralProblem",
    "LateralTrajectoryOptimizer",
    "OptimizationResult",
]
