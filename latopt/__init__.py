"""
Latopt: lateral trajectory optimization for lattice motion planning.

This library formulates the lateral offset of a path-following agent as a
nonlinear program over N equally spaced stations:
- Constant-jerk continuity between stations
- Per-station corridor bounds
- Weighted smoothness and corridor-centering cost
- Exact sparse constraint Jacobian for external NLP solvers
"""

__version__ = "0.1.0"

from latopt.core.settings import CostWeights, HessianMode, OptimizerSettings
from latopt.errors import CallbackContractError, FormulationError
from latopt.optimization.formulation import LateralProblem
from latopt.optimization.interface import LateralTrajectoryOptimizer, OptimizationResult
from latopt.solvers.base import SolveStatus
from latopt.trajectory.piecewise import PiecewiseJerkTrajectory

__all__ = [
    "CostWeights",
    "HessianMode",
    "OptimizerSettings",
    "CallbackContractError",
    "FormulationError",
    "LateralProblem",
    "LateralTrajectoryOptimizer",
    "OptimizationResult",
    "SolveStatus",
    "PiecewiseJerkTrajectory",
]
