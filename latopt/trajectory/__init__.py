"""Constant-jerk kinematics and result trajectories."""

from latopt.trajectory.constant_jerk import ConstantJerkSegment
from latopt.trajectory.piecewise import PiecewiseJerkTrajectory

__all__ = [
    "ConstantJerkSegment",
    "PiecewiseJerkTrajectory",
]
