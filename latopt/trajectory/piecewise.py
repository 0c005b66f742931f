"""Piecewise constant-jerk trajectory assembled from solved samples."""

from bisect import bisect_left
import numpy as np
from numpy.typing import NDArray

from latopt.trajectory.constant_jerk import ConstantJerkSegment

# Slack on the span check so that s = k * Δs survives summation round-off
_SPAN_TOL = 1e-9


class PiecewiseJerkTrajectory:
    """
    Sequence of constant-jerk segments chained from a fixed initial state.

    Each appended segment starts at the end state of the previous one, so the
    trajectory is continuous in position, velocity and acceleration. Segments
    can be appended at any time and are never removed.
    """

    def __init__(self, p0: float, v0: float, a0: float):
        self._initial_state = (float(p0), float(v0), float(a0))
        self._segments: list[ConstantJerkSegment] = []
        self._param_ends: list[float] = []  # cumulative arc length at segment ends

    @property
    def initial_state(self) -> tuple[float, float, float]:
        return self._initial_state

    @property
    def segments(self) -> tuple[ConstantJerkSegment, ...]:
        return tuple(self._segments)

    @property
    def num_segments(self) -> int:
        return len(self._segments)

    @property
    def param_length(self) -> float:
        """Total arc length covered by all segments."""
        return self._param_ends[-1] if self._param_ends else 0.0

    def append_segment(self, jerk: float, param_length: float) -> None:
        """Extend the trajectory by a segment of constant jerk."""
        if not param_length > 0.0:
            raise ValueError(f"Segment length must be positive, got {param_length}")

        if self._segments:
            p0, v0, a0 = self._segments[-1].end_state()
        else:
            p0, v0, a0 = self._initial_state

        self._segments.append(
            ConstantJerkSegment(p0, v0, a0, float(jerk), float(param_length))
        )
        self._param_ends.append(self.param_length + param_length)

    def evaluate(self, order: int, s: float) -> float:
        """
        Derivative of the given order at arc length s.

        Args:
            order: 0 offset, 1 rate, 2 curvature-rate, 3 jerk
            s: Arc length in [0, param_length]

        Returns:
            Value of the requested derivative
        """
        if s < -_SPAN_TOL or s > self.param_length + _SPAN_TOL:
            raise ValueError(
                f"Arc length {s} outside trajectory span [0, {self.param_length}]"
            )

        if not self._segments:
            p0, v0, a0 = self._initial_state
            return ConstantJerkSegment(p0, v0, a0, 0.0, 0.0).evaluate(order, 0.0)

        index = min(bisect_left(self._param_ends, s), len(self._segments) - 1)
        start = self._param_ends[index - 1] if index > 0 else 0.0
        segment = self._segments[index]
        local_s = min(max(s - start, 0.0), segment.param_length)
        return segment.evaluate(order, local_s)

    def sample(self, s: float) -> tuple[float, float, float]:
        """(d, d', d'') at arc length s."""
        return self.evaluate(0, s), self.evaluate(1, s), self.evaluate(2, s)

    def sample_grid(
        self, resolution: float
    ) -> tuple[NDArray, NDArray, NDArray, NDArray]:
        """
        Sample on a uniform arc-length grid.

        Args:
            resolution: Grid spacing (positive)

        Returns:
            s, d, d', d'' arrays; the last point is the trajectory end
        """
        if not resolution > 0.0:
            raise ValueError(f"Resolution must be positive, got {resolution}")

        span = self.param_length
        s_grid = np.arange(0.0, span, resolution)
        if s_grid.size == 0 or s_grid[-1] < span:
            s_grid = np.append(s_grid, span)

        states = np.array([self.sample(s) for s in s_grid])
        return s_grid, states[:, 0], states[:, 1], states[:, 2]
