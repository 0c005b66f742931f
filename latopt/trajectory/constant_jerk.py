"""Closed-form kinematics of one constant-jerk segment."""

from dataclasses import dataclass


@dataclass(frozen=True)
class ConstantJerkSegment:
    """
    Third-order polynomial in arc length with constant jerk.

        p(s) = p0 + v0 s + a0 s²/2 + j s³/6
        v(s) = v0 + a0 s + j s²/2
        a(s) = a0 + j s
    """

    p0: float
    v0: float
    a0: float
    jerk: float
    param_length: float

    def evaluate(self, order: int, s: float) -> float:
        """
        Derivative of the given order at arc length s from the segment start.

        Args:
            order: 0 position, 1 velocity, 2 acceleration, 3 jerk
            s: Arc length, nominally in [0, param_length]

        Returns:
            Value of the requested derivative
        """
        if order == 0:
            return (
                self.p0
                + self.v0 * s
                + 0.5 * self.a0 * s * s
                + self.jerk * s * s * s / 6.0
            )
        if order == 1:
            return self.v0 + self.a0 * s + 0.5 * self.jerk * s * s
        if order == 2:
            return self.a0 + self.jerk * s
        if order == 3:
            return self.jerk
        raise ValueError(f"Unsupported derivative order {order}")

    def end_position(self) -> float:
        return self.evaluate(0, self.param_length)

    def end_velocity(self) -> float:
        return self.evaluate(1, self.param_length)

    def end_acceleration(self) -> float:
        return self.evaluate(2, self.param_length)

    def end_state(self) -> tuple[float, float, float]:
        """(position, velocity, acceleration) at the segment end."""
        return self.end_position(), self.end_velocity(), self.end_acceleration()
