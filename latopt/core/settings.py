"""Cost weights and optimizer settings."""

import dataclasses
from dataclasses import dataclass
from enum import Enum, auto
import numpy as np


class HessianMode(Enum):
    """How the Lagrangian Hessian diagonal is produced."""
    WEIGHTED = auto()     # 2*(w_d + w_obs), 2*w_d', 2*w_d''
    UNIT_WEIGHT = auto()  # legacy 4, 2, 2 regardless of weights


@dataclass(frozen=True)
class CostWeights:
    """Weights of the four objective terms."""

    d: float = 1.0          # offset
    d_prime: float = 1.0    # offset rate
    d_pprime: float = 1.0   # offset curvature-rate
    obstacle: float = 1.0   # deviation from corridor midpoint

    def __post_init__(self):
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            if not np.isfinite(value) or value < 0.0:
                raise ValueError(
                    f"Weight '{field.name}' must be finite and non-negative, got {value}"
                )

    def replace(self, **changes) -> "CostWeights":
        """Copy with some weights changed."""
        return dataclasses.replace(self, **changes)


@dataclass(frozen=True)
class OptimizerSettings:
    """Knobs that are not part of the cost."""

    jerk_bound: float = 1.0e4
    rate_bound: float = 10.0      # box on d' and d''
    hessian_mode: HessianMode = HessianMode.WEIGHTED
    solver: str = "trust-constr"
    max_iterations: int = 1000
    tolerance: float = 1e-8
    feasibility_tol: float = 1e-6
    verbose: int = 0

    def __post_init__(self):
        if not np.isfinite(self.jerk_bound) or self.jerk_bound <= 0.0:
            raise ValueError(f"jerk_bound must be positive, got {self.jerk_bound}")
        if not np.isfinite(self.rate_bound) or self.rate_bound <= 0.0:
            raise ValueError(f"rate_bound must be positive, got {self.rate_bound}")
        if self.max_iterations < 1:
            raise ValueError(f"max_iterations must be >= 1, got {self.max_iterations}")
        if self.tolerance <= 0.0 or self.feasibility_tol <= 0.0:
            raise ValueError("Tolerances must be positive")

    def replace(self, **changes) -> "OptimizerSettings":
        """Copy with some settings changed."""
        return dataclasses.replace(self, **changes)
