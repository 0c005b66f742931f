"""Core abstractions for lateral trajectory optimization."""

from latopt.core.problem import IndexStyle, NLPInfo, NLPProblem
from latopt.core.settings import CostWeights, HessianMode, OptimizerSettings

__all__ = [
    "IndexStyle",
    "NLPInfo",
    "NLPProblem",
    "CostWeights",
    "HessianMode",
    "OptimizerSettings",
]
