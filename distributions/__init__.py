"""
Distribution Library — single-draw samplers used by the Monte Carlo driver.
"""

from .sampler import (
    DistributionSampler,
    beta,
    get_sampler,
    lognormal,
    normal,
    pert,
    reset_sampler,
    triangular,
    uniform,
)

__all__ = [
    "DistributionSampler",
    "get_sampler",
    "reset_sampler",
    "normal",
    "uniform",
    "triangular",
    "beta",
    "pert",
    "lognormal",
]
