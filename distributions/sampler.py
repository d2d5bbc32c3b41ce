"""
Distribution Library — one independent draw per call from a named distribution.

Supported shapes (parameters in MonteCarloVariable order):

  Normal(mean, std_dev)            polar Box–Muller, second normal cached as a spare
  Uniform(min, max)                min + U·(max − min)
  Triangular(min, mode, max)       inverse CDF
  Lognormal(log_mean, log_std)     exp(Normal(log_mean, log_std))
  Beta(alpha, beta)                Johnk's rejection algorithm; NaN if a shape ≤ 0
  PERT(min, mode, max, gamma=4)    Beta(1+γ(mode−min)/range, 1+γ(max−mode)/range) scaled into [min, max]

Ranges are NOT validated beyond guarding divisions by zero; callers own parameter sanity.

State
-----
The only state is the spare standard normal produced by each Box–Muller step.
It lives on a DistributionSampler instance together with its numpy Generator:

  - every Monte Carlo run / worker process builds its own sampler (optionally seeded)
  - the module-level convenience functions (normal(), beta(), ...) use one sampler
    PER THREAD, so concurrent simulations never share (and correlate through) a spare.
"""

from __future__ import annotations

import math
import threading
from typing import Optional, Union

import numpy as np

from core.schema import Distribution, MonteCarloVariable

SeedLike = Union[None, int, np.random.SeedSequence]


def _sqrt(x: float) -> float:
    # mode outside [min, max] yields a negative radicand -> NaN sentinel
    return math.sqrt(x) if x >= 0 else math.nan


class DistributionSampler:
    """
    Samples single values from the supported distributions.

    Usage:
        sampler = DistributionSampler(seed=42)
        x = sampler.pert(80, 100, 140)
        y = sampler.sample(variable)   # MonteCarloVariable -> float
    """

    def __init__(self, seed: SeedLike = None):
        self.rng = np.random.default_rng(seed)
        self._spare_normal: Optional[float] = None

    # --- uniforms ---------------------------------------------------------

    def _u(self) -> float:
        """U in [0, 1)."""
        return float(self.rng.random())

    def _u_open(self) -> float:
        """U in (0, 1]."""
        return 1.0 - float(self.rng.random())

    # --- distributions ----------------------------------------------------

    def normal(self, mean: float, std_dev: float) -> float:
        if self._spare_normal is not None:
            z = self._spare_normal
            self._spare_normal = None
            return mean + std_dev * z

        while True:
            u = self._u() * 2.0 - 1.0
            v = self._u() * 2.0 - 1.0
            s = u * u + v * v
            if 0.0 < s < 1.0:
                break
        factor = math.sqrt(-2.0 * math.log(s) / s)
        self._spare_normal = v * factor
        return mean + std_dev * (u * factor)

    def uniform(self, min_val: float, max_val: float) -> float:
        return min_val + self._u() * (max_val - min_val)

    def triangular(self, min_val: float, mode: float, max_val: float) -> float:
        span = max_val - min_val
        if span == 0:
            return min_val
        f = (mode - min_val) / span
        r = self._u()
        if r < f:
            return min_val + _sqrt(r * span * (mode - min_val))
        return max_val - _sqrt((1.0 - r) * span * (max_val - mode))

    def beta(self, alpha: float, beta_param: float) -> float:
        if not (0 < alpha < math.inf and 0 < beta_param < math.inf):
            return math.nan
        # Johnk: accept v1 / (v1 + v2) when 0 < v1 + v2 <= 1
        while True:
            v1 = self._u_open() ** (1.0 / alpha)
            v2 = self._u_open() ** (1.0 / beta_param)
            total = v1 + v2
            if 0.0 < total <= 1.0:
                return v1 / total

    def pert(self, min_val: float, mode: float, max_val: float, gamma: float = 4.0) -> float:
        if min_val > max_val or mode < min_val or mode > max_val:
            return mode
        if min_val == max_val:
            return min_val
        span = max_val - min_val
        a = 1.0 + gamma * (mode - min_val) / span
        b = 1.0 + gamma * (max_val - mode) / span
        return min_val + self.beta(a, b) * span

    def lognormal(self, log_mean: float, log_std_dev: float) -> float:
        with np.errstate(over="ignore"):
            return float(np.exp(self.normal(log_mean, log_std_dev)))

    # --- dispatch ---------------------------------------------------------

    def sample(self, variable: MonteCarloVariable) -> float:
        """
        Draw one value for a Monte Carlo variable.

        A missing third parameter (Triangular/PERT max) is NaN, so the draw
        degrades to a NaN sentinel instead of failing.
        """
        dist = Distribution(variable.distribution)
        p1, p2 = variable.param1, variable.param2
        p3 = variable.param3 if variable.param3 is not None else math.nan

        if dist == Distribution.NORMAL:
            return self.normal(p1, p2)
        if dist == Distribution.UNIFORM:
            return self.uniform(p1, p2)
        if dist == Distribution.TRIANGULAR:
            return self.triangular(p1, p2, p3)
        if dist == Distribution.LOGNORMAL:
            return self.lognormal(p1, p2)
        if dist == Distribution.BETA:
            return self.beta(p1, p2)
        if dist == Distribution.PERT:
            return self.pert(p1, p2, p3)
        raise ValueError(f"Distribution {dist.value!r} cannot be sampled.")


# ---------------------------------------------------------------------------
# Thread-local convenience API
# ---------------------------------------------------------------------------
_local = threading.local()


def get_sampler() -> DistributionSampler:
    """The calling thread's own sampler (created on first use, unseeded)."""
    sampler = getattr(_local, "sampler", None)
    if sampler is None:
        sampler = DistributionSampler()
        _local.sampler = sampler
    return sampler


def reset_sampler(seed: SeedLike = None) -> DistributionSampler:
    """Replace the calling thread's sampler (fresh RNG stream, empty spare)."""
    _local.sampler = DistributionSampler(seed)
    return _local.sampler


def normal(mean: float, std_dev: float) -> float:
    return get_sampler().normal(mean, std_dev)


def uniform(min_val: float, max_val: float) -> float:
    return get_sampler().uniform(min_val, max_val)


def triangular(min_val: float, mode: float, max_val: float) -> float:
    return get_sampler().triangular(min_val, mode, max_val)


def beta(alpha: float, beta_param: float) -> float:
    return get_sampler().beta(alpha, beta_param)


def pert(min_val: float, mode: float, max_val: float, gamma: float = 4.0) -> float:
    return get_sampler().pert(min_val, mode, max_val, gamma)


def lognormal(log_mean: float, log_std_dev: float) -> float:
    return get_sampler().lognormal(log_mean, log_std_dev)
