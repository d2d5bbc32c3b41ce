"""
Reduce Monte Carlo KPI vectors into summary statistics and probability estimates.

Instead of one deterministic "NPV = 1.2M" the caller gets
  NPV: mean, median, std dev, P10 / P25 / P75 / P90
plus P(NPV > 0) and P(IRR > discount rate).

Statistic definitions (n = number of finite observations, v sorted ascending):
  median    middle value, or the average of the two middle values when n is even
  std_dev   sqrt(Σ(v − mean)² / (n − 1)), divisor n when n ≤ 1
  pXX       v[floor(n · XX/100)]

An empty vector gives NaN for every statistic. The degenerate-project short circuit
reports zeros instead (see zero_results()).
"""

from __future__ import annotations

import math
from dataclasses import asdict, dataclass, field
from typing import Dict, Sequence

import numpy as np
import pandas as pd

KPI_NAMES = ("npv", "irr", "roi", "payback_period")

# wire names used by the host application
_WIRE_NAMES = {"npv": "npv", "irr": "irr", "roi": "roi", "payback_period": "paybackPeriod"}


@dataclass(frozen=True)
class MonteCarloStats:
    mean: float
    median: float
    std_dev: float
    p10: float
    p25: float
    p75: float
    p90: float

    @classmethod
    def zeros(cls) -> "MonteCarloStats":
        return cls(0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    @classmethod
    def empty(cls) -> "MonteCarloStats":
        nan = math.nan
        return cls(nan, nan, nan, nan, nan, nan, nan)

    def to_dict(self) -> Dict[str, float]:
        return {
            "mean": self.mean,
            "median": self.median,
            "stdDev": self.std_dev,
            "p10": self.p10,
            "p25": self.p25,
            "p75": self.p75,
            "p90": self.p90,
        }


def summarize_vector(values: Sequence[float]) -> MonteCarloStats:
    """Summary statistics of one KPI vector (values assumed finite)."""
    data = np.sort(np.asarray(values, dtype=float))
    n = len(data)
    if n == 0:
        return MonteCarloStats.empty()

    mean = float(data.sum() / n)
    mid = n // 2
    median = float((data[mid - 1] + data[mid]) / 2) if n % 2 == 0 else float(data[mid])
    std_dev = math.sqrt(float(np.sum((data - mean) ** 2)) / (n - 1 if n > 1 else 1))

    def pct(q: float) -> float:
        return float(data[int(math.floor(n * q))])

    return MonteCarloStats(
        mean=mean,
        median=median,
        std_dev=std_dev,
        p10=pct(0.10),
        p25=pct(0.25),
        p75=pct(0.75),
        p90=pct(0.90),
    )


def probability_above(values: Sequence[float], threshold: float) -> float:
    """Fraction of observations strictly above `threshold`; 0 for an empty vector."""
    data = np.asarray(values, dtype=float)
    if data.size == 0:
        return 0.0
    return float(np.mean(data > threshold))


@dataclass
class MonteCarloResults:
    npv: MonteCarloStats
    irr: MonteCarloStats
    roi: MonteCarloStats
    payback_period: MonteCarloStats
    probability_npv_positive: float
    probability_irr_above_discount_rate: float

    # filtered per-KPI observations, for histograms / CDFs
    raw_data: Dict[str, np.ndarray] = field(default_factory=dict)
    iterations: int = 0

    def stats(self, kpi: str) -> MonteCarloStats:
        if kpi not in KPI_NAMES:
            raise KeyError(f"Unknown Monte Carlo KPI {kpi!r}; expected one of {KPI_NAMES}.")
        return getattr(self, kpi)

    def summary_table(self) -> pd.DataFrame:
        """One row per KPI: count of finite observations and every statistic."""
        rows = []
        for kpi in KPI_NAMES:
            row = {"KPI": kpi, "Count": len(self.raw_data.get(kpi, ()))}
            row.update(asdict(self.stats(kpi)))
            rows.append(row)
        return pd.DataFrame(rows)

    def results_dict(self) -> Dict[str, object]:
        out: Dict[str, object] = {_WIRE_NAMES[k]: self.stats(k).to_dict() for k in KPI_NAMES}
        out["probabilityNPVPositive"] = self.probability_npv_positive
        out["probabilityIRRgtDiscountRate"] = self.probability_irr_above_discount_rate
        return out

    def raw_data_dict(self) -> Dict[str, list]:
        return {
            _WIRE_NAMES[k]: np.asarray(self.raw_data.get(k, ()), dtype=float).tolist()
            for k in KPI_NAMES
        }


def aggregate_kpi_vectors(
    vectors: Dict[str, np.ndarray],
    *,
    discount_rate: float,
    iterations: int = 0,
) -> MonteCarloResults:
    """
    Build MonteCarloResults from filtered per-KPI vectors.

    Parameters
    ----------
    vectors : dict
        {kpi: finite observations} for every name in KPI_NAMES
    discount_rate : float
        Base-case discount rate in percent (threshold for P(IRR > rate))
    iterations : int
        Iterations actually run
    """
    raw = {k: np.asarray(vectors.get(k, ()), dtype=float) for k in KPI_NAMES}
    return MonteCarloResults(
        npv=summarize_vector(raw["npv"]),
        irr=summarize_vector(raw["irr"]),
        roi=summarize_vector(raw["roi"]),
        payback_period=summarize_vector(raw["payback_period"]),
        probability_npv_positive=probability_above(raw["npv"], 0.0),
        probability_irr_above_discount_rate=probability_above(raw["irr"], discount_rate),
        raw_data=raw,
        iterations=iterations,
    )


def zero_results() -> MonteCarloResults:
    """All-zero result set for a project that never earns revenue."""
    zero = MonteCarloStats.zeros()
    return MonteCarloResults(
        npv=zero,
        irr=zero,
        roi=zero,
        payback_period=zero,
        probability_npv_positive=0.0,
        probability_irr_above_discount_rate=0.0,
        raw_data={k: np.array([], dtype=float) for k in KPI_NAMES},
        iterations=0,
    )
