"""
Per-iteration KPI extraction for the Monte Carlo runner.

Each pipeline run contributes at most one observation per KPI. Observations that
would poison the statistics are dropped silently:
  npv, irr, roi      kept only when finite (irr is NaN without a sign change)
  payback_period     kept only when finite and > 0 (−1 means "not paid back")
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Dict, Iterable, List

import numpy as np

from .aggregator import KPI_NAMES

if TYPE_CHECKING:
    from engine.results import CalculatedOutputs


class KpiCollector:
    """Accumulates filtered KPI observations across iterations."""

    def __init__(self):
        self._values: Dict[str, List[float]] = {k: [] for k in KPI_NAMES}

    def add(self, outputs: CalculatedOutputs) -> None:
        for kpi in ("npv", "irr", "roi"):
            value = getattr(outputs, kpi)
            if math.isfinite(value):
                self._values[kpi].append(value)
        payback = outputs.payback_period
        if payback > 0 and math.isfinite(payback):
            self._values["payback_period"].append(payback)

    def vectors(self) -> Dict[str, np.ndarray]:
        return {k: np.asarray(v, dtype=float) for k, v in self._values.items()}


def merge_vectors(chunks: Iterable[Dict[str, np.ndarray]]) -> Dict[str, np.ndarray]:
    """Concatenate per-chunk KPI vectors in chunk order."""
    chunks = list(chunks)
    return {
        k: np.concatenate([c[k] for c in chunks]) if chunks else np.array([], dtype=float)
        for k in KPI_NAMES
    }
