"""
Risk outputs — per-iteration KPI extraction and Monte Carlo summary statistics.
"""

from .aggregator import (
    MonteCarloResults,
    MonteCarloStats,
    aggregate_kpi_vectors,
    summarize_vector,
    zero_results,
)
from .metrics import KpiCollector, merge_vectors

__all__ = [
    "MonteCarloResults",
    "MonteCarloStats",
    "aggregate_kpi_vectors",
    "summarize_vector",
    "zero_results",
    "KpiCollector",
    "merge_vectors",
]
