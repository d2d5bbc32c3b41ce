"""
Sensitivity Engine — named scenario comparison and one-at-a-time (tornado) analysis.

Both re-run the complete deterministic pipeline on a perturbed copy of the project;
nothing about the pipeline itself is varied.

Tornado variables, in reporting order (never re-sorted by impact):

  investmentCost   every capital item's cost
  revenue          every revenue item's unit price
  variableCosts    every Raw Materials unit cost
  fixedCosts       every Labor monthly salary and General & Admin cost
  discountRate     the estimation-basis discount rate

Impact = (new KPI − base KPI) / |base KPI| × 100.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from core.config import SensitivityConfig
from core.logger import LogContext, setup_logger
from core.schema import ProjectData, Scenario
from engine.cashflow import calculate_financial_outputs
from engine.results import CalculatedOutputs

from .overrides import (
    scale_discount_rate,
    scale_fixed_costs,
    scale_investment_cost,
    scale_revenue,
    scale_variable_costs,
    with_estimation_basis,
)

logger = setup_logger(__name__)

KPIS = ("npv", "irr", "roi")


@dataclass(frozen=True)
class TornadoVariable:
    key: str
    name: str
    direction: int  # +1 if raising the input normally helps the project, -1 if it hurts
    apply: Callable[[ProjectData, float], ProjectData]


TORNADO_VARIABLES: Sequence[TornadoVariable] = (
    TornadoVariable("investmentCost", "Investment Cost", -1, scale_investment_cost),
    TornadoVariable("revenue", "Revenue", 1, scale_revenue),
    TornadoVariable("variableCosts", "Variable Costs", -1, scale_variable_costs),
    TornadoVariable("fixedCosts", "Fixed Costs", -1, scale_fixed_costs),
    TornadoVariable("discountRate", "Discount Rate", -1, scale_discount_rate),
)


@dataclass(frozen=True)
class TornadoBar:
    key: str
    name: str
    direction: int
    base_value: float
    new_value: float
    impact: float  # percent change of the KPI


@dataclass(frozen=True)
class ScenarioResult:
    name: str
    outputs: CalculatedOutputs


def _kpi(outputs: CalculatedOutputs, kpi: str) -> float:
    return getattr(outputs, kpi)


def percentage_change(base: float, new: float, zero_base_impact: float = 1000.0) -> float:
    """
    Relative change of a KPI in percent.

    A non-finite new value counts as no change. An exactly-zero base reports
    +zero_base_impact when the new value is positive and -zero_base_impact
    otherwise, an unchanged 0 included.
    """
    if not math.isfinite(new):
        return 0.0
    if base == 0:
        return zero_base_impact if new > 0 else -zero_base_impact
    return (new - base) / abs(base) * 100


def run_tornado(
    project: ProjectData,
    config: Optional[SensitivityConfig] = None,
    *,
    base_outputs: Optional[CalculatedOutputs] = None,
    variables: Sequence[TornadoVariable] = TORNADO_VARIABLES,
) -> List[TornadoBar]:
    """
    Bump each variable by `config.change_factor` and record the KPI's relative change.

    Parameters
    ----------
    project : ProjectData
        Base inputs
    config : SensitivityConfig, optional
        KPI name ("npv", "irr" or "roi"), change factor, zero-base magnitude
    base_outputs : CalculatedOutputs, optional
        Already-computed base case; recomputed when omitted
    variables : sequence of TornadoVariable
        Variables to test, reported in this order

    Returns
    -------
    One TornadoBar per variable, or an empty list when the base KPI is not finite.
    """
    cfg = config or SensitivityConfig()
    if cfg.kpi not in KPIS:
        raise ValueError(f"Unknown sensitivity KPI {cfg.kpi!r}; expected one of {KPIS}.")

    if base_outputs is None:
        base_outputs = calculate_financial_outputs(project)
    base_value = _kpi(base_outputs, cfg.kpi)
    if not math.isfinite(base_value):
        logger.info(f"Base {cfg.kpi} is not finite; tornado analysis skipped")
        return []

    bars = []
    operation = f"tornado analysis on {cfg.kpi} ({len(variables)} variables)"
    with LogContext(logger, operation, logging.DEBUG):
        for variable in variables:
            perturbed = variable.apply(project, cfg.change_factor)
            new_value = _kpi(calculate_financial_outputs(perturbed), cfg.kpi)
            bars.append(
                TornadoBar(
                    key=variable.key,
                    name=variable.name,
                    direction=variable.direction,
                    base_value=base_value,
                    new_value=new_value,
                    impact=percentage_change(base_value, new_value, cfg.zero_base_impact),
                )
            )
    return bars


def tornado_dataframe(bars: Sequence[TornadoBar]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {"Variable": b.name, "Base": b.base_value, "New": b.new_value, "Impact (%)": b.impact}
            for b in bars
        ],
        columns=["Variable", "Base", "New", "Impact (%)"],
    )


def compare_scenarios(
    project: ProjectData,
    scenarios: Optional[Sequence[Scenario]] = None,
    *,
    base_name: str = "Base Case",
) -> List[ScenarioResult]:
    """
    Base case followed by one result per named scenario, in configured order.

    Each scenario overrides estimation-basis fields only; `scenarios` defaults to
    the project's own sensitivityAnalysis.scenarios.
    """
    if scenarios is None:
        scenarios = project.sensitivity_analysis.scenarios

    results = [ScenarioResult(base_name, calculate_financial_outputs(project))]
    for scenario in scenarios:
        modified = with_estimation_basis(project, scenario.modifications)
        results.append(ScenarioResult(scenario.name, calculate_financial_outputs(modified)))
    logger.info(f"Compared {len(scenarios)} scenario(s) against the base case")
    return results


def scenario_kpi_table(results: Sequence[ScenarioResult]) -> pd.DataFrame:
    """KPIs side by side: one row per KPI, one column per scenario."""
    data: Dict[str, Dict[str, float]] = {r.name: r.outputs.kpis() for r in results}
    return pd.DataFrame(data)
