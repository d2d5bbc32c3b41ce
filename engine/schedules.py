"""
Scheduler — itemized inputs -> annual series indexed by project year (index 0 = year 1).

Each revenue / cost / capital item may be anchored to a timeline task; its start year is
  1                                   if unlinked (or the task has no start date)
  floor(days since earliest task start / 365) + 1   otherwise

Revenue and operating cost items are seeded at their base annual amount in the start
year and compound by (1 + growth/100) every following year through the end of the
project life. Growth rates by category:
  revenues                    revenueGrowthRate
  Raw Materials (variable)    variableCostGrowthRate
  Labor, General & Admin      fixedCostGrowthRate

Capital items are spent once, in their start year. Year-1 items are part of the initial
outlay (year 0 of the cash flow) and never appear in the capex schedule.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np

from core.schema import (
    AssetRates,
    CapitalInvestmentItem,
    DepreciationMethod,
    OperatingCostItem,
    RevenueItem,
    Timeline,
)
from core.utils import zeros


def _compound_into(
    schedule: np.ndarray, base_amount: float, start_year: int, growth_rate: float
) -> None:
    growth = 1 + growth_rate / 100
    amount = base_amount
    for year in range(start_year - 1, len(schedule)):
        schedule[year] += amount
        amount *= growth


def revenue_schedule(
    revenues: Iterable[RevenueItem],
    project_life: int,
    growth_rate: float,
    timeline: Timeline,
) -> np.ndarray:
    annual = zeros(project_life)
    for item in revenues:
        start_year = timeline.start_year_for(item.linked_task_id)
        _compound_into(annual, item.base_revenue(), start_year, growth_rate)
    return annual


def _cost_schedule(
    costs: Iterable[OperatingCostItem],
    project_life: int,
    fixed_rate: float,
    variable_rate: float,
    timeline: Timeline,
) -> np.ndarray:
    annual = zeros(project_life)
    for item in costs:
        start_year = timeline.start_year_for(item.linked_task_id)
        rate = variable_rate if item.is_variable else fixed_rate
        _compound_into(annual, item.base_cost(), start_year, rate)
    return annual


def operating_cost_schedule(
    costs: Sequence[OperatingCostItem],
    project_life: int,
    fixed_rate: float,
    variable_rate: float,
    timeline: Timeline,
) -> np.ndarray:
    """All operating costs (variable + fixed), each at its own category's growth rate."""
    return _cost_schedule(costs, project_life, fixed_rate, variable_rate, timeline)


def variable_cost_schedule(
    costs: Sequence[OperatingCostItem],
    project_life: int,
    variable_rate: float,
    timeline: Timeline,
) -> np.ndarray:
    variable = [c for c in costs if c.is_variable]
    return _cost_schedule(variable, project_life, 0.0, variable_rate, timeline)


def fixed_cost_schedule(
    costs: Sequence[OperatingCostItem],
    project_life: int,
    fixed_rate: float,
    timeline: Timeline,
) -> np.ndarray:
    fixed = [c for c in costs if not c.is_variable]
    return _cost_schedule(fixed, project_life, fixed_rate, 0.0, timeline)


def salvage_value(item: CapitalInvestmentItem, salvage_values: AssetRates) -> float:
    return item.cost * salvage_values.for_category(item.category) / 100


def depreciation_schedule(
    items: Iterable[CapitalInvestmentItem],
    project_life: int,
    method: DepreciationMethod,
    depreciation_rates: AssetRates,
    salvage_values: AssetRates,
    timeline: Timeline,
) -> np.ndarray:
    """
    Annual depreciation across all capital items.

    Parameters
    ----------
    items : capital investment items
    project_life : int
        Number of project years
    method : DepreciationMethod
        Straight-line:        (cost - salvage) / effective_life every year
        Declining Balance:    book_value * rate, never taking book value below salvage
        Sum-of-Years Digits:  depreciable base weighted (effective_life - i) / SYD
    depreciation_rates, salvage_values : AssetRates
        Percent per asset class. Rates only matter for declining balance.
    timeline : Timeline
        Resolves each item's start year

    effective_life = project_life - (start_year - 1); items with effective_life <= 0
    contribute nothing.
    """
    annual = zeros(project_life)
    if project_life <= 0:
        return annual

    for item in items:
        cost = item.cost
        salvage = salvage_value(item, salvage_values)
        depreciable_base = cost - salvage
        start_year = timeline.start_year_for(item.linked_task_id)
        effective_life = project_life - (start_year - 1)
        if effective_life <= 0:
            continue

        if method == DepreciationMethod.STRAIGHT_LINE:
            yearly = depreciable_base / effective_life
            annual[start_year - 1:] += yearly

        elif method == DepreciationMethod.DECLINING_BALANCE:
            rate = depreciation_rates.for_category(item.category) / 100
            book_value = cost
            for year in range(start_year - 1, project_life):
                yearly = book_value * rate
                if book_value - yearly < salvage:
                    yearly = book_value - salvage
                if yearly < 0:
                    yearly = 0.0
                annual[year] += yearly
                book_value -= yearly

        elif method == DepreciationMethod.SUM_OF_YEARS_DIGITS:
            syd = effective_life * (effective_life + 1) / 2
            for i in range(effective_life):
                annual[start_year - 1 + i] += (effective_life - i) / syd * depreciable_base

    return annual


def capex_schedule(
    items: Iterable[CapitalInvestmentItem],
    project_life: int,
    timeline: Timeline,
) -> np.ndarray:
    """In-life capital spending: items starting in years 2..project_life."""
    annual = zeros(project_life)
    for item in items:
        start_year = timeline.start_year_for(item.linked_task_id)
        if 1 < start_year <= project_life:
            annual[start_year - 1] += item.cost
    return annual
