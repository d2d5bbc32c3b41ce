"""
Valuation & break-even math on a cash-flow vector (index 0 = year 0).

All rates in and out of this module are in PERCENT (10 means 10 %).

Nothing here raises on degenerate numbers; failures come back as sentinels:
  irr                         NaN  no sign change, flat derivative, or no convergence
  payback / discounted payback -1  initial flow >= 0 or never paid back
  break-even revenue          inf  revenue does not cover variable cost
"""

from __future__ import annotations

import math
from typing import List, Sequence

import numpy as np

from .results import BreakEvenAnalysis, TimeBasedBreakEvenPoint

# Newton-Raphson settings for IRR
IRR_GUESS = 0.1
IRR_MAX_ITERATIONS = 100
IRR_TOLERANCE = 1e-6


def discount_factors(rate: float, n: int) -> np.ndarray:
    """(1 + rate/100)^t for t = 0..n-1."""
    with np.errstate(all="ignore"):
        return np.power(1 + rate / 100, np.arange(n, dtype=float))


def npv(cash_flows: Sequence[float], rate: float) -> float:
    """Σ flow_t / (1 + rate/100)^t, t from 0."""
    flows = np.asarray(cash_flows, dtype=float)
    with np.errstate(all="ignore"):
        return float(np.sum(flows / discount_factors(rate, len(flows))))


def irr(
    cash_flows: Sequence[float],
    *,
    guess: float = IRR_GUESS,
    max_iterations: int = IRR_MAX_ITERATIONS,
    tolerance: float = IRR_TOLERANCE,
) -> float:
    """
    Internal rate of return in percent, by Newton-Raphson on NPV(rate).

    The derivative is a forward difference with step `tolerance`; iteration stops
    when |NPV| < tolerance, or gives up when the derivative flattens below
    `tolerance` or `max_iterations` is exhausted. No bracketing fallback, so
    multi-root or slowly converging shapes can return NaN.
    """
    flows = np.asarray(cash_flows, dtype=float)
    if np.all(flows >= 0) or np.all(flows <= 0):
        return math.nan

    rate = guess
    for _ in range(max_iterations):
        value = npv(flows, rate * 100)
        if abs(value) < tolerance:
            return rate * 100
        bumped = npv(flows, (rate + tolerance) * 100)
        derivative = (bumped - value) / tolerance
        if abs(derivative) < tolerance:
            break
        rate = rate - value / derivative
    return math.nan


def payback_period(cash_flows: Sequence[float]) -> float:
    """Years until cumulative flow turns positive, interpolated within the crossing year."""
    flows = np.asarray(cash_flows, dtype=float)
    if len(flows) == 0 or flows[0] >= 0:
        return -1.0

    cumulative = flows[0]
    for i in range(1, len(flows)):
        previous = cumulative
        cumulative += flows[i]
        if cumulative > 0:
            return float((i - 1) + (-previous / flows[i]))
    return -1.0


def discounted_payback_period(cash_flows: Sequence[float], rate: float) -> float:
    flows = np.asarray(cash_flows, dtype=float)
    with np.errstate(all="ignore"):
        discounted = flows / discount_factors(rate, len(flows))
    return payback_period(discounted)


def roi(cash_flows: Sequence[float], initial_investment: float) -> float:
    """Sum of flows after year 0 over the initial investment, in percent."""
    if initial_investment <= 0:
        return 0.0
    net_gain = float(np.sum(np.asarray(cash_flows, dtype=float)[1:]))
    return net_gain / initial_investment * 100


def break_even_for_year(
    total_revenue: float,
    total_variable_costs: float,
    total_fixed_costs: float,
    year: int,
) -> BreakEvenAnalysis:
    if total_revenue == 0 and total_variable_costs == 0 and total_fixed_costs == 0:
        return BreakEvenAnalysis(year, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    if total_revenue <= total_variable_costs:
        return BreakEvenAnalysis(
            year=year,
            total_revenue=total_revenue,
            total_variable_costs=total_variable_costs,
            total_fixed_costs=total_fixed_costs,
            contribution_margin_ratio=0.0,
            break_even_revenue=math.inf,
            margin_of_safety=-math.inf,
        )

    with np.errstate(all="ignore"):
        revenue = np.float64(total_revenue)
        cm_ratio = float((revenue - total_variable_costs) / revenue)
        break_even = float(total_fixed_costs / np.float64(cm_ratio)) if cm_ratio > 0 else math.inf
        margin_of_safety = (
            float((revenue - break_even) / revenue) if total_revenue > break_even else 0.0
        )
    return BreakEvenAnalysis(
        year=year,
        total_revenue=total_revenue,
        total_variable_costs=total_variable_costs,
        total_fixed_costs=total_fixed_costs,
        contribution_margin_ratio=cm_ratio * 100,
        break_even_revenue=break_even,
        margin_of_safety=margin_of_safety * 100,
    )


def time_based_break_even(
    revenue: Sequence[float],
    operating_costs: Sequence[float],
    capex: Sequence[float],
    initial_outlay: float,
) -> List[TimeBasedBreakEvenPoint]:
    """Running cumulative revenue vs. cumulative cost, cost starting at the initial outlay."""
    points = []
    cumulative_revenue = 0.0
    cumulative_costs = float(initial_outlay)
    for i, (rev, opex, spend) in enumerate(zip(revenue, operating_costs, capex)):
        cumulative_revenue += float(rev)
        cumulative_costs += float(opex) + float(spend)
        points.append(TimeBasedBreakEvenPoint(i + 1, cumulative_revenue, cumulative_costs))
    return points
