"""
CalculatedOutputs — everything the deterministic pipeline produces for one ProjectData.

Recomputed wholesale on every call; nothing in here is patched incrementally.

Length conventions (n = project life in whole years, never negative):
  - every year-indexed schedule / row list has exactly n entries (years 1..n)
  - unlevered_free_cash_flows has n + 1 entries (year 0 = initial outlay)

Sentinels consumers must handle:
  NaN   irr when flows never change sign or Newton fails to converge
  inf   break-even revenue with no contribution margin, ratios over a zero denominator
  -1    payback / discounted payback not achieved within the project life
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Dict, List, Optional

import numpy as np
import pandas as pd


@dataclass(frozen=True)
class WorkingCapitalScheduleItem:
    year: int
    revenue: float
    wc: float
    change_in_wc: float


@dataclass(frozen=True)
class CashFlowItem:
    year: int
    revenue: float
    operating_costs: float
    ebit: float
    tax: float
    nopat: float
    depreciation: float
    capex: float
    change_in_wc: float
    unlevered_free_cash_flow: float


@dataclass(frozen=True)
class BreakEvenAnalysis:
    """Contribution margin ratio and margin of safety are in percent."""
    year: int
    total_revenue: float
    total_variable_costs: float
    total_fixed_costs: float
    contribution_margin_ratio: float
    break_even_revenue: float
    margin_of_safety: float


@dataclass(frozen=True)
class TimeBasedBreakEvenPoint:
    year: int
    cumulative_revenue: float
    cumulative_costs: float


@dataclass(frozen=True)
class LoanScheduleItem:
    year: int
    opening_balance: float = 0.0
    principal: float = 0.0
    interest: float = 0.0
    closing_balance: float = 0.0


@dataclass(frozen=True)
class FinancialRatios:
    """Per-year margins in percent; 0 for years without revenue."""
    gross_margin: np.ndarray
    operating_margin: np.ndarray
    net_margin: np.ndarray


@dataclass
class CalculatedOutputs:
    # Scalar KPIs
    npv: float
    irr: float  # percent
    roi: float  # percent
    payback_period: float
    discounted_payback_period: float

    # First operating year (first year with revenue > 0)
    break_even_revenue: float
    gross_profit_margin_y1: float
    operating_profit_margin_y1: float
    net_profit_margin_y1: float

    # Balance-sheet ratios at project start
    debt_to_equity_ratio: float
    debt_to_assets_ratio: float
    current_ratio: float
    quick_ratio: float

    enterprise_value: float
    dcf_valuation: float

    # Schedules (length = project life)
    revenue_schedule: np.ndarray
    operating_cost_schedule: np.ndarray
    variable_cost_schedule: np.ndarray
    fixed_cost_schedule: np.ndarray
    depreciation_schedule: np.ndarray
    capex_schedule: np.ndarray
    working_capital_schedule: List[WorkingCapitalScheduleItem]
    cash_flow_statement: List[CashFlowItem]
    break_even_analysis: List[BreakEvenAnalysis]
    financial_ratios: FinancialRatios
    loan_amortization_schedule: List[LoanScheduleItem]
    time_based_break_even: List[TimeBasedBreakEvenPoint]
    debt_to_equity_ratio_schedule: List[Optional[float]]

    # Length = project life + 1 (year 0 first)
    unlevered_free_cash_flows: np.ndarray = field(default_factory=lambda: np.zeros(1))

    @property
    def project_life(self) -> int:
        return len(self.revenue_schedule)

    def first_operating_year(self) -> Optional[int]:
        """1-indexed first year with strictly positive revenue, None if there is none."""
        positive = np.flatnonzero(self.revenue_schedule > 0)
        return int(positive[0]) + 1 if positive.size else None

    def time_based_break_even_year(self) -> Optional[int]:
        """First year cumulative revenue exceeds cumulative cost, None if never."""
        for point in self.time_based_break_even:
            if point.cumulative_revenue > point.cumulative_costs:
                return point.year
        return None

    def kpis(self) -> Dict[str, float]:
        return {
            "npv": self.npv,
            "irr": self.irr,
            "roi": self.roi,
            "payback_period": self.payback_period,
            "discounted_payback_period": self.discounted_payback_period,
            "break_even_revenue": self.break_even_revenue,
            "gross_profit_margin_y1": self.gross_profit_margin_y1,
            "operating_profit_margin_y1": self.operating_profit_margin_y1,
            "net_profit_margin_y1": self.net_profit_margin_y1,
            "debt_to_equity_ratio": self.debt_to_equity_ratio,
            "debt_to_assets_ratio": self.debt_to_assets_ratio,
            "current_ratio": self.current_ratio,
            "quick_ratio": self.quick_ratio,
            "enterprise_value": self.enterprise_value,
            "dcf_valuation": self.dcf_valuation,
        }

    def cash_flow_dataframe(self) -> pd.DataFrame:
        """Cash-flow statement, one row per project year."""
        columns = [f.name for f in fields(CashFlowItem)]
        return pd.DataFrame([asdict(row) for row in self.cash_flow_statement], columns=columns)

    def schedules_dataframe(self) -> pd.DataFrame:
        """All year-indexed series side by side, indexed by project year."""
        n = self.project_life
        years = pd.Index(np.arange(1, n + 1), name="year")
        loans = self.loan_amortization_schedule
        return pd.DataFrame(
            {
                "revenue": self.revenue_schedule,
                "operating_costs": self.operating_cost_schedule,
                "variable_costs": self.variable_cost_schedule,
                "fixed_costs": self.fixed_cost_schedule,
                "depreciation": self.depreciation_schedule,
                "capex": self.capex_schedule,
                "working_capital": [w.wc for w in self.working_capital_schedule],
                "loan_interest": [row.interest for row in loans],
                "loan_principal": [row.principal for row in loans],
                "loan_closing_balance": [row.closing_balance for row in loans],
                "gross_margin": self.financial_ratios.gross_margin,
                "operating_margin": self.financial_ratios.operating_margin,
                "net_margin": self.financial_ratios.net_margin,
                "debt_to_equity": self.debt_to_equity_ratio_schedule,
            },
            index=years,
        )
