"""
Deterministic pipeline — ProjectData -> CalculatedOutputs.

Scheduler -> Loan Amortizer -> Valuation & Ratio Calculator, as one pure function.
The same inputs always give bit-identical outputs; the only randomness in the system
lives in the Monte Carlo runner, which feeds this function perturbed copies.

Per project year t (1..n):
  EBIT   = revenue − operating costs − depreciation
  tax    = max(EBIT, 0) · taxRate
  NOPAT  = EBIT − tax
  WC     = revenue · wc%          ΔWC = WC_t − WC_(t−1)   (WC_0 = current assets − current liabilities)
  UFCF   = NOPAT + depreciation − ΔWC − capex
Year 0:    UFCF = −(capital spent in year 1) − initial working capital
Final year adds terminal value (EBIT · multiple when EBIT > 0), total salvage of all
capital items, and recovery of the closing working capital.

Ratios use levered figures: net income = (EBIT − loan interest) less tax on a positive EBT.

Never raises on degenerate numbers; numpy warnings are silenced and show up as
NaN / inf in the outputs instead.
"""

from __future__ import annotations

import math
from typing import List, Optional

import numpy as np

from core.schema import ProjectData

from .loans import calculate_loan_schedules
from .results import (
    CalculatedOutputs,
    CashFlowItem,
    FinancialRatios,
    WorkingCapitalScheduleItem,
)
from .schedules import (
    capex_schedule,
    depreciation_schedule,
    fixed_cost_schedule,
    operating_cost_schedule,
    revenue_schedule,
    salvage_value,
    variable_cost_schedule,
)
from .valuation import (
    break_even_for_year,
    discounted_payback_period,
    irr,
    npv,
    payback_period,
    roi,
    time_based_break_even,
)


def _or_zero(value: float) -> float:
    # a NaN KPI for the first operating year is reported as 0
    return 0.0 if math.isnan(value) else value


def calculate_financial_outputs(project: ProjectData) -> CalculatedOutputs:
    """
    Run the full deterministic model for one project.

    Parameters
    ----------
    project : ProjectData
        Complete project inputs. Only estimation basis, capital items, timeline,
        operating inputs and loans are read.

    Returns
    -------
    CalculatedOutputs
    """
    with np.errstate(all="ignore"):
        return _calculate(project)


def _calculate(project: ProjectData) -> CalculatedOutputs:
    basis = project.estimation_basis
    timeline = project.timeline
    items = project.capital_investment.items
    costs = project.operating_inputs.costs
    loans = project.financing.loans

    life = max(int(basis.project_life), 0)
    tax_rate = basis.tax_rate / 100
    wc_rate = basis.working_capital_percentage / 100

    # --- Schedules ---
    revenue = revenue_schedule(
        project.operating_inputs.revenues, life, basis.revenue_growth_rate, timeline
    )
    operating_costs = operating_cost_schedule(
        costs, life, basis.fixed_cost_growth_rate, basis.variable_cost_growth_rate, timeline
    )
    variable_costs = variable_cost_schedule(costs, life, basis.variable_cost_growth_rate, timeline)
    fixed_costs = fixed_cost_schedule(costs, life, basis.fixed_cost_growth_rate, timeline)
    depreciation = depreciation_schedule(
        items,
        life,
        basis.depreciation_method,
        basis.depreciation_rates,
        basis.salvage_values,
        timeline,
    )
    capex = capex_schedule(items, life, timeline)
    financing = calculate_loan_schedules(loans, life)

    initial_investment = sum(item.cost for item in items)
    t0_capex = initial_investment - float(capex.sum())
    initial_wc = basis.initial_current_assets - basis.initial_current_liabilities
    total_initial_investment = t0_capex + initial_wc

    total_salvage = sum(salvage_value(item, basis.salvage_values) for item in items)

    initial_debt = sum(loan.principal for loan in loans)
    initial_equity = initial_investment + initial_wc - initial_debt
    cumulative_equity = initial_equity

    # --- Cash flow statement ---
    ufcf = np.zeros(life + 1, dtype=float)
    ufcf[0] = -total_initial_investment

    wc_rows: List[WorkingCapitalScheduleItem] = []
    cash_flow_rows: List[CashFlowItem] = []
    gross_margin = np.zeros(life, dtype=float)
    operating_margin = np.zeros(life, dtype=float)
    net_margin = np.zeros(life, dtype=float)
    debt_to_equity_schedule: List[Optional[float]] = []

    previous_wc = initial_wc
    for i in range(life):
        year = i + 1
        rev = float(revenue[i])
        opex = float(operating_costs[i])
        dep = float(depreciation[i])
        spend = float(capex[i])

        ebit = rev - opex - dep
        tax = ebit * tax_rate if ebit > 0 else 0.0
        nopat = ebit - tax

        current_wc = rev * wc_rate
        change_in_wc = current_wc - previous_wc
        previous_wc = current_wc
        wc_rows.append(WorkingCapitalScheduleItem(year, rev, current_wc, change_in_wc))

        flow = nopat + dep - change_in_wc - spend
        if i == life - 1:
            terminal_value = ebit * basis.ebit_multiple if ebit > 0 else 0.0
            flow += terminal_value + total_salvage + current_wc

        cash_flow_rows.append(
            CashFlowItem(
                year=year,
                revenue=rev,
                operating_costs=opex,
                ebit=ebit,
                tax=tax,
                nopat=nopat,
                depreciation=dep,
                capex=spend,
                change_in_wc=change_in_wc,
                unlevered_free_cash_flow=flow,
            )
        )
        ufcf[year] = flow

        # --- Levered ratios ---
        ebt = ebit - float(financing.interest[i])
        net_income = ebt - (ebt * tax_rate if ebt > 0 else 0.0)
        cumulative_equity += net_income
        closing_debt = financing.schedule[i].closing_balance
        debt_to_equity_schedule.append(
            closing_debt / cumulative_equity if cumulative_equity > 0 else None
        )

        if rev > 0:
            gross_margin[i] = (rev - float(variable_costs[i])) / rev * 100
            operating_margin[i] = ebit / rev * 100
            net_margin[i] = net_income / rev * 100

    # --- Valuation ---
    discount_rate = basis.discount_rate
    project_npv = npv(ufcf, discount_rate)

    break_even_rows = [
        break_even_for_year(float(revenue[i]), float(variable_costs[i]), float(fixed_costs[i]), i + 1)
        for i in range(life)
    ]

    # --- Balance-sheet ratios ---
    debt_to_equity = initial_debt / initial_equity if initial_equity > 0 else math.inf
    total_initial_assets = initial_investment + basis.initial_current_assets
    debt_to_assets = initial_debt / total_initial_assets if total_initial_assets > 0 else 0.0
    liabilities = basis.initial_current_liabilities
    current_ratio = basis.initial_current_assets / liabilities if liabilities > 0 else math.inf
    quick_ratio = (
        (basis.initial_current_assets - basis.initial_inventory) / liabilities
        if liabilities > 0
        else math.inf
    )

    enterprise_value = 0.0
    if cash_flow_rows:
        last_ebit = cash_flow_rows[-1].ebit
        enterprise_value = last_ebit * basis.ebit_multiple if last_ebit > 0 else 0.0

    operating = np.flatnonzero(revenue > 0)
    if operating.size:
        first = int(operating[0])
        break_even_y1 = _or_zero(break_even_rows[first].break_even_revenue)
        gross_y1 = _or_zero(float(gross_margin[first]))
        operating_y1 = _or_zero(float(operating_margin[first]))
        net_y1 = _or_zero(float(net_margin[first]))
    else:
        break_even_y1 = gross_y1 = operating_y1 = net_y1 = 0.0

    return CalculatedOutputs(
        npv=project_npv,
        irr=irr(ufcf),
        roi=roi(ufcf, total_initial_investment),
        payback_period=payback_period(ufcf),
        discounted_payback_period=discounted_payback_period(ufcf, discount_rate),
        break_even_revenue=break_even_y1,
        gross_profit_margin_y1=gross_y1,
        operating_profit_margin_y1=operating_y1,
        net_profit_margin_y1=net_y1,
        debt_to_equity_ratio=debt_to_equity,
        debt_to_assets_ratio=debt_to_assets,
        current_ratio=current_ratio,
        quick_ratio=quick_ratio,
        enterprise_value=enterprise_value,
        dcf_valuation=project_npv,
        revenue_schedule=revenue,
        operating_cost_schedule=operating_costs,
        variable_cost_schedule=variable_costs,
        fixed_cost_schedule=fixed_costs,
        depreciation_schedule=depreciation,
        capex_schedule=capex,
        working_capital_schedule=wc_rows,
        cash_flow_statement=cash_flow_rows,
        break_even_analysis=break_even_rows,
        financial_ratios=FinancialRatios(gross_margin, operating_margin, net_margin),
        loan_amortization_schedule=financing.schedule,
        time_based_break_even=time_based_break_even(
            revenue, operating_costs, capex, total_initial_investment
        ),
        debt_to_equity_ratio_schedule=debt_to_equity_schedule,
        unlevered_free_cash_flows=ufcf,
    )
