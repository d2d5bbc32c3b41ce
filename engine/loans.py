"""
Loan Amortizer — annual annuity schedules for one loan and for the whole financing book.

Per loan (rate r = interestRate / 100, term n years, starting in startYear):
  r == 0  equal principal installments of principal / n, no interest
  r > 0   level payment pmt = P·r·(1+r)^n / ((1+r)^n − 1); each year
          interest = balance·r, principal = min(pmt − interest, balance)

Rows outside a loan's term (or past the project life) stay at zero. Loans with a
non-finite or non-positive principal/term, or a negative rate, produce an all-zero
schedule.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np

from core.schema import Loan
from core.utils import zeros

from .results import LoanScheduleItem


def level_payment(balance: float, annual_rate: float, n_years: int) -> float:
    """Standard fully-amortizing level payment (PMT) with near-zero rate guard."""
    if n_years <= 0:
        return float(balance)
    if abs(annual_rate) < 1e-12:
        return float(balance) / n_years
    with np.errstate(over="ignore", invalid="ignore", divide="ignore"):
        growth = np.float64(1 + annual_rate) ** n_years
        return float(balance * (annual_rate * growth) / (growth - 1))


def _empty_schedule(project_life: int) -> List[LoanScheduleItem]:
    return [LoanScheduleItem(year=i + 1) for i in range(max(project_life, 0))]


def calculate_single_loan_schedule(loan: Loan, project_life: int) -> List[LoanScheduleItem]:
    """
    Amortization schedule of one loan over the project life.

    Parameters
    ----------
    loan : Loan
        Principal, annual interest rate (percent), term (years), 1-indexed start year
    project_life : int
        Number of rows returned (years 1..project_life)

    Returns
    -------
    List of LoanScheduleItem, one per project year
    """
    schedule = _empty_schedule(project_life)
    balance = loan.principal
    rate = loan.interest_rate / 100
    term = loan.term
    start_year = loan.start_year

    if not (math.isfinite(balance) and balance > 0):
        return schedule
    if not (math.isfinite(rate) and rate >= 0) or term <= 0:
        return schedule

    pmt = level_payment(balance, rate, term)
    if not math.isfinite(pmt):
        return schedule

    for i in range(term):
        year_index = start_year - 1 + i
        if year_index >= project_life:
            break

        opening = balance
        interest = balance * rate
        principal = min(pmt - interest, balance)
        balance -= principal

        if year_index < 0:
            continue
        schedule[year_index] = LoanScheduleItem(
            year=year_index + 1,
            opening_balance=opening,
            principal=max(principal, 0.0),
            interest=interest,
            closing_balance=max(balance, 0.0),
        )

    return schedule


@dataclass(frozen=True)
class ConsolidatedLoans:
    """All loans aggregated per project year."""
    interest: np.ndarray
    principal: np.ndarray
    schedule: List[LoanScheduleItem]


def calculate_loan_schedules(loans: Sequence[Loan], project_life: int) -> ConsolidatedLoans:
    """
    Consolidated amortization across all loans.

    Interest and principal are the per-year sums of the single-loan schedules. The
    balance ladder opens each year with the previous closing balance plus the principal
    of every loan originated that year, then subtracts the year's principal repayment.
    """
    project_life = max(project_life, 0)
    interest = zeros(project_life)
    principal = zeros(project_life)

    for loan in loans:
        for i, row in enumerate(calculate_single_loan_schedule(loan, project_life)):
            interest[i] += row.interest
            principal[i] += row.principal

    schedule: List[LoanScheduleItem] = []
    balance = 0.0
    for i in range(project_life):
        balance += sum(loan.principal for loan in loans if loan.start_year == i + 1)
        opening = balance
        balance = float(balance - principal[i])
        schedule.append(
            LoanScheduleItem(
                year=i + 1,
                opening_balance=opening,
                principal=float(principal[i]),
                interest=float(interest[i]),
                closing_balance=balance if balance > 0 else 0.0,
            )
        )

    return ConsolidatedLoans(interest=interest, principal=principal, schedule=schedule)
