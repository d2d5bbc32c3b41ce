"""
Calculation engine — deterministic feasibility pipeline + Monte Carlo driver.
"""

from .cashflow import calculate_financial_outputs
from .loans import calculate_loan_schedules, calculate_single_loan_schedule
from .results import CalculatedOutputs
from .runner import SimulationCancelled, run_monte_carlo
from .worker import ErrorMessage, ProgressMessage, ResultMessage, SimulationWorker

__all__ = [
    "calculate_financial_outputs",
    "calculate_loan_schedules",
    "calculate_single_loan_schedule",
    "CalculatedOutputs",
    "SimulationCancelled",
    "run_monte_carlo",
    "SimulationWorker",
    "ProgressMessage",
    "ResultMessage",
    "ErrorMessage",
]
