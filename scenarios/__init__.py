"""
What-if analysis — named scenarios, tornado sensitivity, and perturbed-copy builders.
"""

from .overrides import apply_variable_samples, parse_variable_id, with_estimation_basis
from .sensitivity import compare_scenarios, run_tornado

__all__ = [
    "apply_variable_samples",
    "parse_variable_id",
    "with_estimation_basis",
    "compare_scenarios",
    "run_tornado",
]
