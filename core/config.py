"""
Engine configuration.
Distribution parameters live with each Monte Carlo variable (core/schema.py, MonteCarloVariable).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class SimulationConfig:
    # None -> use ProjectData.monte_carlo.iterations
    iterations: Optional[int] = None
    seed: Optional[int] = None

    # progress is reported every iterations // progress_steps iterations (~1%)
    progress_steps: int = 100

    # >1 splits the run into chunks executed in separate processes
    n_workers: int = 1

    def resolve_iterations(self, configured: int) -> int:
        n = self.iterations if self.iterations is not None else configured
        return max(int(n), 0)


@dataclass(frozen=True)
class SensitivityConfig:
    kpi: str = "npv"
    change_factor: float = 1.10  # +10% perturbation
    zero_base_impact: float = 1000.0  # reported magnitude when the base KPI is exactly 0
