"""
Core package — project data schema, engine configuration, and shared utilities.
No financial logic lives here.
"""

from .schema import ProjectData
from .config import SensitivityConfig, SimulationConfig
from .utils import parse_task_date, year_from_task

__all__ = [
    "ProjectData",
    "SensitivityConfig",
    "SimulationConfig",
    "parse_task_date",
    "year_from_task",
]
