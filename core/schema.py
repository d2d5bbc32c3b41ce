"""
Project data schema — the plain input structure the engine consumes.

Mirrors the host application's project document section by section:

  definition          — descriptive only, never read by the engine
  estimationBasis     — rates, project life, depreciation policy, WC assumptions
  capitalInvestment   — fixed-asset items (4 asset classes), optionally task-linked
  timeline            — tasks; a linked item starts in the year its task starts
  operatingInputs     — cost items (tagged union) and revenue items
  financing           — loans
  sensitivityAnalysis — named scenarios (partial estimation-basis overrides)
  monteCarlo          — iteration count + stochastic variable settings

Every model is frozen. Perturbed copies are built with `model_copy(update=...)`
(see scenarios/overrides.py), never by mutating a shared instance.

Keys are accepted in the document's camelCase form or as snake_case field names.
No numeric range validation happens here: degenerate values flow through the
engine and come out as 0 / NaN / inf sentinels.
"""

from __future__ import annotations

import math
from datetime import date
from enum import Enum
from typing import Annotated, Any, ClassVar, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from .utils import parse_task_date, year_from_task


def _whole_number(v) -> int:
    """Truncate to an int; None, NaN and +-inf become 0."""
    if v is None:
        return 0
    value = float(v)
    return int(value) if math.isfinite(value) else 0


class _Model(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )


class AssetCategory(str, Enum):
    BUILDINGS = "Buildings"
    MACHINERY = "Machinery"
    FURNITURE = "Furniture"
    EQUIPMENT = "Equipment"


class DepreciationMethod(str, Enum):
    STRAIGHT_LINE = "Straight-line"
    DECLINING_BALANCE = "Declining Balance"
    SUM_OF_YEARS_DIGITS = "Sum-of-Years Digits"


class Distribution(str, Enum):
    NONE = "None"
    NORMAL = "Normal"
    UNIFORM = "Uniform"
    TRIANGULAR = "Triangular"
    LOGNORMAL = "Lognormal"
    BETA = "Beta"
    PERT = "PERT"


# ── Estimation basis ──────────────────────────────────────────────


class AssetRates(BaseModel):
    """Percent value per asset class (depreciation rate or salvage value)."""

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    buildings: float = Field(0.0, alias="Buildings")
    machinery: float = Field(0.0, alias="Machinery")
    furniture: float = Field(0.0, alias="Furniture")
    equipment: float = Field(0.0, alias="Equipment")

    def for_category(self, category: AssetCategory) -> float:
        return float(getattr(self, AssetCategory(category).name.lower()))


class EstimationBasis(_Model):
    currency: str = "USD"
    project_life: int = 10
    discount_rate: float = 10.0
    tax_rate: float = 15.0
    inflation_rate: float = 2.0
    revenue_growth_rate: float = 2.0
    variable_cost_growth_rate: float = 2.0
    fixed_cost_growth_rate: float = 2.0
    depreciation_method: DepreciationMethod = DepreciationMethod.STRAIGHT_LINE
    depreciation_rates: AssetRates = AssetRates(
        buildings=5, machinery=15, furniture=10, equipment=20
    )
    salvage_values: AssetRates = AssetRates(
        buildings=10, machinery=5, furniture=5, equipment=0
    )
    working_capital_percentage: float = 5.0
    initial_current_assets: float = 0.0
    initial_current_liabilities: float = 0.0
    initial_inventory: float = 0.0
    ebit_multiple: float = 0.0

    @field_validator("project_life", mode="before")
    @classmethod
    def _whole_years(cls, v):
        return _whole_number(v)

    @classmethod
    def field_name(cls, key: str) -> Optional[str]:
        """Resolve a camelCase alias or snake_case name to the model field name."""
        if key in cls.model_fields:
            return key
        for name, info in cls.model_fields.items():
            if info.alias == key:
                return name
        return None


# ── Items ─────────────────────────────────────────────────────────


class CapitalInvestmentItem(_Model):
    id: str
    category: AssetCategory
    item: str = ""
    cost: float = 0.0
    linked_task_id: Optional[str] = None


class Task(_Model):
    id: str
    name: str = ""
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    progress: float = 0.0
    dependencies: List[str] = Field(default_factory=list)

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def _parse_date(cls, v):
        return parse_task_date(v)


class RawMaterialCostItem(_Model):
    id: str
    category: Literal["Raw Materials"] = "Raw Materials"
    item: str = ""
    unit_cost: float = 0.0
    quantity: float = 0.0
    linked_task_id: Optional[str] = None

    is_variable: ClassVar[bool] = True

    def base_cost(self) -> float:
        return self.unit_cost * self.quantity


class LaborCostItem(_Model):
    id: str
    category: Literal["Labor"] = "Labor"
    item: str = ""
    count: float = 0.0
    monthly_salary: float = 0.0
    linked_task_id: Optional[str] = None

    is_variable: ClassVar[bool] = False

    def base_cost(self) -> float:
        return self.count * self.monthly_salary * 12


class AdminCostItem(_Model):
    id: str
    category: Literal["General & Admin"] = "General & Admin"
    item: str = ""
    cost: float = 0.0  # annual
    linked_task_id: Optional[str] = None

    is_variable: ClassVar[bool] = False

    def base_cost(self) -> float:
        return self.cost


OperatingCostItem = Annotated[
    Union[RawMaterialCostItem, LaborCostItem, AdminCostItem],
    Field(discriminator="category"),
]


class RevenueItem(_Model):
    id: str
    item: str = ""
    unit_price: float = 0.0
    quantity: float = 0.0
    linked_task_id: Optional[str] = None

    def base_revenue(self) -> float:
        return self.unit_price * self.quantity


class Loan(_Model):
    id: str = ""
    source: str = ""
    principal: float = 0.0
    interest_rate: float = 0.0  # percent
    term: int = 0  # years
    start_year: int = 1

    @field_validator("start_year", mode="before")
    @classmethod
    def _default_start_year(cls, v):
        # 0 / missing means "from the first project year"
        return _whole_number(v) or 1

    @field_validator("term", mode="before")
    @classmethod
    def _whole_term(cls, v):
        return _whole_number(v)


# ── Sections ──────────────────────────────────────────────────────


class Partner(_Model):
    id: str = ""
    name: str = ""
    share: float = 0.0


class ProjectDefinition(_Model):
    project_name: str = ""
    project_description: str = ""
    objectives: str = ""
    base_case: str = ""
    project_location: str = ""
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    geographic_scope: str = ""
    stakeholders: List[str] = Field(default_factory=list)
    partners: List[Partner] = Field(default_factory=list)


class CapitalInvestment(_Model):
    items: List[CapitalInvestmentItem] = Field(default_factory=list)


class Timeline(_Model):
    tasks: List[Task] = Field(default_factory=list)

    def start_year_for(self, task_id: Optional[str]) -> int:
        """Project year (1-indexed) of the task an item is linked to; 1 when unlinked."""
        if not task_id:
            return 1
        starts = [t.start_date for t in self.tasks]
        linked = next((t for t in self.tasks if t.id == task_id), None)
        return year_from_task(linked.start_date if linked else None, starts)


class OperatingInputs(_Model):
    costs: List[OperatingCostItem] = Field(default_factory=list)
    revenues: List[RevenueItem] = Field(default_factory=list)


class Financing(_Model):
    loans: List[Loan] = Field(default_factory=list)


class Scenario(_Model):
    id: str = ""
    name: str = ""
    modifications: Dict[str, Any] = Field(default_factory=dict)


class SensitivityAnalysis(_Model):
    scenarios: List[Scenario] = Field(default_factory=list)


class MonteCarloVariable(_Model):
    """
    param1/param2/param3 by distribution:
      Normal:     mean, std dev
      Uniform:    min, max
      Triangular: min, mode, max
      Lognormal:  log mean, log std dev
      Beta:       alpha, beta
      PERT:       min, mode, max
    """

    distribution: Distribution = Distribution.NONE
    param1: float = 0.0
    param2: float = 0.0
    param3: Optional[float] = None

    @property
    def is_active(self) -> bool:
        return self.distribution != Distribution.NONE


class MonteCarloSettings(_Model):
    iterations: int = 5000
    variables: Dict[str, MonteCarloVariable] = Field(default_factory=dict)

    def active_variables(self) -> Dict[str, MonteCarloVariable]:
        return {k: v for k, v in self.variables.items() if v.is_active}


class ProjectData(_Model):
    definition: ProjectDefinition = Field(default_factory=ProjectDefinition)
    estimation_basis: EstimationBasis = Field(default_factory=EstimationBasis)
    capital_investment: CapitalInvestment = Field(default_factory=CapitalInvestment)
    timeline: Timeline = Field(default_factory=Timeline)
    operating_inputs: OperatingInputs = Field(default_factory=OperatingInputs)
    financing: Financing = Field(default_factory=Financing)
    sensitivity_analysis: SensitivityAnalysis = Field(default_factory=SensitivityAnalysis)
    monte_carlo: MonteCarloSettings = Field(default_factory=MonteCarloSettings)
