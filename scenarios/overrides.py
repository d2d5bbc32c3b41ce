"""
Explicit value construction of perturbed ProjectData copies.

ProjectData is frozen, so every what-if (named scenario, tornado bump, Monte Carlo
draw) builds a NEW tree that shares all untouched sections with the original:

    project.model_copy(update={"estimation_basis": new_basis})

Only the sections that change are rebuilt; nothing is deep-copied.

Monte Carlo variable identifiers
--------------------------------
    estimation-basis:<field>          e.g. "estimation-basis:discountRate"
    revenue:<item id>:<field>         e.g. "revenue:r1:unitPrice"
    eb-<field>                        dash form, e.g. "eb-taxRate"
    rev-<item id>-<field>             dash form; the item id may contain dashes

Fields may be given in camelCase or snake_case. Revenue items accept unitPrice and
quantity.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional, Tuple

from core.logger import setup_logger
from core.schema import (
    AdminCostItem,
    EstimationBasis,
    LaborCostItem,
    MonteCarloVariable,
    ProjectData,
    RawMaterialCostItem,
    RevenueItem,
)

logger = setup_logger(__name__)

ESTIMATION_BASIS = "estimation-basis"
REVENUE = "revenue"

_REVENUE_FIELDS = {"unitPrice": "unit_price", "unit_price": "unit_price", "quantity": "quantity"}


@dataclass(frozen=True)
class VariableTarget:
    """Where a sampled value lands: an estimation-basis field or one revenue item field."""
    section: str
    field: str
    item_id: Optional[str] = None


def parse_variable_id(variable_id: str) -> Optional[VariableTarget]:
    """Resolve a Monte Carlo variable identifier; None when it names nothing perturbable."""
    if variable_id.startswith(ESTIMATION_BASIS + ":"):
        return _basis_target(variable_id[len(ESTIMATION_BASIS) + 1:])
    if variable_id.startswith("eb-"):
        return _basis_target(variable_id[3:])

    if variable_id.startswith(REVENUE + ":"):
        item_id, sep, field = variable_id[len(REVENUE) + 1:].rpartition(":")
    elif variable_id.startswith("rev-"):
        item_id, sep, field = variable_id[4:].rpartition("-")
    else:
        return None

    name = _REVENUE_FIELDS.get(field)
    if not sep or not item_id or name is None:
        return None
    return VariableTarget(REVENUE, name, item_id)


def _basis_target(key: str) -> Optional[VariableTarget]:
    name = EstimationBasis.field_name(key)
    return VariableTarget(ESTIMATION_BASIS, name) if name else None


def resolve_variables(
    project: ProjectData, variables: Mapping[str, MonteCarloVariable]
) -> Dict[str, MonteCarloVariable]:
    """
    Active variables whose identifier lands on an existing field of `project`.

    Each unusable identifier is logged once here, so the sampling loop never has to.
    """
    revenue_ids = {item.id for item in project.operating_inputs.revenues}
    usable: Dict[str, MonteCarloVariable] = {}
    for variable_id, variable in variables.items():
        if not variable.is_active:
            continue
        target = parse_variable_id(variable_id)
        if target is None:
            logger.warning(f"Ignoring unknown Monte Carlo variable {variable_id!r}")
        elif target.section == REVENUE and target.item_id not in revenue_ids:
            logger.warning(f"No revenue item {target.item_id!r} for variable {variable_id!r}")
        else:
            usable[variable_id] = variable
    return usable


# ---------------------------------------------------------------------------
# Section builders
# ---------------------------------------------------------------------------

def with_estimation_basis(project: ProjectData, updates: Mapping[str, Any]) -> ProjectData:
    """
    Copy of `project` with some estimation-basis fields replaced.

    Keys may be aliases or field names; unknown keys are ignored. The merged basis is
    re-validated so scenario values like "Declining Balance" or a float project life
    are coerced exactly as they would be on input.
    """
    resolved: Dict[str, Any] = {}
    for key, value in updates.items():
        name = EstimationBasis.field_name(key)
        if name is None:
            logger.warning(f"Ignoring unknown estimation basis field {key!r}")
            continue
        resolved[name] = value
    if not resolved:
        return project

    merged = {**project.estimation_basis.model_dump(), **resolved}
    basis = EstimationBasis.model_validate(merged)
    return project.model_copy(update={"estimation_basis": basis})


def with_revenue_fields(
    project: ProjectData, updates: Mapping[str, Mapping[str, float]]
) -> ProjectData:
    """Copy of `project` with per-item revenue fields replaced ({item id: {field: value}})."""
    if not updates:
        return project
    revenues = [
        item.model_copy(update=dict(updates[item.id])) if item.id in updates else item
        for item in project.operating_inputs.revenues
    ]
    inputs = project.operating_inputs.model_copy(update={"revenues": revenues})
    return project.model_copy(update={"operating_inputs": inputs})


def apply_variable_samples(project: ProjectData, samples: Mapping[str, float]) -> ProjectData:
    """
    Overwrite each sampled field on a copy of `project`.

    Parameters
    ----------
    project : ProjectData
        Base project (never modified)
    samples : dict
        {variable id: sampled value}. Unknown identifiers, and revenue ids that match
        no revenue item, are skipped with a warning.
    """
    basis_updates: Dict[str, float] = {}
    revenue_updates: Dict[str, Dict[str, float]] = {}
    revenue_ids = {item.id for item in project.operating_inputs.revenues}

    for variable_id, value in samples.items():
        target = parse_variable_id(variable_id)
        if target is None:
            logger.warning(f"Ignoring unknown Monte Carlo variable {variable_id!r}")
        elif target.section == ESTIMATION_BASIS:
            basis_updates[target.field] = value
        elif target.item_id in revenue_ids:
            revenue_updates.setdefault(target.item_id, {})[target.field] = float(value)
        else:
            logger.warning(f"No revenue item {target.item_id!r} for variable {variable_id!r}")

    project = with_estimation_basis(project, basis_updates)
    return with_revenue_fields(project, revenue_updates)


# ---------------------------------------------------------------------------
# Uniform scaling (tornado perturbations)
# ---------------------------------------------------------------------------

def _scaled(items: Iterable, factor: float, fields_by_type: Dict[type, Tuple[str, ...]]) -> list:
    out = []
    for item in items:
        names = fields_by_type.get(type(item), ())
        if names:
            item = item.model_copy(update={n: getattr(item, n) * factor for n in names})
        out.append(item)
    return out


def scale_investment_cost(project: ProjectData, factor: float) -> ProjectData:
    items = [i.model_copy(update={"cost": i.cost * factor}) for i in project.capital_investment.items]
    capital = project.capital_investment.model_copy(update={"items": items})
    return project.model_copy(update={"capital_investment": capital})


def scale_revenue(project: ProjectData, factor: float) -> ProjectData:
    revenues = _scaled(project.operating_inputs.revenues, factor, {RevenueItem: ("unit_price",)})
    inputs = project.operating_inputs.model_copy(update={"revenues": revenues})
    return project.model_copy(update={"operating_inputs": inputs})


def scale_variable_costs(project: ProjectData, factor: float) -> ProjectData:
    costs = _scaled(project.operating_inputs.costs, factor, {RawMaterialCostItem: ("unit_cost",)})
    inputs = project.operating_inputs.model_copy(update={"costs": costs})
    return project.model_copy(update={"operating_inputs": inputs})


def scale_fixed_costs(project: ProjectData, factor: float) -> ProjectData:
    costs = _scaled(
        project.operating_inputs.costs,
        factor,
        {LaborCostItem: ("monthly_salary",), AdminCostItem: ("cost",)},
    )
    inputs = project.operating_inputs.model_copy(update={"costs": costs})
    return project.model_copy(update={"operating_inputs": inputs})


def scale_discount_rate(project: ProjectData, factor: float) -> ProjectData:
    basis = project.estimation_basis
    return with_estimation_basis(project, {"discount_rate": basis.discount_rate * factor})
