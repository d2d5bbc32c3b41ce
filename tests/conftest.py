"""
Shared project fixtures.

Projects are built from camelCase documents, the same shape the host application
stores, so every test also exercises schema parsing.
"""

import copy

import pytest

from core.schema import ProjectData


SIMPLE_DOC = {
    "estimationBasis": {
        "projectLife": 3,
        "discountRate": 10,
        "taxRate": 20,
        "inflationRate": 0,
        "revenueGrowthRate": 0,
        "variableCostGrowthRate": 0,
        "fixedCostGrowthRate": 0,
        "workingCapitalPercentage": 0,
        "initialCurrentAssets": 0,
        "initialCurrentLiabilities": 0,
        "initialInventory": 0,
        "ebitMultiple": 0,
    },
    "operatingInputs": {
        "revenues": [{"id": "r1", "item": "Widgets", "unitPrice": 100, "quantity": 1000}],
        "costs": [{"id": "c1", "category": "General & Admin", "item": "Office", "cost": 12000}],
    },
}


FULL_DOC = {
    "definition": {"projectName": "Bottling plant", "stakeholders": ["Town council"]},
    "estimationBasis": {
        "currency": "EUR",
        "projectLife": 8,
        "discountRate": 9,
        "taxRate": 25,
        "inflationRate": 2,
        "revenueGrowthRate": 3,
        "variableCostGrowthRate": 2,
        "fixedCostGrowthRate": 1.5,
        "depreciationMethod": "Straight-line",
        "depreciationRates": {"Buildings": 5, "Machinery": 15, "Furniture": 10, "Equipment": 20},
        "salvageValues": {"Buildings": 10, "Machinery": 5, "Furniture": 5, "Equipment": 0},
        "workingCapitalPercentage": 8,
        "initialCurrentAssets": 60000,
        "initialCurrentLiabilities": 25000,
        "initialInventory": 15000,
        "ebitMultiple": 4,
    },
    "capitalInvestment": {
        "items": [
            {"id": "a1", "category": "Buildings", "item": "Hall", "cost": 400000},
            {"id": "a2", "category": "Machinery", "item": "Line 1", "cost": 250000, "linkedTaskId": "t1"},
            {"id": "a3", "category": "Equipment", "item": "Line 2", "cost": 90000, "linkedTaskId": "t3"},
        ]
    },
    "timeline": {
        "tasks": [
            {"id": "t1", "name": "Construction", "startDate": "2024-01-01", "endDate": "2024-09-30"},
            {"id": "t2", "name": "Ramp-up", "startDate": "2024-10-01", "endDate": "2024-12-31"},
            {"id": "t3", "name": "Expansion", "startDate": "2026-03-01", "endDate": "2026-06-30"},
            {"id": "t4", "name": "Review", "startDate": "", "endDate": ""},
        ]
    },
    "operatingInputs": {
        "revenues": [
            {"id": "r1", "item": "Bottles", "unitPrice": 0.8, "quantity": 900000},
            {"id": "rev-2", "item": "Crates", "unitPrice": 12, "quantity": 6000, "linkedTaskId": "t3"},
        ],
        "costs": [
            {"id": "c1", "category": "Raw Materials", "item": "Glass", "unitCost": 0.2, "quantity": 900000},
            {"id": "c2", "category": "Labor", "item": "Operators", "count": 6, "monthlySalary": 2500},
            {"id": "c3", "category": "General & Admin", "item": "Insurance", "cost": 30000},
        ],
    },
    "financing": {
        "loans": [
            {"id": "l1", "source": "Bank", "principal": 300000, "interestRate": 6, "term": 6, "startYear": 1},
            {"id": "l2", "source": "Grant fund", "principal": 50000, "interestRate": 0, "term": 5, "startYear": 3},
        ]
    },
    "sensitivityAnalysis": {
        "scenarios": [
            {"id": "s1", "name": "Optimistic", "modifications": {"revenueGrowthRate": 6}},
            {"id": "s2", "name": "High rates", "modifications": {"discountRate": 14, "taxRate": 30}},
        ]
    },
    "monteCarlo": {
        "iterations": 300,
        "variables": {
            "estimation-basis:discountRate": {"distribution": "Triangular", "param1": 7, "param2": 9, "param3": 12},
            "revenue:r1:unitPrice": {"distribution": "PERT", "param1": 0.6, "param2": 0.8, "param3": 1.0},
            "eb-taxRate": {"distribution": "Uniform", "param1": 20, "param2": 30},
            "eb-inflationRate": {"distribution": "None", "param1": 0, "param2": 0},
        },
    },
}


@pytest.fixture
def simple_doc():
    return copy.deepcopy(SIMPLE_DOC)


@pytest.fixture
def full_doc():
    return copy.deepcopy(FULL_DOC)


@pytest.fixture
def simple_project(simple_doc):
    """3-year project: 100 x 1000 revenue, 12,000 admin cost, 20 % tax, 10 % discount."""
    return ProjectData.model_validate(simple_doc)


@pytest.fixture
def full_project(full_doc):
    """8-year project with capital items, tasks, loans, scenarios and MC variables."""
    return ProjectData.model_validate(full_doc)


@pytest.fixture
def no_revenue_project(full_doc):
    full_doc["operatingInputs"]["revenues"] = []
    return ProjectData.model_validate(full_doc)
