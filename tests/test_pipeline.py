import math

import numpy as np
import pytest

from core.schema import ProjectData
from engine import calculate_financial_outputs


def _same(a, b):
    return (math.isnan(a) and math.isnan(b)) or a == b


class TestEndToEnd:
    def test_simple_project_cash_flows(self, simple_project):
        out = calculate_financial_outputs(simple_project)

        first = out.cash_flow_statement[0]
        assert first.revenue == 100_000
        assert first.operating_costs == 12_000
        assert first.ebit == 88_000
        assert first.tax == pytest.approx(17_600)
        assert first.nopat == pytest.approx(70_400)
        assert first.unlevered_free_cash_flow == pytest.approx(70_400)
        np.testing.assert_allclose(out.unlevered_free_cash_flows, [0, 70_400, 70_400, 70_400])

    def test_simple_project_kpis(self, simple_project):
        out = calculate_financial_outputs(simple_project)
        expected_npv = sum(70_400 / 1.1 ** t for t in (1, 2, 3))
        assert out.npv == pytest.approx(expected_npv)
        assert out.npv == pytest.approx(175_074.38, abs=0.01)
        assert out.dcf_valuation == out.npv
        # no outlay: nothing to pay back, no sign change, no investment base
        assert out.payback_period == -1
        assert math.isnan(out.irr)
        assert out.roi == 0

    def test_simple_project_year_one_kpis(self, simple_project):
        out = calculate_financial_outputs(simple_project)
        assert out.gross_profit_margin_y1 == pytest.approx(100)
        assert out.operating_profit_margin_y1 == pytest.approx(88)
        assert out.net_profit_margin_y1 == pytest.approx(70.4)
        assert out.break_even_revenue == pytest.approx(12_000)


class TestOutputShape:
    def test_array_lengths(self, full_project):
        out = calculate_financial_outputs(full_project)
        life = full_project.estimation_basis.project_life
        for series in (
            out.revenue_schedule,
            out.operating_cost_schedule,
            out.variable_cost_schedule,
            out.fixed_cost_schedule,
            out.depreciation_schedule,
            out.capex_schedule,
            out.working_capital_schedule,
            out.cash_flow_statement,
            out.break_even_analysis,
            out.loan_amortization_schedule,
            out.time_based_break_even,
            out.debt_to_equity_ratio_schedule,
            out.financial_ratios.gross_margin,
            out.financial_ratios.operating_margin,
            out.financial_ratios.net_margin,
        ):
            assert len(series) == life
        assert len(out.unlevered_free_cash_flows) == life + 1

    def test_deterministic(self, full_project):
        a = calculate_financial_outputs(full_project)
        b = calculate_financial_outputs(full_project)
        for key, value in a.kpis().items():
            assert _same(value, b.kpis()[key]), key
        np.testing.assert_array_equal(a.unlevered_free_cash_flows, b.unlevered_free_cash_flows)
        assert a.cash_flow_statement == b.cash_flow_statement
        assert a.loan_amortization_schedule == b.loan_amortization_schedule

    def test_zero_life_project(self, full_doc):
        full_doc["estimationBasis"]["projectLife"] = 0
        out = calculate_financial_outputs(ProjectData.model_validate(full_doc))
        assert len(out.revenue_schedule) == 0
        assert out.cash_flow_statement == []
        assert len(out.unlevered_free_cash_flows) == 1
        assert math.isnan(out.irr)
        assert out.payback_period == -1
        assert out.enterprise_value == 0
        assert out.gross_profit_margin_y1 == 0

    def test_negative_life_is_treated_as_zero(self, simple_doc):
        simple_doc["estimationBasis"]["projectLife"] = -4
        out = calculate_financial_outputs(ProjectData.model_validate(simple_doc))
        assert len(out.unlevered_free_cash_flows) == 1

    def test_degenerate_numbers_never_raise(self, full_doc):
        full_doc["estimationBasis"]["discountRate"] = -100
        full_doc["estimationBasis"]["taxRate"] = float("nan")
        full_doc["operatingInputs"]["revenues"][0]["unitPrice"] = float("inf")
        full_doc["financing"]["loans"][0]["interestRate"] = 1e6
        out = calculate_financial_outputs(ProjectData.model_validate(full_doc))
        assert len(out.cash_flow_statement) == 8


class TestFullProject:
    def test_year_zero_outlay_excludes_in_life_capex(self, full_project):
        out = calculate_financial_outputs(full_project)
        # 740k of assets, 90k of it spent in year 3; WC0 = 60k - 25k
        assert out.capex_schedule[2] == 90_000
        assert out.unlevered_free_cash_flows[0] == pytest.approx(-(650_000 + 35_000))

    def test_final_year_adds_terminal_salvage_and_working_capital(self, full_project):
        out = calculate_financial_outputs(full_project)
        last = out.cash_flow_statement[-1]
        salvage = 400_000 * 0.10 + 250_000 * 0.05 + 90_000 * 0.0
        terminal = last.ebit * 4 if last.ebit > 0 else 0
        recovered_wc = out.working_capital_schedule[-1].wc
        operating_flow = last.nopat + last.depreciation - last.change_in_wc - last.capex
        assert last.unlevered_free_cash_flow == pytest.approx(
            operating_flow + terminal + salvage + recovered_wc
        )
        assert out.enterprise_value == pytest.approx(terminal)

    def test_working_capital_changes(self, full_project):
        out = calculate_financial_outputs(full_project)
        wc = out.working_capital_schedule
        assert wc[0].change_in_wc == pytest.approx(wc[0].wc - 35_000)
        assert wc[1].change_in_wc == pytest.approx(wc[1].wc - wc[0].wc)
        assert wc[0].wc == pytest.approx(out.revenue_schedule[0] * 0.08)

    def test_balance_sheet_ratios(self, full_project):
        out = calculate_financial_outputs(full_project)
        assert out.debt_to_equity_ratio == pytest.approx(350_000 / 425_000)
        assert out.debt_to_assets_ratio == pytest.approx(350_000 / 800_000)
        assert out.current_ratio == pytest.approx(2.4)
        assert out.quick_ratio == pytest.approx(1.8)

    def test_ratio_sentinels(self, full_doc):
        full_doc["estimationBasis"]["initialCurrentLiabilities"] = 0
        full_doc["financing"]["loans"][0]["principal"] = 5_000_000
        out = calculate_financial_outputs(ProjectData.model_validate(full_doc))
        assert out.current_ratio == math.inf
        assert out.quick_ratio == math.inf
        assert out.debt_to_equity_ratio == math.inf
        assert out.debt_to_equity_ratio_schedule[0] is None

    def test_time_based_break_even_starts_at_outlay(self, full_project):
        out = calculate_financial_outputs(full_project)
        first = out.time_based_break_even[0]
        assert first.cumulative_revenue == pytest.approx(out.revenue_schedule[0])
        assert first.cumulative_costs == pytest.approx(685_000 + out.operating_cost_schedule[0])

    def test_time_based_break_even_year(self, simple_project, no_revenue_project):
        assert calculate_financial_outputs(simple_project).time_based_break_even_year() == 1
        assert calculate_financial_outputs(no_revenue_project).time_based_break_even_year() is None

    def test_loan_schedule_is_consolidated(self, full_project):
        out = calculate_financial_outputs(full_project)
        rows = out.loan_amortization_schedule
        assert rows[0].opening_balance == 300_000
        assert rows[2].opening_balance == pytest.approx(rows[1].closing_balance + 50_000)

    def test_year_one_kpis_skip_pre_revenue_years(self, simple_doc):
        simple_doc["timeline"] = {
            "tasks": [
                {"id": "t0", "startDate": "2024-01-01"},
                {"id": "t1", "startDate": "2025-02-01"},
            ]
        }
        simple_doc["operatingInputs"]["revenues"][0]["linkedTaskId"] = "t1"
        out = calculate_financial_outputs(ProjectData.model_validate(simple_doc))
        assert out.revenue_schedule[0] == 0
        assert out.first_operating_year() == 2
        assert out.operating_profit_margin_y1 == pytest.approx(out.financial_ratios.operating_margin[1])
        assert out.financial_ratios.operating_margin[0] == 0

    def test_net_margin_includes_interest(self, full_project):
        out = calculate_financial_outputs(full_project)
        assert out.financial_ratios.net_margin[0] < out.financial_ratios.operating_margin[0]


class TestTabularViews:
    def test_cash_flow_dataframe(self, full_project):
        df = calculate_financial_outputs(full_project).cash_flow_dataframe()
        assert len(df) == 8
        assert list(df.columns)[:3] == ["year", "revenue", "operating_costs"]
        assert df["year"].tolist() == list(range(1, 9))

    def test_schedules_dataframe(self, full_project):
        out = calculate_financial_outputs(full_project)
        df = out.schedules_dataframe()
        assert df.index.tolist() == list(range(1, 9))
        assert df["revenue"].tolist() == out.revenue_schedule.tolist()
        assert "loan_interest" in df.columns


class TestSchemaParsing:
    def test_cost_items_are_discriminated(self, full_project):
        kinds = [type(c).__name__ for c in full_project.operating_inputs.costs]
        assert kinds == ["RawMaterialCostItem", "LaborCostItem", "AdminCostItem"]
        assert [c.base_cost() for c in full_project.operating_inputs.costs] == pytest.approx(
            [180_000, 180_000, 30_000]
        )

    def test_empty_task_dates(self, full_project):
        review = full_project.timeline.tasks[-1]
        assert review.start_date is None and review.end_date is None

    def test_snake_case_keys_accepted(self):
        project = ProjectData.model_validate({"estimation_basis": {"project_life": 4.9}})
        assert project.estimation_basis.project_life == 4

    def test_frozen(self, simple_project):
        with pytest.raises(Exception):
            simple_project.estimation_basis.discount_rate = 5
