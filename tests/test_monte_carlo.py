import math
import queue
import threading
from types import SimpleNamespace

import numpy as np
import pytest

from core.config import SimulationConfig
from engine import SimulationCancelled, calculate_financial_outputs, run_monte_carlo
from engine.runner import _drain_progress, _run_chunk, run_iterations
from risk import KpiCollector, merge_vectors, summarize_vector
from risk.aggregator import KPI_NAMES, aggregate_kpi_vectors, probability_above
from scenarios.overrides import resolve_variables


class TestSummaries:
    def test_four_values(self):
        stats = summarize_vector([4, 1, 3, 2])
        assert stats.mean == 2.5
        assert stats.median == 2.5
        assert stats.std_dev == pytest.approx(math.sqrt(5 / 3))
        assert (stats.p10, stats.p25, stats.p75, stats.p90) == (1, 2, 4, 4)

    def test_odd_count_median(self):
        assert summarize_vector([9, 1, 5]).median == 5

    def test_single_value_has_zero_spread(self):
        stats = summarize_vector([5])
        assert stats.std_dev == 0
        assert stats.p10 == stats.p90 == 5

    def test_empty_vector_is_nan(self):
        stats = summarize_vector([])
        assert all(math.isnan(v) for v in (stats.mean, stats.median, stats.std_dev, stats.p90))

    def test_probability_above(self):
        assert probability_above([-1, 0, 1, 2], 0) == 0.5
        assert probability_above([], 0) == 0

    def test_wire_shape(self):
        results = aggregate_kpi_vectors(
            {"npv": np.array([1.0, -1.0]), "irr": np.array([12.0]), "roi": np.array([]), "payback_period": np.array([3.0])},
            discount_rate=10,
            iterations=2,
        )
        wire = results.results_dict()
        assert set(wire) == {
            "npv",
            "irr",
            "roi",
            "paybackPeriod",
            "probabilityNPVPositive",
            "probabilityIRRgtDiscountRate",
        }
        assert set(wire["npv"]) == {"mean", "median", "stdDev", "p10", "p25", "p75", "p90"}
        assert wire["probabilityNPVPositive"] == 0.5
        assert wire["probabilityIRRgtDiscountRate"] == 1.0
        assert results.raw_data_dict()["paybackPeriod"] == [3.0]

    def test_unknown_kpi(self):
        results = aggregate_kpi_vectors({}, discount_rate=10)
        with pytest.raises(KeyError):
            results.stats("ebitda")


class TestCollector:
    def test_filters_non_finite_and_unpaid(self):
        collector = KpiCollector()
        collector.add(SimpleNamespace(npv=1.0, irr=math.nan, roi=math.inf, payback_period=-1))
        collector.add(SimpleNamespace(npv=-2.0, irr=8.0, roi=5.0, payback_period=3.5))
        vectors = collector.vectors()
        assert vectors["npv"].tolist() == [1.0, -2.0]
        assert vectors["irr"].tolist() == [8.0]
        assert vectors["roi"].tolist() == [5.0]
        assert vectors["payback_period"].tolist() == [3.5]

    def test_merge_keeps_chunk_order(self):
        a = {k: np.array([1.0]) for k in KPI_NAMES}
        b = {k: np.array([2.0, 3.0]) for k in KPI_NAMES}
        assert merge_vectors([a, b])["npv"].tolist() == [1.0, 2.0, 3.0]
        assert merge_vectors([])["irr"].size == 0


class TestRunMonteCarlo:
    def test_project_without_revenue_short_circuits(self, no_revenue_project):
        calls = []
        results = run_monte_carlo(no_revenue_project, progress_callback=calls.append)
        assert calls == []
        assert results.npv.mean == 0 and results.npv.std_dev == 0
        assert results.probability_npv_positive == 0
        assert results.iterations == 0

    def test_statistics_are_ordered(self, full_project):
        results = run_monte_carlo(full_project, SimulationConfig(seed=42))
        for kpi in ("npv", "irr", "roi"):
            s = results.stats(kpi)
            assert s.p10 <= s.p25 <= s.median <= s.p75 <= s.p90
            assert s.std_dev > 0
        assert len(results.raw_data["npv"]) == 300
        assert 0 <= results.probability_npv_positive <= 1
        assert 0 <= results.probability_irr_above_discount_rate <= 1

    def test_seed_reproducibility(self, full_project):
        a = run_monte_carlo(full_project, SimulationConfig(iterations=50, seed=9))
        b = run_monte_carlo(full_project, SimulationConfig(iterations=50, seed=9))
        c = run_monte_carlo(full_project, SimulationConfig(iterations=50, seed=10))
        np.testing.assert_array_equal(a.raw_data["npv"], b.raw_data["npv"])
        assert a.npv == b.npv
        assert not np.array_equal(a.raw_data["npv"], c.raw_data["npv"])

    def test_no_active_variables_reproduce_base_case(self, simple_project):
        results = run_monte_carlo(simple_project, SimulationConfig(iterations=20, seed=1))
        base = calculate_financial_outputs(simple_project)
        assert results.npv.mean == pytest.approx(base.npv)
        assert results.npv.std_dev == 0
        # no outlay: IRR and payback observations are all dropped
        assert math.isnan(results.irr.mean)
        assert results.raw_data["payback_period"].size == 0
        assert results.probability_irr_above_discount_rate == 0

    def test_progress_is_reported_each_percent(self, full_project):
        calls = []
        run_monte_carlo(full_project, SimulationConfig(iterations=200, seed=3), progress_callback=calls.append)
        assert len(calls) == 100
        assert calls == sorted(calls)
        assert calls[-1] == pytest.approx(100)

    def test_small_runs_report_every_iteration(self, full_project):
        calls = []
        run_monte_carlo(full_project, SimulationConfig(iterations=5, seed=3), progress_callback=calls.append)
        assert calls == pytest.approx([20, 40, 60, 80, 100])

    def test_cancel_before_start(self, full_project):
        event = threading.Event()
        event.set()
        with pytest.raises(SimulationCancelled):
            run_monte_carlo(full_project, SimulationConfig(iterations=10), cancel_event=event)

    def test_cancel_mid_run(self, full_project):
        event = threading.Event()

        def on_progress(pct):
            if pct >= 50:
                event.set()

        with pytest.raises(SimulationCancelled):
            run_monte_carlo(
                full_project,
                SimulationConfig(iterations=100, seed=1),
                progress_callback=on_progress,
                cancel_event=event,
            )

    def test_zero_iterations(self, full_project):
        results = run_monte_carlo(full_project, SimulationConfig(iterations=0))
        assert math.isnan(results.npv.mean)
        assert results.probability_npv_positive == 0


class TestParallel:
    def test_chunks_match_sequential_streams(self, full_project):
        seed = 123
        results = run_monte_carlo(full_project, SimulationConfig(iterations=40, seed=seed, n_workers=2))

        variables = resolve_variables(full_project, full_project.monte_carlo.variables)
        children = np.random.SeedSequence(seed).spawn(2)
        expected = merge_vectors(
            run_iterations(full_project, variables, 20, seed=child) for child in children
        )
        np.testing.assert_allclose(results.raw_data["npv"], expected["npv"])
        assert results.iterations == 40

    def test_parallel_progress_is_monotonic(self, full_project):
        calls = []
        run_monte_carlo(
            full_project,
            SimulationConfig(iterations=30, seed=5, n_workers=3),
            progress_callback=calls.append,
        )
        assert calls == sorted(set(calls))
        assert calls[-1] == pytest.approx(100)

    def test_chunk_reports_iterations_through_queue(self, full_project):
        variables = resolve_variables(full_project, full_project.monte_carlo.variables)
        updates = queue.Queue()
        vectors = _run_chunk(
            full_project, variables, 10, np.random.SeedSequence(3), 100, updates, 1
        )
        reported = []
        while not updates.empty():
            reported.append(updates.get_nowait())
        assert reported == [(1, n) for n in range(1, 11)]
        assert len(vectors["npv"]) <= 10

    def test_drain_keeps_furthest_count_per_chunk(self):
        updates = queue.Queue()
        for item in [(0, 4), (1, 2), (0, 3), (1, 5)]:
            updates.put(item)
        done = [0, 0, 7]
        _drain_progress(updates, done)
        assert done == [4, 5, 7]
        _drain_progress(None, done)
        assert done == [4, 5, 7]
