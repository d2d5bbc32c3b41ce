"""
Monte Carlo driver — repeatedly re-runs the deterministic pipeline under sampled inputs.

Flow:
  1. Pre-check: run the base case once. A project that never earns revenue would only
     produce degenerate KPIs, so it short-circuits to an all-zero result set without
     drawing a single sample.
  2. For each iteration: draw one value per active variable (in configured order),
     build a perturbed copy of the project, run calculate_financial_outputs(), and
     collect npv / irr / roi / payback (non-finite observations dropped).
  3. Reduce the collected vectors to statistics + probabilities (risk.aggregator).

Every iteration works on its own copy of the project, so iterations are independent.
With n_workers > 1 the run is split into contiguous chunks executed in separate
processes; each chunk has its own random stream (spawned from one SeedSequence) and
its own Normal spare cache, and the chunk vectors are concatenated in chunk order.

Progress is reported as a percentage through `progress_callback` roughly every
1 / progress_steps of the run. In multi-process mode each chunk reports at the
same granularity through a managed queue and the driver publishes the combined
percentage.
Cancellation is cooperative: `cancel_event` is checked between iterations (between
chunks in multi-process mode) and raises SimulationCancelled; partial samples are
discarded.
"""

from __future__ import annotations

import multiprocessing
import queue
import threading
from concurrent.futures import FIRST_COMPLETED, ProcessPoolExecutor, wait
from contextlib import nullcontext
from typing import Callable, Dict, List, Mapping, Optional

import numpy as np

from core.config import SimulationConfig
from core.logger import LogContext, setup_logger
from core.schema import MonteCarloVariable, ProjectData
from distributions.sampler import DistributionSampler, SeedLike
from risk.aggregator import MonteCarloResults, aggregate_kpi_vectors, zero_results
from risk.metrics import KpiCollector, merge_vectors
from scenarios.overrides import apply_variable_samples, resolve_variables

from .cashflow import calculate_financial_outputs

logger = setup_logger(__name__)

ProgressCallback = Callable[[float], None]


class SimulationCancelled(Exception):
    """Raised inside the driver when the caller asked the run to stop."""


def run_iterations(
    project: ProjectData,
    variables: Mapping[str, MonteCarloVariable],
    iterations: int,
    *,
    seed: SeedLike = None,
    progress_steps: int = 100,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> Dict[str, np.ndarray]:
    """
    Run `iterations` sampled pipeline evaluations and return the filtered KPI vectors.

    Parameters
    ----------
    project : ProjectData
        Base inputs (never modified)
    variables : dict
        {variable id: MonteCarloVariable}, already restricted to usable, active ones
    iterations : int
        Number of pipeline evaluations
    seed : int or SeedSequence, optional
        Seed for this run's own DistributionSampler

    Returns
    -------
    {kpi: np.ndarray} for npv, irr, roi, payback_period
    """
    sampler = DistributionSampler(seed)
    collector = KpiCollector()
    report_every = max(1, iterations // max(int(progress_steps), 1))

    for i in range(iterations):
        if cancel_event is not None and cancel_event.is_set():
            raise SimulationCancelled(f"cancelled after {i} of {iterations} iterations")

        samples = {vid: sampler.sample(variable) for vid, variable in variables.items()}
        perturbed = apply_variable_samples(project, samples) if samples else project
        collector.add(calculate_financial_outputs(perturbed))

        if progress_callback is not None and (i + 1) % report_every == 0:
            progress_callback((i + 1) / iterations * 100)

    return collector.vectors()


def _run_chunk(
    project: ProjectData,
    variables: Dict[str, MonteCarloVariable],
    iterations: int,
    seed: np.random.SeedSequence,
    progress_steps: int = 100,
    progress_queue=None,
    chunk: int = 0,
) -> Dict[str, np.ndarray]:
    # executed in a worker process; progress goes back as (chunk, iterations done)
    report = None
    if progress_queue is not None:
        def report(pct: float) -> None:
            progress_queue.put((chunk, round(pct / 100 * iterations)))

    return run_iterations(
        project,
        variables,
        iterations,
        seed=seed,
        progress_steps=progress_steps,
        progress_callback=report,
    )


def _chunk_sizes(iterations: int, n_chunks: int) -> List[int]:
    sizes = [len(c) for c in np.array_split(np.arange(iterations), n_chunks)]
    return [s for s in sizes if s > 0]


def _drain_progress(progress_queue, done: List[int]) -> None:
    if progress_queue is None:
        return
    while True:
        try:
            chunk, count = progress_queue.get_nowait()
        except queue.Empty:
            return
        done[chunk] = max(done[chunk], count)


def _run_parallel(
    project: ProjectData,
    variables: Dict[str, MonteCarloVariable],
    iterations: int,
    cfg: SimulationConfig,
    progress_callback: Optional[ProgressCallback],
    cancel_event: Optional[threading.Event],
) -> Dict[str, np.ndarray]:
    sizes = _chunk_sizes(iterations, cfg.n_workers)
    seeds = np.random.SeedSequence(cfg.seed).spawn(len(sizes))
    results: List[Optional[Dict[str, np.ndarray]]] = [None] * len(sizes)
    done = [0] * len(sizes)
    reported = 0.0

    # a managed queue is the only channel the chunk processes can report through
    manager = multiprocessing.Manager() if progress_callback is not None else nullcontext()
    with manager as shared:
        progress_queue = shared.Queue() if shared is not None else None
        executor = ProcessPoolExecutor(max_workers=len(sizes))
        try:
            pending = {
                executor.submit(
                    _run_chunk, project, variables, size, seed, cfg.progress_steps, progress_queue, idx
                ): idx
                for idx, (size, seed) in enumerate(zip(sizes, seeds))
            }
            while pending:
                finished, _ = wait(pending, timeout=0.1, return_when=FIRST_COMPLETED)
                if cancel_event is not None and cancel_event.is_set():
                    raise SimulationCancelled(f"cancelled after {sum(done)} of {iterations} iterations")
                _drain_progress(progress_queue, done)
                for future in finished:
                    idx = pending.pop(future)
                    results[idx] = future.result()
                    done[idx] = sizes[idx]

                pct = sum(done) / iterations * 100
                if progress_callback is not None and pct > reported:
                    reported = pct
                    progress_callback(pct)
        finally:
            executor.shutdown(wait=True, cancel_futures=True)

    return merge_vectors(results)


def run_monte_carlo(
    project: ProjectData,
    config: Optional[SimulationConfig] = None,
    *,
    progress_callback: Optional[ProgressCallback] = None,
    cancel_event: Optional[threading.Event] = None,
) -> MonteCarloResults:
    """
    Full Monte Carlo risk simulation for one project.

    Parameters
    ----------
    project : ProjectData
        Inputs, including monteCarlo.iterations and monteCarlo.variables
    config : SimulationConfig, optional
        Iteration override, seed, progress granularity, worker processes
    progress_callback : callable, optional
        Called with a percentage in (0, 100]
    cancel_event : threading.Event, optional
        Set it to stop the run; SimulationCancelled is raised

    Returns
    -------
    MonteCarloResults (statistics, probabilities and the raw KPI vectors)
    """
    cfg = config or SimulationConfig()
    iterations = cfg.resolve_iterations(project.monte_carlo.iterations)

    base = calculate_financial_outputs(project)
    if base.first_operating_year() is None:
        logger.info("Project never earns revenue; returning zero Monte Carlo results")
        return zero_results()

    variables = resolve_variables(project, project.monte_carlo.variables)
    parallel = cfg.n_workers > 1 and iterations > 1

    with LogContext(
        logger,
        f"Monte Carlo simulation ({iterations} iterations, {len(variables)} variables, "
        f"{cfg.n_workers if parallel else 1} worker(s))",
    ):
        if parallel:
            vectors = _run_parallel(project, variables, iterations, cfg, progress_callback, cancel_event)
        else:
            vectors = run_iterations(
                project,
                variables,
                iterations,
                seed=cfg.seed,
                progress_steps=cfg.progress_steps,
                progress_callback=progress_callback,
                cancel_event=cancel_event,
            )

    return aggregate_kpi_vectors(
        vectors,
        discount_rate=project.estimation_basis.discount_rate,
        iterations=iterations,
    )
