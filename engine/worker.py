"""
Background simulation worker and its message protocol.

One request (start a simulation for a ProjectData) is answered by a stream of
messages on a queue:

    ProgressMessage  {"type": "progress", "progress": 0..100}     zero or more
    ResultMessage    {"type": "result", "results": ..., "rawData": ...}
    ErrorMessage     {"type": "error", "error": "..."}

and exactly one terminal message (result OR error) per run. At most one run is
active per worker: starting a new run cancels the previous one first, and the
cancelled run terminates with ErrorMessage("Simulation cancelled").

Usage:
    worker = SimulationWorker(SimulationConfig(seed=7))
    worker.start(project)
    for message in worker.messages():
        if isinstance(message, ProgressMessage):
            print(f"{message.progress:.0f}%")
    # the last message is a ResultMessage or an ErrorMessage
"""

from __future__ import annotations

import queue
import threading
from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional, Union

from core.config import SimulationConfig
from core.logger import setup_logger
from core.schema import ProjectData
from risk.aggregator import MonteCarloResults

from .runner import SimulationCancelled, run_monte_carlo

logger = setup_logger(__name__)

CANCELLED_MESSAGE = "Simulation cancelled"


@dataclass(frozen=True)
class ProgressMessage:
    progress: float

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "progress", "progress": self.progress}


@dataclass(frozen=True)
class ResultMessage:
    results: MonteCarloResults

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "result",
            "results": self.results.results_dict(),
            "rawData": self.results.raw_data_dict(),
        }


@dataclass(frozen=True)
class ErrorMessage:
    error: str

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "error", "error": self.error}


Message = Union[ProgressMessage, ResultMessage, ErrorMessage]


class SimulationWorker:
    """Runs one Monte Carlo simulation at a time on a dedicated background thread."""

    def __init__(self, config: Optional[SimulationConfig] = None):
        self.config = config or SimulationConfig()
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._cancel_event: Optional[threading.Event] = None
        self._queue: Optional["queue.Queue[Message]"] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, project: ProjectData) -> "queue.Queue[Message]":
        """Start a run (cancelling any active one) and return its message queue."""
        with self._lock:
            self._stop_current()
            messages: "queue.Queue[Message]" = queue.Queue()
            cancel_event = threading.Event()
            thread = threading.Thread(
                target=self._run,
                args=(project, messages, cancel_event),
                name="monte-carlo-worker",
                daemon=True,
            )
            self._queue, self._cancel_event, self._thread = messages, cancel_event, thread
            thread.start()
            return messages

    def cancel(self, timeout: Optional[float] = None) -> None:
        """Ask the active run to stop and wait for its thread to finish."""
        with self._lock:
            self._stop_current(timeout)

    def messages(self, timeout: Optional[float] = None) -> Iterator[Message]:
        """
        Yield messages of the current run up to and including its terminal message.

        `timeout` bounds the wait for each message; queue.Empty is raised on expiry.
        """
        if self._queue is None:
            raise RuntimeError("No simulation has been started.")
        messages = self._queue
        while True:
            message = messages.get(timeout=timeout)
            yield message
            if not isinstance(message, ProgressMessage):
                return

    def run(self, project: ProjectData, timeout: Optional[float] = None) -> MonteCarloResults:
        """Start a run and block until it finishes; an ErrorMessage raises RuntimeError."""
        self.start(project)
        terminal: Optional[Message] = None
        for terminal in self.messages(timeout):
            pass
        if isinstance(terminal, ResultMessage):
            return terminal.results
        raise RuntimeError(terminal.error if terminal is not None else "No result")

    # --- internals --------------------------------------------------------

    def _stop_current(self, timeout: Optional[float] = None) -> None:
        if self._thread is not None and self._thread.is_alive():
            logger.info("Cancelling running simulation")
            self._cancel_event.set()
            self._thread.join(timeout)

    def _run(
        self,
        project: ProjectData,
        messages: "queue.Queue[Message]",
        cancel_event: threading.Event,
    ) -> None:
        try:
            results = run_monte_carlo(
                project,
                self.config,
                progress_callback=lambda pct: messages.put(ProgressMessage(pct)),
                cancel_event=cancel_event,
            )
        except SimulationCancelled as exc:
            logger.info(f"Simulation stopped: {exc}")
            messages.put(ErrorMessage(CANCELLED_MESSAGE))
        except Exception as exc:
            logger.exception("Simulation worker error")
            messages.put(ErrorMessage(str(exc) or exc.__class__.__name__))
        else:
            messages.put(ResultMessage(results))
