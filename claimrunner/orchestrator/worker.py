"""Run worker for executing test runs in the background.

Each run gets its own orchestrator and daemon thread. Only one run may be
submitting at a time, since every run draws on the same pacing budget
against the claims API.
"""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator

from ..clients import ClaimsAPIClient, SubmissionClient
from ..config import DB_PATH
from ..errors import RunInProgress
from ..models import ExecutionGroup, ExecutionOutcome
from ..payload import PayloadBuilder
from ..results import ResultAggregator, ResultStore
from ..utils import sanitize_error_message
from .runner import ExecutionOrchestrator, PacingPolicy

logger = logging.getLogger(__name__)


class RunState(str, Enum):
    """Run lifecycle values."""

    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        return self in (RunState.PENDING, RunState.RUNNING)


@dataclass
class RunRecord:
    """Bookkeeping for one background run."""

    run_id: str
    orchestrator: ExecutionOrchestrator
    total: int
    triggered_by: str | None = None
    state: RunState = RunState.PENDING
    created_at: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat()
    )
    started_at: str | None = None
    completed_at: str | None = None
    outcome_ids: list[str] = field(default_factory=list)
    error: str | None = None
    thread: threading.Thread | None = field(default=None, repr=False)

    def to_dict(self) -> dict[str, Any]:
        progress = self.orchestrator.status()
        return {
            "run_id": self.run_id,
            "state": self.state.value,
            "triggered_by": self.triggered_by,
            "created_at": self.created_at,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
            "total": self.total,
            "completed": len(self.outcome_ids),
            "current_group": progress.group,
            "current_index": progress.index,
            "cancel_requested": self.orchestrator.cancelled,
            "error": self.error,
        }


class RunWorker:
    """Worker for executing test runs.

    Coordinates background orchestrations and exposes their progress
    and cancellation handles by run id.
    """

    def __init__(
        self,
        submission_client: SubmissionClient,
        aggregator: ResultAggregator,
        builder: PayloadBuilder | None = None,
        pacing: PacingPolicy | None = None,
    ) -> None:
        """Initialize the run worker.

        Args:
            submission_client: Client every run submits through
            aggregator: Shared result collection
            builder: Payload builder
            pacing: Pacing policy shared by all runs
        """
        self.client = submission_client
        self.aggregator = aggregator
        self.builder = builder or PayloadBuilder()
        self.pacing = pacing or PacingPolicy()
        self._runs: dict[str, RunRecord] = {}
        self._lock = threading.Lock()

    def start_run(
        self,
        groups: Sequence[ExecutionGroup],
        selections: Mapping[str, Sequence[str]] | None = None,
        pacing_ms: int | None = None,
        triggered_by: str | None = None,
    ) -> str:
        """Resolve a run and start it in a background thread.

        Args:
            groups: Groups of test cases
            selections: Titles to run per group name
            pacing_ms: Delay between submissions
            triggered_by: User or system that triggered the run

        Returns:
            Run ID

        Raises:
            RunInProgress: If another run is still active
            ConfigurationError: If the selection cannot be resolved
        """
        with self._lock:
            active = self._active_run()
            if active is not None:
                raise RunInProgress(active.run_id)

            orchestrator = ExecutionOrchestrator(
                self.client,
                builder=self.builder,
                pacing=self.pacing,
                aggregator=self.aggregator,
            )
            stream = orchestrator.run(groups, pacing_ms=pacing_ms, selections=selections)

            run_id = str(uuid.uuid4())
            record = RunRecord(
                run_id=run_id,
                orchestrator=orchestrator,
                total=orchestrator.status().total,
                triggered_by=triggered_by,
            )
            record.thread = threading.Thread(
                target=self._run,
                args=(record, stream),
                name=f"run-{run_id[:8]}",
                daemon=True,
            )
            self._runs[run_id] = record

        logger.info(f"Starting run {run_id} with {record.total} test case(s)")
        record.thread.start()
        return run_id

    def cancel_run(self, run_id: str) -> bool:
        """Cancel a running run.

        Args:
            run_id: Run ID to cancel

        Returns:
            True if cancellation was signaled
        """
        with self._lock:
            record = self._runs.get(run_id)
            if record is None or not record.state.is_active:
                return False
        record.orchestrator.cancel()
        return True

    def get_run(self, run_id: str) -> dict[str, Any] | None:
        with self._lock:
            record = self._runs.get(run_id)
            return record.to_dict() if record else None

    def list_runs(self) -> list[dict[str, Any]]:
        """List runs, newest first."""
        with self._lock:
            records = list(self._runs.values())
            return [record.to_dict() for record in reversed(records)]

    def run_outcomes(self, run_id: str) -> list[ExecutionOutcome] | None:
        """Current outcomes of a run, including any refreshed status."""
        with self._lock:
            record = self._runs.get(run_id)
            if record is None:
                return None
            outcome_ids = list(record.outcome_ids)
        outcomes = (self.aggregator.get(outcome_id) for outcome_id in outcome_ids)
        return [outcome for outcome in outcomes if outcome is not None]

    def wait(self, run_id: str, timeout: float | None = None) -> bool:
        """Block until a run finishes.

        Returns:
            True if the run is no longer active
        """
        with self._lock:
            record = self._runs.get(run_id)
        if record is None:
            return True
        if record.thread is not None:
            record.thread.join(timeout)
        return not record.state.is_active

    def _active_run(self) -> RunRecord | None:
        for record in self._runs.values():
            if record.state.is_active:
                return record
        return None

    def _run(self, record: RunRecord, stream: Iterator[ExecutionOutcome]) -> None:
        with self._lock:
            record.state = RunState.RUNNING
            record.started_at = datetime.now(timezone.utc).isoformat()

        try:
            for outcome in stream:
                with self._lock:
                    record.outcome_ids.append(outcome.id)
        except Exception as e:
            logger.exception(f"Run {record.run_id} failed")
            with self._lock:
                record.state = RunState.FAILED
                record.error = sanitize_error_message(str(e))
        else:
            cancelled = record.orchestrator.status().cancelled
            with self._lock:
                record.state = RunState.CANCELLED if cancelled else RunState.SUCCESS
            logger.info(
                f"Run {record.run_id} {record.state.value}: "
                f"{len(record.outcome_ids)}/{record.total} test case(s) executed"
            )
        finally:
            with self._lock:
                record.completed_at = datetime.now(timezone.utc).isoformat()


# Global worker instance
_worker_instance: RunWorker | None = None


def get_worker() -> RunWorker:
    """Get or create the global worker instance.

    The default worker submits through a `ClaimsAPIClient` configured from
    the environment and persists outcomes to `DB_PATH`.

    Returns:
        Global RunWorker instance
    """
    global _worker_instance

    if _worker_instance is None:
        client = ClaimsAPIClient()
        aggregator = ResultAggregator(refresh_client=client, store=ResultStore(DB_PATH))
        _worker_instance = RunWorker(client, aggregator)

    return _worker_instance


def set_worker(worker: RunWorker | None) -> None:
    """Replace the global worker instance (None resets it)."""
    global _worker_instance
    _worker_instance = worker
