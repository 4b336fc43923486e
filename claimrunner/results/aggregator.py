"""Result aggregator: append-only outcome collection with targeted refresh."""

from __future__ import annotations

import copy
import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Iterator

from ..clients.base import RefreshClient
from ..errors import ConfigurationError, RefreshUnavailable
from ..evaluation import is_terminal_state, parse_kind
from ..models import ExecutionOutcome, OutcomeStatus, TestKind
from .store import ResultStore

logger = logging.getLogger(__name__)

OutcomeListener = Callable[[ExecutionOutcome], None]


@dataclass
class _ClaimLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


@dataclass(frozen=True)
class RefreshUpdate:
    """Fields written to every outcome of a refreshed claim."""

    claim_id: str
    outcome: str
    status: OutcomeStatus
    message: str
    timestamp: str
    updated: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "claim_id": self.claim_id,
            "outcome": self.outcome,
            "status": self.status.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "updated": self.updated,
        }


class ResultAggregator:
    """Ordered, append-only collection of execution outcomes.

    Outcomes are only ever mutated by `refresh`, which rewrites status,
    message, outcome and timestamp of the outcomes sharing a claim id.
    Mutations of one claim are serialized behind a per-claim lock, so
    refreshes of different claims never block each other.
    """

    def __init__(
        self,
        refresh_client: RefreshClient | None = None,
        store: ResultStore | None = None,
    ) -> None:
        self.refresh_client = refresh_client
        self.store = store
        self._outcomes: list[ExecutionOutcome] = []
        self._lock = threading.Lock()
        self._claim_locks: dict[str, _ClaimLock] = {}
        self._listeners: list[OutcomeListener] = []

    def __len__(self) -> int:
        with self._lock:
            return len(self._outcomes)

    def __iter__(self) -> Iterator[ExecutionOutcome]:
        return iter(self.outcomes())

    def subscribe(self, listener: OutcomeListener) -> None:
        """Register an observer called with every appended outcome."""
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: OutcomeListener) -> None:
        with self._lock:
            if listener in self._listeners:
                self._listeners.remove(listener)

    def append(self, outcome: ExecutionOutcome) -> None:
        """Add an outcome to the end of the collection.

        Raises:
            ValueError: If the outcome is still running
        """
        if not outcome.status.is_terminal:
            raise ValueError(
                f"Cannot store outcome {outcome.id} while it is still running"
            )

        if outcome.claim_id:
            with self._claim_guard(outcome.claim_id):
                self._append(outcome)
        else:
            self._append(outcome)

        if self.store is not None:
            try:
                self.store.save(outcome)
            except sqlite3.Error as e:
                logger.error(f"Failed to persist outcome {outcome.id}: {e}")

        with self._lock:
            listeners = list(self._listeners)
        for listener in listeners:
            try:
                listener(outcome)
            except Exception:
                logger.exception(f"Outcome listener failed for {outcome.id}")

    def refresh(
        self, claim_id: str, hint: TestKind | str | None = None
    ) -> RefreshUpdate:
        """Re-read a claim's status and update every outcome that references it.

        The system of record is always queried, so claims recorded by an
        earlier process (and only present in the store) can be refreshed too.

        Args:
            claim_id: Remote claim identifier
            hint: Test kind used to grade the new state; defaults to the kind
                of the stored outcome

        Returns:
            RefreshUpdate with the fields written to the stored outcomes

        Raises:
            ClaimNotFound: If the remote side has no record of the claim
            RefreshUnavailable: If the claim has no terminal status yet
            ValueError: If the hint is not a known test kind
        """
        if self.refresh_client is None:
            raise ConfigurationError("No refresh client configured")

        with self._claim_guard(claim_id):
            with self._lock:
                matches = [o for o in self._outcomes if o.claim_id == claim_id]

            if hint is None:
                hint = matches[0].kind if matches else self._stored_kind(claim_id)
            if hint is not None:
                hint = parse_kind(hint)

            result = self.refresh_client.fetch_status(claim_id, hint)
            if not is_terminal_state(result.outcome):
                logger.info(
                    f"Claim {claim_id} not refreshed, still '{result.outcome or 'no status'}'"
                )
                raise RefreshUnavailable(claim_id, result.outcome)

            timestamp = datetime.now(timezone.utc).isoformat()
            with self._lock:
                for outcome in matches:
                    outcome.status = result.status
                    outcome.message = result.message
                    outcome.outcome = result.outcome
                    outcome.timestamp = timestamp

            persisted = 0
            if self.store is not None:
                try:
                    persisted = self.store.update_claim_status(
                        claim_id, result.status, result.outcome, result.message, timestamp
                    )
                except sqlite3.Error as e:
                    logger.error(f"Failed to persist refresh of claim {claim_id}: {e}")

        updated = max(len(matches), persisted)
        logger.info(
            f"Refreshed claim {claim_id}: {result.outcome} -> {result.status.value} "
            f"({updated} outcome(s))"
        )
        return RefreshUpdate(
            claim_id=claim_id,
            outcome=result.outcome,
            status=result.status,
            message=result.message,
            timestamp=timestamp,
            updated=updated,
        )

    def outcomes(self) -> list[ExecutionOutcome]:
        """Snapshot of all outcomes in append order."""
        with self._lock:
            return copy.deepcopy(self._outcomes)

    def get(self, outcome_id: str) -> ExecutionOutcome | None:
        with self._lock:
            for outcome in self._outcomes:
                if outcome.id == outcome_id:
                    return copy.deepcopy(outcome)
        return None

    def by_claim(self, claim_id: str) -> list[ExecutionOutcome]:
        with self._lock:
            return [copy.deepcopy(o) for o in self._outcomes if o.claim_id == claim_id]

    def summary(self) -> dict[str, Any]:
        """Counts of passed and failed outcomes with the pass rate."""
        with self._lock:
            total = len(self._outcomes)
            passed = sum(1 for o in self._outcomes if o.status is OutcomeStatus.PASSED)
            avg_duration = (
                sum(o.duration_ms for o in self._outcomes) / total if total else 0.0
            )
        failed = total - passed
        return {
            "total": total,
            "passed": passed,
            "failed": failed,
            "pass_rate": round(passed / total * 100, 1) if total else 0.0,
            "avg_duration_ms": round(avg_duration, 2),
        }

    def _append(self, outcome: ExecutionOutcome) -> None:
        with self._lock:
            self._outcomes.append(outcome)

    def _stored_kind(self, claim_id: str) -> str | None:
        if self.store is None:
            return None
        try:
            rows = self.store.list_results(claim_id=claim_id, limit=1)
        except sqlite3.Error as e:
            logger.error(f"Failed to read stored kind of claim {claim_id}: {e}")
            return None
        return rows[0]["kind"] if rows else None

    @contextmanager
    def _claim_guard(self, claim_id: str) -> Iterator[None]:
        """Hold the lock of one claim; the lock is dropped once unused."""
        with self._lock:
            entry = self._claim_locks.get(claim_id)
            if entry is None:
                entry = self._claim_locks[claim_id] = _ClaimLock()
            entry.users += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._lock:
                entry.users -= 1
                if entry.users == 0:
                    del self._claim_locks[claim_id]
