"""Sequential, paced execution of claim test cases.

Test cases are resolved by title, turned into payloads, and submitted one at
a time. A fixed pacing delay separates consecutive submissions; it is a rate
limit against the claims API, not a retry or backoff mechanism.
"""

from __future__ import annotations

import copy
import logging
import threading
import time
import uuid
from collections.abc import Iterator, Mapping, Sequence
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Any, Callable

from ..clients.base import SubmissionClient
from ..config import TEST_EXECUTION_DELAY_MS
from ..errors import InvalidTestCase, TestCaseNotFound
from ..evaluation import evaluate_submission
from ..models import (
    ExecutionGroup,
    ExecutionOutcome,
    OutcomeDetails,
    OutcomeStatus,
    SubmissionPayload,
    SubmissionResult,
    TestCase,
)
from ..payload import PayloadBuilder
from ..results import ResultAggregator
from ..utils import sanitize_error_message

logger = logging.getLogger(__name__)


@dataclass
class PacingPolicy:
    """Fixed delay enforced between consecutive submissions."""

    interval_ms: int = TEST_EXECUTION_DELAY_MS
    sleep: Callable[[float], None] = time.sleep

    def wait(self, interval_ms: int | None = None) -> None:
        delay_ms = self.interval_ms if interval_ms is None else interval_ms
        if delay_ms > 0:
            self.sleep(delay_ms / 1000)


@dataclass(frozen=True)
class ResolvedCase:
    """A selected test case with its group and pre-built payload."""

    group: str
    test_case: TestCase
    payload: SubmissionPayload


@dataclass
class RunStatus:
    """Observable progress of a run."""

    running: bool = False
    group: str | None = None
    index: int = -1
    total: int = 0
    completed: int = 0
    cancelled: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "running": self.running,
            "group": self.group,
            "index": self.index,
            "total": self.total,
            "completed": self.completed,
            "cancelled": self.cancelled,
        }


class ExecutionOrchestrator:
    """Runs groups of test cases sequentially against a submission client.

    Every completed submission is appended to the result aggregator (when
    one is attached) and a copy is yielded before the next item starts, so
    later refreshes never change outcomes a consumer already holds. Transport
    failures become failed outcomes and never abort the batch; only
    configuration errors do, and those are raised before any submission.
    """

    def __init__(
        self,
        submission_client: SubmissionClient,
        builder: PayloadBuilder | None = None,
        pacing: PacingPolicy | None = None,
        aggregator: ResultAggregator | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            submission_client: Client used to submit payloads
            builder: Payload builder; defaults to PayloadBuilder()
            pacing: Delay policy between submissions
            aggregator: Collection receiving each outcome as it completes
            clock: Monotonic clock used to time submissions
        """
        self.client = submission_client
        self.builder = builder or PayloadBuilder()
        self.pacing = pacing or PacingPolicy()
        self.aggregator = aggregator
        self._clock = clock
        self._cancel_event = threading.Event()
        self._status = RunStatus()
        self._status_lock = threading.Lock()

    @property
    def cancelled(self) -> bool:
        return self._cancel_event.is_set()

    def cancel(self) -> None:
        """Stop the run before its next item.

        The item currently being submitted completes and is recorded; the
        pacing delay after it is skipped.
        """
        if not self._cancel_event.is_set():
            logger.info("Cancellation requested")
        self._cancel_event.set()

    def status(self) -> RunStatus:
        with self._status_lock:
            return replace(self._status)

    def resolve(
        self,
        groups: Sequence[ExecutionGroup],
        selections: Mapping[str, Sequence[str]] | None = None,
    ) -> list[ResolvedCase]:
        """Resolve selected titles to test cases and build their payloads.

        Groups are concatenated in order, each group keeping its own order.

        Args:
            groups: Groups of test cases
            selections: Titles to run per group name; a group without an
                entry runs all of its test cases

        Returns:
            Resolved cases in execution order

        Raises:
            TestCaseNotFound: If a selected title matches no test case
            InvalidTestCase: If a selected title is ambiguous or a payload
                cannot be built
        """
        group_names = {group.name for group in groups}
        for name, titles in (selections or {}).items():
            if name not in group_names and titles:
                raise TestCaseNotFound(titles[0], group=name)

        resolved: list[ResolvedCase] = []
        for group in groups:
            if selections is not None and group.name in selections:
                test_cases = self._select(group, selections[group.name])
            else:
                test_cases = list(group.test_cases)

            for test_case in test_cases:
                resolved.append(
                    ResolvedCase(
                        group=group.name,
                        test_case=test_case,
                        payload=self.builder.build(test_case),
                    )
                )

        return resolved

    @staticmethod
    def _select(group: ExecutionGroup, titles: Sequence[str]) -> list[TestCase]:
        by_title: dict[str, list[TestCase]] = {}
        for test_case in group.test_cases:
            by_title.setdefault(test_case.title, []).append(test_case)

        selected = []
        for title in titles:
            matches = by_title.get(title)
            if not matches:
                raise TestCaseNotFound(title, group=group.name)
            if len(matches) > 1:
                raise InvalidTestCase(
                    title, f"title is ambiguous in group '{group.name}'"
                )
            selected.append(matches[0])
        return selected

    def run(
        self,
        groups: Sequence[ExecutionGroup],
        pacing_ms: int | None = None,
        selections: Mapping[str, Sequence[str]] | None = None,
    ) -> Iterator[ExecutionOutcome]:
        """Run the selected test cases and stream their outcomes.

        Resolution happens immediately, so configuration errors are raised
        from this call before any network activity. Submissions happen as
        the returned iterator is consumed.

        Args:
            groups: Groups of test cases
            pacing_ms: Delay between submissions; defaults to the policy's
            selections: Titles to run per group name

        Returns:
            Iterator of outcomes in resolved order
        """
        resolved = self.resolve(groups, selections)
        self._cancel_event.clear()
        with self._status_lock:
            self._status = RunStatus(running=True, total=len(resolved))
        logger.info(
            f"Starting run of {len(resolved)} test case(s) across "
            f"{len(groups)} group(s)"
        )
        return self._execute(resolved, pacing_ms)

    def run_all(
        self,
        groups: Sequence[ExecutionGroup],
        pacing_ms: int | None = None,
        selections: Mapping[str, Sequence[str]] | None = None,
    ) -> list[ExecutionOutcome]:
        """Run to completion and return every outcome."""
        return list(self.run(groups, pacing_ms=pacing_ms, selections=selections))

    def execute_one(self, case: ResolvedCase) -> ExecutionOutcome:
        """Submit one resolved case and grade the result.

        Any exception raised by the submission client is recorded as a
        failed outcome.
        """
        test_case = case.test_case
        request = case.payload.to_wire()
        submitted_at = datetime.now(timezone.utc).isoformat()
        started = self._clock()

        try:
            result = self.client.submit(case.payload)
        except Exception as e:
            duration_ms = self._elapsed_ms(started)
            message = sanitize_error_message(str(e)) or type(e).__name__
            logger.warning(f"Submission of '{test_case.title}' failed: {message}")
            return ExecutionOutcome(
                id=str(uuid.uuid4()),
                source_title=test_case.title,
                status=OutcomeStatus.FAILED,
                duration_ms=duration_ms,
                submitted_at=submitted_at,
                message=message,
                group=case.group,
                kind=test_case.kind,
                details=OutcomeDetails(
                    request=request,
                    error=message,
                    status_code=getattr(e, "status_code", None),
                ),
            )

        duration_ms = self._elapsed_ms(started)
        status = evaluate_submission(test_case.kind, result)
        logger.info(
            f"'{test_case.title}' {status.value} "
            f"(claim={result.claim_id}, outcome={result.outcome or '-'}, "
            f"{duration_ms:.0f}ms)"
        )
        return ExecutionOutcome(
            id=str(uuid.uuid4()),
            claim_id=result.claim_id,
            source_title=test_case.title,
            status=status,
            duration_ms=duration_ms,
            submitted_at=submitted_at,
            message=self._result_message(result),
            outcome=result.outcome,
            group=case.group,
            kind=test_case.kind,
            details=OutcomeDetails(
                request=request,
                response=result.raw if result.raw is not None else {"success": result.success},
                validation_errors=list(result.validation_errors),
                status_code=result.status_code,
            ),
        )

    def _execute(
        self, resolved: list[ResolvedCase], pacing_ms: int | None
    ) -> Iterator[ExecutionOutcome]:
        last = len(resolved) - 1
        try:
            for position, case in enumerate(resolved):
                if self._cancel_event.is_set():
                    logger.info(
                        f"Run cancelled after {position} of {len(resolved)} test case(s)"
                    )
                    with self._status_lock:
                        self._status.cancelled = True
                    return

                with self._status_lock:
                    self._status.group = case.group
                    self._status.index = position
                logger.info(
                    f"Running test {position + 1}/{len(resolved)} "
                    f"[{case.group}]: {case.test_case.title}"
                )

                outcome = self.execute_one(case)
                if self.aggregator is not None:
                    self.aggregator.append(outcome)
                    outcome = copy.deepcopy(outcome)
                with self._status_lock:
                    self._status.completed += 1
                yield outcome

                if position < last and not self._cancel_event.is_set():
                    self.pacing.wait(pacing_ms)
        finally:
            with self._status_lock:
                self._status.running = False
                self._status.group = None
                self._status.index = -1

    def _elapsed_ms(self, started: float) -> float:
        return round((self._clock() - started) * 1000, 2)

    @staticmethod
    def _result_message(result: SubmissionResult) -> str:
        if result.message:
            return sanitize_error_message(result.message)
        if result.validation_errors:
            return f"Rejected with {len(result.validation_errors)} validation error(s)"
        if result.success:
            return f"Claim {result.claim_id or 'submitted'}: {result.outcome or 'no status'}"
        return "Claim submission unsuccessful"
