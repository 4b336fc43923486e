"""Pytest configuration and fixtures."""

from __future__ import annotations

import atexit
import os
import tempfile
from collections.abc import Callable
from datetime import date
from typing import Any

import pytest

# Set test database path before importing the package
# Use a temp file instead of :memory: since every store call opens a new connection
_temp_db = tempfile.NamedTemporaryFile(suffix=".db", delete=False)
_temp_db_path = _temp_db.name
_temp_db.close()
os.environ["DB_PATH"] = _temp_db_path


def _cleanup_test_db() -> None:
    """Clean up temporary test database file."""
    if os.path.exists(_temp_db_path):
        try:
            os.unlink(_temp_db_path)
        except OSError:
            pass  # File may already be deleted or locked


# Register cleanup to run at exit
atexit.register(_cleanup_test_db)

from claimrunner.clients import RefreshClient, SubmissionClient  # noqa: E402
from claimrunner.errors import ClaimNotFound  # noqa: E402
from claimrunner.evaluation import evaluate_refresh  # noqa: E402
from claimrunner.models import (  # noqa: E402
    BillablePeriod,
    ExecutionGroup,
    LineItem,
    Money,
    Period,
    StatusResult,
    SubmissionPayload,
    SubmissionResult,
    TestCase,
    TestKind,
)

PATIENT = {"id": "CR9690669737702-4", "name": "MILLICENT OCHOL AKINYI"}
PROVIDER = {"id": "FID-22-104475-5", "name": "THIKA COUNTY REFERRAL HOSPITAL", "level": "LEVEL 5"}


@pytest.fixture(scope="session", autouse=True)
def cleanup_test_db() -> None:
    """Pytest fixture to ensure test database cleanup after session."""
    yield
    _cleanup_test_db()


class FakeSubmissionClient(SubmissionClient):
    """Submission client answering from a per-title script.

    A script entry is a SubmissionResult, an exception to raise, or a
    callable taking the payload. Unscripted titles are approved.
    """

    def __init__(self, script: dict[str, Any] | None = None) -> None:
        self.script = script or {}
        self.payloads: list[SubmissionPayload] = []
        self.on_submit: Callable[[SubmissionPayload], None] | None = None

    def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        self.payloads.append(payload)
        if self.on_submit is not None:
            self.on_submit(payload)

        entry = self.script.get(payload.title)
        if isinstance(entry, BaseException):
            raise entry
        if callable(entry):
            return entry(payload)
        if entry is not None:
            return entry
        return SubmissionResult(
            success=True,
            claim_id=f"CLM-{len(self.payloads)}",
            outcome="Approved",
            raw={"resourceType": "ClaimResponse"},
            status_code=200,
        )

    @property
    def titles(self) -> list[str]:
        return [payload.title for payload in self.payloads]


class FakeRefreshClient(RefreshClient):
    """Refresh client answering from a claim id -> claim state map."""

    def __init__(self, states: dict[str, str] | None = None) -> None:
        self.states = states or {}
        self.calls: list[tuple[str, Any]] = []

    def fetch_status(self, claim_id: str, hint: TestKind | str | None = None) -> StatusResult:
        self.calls.append((claim_id, hint))
        if claim_id not in self.states:
            raise ClaimNotFound(claim_id)
        outcome = self.states[claim_id]
        return StatusResult(
            outcome=outcome,
            status=evaluate_refresh(outcome, hint),
            message=f"Refreshed: {outcome}",
            rule_status=outcome,
        )


class RecordingSleep:
    """Sleep replacement that records requested delays."""

    def __init__(self) -> None:
        self.calls: list[float] = []
        self.on_sleep: Callable[[float], None] | None = None

    def __call__(self, seconds: float) -> None:
        self.calls.append(seconds)
        if self.on_sleep is not None:
            self.on_sleep(seconds)


@pytest.fixture
def submission_client() -> FakeSubmissionClient:
    return FakeSubmissionClient()


@pytest.fixture
def refresh_client() -> FakeRefreshClient:
    return FakeRefreshClient()


@pytest.fixture
def recording_sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def make_test_case() -> Callable[..., TestCase]:
    """Factory for test cases with sensible SHA-01-003 defaults."""

    def _make(
        title: str = "Test Eligible Facility level",
        kind: TestKind = TestKind.POSITIVE,
        code: str = "SHA-01-003",
        unit_price: float = 102905,
        start: date | None = date(2025, 7, 8),
        end: date | None = date(2025, 7, 10),
        **overrides: Any,
    ) -> TestCase:
        fields: dict[str, Any] = {
            "title": title,
            "kind": kind,
            "patient": dict(PATIENT),
            "provider": dict(PROVIDER),
            "line_items": (
                LineItem(
                    code=code,
                    display="Cardiac/Respiratory Arrest",
                    unit_price=Money(unit_price),
                    service_period=Period(start, end),
                ),
            ),
            "billable_period": BillablePeriod(start, end, date(2025, 7, 18)),
        }
        fields.update(overrides)
        return TestCase(**fields)

    return _make


@pytest.fixture
def sample_groups(make_test_case) -> list[ExecutionGroup]:
    """Two positive cases followed by two negative cases."""
    return [
        ExecutionGroup(
            name="positive",
            test_cases=[
                make_test_case("Test Eligible Facility level"),
                make_test_case("Test exact claimable amount allowable"),
            ],
        ),
        ExecutionGroup(
            name="negative",
            test_cases=[
                make_test_case("Test Facility level not supported", kind=TestKind.NEGATIVE),
                make_test_case(
                    "Test amount greater than allowable claimable amount",
                    kind=TestKind.NEGATIVE,
                ),
            ],
        ),
    ]


@pytest.fixture
def sample_form_data() -> dict[str, Any]:
    """A stored test case record as captured from a submission."""
    return {
        "formData": {
            "test": "positive",
            "title": "Test Eligible Facility level",
            "patient": dict(PATIENT),
            "provider": dict(PROVIDER),
            "use": {"id": "claim"},
            "productOrService": [
                {
                    "code": "SHA-01-003",
                    "display": "Cardiac/Respiratory Arrest",
                    "quantity": {"value": "1"},
                    "unitPrice": {"value": "102905", "currency": "KES"},
                    "net": {"value": 102905, "currency": "KES"},
                    "servicePeriod": {"start": "2025-07-08", "end": "2025-07-10"},
                    "sequence": 1,
                }
            ],
            "billablePeriod": {
                "billableStart": "2025-07-08",
                "billableEnd": "2025-07-10",
                "created": "2025-07-18",
            },
            "total": {"value": 102905, "currency": "KES"},
        }
    }
