"""Data models for test cases, submission payloads and execution outcomes."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import date
from enum import Enum
from typing import Any


class TestKind(str, Enum):
    """Expected direction of a test case."""

    __test__ = False

    POSITIVE = "positive"
    NEGATIVE = "negative"
    BUILD = "build"
    COMPLEX = "complex"


class UsageMode(str, Enum):
    """Claim `use` values accepted by the claims API."""

    CLAIM = "claim"
    PREAUTHORIZATION = "preauthorization"
    PREAUTH_CLAIM = "preauth-claim"
    RELATED = "related"


class ClaimSubType(str, Enum):
    """Claim sub type (wire values are the API's short codes)."""

    INPATIENT = "ip"
    OUTPATIENT = "op"

    @classmethod
    def parse(cls, value: str | ClaimSubType | None) -> ClaimSubType:
        if isinstance(value, ClaimSubType):
            return value
        normalized = (value or cls.INPATIENT.value).strip().lower()
        aliases = {"inpatient": cls.INPATIENT, "outpatient": cls.OUTPATIENT}
        if normalized in aliases:
            return aliases[normalized]
        return cls(normalized)


class OutcomeStatus(str, Enum):
    """Status of an execution outcome."""

    PASSED = "passed"
    FAILED = "failed"
    RUNNING = "running"

    @property
    def is_terminal(self) -> bool:
        return self is not OutcomeStatus.RUNNING


@dataclass(frozen=True)
class Money:
    value: float
    currency: str = "KES"

    def to_wire(self) -> dict[str, Any]:
        return {"value": self.value, "currency": self.currency}


@dataclass(frozen=True)
class Period:
    start: date | None = None
    end: date | None = None


@dataclass(frozen=True)
class BillablePeriod:
    start: date | None = None
    end: date | None = None
    created: date | None = None


@dataclass(frozen=True)
class LineItem:
    """One billable intervention on a claim."""

    code: str
    display: str
    unit_price: Money
    service_period: Period = field(default_factory=Period)
    quantity: int = 1
    sequence: int = 1


@dataclass(frozen=True)
class TestCase:
    """A named, declarative description of one claim scenario.

    Patient, provider and practitioner are directory records passed through
    to the claims API as-is.
    """

    __test__ = False

    title: str
    kind: TestKind
    patient: dict[str, Any] | None
    provider: dict[str, Any] | None
    line_items: tuple[LineItem, ...]
    billable_period: BillablePeriod = field(default_factory=BillablePeriod)
    practitioner: dict[str, Any] | None = None
    declared_total: float | None = None
    usage_mode: UsageMode = UsageMode.CLAIM
    claim_sub_type: ClaimSubType = ClaimSubType.INPATIENT
    related_claim_id: str | None = None
    bundle_only: bool = False
    description: str | None = None

    @property
    def intervention_code(self) -> str | None:
        """Code of the first line item, used to look up catalog records."""
        return self.line_items[0].code if self.line_items else None


@dataclass(frozen=True)
class ExecutionGroup:
    """A named partition of test cases run as one logical batch."""

    name: str
    test_cases: list[TestCase] = field(default_factory=list)


@dataclass(frozen=True)
class SubmissionPayload:
    """Canonical request body for one claim submission."""

    title: str
    test: str
    use: str
    claim_sub_type: str
    patient: dict[str, Any] | None
    provider: dict[str, Any] | None
    product_or_service: tuple[dict[str, Any], ...]
    billable_period: dict[str, str]
    total: Money
    calculated_total: float
    total_overridden: bool = False
    practitioner: dict[str, Any] | None = None
    related_claim_id: str = ""
    is_bundle_only: bool = False

    def to_wire(self) -> dict[str, Any]:
        """Serialize to the body expected by `POST /api/claims/submit`."""
        form_data: dict[str, Any] = {
            "title": self.title,
            "test": self.test,
            "use": {"id": self.use},
            "claimSubType": self.claim_sub_type,
            "patient": self.patient,
            "provider": self.provider,
            "relatedClaimId": self.related_claim_id,
            "productOrService": [dict(item) for item in self.product_or_service],
            "billablePeriod": dict(self.billable_period),
            "total": self.total.to_wire(),
        }
        if self.practitioner is not None:
            form_data["practitioner"] = self.practitioner
        if self.is_bundle_only:
            form_data["is_bundle_only"] = True
        return {"formData": form_data}


@dataclass(frozen=True)
class ValidationIssue:
    """A single field rejected by the claims API."""

    path: str
    message: str

    @classmethod
    def from_raw(cls, raw: Any) -> ValidationIssue:
        """Normalize the API's validation error shapes into path/message."""
        if isinstance(raw, dict):
            path = raw.get("path") or raw.get("field") or raw.get("loc") or ""
            if isinstance(path, (list, tuple)):
                path = ".".join(str(p) for p in path)
            message = raw.get("message") or raw.get("msg") or raw.get("error") or ""
            return cls(path=str(path), message=str(message))
        return cls(path="", message=str(raw))


@dataclass
class OutcomeDetails:
    """Raw request/response detail of one submission attempt."""

    request: dict[str, Any]
    response: Any = None
    error: str | None = None
    validation_errors: list[ValidationIssue] = field(default_factory=list)
    status_code: int | None = None


@dataclass
class ExecutionOutcome:
    """Terminal record of one test case submission attempt."""

    id: str
    source_title: str
    status: OutcomeStatus
    duration_ms: float
    submitted_at: str
    details: OutcomeDetails
    claim_id: str | None = None
    message: str | None = None
    outcome: str = ""
    group: str | None = None
    kind: TestKind | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        data["kind"] = self.kind.value if self.kind else None
        return data


@dataclass
class SubmissionResult:
    """What the Submission Client reports for one payload."""

    success: bool
    claim_id: str | None = None
    message: str | None = None
    outcome: str = ""
    validation_errors: list[ValidationIssue] = field(default_factory=list)
    raw: Any = None
    status_code: int | None = None


@dataclass(frozen=True)
class StatusResult:
    """What the Refresh Client reports for one claim."""

    outcome: str
    status: OutcomeStatus
    message: str
    rule_status: str | None = None
