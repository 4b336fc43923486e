"""Pass/fail evaluation of claim outcomes.

A test passes when the claim state reported by the claims API matches the
direction of the test: positive tests expect the claim to be accepted,
negative tests expect it to be rejected.
"""

from __future__ import annotations

from enum import Enum

from .models import OutcomeStatus, SubmissionResult, TestKind


class ClaimState(str, Enum):
    """Claim states reported through the claim-state extension."""

    APPROVED = "Approved"
    SENT_FOR_PAYMENT = "Sent for payment processing"
    CLINICAL_REVIEW = "Medical Review"
    MANUAL_REVIEW = "Manual Review"
    IN_REVIEW = "In Review"
    PENDING = "Pending"
    REJECTED = "Rejected"
    SENT_BACK = "Returned back"
    DECLINED = "Declined"
    DECLINE = "Decline"


POSITIVE_STATES = frozenset(
    {
        ClaimState.APPROVED.value,
        ClaimState.SENT_FOR_PAYMENT.value,
        ClaimState.CLINICAL_REVIEW.value,
        ClaimState.MANUAL_REVIEW.value,
    }
)

NEGATIVE_STATES = frozenset(
    {
        ClaimState.REJECTED.value,
        ClaimState.DECLINED.value,
        ClaimState.DECLINE.value,
        ClaimState.SENT_BACK.value,
    }
)

# Not yet adjudicated
PENDING_STATES = frozenset({"", ClaimState.PENDING.value, ClaimState.IN_REVIEW.value})


def parse_kind(kind: TestKind | str | None) -> TestKind:
    """Parse a test kind; a missing kind grades as positive.

    Raises:
        ValueError: If the kind is not a known test kind
    """
    if isinstance(kind, TestKind):
        return kind
    if kind is None or not kind.strip():
        return TestKind.POSITIVE
    try:
        return TestKind(kind.strip().lower())
    except ValueError:
        valid = [k.value for k in TestKind]
        raise ValueError(f"Unknown test kind: {kind!r}. Valid: {valid}") from None


def is_terminal_state(outcome: str | None) -> bool:
    """Whether a claim state is final enough to grade a test against."""
    return (outcome or "").strip() not in PENDING_STATES


def should_pass(kind: TestKind | str | None, success: bool, outcome: str | None) -> bool:
    """Grade a claim state against the expected direction of a test."""
    kind = parse_kind(kind)
    state = (outcome or "").strip()
    if kind is TestKind.NEGATIVE:
        return state in NEGATIVE_STATES
    return success and state in POSITIVE_STATES


def evaluate_submission(kind: TestKind | str | None, result: SubmissionResult) -> OutcomeStatus:
    """Grade a completed submission.

    A negative test also passes when the claims API refuses the submission
    outright (unsuccessful response without an adjudicated claim).
    """
    kind = parse_kind(kind)
    if kind is TestKind.NEGATIVE and not result.success:
        return OutcomeStatus.PASSED
    if should_pass(kind, result.success, result.outcome):
        return OutcomeStatus.PASSED
    return OutcomeStatus.FAILED


def evaluate_refresh(outcome: str | None, hint: TestKind | str | None = None) -> OutcomeStatus:
    """Grade a refreshed claim state; the claim was accepted at submission time."""
    if should_pass(hint, True, outcome):
        return OutcomeStatus.PASSED
    return OutcomeStatus.FAILED
