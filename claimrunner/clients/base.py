"""Abstract collaborators consumed by the orchestrator and aggregator.

The orchestrator only needs something that can submit a payload, and the
result aggregator only needs something that can report a claim's current
status. Both are agnostic to transport.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..models import StatusResult, SubmissionPayload, SubmissionResult, TestKind


class SubmissionClient(ABC):
    """Submits claim payloads to the remote claims API."""

    @abstractmethod
    def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        """Submit one payload.

        Args:
            payload: Payload built for a test case

        Returns:
            SubmissionResult with success flag, claim id and claim state

        Raises:
            Exception: Any transport failure (timeout, non-JSON body, 5xx).
                The orchestrator records these as failed outcomes.
        """
        pass


class RefreshClient(ABC):
    """Reads the current status of a claim from the system of record."""

    @abstractmethod
    def fetch_status(
        self, claim_id: str, hint: TestKind | str | None = None
    ) -> StatusResult:
        """Fetch the current status of a claim.

        Args:
            claim_id: Remote claim identifier
            hint: Test kind used to grade the claim state

        Returns:
            StatusResult with the claim state and graded status

        Raises:
            ClaimNotFound: If the remote side has no such claim
            ClaimsAPIError: If the system of record cannot be reached
        """
        pass
