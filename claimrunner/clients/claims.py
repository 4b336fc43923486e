"""Claims API client.

Submits claim payloads and reads claim status back from the system of
record. Claim state is carried by the FHIR `claim-state-extension` on the
Claim / ClaimResponse resources.
"""

from __future__ import annotations

from typing import Any

from ..errors import ClaimNotFound, ClaimRunnerError, ClaimsAPIError
from ..evaluation import ClaimState, evaluate_refresh
from ..models import (
    StatusResult,
    SubmissionPayload,
    SubmissionResult,
    TestKind,
    ValidationIssue,
)
from .base import RefreshClient, SubmissionClient
from .base_api import BaseAPIClient

SUBMIT_ENDPOINT = "/api/claims/submit"
CLAIM_ENDPOINT = "/api/claims/{claim_id}"


def find_resource(bundle: Any, resource_type: str) -> dict[str, Any] | None:
    """Return the first resource of a type from a FHIR bundle."""
    if not isinstance(bundle, dict):
        return None
    if bundle.get("resourceType") == resource_type:
        return bundle
    for entry in bundle.get("entry") or []:
        resource = (entry or {}).get("resource") or {}
        if resource.get("resourceType") == resource_type:
            return resource
    return None


def extract_claim_state(resource: Any) -> str:
    """Read the claim-state display from a resource's extensions.

    Returns an empty string when the resource carries no claim state.
    """
    if not isinstance(resource, dict):
        return ""
    for extension in resource.get("extension") or []:
        if not str(extension.get("url", "")).endswith("claim-state-extension"):
            continue
        concept = extension.get("valueCodeableConcept") or {}
        for coding in concept.get("coding") or []:
            if str(coding.get("system", "")).endswith("claim-state"):
                return coding.get("display") or ""
    return ""


def parse_validation_errors(raw: Any) -> list[ValidationIssue]:
    if not raw:
        return []
    if isinstance(raw, dict):
        # {"field.path": "message"} form
        if "message" not in raw and "msg" not in raw:
            return [ValidationIssue(path=str(k), message=str(v)) for k, v in raw.items()]
        raw = [raw]
    if not isinstance(raw, list):
        raw = [raw]
    return [ValidationIssue.from_raw(item) for item in raw]


class ClaimsAPIClient(BaseAPIClient, SubmissionClient, RefreshClient):
    """Client for the claims submission API.

    Implements both the submission and refresh contracts:
    - POST /api/claims/submit
    - GET /api/claims/{claim_id}
    """

    def submit(self, payload: SubmissionPayload) -> SubmissionResult:
        """Submit a claim payload.

        A 4xx answer with a JSON body is a rejected submission and is
        returned, not raised. When the first claim state is still Pending,
        the claim is read once more after `outcome_poll_delay` seconds.

        Raises:
            ClaimsAPIError: On 5xx after retries, timeouts, connection and
                other transport errors, and non-JSON bodies
        """
        response = self._post(
            SUBMIT_ENDPOINT, json_data=payload.to_wire(), allow_client_errors=True
        )
        data = self._json_object(response)
        validation_errors = parse_validation_errors(data.get("validation_errors"))

        if response.status_code >= 400:
            message = data.get("message") or data.get("error") or (
                f"Claim submission rejected with status {response.status_code}"
            )
            self._log("info", f"Submission '{payload.title}' rejected: {message}")
            return SubmissionResult(
                success=False,
                message=str(message),
                validation_errors=validation_errors,
                raw=data,
                status_code=response.status_code,
            )

        claim = find_resource(data.get("fhirBundle"), "Claim")
        claim_id = (claim or {}).get("id")
        claim_response = find_resource(data.get("data"), "ClaimResponse")
        outcome = extract_claim_state(claim_response)

        if outcome == ClaimState.PENDING.value and claim_id:
            outcome = self._follow_up_outcome(claim_id, outcome)

        message = data.get("message")
        if not message and data.get("error"):
            message = str(data["error"])

        return SubmissionResult(
            success=bool(data.get("success")),
            claim_id=claim_id,
            message=message,
            outcome=outcome,
            validation_errors=validation_errors,
            raw=data.get("data"),
            status_code=response.status_code,
        )

    def get_claim_outcome(self, claim_id: str) -> str:
        """Read the current claim state from the system of record.

        Raises:
            ClaimNotFound: If the API answers 404 or returns no claim
        """
        response = self._get(
            CLAIM_ENDPOINT.format(claim_id=claim_id), allow_client_errors=True
        )
        if response.status_code == 404:
            raise ClaimNotFound(claim_id)
        if response.status_code >= 400:
            raise ClaimsAPIError(
                f"Claim lookup failed: {response.status_code} - {response.text[:200]}",
                status_code=response.status_code,
            )

        data = self._json_object(response)
        resource = data.get("data")
        if not resource:
            raise ClaimNotFound(claim_id)

        return extract_claim_state(resource)

    def fetch_status(
        self, claim_id: str, hint: TestKind | str | None = None
    ) -> StatusResult:
        outcome = self.get_claim_outcome(claim_id)
        return StatusResult(
            outcome=outcome,
            rule_status=outcome,
            status=evaluate_refresh(outcome, hint),
            message=f"Refreshed: {outcome}" if outcome else "Refreshed: no status",
        )

    def _follow_up_outcome(self, claim_id: str, outcome: str) -> str:
        self._sleep(self.settings.outcome_poll_delay)
        try:
            return self.get_claim_outcome(claim_id)
        except ClaimRunnerError as e:
            self._log("warning", f"Follow-up status for claim {claim_id} failed: {e}")
            return outcome
