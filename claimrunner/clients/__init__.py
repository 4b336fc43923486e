"""Clients for the remote claims API.

The orchestrator depends on the abstract `SubmissionClient`; the result
aggregator depends on the abstract `RefreshClient`. `ClaimsAPIClient`
implements both over HTTP.
"""

from .base import RefreshClient, SubmissionClient
from .base_api import BaseAPIClient, RateLimitError
from .claims import (
    ClaimsAPIClient,
    extract_claim_state,
    find_resource,
    parse_validation_errors,
)

__all__ = [
    "RefreshClient",
    "SubmissionClient",
    "BaseAPIClient",
    "RateLimitError",
    "ClaimsAPIClient",
    "extract_claim_state",
    "find_resource",
    "parse_validation_errors",
]
