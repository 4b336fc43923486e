"""Pydantic request/response schemas for the HTTP API."""

from .results import (
    RefreshRequest,
    RefreshResponse,
    ResultListResponse,
    ResultSummaryResponse,
)
from .runs import (
    RunCreateRequest,
    RunCreateResponse,
    RunListResponse,
    RunStatusResponse,
    TestCaseListResponse,
    TestCaseSummary,
)

__all__ = [
    "RefreshRequest",
    "RefreshResponse",
    "ResultListResponse",
    "ResultSummaryResponse",
    "RunCreateRequest",
    "RunCreateResponse",
    "RunListResponse",
    "RunStatusResponse",
    "TestCaseListResponse",
    "TestCaseSummary",
]
