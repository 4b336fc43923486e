"""Pydantic schemas for result endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator

from ..models import TestKind


class ResultListResponse(BaseModel):
    results: list[dict[str, Any]]
    total: int
    limit: int
    offset: int


class ResultSummaryResponse(BaseModel):
    """Pass/fail counts across all recorded outcomes."""

    total: int
    passed: int
    failed: int
    pass_rate: float
    avg_duration_ms: float


class RefreshRequest(BaseModel):
    """Optional grading hint for a refresh."""

    hint: str | None = None

    @field_validator("hint")
    @classmethod
    def validate_hint(cls, v: str | None) -> str | None:
        if v is None:
            return v
        v = v.strip().lower()
        valid = [kind.value for kind in TestKind]
        if v not in valid:
            raise ValueError(f"Invalid hint: {v}. Valid: {valid}")
        return v


class RefreshResponse(BaseModel):
    claim_id: str
    outcome: str
    status: str
    message: str
    timestamp: str
    updated: int
