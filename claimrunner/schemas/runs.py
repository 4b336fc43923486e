"""Pydantic schemas for run and test case endpoints."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, field_validator

from ..models import TestCase, TestKind

# Upper bound for a caller-supplied pacing delay
MAX_PACING_MS = 60_000


class RunCreateRequest(BaseModel):
    """Request model for starting a run.

    With `sample` set, a seeded sanity sample of the catalog is run instead
    of whole groups.
    """

    code: str | None = None
    groups: list[str] | None = None
    selections: dict[str, list[str]] | None = None
    pacing_ms: int | None = None
    sample: bool = False
    seed: int | None = None
    per_kind: int | None = None
    triggered_by: str | None = None

    @field_validator("pacing_ms")
    @classmethod
    def validate_pacing(cls, v: int | None) -> int | None:
        if v is not None and not 0 <= v <= MAX_PACING_MS:
            raise ValueError(f"pacing_ms must be between 0 and {MAX_PACING_MS}")
        return v

    @field_validator("groups")
    @classmethod
    def validate_groups(cls, v: list[str] | None) -> list[str] | None:
        if v is None:
            return v
        valid = [kind.value for kind in TestKind]
        unknown = [name for name in v if name not in valid]
        if unknown:
            raise ValueError(f"Unknown group(s): {unknown}. Valid: {valid}")
        return v

    @field_validator("per_kind")
    @classmethod
    def validate_per_kind(cls, v: int | None) -> int | None:
        if v is not None and v < 1:
            raise ValueError("per_kind must be at least 1")
        return v


class RunCreateResponse(BaseModel):
    run_id: str
    total: int
    state: str


class RunStatusResponse(BaseModel):
    """Progress of one run, with its outcomes when requested."""

    run_id: str
    state: str
    triggered_by: str | None = None
    created_at: str
    started_at: str | None = None
    completed_at: str | None = None
    total: int
    completed: int
    current_group: str | None = None
    current_index: int = -1
    cancel_requested: bool = False
    error: str | None = None
    outcomes: list[dict[str, Any]] | None = None


class RunListResponse(BaseModel):
    runs: list[RunStatusResponse]
    total: int


class TestCaseSummary(BaseModel):
    """Catalog entry as listed by the API."""

    __test__ = False

    title: str
    kind: str
    intervention_code: str | None = None
    description: str | None = None
    usage_mode: str
    claim_sub_type: str
    line_items: int
    declared_total: float | None = None

    @classmethod
    def from_test_case(cls, test_case: TestCase) -> TestCaseSummary:
        return cls(
            title=test_case.title,
            kind=test_case.kind.value,
            intervention_code=test_case.intervention_code,
            description=test_case.description,
            usage_mode=test_case.usage_mode.value,
            claim_sub_type=test_case.claim_sub_type.value,
            line_items=len(test_case.line_items),
            declared_total=test_case.declared_total,
        )


class TestCaseListResponse(BaseModel):
    __test__ = False

    test_cases: list[TestCaseSummary]
    total: int
    codes: list[str]
