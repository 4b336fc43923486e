"""Test run routes.

Runs execute in the background; callers poll the run for progress and
outcomes, and may cancel it between submissions.
"""

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from ..catalog import TestCaseCatalog, get_catalog
from ..config import MAX_RANDOM_TEST_CASES_PER_TYPE
from ..errors import ConfigurationError, RunInProgress, TestCaseNotFound
from ..models import ExecutionGroup
from ..orchestrator import TestCaseSampler, get_worker
from ..ratelimit import RUN_RATE_LIMIT, limiter
from ..schemas import (
    RunCreateRequest,
    RunCreateResponse,
    RunListResponse,
    RunStatusResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/runs", tags=["runs"])


def build_groups(catalog: TestCaseCatalog, request: RunCreateRequest) -> list[ExecutionGroup]:
    """Execution groups for a run request, in catalog group order."""
    if request.sample:
        candidates = catalog.by_code(request.code) if request.code else catalog.all()
        sampler = TestCaseSampler(
            seed=request.seed,
            per_kind=request.per_kind or MAX_RANDOM_TEST_CASES_PER_TYPE,
        )
        groups = sampler.sample_groups(candidates)
    else:
        groups = catalog.groups(request.code)

    if request.groups is not None:
        groups = [group for group in groups if group.name in request.groups]
    return groups


@router.post("", response_model=RunCreateResponse, status_code=202)
@limiter.limit(RUN_RATE_LIMIT)
def create_run(request: Request, run_request: RunCreateRequest):
    """Start a run in the background.

    Selections are resolved before the run starts, so unknown titles are
    reported here and nothing is submitted.
    """
    groups = build_groups(get_catalog(), run_request)
    worker = get_worker()

    try:
        run_id = worker.start_run(
            groups,
            selections=run_request.selections,
            pacing_ms=run_request.pacing_ms,
            triggered_by=run_request.triggered_by,
        )
    except TestCaseNotFound as e:
        raise HTTPException(status_code=404, detail=e.message) from None
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=e.message) from None
    except RunInProgress as e:
        raise HTTPException(status_code=409, detail=e.message) from None

    run = worker.get_run(run_id)
    return RunCreateResponse(run_id=run_id, total=run["total"], state=run["state"])


@router.get("", response_model=RunListResponse)
async def list_runs():
    """List runs, newest first."""
    runs = get_worker().list_runs()
    return RunListResponse(runs=[RunStatusResponse(**run) for run in runs], total=len(runs))


@router.get("/{run_id}", response_model=RunStatusResponse)
async def get_run(run_id: str, include_outcomes: bool = Query(default=True)):
    """Get run progress and, by default, its outcomes so far."""
    worker = get_worker()
    run = worker.get_run(run_id)
    if run is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")

    outcomes = None
    if include_outcomes:
        outcomes = [outcome.to_dict() for outcome in worker.run_outcomes(run_id) or []]
    return RunStatusResponse(**run, outcomes=outcomes)


@router.post("/{run_id}/cancel")
async def cancel_run(run_id: str):
    """Request cancellation; the submission in flight still completes."""
    worker = get_worker()
    if worker.get_run(run_id) is None:
        raise HTTPException(status_code=404, detail=f"Run {run_id} not found")
    if not worker.cancel_run(run_id):
        raise HTTPException(status_code=409, detail=f"Run {run_id} is not active")

    logger.info(f"Cancellation requested for run {run_id}")
    return {"run_id": run_id, "cancel_requested": True}
