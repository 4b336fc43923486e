"""Result routes: outcome listing, pass/fail summary and claim refresh."""

import logging

from fastapi import APIRouter, HTTPException, Query, Request

from ..errors import ClaimNotFound, ClaimsAPIError, ConfigurationError, RefreshUnavailable
from ..models import OutcomeStatus
from ..orchestrator import get_worker
from ..ratelimit import REFRESH_RATE_LIMIT, limiter
from ..schemas import (
    RefreshRequest,
    RefreshResponse,
    ResultListResponse,
    ResultSummaryResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/results", tags=["results"])


def _parse_status(status: str | None) -> OutcomeStatus | None:
    if status is None:
        return None
    try:
        return OutcomeStatus(status.lower())
    except ValueError:
        raise HTTPException(
            status_code=422,
            detail=f"Invalid status: {status}. Valid: {[s.value for s in OutcomeStatus]}",
        ) from None


@router.get("", response_model=ResultListResponse)
async def list_results(
    claim_id: str | None = Query(default=None),
    status: str | None = Query(default=None, description="passed or failed"),
    group: str | None = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    offset: int = Query(default=0, ge=0),
):
    """List outcomes of this process in submission order."""
    wanted = _parse_status(status)
    outcomes = get_worker().aggregator.outcomes()

    if claim_id:
        outcomes = [o for o in outcomes if o.claim_id == claim_id]
    if wanted:
        outcomes = [o for o in outcomes if o.status is wanted]
    if group:
        outcomes = [o for o in outcomes if o.group == group]

    page = outcomes[offset : offset + limit]
    return ResultListResponse(
        results=[outcome.to_dict() for outcome in page],
        total=len(outcomes),
        limit=limit,
        offset=offset,
    )


@router.get("/history", response_model=ResultListResponse)
async def list_history(
    claim_id: str | None = Query(default=None),
    status: str | None = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    """List persisted outcomes across restarts, newest first."""
    wanted = _parse_status(status)
    store = get_worker().aggregator.store
    results = (
        store.list_results(claim_id=claim_id, status=wanted, limit=limit, offset=offset)
        if store is not None
        else []
    )
    return ResultListResponse(results=results, total=len(results), limit=limit, offset=offset)


@router.get("/summary", response_model=ResultSummaryResponse)
async def get_summary():
    return ResultSummaryResponse(**get_worker().aggregator.summary())


@router.get("/{outcome_id}")
async def get_result(outcome_id: str):
    outcome = get_worker().aggregator.get(outcome_id)
    if outcome is None:
        raise HTTPException(status_code=404, detail=f"Result {outcome_id} not found")
    return outcome.to_dict()


@router.post("/{claim_id}/refresh", response_model=RefreshResponse)
@limiter.limit(REFRESH_RATE_LIMIT)
def refresh_claim(
    request: Request, claim_id: str, refresh_request: RefreshRequest | None = None
):
    """Re-read a claim from the system of record and update its outcomes.

    Stored outcomes are left untouched when the claim is unknown or not yet
    adjudicated.
    """
    aggregator = get_worker().aggregator
    hint = refresh_request.hint if refresh_request else None

    try:
        update = aggregator.refresh(claim_id, hint)
    except ClaimNotFound as e:
        raise HTTPException(status_code=404, detail=e.message) from None
    except RefreshUnavailable as e:
        raise HTTPException(status_code=409, detail=e.message) from None
    except ClaimsAPIError as e:
        logger.warning(f"Refresh of claim {claim_id} failed: {e.message}")
        raise HTTPException(status_code=502, detail=e.message) from None
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.message) from None

    return RefreshResponse(**update.to_dict())
