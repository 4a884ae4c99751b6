# promo-allocation-backend/app/api/v1/endpoints/allocations.py
"""
Allocation API endpoints
- run an attempt (spin a wheel / claim an instant win)
- eligibility and status across pools
- attempt history and pool statistics
"""

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session
from typing import List, Optional

from app.db.database import get_db
from app.db import models
from app.api.v1.endpoints.users import get_current_user
from app.schemas.allocation import (
    AttemptRequest,
    AttemptResponse,
    AttemptHistoryItem,
    EligibilityResponse,
    ErrorResponse,
    PoolStatistics,
    PoolStatus,
    RejectionResponse,
    RewardOut,
)
from app.services import eligibility_service, history_service
from app.services.allocation_service import AllocationOutcome, Rejection, coordinator


router = APIRouter()

ERROR_RESPONSES = {
    403: {"model": RejectionResponse, "description": "Not eligible right now"},
    404: {"model": ErrorResponse},
    500: {"model": ErrorResponse},
    503: {"model": ErrorResponse},
}


def to_attempt_response(result: AllocationOutcome) -> AttemptResponse:
    award = result.award
    return AttemptResponse(
        attempt_id=result.attempt_id,
        outcome=result.outcome,
        reward=RewardOut(
            type=award.type.value,
            value=float(award.amount or 0),
            unit_id=result.unit.id if result.unit else None,
            name=result.unit.name if result.unit else None,
            status=award.status,
            message=award.message,
            details=award.details,
        ),
        remaining_attempts=result.remaining_attempts,
    )


def to_rejection_response(result: Rejection) -> JSONResponse:
    body = RejectionResponse(
        reason=result.reason,
        next_available_at=result.next_available_at,
        remaining_attempts=result.remaining_attempts,
    )
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content=body.model_dump(mode="json"))


def run_attempt(
    db: Session,
    user: models.User,
    pool_id: int,
    context_id=None,
    extra_context: Optional[dict] = None,
):
    result = coordinator.attempt(
        db, user, pool_id, context_id=context_id, extra_context=extra_context
    )
    if isinstance(result, Rejection):
        return to_rejection_response(result)
    return to_attempt_response(result)


@router.post("/attempt", response_model=AttemptResponse, responses=ERROR_RESPONSES)
def attempt_allocation(
    request: AttemptRequest,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Spin a wheel, or claim an instant win (context_id = instant win id)"""
    return run_attempt(
        db,
        current_user,
        request.pool_id,
        context_id=request.context_id,
        extra_context=request.extra_context,
    )


def _get_pool(db: Session, pool_id: int) -> models.Pool:
    pool = db.query(models.Pool).filter(models.Pool.id == pool_id).first()
    if not pool:
        raise HTTPException(status_code=404, detail="Pool not found")
    return pool


@router.get("/pools/{pool_id}/eligibility", response_model=EligibilityResponse)
def read_eligibility(
    pool_id: int,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Advisory only: the attempt endpoint re-checks under lock"""
    pool = _get_pool(db, pool_id)
    result = eligibility_service.evaluate(db, current_user, pool)
    return EligibilityResponse(
        pool_id=pool.id,
        allowed=result.allowed,
        reason=result.reason,
        remaining_attempts=result.remaining,
        next_available_at=result.next_available_at,
        period=result.period.value if result.period else None,
        used=result.used,
        limit=result.limit,
    )


@router.get("/status", response_model=List[PoolStatus])
def read_status(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Eligibility for every active pool"""
    rows = eligibility_service.status_for_principal(db, current_user)
    return [
        PoolStatus(
            pool_id=row["pool"].id,
            name=row["pool"].name,
            kind=row["pool"].kind,
            period_key=row["pool"].period_key,
            cooldown_hours=row["pool"].cooldown_hours,
            min_tier=row["pool"].min_tier,
            is_eligible=row["eligibility"].allowed,
            remaining_attempts=row["eligibility"].remaining,
            next_available_at=row["eligibility"].next_available_at,
        )
        for row in rows
    ]


@router.get("/history", response_model=List[AttemptHistoryItem])
def read_history(
    limit: Optional[int] = Query(None, ge=1, le=500),
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    attempts = history_service.list_attempts(db, current_user.id, limit=limit)
    return [
        AttemptHistoryItem(
            id=a.id,
            pool_id=a.pool_id,
            pool_name=a.pool.name if a.pool else None,
            unit_id=a.unit_id,
            unit_name=a.unit.name if a.unit else None,
            reward_type=a.reward_type,
            magnitude=float(a.magnitude or 0),
            outcome=a.outcome,
            result_metadata=a.result_metadata,
            created_at=a.created_at,
        )
        for a in attempts
    ]


@router.get("/pools/{pool_id}/stats", response_model=PoolStatistics)
def read_pool_statistics(
    pool_id: int,
    days: int = Query(7, ge=1, le=90),
    db: Session = Depends(get_db),
):
    pool = _get_pool(db, pool_id)
    stats = history_service.pool_statistics(db, pool.id)
    return PoolStatistics(
        pool_id=pool.id,
        total_attempts=stats["total_attempts"],
        unique_principals=stats["unique_principals"],
        winning_attempts=stats["winning_attempts"],
        rejected_attempts=stats["rejected_attempts"],
        total_prize_value=float(stats["total_prize_value"]),
        distribution=stats["distribution"],
        stock=stats["stock"],
        trend=history_service.daily_trend(db, pool.id, days=days),
    )
