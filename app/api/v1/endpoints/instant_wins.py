# promo-allocation-backend/app/api/v1/endpoints/instant_wins.py
"""
Instant-win endpoints
- list unclaimed instant wins of a competition
- claim one (same transaction path as /allocations/attempt)
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Optional

from app.db.database import get_db
from app.db import models
from app.api.v1.endpoints.users import get_current_user
from app.api.v1.endpoints.allocations import ERROR_RESPONSES, run_attempt
from app.schemas.allocation import AttemptResponse


router = APIRouter()


@router.get("/pools/{pool_id}/available")
def list_available_instant_wins(pool_id: int, db: Session = Depends(get_db)):
    """Unclaimed instant wins (ticket numbers are not revealed)"""
    units = (
        db.query(models.RewardUnit)
        .join(models.Pool, models.Pool.id == models.RewardUnit.pool_id)
        .filter(
            models.RewardUnit.pool_id == pool_id,
            models.Pool.kind == "INSTANT_WIN",
            models.RewardUnit.claimed_by.is_(None),
        )
        .order_by(models.RewardUnit.position, models.RewardUnit.id)
        .all()
    )
    return {
        "pool_id": pool_id,
        "available": [
            {
                "id": u.id,
                "name": u.name,
                "reward_type": u.reward_type,
                "value": float(u.magnitude or 0),
            }
            for u in units
        ],
    }


@router.post("/{unit_id}/claim", response_model=AttemptResponse, responses=ERROR_RESPONSES)
def claim_instant_win(
    unit_id: int,
    extra_context: Optional[dict] = None,
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Claim an instant win. Losing the race is a no-win result, not an error."""
    unit = db.query(models.RewardUnit).filter(models.RewardUnit.id == unit_id).first()
    if not unit:
        raise HTTPException(status_code=404, detail="Instant win not found")

    return run_attempt(
        db, current_user, unit.pool_id, context_id=unit.id, extra_context=extra_context
    )
