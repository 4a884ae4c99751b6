# promo-allocation-backend/app/services/history_service.py
"""
Attempt history: append-only writes plus the read side (history, statistics, trend).
"""

from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from app.core.config import settings
from app.db import models
from app.utils.time_utils import local_date, start_of_date, utc_now


def record_attempt(
    db: Session,
    principal_id: int,
    pool_id: int,
    unit: Optional[models.RewardUnit],
    reward_type: Optional[str],
    magnitude,
    outcome: str,
    now: datetime,
    metadata: Optional[Dict[str, Any]] = None,
    bonus_grant_id: Optional[int] = None,
    attempt_id: Optional[str] = None,
) -> models.AllocationAttempt:
    """Insert one attempt row. Rows are never updated afterwards."""
    attempt = models.AllocationAttempt(
        principal_id=principal_id,
        pool_id=pool_id,
        unit_id=unit.id if unit else None,
        reward_type=reward_type,
        magnitude=Decimal(str(magnitude or 0)),
        outcome=outcome,
        bonus_grant_id=bonus_grant_id,
        result_metadata=metadata or {},
        created_at=now,
    )
    if attempt_id:
        attempt.id = attempt_id
    db.add(attempt)
    db.flush()
    return attempt


def list_attempts(db: Session, principal_id: int, limit: Optional[int] = None) -> list:
    """Principal's attempts, newest first"""
    return (
        db.query(models.AllocationAttempt)
        .options(joinedload(models.AllocationAttempt.pool), joinedload(models.AllocationAttempt.unit))
        .filter(models.AllocationAttempt.principal_id == principal_id)
        .order_by(models.AllocationAttempt.created_at.desc())
        .limit(limit or settings.HISTORY_DEFAULT_LIMIT)
        .all()
    )


def _is_win(attempt: models.AllocationAttempt) -> bool:
    return attempt.outcome == "ALLOCATED" and attempt.reward_type != "NO_WIN"


def pool_statistics(db: Session, pool_id: int) -> Dict[str, Any]:
    attempts = (
        db.query(models.AllocationAttempt)
        .filter(
            models.AllocationAttempt.pool_id == pool_id,
            models.AllocationAttempt.outcome != "REJECTED",
        )
        .all()
    )
    rejected = (
        db.query(func.count(models.AllocationAttempt.id))
        .filter(
            models.AllocationAttempt.pool_id == pool_id,
            models.AllocationAttempt.outcome == "REJECTED",
        )
        .scalar()
    )

    distribution: Dict[str, int] = {}
    total_value = Decimal("0")
    for a in attempts:
        distribution[a.reward_type] = distribution.get(a.reward_type, 0) + 1
        if _is_win(a) and a.magnitude and a.magnitude > 0:
            total_value += Decimal(a.magnitude)

    units = (
        db.query(models.RewardUnit)
        .filter(models.RewardUnit.pool_id == pool_id)
        .order_by(models.RewardUnit.position, models.RewardUnit.id)
        .all()
    )

    return {
        "total_attempts": len(attempts),
        "unique_principals": len({a.principal_id for a in attempts}),
        "winning_attempts": sum(1 for a in attempts if _is_win(a)),
        "rejected_attempts": rejected or 0,
        "total_prize_value": total_value,
        "distribution": distribution,
        "stock": [
            {
                "unit_id": u.id,
                "name": u.name,
                "reward_type": u.reward_type,
                "capacity": u.capacity,
                "consumed": u.consumed or 0,
                "remaining": u.remaining,
            }
            for u in units
        ],
    }


def daily_trend(db: Session, pool_id: int, days: int = 7, now: Optional[datetime] = None) -> list:
    """Attempts and wins per calendar day, oldest first, zero-filled."""
    now = now or utc_now()
    today = local_date(now)
    oldest = today - timedelta(days=days - 1)
    # Not always a whole number of days before today's midnight (DST)
    since = start_of_date(oldest)
    attempts = (
        db.query(models.AllocationAttempt)
        .filter(
            models.AllocationAttempt.pool_id == pool_id,
            models.AllocationAttempt.outcome != "REJECTED",
            models.AllocationAttempt.created_at >= since,
        )
        .all()
    )

    buckets = {
        today - timedelta(days=offset): {"attempts": 0, "wins": 0}
        for offset in range(days)
    }
    for a in attempts:
        day = local_date(a.created_at)
        if day in buckets:
            buckets[day]["attempts"] += 1
            if _is_win(a):
                buckets[day]["wins"] += 1

    return [
        {"date": day.isoformat(), **counts}
        for day, counts in sorted(buckets.items())
    ]
