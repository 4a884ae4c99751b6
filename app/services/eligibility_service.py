# promo-allocation-backend/app/services/eligibility_service.py
"""
Eligibility: may this principal attempt this pool right now?

There is no "attempts remaining" counter table. Everything is derived from
the allocation_attempts log (count inside the window + last attempt time),
so the quota can never drift from the history.

Called standalone this is advisory only (UI display). The allocation
coordinator re-runs it inside the attempt transaction under the pool lock.
"""

import enum
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.core.config import settings
from app.db import models
from app.utils.time_utils import (
    EPOCH,
    to_utc,
    utc_now,
    start_of_day,
    start_of_week,
    start_of_month,
    start_of_next_day,
    start_of_next_week,
    start_of_next_month,
)

# Attempt outcomes that use up quota. REJECTED rows are audit only
COUNTED_OUTCOMES = ("ALLOCATED", "CONFLICT")

REASON_NOT_ACTIVE = "Pool is not active"
REASON_QUOTA = "quota exceeded"
REASON_GLOBAL = "pool limit reached"


class PeriodType(str, enum.Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"
    COOLDOWN = "COOLDOWN"
    ALL_TIME = "ALL_TIME"


# Pool period key (legacy wheel type) -> window type
PERIOD_KEYS = {
    "DAILY": PeriodType.DAILY,
    "FREE_SPIN": PeriodType.DAILY,
    "WEEKLY": PeriodType.WEEKLY,
    "MONTHLY": PeriodType.MONTHLY,
    "COOLDOWN": PeriodType.COOLDOWN,
    "VIP": PeriodType.COOLDOWN,
    "SUBSCRIBER_ONLY": PeriodType.COOLDOWN,
    "PAID_SPIN": PeriodType.COOLDOWN,
    "EVENT": PeriodType.ALL_TIME,
    "ALL_TIME": PeriodType.ALL_TIME,
}


@dataclass
class EligibilityResult:
    allowed: bool
    reason: Optional[str] = None
    remaining: int = 0
    next_available_at: Optional[datetime] = None
    period: Optional[PeriodType] = None
    used: int = 0
    limit: int = 0
    # Grant that funds this attempt once the regular quota is used up
    bonus_grant_id: Optional[int] = None


def resolve_period(period_key: Optional[str]) -> PeriodType:
    return PERIOD_KEYS.get((period_key or "").upper(), PeriodType.DAILY)


def cooldown_hours_for(pool: models.Pool) -> int:
    # 0 is a valid setting (no cooldown), only NULL falls back
    if pool.cooldown_hours is None:
        return settings.DEFAULT_COOLDOWN_HOURS
    return pool.cooldown_hours


def window_start(period: PeriodType, now: datetime, cooldown_hours: int) -> datetime:
    if period == PeriodType.DAILY:
        return start_of_day(now)
    if period == PeriodType.WEEKLY:
        return start_of_week(now)
    if period == PeriodType.MONTHLY:
        return start_of_month(now)
    if period == PeriodType.COOLDOWN:
        return to_utc(now) - timedelta(hours=cooldown_hours)
    return EPOCH


def next_period_start(period: PeriodType, now: datetime) -> Optional[datetime]:
    if period == PeriodType.DAILY:
        return start_of_next_day(now)
    if period == PeriodType.WEEKLY:
        return start_of_next_week(now)
    if period == PeriodType.MONTHLY:
        return start_of_next_month(now)
    return None


def _attempts_query(db: Session, pool_id: int, since: datetime):
    q = db.query(models.AllocationAttempt).filter(
        models.AllocationAttempt.pool_id == pool_id,
        models.AllocationAttempt.outcome.in_(COUNTED_OUTCOMES),
    )
    if since > EPOCH:
        q = q.filter(models.AllocationAttempt.created_at >= since)
    return q


def count_user_attempts(db: Session, principal_id: int, pool_id: int, since: datetime) -> int:
    """Quota-funded attempts by this principal in the window (bonus attempts excluded)."""
    return (
        _attempts_query(db, pool_id, since)
        .filter(
            models.AllocationAttempt.principal_id == principal_id,
            models.AllocationAttempt.bonus_grant_id.is_(None),
        )
        .count()
    )


def count_global_attempts(db: Session, pool_id: int, since: datetime) -> int:
    return _attempts_query(db, pool_id, since).count()


def last_attempt_time(db: Session, principal_id: int, pool_id: int) -> Optional[datetime]:
    last = (
        db.query(func.max(models.AllocationAttempt.created_at))
        .filter(
            models.AllocationAttempt.principal_id == principal_id,
            models.AllocationAttempt.pool_id == pool_id,
            models.AllocationAttempt.outcome.in_(COUNTED_OUTCOMES),
        )
        .scalar()
    )
    return to_utc(last)


def available_bonus_grants(
    db: Session, principal_id: int, pool_id: int, now: datetime
) -> List[models.BonusAttempt]:
    """Unused, unexpired grants for this pool (or any pool), soonest expiry first."""
    return (
        db.query(models.BonusAttempt)
        .filter(
            models.BonusAttempt.user_id == principal_id,
            models.BonusAttempt.used_at.is_(None),
            models.BonusAttempt.expires_at > now,
            or_(models.BonusAttempt.pool_id == pool_id, models.BonusAttempt.pool_id.is_(None)),
        )
        .order_by(models.BonusAttempt.expires_at, models.BonusAttempt.id)
        .all()
    )


def evaluate(
    db: Session,
    principal: models.User,
    pool: models.Pool,
    now: Optional[datetime] = None,
) -> EligibilityResult:
    now = to_utc(now) if now else utc_now()
    period = resolve_period(pool.period_key)
    limit = pool.per_user_limit or 0

    if not pool.is_active:
        return EligibilityResult(allowed=False, reason=REASON_NOT_ACTIVE, period=period, limit=limit)

    if pool.min_tier and (principal.level or 0) < pool.min_tier:
        return EligibilityResult(
            allowed=False,
            reason=f"Minimum level {pool.min_tier} required. Your level: {principal.level or 0}",
            period=period,
            limit=limit,
        )

    cooldown = cooldown_hours_for(pool)
    since = window_start(period, now, cooldown)
    used = count_user_attempts(db, principal.id, pool.id, since)
    bonus_grants = available_bonus_grants(db, principal.id, pool.id, now)
    remaining = max(limit - used, 0) + len(bonus_grants)

    bonus_grant_id = None
    if used >= limit:
        if not bonus_grants:
            if period == PeriodType.COOLDOWN:
                last = last_attempt_time(db, principal.id, pool.id)
                next_at = last + timedelta(hours=cooldown) if last else None
            else:
                next_at = next_period_start(period, now)
            return EligibilityResult(
                allowed=False,
                reason=REASON_QUOTA,
                remaining=0,
                next_available_at=next_at,
                period=period,
                used=used,
                limit=limit,
            )
        bonus_grant_id = bonus_grants[0].id

    if pool.global_limit is not None:
        if count_global_attempts(db, pool.id, since) >= pool.global_limit:
            next_at = next_period_start(period, now)
            if period == PeriodType.COOLDOWN:
                next_at = now + timedelta(hours=cooldown)
            return EligibilityResult(
                allowed=False,
                reason=REASON_GLOBAL,
                remaining=0,
                next_available_at=next_at,
                period=period,
                used=used,
                limit=limit,
            )

    return EligibilityResult(
        allowed=True,
        remaining=remaining,
        period=period,
        used=used,
        limit=limit,
        bonus_grant_id=bonus_grant_id,
    )


def status_for_principal(db: Session, principal: models.User, now: Optional[datetime] = None) -> list:
    """Eligibility summary for every active pool"""
    pools = (
        db.query(models.Pool)
        .filter(models.Pool.is_active.is_(True))
        .order_by(models.Pool.id)
        .all()
    )
    result = []
    for pool in pools:
        eligibility = evaluate(db, principal, pool, now=now)
        result.append({"pool": pool, "eligibility": eligibility})
    return result
