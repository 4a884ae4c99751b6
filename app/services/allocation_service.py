# promo-allocation-backend/app/services/allocation_service.py
"""
Allocation transaction coordinator.

One attempt = one unit of work:
  lock pool -> re-check eligibility -> load units FOR UPDATE -> select
  -> consume stock -> write attempt row -> dispatch reward -> commit

Any exception before commit rolls the whole thing back, so there is never
"stock consumed but nothing awarded" or "credited but no history row".
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Union
import uuid

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import (
    InvalidRequestError,
    PoolNotFoundError,
    StockExhaustedError,
    TransientAllocationError,
)
from app.db import models
from app.services import eligibility_service, history_service, ticket_service
from app.services.locks import PoolLockRegistry, pool_locks
from app.services.reward_dispatcher import AwardResult, RewardDispatcher, RewardType
from app.services.selector import WeightedSelector
from app.utils.time_utils import to_utc, utc_now

logger = logging.getLogger(__name__)

WHEEL = "WHEEL"
INSTANT_WIN = "INSTANT_WIN"


@dataclass
class AllocationOutcome:
    attempt_id: str
    pool_id: int
    # None when the claim lost the race
    unit: Optional[models.RewardUnit]
    award: AwardResult
    remaining_attempts: int
    # ALLOCATED, or CONFLICT when an instant win was claimed by someone else
    outcome: str = "ALLOCATED"


@dataclass
class Rejection:
    reason: str
    next_available_at: Optional[datetime] = None
    remaining_attempts: int = 0


AttemptResult = Union[AllocationOutcome, Rejection]


class AllocationCoordinator:
    def __init__(
        self,
        selector: Optional[WeightedSelector] = None,
        dispatcher: Optional[RewardDispatcher] = None,
        locks: Optional[PoolLockRegistry] = None,
    ):
        self.selector = selector or WeightedSelector()
        self.dispatcher = dispatcher or RewardDispatcher()
        self.locks = locks or pool_locks

    def attempt(
        self,
        db: Session,
        principal: models.User,
        pool_id: int,
        context_id: Optional[Any] = None,
        extra_context: Optional[Dict[str, Any]] = None,
        now: Optional[datetime] = None,
    ) -> AttemptResult:
        """
        Run one allocation attempt. Owns the session's transaction: whatever
        the caller had open is committed first so reads start fresh.
        """
        now = to_utc(now) if now else utc_now()
        principal_id = principal.id
        if db.in_transaction():
            db.commit()

        with self.locks.hold(pool_id):
            try:
                result = self._run(db, principal, pool_id, context_id, extra_context or {}, now)
            except (OperationalError, IntegrityError) as e:
                # Lock wait or a unique-key race with a writer on another pool
                db.rollback()
                logger.warning("Attempt on pool %s hit a database error: %s", pool_id, e)
                raise TransientAllocationError(str(e)) from e
            except Exception:
                db.rollback()
                raise

            if isinstance(result, Rejection):
                db.rollback()
                self._audit_rejection(db, principal_id, pool_id, result, now)
                return result

            try:
                db.commit()
            except (OperationalError, IntegrityError) as e:
                db.rollback()
                raise TransientAllocationError(str(e)) from e

        logger.info(
            "Attempt %s: user %s pool %s -> %s %s (%s)",
            result.attempt_id, principal_id, pool_id,
            result.award.type.value, result.award.amount, result.outcome,
        )
        return result

    # ------------------------------------------------------------------

    def _run(self, db, principal, pool_id, context_id, extra_context, now) -> AttemptResult:
        pool = (
            db.query(models.Pool)
            .filter(models.Pool.id == pool_id)
            .with_for_update()
            .first()
        )
        if pool is None:
            raise PoolNotFoundError(f"Pool {pool_id} not found")

        eligibility = eligibility_service.evaluate(db, principal, pool, now=now)
        if not eligibility.allowed:
            return Rejection(
                reason=eligibility.reason,
                next_available_at=eligibility.next_available_at,
                remaining_attempts=eligibility.remaining,
            )

        units = (
            db.query(models.RewardUnit)
            .filter(models.RewardUnit.pool_id == pool.id)
            .order_by(models.RewardUnit.position, models.RewardUnit.id)
            .with_for_update()
            .all()
        )

        if eligibility.bonus_grant_id:
            self._use_bonus_grant(db, eligibility.bonus_grant_id, now)

        if pool.kind == INSTANT_WIN:
            return self._claim_instant_win(db, principal, pool, units, context_id, extra_context, eligibility, now)
        return self._spin(db, principal, pool, units, extra_context, eligibility, now)

    def _spin(self, db, principal, pool, units, extra_context, eligibility, now) -> AllocationOutcome:
        unit = self.selector.select(units)
        if unit is None:
            logger.error("Pool %s (%s) has no prizes with stock left", pool.id, pool.name)
            raise StockExhaustedError(f"No available prizes in pool {pool.id}", code="NO_AVAILABLE_PRIZES")

        if not self._consume(db, unit):
            picked = unit
            unit = self.selector.select_alternative([u for u in units if u.id != picked.id])
            if unit is None or not self._consume(db, unit):
                logger.error(
                    "Pool %s: unit %s out of stock and no alternative available", pool.id, picked.id
                )
                raise StockExhaustedError(
                    f"Unit {picked.id} out of stock and no alternative in pool {pool.id}",
                    code="OUT_OF_STOCK",
                )
            logger.info("Pool %s: unit %s out of stock, awarded alternative %s", pool.id, picked.id, unit.id)

        return self._record_and_dispatch(db, principal, pool, unit, extra_context, eligibility, now)

    def _claim_instant_win(
        self, db, principal, pool, units, context_id, extra_context, eligibility, now
    ) -> AllocationOutcome:
        if context_id is None:
            raise InvalidRequestError("context_id (instant win id) is required for instant-win pools")
        try:
            unit_id = int(context_id)
        except (TypeError, ValueError):
            raise InvalidRequestError(f"Invalid instant win id: {context_id}")

        unit = next((u for u in units if u.id == unit_id), None)
        if unit is None:
            raise InvalidRequestError(f"Instant win {unit_id} does not belong to pool {pool.id}")

        if ticket_service.claim_ticket(db, unit.id, principal.id, now=now):
            db.refresh(unit)
            return self._record_and_dispatch(db, principal, pool, unit, extra_context, eligibility, now)

        # Someone else claimed it first: a normal no-win outcome, still recorded
        attempt = history_service.record_attempt(
            db,
            principal_id=principal.id,
            pool_id=pool.id,
            unit=unit,
            reward_type=RewardType.NO_WIN.value,
            magnitude=0,
            outcome="CONFLICT",
            now=now,
            metadata=self._metadata(pool, unit, extra_context, conflict=True),
            bonus_grant_id=eligibility.bonus_grant_id,
        )
        award = AwardResult(
            type=RewardType.NO_WIN,
            status="ALREADY_CLAIMED",
            message="This instant win has already been claimed. Better luck next time!",
        )
        return AllocationOutcome(
            attempt_id=attempt.id,
            pool_id=pool.id,
            unit=None,
            award=award,
            remaining_attempts=max(eligibility.remaining - 1, 0),
            outcome="CONFLICT",
        )

    def _record_and_dispatch(self, db, principal, pool, unit, extra_context, eligibility, now) -> AllocationOutcome:
        attempt_id = str(uuid.uuid4())
        history_service.record_attempt(
            db,
            principal_id=principal.id,
            pool_id=pool.id,
            unit=unit,
            reward_type=unit.reward_type,
            magnitude=unit.magnitude,
            outcome="ALLOCATED",
            now=now,
            metadata=self._metadata(pool, unit, extra_context),
            bonus_grant_id=eligibility.bonus_grant_id,
            attempt_id=attempt_id,
        )
        award = self.dispatcher.dispatch(db, principal.id, unit, reference=f"attempt:{attempt_id}", now=now)
        remaining = max(eligibility.remaining - 1, 0)
        if award.type == RewardType.BONUS_ATTEMPT:
            # The new grant is usable on this pool straight away
            remaining += 1
        return AllocationOutcome(
            attempt_id=attempt_id,
            pool_id=pool.id,
            unit=unit,
            award=award,
            remaining_attempts=remaining,
        )

    # ------------------------------------------------------------------

    def _consume(self, db: Session, unit: models.RewardUnit) -> bool:
        """consumed += 1, only while consumed < capacity. False = out of stock."""
        updated = (
            db.query(models.RewardUnit)
            .filter(
                models.RewardUnit.id == unit.id,
                or_(
                    models.RewardUnit.capacity.is_(None),
                    models.RewardUnit.consumed < models.RewardUnit.capacity,
                ),
            )
            .update(
                {models.RewardUnit.consumed: models.RewardUnit.consumed + 1},
                synchronize_session=False,
            )
        )
        db.refresh(unit)
        return updated == 1

    def _use_bonus_grant(self, db: Session, grant_id: int, now: datetime) -> None:
        updated = (
            db.query(models.BonusAttempt)
            .filter(models.BonusAttempt.id == grant_id, models.BonusAttempt.used_at.is_(None))
            .update({models.BonusAttempt.used_at: now}, synchronize_session=False)
        )
        if not updated:
            # Spent by a concurrent attempt on another pool
            raise TransientAllocationError(f"Bonus attempt {grant_id} was already used")

    def _metadata(self, pool, unit, extra_context, conflict: bool = False) -> Dict[str, Any]:
        metadata = {
            "pool_name": pool.name,
            "pool_version": pool.version,
            "unit_name": unit.name,
            "unit_position": unit.position,
        }
        if unit.ticket_number is not None:
            metadata["ticket_number"] = unit.ticket_number
        if conflict:
            metadata["conflict"] = "already_claimed"
        if extra_context:
            metadata["context"] = extra_context
        return metadata

    def _audit_rejection(self, db, principal_id, pool_id, rejection: Rejection, now) -> None:
        if not settings.AUDIT_REJECTIONS:
            return
        history_service.record_attempt(
            db,
            principal_id=principal_id,
            pool_id=pool_id,
            unit=None,
            reward_type=None,
            magnitude=0,
            outcome="REJECTED",
            now=now,
            metadata={"reason": rejection.reason},
        )
        db.commit()


coordinator = AllocationCoordinator()
