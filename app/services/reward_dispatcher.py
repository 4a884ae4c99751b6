# promo-allocation-backend/app/services/reward_dispatcher.py
"""
Reward dispatch: turns an allocated unit into a side effect on the
principal's account. Runs inside the attempt transaction, so any failure
here rolls back the stock consumption as well.
"""

import enum
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.errors import UnknownRewardTypeError
from app.db import models
from app.services import ticket_service, wallet_service
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


class RewardType(str, enum.Enum):
    CASH = "CASH"
    SITE_CREDIT = "SITE_CREDIT"
    POINTS = "POINTS"
    FREE_TICKET = "FREE_TICKET"
    BONUS_ATTEMPT = "BONUS_ATTEMPT"
    PHYSICAL = "PHYSICAL"
    NO_WIN = "NO_WIN"

    @classmethod
    def parse(cls, value: str) -> "RewardType":
        try:
            return cls((value or "").upper())
        except ValueError:
            raise UnknownRewardTypeError(f"Unknown reward type: {value}")


@dataclass
class AwardResult:
    type: RewardType
    amount: Decimal = Decimal("0")
    status: str = "AWARDED"
    message: str = ""
    details: Dict[str, Any] = field(default_factory=dict)


class RewardDispatcher:
    def __init__(self):
        self._handlers: Dict[RewardType, Callable[..., AwardResult]] = {
            RewardType.CASH: self._credit_cash,
            RewardType.SITE_CREDIT: self._credit_site_credit,
            RewardType.POINTS: self._credit_points,
            RewardType.FREE_TICKET: self._issue_ticket,
            RewardType.BONUS_ATTEMPT: self._grant_bonus_attempt,
            RewardType.PHYSICAL: self._queue_physical,
            RewardType.NO_WIN: self._no_win,
        }
        missing = set(RewardType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No dispatch handler for {sorted(m.value for m in missing)}")

    def dispatch(
        self,
        db: Session,
        principal_id: int,
        unit: models.RewardUnit,
        reference: str,
        now: Optional[datetime] = None,
    ) -> AwardResult:
        """Apply the unit's reward. `reference` makes wallet credits idempotent."""
        reward_type = RewardType.parse(unit.reward_type)
        handler = self._handlers[reward_type]
        result = handler(db, principal_id, unit, reference, now or utc_now())
        logger.info(
            "Dispatched %s (%s) to user %s [%s]",
            reward_type.value, result.amount, principal_id, reference,
        )
        return result

    # --- wallet credits ---

    def _credit(self, db, principal_id, unit, reference, currency, reward_type) -> AwardResult:
        amount = Decimal(unit.magnitude or 0)
        ledger = wallet_service.credit(
            db,
            principal_id,
            currency,
            amount,
            reference=reference,
            description=f"Awarded from {unit.name or reward_type.value}",
        )
        return AwardResult(
            type=reward_type,
            amount=amount,
            message=f"You won {amount} {currency.lower()}!",
            details={"currency": currency, "new_balance": str(ledger.new_balance)},
        )

    def _credit_cash(self, db, principal_id, unit, reference, now) -> AwardResult:
        return self._credit(db, principal_id, unit, reference, "CASH", RewardType.CASH)

    def _credit_site_credit(self, db, principal_id, unit, reference, now) -> AwardResult:
        return self._credit(db, principal_id, unit, reference, "CREDIT", RewardType.SITE_CREDIT)

    def _credit_points(self, db, principal_id, unit, reference, now) -> AwardResult:
        return self._credit(db, principal_id, unit, reference, "POINTS", RewardType.POINTS)

    # --- non-wallet rewards ---

    def _issue_ticket(self, db, principal_id, unit, reference, now) -> AwardResult:
        ticket_ids = ticket_service.issue_ticket(db, principal_id, reason="ALLOCATION_WIN", count=1)
        return AwardResult(
            type=RewardType.FREE_TICKET,
            amount=Decimal("1"),
            message="You won a free ticket!",
            details={"ticket_ids": ticket_ids},
        )

    def _grant_bonus_attempt(self, db, principal_id, unit, reference, now) -> AwardResult:
        grant = models.BonusAttempt(
            user_id=principal_id,
            pool_id=unit.pool_id,
            source_attempt_id=reference.split(":", 1)[-1],
            expires_at=now + timedelta(days=settings.BONUS_ATTEMPT_EXPIRY_DAYS),
        )
        db.add(grant)
        db.flush()
        return AwardResult(
            type=RewardType.BONUS_ATTEMPT,
            amount=Decimal("1"),
            message="You won a bonus spin!",
            details={"bonus_attempt_id": grant.id, "expires_at": grant.expires_at.isoformat()},
        )

    def _queue_physical(self, db, principal_id, unit, reference, now) -> AwardResult:
        claim = models.PhysicalPrizeClaim(
            user_id=principal_id,
            unit_id=unit.id,
            attempt_id=reference.split(":", 1)[-1],
            status="PENDING",
        )
        db.add(claim)
        db.flush()
        return AwardResult(
            type=RewardType.PHYSICAL,
            amount=Decimal(unit.magnitude or 0),
            status="PENDING_FULFILLMENT",
            message=f"You won {unit.name}! We'll be in touch about delivery.",
            details={"claim_id": claim.id},
        )

    def _no_win(self, db, principal_id, unit, reference, now) -> AwardResult:
        return AwardResult(type=RewardType.NO_WIN, status="NO_WIN", message="Better luck next time!")
