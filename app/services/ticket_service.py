# promo-allocation-backend/app/services/ticket_service.py
"""
Ticketing: universal tickets and ticket-linked instant-win claims
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.db import models
from app.utils.time_utils import utc_now

logger = logging.getLogger(__name__)


TICKET_COUNTER = "universal_ticket"


def _locked_counter(db: Session) -> Optional[models.Counter]:
    return (
        db.query(models.Counter)
        .filter(models.Counter.name == TICKET_COUNTER)
        .with_for_update()
        .first()
    )


def _reserve_ticket_numbers(db: Session, count: int) -> int:
    """
    Reserve `count` consecutive ticket numbers and return the first.
    The counter row stays locked until the caller's transaction ends, so
    concurrent issuers (different pools) never hand out the same number.
    """
    counter = _locked_counter(db)
    if counter is None:
        try:
            with db.begin_nested():
                # Continue after tickets issued before the counter existed
                current = db.query(func.max(models.UniversalTicket.ticket_number)).scalar()
                counter = models.Counter(name=TICKET_COUNTER, value=current or 0)
                db.add(counter)
        except IntegrityError:
            # Another transaction created it first
            counter = _locked_counter(db)

    first = counter.value + 1
    counter.value = counter.value + count
    db.flush()
    return first


def issue_ticket(
    db: Session,
    user_id: int,
    reason: str,
    count: int = 1,
    expires_at: Optional[datetime] = None,
) -> List[str]:
    """Issue `count` universal tickets with sequential numbers and return their ids."""
    ticket_ids = []
    number = _reserve_ticket_numbers(db, count)
    for _ in range(count):
        ticket = models.UniversalTicket(
            ticket_number=number,
            user_id=user_id,
            source=reason,
            expires_at=expires_at,
        )
        db.add(ticket)
        db.flush()
        ticket_ids.append(ticket.id)
        number += 1
    return ticket_ids


def claim_ticket(
    db: Session, unit_id: int, user_id: int, now: Optional[datetime] = None
) -> bool:
    """
    Claim a ticket-linked instant win.
    Conditional on claimed_by being unset: False means someone else got it first.
    """
    now = now or utc_now()
    updated = (
        db.query(models.RewardUnit)
        .filter(
            models.RewardUnit.id == unit_id,
            models.RewardUnit.claimed_by.is_(None),
            or_(
                models.RewardUnit.capacity.is_(None),
                models.RewardUnit.consumed < models.RewardUnit.capacity,
            ),
        )
        .update(
            {
                models.RewardUnit.claimed_by: user_id,
                models.RewardUnit.claimed_at: now,
                models.RewardUnit.consumed: models.RewardUnit.consumed + 1,
            },
            synchronize_session=False,
        )
    )
    if not updated:
        logger.info("Instant win %s already claimed, user %s gets no win", unit_id, user_id)
    return updated == 1


def is_claimed(db: Session, unit_id: int) -> bool:
    unit = db.query(models.RewardUnit).filter(models.RewardUnit.id == unit_id).first()
    return bool(unit and unit.claimed_by is not None)
