# promo-allocation-backend/app/api/v1/endpoints/wallets.py

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.db.database import get_db
from app.db import models
from app.api.v1.endpoints.users import get_current_user
from app.schemas.user import WalletBalances
from app.services import wallet_service
from app.utils.time_utils import utc_now


router = APIRouter()


@router.get("/me", response_model=WalletBalances)
def read_my_wallets(
    db: Session = Depends(get_db),
    current_user: models.User = Depends(get_current_user),
):
    """Balances per currency, plus unused bonus attempts and tickets"""
    balances = wallet_service.get_balances(db, current_user.id)

    bonus_attempts = (
        db.query(models.BonusAttempt)
        .filter(
            models.BonusAttempt.user_id == current_user.id,
            models.BonusAttempt.used_at.is_(None),
            models.BonusAttempt.expires_at > utc_now(),
        )
        .count()
    )
    tickets = (
        db.query(models.UniversalTicket)
        .filter(
            models.UniversalTicket.user_id == current_user.id,
            models.UniversalTicket.is_used.is_(False),
        )
        .count()
    )

    return WalletBalances(
        user_id=current_user.id,
        balances={currency: float(amount) for currency, amount in balances.items()},
        bonus_attempts=bonus_attempts,
        tickets=tickets,
    )
