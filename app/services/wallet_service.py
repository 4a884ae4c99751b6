# promo-allocation-backend/app/services/wallet_service.py
"""
Wallet ledger: balances per currency (CASH / CREDIT / POINTS).

Every balance change writes a WalletTransaction whose reference is unique,
so replaying a credit or debit with the same reference is a no-op.
These functions never commit; the caller owns the transaction.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.errors import InsufficientFundsError, InvalidRequestError, WalletFrozenError
from app.db import models

logger = logging.getLogger(__name__)

CURRENCIES = ("CASH", "CREDIT", "POINTS")


@dataclass
class LedgerResult:
    new_balance: Decimal
    transaction_id: Optional[int]
    # True when the reference had already been applied
    replayed: bool = False


def _validate(currency: str, amount) -> Decimal:
    if currency not in CURRENCIES:
        raise InvalidRequestError(f"Invalid wallet currency: {currency}")
    value = Decimal(str(amount))
    if value <= 0:
        raise InvalidRequestError("Amount must be a positive number")
    return value


def _locked_wallet(db: Session, user_id: int, currency: str) -> Optional[models.Wallet]:
    return (
        db.query(models.Wallet)
        .filter(models.Wallet.user_id == user_id, models.Wallet.currency == currency)
        .with_for_update()
        .first()
    )


def get_or_create_wallet(db: Session, user_id: int, currency: str) -> models.Wallet:
    """Row-locked wallet; created with a zero balance if it does not exist yet."""
    wallet = _locked_wallet(db, user_id, currency)
    if wallet:
        return wallet

    try:
        with db.begin_nested():
            wallet = models.Wallet(user_id=user_id, currency=currency, balance=Decimal("0"))
            db.add(wallet)
        logger.info("Created %s wallet for user %s", currency, user_id)
        return wallet
    except IntegrityError:
        # Another transaction created it first
        return _locked_wallet(db, user_id, currency)


def _find_replay(db: Session, reference: str) -> Optional[models.WalletTransaction]:
    return (
        db.query(models.WalletTransaction)
        .filter(models.WalletTransaction.reference == reference)
        .first()
    )


def _apply(
    db: Session,
    user_id: int,
    currency: str,
    amount,
    reference: str,
    description: str,
    direction: str,
) -> LedgerResult:
    value = _validate(currency, amount)
    wallet = get_or_create_wallet(db, user_id, currency)

    if _find_replay(db, reference):
        logger.info("Ledger reference %s already applied, skipping", reference)
        return LedgerResult(new_balance=Decimal(wallet.balance or 0), transaction_id=None, replayed=True)

    if wallet.is_frozen:
        raise WalletFrozenError(f"Wallet {currency} is frozen")

    balance = Decimal(wallet.balance or 0)
    if direction == "DEBIT":
        if balance < value:
            raise InsufficientFundsError(
                f"Insufficient {currency} balance (needed {value}, have {balance})"
            )
        wallet.balance = balance - value
    else:
        wallet.balance = balance + value

    tx = models.WalletTransaction(
        wallet_id=wallet.id,
        amount=value,
        direction=direction,
        reference=reference,
        description=description,
    )
    db.add(tx)
    db.flush()

    return LedgerResult(new_balance=Decimal(wallet.balance), transaction_id=tx.id)


def credit(
    db: Session,
    user_id: int,
    currency: str,
    amount,
    reference: str,
    description: str = "",
) -> LedgerResult:
    """Add amount to the user's wallet. Idempotent per reference."""
    return _apply(db, user_id, currency, amount, reference, description, "CREDIT")


def debit(
    db: Session,
    user_id: int,
    currency: str,
    amount,
    reference: str,
    description: str = "",
) -> LedgerResult:
    """Remove amount from the user's wallet. Idempotent per reference."""
    return _apply(db, user_id, currency, amount, reference, description, "DEBIT")


def get_balances(db: Session, user_id: int) -> Dict[str, Decimal]:
    wallets = db.query(models.Wallet).filter(models.Wallet.user_id == user_id).all()
    balances = {currency: Decimal("0") for currency in CURRENCIES}
    for w in wallets:
        balances[w.currency] = Decimal(w.balance or 0)
    return balances
