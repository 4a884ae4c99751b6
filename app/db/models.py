import uuid
from sqlalchemy import (
    Boolean,
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Numeric,
    JSON,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from app.db.database import Base
from app.utils.time_utils import utc_now


# --- 1. User Model (principal) ---
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    # MySQL needs a length on indexed String columns
    username = Column(String(255), unique=True, index=True)
    # Numeric tier used by the pool's min_tier gate
    level = Column(Integer, default=0)

    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    wallets = relationship("Wallet", back_populates="user")
    attempts = relationship("AllocationAttempt", back_populates="principal")


# --- 2. Pool Model (spin wheel / instant-win competition) ---
class Pool(Base):
    __tablename__ = "pools"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255))
    # 'WHEEL' (weighted draw) or 'INSTANT_WIN' (ticket-linked claim)
    kind = Column(String(32), default="WHEEL")
    # Wheel type / period key: DAILY, WEEKLY, MONTHLY, VIP, EVENT ...
    period_key = Column(String(50), default="DAILY")

    per_user_limit = Column(Integer, default=1)
    # Pool-wide cap per window (any principal). NULL = no cap
    global_limit = Column(Integer, nullable=True)
    cooldown_hours = Column(Integer, nullable=True)
    min_tier = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True)
    version = Column(Integer, default=1)

    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    units = relationship(
        "RewardUnit", back_populates="pool", order_by="RewardUnit.position"
    )


# --- 3. RewardUnit Model (wheel segment / instant-win prize) ---
class RewardUnit(Base):
    __tablename__ = "reward_units"

    id = Column(Integer, primary_key=True, index=True)
    pool_id = Column(Integer, ForeignKey("pools.id"), index=True, nullable=False)

    name = Column(String(255))
    position = Column(Integer, default=0)
    # CASH / SITE_CREDIT / POINTS / FREE_TICKET / BONUS_ATTEMPT / PHYSICAL / NO_WIN
    reward_type = Column(String(32), nullable=False)
    magnitude = Column(Numeric(12, 2), default=0)
    # Relative probability
    weight = Column(Numeric(12, 4), default=0)

    # NULL capacity = unlimited. consumed <= capacity always
    capacity = Column(Integer, nullable=True)
    consumed = Column(Integer, default=0, nullable=False)

    # Explicit consolation prize for out-of-stock fallback
    is_consolation = Column(Boolean, default=False)

    # Instant wins: the winning ticket number and who claimed it
    ticket_number = Column(Integer, nullable=True, index=True)
    claimed_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    claimed_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    pool = relationship("Pool", back_populates="units")

    @property
    def remaining(self):
        """Units left, or None when unlimited"""
        if self.capacity is None:
            return None
        return max(self.capacity - (self.consumed or 0), 0)


# --- 4. AllocationAttempt Model (spin / claim history, append-only) ---
class AllocationAttempt(Base):
    __tablename__ = "allocation_attempts"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    principal_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    pool_id = Column(Integer, ForeignKey("pools.id"), index=True, nullable=False)
    unit_id = Column(Integer, ForeignKey("reward_units.id"), nullable=True)

    reward_type = Column(String(32))
    magnitude = Column(Numeric(12, 2), default=0)
    # ALLOCATED / CONFLICT / REJECTED
    outcome = Column(String(16), default="ALLOCATED", index=True)
    # Set when the attempt was funded by a bonus grant instead of the quota
    bonus_grant_id = Column(Integer, ForeignKey("bonus_attempts.id"), nullable=True)

    # "metadata" is reserved on declarative classes
    result_metadata = Column(JSON, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utc_now, index=True)

    # Relationships
    principal = relationship("User", back_populates="attempts")
    pool = relationship("Pool")
    unit = relationship("RewardUnit")


# --- 5. Wallet Model ---
class Wallet(Base):
    __tablename__ = "wallets"
    __table_args__ = (UniqueConstraint("user_id", "currency", name="uq_wallet_user_currency"),)

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    # CASH (withdrawable) / CREDIT (site credit) / POINTS
    currency = Column(String(16), nullable=False)
    balance = Column(Numeric(14, 2), default=0, nullable=False)
    is_frozen = Column(Boolean, default=False)

    created_at = Column(DateTime(timezone=True), default=utc_now)
    updated_at = Column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    # Relationships
    user = relationship("User", back_populates="wallets")
    transactions = relationship("WalletTransaction", back_populates="wallet")


# --- 6. WalletTransaction Model (ledger rows) ---
class WalletTransaction(Base):
    __tablename__ = "wallet_transactions"

    id = Column(Integer, primary_key=True, index=True)
    wallet_id = Column(Integer, ForeignKey("wallets.id"), index=True, nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    # CREDIT / DEBIT
    direction = Column(String(8), nullable=False)
    # Idempotency key: one ledger row per reference
    reference = Column(String(255), unique=True, index=True, nullable=False)
    description = Column(String(512))

    created_at = Column(DateTime(timezone=True), default=utc_now)

    # Relationships
    wallet = relationship("Wallet", back_populates="transactions")


# --- 7. UniversalTicket Model ---
class UniversalTicket(Base):
    __tablename__ = "universal_tickets"

    id = Column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    # Sequential, platform-wide
    ticket_number = Column(Integer, unique=True, index=True, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    source = Column(String(50))
    is_used = Column(Boolean, default=False)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)


# --- 8. BonusAttempt Model (extra attempt grants) ---
class BonusAttempt(Base):
    __tablename__ = "bonus_attempts"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    # NULL = usable on any pool
    pool_id = Column(Integer, ForeignKey("pools.id"), nullable=True)
    source_attempt_id = Column(String(36), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=False)
    used_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utc_now)


# --- 9. PhysicalPrizeClaim Model ---
class PhysicalPrizeClaim(Base):
    __tablename__ = "physical_prize_claims"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    unit_id = Column(Integer, ForeignKey("reward_units.id"), nullable=False)
    attempt_id = Column(String(36), nullable=True)
    # PENDING -> SHIPPED -> DELIVERED (fulfilment is handled elsewhere)
    status = Column(String(32), default="PENDING")

    created_at = Column(DateTime(timezone=True), default=utc_now)


# --- 10. Counter Model (row-locked number sequences) ---
class Counter(Base):
    __tablename__ = "counters"

    name = Column(String(64), primary_key=True)
    # Last number handed out
    value = Column(Integer, default=0, nullable=False)
