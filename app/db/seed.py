# promo-allocation-backend/app/db/seed.py
"""
Demo data: users, a daily wheel, a VIP cooldown wheel and an instant-win competition.

    python -m app.db.seed          # reset and seed
"""
import logging
import random

from sqlalchemy.orm import Session

from app.core.logging import setup_logging
from app.db.database import SessionLocal, engine, Base
from app.db.models import Pool, RewardUnit, User

logger = logging.getLogger(__name__)

DEMO_USERS = [
    {"username": "alice", "level": 1},
    {"username": "bob", "level": 3},
    {"username": "carol", "level": 5},
]

# (name, reward_type, magnitude, weight, capacity, is_consolation)
DAILY_WHEEL_SEGMENTS = [
    ("£50 Cash", "CASH", 50, 1, 2, False),
    ("£5 Site Credit", "SITE_CREDIT", 5, 10, None, True),
    ("£10 Site Credit", "SITE_CREDIT", 10, 6, 50, False),
    ("100 Points", "POINTS", 100, 25, None, False),
    ("Free Ticket", "FREE_TICKET", 1, 8, 100, False),
    ("Bonus Spin", "BONUS_ATTEMPT", 1, 10, None, False),
    ("No Win", "NO_WIN", 0, 40, None, False),
]

VIP_WHEEL_SEGMENTS = [
    ("£250 Cash", "CASH", 250, 1, 1, False),
    ("£25 Site Credit", "SITE_CREDIT", 25, 20, 20, False),
    ("500 Points", "POINTS", 500, 40, None, False),
    ("£2 Site Credit", "SITE_CREDIT", 2, 39, None, True),
]

INSTANT_WIN_TICKETS = 200
# (name, reward_type, magnitude, how many)
INSTANT_WIN_PRIZES = [
    ("£100 Cash", "CASH", 100, 1),
    ("£20 Site Credit", "SITE_CREDIT", 20, 5),
    ("250 Points", "POINTS", 250, 10),
    ("Smartwatch", "PHYSICAL", 199, 1),
]


def _add_wheel(db: Session, pool: Pool, segments) -> None:
    db.add(pool)
    db.flush()
    for position, (name, reward_type, magnitude, weight, capacity, consolation) in enumerate(segments):
        db.add(
            RewardUnit(
                pool_id=pool.id,
                name=name,
                position=position,
                reward_type=reward_type,
                magnitude=magnitude,
                weight=weight,
                capacity=capacity,
                is_consolation=consolation,
            )
        )


def create_initial_data(db: Session, seed: int = 42):
    """Insert demo data"""
    rng = random.Random(seed)

    logger.info("Creating users...")
    for u in DEMO_USERS:
        db.add(User(username=u["username"], level=u["level"]))

    logger.info("Creating wheels...")
    _add_wheel(
        db,
        Pool(name="Daily Free Spin", kind="WHEEL", period_key="DAILY", per_user_limit=1),
        DAILY_WHEEL_SEGMENTS,
    )
    _add_wheel(
        db,
        Pool(
            name="VIP Wheel",
            kind="WHEEL",
            period_key="VIP",
            per_user_limit=1,
            cooldown_hours=12,
            min_tier=3,
            global_limit=500,
        ),
        VIP_WHEEL_SEGMENTS,
    )

    logger.info("Creating instant-win competition...")
    competition = Pool(name="Summer Instant Wins", kind="INSTANT_WIN", period_key="EVENT", per_user_limit=5)
    db.add(competition)
    db.flush()

    winning_numbers = rng.sample(range(1, INSTANT_WIN_TICKETS + 1), sum(p[3] for p in INSTANT_WIN_PRIZES))
    position = 0
    for name, reward_type, magnitude, count in INSTANT_WIN_PRIZES:
        for _ in range(count):
            db.add(
                RewardUnit(
                    pool_id=competition.id,
                    name=name,
                    position=position,
                    reward_type=reward_type,
                    magnitude=magnitude,
                    weight=0,
                    capacity=1,
                    ticket_number=winning_numbers[position],
                )
            )
            position += 1

    db.commit()
    logger.info("Seeding complete!")


def seed_if_empty(db: Session):
    """Seed only when there are no pools yet"""
    if db.query(Pool).count() == 0:
        logger.info("DB is empty. Seeding initial data...")
        create_initial_data(db)
    else:
        logger.info("Data already exists. Skipping seed.")


def reset_and_seed():
    """Drop and recreate every table, then seed."""
    logger.warning("FORCE RESETTING DATABASE...")
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)

    db = SessionLocal()
    try:
        create_initial_data(db)
    finally:
        db.close()


if __name__ == "__main__":
    setup_logging()
    reset_and_seed()
