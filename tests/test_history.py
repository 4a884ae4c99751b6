from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from app.core.config import settings
from app.core.errors import UnknownRewardTypeError
from app.db import models
from app.services import history_service
from app.services.reward_dispatcher import RewardDispatcher, RewardType
from app.utils.time_utils import UTC

from conftest import NOW


def test_every_reward_type_has_a_handler():
    dispatcher = RewardDispatcher()
    assert set(dispatcher._handlers) == set(RewardType)


def test_parse_reward_type():
    assert RewardType.parse("site_credit") == RewardType.SITE_CREDIT
    with pytest.raises(UnknownRewardTypeError):
        RewardType.parse("GOLD_BAR")
    with pytest.raises(UnknownRewardTypeError):
        RewardType.parse(None)


def _record(db, user, pool, reward_type, magnitude, outcome="ALLOCATED", when=NOW, unit=None):
    return history_service.record_attempt(
        db,
        principal_id=user.id,
        pool_id=pool.id,
        unit=unit,
        reward_type=reward_type,
        magnitude=magnitude,
        outcome=outcome,
        now=when,
    )


def test_list_attempts_newest_first_with_limit(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(name="Daily Wheel")
    for hours in range(3):
        _record(db, user, pool, "POINTS", hours, when=NOW + timedelta(hours=hours))
    _record(db, make_user(), pool, "POINTS", 99)
    db.commit()

    attempts = history_service.list_attempts(db, user.id, limit=2)

    assert [a.magnitude for a in attempts] == [Decimal("2"), Decimal("1")]
    assert attempts[0].pool.name == "Daily Wheel"


def test_pool_statistics(db, make_user, make_pool):
    alice, bob = make_user(), make_user()
    pool = make_pool(
        units=[
            {"name": "Cash", "reward_type": "CASH", "magnitude": 10, "capacity": 5, "consumed": 2},
            {"name": "Nothing", "reward_type": "NO_WIN"},
        ],
    )
    _record(db, alice, pool, "CASH", 10)
    _record(db, bob, pool, "CASH", 10)
    _record(db, bob, pool, "NO_WIN", 0)
    _record(db, bob, pool, "NO_WIN", 0, outcome="CONFLICT")
    _record(db, alice, pool, None, 0, outcome="REJECTED")
    db.commit()

    stats = history_service.pool_statistics(db, pool.id)

    assert stats["total_attempts"] == 4
    assert stats["unique_principals"] == 2
    assert stats["winning_attempts"] == 2
    assert stats["rejected_attempts"] == 1
    assert stats["total_prize_value"] == Decimal("20")
    assert stats["distribution"] == {"CASH": 2, "NO_WIN": 2}
    cash = stats["stock"][0]
    assert (cash["name"], cash["consumed"], cash["remaining"]) == ("Cash", 2, 3)
    assert stats["stock"][1]["remaining"] is None


def test_daily_trend_is_zero_filled(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=10)
    _record(db, user, pool, "CASH", 5, when=NOW)
    _record(db, user, pool, "NO_WIN", 0, when=NOW)
    _record(db, user, pool, "POINTS", 5, when=NOW - timedelta(days=2))
    # Outside the window
    _record(db, user, pool, "POINTS", 5, when=NOW - timedelta(days=10))
    db.commit()

    trend = history_service.daily_trend(db, pool.id, days=3, now=NOW)

    assert trend == [
        {"date": "2026-10-17", "attempts": 1, "wins": 1},
        {"date": "2026-10-18", "attempts": 0, "wins": 0},
        {"date": "2026-10-19", "attempts": 2, "wins": 1},
    ]


def test_daily_trend_window_spans_dst_change(db, make_user, make_pool, monkeypatch):
    monkeypatch.setattr(settings, "APP_TIMEZONE", "Europe/London")
    user = make_user()
    pool = make_pool(per_user_limit=10)
    # 00:30 BST on 24 Oct; clocks go back on 25 Oct
    _record(db, user, pool, "CASH", 5, when=datetime(2026, 10, 23, 23, 30, tzinfo=UTC))
    db.commit()

    trend = history_service.daily_trend(db, pool.id, days=3, now=datetime(2026, 10, 26, 12, 0, tzinfo=UTC))

    assert [point["date"] for point in trend] == ["2026-10-24", "2026-10-25", "2026-10-26"]
    assert trend[0]["attempts"] == 1
