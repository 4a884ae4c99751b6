from datetime import datetime, timedelta

import pytest

from app.core.config import settings
from app.db import models
from app.services import eligibility_service, history_service
from app.services.eligibility_service import PeriodType, resolve_period, window_start
from app.utils.time_utils import UTC, EPOCH, to_utc

from conftest import NOW


def _log(db, user, pool, when, outcome="ALLOCATED", bonus_grant_id=None):
    history_service.record_attempt(
        db,
        principal_id=user.id,
        pool_id=pool.id,
        unit=None,
        reward_type="NO_WIN",
        magnitude=0,
        outcome=outcome,
        now=when,
        bonus_grant_id=bonus_grant_id,
    )
    db.commit()


@pytest.mark.parametrize(
    "key, expected",
    [
        ("DAILY", PeriodType.DAILY),
        ("free_spin", PeriodType.DAILY),
        ("WEEKLY", PeriodType.WEEKLY),
        ("MONTHLY", PeriodType.MONTHLY),
        ("VIP", PeriodType.COOLDOWN),
        ("PAID_SPIN", PeriodType.COOLDOWN),
        ("EVENT", PeriodType.ALL_TIME),
        ("something-else", PeriodType.DAILY),
        (None, PeriodType.DAILY),
    ],
)
def test_resolve_period(key, expected):
    assert resolve_period(key) == expected


def test_window_start_boundaries():
    thursday = datetime(2026, 10, 22, 15, 30, tzinfo=UTC)
    assert window_start(PeriodType.DAILY, thursday, 24) == datetime(2026, 10, 22, tzinfo=UTC)
    assert window_start(PeriodType.WEEKLY, thursday, 24) == datetime(2026, 10, 19, tzinfo=UTC)
    assert window_start(PeriodType.MONTHLY, thursday, 24) == datetime(2026, 10, 1, tzinfo=UTC)
    assert window_start(PeriodType.COOLDOWN, thursday, 6) == thursday - timedelta(hours=6)
    assert window_start(PeriodType.ALL_TIME, thursday, 24) == EPOCH


def test_daily_windows_follow_platform_timezone(monkeypatch):
    monkeypatch.setattr(settings, "APP_TIMEZONE", "Europe/London")
    # 23:30 UTC on 19 Jul is already 00:30 on 20 Jul in London (BST)
    late = datetime(2026, 7, 19, 23, 30, tzinfo=UTC)
    assert window_start(PeriodType.DAILY, late, 24) == datetime(2026, 7, 19, 23, 0, tzinfo=UTC)


def test_daily_quota_rejects_second_attempt(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=1, period_key="DAILY")

    first = eligibility_service.evaluate(db, user, pool, now=NOW)
    assert first.allowed and first.remaining == 1

    _log(db, user, pool, NOW)
    second = eligibility_service.evaluate(db, user, pool, now=NOW + timedelta(minutes=5))
    assert not second.allowed
    assert second.reason == "quota exceeded"
    assert second.remaining == 0
    assert second.next_available_at == datetime(2026, 10, 20, tzinfo=UTC)


def test_daily_quota_resets_next_day(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=1, period_key="DAILY")
    _log(db, user, pool, NOW)

    tomorrow = NOW + timedelta(days=1)
    assert eligibility_service.evaluate(db, user, pool, now=tomorrow).allowed


def test_weekly_quota_next_available_is_next_monday(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=2, period_key="WEEKLY")
    _log(db, user, pool, NOW)
    _log(db, user, pool, NOW + timedelta(days=2))

    result = eligibility_service.evaluate(db, user, pool, now=NOW + timedelta(days=3))
    assert not result.allowed
    assert result.next_available_at == datetime(2026, 10, 26, tzinfo=UTC)


def test_cooldown_next_available_from_last_attempt(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=1, period_key="VIP", cooldown_hours=6)
    _log(db, user, pool, NOW)

    blocked = eligibility_service.evaluate(db, user, pool, now=NOW + timedelta(hours=2))
    assert not blocked.allowed
    assert to_utc(blocked.next_available_at) == NOW + timedelta(hours=6)

    assert eligibility_service.evaluate(db, user, pool, now=NOW + timedelta(hours=7)).allowed


def test_all_time_quota_has_no_next_available(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=1, period_key="EVENT")
    _log(db, user, pool, NOW - timedelta(days=300))

    result = eligibility_service.evaluate(db, user, pool, now=NOW)
    assert not result.allowed
    assert result.next_available_at is None


def test_global_cap_is_separate_from_user_quota(db, make_user, make_pool):
    pool = make_pool(per_user_limit=5, global_limit=2)
    alice, bob, carol = make_user(), make_user(), make_user()
    _log(db, alice, pool, NOW)
    _log(db, bob, pool, NOW)

    result = eligibility_service.evaluate(db, carol, pool, now=NOW)
    assert not result.allowed
    assert result.reason == "pool limit reached"
    assert result.next_available_at == datetime(2026, 10, 20, tzinfo=UTC)


def test_tier_gate(db, make_user, make_pool):
    pool = make_pool(min_tier=3)
    low = eligibility_service.evaluate(db, make_user(level=2), pool, now=NOW)
    assert not low.allowed
    assert low.reason.startswith("Minimum level 3")
    assert eligibility_service.evaluate(db, make_user(level=3), pool, now=NOW).allowed


def test_inactive_pool_is_ineligible(db, make_user, make_pool):
    pool = make_pool(is_active=False)
    result = eligibility_service.evaluate(db, make_user(), pool, now=NOW)
    assert not result.allowed
    assert result.reason == "Pool is not active"


def test_rejected_rows_do_not_use_quota(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=1)
    _log(db, user, pool, NOW, outcome="REJECTED")
    assert eligibility_service.evaluate(db, user, pool, now=NOW).allowed


def test_bonus_grant_allows_attempt_past_quota(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=1)
    _log(db, user, pool, NOW)

    grant = models.BonusAttempt(user_id=user.id, pool_id=pool.id, expires_at=NOW + timedelta(days=7))
    expired = models.BonusAttempt(user_id=user.id, pool_id=None, expires_at=NOW - timedelta(days=1))
    db.add_all([grant, expired])
    db.commit()

    result = eligibility_service.evaluate(db, user, pool, now=NOW)
    assert result.allowed
    assert result.bonus_grant_id == grant.id
    assert result.remaining == 1

    # Bonus-funded attempts are not counted against the regular quota
    _log(db, user, pool, NOW, bonus_grant_id=grant.id)
    assert eligibility_service.count_user_attempts(db, user.id, pool.id, EPOCH) == 1


def test_status_for_principal_lists_active_pools(db, make_user, make_pool):
    user = make_user()
    daily = make_pool(name="Daily")
    make_pool(name="Retired", is_active=False)
    _log(db, user, daily, NOW)

    rows = eligibility_service.status_for_principal(db, user, now=NOW)
    assert [row["pool"].name for row in rows] == ["Daily"]
    assert rows[0]["eligibility"].allowed is False


def test_zero_cooldown_is_not_replaced_by_default(db, make_user, make_pool):
    user = make_user()
    pool = make_pool(per_user_limit=1, period_key="VIP", cooldown_hours=0)
    _log(db, user, pool, NOW)

    assert eligibility_service.cooldown_hours_for(pool) == 0
    assert eligibility_service.evaluate(db, user, pool, now=NOW + timedelta(hours=1)).allowed


def test_missing_cooldown_uses_default(db, make_pool):
    pool = make_pool(period_key="VIP", cooldown_hours=None)
    assert eligibility_service.cooldown_hours_for(pool) == settings.DEFAULT_COOLDOWN_HOURS
