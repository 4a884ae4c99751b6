import random
from collections import Counter

from app.db import models
from app.services.selector import WeightedSelector, has_stock

from conftest import FixedRandom


def _unit(uid, weight=1, capacity=None, consumed=0, reward_type="POINTS", magnitude=10, **kwargs):
    return models.RewardUnit(
        id=uid,
        position=uid,
        weight=weight,
        capacity=capacity,
        consumed=consumed,
        reward_type=reward_type,
        magnitude=magnitude,
        **kwargs,
    )


def test_has_stock():
    assert has_stock(_unit(1, capacity=None, consumed=99))
    assert has_stock(_unit(2, capacity=2, consumed=1))
    assert not has_stock(_unit(3, capacity=2, consumed=2))


def test_select_returns_none_when_everything_is_exhausted():
    selector = WeightedSelector(random.Random(1))
    units = [_unit(1, capacity=1, consumed=1), _unit(2, capacity=0)]
    assert selector.select(units) is None
    assert selector.select([]) is None


def test_select_skips_exhausted_units_even_with_heavy_weight():
    selector = WeightedSelector(random.Random(1))
    heavy = _unit(1, weight=1000, capacity=1, consumed=1)
    light = _unit(2, weight=1)
    for _ in range(50):
        assert selector.select([heavy, light]) is light


def test_select_walks_candidates_in_position_order():
    units = [_unit(3, weight=10), _unit(1, weight=10), _unit(2, weight=10)]
    # r = 15 -> first unit (10) leaves 5, second unit takes it
    picked = WeightedSelector(FixedRandom(0.5)).select(units)
    assert picked.id == 2


def test_select_falls_back_to_last_candidate_on_float_residue():
    class Overshoot(random.Random):
        def uniform(self, a, b):
            return b + 1e-9

    units = [_unit(1, weight=0.1), _unit(2, weight=0.2)]
    assert WeightedSelector(Overshoot()).select(units).id == 2


def test_select_with_all_zero_weights_picks_any_available():
    selector = WeightedSelector(random.Random(3))
    units = [_unit(1, weight=0), _unit(2, weight=0, capacity=1, consumed=1)]
    assert selector.select(units).id == 1


def test_weighted_frequencies_converge_to_configured_proportions():
    selector = WeightedSelector(random.Random(2026))
    units = [_unit(1, weight=10), _unit(2, weight=30), _unit(3, weight=60)]
    trials = 20000
    counts = Counter(selector.select(units).id for _ in range(trials))

    assert abs(counts[1] / trials - 0.10) < 0.02
    assert abs(counts[2] / trials - 0.30) < 0.02
    assert abs(counts[3] / trials - 0.60) < 0.02


def test_alternative_prefers_flagged_consolation_unit():
    units = [
        _unit(1, reward_type="NO_WIN", magnitude=0),
        _unit(2, reward_type="POINTS", magnitude=5, is_consolation=True),
    ]
    assert WeightedSelector().select_alternative(units).id == 2


def test_alternative_uses_no_win_or_small_credit_heuristic():
    units = [
        _unit(1, reward_type="CASH", magnitude=100),
        _unit(2, reward_type="SITE_CREDIT", magnitude=50),
        _unit(3, reward_type="SITE_CREDIT", magnitude=5),
    ]
    assert WeightedSelector().select_alternative(units).id == 3

    units.append(_unit(0, reward_type="NO_WIN", magnitude=0))
    assert WeightedSelector().select_alternative(units).id == 0


def test_alternative_skips_exhausted_consolation_and_takes_first_with_stock():
    units = [
        _unit(1, reward_type="NO_WIN", capacity=1, consumed=1, is_consolation=True),
        _unit(2, reward_type="CASH", magnitude=100, capacity=1, consumed=1),
        _unit(3, reward_type="POINTS", magnitude=500),
    ]
    assert WeightedSelector().select_alternative(units).id == 3


def test_alternative_returns_none_when_nothing_has_stock():
    units = [_unit(1, capacity=1, consumed=1), _unit(2, capacity=3, consumed=3)]
    assert WeightedSelector().select_alternative(units) is None
