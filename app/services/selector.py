# promo-allocation-backend/app/services/selector.py
"""
Weighted prize selection.

Probability weights and stock are independent: a heavy unit may already be
exhausted. select() only draws among in-stock units; select_alternative() is
the deterministic fallback when the pick turns out to be gone at consume
time.
"""

import random
from typing import Optional, Sequence

from app.core.config import settings
from app.db import models

NO_WIN = "NO_WIN"
SITE_CREDIT = "SITE_CREDIT"


def has_stock(unit: models.RewardUnit) -> bool:
    if unit.capacity is None:
        return True
    return (unit.consumed or 0) < unit.capacity


def _ordered(candidates: Sequence[models.RewardUnit]) -> list:
    return sorted(candidates, key=lambda u: (u.position or 0, u.id or 0))


def _is_heuristic_consolation(unit: models.RewardUnit) -> bool:
    if unit.reward_type == NO_WIN:
        return True
    return (
        unit.reward_type == SITE_CREDIT
        and float(unit.magnitude or 0) <= settings.CONSOLATION_CREDIT_MAX
    )


class WeightedSelector:
    def __init__(self, rng: Optional[random.Random] = None):
        self.rng = rng or random.Random()

    def select(self, candidates: Sequence[models.RewardUnit]) -> Optional[models.RewardUnit]:
        """Weighted draw among units that still have stock. None if nothing is left."""
        available = [u for u in _ordered(candidates) if has_stock(u)]
        if not available:
            return None

        weights = [max(float(u.weight or 0), 0.0) for u in available]
        total = sum(weights)
        if total <= 0:
            return self.rng.choice(available)

        r = self.rng.uniform(0, total)
        for unit, weight in zip(available, weights):
            r -= weight
            if r <= 0:
                return unit

        # Float residue left r slightly positive
        return available[-1]

    def select_alternative(
        self, candidates: Sequence[models.RewardUnit]
    ) -> Optional[models.RewardUnit]:
        """
        Fallback order:
        1. a unit flagged is_consolation
        2. NO_WIN, or SITE_CREDIT worth <= CONSOLATION_CREDIT_MAX
        3. the first unit with any stock
        """
        ordered = [u for u in _ordered(candidates) if has_stock(u)]

        for unit in ordered:
            if unit.is_consolation:
                return unit

        for unit in ordered:
            if _is_heuristic_consolation(unit):
                return unit

        return ordered[0] if ordered else None
