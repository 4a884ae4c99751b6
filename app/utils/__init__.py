# promo-allocation-backend/app/utils/__init__.py
"""
Utility modules
"""

from .time_utils import (
    UTC,
    EPOCH,
    utc_now,
    to_utc,
    to_local,
    local_date,
    start_of_date,
    start_of_day,
    start_of_week,
    start_of_month,
    start_of_next_day,
    start_of_next_week,
    start_of_next_month,
)
