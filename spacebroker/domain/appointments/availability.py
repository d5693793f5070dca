"""Visit slot resolution against a listing's availability windows"""

from datetime import date
from typing import Iterable

from ...models import ListingAvailability
from ...shared.validators import time_to_minutes


def windows_for_date(windows: Iterable[ListingAvailability], day: date) -> list[ListingAvailability]:
    """Weekly windows for the weekday plus any window pinned to this date"""
    return [
        window
        for window in windows
        if window.specific_date == day
        or (window.specific_date is None and window.day_of_week == day.weekday())
    ]


def _covers(window: ListingAvailability, minutes: int) -> bool:
    return time_to_minutes(window.start_time) <= minutes < time_to_minutes(window.end_time)


def is_slot_available(windows: Iterable[ListingAvailability], day: date, time_slot: str) -> bool:
    """
    A slot is bookable when an open window covers it and no blocked
    window for the same day does.
    """
    minutes = time_to_minutes(time_slot)
    applicable = windows_for_date(windows, day)
    if any(window.is_blocked and _covers(window, minutes) for window in applicable):
        return False
    return any(not window.is_blocked and _covers(window, minutes) for window in applicable)
