"""Cutoff policies — when customers may still modify upcoming meals.

Two independent rules, each applied to its own endpoint family:

* Per-delivery cutoff: a single delivery locks at 20:00 on the day before its
  delivery date. Used by the delivery-level skip / change-address operations.
* Weekly lock: subscription-level address / skip / swap changes are locked from
  Friday 20:00 through Sunday 23:59:59 and open again Monday 00:00.

All functions are pure. Times are evaluated in the timezone carried by `now`
(naive datetimes are treated as local wall-clock time).
"""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo

from zynk.constants import DELIVERY_CUTOFF_HOUR, WEEKLY_LOCK_HOUR, WEEKLY_LOCK_WEEKDAY
from zynk.utils import start_of_day

_SATURDAY = 5
_SUNDAY = 6


@dataclass(frozen=True)
class LockStatus:
    locked: bool
    next_available_at: datetime | None
    next_lock_at: datetime


def delivery_cutoff(delivery_date: date, tz: tzinfo | None = None) -> datetime:
    """20:00 on the day before `delivery_date`."""
    return datetime.combine(
        delivery_date - timedelta(days=1), time(DELIVERY_CUTOFF_HOUR), tzinfo=tz
    )


def is_locked_for_delivery(now: datetime, delivery_date: date) -> bool:
    """True once `now` has reached the delivery's cutoff. Never unlocks again."""
    return now >= delivery_cutoff(delivery_date, now.tzinfo)


def is_weekly_locked(now: datetime) -> bool:
    weekday = now.weekday()
    if weekday == WEEKLY_LOCK_WEEKDAY and now.hour >= WEEKLY_LOCK_HOUR:
        return True
    return weekday in (_SATURDAY, _SUNDAY)


def next_weekly_unlock(now: datetime) -> datetime:
    """The first Monday 00:00 strictly after `now`.

    On a Monday this is the following Monday; the lock window never overlaps
    Monday so callers only ask while locked (Fri evening to Sun).
    """
    days_ahead = 7 - now.weekday()
    return start_of_day(now.date() + timedelta(days=days_ahead), now.tzinfo)


def next_weekly_lock(now: datetime) -> datetime:
    """Friday 20:00 of this week, or of next week once this week's has passed."""
    days_ahead = (WEEKLY_LOCK_WEEKDAY - now.weekday()) % 7
    candidate = datetime.combine(
        now.date() + timedelta(days=days_ahead), time(WEEKLY_LOCK_HOUR), tzinfo=now.tzinfo
    )
    if candidate <= now:
        candidate += timedelta(days=7)
    return candidate


def lock_status(now: datetime) -> LockStatus:
    locked = is_weekly_locked(now)
    return LockStatus(
        locked=locked,
        next_available_at=next_weekly_unlock(now) if locked else None,
        next_lock_at=next_weekly_lock(now),
    )


def next_week_range(now: datetime) -> tuple[date, date]:
    """Monday and Sunday of the week after the one containing `now`."""
    monday = now.date() + timedelta(days=7 - now.weekday())
    return monday, monday + timedelta(days=6)
