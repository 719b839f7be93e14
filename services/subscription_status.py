"""
Subscription status rules shared by the local trial record and the server
subscription rows.

Every instant handled here is an epoch timestamp in milliseconds. The
effective status is always derived from stored fields and the current time;
nothing in this module writes a derived status back to storage.
"""
import math
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Protocol

DAY_MS = 24 * 60 * 60 * 1000
HOUR_MS = 60 * 60 * 1000


class StoredStatus(str, Enum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    TRIAL_EXPIRED = "TRIAL_EXPIRED"
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"


class EffectiveStatus(str, Enum):
    TRIAL = "TRIAL"
    ACTIVE = "ACTIVE"
    TRIAL_EXPIRED = "TRIAL_EXPIRED"
    EXPIRED = "EXPIRED"
    NO_SUBSCRIPTION = "NO_SUBSCRIPTION"
    PAST_DUE = "PAST_DUE"
    CANCELLED = "CANCELLED"


UNLOCKED_STATUSES = frozenset({EffectiveStatus.TRIAL, EffectiveStatus.ACTIVE})


class StatusRecord(Protocol):
    status: StoredStatus
    trial_ends_at: int
    current_period_end: Optional[int]


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Millisecond view of a server subscription row."""
    status: StoredStatus
    trial_ends_at: int
    current_period_end: Optional[int] = None


@dataclass(frozen=True)
class StatusCheck:
    is_active: bool
    is_locked: bool
    status: str
    days_until_expiry: Optional[int] = None

    def to_dict(self) -> dict:
        data = {
            "is_active": self.is_active,
            "is_locked": self.is_locked,
            "status": self.status,
        }
        if self.days_until_expiry is not None:
            data["days_until_expiry"] = self.days_until_expiry
        return data


@dataclass(frozen=True)
class TrialTimeLeft:
    is_trial: bool
    days_left: int
    hours_left: int
    is_expired: bool


def now_ms() -> int:
    return int(time.time() * 1000)


def to_millis(value: Optional[datetime]) -> Optional[int]:
    """Convert a datetime to epoch millis. Naive datetimes are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return int(value.timestamp() * 1000)


def from_millis(value: int) -> datetime:
    return datetime.fromtimestamp(value / 1000, tz=timezone.utc)


def resolve_status(record: Optional[StatusRecord], now: int) -> EffectiveStatus:
    """
    Compute the effective status of a stored record at instant `now`.

    - no record -> NO_SUBSCRIPTION
    - ACTIVE -> EXPIRED once now > current_period_end (or when the period end is missing)
    - TRIAL -> TRIAL_EXPIRED once now > trial_ends_at
    - anything else is returned as stored
    """
    if record is None:
        return EffectiveStatus.NO_SUBSCRIPTION

    status = StoredStatus(record.status)

    if status is StoredStatus.ACTIVE:
        if record.current_period_end is None or now > record.current_period_end:
            return EffectiveStatus.EXPIRED
        return EffectiveStatus.ACTIVE

    if status is StoredStatus.TRIAL and now > record.trial_ends_at:
        return EffectiveStatus.TRIAL_EXPIRED

    return EffectiveStatus(status.value)


def is_locked(status: EffectiveStatus) -> bool:
    return EffectiveStatus(status) not in UNLOCKED_STATUSES


def days_until_expiry(record: StatusRecord, now: int) -> int:
    """Whole days (rounded up) until the record's end instant, never negative. Display only."""
    end = record.current_period_end if record.current_period_end is not None else record.trial_ends_at
    return max(0, math.ceil((end - now) / DAY_MS))


def check_status(record: Optional[StatusRecord], now: int) -> StatusCheck:
    status = resolve_status(record, now)
    locked = is_locked(status)
    if locked:
        return StatusCheck(is_active=False, is_locked=True, status=status.value)
    return StatusCheck(
        is_active=True,
        is_locked=False,
        status=status.value,
        days_until_expiry=days_until_expiry(record, now),
    )


def trial_time_left(record: Optional[StatusRecord], now: int) -> TrialTimeLeft:
    if record is None or StoredStatus(record.status) is not StoredStatus.TRIAL:
        return TrialTimeLeft(is_trial=False, days_left=0, hours_left=0, is_expired=False)

    remaining = record.trial_ends_at - now
    if remaining <= 0:
        return TrialTimeLeft(is_trial=True, days_left=0, hours_left=0, is_expired=True)
    return TrialTimeLeft(
        is_trial=True,
        days_left=remaining // DAY_MS,
        hours_left=(remaining % DAY_MS) // HOUR_MS,
        is_expired=False,
    )


def snapshot_subscription(subscription) -> Optional[SubscriptionSnapshot]:
    """Build a millisecond snapshot of a `database_models.Subscription` row."""
    if subscription is None:
        return None
    trial_end = subscription.trial_ends_at or subscription.current_period_end or subscription.created_at
    return SubscriptionSnapshot(
        status=StoredStatus(subscription.status),
        trial_ends_at=to_millis(trial_end),
        current_period_end=to_millis(subscription.current_period_end),
    )
