"""
Trial processor: cancels expired trial subscriptions and queues the one-time
expiry reminder for trials ending within the reminder window.

Each half runs its query and writes inside its own transaction, so one half
failing leaves the other untouched. A failed half is simply picked up again on
the next run; reminded subscriptions carry trial_reminder_sent_at and drop out
of the reminder query.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import async_sessionmaker

from crud.subscription import SubscriptionRepository
from database_models import BillingReminder

logger = logging.getLogger(__name__)

REMINDER_WINDOW_HOURS = 24
REMINDER_TYPE = "TRIAL_EXPIRY_24H"
REMINDER_MESSAGE = "Your free trial expires in less than 24 hours. Upgrade now to avoid losing access."


@dataclass
class TrialSweepResult:
    started_at: datetime
    reminder_window_end: datetime
    cancelled: int = 0
    reminded: int = 0
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "started_at": self.started_at.isoformat(),
            "reminder_window_end": self.reminder_window_end.isoformat(),
            "cancelled": self.cancelled,
            "reminded": self.reminded,
            "errors": dict(self.errors),
        }


async def expire_trials(session_factory: async_sessionmaker, now: datetime) -> int:
    """Mark every TRIAL subscription with trial_ends_at <= now as CANCELLED, in one transaction."""
    async with session_factory() as session:
        async with session.begin():
            expired = await SubscriptionRepository(session).find_expired_trials(now)
            for subscription in expired:
                subscription.status = "CANCELLED"
                subscription.cancelled_at = now
                subscription.updated_at = now
    if expired:
        logger.info(f"Marked trials as cancelled: {len(expired)}")
    return len(expired)


async def queue_trial_reminders(
    session_factory: async_sessionmaker,
    now: datetime,
    window_end: datetime,
) -> int:
    """
    Stamp trial_reminder_sent_at and insert the reminder record for every trial
    ending in (now, window_end], in one transaction.
    """
    async with session_factory() as session:
        async with session.begin():
            due = await SubscriptionRepository(session).find_trials_due_reminder(now, window_end)
            for subscription in due:
                subscription.trial_reminder_sent_at = now
                subscription.updated_at = now
                session.add(BillingReminder(
                    shop_id=subscription.shop_id,
                    subscription_id=subscription.id,
                    trial_ends_at=subscription.trial_ends_at,
                    sent_at=now,
                    type=REMINDER_TYPE,
                    message=REMINDER_MESSAGE,
                ))
    if due:
        logger.info(f"Queued trial reminders: {len(due)}")
    return len(due)


async def process_trial_subscriptions(
    session_factory: async_sessionmaker,
    now: Optional[datetime] = None,
    reminder_window_hours: int = REMINDER_WINDOW_HOURS,
) -> TrialSweepResult:
    """
    Run one sweep over trial subscriptions.

    Args:
        session_factory: Factory for sessions; each batch opens its own
        now: Sweep instant (defaults to current UTC time)
        reminder_window_hours: How far ahead of expiry the reminder is due

    Returns:
        TrialSweepResult with counts and the error of each failed half
    """
    now = now or datetime.now(timezone.utc)
    result = TrialSweepResult(
        started_at=now,
        reminder_window_end=now + timedelta(hours=reminder_window_hours),
    )
    logger.info(
        f"Trial processor triggered at {now.isoformat()} "
        f"(reminder window ends {result.reminder_window_end.isoformat()})"
    )

    try:
        result.cancelled = await expire_trials(session_factory, now)
    except Exception as e:
        logger.error(f"Trial expiry batch failed: {e}", exc_info=True)
        result.errors["expiry"] = str(e)

    try:
        result.reminded = await queue_trial_reminders(session_factory, now, result.reminder_window_end)
    except Exception as e:
        logger.error(f"Trial reminder batch failed: {e}", exc_info=True)
        result.errors["reminders"] = str(e)

    logger.info(f"Trial processor finished: cancelled={result.cancelled} reminded={result.reminded}")
    return result


async def _main():
    from database import get_session_factory, init_db

    await init_db()
    result = await process_trial_subscriptions(get_session_factory())
    if not result.ok:
        raise SystemExit(1)


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s")
    asyncio.run(_main())
