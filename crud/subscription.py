"""
SubscriptionRepository for database operations on Subscription and BillingReminder
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from database_models import BillingReminder, Subscription

TRIAL_STATUS = "TRIAL"


class SubscriptionRepository:
    """
    Repository class for Subscription database operations.
    Encapsulates all query logic for subscriptions and their reminders.
    """

    def __init__(self, db: AsyncSession):
        """
        Initialize the repository with a database session.

        Args:
            db: AsyncSession instance for database operations
        """
        self.db = db

    async def get_latest_for_shop(self, shop_id: str) -> Optional[Subscription]:
        """
        Retrieve the most recently created subscription of a shop.

        Args:
            shop_id: Shop identifier

        Returns:
            Subscription if the shop has any, None otherwise
        """
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.shop_id == shop_id)
            .order_by(Subscription.created_at.desc(), Subscription.id.desc())
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def get_by_id(self, subscription_id: int) -> Optional[Subscription]:
        result = await self.db.execute(select(Subscription).where(Subscription.id == subscription_id))
        return result.scalar_one_or_none()

    async def create(self, data: dict) -> Subscription:
        """
        Insert a new subscription.

        Args:
            data: Column values. Must include shop_id and status.

        Returns:
            Created Subscription with its generated id
        """
        subscription = Subscription(**data)
        self.db.add(subscription)
        await self.db.flush()
        await self.db.refresh(subscription)
        return subscription

    async def find_expired_trials(self, now: datetime) -> List[Subscription]:
        """Trials whose end is at or before `now`."""
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.status == TRIAL_STATUS)
            .where(Subscription.trial_ends_at <= now)
        )
        return list(result.scalars().all())

    async def find_trials_due_reminder(self, now: datetime, window_end: datetime) -> List[Subscription]:
        """Trials ending in (now, window_end] that have not been reminded yet."""
        result = await self.db.execute(
            select(Subscription)
            .where(Subscription.status == TRIAL_STATUS)
            .where(Subscription.trial_ends_at > now)
            .where(Subscription.trial_ends_at <= window_end)
            .where(Subscription.trial_reminder_sent_at.is_(None))
        )
        return list(result.scalars().all())

    async def list_reminders(self, subscription_id: int) -> List[BillingReminder]:
        result = await self.db.execute(
            select(BillingReminder).where(BillingReminder.subscription_id == subscription_id)
        )
        return list(result.scalars().all())
