"""
BillingPlanRepository for database operations on BillingPlan model
"""

from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import DEFAULT_CURRENCY, PLAN_FREE, PLAN_PROFESSIONAL
from database_models import BillingPlan

DEFAULT_PLANS = [
    {
        "id": "free-trial",
        "name": "Free Trial",
        "type": PLAN_FREE,
        "price": 0.0,
        "currency": DEFAULT_CURRENCY,
        "billing_cycle": "DAILY",
        "features": [
            "Full access to all features",
            "Customer management",
            "Order tracking",
            "Measurement management",
            "Payment tracking",
            "Inventory management",
            "Mobile app access",
            "Basic support",
        ],
        "limits": {"customers": 50, "orders": 100, "team_members": 3, "storage": 500},
    },
    {
        "id": "standard-monthly",
        "name": "Standard Plan",
        "type": PLAN_PROFESSIONAL,
        "price": 43.0,
        "currency": DEFAULT_CURRENCY,
        "billing_cycle": "MONTHLY",
        "features": [
            "Full access to all features",
            "Customer management",
            "Order tracking",
            "Measurement management",
            "Payment tracking",
            "Inventory management",
            "Mobile app access",
            "Priority support",
            "Advanced reporting",
            "Data export",
            "Custom branding",
        ],
        "limits": {"customers": 200, "orders": 500, "team_members": 5, "storage": 2000},
    },
]


class BillingPlanRepository:
    """
    Repository class for BillingPlan database operations.
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_id(self, plan_id: str) -> Optional[BillingPlan]:
        result = await self.db.execute(select(BillingPlan).where(BillingPlan.id == plan_id))
        return result.scalar_one_or_none()

    async def list_active(self) -> List[BillingPlan]:
        result = await self.db.execute(
            select(BillingPlan).where(BillingPlan.is_active.is_(True)).order_by(BillingPlan.price)
        )
        return list(result.scalars().all())

    async def get_trial_plan(self) -> Optional[BillingPlan]:
        """First active FREE plan, used for new trial subscriptions."""
        result = await self.db.execute(
            select(BillingPlan)
            .where(BillingPlan.type == PLAN_FREE)
            .where(BillingPlan.is_active.is_(True))
            .limit(1)
        )
        return result.scalar_one_or_none()

    async def seed_defaults(self) -> int:
        """
        Insert the default plans when the table is empty.

        Returns:
            Number of plans inserted (0 when plans already exist)
        """
        existing = await self.db.scalar(select(func.count()).select_from(BillingPlan))
        if existing:
            return 0

        for plan_data in DEFAULT_PLANS:
            self.db.add(BillingPlan(**plan_data, is_active=True))
        await self.db.flush()
        return len(DEFAULT_PLANS)
