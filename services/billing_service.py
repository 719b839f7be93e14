"""
Billing Service - server-side subscriptions, plans and payment activation
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import BILLING_CYCLE_DAYS, PLAN_FREE, PLAN_PROFESSIONAL
from crud.payment import PaymentRepository
from crud.plan import BillingPlanRepository
from crud.subscription import SubscriptionRepository
from database_models import BillingPlan, Subscription
from services.paystack_service import PaystackService
from services.subscription_status import (
    StatusCheck,
    check_status,
    from_millis,
    now_ms,
    snapshot_subscription,
)

logger = logging.getLogger(__name__)


class BillingError(Exception):
    """Base class for billing failures the API reports to callers."""


class PlanNotFoundError(BillingError):
    pass


class TrialPlanMissingError(BillingError):
    pass


class PaymentMismatchError(BillingError):
    """Gateway charge does not match the price of the plan it claims to pay for."""


def period_end_for(plan: BillingPlan, start: datetime) -> datetime:
    days = BILLING_CYCLE_DAYS.get(plan.billing_cycle, BILLING_CYCLE_DAYS["MONTHLY"])
    return start + timedelta(days=days)


def serialize_subscription(subscription: Optional[Subscription]) -> Optional[dict]:
    if subscription is None:
        return None

    def iso(value: Optional[datetime]) -> Optional[str]:
        return value.isoformat() if value else None

    return {
        "id": subscription.id,
        "shop_id": subscription.shop_id,
        "plan_id": subscription.plan_id,
        "status": subscription.status,
        "billing_cycle": subscription.billing_cycle,
        "current_period_start": iso(subscription.current_period_start),
        "current_period_end": iso(subscription.current_period_end),
        "trial_ends_at": iso(subscription.trial_ends_at),
        "trial_reminder_sent_at": iso(subscription.trial_reminder_sent_at),
        "cancelled_at": iso(subscription.cancelled_at),
        "payment_reference": subscription.payment_reference,
    }


def serialize_plan(plan: BillingPlan) -> dict:
    return {
        "id": plan.id,
        "name": plan.name,
        "type": plan.type,
        "price": plan.price,
        "currency": plan.currency,
        "billing_cycle": plan.billing_cycle,
        "features": plan.features,
        "limits": plan.limits,
        "is_active": plan.is_active,
    }


class BillingService:
    """
    Service class for subscription and plan business logic.
    The read path only derives status; the CANCELLED transition belongs to the trial processor.
    """

    def __init__(
        self,
        db: AsyncSession,
        trial_days: int = 3,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            db: AsyncSession instance for database operations
            trial_days: Length of new trial subscriptions
            clock: Returns the current time in epoch millis
        """
        self.db = db
        self.trial_days = trial_days
        self.clock = clock
        self.subscriptions = SubscriptionRepository(db)
        self.plans = BillingPlanRepository(db)
        self.payments = PaymentRepository(db)

    def _now(self) -> datetime:
        return from_millis(self.clock())

    async def create_trial_subscription(self, shop_id: str) -> Subscription:
        """
        Create a TRIAL subscription on the active FREE plan.

        Raises:
            TrialPlanMissingError: no active FREE plan exists
        """
        trial_plan = await self.plans.get_trial_plan()
        if trial_plan is None:
            raise TrialPlanMissingError("No trial plan found")

        now = self._now()
        trial_ends_at = now + timedelta(days=self.trial_days)
        subscription = await self.subscriptions.create({
            "shop_id": shop_id,
            "plan_id": trial_plan.id,
            "status": "TRIAL",
            "billing_cycle": trial_plan.billing_cycle,
            "current_period_start": now,
            "current_period_end": trial_ends_at,
            "trial_ends_at": trial_ends_at,
            "created_at": now,
            "updated_at": now,
        })
        logger.info(f"Trial subscription {subscription.id} created for shop {shop_id}")
        return subscription

    async def get_shop_subscription(self, shop_id: str) -> Optional[Subscription]:
        return await self.subscriptions.get_latest_for_shop(shop_id)

    async def check_subscription_status(self, shop_id: str) -> StatusCheck:
        """
        Resolve the shop's effective status. Any failure resolves to locked.
        """
        try:
            subscription = await self.get_shop_subscription(shop_id)
            return check_status(snapshot_subscription(subscription), self.clock())
        except Exception as e:
            logger.error(f"Error checking subscription status for shop {shop_id}: {e}", exc_info=True)
            return StatusCheck(is_active=False, is_locked=True, status="ERROR")

    async def get_available_plans(self, current: Optional[Subscription] = None) -> List[BillingPlan]:
        """
        Plans offered for upgrade. Trial shops only see the monthly professional plan.
        """
        plans = await self.plans.list_active()
        if not plans:
            logger.warning("No active billing plans found in database")
            return []

        if current is not None and current.status == "TRIAL":
            return [
                plan for plan in plans
                if plan.type == PLAN_PROFESSIONAL and plan.billing_cycle == "MONTHLY"
            ]
        return [plan for plan in plans if plan.type != PLAN_FREE]

    async def verify_payment_amount(self, plan_id: str, amount: Optional[int], currency: Optional[str]) -> BillingPlan:
        """
        Check a gateway charge (amount in minor units) against the plan price.

        Raises:
            PlanNotFoundError: plan_id does not exist
            PaymentMismatchError: amount or currency differ from the plan
        """
        plan = await self.plans.get_by_id(plan_id)
        if plan is None:
            raise PlanNotFoundError("Plan not found")

        expected = PaystackService.to_minor_units(plan.price)
        if amount is None or int(amount) != expected or (currency or "").upper() != plan.currency.upper():
            raise PaymentMismatchError(
                f"Payment of {amount} {currency} does not match plan {plan.id} ({expected} {plan.currency})"
            )
        return plan

    async def upgrade_subscription(self, shop_id: str, plan_id: str, payment_reference: str) -> Subscription:
        """
        Start a paid period after a confirmed payment.

        The shop's subscription moves to ACTIVE in place, keeping its trial end,
        so trial queries no longer match it. The caller must have verified the
        payment. Re-applying a reference returns the subscription it already paid for.

        Raises:
            PlanNotFoundError: plan_id does not exist
        """
        applied = await self.payments.get_by_reference(payment_reference)
        if applied is not None:
            logger.info(f"Payment {payment_reference} already applied to subscription {applied.subscription_id}")
            return await self.subscriptions.get_by_id(applied.subscription_id)

        plan = await self.plans.get_by_id(plan_id)
        if plan is None:
            raise PlanNotFoundError("Plan not found")

        now = self._now()
        period_end = period_end_for(plan, now)
        subscription = await self.subscriptions.get_latest_for_shop(shop_id)
        if subscription is None:
            subscription = await self.subscriptions.create({
                "shop_id": shop_id,
                "plan_id": plan.id,
                "status": "ACTIVE",
                "billing_cycle": plan.billing_cycle,
                "current_period_start": now,
                "current_period_end": period_end,
                "trial_ends_at": now,
                "payment_reference": payment_reference,
                "created_at": now,
                "updated_at": now,
            })
        else:
            subscription.plan_id = plan.id
            subscription.status = "ACTIVE"
            subscription.billing_cycle = plan.billing_cycle
            subscription.current_period_start = now
            subscription.current_period_end = period_end
            subscription.payment_reference = payment_reference
            subscription.cancelled_at = None
            subscription.updated_at = now

        await self.payments.create({
            "reference": payment_reference,
            "shop_id": shop_id,
            "subscription_id": subscription.id,
            "plan_id": plan.id,
            "amount": plan.price,
            "currency": plan.currency,
            "paid_at": now,
        })
        await self.db.refresh(subscription)
        logger.info(f"Shop {shop_id} upgraded to plan {plan.id} (subscription {subscription.id})")
        return subscription

    async def seed_default_plans(self) -> int:
        inserted = await self.plans.seed_defaults()
        if inserted:
            logger.info(f"Seeded {inserted} billing plans")
        else:
            logger.info("Billing plans already exist. Skipping seeding.")
        return inserted
