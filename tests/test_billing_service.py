"""
Unit tests for BillingService subscription operations
"""

import pytest
from sqlalchemy import func, select

from database_models import Payment, Subscription
from services.billing_service import (
    BillingService,
    PaymentMismatchError,
    PlanNotFoundError,
    TrialPlanMissingError,
)
from services.subscription_status import DAY_MS, to_millis


@pytest.fixture
async def billing(test_db, clock):
    service = BillingService(test_db, trial_days=3, clock=clock)
    await service.seed_default_plans()
    return service


@pytest.mark.asyncio
async def test_trial_requires_free_plan(test_db, clock):
    service = BillingService(test_db, trial_days=3, clock=clock)
    with pytest.raises(TrialPlanMissingError):
        await service.create_trial_subscription("shop-1")


@pytest.mark.asyncio
async def test_seeding_runs_once(billing):
    assert await billing.seed_default_plans() == 0
    plans = await billing.plans.list_active()
    assert {plan.id for plan in plans} == {"free-trial", "standard-monthly"}


@pytest.mark.asyncio
async def test_create_trial_subscription(billing, clock):
    subscription = await billing.create_trial_subscription("shop-1")

    assert subscription.status == "TRIAL"
    assert subscription.plan_id == "free-trial"
    assert to_millis(subscription.trial_ends_at) == clock() + 3 * DAY_MS

    status = await billing.check_subscription_status("shop-1")
    assert status.status == "TRIAL"
    assert status.is_locked is False
    assert status.days_until_expiry == 3


@pytest.mark.asyncio
async def test_status_read_does_not_write(billing, clock, test_db):
    subscription = await billing.create_trial_subscription("shop-1")
    clock.advance(3 * DAY_MS + 1)

    status = await billing.check_subscription_status("shop-1")

    assert status.status == "TRIAL_EXPIRED"
    assert status.is_locked is True
    await test_db.refresh(subscription)
    assert subscription.status == "TRIAL"


@pytest.mark.asyncio
async def test_unknown_shop_is_locked(billing):
    status = await billing.check_subscription_status("nobody")
    assert status.status == "NO_SUBSCRIPTION"
    assert status.is_locked is True


@pytest.mark.asyncio
async def test_status_errors_fail_locked(billing, monkeypatch):
    async def broken(shop_id):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(billing, "get_shop_subscription", broken)
    status = await billing.check_subscription_status("shop-1")
    assert status.is_locked is True
    assert status.status == "ERROR"


@pytest.mark.asyncio
async def test_upgrade_subscription(billing, clock, test_db):
    trial = await billing.create_trial_subscription("shop-1")
    trial_end = to_millis(trial.trial_ends_at)
    clock.advance(DAY_MS)

    paid = await billing.upgrade_subscription("shop-1", "standard-monthly", "TFLOW_1_abc123")

    assert paid.id == trial.id
    assert paid.status == "ACTIVE"
    assert paid.payment_reference == "TFLOW_1_abc123"
    assert to_millis(paid.current_period_end) == clock() + 30 * DAY_MS
    assert to_millis(paid.trial_ends_at) == trial_end
    latest = await billing.get_shop_subscription("shop-1")
    assert latest.id == paid.id
    count = await test_db.scalar(select(func.count()).select_from(Subscription))
    assert count == 1
    assert (await billing.check_subscription_status("shop-1")).status == "ACTIVE"


@pytest.mark.asyncio
async def test_upgrade_is_idempotent_per_reference(billing, test_db):
    first = await billing.upgrade_subscription("shop-1", "standard-monthly", "TFLOW_1_abc123")
    second = await billing.upgrade_subscription("shop-1", "standard-monthly", "TFLOW_1_abc123")

    assert first.id == second.id
    count = await test_db.scalar(select(func.count()).select_from(Subscription))
    assert count == 1


@pytest.mark.asyncio
async def test_upgrade_unknown_plan(billing):
    with pytest.raises(PlanNotFoundError):
        await billing.upgrade_subscription("shop-1", "gold", "TFLOW_1_abc123")


@pytest.mark.asyncio
async def test_available_plans(billing):
    trial = await billing.create_trial_subscription("shop-1")
    assert [plan.id for plan in await billing.get_available_plans(trial)] == ["standard-monthly"]
    assert [plan.id for plan in await billing.get_available_plans(None)] == ["standard-monthly"]


@pytest.mark.asyncio
async def test_new_reference_renews_same_subscription(billing, clock, test_db):
    await billing.create_trial_subscription("shop-1")
    first = await billing.upgrade_subscription("shop-1", "standard-monthly", "TFLOW_1_abc123")
    clock.advance(30 * DAY_MS)

    renewed = await billing.upgrade_subscription("shop-1", "standard-monthly", "TFLOW_2_def456")
    replayed = await billing.upgrade_subscription("shop-1", "standard-monthly", "TFLOW_1_abc123")

    assert renewed.id == first.id == replayed.id
    assert renewed.payment_reference == "TFLOW_2_def456"
    assert to_millis(renewed.current_period_end) == clock() + 30 * DAY_MS
    payments = await test_db.scalar(select(func.count()).select_from(Payment))
    assert payments == 2


@pytest.mark.asyncio
async def test_verify_payment_amount(billing):
    plan = await billing.verify_payment_amount("standard-monthly", 4300, "GHS")
    assert plan.id == "standard-monthly"
    assert (await billing.verify_payment_amount("standard-monthly", 4300, "ghs")).id == plan.id

    for amount, currency in [(1, "GHS"), (4300, "NGN"), (None, "GHS"), (4300, None)]:
        with pytest.raises(PaymentMismatchError):
            await billing.verify_payment_amount("standard-monthly", amount, currency)

    with pytest.raises(PlanNotFoundError):
        await billing.verify_payment_amount("gold", 4300, "GHS")
