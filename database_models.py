from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    UniqueConstraint,
)

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Shop(Base):
    """
    Tailoring shop (tenant). Every billing record hangs off a shop id.
    """
    __tablename__ = "shops"

    id = Column(String, primary_key=True, index=True)
    name = Column(String, nullable=False)
    owner_email = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class BillingPlan(Base):
    __tablename__ = "billing_plans"

    id = Column(String, primary_key=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)  # FREE | PROFESSIONAL | ENTERPRISE
    price = Column(Float, nullable=False, default=0.0)
    currency = Column(String, nullable=False, default="GHS")
    billing_cycle = Column(String, nullable=False)  # DAILY | MONTHLY | YEARLY
    features = Column(JSON, nullable=False, default=list)
    limits = Column(JSON, nullable=False, default=dict)
    is_active = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Subscription(Base):
    """
    Server-side subscription for a shop.

    One row per shop. Created with status TRIAL at shop signup, moved to
    CANCELLED by the trial processor once the trial runs out, and moved to
    ACTIVE in place when a payment completes. trial_reminder_sent_at is the
    dedup guard for the expiry reminder. payment_reference is the last payment
    applied; the full history lives in payments.
    """
    __tablename__ = "subscriptions"
    __table_args__ = (
        Index("ix_subscriptions_status_trial_ends_at", "status", "trial_ends_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String, ForeignKey("shops.id"), nullable=False, index=True)
    plan_id = Column(String, ForeignKey("billing_plans.id"), nullable=True)
    status = Column(String, nullable=False, default="TRIAL")
    billing_cycle = Column(String, nullable=False, default="MONTHLY")
    current_period_start = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    current_period_end = Column(DateTime(timezone=True), nullable=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    trial_reminder_sent_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    payment_reference = Column(String, nullable=True, unique=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False)


class Payment(Base):
    """Confirmed gateway payment. The unique reference makes re-delivery a no-op."""
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    reference = Column(String, nullable=False, unique=True, index=True)
    shop_id = Column(String, nullable=False, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False)
    plan_id = Column(String, ForeignKey("billing_plans.id"), nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String, nullable=False)
    paid_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)


class BillingReminder(Base):
    """Append-only notification record, one per (subscription, reminder type)."""
    __tablename__ = "billing_reminders"
    __table_args__ = (
        UniqueConstraint("subscription_id", "type", name="uq_billing_reminders_subscription_type"),
    )

    id = Column(Integer, primary_key=True, index=True)
    shop_id = Column(String, nullable=True, index=True)
    subscription_id = Column(Integer, ForeignKey("subscriptions.id"), nullable=False, index=True)
    trial_ends_at = Column(DateTime(timezone=True), nullable=True)
    sent_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    type = Column(String, nullable=False)
    message = Column(String, nullable=False)
