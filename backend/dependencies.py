"""
Request dependencies for the long-lived services created at startup.
"""
from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from config.settings import settings
from database import get_db
from jobs.trial_scheduler import TrialJobScheduler
from services.billing_service import BillingService
from services.paystack_service import PaystackService
from services.trial_service import TrialService


def get_trial_service(request: Request) -> TrialService:
    return request.app.state.trial_service


def get_paystack_service(request: Request) -> PaystackService:
    return request.app.state.paystack_service


def get_trial_scheduler(request: Request) -> TrialJobScheduler:
    return request.app.state.trial_scheduler


def get_billing_service(db: AsyncSession = Depends(get_db)) -> BillingService:
    return BillingService(db, trial_days=settings.trial_days)
