"""
Access gate for shop-scoped routes.
"""
import logging

from fastapi import Depends

from backend.dependencies import get_billing_service
from services.billing_service import BillingService
from services.subscription_status import StatusCheck

logger = logging.getLogger(__name__)


class SubscriptionLockedError(Exception):
    """Raised by the gate; main.py turns it into a 402 envelope."""

    def __init__(self, status: StatusCheck):
        super().__init__(status.status)
        self.status = status


async def require_unlocked_shop(
    shop_id: str,
    billing_service: BillingService = Depends(get_billing_service),
) -> StatusCheck:
    """
    Resolve the shop's subscription and reject locked shops.
    Failures while resolving count as locked.
    """
    try:
        status = await billing_service.check_subscription_status(shop_id)
    except Exception as e:
        logger.error(f"Access gate could not resolve shop {shop_id}: {e}", exc_info=True)
        status = StatusCheck(is_active=False, is_locked=True, status="ERROR")

    if status.is_locked:
        raise SubscriptionLockedError(status)
    return status
