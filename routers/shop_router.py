"""
Shop Router - shop creation (trial start) and gated shop endpoints
"""

import logging

from fastapi import APIRouter, Depends

from backend.dependencies import get_billing_service, get_trial_service
from backend.utils.access_gate import require_unlocked_shop
from backend.utils.responses import error_response, success_response
from crud.shop import ShopRepository
from models.billing_models import CreateShopRequest
from services.billing_service import BillingService, TrialPlanMissingError, serialize_subscription
from services.subscription_status import StatusCheck
from services.trial_service import TrialService

logger = logging.getLogger(__name__)

shop_router = APIRouter(prefix="/api/shops", tags=["shops"])


@shop_router.post("")
async def create_shop(
    body: CreateShopRequest,
    billing_service: BillingService = Depends(get_billing_service),
    trial_service: TrialService = Depends(get_trial_service),
):
    """
    Create a shop and start its trial.
    This is the only place trials are initialised; an existing shop id is rejected
    so a retried request cannot restart the trial.
    """
    shops = ShopRepository(billing_service.db)
    if await shops.get_by_id(body.shop_id):
        return error_response("shop_exists", status=409, message=f"Shop {body.shop_id} already exists")

    shop = await shops.create(body.shop_id, body.name, body.owner_email)
    try:
        subscription = await billing_service.create_trial_subscription(shop.id)
    except TrialPlanMissingError as e:
        await billing_service.db.rollback()
        logger.error(f"Cannot create shop {body.shop_id}: {e}")
        return error_response("trial_plan_missing", status=503, message=str(e))

    local_trial = trial_service.init_local_trial(shop.id)
    return success_response(
        {
            "shop_id": shop.id,
            "name": shop.name,
            "subscription": serialize_subscription(subscription),
            "local_trial": local_trial.model_dump(by_alias=True),
        },
        message="Shop created with a free trial",
        status=201,
    )


@shop_router.get("/{shop_id}/dashboard")
async def get_shop_dashboard(
    shop_id: str,
    access: StatusCheck = Depends(require_unlocked_shop),
):
    """Entry point for shop features; locked shops get 402."""
    return success_response({"shop_id": shop_id, "access": access.to_dict()})
