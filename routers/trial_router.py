"""
Trial Router - local trial records
"""

from dataclasses import asdict

from fastapi import APIRouter, Depends

from backend.dependencies import get_trial_service
from backend.utils.responses import success_response
from models.trial import ActivateTrialRequest
from services.trial_service import TrialService

trial_router = APIRouter(prefix="/api/trials", tags=["trials"])


@trial_router.get("/{shop_id}")
async def get_local_trial(
    shop_id: str,
    trial_service: TrialService = Depends(get_trial_service),
):
    record = trial_service.get_local_trial(shop_id)
    return success_response({
        "record": record.model_dump(by_alias=True) if record else None,
        "status": trial_service.check_local_trial_status(shop_id).to_dict(),
        "time_left": asdict(trial_service.time_left(shop_id)),
        "subscription": trial_service.get_local_trial_subscription(shop_id),
    })


@trial_router.post("/{shop_id}/activate")
async def activate_local_subscription(
    shop_id: str,
    body: ActivateTrialRequest,
    trial_service: TrialService = Depends(get_trial_service),
):
    record = trial_service.activate_local_subscription(shop_id, body.period_end, body.plan_id)
    return success_response({
        "record": record.model_dump(by_alias=True),
        "status": trial_service.check_local_trial_status(shop_id).to_dict(),
    })
