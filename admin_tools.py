"""
Admin Tools - internal endpoints for plan seeding, trial sweeps and feature flags
"""
from dataclasses import asdict

from fastapi import APIRouter, Depends, HTTPException

from backend.dependencies import get_billing_service, get_trial_scheduler
from backend.utils.responses import success_response
from jobs.trial_scheduler import TrialJobScheduler
from models.billing_models import FeatureUpdateRequest
from services.billing_service import BillingService
from services.feature_service import FeatureService, get_feature_service

# Create router with /internal prefix
admin_router = APIRouter(prefix="/internal", tags=["admin"])


@admin_router.post("/seed-plans")
async def seed_plans(billing_service: BillingService = Depends(get_billing_service)):
    """Insert the default billing plans if none exist."""
    inserted = await billing_service.seed_default_plans()
    return success_response({"inserted": inserted})


@admin_router.post("/process-trials")
async def process_trials(scheduler: TrialJobScheduler = Depends(get_trial_scheduler)):
    """
    Run the trial processor once, outside the schedule.
    Shares the scheduler's lock, so it never overlaps a scheduled run.
    """
    result = await scheduler.run_once()
    return success_response(result.to_dict(), message="OK" if result.ok else "Completed with errors")


@admin_router.patch("/features/{feature_id}")
async def update_feature(
    feature_id: str,
    body: FeatureUpdateRequest,
    features: FeatureService = Depends(get_feature_service),
):
    feature = features.features.get(feature_id)
    if feature is None:
        raise HTTPException(status_code=404, detail=f"Feature {feature_id} not found")

    if body.enabled is not None:
        features.toggle_feature(feature_id, body.enabled)
    if body.rollout_percentage is not None:
        features.update_rollout(feature_id, body.rollout_percentage)
    return success_response(asdict(feature))
