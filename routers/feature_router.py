from dataclasses import asdict

from fastapi import APIRouter, Depends

from backend.utils.responses import success_response
from services.feature_service import FeatureService, get_feature_service

feature_router = APIRouter(prefix="/api/features", tags=["features"])


@feature_router.get("")
async def list_features(
    subject_id: str,
    features: FeatureService = Depends(get_feature_service),
):
    """Feature flags resolved for one shop or user id."""
    return success_response({
        feature.id: features.is_enabled(feature.id, subject_id)
        for feature in features.all_features()
    })


@feature_router.get("/catalog")
async def feature_catalog(features: FeatureService = Depends(get_feature_service)):
    return success_response([asdict(feature) for feature in features.all_features()])
