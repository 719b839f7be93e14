"""
Billing request models
"""
from typing import Optional

from pydantic import BaseModel, Field


class CreateShopRequest(BaseModel):
    shop_id: str = Field(min_length=1, max_length=128, pattern=r"^[A-Za-z0-9_-]+$")
    name: str
    owner_email: Optional[str] = None


class InitializePaymentRequest(BaseModel):
    shop_id: str
    plan_id: str
    email: str
    callback_url: Optional[str] = None


class VerifyPaymentRequest(BaseModel):
    reference: str


class FeatureUpdateRequest(BaseModel):
    enabled: Optional[bool] = None
    rollout_percentage: Optional[int] = None
