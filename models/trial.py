"""
Local trial record models
"""
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

LocalTrialStatus = Literal["TRIAL", "TRIAL_EXPIRED", "ACTIVE", "NO_SUBSCRIPTION"]


class TrialRecord(BaseModel):
    """
    Per-shop trial record as persisted in the key-value store.
    Serialized with camelCase keys; instants are epoch millis.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    trial_ends_at: int = Field(alias="trialEndsAt")
    status: LocalTrialStatus
    current_period_end: Optional[int] = Field(default=None, alias="currentPeriodEnd")
    plan_id: Optional[str] = Field(default=None, alias="planId")

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class ActivateTrialRequest(BaseModel):
    period_end: int = Field(alias="periodEnd")
    plan_id: Optional[str] = Field(default=None, alias="planId")

    model_config = ConfigDict(populate_by_name=True)
