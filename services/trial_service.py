"""
Local trial service: per-shop trial records kept in a key-value store.

Status is never stored as "expired"; it is re-derived from the record and the
current time on every read. Unreadable records are treated as missing, which
resolves to NO_SUBSCRIPTION (locked).
"""
import json
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from config.settings import DEFAULT_CURRENCY, PLAN_FREE
from models.trial import TrialRecord
from services.kv_store import KeyValueStore
from services.subscription_status import (
    DAY_MS,
    EffectiveStatus,
    StatusCheck,
    TrialTimeLeft,
    check_status,
    from_millis,
    now_ms,
    resolve_status,
    trial_time_left,
)

logger = logging.getLogger(__name__)

STORAGE_PREFIX = "tailor_trial_"

LOCAL_TRIAL_PLAN = {
    "id": "local-trial",
    "name": "Free Trial",
    "type": PLAN_FREE,
    "price": 0,
    "currency": DEFAULT_CURRENCY,
    "billing_cycle": "MONTHLY",
    "features": ["3-day full access"],
    "limits": {"customers": 100, "orders": 500, "team_members": 3, "storage": 100},
    "is_active": True,
}


def storage_key(shop_id: str) -> str:
    return f"{STORAGE_PREFIX}{shop_id}"


class TrialService:
    """
    Service for managing shop trial periods.
    Handles trial start, upgrade and status resolution for local records.
    """

    def __init__(
        self,
        store: KeyValueStore,
        trial_days: int = 3,
        clock: Callable[[], int] = now_ms,
    ):
        """
        Args:
            store: Key-value store holding one JSON record per shop
            trial_days: Length of a new trial
            clock: Returns the current time in epoch millis
        """
        self.store = store
        self.trial_days = trial_days
        self.clock = clock

    def _write(self, shop_id: str, record: TrialRecord) -> None:
        try:
            self.store.set(storage_key(shop_id), record.to_json())
        except Exception as e:
            logger.warning(f"Trial record write failed for shop {shop_id}: {e}")

    def init_local_trial(self, shop_id: str) -> TrialRecord:
        """
        Start a trial for a shop. Call once, when the shop is created.
        A second call restarts the trial window.
        """
        record = TrialRecord(
            trial_ends_at=self.clock() + self.trial_days * DAY_MS,
            status="TRIAL",
        )
        self._write(shop_id, record)
        logger.info(f"Started {self.trial_days}-day trial for shop {shop_id}")
        return record

    def get_local_trial(self, shop_id: str) -> Optional[TrialRecord]:
        """Read the raw record. Missing or malformed entries return None."""
        try:
            raw = self.store.get(storage_key(shop_id))
            if not raw:
                return None
            return TrialRecord.model_validate(json.loads(raw))
        except (OSError, ValueError, ValidationError) as e:
            logger.debug(f"Ignoring unreadable trial record for shop {shop_id}: {e}")
            return None

    def resolve(self, shop_id: str) -> EffectiveStatus:
        return resolve_status(self.get_local_trial(shop_id), self.clock())

    def check_local_trial_status(self, shop_id: str) -> StatusCheck:
        return check_status(self.get_local_trial(shop_id), self.clock())

    def time_left(self, shop_id: str) -> TrialTimeLeft:
        return trial_time_left(self.get_local_trial(shop_id), self.clock())

    def activate_local_subscription(
        self,
        shop_id: str,
        period_end_ms: int,
        plan_id: Optional[str] = None,
    ) -> TrialRecord:
        """
        Mark the shop as paid until `period_end_ms`.
        The existing trial end is kept; shops without a record get trial_ends_at = now.
        """
        existing = self.get_local_trial(shop_id)
        record = TrialRecord(
            trial_ends_at=existing.trial_ends_at if existing else self.clock(),
            status="ACTIVE",
            current_period_end=period_end_ms,
            plan_id=plan_id,
        )
        self._write(shop_id, record)
        logger.info(f"Activated local subscription for shop {shop_id} until {from_millis(period_end_ms).isoformat()}")
        return record

    def get_local_trial_subscription(self, shop_id: str) -> Optional[dict]:
        """Subscription-shaped view of the local record for display."""
        record = self.get_local_trial(shop_id)
        if record is None:
            return None

        status = resolve_status(record, self.clock())
        if status in (EffectiveStatus.TRIAL_EXPIRED, EffectiveStatus.EXPIRED):
            display_status = "CANCELLED"
        elif status is EffectiveStatus.ACTIVE:
            display_status = "ACTIVE"
        else:
            display_status = "TRIAL"

        started_at = from_millis(record.trial_ends_at - self.trial_days * DAY_MS)
        end_ms = record.current_period_end if record.current_period_end is not None else record.trial_ends_at

        return {
            "id": "local",
            "shop_id": shop_id,
            "plan_id": record.plan_id or LOCAL_TRIAL_PLAN["id"],
            "plan": LOCAL_TRIAL_PLAN,
            "status": display_status,
            "billing_cycle": "MONTHLY",
            "current_period_start": started_at.isoformat(),
            "current_period_end": from_millis(end_ms).isoformat(),
            "trial_ends_at": from_millis(record.trial_ends_at).isoformat(),
            "created_at": started_at.isoformat(),
            "updated_at": from_millis(self.clock()).isoformat(),
        }
