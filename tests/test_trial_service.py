"""
Unit tests for the local trial state machine
"""
import json

import pytest

from services.kv_store import JsonFileStore, MemoryStore
from services.subscription_status import DAY_MS, EffectiveStatus
from services.trial_service import TrialService, storage_key


class FailingStore(MemoryStore):
    def set(self, key, value):
        raise OSError("disk full")


@pytest.fixture
def service(clock):
    return TrialService(MemoryStore(), trial_days=3, clock=clock)


def test_init_local_trial_scenario(service, clock):
    t0 = clock()
    record = service.init_local_trial("shop-1")
    assert record.trial_ends_at == t0 + 3 * DAY_MS
    assert record.status == "TRIAL"

    clock.advance(2 * DAY_MS)
    status = service.check_local_trial_status("shop-1")
    assert status.status == "TRIAL"
    assert status.is_locked is False
    assert status.days_until_expiry == 1

    clock.advance(DAY_MS + 1)
    assert service.resolve("shop-1") == EffectiveStatus.TRIAL_EXPIRED
    assert service.check_local_trial_status("shop-1").is_locked is True


def test_record_is_stored_with_camel_case_keys(service, clock):
    service.init_local_trial("shop-1")
    stored = json.loads(service.store.get(storage_key("shop-1")))
    assert stored == {
        "trialEndsAt": clock() + 3 * DAY_MS,
        "status": "TRIAL",
        "currentPeriodEnd": None,
        "planId": None,
    }


def test_expiry_is_never_written_back(service, clock):
    service.init_local_trial("shop-1")
    clock.advance(10 * DAY_MS)
    assert service.resolve("shop-1") == EffectiveStatus.TRIAL_EXPIRED
    assert service.get_local_trial("shop-1").status == "TRIAL"


@pytest.mark.parametrize("raw", ["not json", "[]", "null", '{"status": "TRIAL"}', '{"trialEndsAt": 1, "status": "BOGUS"}'])
def test_malformed_record_reads_as_missing(service, raw):
    service.store.set(storage_key("shop-1"), raw)
    assert service.get_local_trial("shop-1") is None
    status = service.check_local_trial_status("shop-1")
    assert status.status == "NO_SUBSCRIPTION"
    assert status.is_locked is True


def test_activate_without_prior_record(service, clock):
    period_end = clock() + 30 * DAY_MS
    record = service.activate_local_subscription("shop-1", period_end, "planX")
    assert record.trial_ends_at == clock()
    assert record.status == "ACTIVE"
    assert record.current_period_end == period_end
    assert record.plan_id == "planX"
    assert service.resolve("shop-1") == EffectiveStatus.ACTIVE


def test_activate_preserves_trial_end(service, clock):
    trial = service.init_local_trial("shop-1")
    clock.advance(DAY_MS)
    record = service.activate_local_subscription("shop-1", clock() + 30 * DAY_MS, "standard-monthly")
    assert record.trial_ends_at == trial.trial_ends_at


def test_activate_is_idempotent(service, clock):
    period_end = clock() + 30 * DAY_MS
    service.activate_local_subscription("shop-1", period_end, "planX")
    first = service.store.get(storage_key("shop-1"))
    clock.advance(60_000)
    service.activate_local_subscription("shop-1", period_end, "planX")
    assert service.store.get(storage_key("shop-1")) == first


def test_paid_period_runs_out(service, clock):
    service.activate_local_subscription("shop-1", clock() + DAY_MS, "planX")
    clock.advance(DAY_MS + 1)
    status = service.check_local_trial_status("shop-1")
    assert status.status == "EXPIRED"
    assert status.is_locked is True


def test_write_failure_is_swallowed(clock):
    service = TrialService(FailingStore(), trial_days=3, clock=clock)
    record = service.init_local_trial("shop-1")
    assert record.status == "TRIAL"
    assert service.check_local_trial_status("shop-1").is_locked is True


def test_local_subscription_view(service, clock):
    assert service.get_local_trial_subscription("shop-1") is None

    service.init_local_trial("shop-1")
    view = service.get_local_trial_subscription("shop-1")
    assert view["status"] == "TRIAL"
    assert view["plan_id"] == "local-trial"

    clock.advance(4 * DAY_MS)
    assert service.get_local_trial_subscription("shop-1")["status"] == "CANCELLED"


def test_json_file_store(tmp_path, clock):
    store = JsonFileStore(tmp_path / "trials")
    assert store.get("tailor_trial_missing") is None

    service = TrialService(store, trial_days=3, clock=clock)
    service.init_local_trial("../escape")
    files = list((tmp_path / "trials").iterdir())
    assert [f.name for f in files] == ["tailor_trial_..%2Fescape.json"]
    assert service.get_local_trial("../escape").status == "TRIAL"


def test_json_file_store_keys_do_not_collide(tmp_path, clock):
    service = TrialService(JsonFileStore(tmp_path), trial_days=3, clock=clock)
    service.init_local_trial("shop_1")

    assert service.get_local_trial("shop.1") is None
    service.activate_local_subscription("shop.1", clock() + DAY_MS, "planX")

    assert service.get_local_trial("shop_1").status == "TRIAL"
    assert service.get_local_trial("shop.1").status == "ACTIVE"
    assert len(list(tmp_path.iterdir())) == 2
