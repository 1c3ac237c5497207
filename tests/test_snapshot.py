# tests/test_snapshot.py
import datetime as dt

import pytest

from driver_onboarding.models.onboarding import (
    BackgroundCheckStatus,
    DocumentStatus,
    DocumentType,
    DriverStatus,
    OnboardingStep,
    VehicleStatus,
)
from driver_onboarding.services.exceptions import OnboardingValidationError
from driver_onboarding.services.snapshot import (
    document_path,
    driver_path,
    fetch_raw_onboarding,
    map_documents_by_type,
    normalize_plate,
    normalize_uid,
    snapshot_from_records,
)


def test_normalize_plate():
    assert normalize_plate(" ab 12\tcd ") == "AB12CD"
    assert normalize_plate(None) == ""


def test_normalize_uid():
    assert normalize_uid("  drv-1 ") == "drv-1"
    with pytest.raises(OnboardingValidationError, match="Missing or invalid driver uid."):
        normalize_uid("")


def test_map_documents_by_type_uppercases_keys():
    mapped = map_documents_by_type([{"type": "license", "file_path": "a"}, {"file_path": "no type"}])
    assert list(mapped) == ["LICENSE"]
    assert map_documents_by_type(None) == {}


def test_unknown_values_fall_back_to_defaults():
    snapshot = snapshot_from_records(
        driver={"status": "ghost", "onboarding_step": 7, "account_verified": "yes"},
        vehicle={"status": "?", "category": "limo"},
        background_check={"status": "lost"},
        documents={"LICENSE": {"status": "meh", "file_path": "x", "expiry_date": "2030-01-01"}},
    )

    assert snapshot.driver.status is DriverStatus.UNVERIFIED
    assert snapshot.driver.onboarding_step is OnboardingStep.ACCOUNT
    assert snapshot.driver.account_verified is True
    assert snapshot.vehicle.status is VehicleStatus.PENDING
    assert snapshot.vehicle.category is None
    assert snapshot.background_check.status is BackgroundCheckStatus.NOT_STARTED

    license_doc = snapshot.documents_by_type[DocumentType.LICENSE]
    assert license_doc.status is DocumentStatus.PENDING
    assert license_doc.expiry_date == dt.datetime(2030, 1, 1, tzinfo=dt.timezone.utc)


def test_fetch_raw_onboarding_reads_every_record(store):
    store.set(driver_path("drv-1"), {"uid": "drv-1"})
    store.set(document_path("drv-1", DocumentType.INSURANCE), {"type": "INSURANCE", "file_path": "i.pdf"})

    raw = fetch_raw_onboarding(store, "drv-1")
    assert raw.driver == {"uid": "drv-1"}
    assert raw.vehicle is None
    assert raw.agreements is None
    assert list(raw.documents_by_type) == ["INSURANCE"]
    assert raw.documents_by_type["INSURANCE"]["id"] == "INSURANCE"


@pytest.mark.parametrize(
    "stored, expected",
    [(True, True), (1, True), ("true", True), (False, False), (0, False), ("", False), (None, False)],
)
def test_account_verified_follows_truthiness(stored, expected):
    snapshot = snapshot_from_records(driver={"account_verified": stored})
    assert snapshot.driver.account_verified is expected
