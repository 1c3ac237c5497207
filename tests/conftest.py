# tests/conftest.py
import datetime as dt
import os

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ADMIN_TOKEN", "test-admin-token")
os.environ.setdefault("BACKGROUND_CHECK_REQUIRED", "false")

import pytest

from driver_onboarding.db import build_engine, build_sessionmaker
from driver_onboarding.models.base import Base
from driver_onboarding.models.onboarding import REQUIRED_DOCUMENT_TYPES
from driver_onboarding.services.snapshot import (
    agreements_path,
    background_check_path,
    document_path,
    driver_path,
    plate_path,
    vehicle_path,
)
from driver_onboarding.store import DocumentStore

NOW = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.timezone.utc)
ADMIN_HEADERS = {"X-Admin-Token": "test-admin-token"}


def _make_store(url: str) -> DocumentStore:
    engine = build_engine(url)
    Base.metadata.create_all(engine)
    return DocumentStore(build_sessionmaker(engine), max_attempts=5, backoff_sec=0, sleep=lambda s: None)


@pytest.fixture
def store():
    return _make_store("sqlite://")


@pytest.fixture
def file_store_url(tmp_path):
    # separate connections per session, needed when two writers interleave
    url = f"sqlite:///{tmp_path / 'records.db'}"
    Base.metadata.create_all(build_engine(url))
    return url


@pytest.fixture
def file_store(file_store_url):
    return _make_store(file_store_url)


def seed_eligible_driver(store: DocumentStore, uid: str = "drv-1", *, status: str = "ACTIVE", plate: str = "ABC123XY") -> None:
    """Writes a driver that satisfies every submission and go-online requirement."""
    stamp = "2026-02-01T10:00:00+00:00"
    store.set(driver_path(uid), {
        "uid": uid,
        "status": status,
        "onboarding_step": "REVIEW",
        "account_verified": True,
        "is_online": False,
    })
    store.set(vehicle_path(uid), {
        "make": "Toyota",
        "model": "Corolla",
        "year": "2018",
        "color": "Black",
        "plate": plate,
        "category": "ECONOMY",
        "status": "APPROVED",
    })
    store.set(plate_path(plate), {"driver_uid": uid, "plate": plate})
    store.set(agreements_path(uid), {
        "terms_accepted_at": stamp,
        "safety_accepted_at": stamp,
        "commission_accepted_at": stamp,
        "training_passed_at": stamp,
    })
    store.set(background_check_path(uid), {"status": "PASSED"})
    for doc_type in REQUIRED_DOCUMENT_TYPES:
        store.set(document_path(uid, doc_type), {
            "type": doc_type.value,
            "file_path": f"driver_docs/{uid}/{doc_type.value}/sample.jpg",
            "status": "APPROVED",
            "expiry_date": "2030-01-01",
        })
