# driver_onboarding/services/review.py
from __future__ import annotations

import datetime as dt
import logging
from typing import Any, Dict, List, Optional

from ..models.onboarding import (
    BackgroundCheckStatus,
    DocumentStatus,
    DriverStatus,
    VehicleStatus,
)
from ..store import DocumentStore, Transaction
from ..utils.dates import to_datetime, utc_now
from .exceptions import InvalidTransitionError, OnboardingValidationError
from .onboarding import parse_document_type
from .snapshot import (
    background_check_path,
    document_path,
    driver_path,
    normalize_uid,
    parse_enum,
    text,
    vehicle_path,
)

logger = logging.getLogger(__name__)

# what a reviewer may do from each status; a rejected driver returns
# to review only through submit_driver_for_review
ADMIN_TRANSITIONS: Dict[DriverStatus, frozenset] = {
    DriverStatus.PENDING_REVIEW: frozenset({DriverStatus.ACTIVE, DriverStatus.REJECTED, DriverStatus.SUSPENDED}),
    DriverStatus.ACTIVE: frozenset({DriverStatus.SUSPENDED, DriverStatus.REJECTED}),
    DriverStatus.SUSPENDED: frozenset({DriverStatus.ACTIVE, DriverStatus.REJECTED}),
}

# a rejected vehicle or document sends the application back only from these
_REJECTABLE = (DriverStatus.PENDING_REVIEW, DriverStatus.ACTIVE)


def _now(now: Optional[dt.datetime]) -> dt.datetime:
    return to_datetime(now) or utc_now()


def _offline(stamp: str) -> Dict[str, Any]:
    return {"is_online": False, "availability": {"is_online": False, "updated_at": stamp}}


def _require(tx: Transaction, path: str, what: str) -> Dict[str, Any]:
    data = tx.get(path)
    if data is None:
        raise LookupError(f"{what} not found")
    return data


def _reject_driver(tx: Transaction, uid: str, driver: Dict[str, Any], stamp: str) -> bool:
    status = parse_enum(DriverStatus, driver.get("status"), DriverStatus.UNVERIFIED)
    if status not in _REJECTABLE:
        return False
    tx.set(driver_path(uid), {"status": DriverStatus.REJECTED.value, "updated_at": stamp, **_offline(stamp)})
    return True


def list_drivers(store: DocumentStore, status: Any = None) -> List[Dict[str, Any]]:
    wanted = None
    if text(status):
        wanted = parse_enum(DriverStatus, status, None)
        if wanted is None:
            raise OnboardingValidationError(f"Invalid driver status: {text(status).upper()}")

    out = []
    for uid, data in store.list_collection("drivers"):
        current = parse_enum(DriverStatus, data.get("status"), DriverStatus.UNVERIFIED)
        if wanted is None or current is wanted:
            out.append({"uid": uid, **data, "status": current.value})
    return out


def set_driver_status(store: DocumentStore, uid: str, status: Any, *, now: Optional[dt.datetime] = None) -> Dict[str, Any]:
    """
    Reviewer status change. Anything other than ACTIVE also takes the driver offline
    in the same write.
    """
    uid = normalize_uid(uid)
    target = parse_enum(DriverStatus, status, None)
    if target is None:
        raise OnboardingValidationError(f"Invalid driver status: {text(status).upper() or 'UNKNOWN'}")
    stamp = _now(now).isoformat()

    def attempt(tx: Transaction) -> Dict[str, Any]:
        driver = _require(tx, driver_path(uid), "Driver")
        current = parse_enum(DriverStatus, driver.get("status"), DriverStatus.UNVERIFIED)
        if current is target:
            return driver
        if target not in ADMIN_TRANSITIONS.get(current, frozenset()):
            raise InvalidTransitionError(f"Cannot change driver status from {current.value} to {target.value}.")

        patch: Dict[str, Any] = {"status": target.value, "updated_at": stamp}
        if target is not DriverStatus.ACTIVE:
            patch.update(_offline(stamp))
        tx.set(driver_path(uid), patch)
        logger.info("driver status uid=%s %s -> %s", uid, current.value, target.value)
        return {**driver, **patch}

    return store.run_transaction(attempt)


def set_background_check_status(
    store: DocumentStore, uid: str, status: Any, *, now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    uid = normalize_uid(uid)
    target = parse_enum(BackgroundCheckStatus, status, None)
    if target is None:
        raise OnboardingValidationError(f"Invalid background check status: {text(status).upper() or 'UNKNOWN'}")
    stamp = _now(now).isoformat()

    def attempt(tx: Transaction) -> Dict[str, Any]:
        _require(tx, driver_path(uid), "Driver")
        patch = {"status": target.value, "updated_at": stamp}
        tx.set(background_check_path(uid), patch)
        return patch

    result = store.run_transaction(attempt)
    logger.info("background check uid=%s -> %s", uid, target.value)
    return result


def set_vehicle_status(
    store: DocumentStore,
    uid: str,
    status: Any,
    rejection_reason: Optional[str] = None,
    *,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """Status and rejection reason land together; a rejection also rejects the application."""
    uid = normalize_uid(uid)
    target = parse_enum(VehicleStatus, status, None)
    if target is None:
        raise OnboardingValidationError(f"Invalid vehicle status: {text(status).upper() or 'UNKNOWN'}")
    reason = (text(rejection_reason) or None) if target is VehicleStatus.REJECTED else None
    stamp = _now(now).isoformat()

    def attempt(tx: Transaction) -> Dict[str, Any]:
        vehicle = _require(tx, vehicle_path(uid), "Vehicle")
        driver = _require(tx, driver_path(uid), "Driver")
        patch = {"status": target.value, "rejection_reason": reason, "reviewed_at": stamp, "updated_at": stamp}
        tx.set(vehicle_path(uid), patch)
        if target is VehicleStatus.REJECTED and _reject_driver(tx, uid, driver, stamp):
            logger.info("driver rejected uid=%s (vehicle rejected)", uid)
        return {**vehicle, **patch}

    result = store.run_transaction(attempt)
    logger.info("vehicle status uid=%s -> %s", uid, target.value)
    return result


def set_document_status(
    store: DocumentStore,
    uid: str,
    doc_type: Any,
    status: Any,
    rejection_reason: Optional[str] = None,
    *,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """
    Reviewers approve or reject. Rejection needs a reason the driver can act on.
    EXPIRED is never written, it comes from the expiry date.
    """
    uid = normalize_uid(uid)
    dtype = parse_document_type(doc_type)
    target = parse_enum(DocumentStatus, status, None)
    if target not in (DocumentStatus.APPROVED, DocumentStatus.REJECTED):
        raise OnboardingValidationError("Document status must be APPROVED or REJECTED.")
    reason = text(rejection_reason)
    if target is DocumentStatus.REJECTED and not reason:
        raise OnboardingValidationError(f"Enter a rejection reason for {dtype.value}.")
    stamp = _now(now).isoformat()

    def attempt(tx: Transaction) -> Dict[str, Any]:
        document = _require(tx, document_path(uid, dtype), "Document")
        driver = _require(tx, driver_path(uid), "Driver")
        patch = {
            "status": target.value,
            "rejection_reason": reason if target is DocumentStatus.REJECTED else None,
            "reviewed_at": stamp,
            "updated_at": stamp,
        }
        tx.set(document_path(uid, dtype), patch)
        if target is DocumentStatus.REJECTED and _reject_driver(tx, uid, driver, stamp):
            logger.info("driver rejected uid=%s (document %s rejected)", uid, dtype.value)
        return {**document, **patch}

    result = store.run_transaction(attempt)
    logger.info("document status uid=%s type=%s -> %s", uid, dtype.value, target.value)
    return result
