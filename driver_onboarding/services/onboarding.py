# driver_onboarding/services/onboarding.py
"""
Driver-side onboarding operations.

Each operation validates its input before touching the store, writes, and
returns the refreshed onboarding payload. Gated operations (submit for
review, go online) evaluate eligibility inside the same transaction that
performs the write, so a verdict computed on an older page load is never
trusted.
"""
from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Dict, Mapping, Optional, Tuple

from ..config import settings
from ..models.onboarding import (
    REQUIRED_DOCUMENT_TYPES,
    BackgroundCheckStatus,
    DocumentStatus,
    DocumentType,
    DriverStatus,
    OnboardingStep,
    VehicleCategory,
    VehicleImageSlot,
    VehicleStatus,
)
from ..store import DocumentStore, Transaction
from ..utils.dates import parse_iso_date, to_datetime, utc_now
from .eligibility import EligibilityVerdict, document_effective_status, evaluate_driver_eligibility
from .exceptions import InvalidTransitionError, OnboardingValidationError, PlateConflictError
from .files import (
    build_generated_document_id,
    ensure_allowed_document_mime_type,
    ensure_allowed_image_mime_type,
)
from .snapshot import (
    RawOnboarding,
    agreements_path,
    background_check_path,
    build_snapshot,
    document_path,
    driver_path,
    fetch_raw_onboarding,
    normalize_plate,
    normalize_uid,
    parse_enum,
    plate_path,
    text,
    vehicle_path,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OperationResult:
    """Outcome of a gated operation. Ineligibility is a result, not an exception."""
    success: bool
    eligibility: EligibilityVerdict
    onboarding: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "eligibility": self.eligibility.to_dict(),
            "onboarding": self.onboarding,
        }


# ---- helpers ----

def _now(now: Optional[dt.datetime]) -> dt.datetime:
    return to_datetime(now) or utc_now()


def _bg_required(value: Optional[bool]) -> bool:
    return settings.BACKGROUND_CHECK_REQUIRED if value is None else bool(value)


def _optional_text(value: Any) -> Optional[str]:
    return text(value) or None


def _evaluate(raw: RawOnboarding, background_check_required: Optional[bool], now: dt.datetime) -> EligibilityVerdict:
    return evaluate_driver_eligibility(
        build_snapshot(raw),
        background_check_required=_bg_required(background_check_required),
        now=now,
    )


def build_onboarding_payload(
    raw: RawOnboarding,
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """Everything the client renders from. The client never computes eligibility itself."""
    now = _now(now)
    snapshot = build_snapshot(raw)
    eligibility = evaluate_driver_eligibility(
        snapshot,
        background_check_required=_bg_required(background_check_required),
        now=now,
    )

    documents = []
    for doc_type in REQUIRED_DOCUMENT_TYPES:
        item = raw.documents_by_type.get(doc_type.value)
        if item is None:
            continue
        status = document_effective_status(snapshot.documents_by_type.get(doc_type), now)
        documents.append({**item, "status_for_eligibility": status.value})

    return {
        "driver": raw.driver,
        "vehicle": raw.vehicle,
        "background_check": raw.background_check,
        "agreements": raw.agreements,
        "documents_by_type": raw.documents_by_type,
        "documents": documents,
        "eligibility": eligibility.to_dict(),
    }


def load_driver_onboarding(
    store: DocumentStore,
    uid: str,
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    raw = fetch_raw_onboarding(store, uid)
    return build_onboarding_payload(raw, background_check_required=background_check_required, now=now)


def compute_driver_eligibility(
    store: DocumentStore,
    uid: str,
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> EligibilityVerdict:
    return _evaluate(fetch_raw_onboarding(store, uid), background_check_required, _now(now))


# ---- account ----

def create_empty_driver_record(uid: str, user: Mapping[str, Any], stamp: str) -> Dict[str, Any]:
    phone = text(user.get("phone_number"))
    email = text(user.get("email")).lower()
    return {
        "uid": uid,
        "status": DriverStatus.UNVERIFIED.value,
        "onboarding_step": OnboardingStep.ACCOUNT.value,
        "account_verified": bool(phone or email),
        "full_name": text(user.get("display_name")),
        "dob": "",
        "phone": phone,
        "email": email,
        "is_online": False,
        "created_at": stamp,
        "updated_at": stamp,
    }


def ensure_driver_record(
    store: DocumentStore,
    user: Mapping[str, Any],
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """
    Creates the driver, agreements and background-check records if they are missing.
    Safe to call on every app start: an existing valid status is kept as is,
    an unknown one is reset to UNVERIFIED.
    """
    user = user or {}
    uid = normalize_uid(user.get("uid"))
    now = _now(now)
    stamp = now.isoformat()

    def attempt(tx: Transaction) -> bool:
        driver = tx.get(driver_path(uid))
        agreements = tx.get(agreements_path(uid))
        background = tx.get(background_check_path(uid))

        created = driver is None
        if created:
            tx.set(driver_path(uid), create_empty_driver_record(uid, user, stamp), merge=False)
        else:
            status = parse_enum(DriverStatus, driver.get("status"), DriverStatus.UNVERIFIED)
            step = parse_enum(OnboardingStep, driver.get("onboarding_step"), OnboardingStep.ACCOUNT)
            phone = text(user.get("phone_number"))
            email = text(user.get("email")).lower()
            patch: Dict[str, Any] = {
                "uid": uid,
                "status": status.value,
                "onboarding_step": step.value,
                "account_verified": (
                    bool(driver["account_verified"])
                    if driver.get("account_verified") is not None
                    else bool(phone or email)
                ),
                "updated_at": stamp,
            }
            if phone:
                patch["phone"] = phone
            if email:
                patch["email"] = email
            tx.set(driver_path(uid), patch)

        if agreements is None:
            tx.set(agreements_path(uid), {
                "terms_accepted_at": None,
                "safety_accepted_at": None,
                "commission_accepted_at": None,
                "training_passed_at": None,
                "created_at": stamp,
                "updated_at": stamp,
            }, merge=False)

        if background is None:
            tx.set(background_check_path(uid), {
                "status": BackgroundCheckStatus.NOT_STARTED.value,
                "created_at": stamp,
                "updated_at": stamp,
            }, merge=False)
        return created

    if store.run_transaction(attempt):
        logger.info("driver record created uid=%s", uid)

    return load_driver_onboarding(store, uid, background_check_required=background_check_required, now=now)


def save_driver_profile(
    store: DocumentStore,
    uid: str,
    payload: Mapping[str, Any],
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    uid = normalize_uid(uid)
    now = _now(now)
    payload = payload or {}

    try:
        dob = parse_iso_date(payload.get("dob"))
    except ValueError:
        raise OnboardingValidationError("Invalid date of birth. Use YYYY-MM-DD.")

    store.set(driver_path(uid), {
        "uid": uid,
        "full_name": text(payload.get("full_name")),
        "dob": dob.isoformat() if dob else "",
        "phone": text(payload.get("phone")),
        "email": text(payload.get("email")).lower(),
        "account_verified": True,
        "onboarding_step": OnboardingStep.DOCUMENTS.value,
        "updated_at": now.isoformat(),
    })
    return load_driver_onboarding(store, uid, background_check_required=background_check_required, now=now)


# ---- documents ----

def parse_document_type(value: Any) -> DocumentType:
    doc_type = parse_enum(DocumentType, value, None)
    if doc_type is None:
        raise OnboardingValidationError(f"Invalid document type: {text(value).upper() or 'UNKNOWN'}")
    return doc_type


def save_driver_document_metadata(
    store: DocumentStore,
    uid: str,
    payload: Mapping[str, Any],
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """
    Records an uploaded document. Every new upload goes back to review:
    status PENDING, rejection reason cleared.
    """
    uid = normalize_uid(uid)
    now = _now(now)
    payload = payload or {}

    doc_type = parse_document_type(payload.get("type"))
    file_path = text(payload.get("file_path"))
    download_url = _optional_text(payload.get("download_url"))
    if not file_path and not download_url:
        raise OnboardingValidationError("Document file is missing.")

    mime_type = None
    if text(payload.get("mime_type")):
        mime_type = ensure_allowed_document_mime_type(payload.get("mime_type"))

    try:
        expiry = parse_iso_date(payload.get("expiry_date"))
    except ValueError:
        raise OnboardingValidationError("Invalid expiry date. Use YYYY-MM-DD.")

    stamp = now.isoformat()
    with store.batch() as b:
        b.set(document_path(uid, doc_type), {
            "type": doc_type.value,
            "generated_id": build_generated_document_id(doc_type, now),
            "document_number": _optional_text(payload.get("document_number")),
            "expiry_date": expiry.isoformat() if expiry else None,
            "file_path": file_path,
            "download_url": download_url,
            "mime_type": mime_type,
            "status": DocumentStatus.PENDING.value,
            "rejection_reason": None,
            "reviewed_at": None,
            "submitted_at": stamp,
            "updated_at": stamp,
        })
        b.set(driver_path(uid), {
            "onboarding_step": OnboardingStep.VEHICLE.value,
            "updated_at": stamp,
        })

    logger.info("document uploaded uid=%s type=%s", uid, doc_type.value)
    return load_driver_onboarding(store, uid, background_check_required=background_check_required, now=now)


# ---- vehicle ----

def save_driver_vehicle_image_metadata(
    store: DocumentStore,
    uid: str,
    payload: Mapping[str, Any],
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    uid = normalize_uid(uid)
    now = _now(now)
    payload = payload or {}

    slot = parse_enum(VehicleImageSlot, payload.get("slot"), None)
    if slot is None:
        raise OnboardingValidationError("Invalid vehicle image type selected.")
    file_path = text(payload.get("file_path"))
    download_url = _optional_text(payload.get("download_url"))
    if not file_path and not download_url:
        raise OnboardingValidationError("Vehicle image file is missing.")
    mime_type = None
    if text(payload.get("mime_type")):
        mime_type = ensure_allowed_image_mime_type(payload.get("mime_type"))

    stamp = now.isoformat()
    # merge keeps the other slots
    store.set(vehicle_path(uid), {
        "status": VehicleStatus.PENDING.value,
        "images": {
            slot.field_name: {
                "slot": slot.value,
                "file_path": file_path,
                "download_url": download_url,
                "mime_type": mime_type,
                "updated_at": stamp,
            },
        },
        "updated_at": stamp,
    })
    return load_driver_onboarding(store, uid, background_check_required=background_check_required, now=now)


def save_driver_vehicle(
    store: DocumentStore,
    uid: str,
    payload: Mapping[str, Any],
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """
    Saves the driver's current vehicle and claims its plate.

    Plate claim, release of the previous plate and the vehicle record are
    written in one transaction. A plate held by another driver aborts the
    whole write with PlateConflictError.
    """
    uid = normalize_uid(uid)
    now = _now(now)
    payload = payload or {}

    plate = normalize_plate(payload.get("plate"))
    if not plate:
        raise OnboardingValidationError("Vehicle plate is required.")
    category = text(payload.get("category")).upper()
    if category and parse_enum(VehicleCategory, category, None) is None:
        raise OnboardingValidationError(f"Invalid vehicle category: {category}")

    stamp = now.isoformat()
    vehicle_fields = {
        "make": text(payload.get("make")),
        "model": text(payload.get("model")),
        "year": text(payload.get("year")),
        "color": text(payload.get("color")),
        "plate": plate,
        "category": category,
        "status": VehicleStatus.PENDING.value,
        "rejection_reason": None,
        "updated_at": stamp,
    }

    def attempt(tx: Transaction) -> Optional[str]:
        vehicle = tx.get(vehicle_path(uid)) or {}
        claim = tx.get(plate_path(plate))
        if claim is not None and text(claim.get("driver_uid")) != uid:
            raise PlateConflictError(plate)

        released = None
        previous = normalize_plate(vehicle.get("plate"))
        if previous and previous != plate:
            old_claim = tx.get(plate_path(previous))
            if old_claim is not None and text(old_claim.get("driver_uid")) == uid:
                released = previous

        if released:
            tx.delete(plate_path(released))
        tx.set(plate_path(plate), {"driver_uid": uid, "plate": plate, "updated_at": stamp})
        tx.set(vehicle_path(uid), vehicle_fields)
        tx.set(driver_path(uid), {"onboarding_step": OnboardingStep.BACKGROUND.value, "updated_at": stamp})
        return released

    try:
        released = store.run_transaction(attempt)
    except PlateConflictError:
        logger.warning("plate %s refused for uid=%s: claimed by another driver", plate, uid)
        raise

    if released:
        logger.info("plate %s released by uid=%s", released, uid)
    logger.info("plate %s claimed by uid=%s", plate, uid)
    return load_driver_onboarding(store, uid, background_check_required=background_check_required, now=now)


# ---- agreements ----

def save_driver_agreements(
    store: DocumentStore,
    uid: str,
    payload: Mapping[str, Any],
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> Dict[str, Any]:
    """Each flag sets its timestamp when truthy and clears it otherwise."""
    uid = normalize_uid(uid)
    now = _now(now)
    payload = payload or {}
    stamp = now.isoformat()

    with store.batch() as b:
        b.set(agreements_path(uid), {
            "terms_accepted_at": stamp if payload.get("terms_accepted") else None,
            "safety_accepted_at": stamp if payload.get("safety_accepted") else None,
            "commission_accepted_at": stamp if payload.get("commission_accepted") else None,
            "training_passed_at": stamp if payload.get("training_passed") else None,
            "updated_at": stamp,
        })
        b.set(driver_path(uid), {
            "onboarding_step": OnboardingStep.REVIEW.value,
            "updated_at": stamp,
        })
    return load_driver_onboarding(store, uid, background_check_required=background_check_required, now=now)


# ---- gated transitions ----

SUBMITTABLE_STATUSES = (DriverStatus.UNVERIFIED, DriverStatus.REJECTED, DriverStatus.PENDING_REVIEW)


def submit_driver_for_review(
    store: DocumentStore,
    uid: str,
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> OperationResult:
    uid = normalize_uid(uid)
    now = _now(now)

    def attempt(tx: Transaction) -> Tuple[EligibilityVerdict, bool]:
        raw = fetch_raw_onboarding(tx, uid)
        status = build_snapshot(raw).driver.status
        if status not in SUBMITTABLE_STATUSES:
            raise InvalidTransitionError(f"Driver in status {status.value} cannot be submitted for review.")

        verdict = _evaluate(raw, background_check_required, now)
        if not verdict.can_submit_for_review:
            return verdict, False
        if status is not DriverStatus.PENDING_REVIEW:
            tx.set(driver_path(uid), {
                "status": DriverStatus.PENDING_REVIEW.value,
                "onboarding_step": OnboardingStep.REVIEW.value,
                "updated_at": now.isoformat(),
            })
        return verdict, True

    verdict, submitted = store.run_transaction(attempt)
    if not submitted:
        logger.warning("review submission refused uid=%s reasons=%s", uid, list(verdict.blocking_reasons))
        return OperationResult(success=False, eligibility=verdict)

    logger.info("driver submitted for review uid=%s", uid)
    return OperationResult(
        success=True,
        eligibility=verdict,
        onboarding=load_driver_onboarding(store, uid, background_check_required=background_check_required, now=now),
    )


def set_driver_availability(
    store: DocumentStore,
    uid: str,
    wants_online: bool,
    *,
    background_check_required: Optional[bool] = None,
    now: Optional[dt.datetime] = None,
) -> OperationResult:
    """Going online needs a fresh can_go_online. Going offline always succeeds."""
    uid = normalize_uid(uid)
    now = _now(now)
    wants_online = bool(wants_online)

    def attempt(tx: Transaction) -> Tuple[EligibilityVerdict, bool]:
        verdict = _evaluate(fetch_raw_onboarding(tx, uid), background_check_required, now)
        if wants_online and not verdict.can_go_online:
            return verdict, False
        stamp = now.isoformat()
        tx.set(driver_path(uid), {
            "uid": uid,
            "is_online": wants_online,
            "availability": {"is_online": wants_online, "updated_at": stamp},
            "updated_at": stamp,
        })
        return verdict, True

    verdict, changed = store.run_transaction(attempt)
    if not changed:
        logger.warning("go-online refused uid=%s reasons=%s", uid, list(verdict.blocking_reasons))
        return OperationResult(success=False, eligibility=verdict)

    logger.info("driver availability uid=%s online=%s", uid, wants_online)
    return OperationResult(
        success=True,
        eligibility=verdict,
        onboarding=load_driver_onboarding(store, uid, background_check_required=background_check_required, now=now),
    )
