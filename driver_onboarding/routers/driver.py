# driver_onboarding/routers/driver.py
from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends

from ..deps import get_current_driver_uid
from ..db import get_store
from ..realtime import hub
from ..store import DocumentStore
from ..services.files import plan_document_upload, plan_vehicle_image_upload
from ..services.onboarding import (
    ensure_driver_record,
    load_driver_onboarding,
    parse_document_type,
    save_driver_agreements,
    save_driver_document_metadata,
    save_driver_profile,
    save_driver_vehicle,
    save_driver_vehicle_image_metadata,
    set_driver_availability,
    submit_driver_for_review,
)
from ..services.exceptions import OnboardingValidationError
from ..services.snapshot import normalize_uid, parse_enum
from ..models.onboarding import VehicleImageSlot
from ..utils.dates import utc_now
from .errors import DOMAIN_ERRORS, http_error

router = APIRouter(tags=["driver-onboarding"])


# ---------- Onboarding state ----------
@router.get("/api/driver/onboarding")
def api_onboarding(uid: str = Depends(get_current_driver_uid), store: DocumentStore = Depends(get_store)):
    try:
        return {"ok": True, "onboarding": load_driver_onboarding(store, uid)}
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.post("/api/driver/onboarding/ensure")
def api_onboarding_ensure(
    payload: dict,
    uid: str = Depends(get_current_driver_uid),
    store: DocumentStore = Depends(get_store),
):
    """
    Called on every app start. Contact details come from the auth provider.
    """
    user = {
        "uid": uid,
        "phone_number": payload.get("phone_number"),
        "email": payload.get("email"),
        "display_name": payload.get("display_name"),
    }
    try:
        return {"ok": True, "onboarding": ensure_driver_record(store, user)}
    except DOMAIN_ERRORS as e:
        raise http_error(e)


# ---------- Profile / documents / vehicle / agreements ----------
@router.post("/api/driver/profile")
def api_profile(payload: dict, uid: str = Depends(get_current_driver_uid), store: DocumentStore = Depends(get_store)):
    try:
        return {"ok": True, "onboarding": save_driver_profile(store, uid, payload)}
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.post("/api/driver/documents/upload-target")
def api_document_upload_target(payload: dict, uid: str = Depends(get_current_driver_uid)):
    try:
        doc_type = parse_document_type(payload.get("type"))
        return {"ok": True, **plan_document_upload(normalize_uid(uid), doc_type, payload, utc_now())}
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.post("/api/driver/documents")
def api_document(
    payload: dict,
    background_tasks: BackgroundTasks,
    uid: str = Depends(get_current_driver_uid),
    store: DocumentStore = Depends(get_store),
):
    try:
        onboarding = save_driver_document_metadata(store, uid, payload)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    # reviewers see the new upload
    background_tasks.add_task(hub.publish, "driver_document_uploaded", {"uid": uid, "type": str(payload.get("type") or "").upper()})
    return {"ok": True, "onboarding": onboarding}


@router.post("/api/driver/vehicle")
def api_vehicle(
    payload: dict,
    background_tasks: BackgroundTasks,
    uid: str = Depends(get_current_driver_uid),
    store: DocumentStore = Depends(get_store),
):
    try:
        onboarding = save_driver_vehicle(store, uid, payload)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    background_tasks.add_task(hub.publish, "driver_vehicle_updated", {"uid": uid})
    return {"ok": True, "onboarding": onboarding}


@router.post("/api/driver/vehicle/images/upload-target")
def api_vehicle_image_upload_target(payload: dict, uid: str = Depends(get_current_driver_uid)):
    try:
        slot = parse_enum(VehicleImageSlot, payload.get("slot"), None)
        if slot is None:
            raise OnboardingValidationError("Invalid vehicle image type selected.")
        return {"ok": True, **plan_vehicle_image_upload(normalize_uid(uid), slot, payload, utc_now())}
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.post("/api/driver/vehicle/images")
def api_vehicle_image(payload: dict, uid: str = Depends(get_current_driver_uid), store: DocumentStore = Depends(get_store)):
    try:
        return {"ok": True, "onboarding": save_driver_vehicle_image_metadata(store, uid, payload)}
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.post("/api/driver/agreements")
def api_agreements(payload: dict, uid: str = Depends(get_current_driver_uid), store: DocumentStore = Depends(get_store)):
    try:
        return {"ok": True, "onboarding": save_driver_agreements(store, uid, payload)}
    except DOMAIN_ERRORS as e:
        raise http_error(e)


# ---------- Gated actions ----------
@router.post("/api/driver/submit")
def api_submit(
    background_tasks: BackgroundTasks,
    uid: str = Depends(get_current_driver_uid),
    store: DocumentStore = Depends(get_store),
):
    """
    Not eligible is not an error: ok=false plus the verdict, so the app can list blocking_reasons.
    """
    try:
        result = submit_driver_for_review(store, uid)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    if result.success:
        background_tasks.add_task(hub.publish, "driver_submitted", {"uid": uid})
    return {"ok": result.success, **result.to_dict()}


@router.post("/api/driver/availability")
def api_availability(
    payload: dict,
    background_tasks: BackgroundTasks,
    uid: str = Depends(get_current_driver_uid),
    store: DocumentStore = Depends(get_store),
):
    try:
        online = bool(payload.get("online"))
        result = set_driver_availability(store, uid, online)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    if result.success:
        background_tasks.add_task(hub.publish, "driver_availability_changed", {"uid": uid, "online": online})
    return {"ok": result.success, **result.to_dict()}
