# driver_onboarding/routers/admin_drivers.py
from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends
from fastapi.responses import StreamingResponse

from ..db import get_store
from ..deps import require_admin
from ..realtime import hub
from ..store import DocumentStore
from ..services.onboarding import load_driver_onboarding
from ..services.review import (
    list_drivers,
    set_background_check_status,
    set_document_status,
    set_driver_status,
    set_vehicle_status,
)
from .errors import DOMAIN_ERRORS, http_error

router = APIRouter(tags=["admin-drivers"], dependencies=[Depends(require_admin)])


@router.get("/api/admin/drivers")
def api_admin_drivers(status: Optional[str] = None, store: DocumentStore = Depends(get_store)):
    try:
        return {"ok": True, "drivers": list_drivers(store, status)}
    except DOMAIN_ERRORS as e:
        raise http_error(e)


@router.get("/api/admin/drivers/{uid}")
def api_admin_driver_detail(uid: str, store: DocumentStore = Depends(get_store)):
    try:
        onboarding = load_driver_onboarding(store, uid)
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    if onboarding["driver"] is None:
        raise http_error(LookupError("Driver not found"))
    return {"ok": True, "uid": uid, "onboarding": onboarding}


@router.post("/api/admin/drivers/{uid}/status")
def api_admin_driver_status(
    uid: str, payload: dict, background_tasks: BackgroundTasks, store: DocumentStore = Depends(get_store),
):
    try:
        driver = set_driver_status(store, uid, payload.get("status"))
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    background_tasks.add_task(hub.publish, "driver_status_changed", {"uid": uid, "status": driver["status"]})
    return {"ok": True, "uid": uid, "status": driver["status"]}


@router.post("/api/admin/drivers/{uid}/background")
def api_admin_background(uid: str, payload: dict, store: DocumentStore = Depends(get_store)):
    try:
        bg = set_background_check_status(store, uid, payload.get("status"))
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    return {"ok": True, "uid": uid, "status": bg["status"]}


@router.post("/api/admin/drivers/{uid}/vehicle")
def api_admin_vehicle(
    uid: str, payload: dict, background_tasks: BackgroundTasks, store: DocumentStore = Depends(get_store),
):
    try:
        vehicle = set_vehicle_status(store, uid, payload.get("status"), payload.get("rejection_reason"))
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    background_tasks.add_task(hub.publish, "driver_vehicle_reviewed", {"uid": uid, "status": vehicle["status"]})
    return {"ok": True, "uid": uid, "status": vehicle["status"], "rejection_reason": vehicle.get("rejection_reason")}


@router.post("/api/admin/drivers/{uid}/documents/{doc_type}")
def api_admin_document(
    uid: str, doc_type: str, payload: dict, background_tasks: BackgroundTasks, store: DocumentStore = Depends(get_store),
):
    try:
        document = set_document_status(store, uid, doc_type, payload.get("status"), payload.get("rejection_reason"))
    except DOMAIN_ERRORS as e:
        raise http_error(e)
    background_tasks.add_task(
        hub.publish, "driver_document_reviewed", {"uid": uid, "type": document["type"], "status": document["status"]},
    )
    return {
        "ok": True,
        "uid": uid,
        "type": document["type"],
        "status": document["status"],
        "rejection_reason": document.get("rejection_reason"),
    }


# ---------- Change feed ----------
@router.get("/api/admin/events")
async def api_admin_events():
    return StreamingResponse(hub.subscribe(), media_type="text/event-stream")
