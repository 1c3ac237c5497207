# driver_onboarding/services/files.py
from __future__ import annotations

import datetime as dt
import secrets
import string
from typing import Any

from ..config import settings
from ..models.onboarding import DocumentType, VehicleImageSlot
from .exceptions import OnboardingValidationError

_ALPHABET = string.ascii_uppercase + string.digits

DOCUMENT_EXTENSIONS = ("jpg", "jpeg", "png", "pdf")
IMAGE_EXTENSIONS = ("jpg", "jpeg", "png")


def _random_part(length: int) -> str:
    return "".join(secrets.choice(_ALPHABET) for _ in range(length))


def _epoch_ms(now: dt.datetime) -> int:
    return int(now.timestamp() * 1000)


def normalize_mime_type(mime_type: Any) -> str:
    return str(mime_type or "").strip().lower()


def ensure_allowed_document_mime_type(mime_type: Any) -> str:
    value = normalize_mime_type(mime_type)
    if value not in settings.document_mime_types:
        raise OnboardingValidationError("Unsupported file type. Upload JPG, JPEG, PNG, or PDF.")
    return value


def ensure_allowed_image_mime_type(mime_type: Any) -> str:
    value = normalize_mime_type(mime_type)
    if value not in settings.image_mime_types:
        raise OnboardingValidationError("Only JPG, JPEG, or PNG images are allowed for vehicle photos.")
    return value


def ensure_file_size(size: Any) -> int:
    try:
        value = int(size or 0)
    except (TypeError, ValueError):
        raise OnboardingValidationError("Invalid file size.")
    limit = settings.MAX_DOCUMENT_FILE_SIZE_BYTES
    if value > limit:
        raise OnboardingValidationError(
            f"File is too large ({value / (1024 * 1024):.1f}MB). "
            f"Maximum allowed size is {round(limit / (1024 * 1024))}MB."
        )
    return value


def resolve_extension(file_name: Any, mime_type: Any, allowed: tuple[str, ...] = DOCUMENT_EXTENSIONS) -> str:
    """
    Extension from the file name when it is allowed, otherwise guessed from the mime type.
    Empty string when nothing fits.
    """
    name = str(file_name or "")
    ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    if ext in allowed:
        return "jpg" if ext == "jpeg" else ext

    mime = normalize_mime_type(mime_type)
    if mime == "application/pdf" and "pdf" in allowed:
        return "pdf"
    if "png" in mime:
        return "png"
    if "jpeg" in mime or "jpg" in mime:
        return "jpg"
    return ""


def build_generated_document_id(doc_type: DocumentType, now: dt.datetime) -> str:
    return f"DRV-{doc_type.value}-{_epoch_ms(now)}-{_random_part(5)}"


def build_document_storage_path(uid: str, doc_type: DocumentType, extension: str, now: dt.datetime) -> str:
    ext = (extension or "jpg").strip().lower()
    return f"driver_docs/{uid}/{doc_type.value}/{_epoch_ms(now)}-{_random_part(8).lower()}.{ext}"


def build_vehicle_image_storage_path(uid: str, slot: VehicleImageSlot, extension: str, now: dt.datetime) -> str:
    ext = (extension or "jpg").strip().lower()
    return f"driver_docs/{uid}/VEHICLE_IMAGES/{slot.value}-{_epoch_ms(now)}-{_random_part(8).lower()}.{ext}"


def _mime_or_fallback(mime_type: Any, extension: str) -> str:
    value = normalize_mime_type(mime_type)
    if not value or value == "application/octet-stream":
        return "application/pdf" if extension == "pdf" else f"image/{extension}"
    return value


def plan_document_upload(uid: str, doc_type: DocumentType, asset: dict, now: dt.datetime) -> dict:
    """
    Checks a picked file before the client uploads it and tells it where to put it.
    The bytes never pass through here.
    """
    extension = resolve_extension(asset.get("file_name"), asset.get("mime_type"), DOCUMENT_EXTENSIONS) or "jpg"
    mime_type = ensure_allowed_document_mime_type(_mime_or_fallback(asset.get("mime_type"), extension))
    ensure_file_size(asset.get("size"))
    return {
        "file_path": build_document_storage_path(uid, doc_type, extension, now),
        "mime_type": mime_type,
    }


def plan_vehicle_image_upload(uid: str, slot: VehicleImageSlot, asset: dict, now: dt.datetime) -> dict:
    extension = resolve_extension(asset.get("file_name"), asset.get("mime_type"), IMAGE_EXTENSIONS)
    if not extension:
        raise OnboardingValidationError("Unsupported file type. Upload JPG, JPEG, or PNG images only.")
    mime_type = ensure_allowed_image_mime_type(_mime_or_fallback(asset.get("mime_type"), extension))
    ensure_file_size(asset.get("size"))
    return {
        "file_path": build_vehicle_image_storage_path(uid, slot, extension, now),
        "mime_type": mime_type,
        "slot": slot.value,
    }
