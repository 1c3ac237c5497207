# driver_onboarding/services/snapshot.py
"""
Record paths and the one place where raw store documents are turned into
typed snapshots. Everything past this module sees enums and aware datetimes.
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Mapping, Optional, Protocol, Type, TypeVar, Union

from ..models.onboarding import (
    REQUIRED_DOCUMENT_TYPES,
    AgreementsSnapshot,
    BackgroundCheckSnapshot,
    BackgroundCheckStatus,
    DocumentSnapshot,
    DocumentStatus,
    DocumentType,
    DriverSnapshot,
    DriverStatus,
    OnboardingSnapshot,
    OnboardingStep,
    VehicleCategory,
    VehicleSnapshot,
    VehicleStatus,
)
from ..utils.dates import to_datetime
from .exceptions import OnboardingValidationError

E = TypeVar("E")

_WS = re.compile(r"\s+")


# ---- paths ----

def driver_path(uid: str) -> str:
    return f"drivers/{uid}"

def vehicle_path(uid: str) -> str:
    return f"drivers/{uid}/vehicle/current"

def background_check_path(uid: str) -> str:
    return f"drivers/{uid}/backgroundCheck/current"

def agreements_path(uid: str) -> str:
    return f"drivers/{uid}/agreements/current"

def documents_collection(uid: str) -> str:
    return f"drivers/{uid}/documents"

def document_path(uid: str, doc_type: DocumentType) -> str:
    return f"{documents_collection(uid)}/{doc_type.value}"

def plate_path(plate: str) -> str:
    return f"plates/{plate}"


# ---- small normalizers ----

def normalize_uid(uid: Any) -> str:
    value = str(uid or "").strip()
    if not value or "/" in value:
        raise OnboardingValidationError("Missing or invalid driver uid.")
    return value


def normalize_plate(plate: Any) -> str:
    return _WS.sub("", str(plate or "")).upper()


def text(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def parse_enum(enum_cls: Type[E], value: Any, default: Optional[E]) -> Optional[E]:
    raw = text(value.value if hasattr(value, "value") else value).upper()
    try:
        return enum_cls(raw)
    except ValueError:
        return default


# ---- record -> snapshot ----

def driver_from_record(data: Optional[Mapping[str, Any]]) -> DriverSnapshot:
    data = data or {}
    return DriverSnapshot(
        uid=text(data.get("uid")),
        status=parse_enum(DriverStatus, data.get("status"), DriverStatus.UNVERIFIED),
        onboarding_step=parse_enum(OnboardingStep, data.get("onboarding_step"), OnboardingStep.ACCOUNT),
        account_verified=bool(data.get("account_verified")),
        is_online=data.get("is_online") is True,
    )


def vehicle_from_record(data: Optional[Mapping[str, Any]]) -> VehicleSnapshot:
    data = data or {}
    return VehicleSnapshot(
        make=text(data.get("make")),
        model=text(data.get("model")),
        year=text(data.get("year")),
        color=text(data.get("color")),
        plate=text(data.get("plate")),
        category=parse_enum(VehicleCategory, data.get("category"), None),
        status=parse_enum(VehicleStatus, data.get("status"), VehicleStatus.PENDING),
        rejection_reason=data.get("rejection_reason") or None,
    )


def document_from_record(doc_type: DocumentType, data: Optional[Mapping[str, Any]]) -> DocumentSnapshot:
    data = data or {}
    return DocumentSnapshot(
        type=doc_type,
        file_path=text(data.get("file_path")),
        download_url=text(data.get("download_url")),
        status=parse_enum(DocumentStatus, data.get("status"), DocumentStatus.PENDING),
        expiry_date=to_datetime(data.get("expiry_date")),
        rejection_reason=data.get("rejection_reason") or None,
    )


def agreements_from_record(data: Optional[Mapping[str, Any]]) -> AgreementsSnapshot:
    data = data or {}
    return AgreementsSnapshot(
        terms_accepted_at=to_datetime(data.get("terms_accepted_at")),
        safety_accepted_at=to_datetime(data.get("safety_accepted_at")),
        commission_accepted_at=to_datetime(data.get("commission_accepted_at")),
        training_passed_at=to_datetime(data.get("training_passed_at")),
    )


def background_check_from_record(data: Optional[Mapping[str, Any]]) -> BackgroundCheckSnapshot:
    data = data or {}
    return BackgroundCheckSnapshot(
        status=parse_enum(BackgroundCheckStatus, data.get("status"), BackgroundCheckStatus.NOT_STARTED),
    )


def map_documents_by_type(
    documents: Union[None, Mapping[str, Any], Iterable[Mapping[str, Any]]],
) -> Dict[str, Dict[str, Any]]:
    """Accepts {TYPE: record} or [record with "type"]; keys come back uppercased."""
    if not documents:
        return {}
    items = documents.items() if isinstance(documents, Mapping) else (
        (item.get("type"), item) for item in documents if isinstance(item, Mapping)
    )
    out: Dict[str, Dict[str, Any]] = {}
    for key, item in items:
        doc_type = text((item or {}).get("type") or key).upper()
        if doc_type:
            out[doc_type] = dict(item or {})
    return out


@dataclass
class RawOnboarding:
    """Store documents as read, None where the record does not exist."""
    uid: str
    driver: Optional[Dict[str, Any]] = None
    vehicle: Optional[Dict[str, Any]] = None
    background_check: Optional[Dict[str, Any]] = None
    agreements: Optional[Dict[str, Any]] = None
    documents_by_type: Dict[str, Dict[str, Any]] = field(default_factory=dict)


def build_snapshot(raw: RawOnboarding) -> OnboardingSnapshot:
    documents = {}
    for doc_type in DocumentType:
        item = raw.documents_by_type.get(doc_type.value)
        if item is not None:
            documents[doc_type] = document_from_record(doc_type, item)
    return OnboardingSnapshot(
        driver=driver_from_record(raw.driver),
        vehicle=vehicle_from_record(raw.vehicle),
        agreements=agreements_from_record(raw.agreements),
        background_check=background_check_from_record(raw.background_check),
        documents_by_type=documents,
    )


def snapshot_from_records(
    driver: Optional[Mapping[str, Any]] = None,
    vehicle: Optional[Mapping[str, Any]] = None,
    agreements: Optional[Mapping[str, Any]] = None,
    background_check: Optional[Mapping[str, Any]] = None,
    documents: Union[None, Mapping[str, Any], Iterable[Mapping[str, Any]]] = None,
) -> OnboardingSnapshot:
    return build_snapshot(RawOnboarding(
        uid=text((driver or {}).get("uid")),
        driver=dict(driver) if driver is not None else None,
        vehicle=dict(vehicle) if vehicle is not None else None,
        agreements=dict(agreements) if agreements is not None else None,
        background_check=dict(background_check) if background_check is not None else None,
        documents_by_type=map_documents_by_type(documents),
    ))


class RecordReader(Protocol):
    def get(self, path: str) -> Optional[Dict[str, Any]]: ...


def fetch_raw_onboarding(reader: RecordReader, uid: str) -> RawOnboarding:
    """
    Reads every onboarding record of one driver through `reader`, which is either
    the DocumentStore or a Transaction (so a gated write sees exactly what it checked).
    """
    uid = normalize_uid(uid)
    raw = RawOnboarding(
        uid=uid,
        driver=reader.get(driver_path(uid)),
        vehicle=reader.get(vehicle_path(uid)),
        background_check=reader.get(background_check_path(uid)),
        agreements=reader.get(agreements_path(uid)),
    )
    for doc_type in REQUIRED_DOCUMENT_TYPES:
        data = reader.get(document_path(uid, doc_type))
        if data is not None:
            raw.documents_by_type[doc_type.value] = {"id": doc_type.value, **data}
    return raw
