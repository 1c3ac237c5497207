# driver_onboarding/services/eligibility.py
"""
Driver eligibility rules.

evaluate_driver_eligibility() is a pure function of an OnboardingSnapshot,
the background-check requirement and a reference time. It answers two
questions: may the driver submit the application for review, and may the
driver go online. Every "no" comes with a human-readable reason.

Document approval does not matter for submission, only that a file was
uploaded for every required type. Approval (with the live expiry check)
matters for going online.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from ..models.onboarding import (
    REQUIRED_DOCUMENT_TYPES,
    BackgroundCheckStatus,
    DocumentSnapshot,
    DocumentStatus,
    DocumentType,
    DriverStatus,
    OnboardingSnapshot,
    VehicleSnapshot,
    VehicleStatus,
)
from ..utils.dates import to_datetime, utc_now

REASON_ACCOUNT_NOT_VERIFIED = "Account verification is incomplete."
REASON_VEHICLE_INCOMPLETE = "Vehicle details are incomplete."
REASON_AGREEMENTS_INCOMPLETE = "Required agreements are not accepted."
REASON_DRIVER_NOT_ACTIVE = "Driver account is not active."
REASON_VEHICLE_NOT_APPROVED = "Vehicle is not approved."
REASON_BACKGROUND_NOT_PASSED = "Background check has not passed."


def missing_documents_reason(types: List[DocumentType]) -> str:
    return f"Missing required documents: {', '.join(t.value for t in types)}."


def not_approved_documents_reason(types: List[DocumentType]) -> str:
    return f"Documents not fully approved: {', '.join(t.value for t in types)}."


@dataclass(frozen=True)
class MissingItems:
    documents: Tuple[DocumentType, ...] = ()
    vehicle: bool = False
    agreements: bool = False
    background: bool = False
    rejected_or_expired_documents: Tuple[DocumentType, ...] = ()
    not_approved_documents: Tuple[DocumentType, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "documents": [t.value for t in self.documents],
            "vehicle": self.vehicle,
            "agreements": self.agreements,
            "background": self.background,
            "rejected_or_expired_documents": [t.value for t in self.rejected_or_expired_documents],
            "not_approved_documents": [t.value for t in self.not_approved_documents],
        }


@dataclass(frozen=True)
class EligibilityVerdict:
    can_submit_for_review: bool
    can_go_online: bool
    blocking_reasons: Tuple[str, ...] = ()
    missing_items: MissingItems = field(default_factory=MissingItems)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "can_submit_for_review": self.can_submit_for_review,
            "can_go_online": self.can_go_online,
            "blocking_reasons": list(self.blocking_reasons),
            "missing_items": self.missing_items.to_dict(),
        }


class _Reasons:
    """Insertion-ordered, duplicate-free list of reasons."""

    def __init__(self) -> None:
        self._items: Dict[str, None] = {}

    def add(self, reason: str) -> None:
        self._items.setdefault(reason, None)

    def as_tuple(self) -> Tuple[str, ...]:
        return tuple(self._items)


def document_effective_status(document: Optional[DocumentSnapshot], now: datetime) -> DocumentStatus:
    if document is None:
        return DocumentStatus.PENDING
    if document.expiry_date is not None and document.expiry_date < now:
        return DocumentStatus.EXPIRED
    return document.status


def vehicle_is_complete(vehicle: VehicleSnapshot) -> bool:
    core = (vehicle.make, vehicle.model, vehicle.year, vehicle.color, vehicle.plate)
    return all(value.strip() for value in core) and vehicle.category is not None


def evaluate_driver_eligibility(
    snapshot: OnboardingSnapshot,
    *,
    background_check_required: bool = False,
    now: Optional[datetime] = None,
) -> EligibilityVerdict:
    now = to_datetime(now) or utc_now()

    missing_docs: List[DocumentType] = []
    not_approved: List[DocumentType] = []
    rejected_or_expired: List[DocumentType] = []

    for doc_type in REQUIRED_DOCUMENT_TYPES:
        document = snapshot.documents_by_type.get(doc_type)
        if document is None or not document.has_file:
            missing_docs.append(doc_type)
            continue

        status = document_effective_status(document, now)
        if status is not DocumentStatus.APPROVED:
            not_approved.append(doc_type)
            if status in (DocumentStatus.REJECTED, DocumentStatus.EXPIRED):
                rejected_or_expired.append(doc_type)

    missing_vehicle = not vehicle_is_complete(snapshot.vehicle)
    missing_agreements = not snapshot.agreements.complete
    account_verified = snapshot.driver.account_verified

    can_submit = account_verified and not missing_docs and not missing_vehicle and not missing_agreements

    reasons = _Reasons()
    if not account_verified:
        reasons.add(REASON_ACCOUNT_NOT_VERIFIED)
    if missing_docs:
        reasons.add(missing_documents_reason(missing_docs))
    if missing_vehicle:
        reasons.add(REASON_VEHICLE_INCOMPLETE)
    if missing_agreements:
        reasons.add(REASON_AGREEMENTS_INCOMPLETE)

    background_blocking = (
        background_check_required
        and snapshot.background_check.status is not BackgroundCheckStatus.PASSED
    )

    can_go_online = True
    if snapshot.driver.status is not DriverStatus.ACTIVE:
        can_go_online = False
        reasons.add(REASON_DRIVER_NOT_ACTIVE)
    if not_approved:
        can_go_online = False
        reasons.add(not_approved_documents_reason(not_approved))
    if snapshot.vehicle.status is not VehicleStatus.APPROVED:
        can_go_online = False
        reasons.add(REASON_VEHICLE_NOT_APPROVED)
    if background_blocking:
        can_go_online = False
        reasons.add(REASON_BACKGROUND_NOT_PASSED)
    if missing_agreements:
        # already explained by REASON_AGREEMENTS_INCOMPLETE
        can_go_online = False

    return EligibilityVerdict(
        can_submit_for_review=can_submit,
        can_go_online=can_go_online,
        blocking_reasons=reasons.as_tuple(),
        missing_items=MissingItems(
            documents=tuple(missing_docs),
            vehicle=missing_vehicle,
            agreements=missing_agreements,
            background=background_blocking,
            rejected_or_expired_documents=tuple(rejected_or_expired),
            not_approved_documents=tuple(not_approved),
        ),
    )
