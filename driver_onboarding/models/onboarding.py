# driver_onboarding/models/onboarding.py
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Mapping, Optional


class DriverStatus(str, enum.Enum):
    UNVERIFIED     = "UNVERIFIED"
    PENDING_REVIEW = "PENDING_REVIEW"
    ACTIVE         = "ACTIVE"
    REJECTED       = "REJECTED"
    SUSPENDED      = "SUSPENDED"


class OnboardingStep(str, enum.Enum):
    # advisory UI progress only, eligibility never reads it
    ACCOUNT    = "ACCOUNT"
    DOCUMENTS  = "DOCUMENTS"
    VEHICLE    = "VEHICLE"
    BACKGROUND = "BACKGROUND"
    TRAINING   = "TRAINING"
    REVIEW     = "REVIEW"
    DONE       = "DONE"


class DocumentType(str, enum.Enum):
    LICENSE        = "LICENSE"
    GOV_ID         = "GOV_ID"
    PROFILE_PHOTO  = "PROFILE_PHOTO"
    VEHICLE_REG    = "VEHICLE_REG"
    INSURANCE      = "INSURANCE"
    ROADWORTHINESS = "ROADWORTHINESS"


REQUIRED_DOCUMENT_TYPES: tuple[DocumentType, ...] = (
    DocumentType.LICENSE,
    DocumentType.GOV_ID,
    DocumentType.PROFILE_PHOTO,
    DocumentType.VEHICLE_REG,
    DocumentType.INSURANCE,
    DocumentType.ROADWORTHINESS,
)


class DocumentStatus(str, enum.Enum):
    PENDING  = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    EXPIRED  = "EXPIRED"   # derived from expiry_date, never written


class VehicleCategory(str, enum.Enum):
    ECONOMY = "ECONOMY"
    PREMIUM = "PREMIUM"
    XL      = "XL"


class VehicleStatus(str, enum.Enum):
    PENDING  = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class BackgroundCheckStatus(str, enum.Enum):
    NOT_STARTED = "NOT_STARTED"
    IN_REVIEW   = "IN_REVIEW"
    PASSED      = "PASSED"
    FAILED      = "FAILED"


class VehicleImageSlot(str, enum.Enum):
    EXTERIOR = "EXTERIOR"
    INTERIOR = "INTERIOR"
    PLATE    = "PLATE"

    @property
    def field_name(self) -> str:
        return self.value.lower()


# ---------- Snapshot (normalized read of one driver's records) ----------

@dataclass(frozen=True)
class DriverSnapshot:
    uid: str = ""
    status: DriverStatus = DriverStatus.UNVERIFIED
    onboarding_step: OnboardingStep = OnboardingStep.ACCOUNT
    account_verified: bool = False
    is_online: bool = False


@dataclass(frozen=True)
class VehicleSnapshot:
    make: str = ""
    model: str = ""
    year: str = ""
    color: str = ""
    plate: str = ""
    category: Optional[VehicleCategory] = None
    status: VehicleStatus = VehicleStatus.PENDING
    rejection_reason: Optional[str] = None


@dataclass(frozen=True)
class DocumentSnapshot:
    type: DocumentType
    file_path: str = ""
    download_url: str = ""
    status: DocumentStatus = DocumentStatus.PENDING
    expiry_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None

    @property
    def has_file(self) -> bool:
        return bool(self.file_path.strip() or self.download_url.strip())


@dataclass(frozen=True)
class AgreementsSnapshot:
    terms_accepted_at: Optional[datetime] = None
    safety_accepted_at: Optional[datetime] = None
    commission_accepted_at: Optional[datetime] = None
    training_passed_at: Optional[datetime] = None

    @property
    def complete(self) -> bool:
        return bool(self.terms_accepted_at and self.safety_accepted_at and self.commission_accepted_at)


@dataclass(frozen=True)
class BackgroundCheckSnapshot:
    status: BackgroundCheckStatus = BackgroundCheckStatus.NOT_STARTED


@dataclass(frozen=True)
class OnboardingSnapshot:
    driver: DriverSnapshot = field(default_factory=DriverSnapshot)
    vehicle: VehicleSnapshot = field(default_factory=VehicleSnapshot)
    agreements: AgreementsSnapshot = field(default_factory=AgreementsSnapshot)
    background_check: BackgroundCheckSnapshot = field(default_factory=BackgroundCheckSnapshot)
    documents_by_type: Mapping[DocumentType, DocumentSnapshot] = field(default_factory=dict)
