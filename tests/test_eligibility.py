# tests/test_eligibility.py
import datetime as dt

import pytest

from driver_onboarding.models.onboarding import REQUIRED_DOCUMENT_TYPES, DocumentType
from driver_onboarding.services.eligibility import (
    REASON_ACCOUNT_NOT_VERIFIED,
    REASON_AGREEMENTS_INCOMPLETE,
    REASON_BACKGROUND_NOT_PASSED,
    REASON_DRIVER_NOT_ACTIVE,
    REASON_VEHICLE_INCOMPLETE,
    REASON_VEHICLE_NOT_APPROVED,
    evaluate_driver_eligibility,
)
from driver_onboarding.services.snapshot import snapshot_from_records

NOW = dt.datetime(2026, 3, 1, 12, 0, tzinfo=dt.timezone.utc)
ACCEPTED = "2026-02-01T10:00:00Z"


def records(**overrides):
    base = {
        "driver": {"uid": "drv-1", "status": "ACTIVE", "account_verified": True},
        "vehicle": {
            "make": "Toyota",
            "model": "Corolla",
            "year": "2018",
            "color": "Black",
            "plate": "ABC123XY",
            "category": "ECONOMY",
            "status": "APPROVED",
        },
        "agreements": {
            "terms_accepted_at": ACCEPTED,
            "safety_accepted_at": ACCEPTED,
            "commission_accepted_at": ACCEPTED,
        },
        "background_check": {"status": "NOT_STARTED"},
        "documents": {
            t.value: {"type": t.value, "status": "APPROVED", "file_path": f"driver_docs/test/{t.value}/sample.jpg"}
            for t in REQUIRED_DOCUMENT_TYPES
        },
    }
    base.update(overrides)
    return base


def evaluate(rec, **kwargs):
    kwargs.setdefault("now", NOW)
    return evaluate_driver_eligibility(snapshot_from_records(**rec), **kwargs)


def test_all_requirements_met():
    verdict = evaluate(records())
    assert verdict.can_submit_for_review is True
    assert verdict.can_go_online is True
    assert verdict.blocking_reasons == ()
    assert verdict.missing_items.documents == ()
    assert verdict.missing_items.not_approved_documents == ()


def test_pending_documents_are_enough_to_submit():
    rec = records(driver={"status": "UNVERIFIED", "account_verified": True})
    for item in rec["documents"].values():
        item["status"] = "PENDING"
    rec["vehicle"]["status"] = "PENDING"

    verdict = evaluate(rec)
    assert verdict.can_submit_for_review is True
    assert verdict.can_go_online is False
    assert len(verdict.missing_items.not_approved_documents) == len(REQUIRED_DOCUMENT_TYPES)


def test_missing_license_blocks_submission():
    rec = records()
    rec["documents"]["LICENSE"]["file_path"] = "   "

    verdict = evaluate(rec)
    assert verdict.missing_items.documents == (DocumentType.LICENSE,)
    assert verdict.can_submit_for_review is False
    assert any("LICENSE" in reason for reason in verdict.blocking_reasons)
    assert "Missing required documents: LICENSE." in verdict.blocking_reasons


def test_document_presence_dominates_status():
    rec = records(documents={})
    verdict = evaluate(rec)

    assert verdict.missing_items.documents == REQUIRED_DOCUMENT_TYPES
    assert verdict.missing_items.not_approved_documents == ()
    assert verdict.missing_items.rejected_or_expired_documents == ()
    assert verdict.can_submit_for_review is False


def test_rejected_document_without_file_only_counts_as_missing():
    rec = records()
    rec["documents"]["INSURANCE"] = {"type": "INSURANCE", "status": "REJECTED"}

    verdict = evaluate(rec)
    assert DocumentType.INSURANCE in verdict.missing_items.documents
    assert DocumentType.INSURANCE not in verdict.missing_items.rejected_or_expired_documents


def test_download_url_counts_as_a_file():
    rec = records()
    rec["documents"]["GOV_ID"] = {"type": "GOV_ID", "status": "APPROVED", "download_url": "https://cdn.example/id.jpg"}

    verdict = evaluate(rec)
    assert verdict.missing_items.documents == ()
    assert verdict.can_go_online is True


def test_documents_accepted_as_list():
    rec = records()
    rec["documents"] = list(rec["documents"].values())
    assert evaluate(rec).can_go_online is True


def test_expiry_is_derived_from_now():
    rec = records()
    rec["documents"]["INSURANCE"]["expiry_date"] = "2026-02-28"

    verdict = evaluate(rec)
    assert verdict.can_go_online is False
    assert DocumentType.INSURANCE in verdict.missing_items.not_approved_documents
    assert DocumentType.INSURANCE in verdict.missing_items.rejected_or_expired_documents
    assert any("Documents not fully approved" in r for r in verdict.blocking_reasons)

    # the same record is fine the day before it expires
    earlier = evaluate(rec, now=dt.datetime(2026, 2, 27, tzinfo=dt.timezone.utc))
    assert earlier.can_go_online is True


def test_rejected_document_blocks_online_only():
    rec = records(background_check={"status": "PASSED"})
    rec["documents"]["LICENSE"]["status"] = "REJECTED"

    verdict = evaluate(rec, background_check_required=True)
    assert verdict.can_submit_for_review is True
    assert verdict.can_go_online is False
    assert DocumentType.LICENSE in verdict.missing_items.rejected_or_expired_documents
    assert "Documents not fully approved: LICENSE." in verdict.blocking_reasons


def test_background_check_required_and_in_review():
    rec = records(background_check={"status": "IN_REVIEW"})

    verdict = evaluate(rec, background_check_required=True)
    assert verdict.can_go_online is False
    assert REASON_BACKGROUND_NOT_PASSED in verdict.blocking_reasons
    assert verdict.missing_items.background is True

    relaxed = evaluate(rec, background_check_required=False)
    assert relaxed.can_go_online is True
    assert relaxed.missing_items.background is False


def test_rejected_vehicle_blocks_online_but_not_submission():
    rec = records()
    rec["vehicle"]["status"] = "REJECTED"

    verdict = evaluate(rec)
    assert verdict.can_submit_for_review is True
    assert verdict.can_go_online is False
    assert REASON_VEHICLE_NOT_APPROVED in verdict.blocking_reasons
    assert verdict.missing_items.vehicle is False


@pytest.mark.parametrize("field", ["make", "model", "year", "color", "plate"])
def test_blank_vehicle_field_is_incomplete(field):
    rec = records()
    rec["vehicle"][field] = "  "

    verdict = evaluate(rec)
    assert verdict.missing_items.vehicle is True
    assert verdict.can_submit_for_review is False
    assert REASON_VEHICLE_INCOMPLETE in verdict.blocking_reasons


def test_vehicle_category_is_case_insensitive_and_must_be_known():
    rec = records()
    rec["vehicle"]["category"] = "premium"
    assert evaluate(rec).missing_items.vehicle is False

    rec["vehicle"]["category"] = "LIMO"
    assert evaluate(rec).missing_items.vehicle is True


def test_agreements_incomplete_blocks_both_with_one_reason():
    rec = records()
    rec["agreements"]["commission_accepted_at"] = None

    verdict = evaluate(rec)
    assert verdict.missing_items.agreements is True
    assert verdict.can_submit_for_review is False
    assert verdict.can_go_online is False
    assert verdict.blocking_reasons == (REASON_AGREEMENTS_INCOMPLETE,)


def test_unparseable_agreement_timestamp_counts_as_missing():
    rec = records()
    rec["agreements"]["safety_accepted_at"] = "not a date"
    assert evaluate(rec).missing_items.agreements is True


def test_training_is_not_required():
    rec = records()
    rec["agreements"].pop("training_passed_at", None)
    assert evaluate(rec).can_go_online is True


def test_unverified_account_and_inactive_driver():
    rec = records(driver={"status": "PENDING_REVIEW", "account_verified": False})

    verdict = evaluate(rec)
    assert verdict.can_submit_for_review is False
    assert verdict.can_go_online is False
    assert verdict.blocking_reasons[0] == REASON_ACCOUNT_NOT_VERIFIED
    assert REASON_DRIVER_NOT_ACTIVE in verdict.blocking_reasons


def test_empty_snapshot_lists_everything():
    verdict = evaluate_driver_eligibility(snapshot_from_records(), now=NOW)

    assert verdict.can_submit_for_review is False
    assert verdict.can_go_online is False
    assert verdict.blocking_reasons == (
        REASON_ACCOUNT_NOT_VERIFIED,
        "Missing required documents: LICENSE, GOV_ID, PROFILE_PHOTO, VEHICLE_REG, INSURANCE, ROADWORTHINESS.",
        REASON_VEHICLE_INCOMPLETE,
        REASON_AGREEMENTS_INCOMPLETE,
        REASON_DRIVER_NOT_ACTIVE,
        REASON_VEHICLE_NOT_APPROVED,
    )


def test_reasons_have_no_duplicates():
    verdict = evaluate(records(driver={}, vehicle={}, agreements={}, documents={}), background_check_required=True)
    assert len(verdict.blocking_reasons) == len(set(verdict.blocking_reasons))


def test_evaluation_is_deterministic():
    rec = records()
    rec["documents"]["LICENSE"]["status"] = "REJECTED"
    snapshot = snapshot_from_records(**rec)

    first = evaluate_driver_eligibility(snapshot, background_check_required=True, now=NOW)
    second = evaluate_driver_eligibility(snapshot, background_check_required=True, now=NOW)
    assert first == second
    assert first.to_dict() == second.to_dict()


def test_naive_now_is_treated_as_utc():
    rec = records()
    rec["documents"]["INSURANCE"]["expiry_date"] = "2026-02-28T00:00:00Z"

    verdict = evaluate(rec, now=dt.datetime(2026, 3, 1))
    assert DocumentType.INSURANCE in verdict.missing_items.rejected_or_expired_documents


def test_to_dict_shape():
    rec = records()
    rec["documents"]["LICENSE"]["file_path"] = ""
    payload = evaluate(rec).to_dict()

    assert payload["can_submit_for_review"] is False
    assert payload["missing_items"]["documents"] == ["LICENSE"]
    assert set(payload["missing_items"]) == {
        "documents",
        "vehicle",
        "agreements",
        "background",
        "rejected_or_expired_documents",
        "not_approved_documents",
    }
