from __future__ import annotations

import pytest
from sqlalchemy.exc import OperationalError

from solarcrm.core.exceptions import AuthorizationError, DatabaseError, NotFoundError, ValidationError
from solarcrm.models import ActivityLog, Document, Notification
from solarcrm.models.enums import (
    MANDATORY_DOCUMENT_CATEGORIES,
    DocumentStatus,
    DocumentType,
    LeadStatus,
)
from solarcrm.services.activity_log_service import ActivityAction
from solarcrm.services.document_service import DocumentService, enrich_quotation


def _service(db, storage):
    return DocumentService(db, storage=storage)


def _upload(service, lead, actor, category="aadhar_front", content=b"%PDF-1.4 scan", filename="scan.pdf"):
    return service.submit_file(lead.id, category, filename, content, "application/pdf", actor)


def test_submit_file_stores_artifact_and_row(db, users, make_lead, fake_storage):
    lead = make_lead()
    document = _upload(_service(db, fake_storage), lead, users["agent"])

    assert document.file_path.startswith(f"leads/{lead.id}/aadhar_front_")
    assert document.file_path.endswith(".pdf")
    assert fake_storage.objects[document.file_path] == b"%PDF-1.4 scan"
    assert document.type == DocumentType.MANDATORY
    assert document.status == DocumentStatus.VALID
    assert document.file_size == len(b"%PDF-1.4 scan")
    assert db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.DOCUMENT_UPLOAD).count() == 1


def test_non_mandatory_file_category_is_customer_type(db, users, make_lead, fake_storage):
    lead = make_lead()
    document = _upload(_service(db, fake_storage), lead, users["agent"], category="site_photo", filename="roof.jpg")
    assert document.type == DocumentType.CUSTOMER
    assert document.file_path.endswith(".jpg")


def test_resubmission_replaces_previous_document(db, users, make_lead, fake_storage):
    lead = make_lead()
    service = _service(db, fake_storage)
    first = _upload(service, lead, users["agent"], content=b"first")
    first_path, first_id = first.file_path, first.id

    second = service.submit_file(lead.id, "aadhar_front", "scan.png", b"second", "image/png", users["office"])

    rows = db.query(Document).filter(Document.lead_id == lead.id, Document.document_category == "aadhar_front").all()
    assert [row.id for row in rows] == [second.id]
    assert fake_storage.removed == [first_path]
    replace = db.query(ActivityLog).filter(ActivityLog.action == ActivityAction.DOCUMENT_REPLACE).one()
    assert replace.old_value["superseded"][0]["document_id"] == first_id
    assert replace.old_value["superseded"][0]["file_path"] == first_path
    assert replace.new_value["file_path"] == second.file_path


def test_failed_insert_removes_new_artifact(db, users, make_lead, fake_storage, monkeypatch):
    lead = make_lead()
    service = _service(db, fake_storage)

    def _fail_commit():
        raise OperationalError("INSERT INTO documents", {}, Exception("disk full"))

    monkeypatch.setattr(db, "commit", _fail_commit)
    with pytest.raises(DatabaseError):
        _upload(service, lead, users["agent"])
    monkeypatch.undo()

    assert fake_storage.objects == {}
    assert len(fake_storage.removed) == 1
    assert db.query(Document).count() == 0


def test_storage_cleanup_failure_does_not_fail_replacement(db, users, make_lead, fake_storage):
    lead = make_lead()
    service = _service(db, fake_storage)
    _upload(service, lead, users["agent"], content=b"first")
    fake_storage.fail_remove = True

    second = _upload(service, lead, users["agent"], content=b"second")
    assert db.query(Document).one().id == second.id


def test_upload_limits(db, users, make_lead, fake_storage, config):
    lead = make_lead()
    service = _service(db, fake_storage)
    with pytest.raises(ValidationError, match="empty"):
        _upload(service, lead, users["agent"], content=b"")
    with pytest.raises(ValidationError, match="size limit"):
        _upload(service, lead, users["agent"], content=b"x" * (config.MAX_UPLOAD_BYTES + 1))
    assert fake_storage.objects == {}


def test_submission_type_follows_step_configuration(db, users, make_lead, fake_storage):
    lead = make_lead()
    service = _service(db, fake_storage)
    with pytest.raises(ValidationError, match="must be submitted as a form"):
        _upload(service, lead, users["agent"], category="customer_profile")
    with pytest.raises(ValidationError, match="must be submitted as a file"):
        service.submit_form(lead.id, "bijli_bill", {"units": 300}, users["agent"])


def test_submit_form_and_replace(db, users, make_lead, fake_storage):
    lead = make_lead()
    service = _service(db, fake_storage)
    service.submit_form(lead.id, "customer_profile", {"name": "Ravi"}, users["agent"])
    latest = service.submit_form(lead.id, "customer_profile", {"name": "Ravi K"}, users["agent"])

    row = db.query(Document).one()
    assert row.id == latest.id
    assert row.form_json == {"name": "Ravi K"}
    assert row.is_form
    assert fake_storage.removed == []


def test_quotation_form_is_enriched(db, users, make_lead, fake_storage):
    lead = make_lead()
    document = _service(db, fake_storage).submit_form(
        lead.id, "quotation", {"systemCost": "350000", "subsidyAmount": "78000"}, users["office"]
    )
    assert document.form_json["totalCost"] == "272000"
    assert document.form_json["amountInWords"] == "Two Lakh Seventy Two Thousand Rupees Only"


def test_enrich_quotation_handles_missing_subsidy_and_bad_input():
    assert enrich_quotation({"systemCost": "1000.50"})["totalCost"] == "1000.50"
    assert "totalCost" not in enrich_quotation({"systemCost": "abc"})
    assert enrich_quotation({"totalCost": "100"})["amountInWords"] == "One Hundred Rupees Only"


def test_empty_form_is_rejected(db, users, make_lead, fake_storage):
    lead = make_lead()
    with pytest.raises(ValidationError):
        _service(db, fake_storage).submit_form(lead.id, "customer_profile", {}, users["agent"])


def test_foreign_lead_documents_are_hidden(db, users, make_lead, fake_storage):
    lead = make_lead()
    with pytest.raises(NotFoundError):
        _upload(_service(db, fake_storage), lead, users["other_agent"])


def test_get_document_returns_signed_url(db, users, make_lead, fake_storage, config):
    lead = make_lead()
    service = _service(db, fake_storage)
    uploaded = _upload(service, lead, users["agent"])

    view = service.get_document(lead.id, "aadhar_front", users["agent"])
    assert view.document.id == uploaded.id
    assert view.signed_url == f"https://storage.test/signed/{uploaded.file_path}?expires={config.SIGNED_URL_TTL_SECONDS}"

    with pytest.raises(NotFoundError) as exc:
        service.get_document(lead.id, "pan_card", users["agent"])
    assert exc.value.code == "DOCUMENT_NOT_FOUND"


def test_delete_document_removes_row_and_artifact(db, users, make_lead, fake_storage):
    lead = make_lead()
    service = _service(db, fake_storage)
    uploaded = _upload(service, lead, users["agent"])
    path = uploaded.file_path

    with pytest.raises(AuthorizationError):
        service.delete_document(lead.id, "aadhar_front", users["agent"])
    assert service.delete_document(lead.id, "aadhar_front", users["office"]) == 1
    assert db.query(Document).count() == 0
    assert fake_storage.removed == [path]


def test_mark_corrupted_notifies_uploader(db, users, make_lead, fake_storage):
    lead = make_lead()
    service = _service(db, fake_storage)
    uploaded = _upload(service, lead, users["agent"])

    with pytest.raises(AuthorizationError):
        service.mark_corrupted(uploaded.id, users["agent"])
    service.mark_corrupted(uploaded.id, users["office"])

    assert uploaded.status == DocumentStatus.CORRUPTED
    notification = db.query(Notification).one()
    assert notification.user_id == users["agent"].id
    assert notification.type == "document_corrupted"


def test_last_mandatory_upload_advances_interested_lead(db, users, make_lead, fake_storage):
    lead = make_lead()
    lead.status = LeadStatus.INTERESTED
    db.commit()
    service = _service(db, fake_storage)

    for category in MANDATORY_DOCUMENT_CATEGORIES[:-1]:
        _upload(service, lead, users["agent"], category=category)
    assert lead.status == LeadStatus.INTERESTED

    _upload(service, lead, users["agent"], category=MANDATORY_DOCUMENT_CATEGORIES[-1])
    db.refresh(lead)
    assert lead.status == LeadStatus.PROCESSING


def test_mark_valid_reruns_auto_advance(db, users, make_lead, fake_storage):
    lead = make_lead()
    lead.status = LeadStatus.INTERESTED
    db.commit()
    service = _service(db, fake_storage)
    for category in MANDATORY_DOCUMENT_CATEGORIES[:-1]:
        _upload(service, lead, users["agent"], category=category)
    last = _upload(service, lead, users["agent"], category=MANDATORY_DOCUMENT_CATEGORIES[-1])
    db.refresh(lead)
    assert lead.status == LeadStatus.PROCESSING

    lead.status = LeadStatus.INTERESTED
    db.commit()
    service.mark_corrupted(last.id, users["office"])
    service.mark_valid(last.id, users["office"])

    db.refresh(lead)
    assert lead.status == LeadStatus.PROCESSING
    types = sorted(notification.type for notification in db.query(Notification).all())
    assert types == ["document_corrupted", "document_validated"]
