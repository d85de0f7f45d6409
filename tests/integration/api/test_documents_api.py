from __future__ import annotations


def _upload(client, lead_id, category, headers, name="scan.pdf", content=b"%PDF-1.4 scan"):
    return client.post(
        f"/api/leads/{lead_id}/documents/{category}",
        files={"file": (name, content, "application/pdf")},
        headers=headers,
    )


def test_upload_then_fetch_with_signed_url(client, users, make_lead, fake_storage, auth_headers):
    lead = make_lead()
    headers = auth_headers(users["agent"])

    uploaded = _upload(client, lead.id, "pan_card", headers)
    assert uploaded.status_code == 201
    document = uploaded.json()["document"]
    assert document["file_path"].startswith(f"leads/{lead.id}/pan_card_")
    assert document["type"] == "mandatory"
    assert fake_storage.objects[document["file_path"]] == b"%PDF-1.4 scan"

    fetched = client.get(f"/api/leads/{lead.id}/documents/pan_card", headers=headers).json()["document"]
    assert fetched["signed_url"].startswith("https://storage.test/signed/")


def test_resubmission_replaces_previous_file(client, users, make_lead, fake_storage, auth_headers):
    lead = make_lead()
    headers = auth_headers(users["agent"])
    first = _upload(client, lead.id, "bijli_bill", headers, name="old.pdf").json()["document"]
    second = _upload(client, lead.id, "bijli_bill", headers, name="new.png", content=b"png").json()["document"]

    listed = client.get(f"/api/leads/{lead.id}/documents", headers=headers).json()["documents"]
    assert [item["id"] for item in listed] == [second["id"]]
    assert first["file_path"] in fake_storage.removed
    assert second["file_path"] in fake_storage.objects


def test_form_submission_enriches_quotation(client, users, make_lead, auth_headers):
    lead = make_lead()
    response = client.post(
        f"/api/leads/{lead.id}/documents/quotation",
        json={"form_data": {"systemCost": "250000", "subsidyAmount": "78000"}},
        headers=auth_headers(users["office"]),
    )
    assert response.status_code == 201
    form = response.json()["document"]["form_json"]
    assert form["totalCost"] == "172000"
    assert form["amountInWords"] == "One Lakh Seventy Two Thousand Rupees Only"


def test_submission_type_is_enforced(client, users, make_lead, auth_headers):
    lead = make_lead()
    headers = auth_headers(users["agent"])
    assert _upload(client, lead.id, "customer_profile", headers).status_code == 400
    response = client.post(f"/api/leads/{lead.id}/documents/pan_card", json={"form_data": {"a": 1}}, headers=headers)
    assert response.status_code == 400
    assert response.json()["error"]["details"] == {"expected_submission_type": "file"}


def test_body_must_be_multipart_or_form_json(client, users, make_lead, auth_headers):
    lead = make_lead()
    response = client.post(
        f"/api/leads/{lead.id}/documents/quotation",
        content=b"plain text",
        headers={**auth_headers(users["office"]), "Content-Type": "text/plain"},
    )
    assert response.status_code == 400


def test_delete_document(client, users, make_lead, fake_storage, auth_headers):
    lead = make_lead()
    path = _upload(client, lead.id, "pan_card", auth_headers(users["agent"])).json()["document"]["file_path"]

    assert client.delete(f"/api/leads/{lead.id}/documents/pan_card", headers=auth_headers(users["agent"])).status_code == 403
    response = client.delete(f"/api/leads/{lead.id}/documents/pan_card", headers=auth_headers(users["office"]))
    assert response.json() == {"success": True, "deleted": 1}
    assert path in fake_storage.removed
    missing = client.get(f"/api/leads/{lead.id}/documents/pan_card", headers=auth_headers(users["office"]))
    assert missing.json()["error"]["code"] == "DOCUMENT_NOT_FOUND"


def test_review_marks_notify_uploader(client, users, make_lead, auth_headers):
    lead = make_lead()
    document_id = _upload(client, lead.id, "pan_card", auth_headers(users["agent"])).json()["document"]["id"]
    office = auth_headers(users["office"])

    assert client.patch(f"/api/documents/{document_id}/corrupted", headers=auth_headers(users["agent"])).status_code == 403
    corrupted = client.patch(f"/api/documents/{document_id}/corrupted", headers=office)
    assert corrupted.json()["document"]["status"] == "corrupted"
    valid = client.patch(f"/api/documents/{document_id}/valid", headers=office)
    assert valid.json()["document"]["status"] == "valid"

    notifications = client.get("/api/notifications", headers=auth_headers(users["agent"])).json()["notifications"]
    assert sorted(item["type"] for item in notifications) == ["document_corrupted", "document_validated"]
