from __future__ import annotations

import pytest
import requests

import solarcrm.services.storage as storage
from solarcrm.core.exceptions import ConfigurationError, StorageError
from solarcrm.services.storage import SupabaseStorage, build_storage_path, file_extension


class _Response:
    def __init__(self, status_code=200, body=None):
        self.status_code = status_code
        self._body = body
        self.text = str(body)

    def json(self):
        if self._body is None:
            raise ValueError("no body")
        return self._body


def _patch(monkeypatch, response=None, exc=None):
    calls = []

    def _request(method, url, **kwargs):
        calls.append((method, url, kwargs))
        if exc is not None:
            raise exc
        return response

    monkeypatch.setattr(storage.requests, "request", _request)
    return calls


def _storage(token=None):
    return SupabaseStorage("https://project.supabase.co/", "anon-key", bucket="documents", access_token=token)


def test_file_extension():
    assert file_extension("Bill.PDF") == "pdf"
    assert file_extension("noext") == "bin"
    assert file_extension(None) == "bin"
    assert file_extension("weird.p/f") == "bin"


def test_build_storage_path():
    assert build_storage_path("lead-1", "bijli_bill", "bill.pdf", now_ms=1700000000000) == (
        "leads/lead-1/bijli_bill_1700000000000.pdf"
    )


def test_upload_posts_bytes_with_user_token(monkeypatch):
    calls = _patch(monkeypatch, _Response(200, {"Key": "documents/x"}))
    path = _storage(token="user-jwt").upload("leads/l1/pan_card_1.png", b"img", "image/png")

    assert path == "leads/l1/pan_card_1.png"
    method, url, kwargs = calls[0]
    assert method == "POST"
    assert url == "https://project.supabase.co/storage/v1/object/documents/leads/l1/pan_card_1.png"
    assert kwargs["headers"]["Authorization"] == "Bearer user-jwt"
    assert kwargs["headers"]["Content-Type"] == "image/png"
    assert kwargs["data"] == b"img"


def test_remove_sends_prefixes(monkeypatch):
    calls = _patch(monkeypatch, _Response(200, []))
    client = _storage()
    client.remove([])
    assert calls == []

    client.remove(["leads/l1/a.pdf"])
    assert calls[0][0] == "DELETE"
    assert calls[0][2]["json"] == {"prefixes": ["leads/l1/a.pdf"]}
    assert calls[0][2]["headers"]["Authorization"] == "Bearer anon-key"


def test_signed_url_is_made_absolute(monkeypatch):
    _patch(monkeypatch, _Response(200, {"signedURL": "/object/sign/documents/a.pdf?token=t"}))
    assert _storage().create_signed_url("a.pdf", 3600) == (
        "https://project.supabase.co/storage/v1/object/sign/documents/a.pdf?token=t"
    )


def test_signed_url_without_url_fails(monkeypatch):
    _patch(monkeypatch, _Response(200, {}))
    with pytest.raises(StorageError):
        _storage().create_signed_url("a.pdf", 60)


def test_rejected_and_unreachable_requests_raise(monkeypatch):
    _patch(monkeypatch, _Response(403, {"error": "denied"}))
    with pytest.raises(StorageError) as excinfo:
        _storage().upload("a.pdf", b"x")
    assert excinfo.value.details == {"status_code": 403}

    _patch(monkeypatch, exc=requests.exceptions.ConnectionError("down"))
    with pytest.raises(StorageError):
        _storage().remove(["a.pdf"])


def test_missing_base_url_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        SupabaseStorage(None, "key", bucket="documents").upload("a.pdf", b"x")
