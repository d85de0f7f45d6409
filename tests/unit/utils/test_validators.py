from __future__ import annotations

import pytest

from solarcrm.core.exceptions import ValidationError
from solarcrm.utils.validators import (
    is_valid_email,
    is_valid_phone,
    sanitize_text,
    validate_document_category,
    validate_lead_fields,
)


def test_phone_validation():
    assert is_valid_phone("+91 98765-43210")
    assert is_valid_phone("(020) 1234 5678")
    assert not is_valid_phone("12345")
    assert not is_valid_phone("98765abc210")
    assert not is_valid_phone(None)


def test_email_validation():
    assert is_valid_email("a@b.in")
    assert not is_valid_email("no-at-sign.com")
    assert not is_valid_email("")


def test_sanitize_text_collapses_blank_values():
    assert sanitize_text("  roof  ") == "roof"
    assert sanitize_text("   ") is None
    assert sanitize_text(None) is None


def test_validate_lead_fields_reports_every_bad_field():
    with pytest.raises(ValidationError) as exc:
        validate_lead_fields(customer_name="A", phone="123", address="x", email="bad")
    assert set(exc.value.details["fields"]) == {"customer_name", "phone", "address", "email"}


def test_validate_lead_fields_skips_missing_fields():
    validate_lead_fields(phone="9876543210")


def test_validate_document_category():
    assert validate_document_category("bijli_bill") == "bijli_bill"
    for bad in ("", "Bijli", "1abc", "../etc", "a"):
        with pytest.raises(ValidationError):
            validate_document_category(bad)
