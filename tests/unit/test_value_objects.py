"""Unit tests for contact value objects."""

import pytest

from practice_crm.domain.errors import InvalidInputError
from practice_crm.domain.value_objects.contact_identifier import (
    ContactIdentifier,
    IdentifierKind,
)
from practice_crm.domain.value_objects.email_address import (
    is_valid_email,
    is_valid_name,
    normalize_email,
)
from practice_crm.domain.value_objects.phone_number import (
    INVALID_COUNTRY_CODE,
    format_phone_number,
    is_valid_phone_number,
    to_e164,
)


@pytest.mark.parametrize(
    "raw,expected",
    [
        ("4045550134", "404-555-0134"),
        ("(404) 555-0134", "404-555-0134"),
        ("+1 404 555 0134", "404-555-0134"),
        ("404", "404"),
        ("40455", "404-55"),
        ("", ""),
    ],
)
def test_format_phone_number(raw, expected):
    """Test progressive US phone formatting."""
    assert format_phone_number(raw) == expected


def test_format_phone_number_rejects_foreign_country_code():
    """Test non-US country codes are flagged."""
    assert format_phone_number("+44 20 7946 0958") == INVALID_COUNTRY_CODE


def test_is_valid_phone_number_needs_ten_digits():
    """Test phone validity counts digits."""
    assert is_valid_phone_number("404-555-0134")
    assert not is_valid_phone_number("404-555")


@pytest.mark.parametrize(
    "raw",
    ["404-555-0134", "(404) 555-0134", "+14045550134", "14045550134"],
)
def test_to_e164(raw):
    """Test every accepted spelling maps to the same E.164 number."""
    assert to_e164(raw) == "+14045550134"


def test_email_helpers():
    """Test email normalization and validation."""
    assert normalize_email("  Jordan@Example.COM ") == "jordan@example.com"
    assert is_valid_email("jordan@example.com")
    assert not is_valid_email("jordan@")
    assert not is_valid_email("not an email")


def test_name_length_bounds():
    """Test names need 2 to 100 characters."""
    assert is_valid_name("Jo")
    assert not is_valid_name(" J ")
    assert not is_valid_name("x" * 101)


def test_identifier_parse_with_hyphen_is_uuid():
    """Test hyphenated identifiers resolve to the uuid column."""
    identifier = ContactIdentifier.parse("3f6c2a1e-8b7d-4c5e-9a0f-1d2e3c4b5a69")

    assert identifier.kind == IdentifierKind.UUID


def test_identifier_parse_without_hyphen_is_id():
    """Test bare identifiers resolve to the primary key."""
    identifier = ContactIdentifier.parse("5f2b1c9e8d7a4b3c")

    assert identifier.kind == IdentifierKind.ID
    assert identifier.value == "5f2b1c9e8d7a4b3c"


def test_identifier_from_request_prefers_uuid():
    """Test an explicit uuid wins over contactId."""
    identifier = ContactIdentifier.from_request(contact_id="c1", uuid="u-1")

    assert identifier == ContactIdentifier.by_uuid("u-1")


def test_identifier_from_request_requires_a_value():
    """Test missing identifiers are rejected."""
    with pytest.raises(InvalidInputError) as exc_info:
        ContactIdentifier.from_request()

    assert exc_info.value.message == "Contact ID or UUID is required"


def test_identifier_rejects_blank_value():
    """Test blank identifiers are rejected."""
    with pytest.raises(InvalidInputError):
        ContactIdentifier.by_id("   ")
