"""Tests for user record validation in create, update and csv-row modes."""
from datetime import datetime, timezone

import pytest

from userdir.services.validation import ValidationMode, validate_user


def _fields(result) -> set[str]:
    return {e.field for e in result.errors}


# ─── create ───────────────────────────────────────────────────────────────────

def test_create_normalizes_email_and_applies_defaults():
    result = validate_user({"name": "  Ada Lovelace ", "email": "  Ada@Example.COM "}, "create")

    assert result.is_valid
    assert result.data["name"] == "Ada Lovelace"
    assert result.data["email"] == "ada@example.com"
    assert result.data["active"] is True
    assert result.data["blocked"] is False
    assert result.data["ip_address"] is None


def test_create_requires_name_and_email():
    result = validate_user({}, ValidationMode.CREATE)

    assert not result.is_valid
    assert _fields(result) == {"name", "email"}


def test_create_rejects_unknown_fields():
    result = validate_user({"name": "Ada", "email": "ada@example.com", "role": "admin"}, "create")

    assert not result.is_valid
    assert _fields(result) == {"role"}


def test_create_collects_every_violation_in_one_pass():
    """Each bad field is reported once; validation does not stop at the first."""
    result = validate_user(
        {
            "name": "A",
            "email": "not-an-email",
            "ipAddress": "10.0.0",
            "location": "x" * 101,
        },
        "create",
    )

    assert not result.is_valid
    assert _fields(result) == {"name", "email", "ipAddress", "location"}
    assert len(result.errors) == 4


def test_create_accepts_camel_case_keys():
    result = validate_user(
        {
            "name": "Grace",
            "email": "grace@example.com",
            "ipAddress": "192.168.1.20",
            "lastLogin": "2024-03-01T08:00:00Z",
        },
        "create",
    )

    assert result.is_valid
    assert result.data["ip_address"] == "192.168.1.20"
    assert result.data["last_login"] == datetime(2024, 3, 1, 8, 0, tzinfo=timezone.utc)


def test_ip_address_pattern_has_no_range_check():
    result = validate_user({"name": "Grace", "email": "grace@example.com", "ipAddress": "999.1.1.1"}, "create")

    assert result.is_valid
    assert result.data["ip_address"] == "999.1.1.1"


def test_empty_optional_fields_become_null():
    result = validate_user(
        {"name": "Grace", "email": "grace@example.com", "ipAddress": "", "location": "  "},
        "create",
    )

    assert result.is_valid
    assert result.data["ip_address"] is None
    assert result.data["location"] is None


def test_non_object_payload_is_rejected():
    result = validate_user(["name", "email"], "create")

    assert not result.is_valid
    assert result.errors[0].field == "body"


# ─── update ───────────────────────────────────────────────────────────────────

def test_update_returns_only_supplied_fields():
    result = validate_user({"location": "Berlin"}, "update")

    assert result.is_valid
    assert result.data == {"location": "Berlin"}


def test_update_applies_create_constraints_when_present():
    result = validate_user({"name": "B", "email": "nope"}, "update")

    assert _fields(result) == {"name", "email"}


def test_update_rejects_null_for_required_columns():
    result = validate_user({"name": None}, "update")

    assert _fields(result) == {"name"}


def test_update_rejects_unknown_fields():
    result = validate_user({"password": "secret"}, "update")

    assert _fields(result) == {"password"}


# ─── csv-row ──────────────────────────────────────────────────────────────────

def _csv_row(**overrides):
    row = {
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "ipAddress": "10.0.0.1",
        "location": "London",
        "active": "true",
        "lastLogin": "2024-01-15 10:30:00",
    }
    row.update(overrides)
    return row


@pytest.mark.parametrize(
    "raw, expected",
    [("true", True), ("True", True), ("1", True), ("false", False), ("False", False), ("0", False), (True, True)],
)
def test_csv_active_spellings(raw, expected):
    result = validate_user(_csv_row(active=raw), ValidationMode.CSV_ROW)

    assert result.is_valid
    assert result.data["active"] is expected


@pytest.mark.parametrize("raw", ["TRUE", "yes", "", "2"])
def test_csv_active_rejects_other_values(raw):
    result = validate_user(_csv_row(active=raw), "csv-row")

    assert _fields(result) == {"active"}


def test_csv_active_is_required():
    row = _csv_row()
    del row["active"]

    result = validate_user(row, "csv-row")

    assert _fields(result) == {"active"}


def test_csv_last_login_space_separated_pattern():
    result = validate_user(_csv_row(lastLogin="2024-01-15 10:30:00"), "csv-row")

    assert result.data["last_login"] == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


def test_csv_last_login_iso_8601():
    result = validate_user(_csv_row(lastLogin="2024-01-15T10:30:00+02:00"), "csv-row")

    assert result.is_valid
    assert result.data["last_login"].utcoffset().total_seconds() == 7200


def test_csv_last_login_blank_is_null():
    result = validate_user(_csv_row(lastLogin=""), "csv-row")

    assert result.is_valid
    assert result.data["last_login"] is None


def test_csv_last_login_rejects_garbage():
    result = validate_user(_csv_row(lastLogin="last tuesday"), "csv-row")

    assert _fields(result) == {"lastLogin"}


def test_csv_row_never_accepts_blocked():
    result = validate_user(_csv_row(blocked="true"), "csv-row")

    assert _fields(result) == {"blocked"}


@pytest.mark.parametrize("field", ["name", "location"])
def test_control_characters_are_rejected(field):
    result = validate_user(_csv_row(**{field: "Ada\x00Lovelace"}), "csv-row")

    assert _fields(result) == {field}


def test_control_characters_rejected_on_create():
    result = validate_user({"name": "Ada\x07", "email": "ada@example.com"}, "create")

    assert _fields(result) == {"name"}
