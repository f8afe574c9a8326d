"""Pydantic schemas for user records and the user API envelopes."""
import math
import re
import uuid
from datetime import datetime, timezone
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    EmailStr,
    Field,
    StringConstraints,
    field_validator,
)
from pydantic.alias_generators import to_camel

IP_ADDRESS_PATTERN = r"^(\d{1,3}\.){3}\d{1,3}$"
CSV_LAST_LOGIN_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}$")
# NUL and other C0/DEL control characters; PostgreSQL rejects NUL in text columns.
CONTROL_CHARACTERS = re.compile(r"[\x00-\x1f\x7f]")

# Literal spellings accepted for the Active column.
CSV_ACTIVE_VALUES = ("true", "false", "True", "False", "1", "0")


# ─── Field normalizers ───

def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str) and not value.strip():
        return None
    return value


def _no_control_characters(value: str) -> str:
    if CONTROL_CHARACTERS.search(value):
        raise ValueError("must not contain control characters")
    return value


def _normalize_email(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


def _as_utc(value: datetime | None) -> datetime | None:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _csv_active(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value in CSV_ACTIVE_VALUES:
        return value.lower() == "true" or value == "1"
    raise ValueError(f"must be one of {', '.join(CSV_ACTIVE_VALUES)}")


def _csv_last_login(value: Any) -> Any:
    value = _blank_to_none(value)
    if value is None or isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        raise ValueError("must be an ISO-8601 timestamp or YYYY-MM-DD HH:MM:SS")
    text = value.strip()
    if CSV_LAST_LOGIN_PATTERN.match(text):
        return datetime.strptime(text, "%Y-%m-%d %H:%M:%S")
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        raise ValueError("must be an ISO-8601 timestamp or YYYY-MM-DD HH:MM:SS") from None


Name = Annotated[
    str,
    StringConstraints(strip_whitespace=True, min_length=2, max_length=100),
    AfterValidator(_no_control_characters),
]
Email = Annotated[EmailStr, BeforeValidator(_normalize_email)]
IpAddress = Annotated[
    Annotated[str, StringConstraints(strip_whitespace=True, pattern=IP_ADDRESS_PATTERN)] | None,
    BeforeValidator(_blank_to_none),
]
Location = Annotated[
    Annotated[
        str,
        StringConstraints(strip_whitespace=True, max_length=100),
        AfterValidator(_no_control_characters),
    ] | None,
    BeforeValidator(_blank_to_none),
]
LastLogin = Annotated[datetime | None, BeforeValidator(_blank_to_none), AfterValidator(_as_utc)]
CsvActive = Annotated[bool, BeforeValidator(_csv_active)]
CsvLastLogin = Annotated[datetime | None, BeforeValidator(_csv_last_login), AfterValidator(_as_utc)]


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class _UserInput(_CamelModel):
    model_config = ConfigDict(extra="forbid")


# ─── Input shapes (one per validation mode) ───

class UserCreate(_UserInput):
    name: Name
    email: Email
    ip_address: IpAddress = None
    location: Location = None
    active: bool = True
    blocked: bool = False
    last_login: LastLogin = None


class UserUpdate(_UserInput):
    name: Name | None = None
    email: Email | None = None
    ip_address: IpAddress = None
    location: Location = None
    active: bool | None = None
    blocked: bool | None = None
    last_login: LastLogin = None

    @field_validator("name", "email", "active", "blocked", mode="before")
    @classmethod
    def _not_null(cls, value: Any) -> Any:
        if value is None:
            raise ValueError("may not be null")
        return value


class CsvUserRow(_UserInput):
    """One CSV data row after its columns are mapped to record keys. Never carries `blocked`."""

    name: Name
    email: Email
    ip_address: IpAddress = None
    location: Location = None
    active: CsvActive
    last_login: CsvLastLogin = None


# ─── Output shapes ───

class UserOut(_CamelModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    ip_address: str | None
    location: str | None
    active: bool
    blocked: bool
    last_login: datetime | None
    created_at: datetime
    updated_at: datetime


class UserEnvelope(_CamelModel):
    success: bool = True
    data: UserOut


class Pagination(_CamelModel):
    page: int
    limit: int
    total: int
    pages: int

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        return cls(page=page, limit=limit, total=total, pages=math.ceil(total / limit))


class UserListResponse(_CamelModel):
    success: bool = True
    data: list[UserOut]
    pagination: Pagination


class BulkDeleteRequest(_CamelModel):
    user_ids: list[uuid.UUID] = Field(min_length=1)


class BulkDeleteResult(_CamelModel):
    deleted_count: int


class BulkDeleteResponse(_CamelModel):
    success: bool = True
    data: BulkDeleteResult


class MessageResponse(_CamelModel):
    success: bool = True
    message: str
