"""Pydantic schemas for CSV bulk import results and duplicate resolution."""
import enum
import uuid
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ImportRowError(_CamelModel):
    row: int
    field: str | None = None
    message: str


class ExistingUserSnapshot(_CamelModel):
    """Identity and key fields of the stored record, as of classification time."""
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    email: str
    location: str | None = None
    active: bool
    blocked: bool


class ConflictEntry(_CamelModel):
    row_number: int
    csv_data: dict[str, Any]
    existing_user: ExistingUserSnapshot


class ImportReport(_CamelModel):
    total: int = 0
    imported: int = 0
    updated: int = 0
    skipped: int = 0
    errors: list[ImportRowError] = []
    duplicates: list[ConflictEntry] = []


class ImportResponse(_CamelModel):
    success: bool = True
    data: ImportReport


# ─── Duplicate resolution ───

class DuplicateAction(str, enum.Enum):
    APPLY = "apply"
    DISCARD = "discard"


class DuplicateDecision(_CamelModel):
    row_number: int
    action: DuplicateAction
    csv_data: dict[str, Any]
    # Kept as a string: a malformed id falls back to an email lookup instead of failing the batch.
    existing_record_id: str | None = None


class ProcessDuplicatesRequest(_CamelModel):
    duplicates: list[DuplicateDecision] = Field(min_length=1)
