"""Record validation for user payloads.

Validates a candidate user record against one of three shapes and returns a
typed result instead of raising: callers decide whether a failure is fatal
(API create/update) or row-scoped (CSV import).

    create:  name + email required, unknown fields rejected, defaults applied
    update:  every field optional, unknown fields rejected
    csv-row: name + email + active required, CSV spellings of
             active/lastLogin normalized to bool/datetime
"""
import enum
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ValidationError

from userdir.schemas.user import CsvUserRow, UserCreate, UserUpdate


class ValidationMode(str, enum.Enum):
    CREATE = "create"
    UPDATE = "update"
    CSV_ROW = "csv-row"


_SCHEMAS: dict[ValidationMode, type[BaseModel]] = {
    ValidationMode.CREATE: UserCreate,
    ValidationMode.UPDATE: UserUpdate,
    ValidationMode.CSV_ROW: CsvUserRow,
}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str


@dataclass(frozen=True)
class ValidationResult:
    """Either normalized `data` (snake_case keys) or one error per violated field."""

    data: dict[str, Any] | None = None
    errors: tuple[FieldError, ...] = ()

    @property
    def is_valid(self) -> bool:
        return not self.errors


def validate_user(raw: Any, mode: ValidationMode | str) -> ValidationResult:
    """Validate `raw` in the given mode, collecting every field violation in one pass."""
    mode = ValidationMode(mode)
    if not isinstance(raw, Mapping):
        return ValidationResult(errors=(FieldError(field="body", message="Expected an object"),))

    try:
        record = _SCHEMAS[mode].model_validate(dict(raw))
    except ValidationError as exc:
        return ValidationResult(errors=_field_errors(exc))

    return ValidationResult(data=record.model_dump(exclude_unset=mode is ValidationMode.UPDATE))


def _field_errors(exc: ValidationError) -> tuple[FieldError, ...]:
    # One entry per field: nested locations collapse onto their top-level key.
    by_field: dict[str, str] = {}
    for err in exc.errors():
        field = str(err["loc"][0]) if err["loc"] else "body"
        message = err["msg"].removeprefix("Value error, ")
        by_field.setdefault(field, message)
    return tuple(FieldError(field=f, message=m) for f, m in by_field.items())
