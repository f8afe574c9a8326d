"""CSV user import pipeline.

    decode upload → header check → row loop → ImportReport

Request-level problems (no rows, too many rows, missing headers) raise
CsvImportError before any row is touched. Everything that goes wrong with a
single row lands in the report and the loop moves on; only a lost database
connection (StorageUnavailableError) stops the batch. Rows already written
stay written.
"""
import csv
import io
import itertools
import logging
from typing import Any

from userdir.core.config import settings
from userdir.schemas.imports import (
    ConflictEntry,
    ExistingUserSnapshot,
    ImportReport,
    ImportRowError,
)
from userdir.services.duplicate_classifier import (
    DuplicateClassifier,
    DuplicateStrategy,
    RowAction,
    import_patch,
)
from userdir.services.user_store import DuplicateEmailError, StorageUnavailableError, UserStore
from userdir.services.validation import ValidationMode, validate_user

logger = logging.getLogger(__name__)

# ─── Constants ───

# Header names are matched case-sensitively; emails are not. Both are intentional.
CSV_COLUMNS = {
    "Name": "name",
    "Email": "email",
    "IPAddress": "ipAddress",
    "Location": "location",
    "Active": "active",
    "LastLogin": "lastLogin",
}
REQUIRED_HEADERS = tuple(CSV_COLUMNS)
DEFAULT_MAX_ROWS = 10000
DEFAULT_MAX_BYTES = 5 * 1024 * 1024

# Row numbers are 1-based and the header occupies row 1.
FIRST_DATA_ROW = 2


class CsvImportError(Exception):
    """The upload as a whole cannot be imported."""

    def __init__(self, message: str, missing_headers: list[str] | None = None):
        super().__init__(message)
        self.message = message
        self.missing_headers = missing_headers or []


# ─── Decode + header check ───

def parse_csv(content: bytes, limit: int | None = None) -> list[dict[str, str]]:
    """Parse at most `limit` data rows; the rest of the payload is never materialized."""
    text = content.decode("utf-8-sig", errors="replace")
    reader = csv.DictReader(io.StringIO(text))
    return list(itertools.islice(reader, limit))


def missing_headers(row_keys: list[str]) -> list[str]:
    present = {k.strip() for k in row_keys if k is not None}
    return [h for h in REQUIRED_HEADERS if h not in present]


def load_upload(
    content: bytes | None,
    max_rows: int = DEFAULT_MAX_ROWS,
    max_bytes: int = DEFAULT_MAX_BYTES,
) -> list[dict[str, str]]:
    """Decode an uploaded CSV and run the request-level checks.

    Raises:
        CsvImportError: no payload, a payload over `max_bytes`, no data rows,
            more than `max_rows` rows, or a required header missing from the
            first row.
    """
    if content is None:
        raise CsvImportError("No file uploaded")

    if len(content) > max_bytes:
        raise CsvImportError(f"CSV file too large (max {max_bytes} bytes)")

    # One extra row is enough to tell that the cap was exceeded.
    rows = parse_csv(content, limit=max_rows + 1)
    if not rows:
        raise CsvImportError("CSV file is empty")
    if len(rows) > max_rows:
        raise CsvImportError(f"CSV file too large (max {max_rows} rows)")

    missing = missing_headers(list(rows[0].keys()))
    if missing:
        raise CsvImportError(f"Missing required headers: {', '.join(missing)}", missing_headers=missing)
    return rows


def csv_payload(row: dict[str, Any]) -> dict[str, Any]:
    """Map CSV columns onto record keys. Extra columns (e.g. Blocked) are dropped."""
    values = {(k or "").strip(): v for k, v in row.items()}
    payload: dict[str, Any] = {}
    for column, key in CSV_COLUMNS.items():
        value = values.get(column)
        payload[key] = value.strip() if isinstance(value, str) else ""
    return payload


def unexpected_error_message(exc: Exception) -> str:
    """Row error text for an unanticipated failure; details only in development."""
    if settings.APP_ENV == "development":
        return f"Unexpected error: {exc}"
    return "Unexpected error"


# ─── Pipeline ───

class UserImportPipeline:
    """Runs one CSV batch against an injected UserStore."""

    def __init__(self, store: UserStore, strategy: DuplicateStrategy = DuplicateStrategy.SKIP):
        self.store = store
        self.strategy = DuplicateStrategy(strategy)

    async def run(self, rows: list[dict[str, Any]]) -> ImportReport:
        report = ImportReport(total=len(rows))
        classifier = DuplicateClassifier(self.store)

        for row_number, row in enumerate(rows, start=FIRST_DATA_ROW):
            try:
                await self._process_row(row_number, row, classifier, report)
            except StorageUnavailableError:
                logger.error(
                    "user import aborted at row %d: storage unavailable (imported=%d updated=%d)",
                    row_number, report.imported, report.updated,
                )
                raise
            except Exception as exc:
                logger.warning("user import: row %d failed unexpectedly", row_number, exc_info=True)
                report.errors.append(ImportRowError(row=row_number, message=unexpected_error_message(exc)))
                report.skipped += 1

        logger.info(
            "user import finished: strategy=%s total=%d imported=%d updated=%d skipped=%d staged=%d",
            self.strategy.value, report.total, report.imported, report.updated,
            report.skipped, len(report.duplicates),
        )
        return report

    async def _process_row(
        self,
        row_number: int,
        row: dict[str, Any],
        classifier: DuplicateClassifier,
        report: ImportReport,
    ) -> None:
        payload = csv_payload(row)
        email = payload["email"]

        if not email:
            self._reject(report, row_number, "email", "Email is required")
            return

        if classifier.check_batch(email) is not None:
            self._reject(report, row_number, "email", f"Duplicate email in CSV file: {email}")
            return

        result = validate_user(payload, ValidationMode.CSV_ROW)
        if not result.is_valid:
            report.errors.extend(
                ImportRowError(row=row_number, field=e.field, message=e.message) for e in result.errors
            )
            report.skipped += 1
            return

        data = result.data
        classification = await classifier.check_storage(data["email"])
        action = classification.action(self.strategy)

        try:
            if action is RowAction.INSERT:
                await self.store.insert({**data, "blocked": False})
                report.imported += 1
            elif action is RowAction.UPDATE:
                await self.store.update_by_id(classification.existing.id, import_patch(data))
                report.updated += 1
            else:
                report.duplicates.append(
                    ConflictEntry(
                        row_number=row_number,
                        csv_data=payload,
                        existing_user=ExistingUserSnapshot.model_validate(classification.existing),
                    )
                )
                report.skipped += 1
        except DuplicateEmailError:
            self._reject(report, row_number, "email", f"Email already exists: {data['email']}")

    @staticmethod
    def _reject(report: ImportReport, row_number: int, field: str, message: str) -> None:
        report.errors.append(ImportRowError(row=row_number, field=field, message=message))
        report.skipped += 1
