"""Apply or discard conflicts staged by an import run under the `error` strategy.

Nothing is kept server-side between the import and this call: each decision
carries the full CSV payload, which is validated again before any write.
"""
import logging
import uuid

from userdir.models.user import User
from userdir.schemas.imports import DuplicateAction, DuplicateDecision, ImportReport, ImportRowError
from userdir.services.duplicate_classifier import import_patch
from userdir.services.user_import import unexpected_error_message
from userdir.services.user_store import DuplicateEmailError, StorageUnavailableError, UserStore
from userdir.services.validation import ValidationMode, validate_user

logger = logging.getLogger(__name__)


def _parse_id(value: str | None) -> uuid.UUID | None:
    if not value:
        return None
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


class ConflictResolver:
    def __init__(self, store: UserStore):
        self.store = store

    async def resolve(self, decisions: list[DuplicateDecision]) -> ImportReport:
        report = ImportReport(total=len(decisions))

        for decision in decisions:
            try:
                await self._resolve_one(decision, report)
            except StorageUnavailableError:
                logger.error("duplicate resolution aborted at row %d: storage unavailable", decision.row_number)
                raise
            except Exception as exc:
                logger.warning("duplicate resolution: row %d failed unexpectedly", decision.row_number, exc_info=True)
                report.errors.append(ImportRowError(row=decision.row_number, message=unexpected_error_message(exc)))
                report.skipped += 1

        logger.info(
            "duplicate resolution finished: total=%d updated=%d skipped=%d",
            report.total, report.updated, report.skipped,
        )
        return report

    async def _resolve_one(self, decision: DuplicateDecision, report: ImportReport) -> None:
        row = decision.row_number

        if decision.action is DuplicateAction.DISCARD:
            report.skipped += 1
            return

        result = validate_user(decision.csv_data, ValidationMode.CSV_ROW)
        if not result.is_valid:
            report.errors.extend(ImportRowError(row=row, field=e.field, message=e.message) for e in result.errors)
            report.skipped += 1
            return

        data = result.data
        target = await self._find_target(decision.existing_record_id, data["email"])
        if target is None:
            report.errors.append(ImportRowError(row=row, message="Existing user not found"))
            report.skipped += 1
            return

        try:
            matched = await self.store.update_by_id(target.id, import_patch(data))
        except DuplicateEmailError:
            report.errors.append(ImportRowError(row=row, field="email", message=f"Email already exists: {data['email']}"))
            report.skipped += 1
            return

        if not matched:
            report.errors.append(ImportRowError(row=row, message="Existing user not found"))
            report.skipped += 1
            return
        report.updated += 1

    async def _find_target(self, record_id: str | None, email: str) -> User | None:
        user_id = _parse_id(record_id)
        if user_id is not None:
            user = await self.store.get(user_id)
            if user is not None:
                return user
        return await self.store.find_by_email(email)
