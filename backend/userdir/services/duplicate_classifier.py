"""Duplicate classification for CSV import rows.

A row is matched on its trimmed, lower-cased email only, with no fuzzy
matching. The in-batch check always runs before the storage lookup, so an
email repeated inside one file is rejected even when it also exists in
storage and even under the `skip` strategy.
"""
import enum
import logging
from dataclasses import dataclass
from typing import Any

from userdir.db.base import utcnow
from userdir.models.user import User
from userdir.services.user_store import UserStore

logger = logging.getLogger(__name__)

# Fields a CSV row may overwrite on an existing record. `blocked` is absent on purpose.
IMPORT_MUTABLE_FIELDS = ("name", "email", "ip_address", "location", "active", "last_login")


class DuplicateKind(str, enum.Enum):
    NEW = "new"
    IN_BATCH_DUPLICATE = "in_batch_duplicate"
    EXISTING_CONFLICT = "existing_conflict"


class DuplicateStrategy(str, enum.Enum):
    SKIP = "skip"    # auto-apply CSV values onto the existing record
    ERROR = "error"  # stage a conflict for a later decision


class RowAction(str, enum.Enum):
    INSERT = "insert"
    UPDATE = "update"
    STAGE_CONFLICT = "stage_conflict"
    REJECT = "reject"


@dataclass(frozen=True)
class Classification:
    kind: DuplicateKind
    existing: User | None = None

    def action(self, strategy: DuplicateStrategy) -> RowAction:
        """The action policy for this outcome under the caller's strategy."""
        if self.kind is DuplicateKind.IN_BATCH_DUPLICATE:
            return RowAction.REJECT
        if self.kind is DuplicateKind.NEW:
            return RowAction.INSERT
        if strategy is DuplicateStrategy.ERROR:
            return RowAction.STAGE_CONFLICT
        return RowAction.UPDATE


def normalize_email(value: Any) -> str:
    return value.strip().lower() if isinstance(value, str) else ""


def import_patch(data: dict[str, Any]) -> dict[str, Any]:
    """Build the update applied when a CSV row lands on an existing record."""
    patch = {field: data.get(field) for field in IMPORT_MUTABLE_FIELDS}
    patch["updated_at"] = utcnow()
    return patch


class DuplicateClassifier:
    """Classifies the rows of one import batch; create a new one per batch."""

    def __init__(self, store: UserStore):
        self.store = store
        self._seen: set[str] = set()

    def check_batch(self, email: str) -> Classification | None:
        """Return IN_BATCH_DUPLICATE for a repeat, otherwise remember the email and return None."""
        key = normalize_email(email)
        if key in self._seen:
            return Classification(DuplicateKind.IN_BATCH_DUPLICATE)
        self._seen.add(key)
        return None

    async def check_storage(self, email: str) -> Classification:
        existing = await self.store.find_by_email(normalize_email(email))
        if existing is None:
            return Classification(DuplicateKind.NEW)
        return Classification(DuplicateKind.EXISTING_CONFLICT, existing=existing)

    async def classify(self, email: str) -> Classification:
        return self.check_batch(email) or await self.check_storage(email)
