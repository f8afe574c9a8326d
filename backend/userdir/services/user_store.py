"""Storage capability handed to the import services.

The import pipeline and conflict resolver never touch a session directly;
they receive a `UserStore`. `SqlUserStore` is the production implementation
over an AsyncSession. Every mutation commits on its own, so rows already
written survive a later failure in the same batch.
"""
import logging
import uuid
from typing import Any, Protocol

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from userdir.db.base import utcnow
from userdir.models.user import User

logger = logging.getLogger(__name__)


class StorageUnavailableError(RuntimeError):
    """The database could not be reached; the current batch must stop."""


class DuplicateEmailError(ValueError):
    """A write lost the race on the unique email index."""

    def __init__(self, email: str):
        super().__init__(f"Email already exists: {email}")
        self.email = email


class UserStore(Protocol):
    async def find_by_email(self, email: str) -> User | None: ...

    async def get(self, user_id: uuid.UUID) -> User | None: ...

    async def insert(self, values: dict[str, Any]) -> uuid.UUID: ...

    async def update_by_id(self, user_id: uuid.UUID, patch: dict[str, Any]) -> int: ...


class SqlUserStore:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def find_by_email(self, email: str) -> User | None:
        result = await self._execute(select(User).where(User.email == email.strip().lower()))
        return result.scalar_one_or_none()

    async def get(self, user_id: uuid.UUID) -> User | None:
        result = await self._execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()

    async def insert(self, values: dict[str, Any]) -> uuid.UUID:
        user = User(id=uuid.uuid4(), **values)
        self.db.add(user)
        await self._commit(values.get("email"))
        return user.id

    async def update_by_id(self, user_id: uuid.UUID, patch: dict[str, Any]) -> int:
        values = {"updated_at": utcnow(), **patch}
        result = await self._execute(
            update(User).where(User.id == user_id).values(**values), email=patch.get("email")
        )
        await self._commit(patch.get("email"))
        return result.rowcount

    # ─── Internals ───

    async def _execute(self, stmt, email: str | None = None):
        try:
            return await self.db.execute(stmt)
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateEmailError(email or "") from exc
        except (OperationalError, InterfaceError) as exc:
            logger.error("user store: database unavailable: %s", exc)
            raise StorageUnavailableError(str(exc)) from exc
        except SQLAlchemyError:
            # A failed statement poisons the session; clear it so the next row can run.
            await self.db.rollback()
            raise

    async def _commit(self, email: str | None) -> None:
        try:
            await self.db.commit()
        except IntegrityError as exc:
            await self.db.rollback()
            raise DuplicateEmailError(email or "") from exc
        except (OperationalError, InterfaceError) as exc:
            logger.error("user store: commit failed, database unavailable: %s", exc)
            raise StorageUnavailableError(str(exc)) from exc
        except SQLAlchemyError:
            await self.db.rollback()
            raise
