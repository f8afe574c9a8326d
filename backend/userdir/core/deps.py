from typing import Annotated

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from userdir.db.session import get_session
from userdir.services.user_store import SqlUserStore, UserStore


async def get_user_store(
    db: Annotated[AsyncSession, Depends(get_session)],
) -> UserStore:
    """Storage capability for the import services, bound to the request's session."""
    return SqlUserStore(db)
