"""User management API endpoints: list, export, CRUD, block/unblock and bulk delete."""
import csv
import io
import logging
import uuid
from typing import Annotated, Any, Literal

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from fastapi.responses import StreamingResponse
from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from userdir.core.config import settings
from userdir.core.errors import RecordValidationError
from userdir.db.base import utcnow
from userdir.db.session import get_session
from userdir.models.user import User
from userdir.schemas.user import (
    BulkDeleteRequest,
    BulkDeleteResponse,
    BulkDeleteResult,
    MessageResponse,
    Pagination,
    UserEnvelope,
    UserListResponse,
    UserOut,
)
from userdir.services.validation import ValidationMode, validate_user

logger = logging.getLogger(__name__)

router = APIRouter()

SortField = Literal["name", "email", "location", "active", "blocked", "lastLogin", "createdAt", "updatedAt"]

SORT_COLUMNS = {
    "name": User.name,
    "email": User.email,
    "location": User.location,
    "active": User.active,
    "blocked": User.blocked,
    "lastLogin": User.last_login,
    "createdAt": User.created_at,
    "updatedAt": User.updated_at,
}

EXPORT_HEADER = ["Name", "Email", "IPAddress", "Location", "Active", "Blocked", "LastLogin", "CreatedAt"]
EXPORT_TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


# ─── Helpers ───

def _filtered(active: bool | None, blocked: bool | None, location: str | None):
    stmt = select(User)
    if active is not None:
        stmt = stmt.where(User.active == active)
    if blocked is not None:
        stmt = stmt.where(User.blocked == blocked)
    if location:
        stmt = stmt.where(User.location.ilike(f"%{location}%"))
    return stmt


def _sorted(stmt, sort_by: str, sort_order: str):
    column = SORT_COLUMNS[sort_by]
    order = column.desc() if sort_order == "desc" else column.asc()
    return stmt.order_by(order, User.id.asc())


async def _get_or_404(db: AsyncSession, user_id: uuid.UUID) -> User:
    user = (await db.execute(select(User).where(User.id == user_id))).scalar_one_or_none()
    if user is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


async def _ensure_email_free(db: AsyncSession, email: str, exclude_id: uuid.UUID | None = None) -> None:
    stmt = select(User).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if (await db.execute(stmt)).scalar_one_or_none() is not None:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already exists")


def _validated(payload: Any, mode: ValidationMode) -> dict[str, Any]:
    result = validate_user(payload, mode)
    if not result.is_valid:
        raise RecordValidationError(result.errors)
    return result.data


# ─── GET /users ───

@router.get(
    "",
    response_model=UserListResponse,
    summary="List users with filtering, sorting and pagination",
)
async def list_users(
    db: Annotated[AsyncSession, Depends(get_session)],
    active: bool | None = Query(default=None),
    blocked: bool | None = Query(default=None),
    location: str | None = Query(default=None, description="Case-insensitive substring match"),
    sort_by: SortField = Query(default="name", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=settings.USERS_DEFAULT_PAGE_SIZE, ge=1, le=settings.USERS_MAX_PAGE_SIZE),
):
    stmt = _filtered(active, blocked, location)

    total = (await db.execute(select(func.count()).select_from(stmt.subquery()))).scalar_one()

    offset = (page - 1) * limit
    stmt = _sorted(stmt, sort_by, sort_order).offset(offset).limit(limit)
    users = (await db.execute(stmt)).scalars().all()

    return UserListResponse(
        data=[UserOut.model_validate(u) for u in users],
        pagination=Pagination.build(page=page, limit=limit, total=total),
    )


# ─── GET /users/export ───

@router.get(
    "/export",
    summary="Export users as CSV",
    description="Same filters and sort as the list endpoint, without pagination. The file can be re-imported.",
)
async def export_users(
    db: Annotated[AsyncSession, Depends(get_session)],
    active: bool | None = Query(default=None),
    blocked: bool | None = Query(default=None),
    location: str | None = Query(default=None),
    sort_by: SortField = Query(default="name", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query(default="asc", alias="sortOrder"),
):
    stmt = _sorted(_filtered(active, blocked, location), sort_by, sort_order)
    users = (await db.execute(stmt)).scalars().all()

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(EXPORT_HEADER)
    for user in users:
        writer.writerow([
            user.name,
            user.email,
            user.ip_address or "",
            user.location or "",
            "true" if user.active else "false",
            "true" if user.blocked else "false",
            user.last_login.strftime(EXPORT_TIMESTAMP_FORMAT) if user.last_login else "",
            user.created_at.strftime(EXPORT_TIMESTAMP_FORMAT) if user.created_at else "",
        ])

    logger.info("Exported %d users", len(users))
    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": "attachment; filename=users.csv"},
    )


# ─── POST /users/bulk-delete ───

@router.post(
    "/bulk-delete",
    response_model=BulkDeleteResponse,
    summary="Delete several users by id",
)
async def bulk_delete_users(
    body: BulkDeleteRequest,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    result = await db.execute(delete(User).where(User.id.in_(body.user_ids)))
    await db.commit()
    logger.info("Bulk delete: %d of %d users removed", result.rowcount, len(body.user_ids))
    return BulkDeleteResponse(data=BulkDeleteResult(deleted_count=result.rowcount))


# ─── GET /users/{id} ───

@router.get(
    "/{user_id}",
    response_model=UserEnvelope,
    summary="Get a single user",
)
async def get_user(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    user = await _get_or_404(db, user_id)
    return UserEnvelope(data=UserOut.model_validate(user))


# ─── POST /users ───

@router.post(
    "",
    response_model=UserEnvelope,
    status_code=status.HTTP_201_CREATED,
    summary="Create a user",
)
async def create_user(
    db: Annotated[AsyncSession, Depends(get_session)],
    payload: Annotated[dict[str, Any], Body()],
):
    data = _validated(payload, ValidationMode.CREATE)
    await _ensure_email_free(db, data["email"])

    # Block state is an administrative action; new users always start unblocked.
    user = User(**{**data, "blocked": False})
    db.add(user)
    await db.commit()
    await db.refresh(user)

    logger.info("User created: %s", user.id)
    return UserEnvelope(data=UserOut.model_validate(user))


# ─── PATCH /users/{id} ───

@router.patch(
    "/{user_id}",
    response_model=UserEnvelope,
    summary="Partially update a user",
)
async def update_user(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
    payload: Annotated[dict[str, Any], Body()],
):
    updates = _validated(payload, ValidationMode.UPDATE)
    user = await _get_or_404(db, user_id)

    if "email" in updates and updates["email"] != user.email:
        await _ensure_email_free(db, updates["email"], exclude_id=user_id)

    for field, value in updates.items():
        setattr(user, field, value)
    user.updated_at = utcnow()

    await db.commit()
    await db.refresh(user)
    return UserEnvelope(data=UserOut.model_validate(user))


# ─── PATCH /users/{id}/block, /unblock ───

async def _set_blocked(db: AsyncSession, user_id: uuid.UUID, blocked: bool) -> UserEnvelope:
    user = await _get_or_404(db, user_id)
    user.blocked = blocked
    user.updated_at = utcnow()
    await db.commit()
    await db.refresh(user)
    logger.info("User %s %s", user_id, "blocked" if blocked else "unblocked")
    return UserEnvelope(data=UserOut.model_validate(user))


@router.patch("/{user_id}/block", response_model=UserEnvelope, summary="Block a user")
async def block_user(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    return await _set_blocked(db, user_id, True)


@router.patch("/{user_id}/unblock", response_model=UserEnvelope, summary="Unblock a user")
async def unblock_user(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    return await _set_blocked(db, user_id, False)


# ─── DELETE /users/{id} ───

@router.delete("/{user_id}", response_model=MessageResponse, summary="Delete a user")
async def delete_user(
    user_id: uuid.UUID,
    db: Annotated[AsyncSession, Depends(get_session)],
):
    user = await _get_or_404(db, user_id)
    await db.delete(user)
    await db.commit()
    logger.info("User deleted: %s", user_id)
    return MessageResponse(message="User deleted successfully")
