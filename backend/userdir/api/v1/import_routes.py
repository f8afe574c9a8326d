"""CSV bulk import endpoints for users, plus resolution of staged duplicates."""
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, File, Query, Request, UploadFile

from userdir.core.config import settings
from userdir.core.deps import get_user_store
from userdir.core.limiter import limiter
from userdir.schemas.imports import ImportResponse, ProcessDuplicatesRequest
from userdir.services.conflict_resolution import ConflictResolver
from userdir.services.duplicate_classifier import DuplicateStrategy
from userdir.services.user_import import UserImportPipeline, load_upload
from userdir.services.user_store import UserStore

logger = logging.getLogger(__name__)

router = APIRouter()


# ─── POST /users/import ───

@router.post(
    "",
    response_model=ImportResponse,
    summary="Bulk import users from CSV",
    description=(
        "Required headers: Name, Email, IPAddress, Location, Active, LastLogin. "
        "duplicateStrategy=skip updates users whose email already exists; "
        "duplicateStrategy=error leaves them untouched and returns them under `duplicates`."
    ),
)
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def import_users(
    request: Request,
    store: Annotated[UserStore, Depends(get_user_store)],
    file: UploadFile | None = File(default=None),
    duplicate_strategy: DuplicateStrategy = Query(default=DuplicateStrategy.SKIP, alias="duplicateStrategy"),
):
    # Read one byte past the cap so an oversized upload is detected without buffering all of it.
    content = await file.read(settings.IMPORT_MAX_BYTES + 1) if file is not None else None
    rows = load_upload(content, max_rows=settings.IMPORT_MAX_ROWS, max_bytes=settings.IMPORT_MAX_BYTES)

    logger.info(
        "CSV import started: file=%s rows=%d strategy=%s",
        file.filename, len(rows), duplicate_strategy.value,
    )
    report = await UserImportPipeline(store, duplicate_strategy).run(rows)
    return ImportResponse(data=report)


# ─── POST /users/import/process-duplicates ───

@router.post(
    "/process-duplicates",
    response_model=ImportResponse,
    summary="Apply or discard duplicates staged by an import",
)
@limiter.limit(settings.IMPORT_RATE_LIMIT)
async def process_duplicates(
    request: Request,
    body: ProcessDuplicatesRequest,
    store: Annotated[UserStore, Depends(get_user_store)],
):
    report = await ConflictResolver(store).resolve(body.duplicates)
    return ImportResponse(data=report)
