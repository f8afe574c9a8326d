"""Exception handlers producing the `{success: false, error, ...}` envelope."""
import logging
from http import HTTPStatus

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from userdir.core.config import settings
from userdir.services.user_import import CsvImportError
from userdir.services.validation import FieldError

logger = logging.getLogger(__name__)


class RecordValidationError(Exception):
    """Raised at the HTTP boundary when a user payload fails validation."""

    def __init__(self, errors: tuple[FieldError, ...]):
        super().__init__("Validation failed")
        self.errors = errors


def _error(status_code: int, error: str, **extra) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": error, **extra})


async def record_validation_handler(request: Request, exc: RecordValidationError) -> JSONResponse:
    details = [{"field": e.field, "message": e.message} for e in exc.errors]
    return _error(status.HTTP_400_BAD_REQUEST, "Validation Error", details=details)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = []
    for err in exc.errors():
        # Drop the leading "body"/"query"/"path" segment.
        loc = [str(p) for p in err.get("loc", ())][1:]
        details.append({"field": ".".join(loc), "message": err.get("msg", "")})
    return _error(status.HTTP_400_BAD_REQUEST, "Validation Error", details=details)


async def csv_import_handler(request: Request, exc: CsvImportError) -> JSONResponse:
    extra = {"missingHeaders": exc.missing_headers} if exc.missing_headers else {}
    return _error(status.HTTP_400_BAD_REQUEST, "Invalid CSV", message=exc.message, **extra)


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    # Unmatched routes arrive with Starlette's default detail.
    if exc.status_code == status.HTTP_404_NOT_FOUND and exc.detail == HTTPStatus.NOT_FOUND.phrase:
        message = f"Route {request.method} {request.url.path} not found"
    else:
        message = exc.detail
    try:
        phrase = HTTPStatus(exc.status_code).phrase
    except ValueError:
        phrase = "Error"
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": phrase, "message": message},
        headers=getattr(exc, "headers", None),
    )


async def integrity_error_handler(request: Request, exc: IntegrityError) -> JSONResponse:
    logger.warning("Integrity error on %s %s: %s", request.method, request.url.path, exc.orig)
    return _error(status.HTTP_409_CONFLICT, "Duplicate Entry", message="email already exists")


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception: %s %s: %s", request.method, request.url.path, exc, exc_info=True)
    message = str(exc) if settings.APP_ENV == "development" else "An error occurred"
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error", message=message)


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(RecordValidationError, record_validation_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(CsvImportError, csv_import_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(IntegrityError, integrity_error_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
