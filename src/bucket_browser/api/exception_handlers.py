"""
Maps domain exceptions to JSON error responses of the form ``{"message": ...}``.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from ..exceptions import ArchiveDownloadForbiddenError
from ..storage.exceptions import StorageError, StorageNotFoundError

log = logging.getLogger(__name__)


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})


async def archive_forbidden_handler(request: Request, exc: ArchiveDownloadForbiddenError):
    log.warning("Refused archive download %s %s: %s", request.method, request.url.path, exc.key)
    return _error(status.HTTP_403_FORBIDDEN, "Downloading .tar.gz files is not allowed")


async def not_found_handler(request: Request, exc: StorageNotFoundError):
    log.info("Not found %s %s: %s", request.method, request.url.path, exc)
    message = f"Object not found: {exc.key}" if exc.key else str(exc)
    return _error(status.HTTP_404_NOT_FOUND, message)


async def storage_error_handler(request: Request, exc: StorageError):
    log.error("Storage error on %s %s: %s", request.method, request.url.path, exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, f"Storage request failed: {exc}")


async def http_exception_handler(request: Request, exc: HTTPException):
    log.warning(
        "HTTP exception: Status=%s, Detail=%s, Request: %s %s",
        exc.status_code,
        exc.detail,
        request.method,
        request.url,
    )
    return _error(exc.status_code, str(exc.detail))


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    log.warning("Validation error: %s, Request: %s %s", exc.errors(), request.method, request.url)
    return _error(status.HTTP_422_UNPROCESSABLE_ENTITY, "Invalid request parameters")


async def generic_exception_handler(request: Request, exc: Exception):
    log.exception("Unhandled exception on %s %s: %s", request.method, request.url, exc)
    return _error(
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "An unexpected server error occurred: %s" % type(exc).__name__,
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ArchiveDownloadForbiddenError, archive_forbidden_handler)
    app.add_exception_handler(StorageNotFoundError, not_found_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
