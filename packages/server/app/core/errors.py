"""
Error taxonomy and the handlers that turn every failure into ``{"error": ...}``.

Status mapping:
- 400 validation (bad body, oversized file, path traversal, expired invite)
- 401 missing/invalid bearer token
- 403 not a site member / not an owner / not a platform admin
- 404 missing site, file or installation
- 409 conflicting state (file already exists)
- 429 rate limit exceeded
- 5xx upstream or unexpected failures
"""

from __future__ import annotations

import structlog
from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import JSONResponse

from app.core.storage import StorageError
from app.services.github.exceptions import GitHubError

log = structlog.get_logger()


def error_response(status_code: int, message: str, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def _validation_message(exc: RequestValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return "Invalid request body"
    first = errors[0]
    loc = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    msg = first.get("msg", "Invalid value")
    if msg.startswith("Value error, "):
        msg = msg[len("Value error, "):]
    return f"{loc}: {msg}" if loc else msg


async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    log.warning(
        "request.rejected",
        path=request.url.path,
        status=exc.status_code,
        error=str(exc.detail),
    )
    return error_response(exc.status_code, str(exc.detail), getattr(exc, "headers", None))


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    message = _validation_message(exc)
    log.warning("request.invalid", path=request.url.path, error=message)
    return error_response(400, message)


async def github_exception_handler(request: Request, exc: GitHubError) -> JSONResponse:
    log.error(
        "github.request_failed",
        path=request.url.path,
        status=exc.status_code,
        error=str(exc),
    )
    return error_response(exc.http_status, str(exc))


async def storage_exception_handler(request: Request, exc: StorageError) -> JSONResponse:
    log.error("storage.request_failed", path=request.url.path, error=str(exc))
    return error_response(500, str(exc))


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.failed", path=request.url.path, error=str(exc))
    return error_response(500, str(exc) or "An unknown error occurred")


def install_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(GitHubError, github_exception_handler)
    app.add_exception_handler(StorageError, storage_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
