# Copyright (C) 2025 Global Digital Labs (gdlabs.io)
# SPDX-License-Identifier: LGPL-3.0-or-later
"""Exception handlers mapping engine errors to HTTP responses.

The response body is always ``{"code", "message", "status_code"}`` (plus
``retry_after`` for rate limiting). Authentication failures share one
generic body and internal errors never expose their message; the full
kind, message and context go to the log instead.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from starlette.responses import JSONResponse

from authcore.domains.auth.errors import AuthError, ErrorKind
from authcore.infrastructure.database.connection import DatabaseError

logger = logging.getLogger(__name__)


def error_headers(error: AuthError) -> dict[str, str]:
    """Response headers for an error.

    Args:
        error: Error being answered.

    Returns:
        WWW-Authenticate for 401s, rate limit headers for 429s.
    """
    if error.status_code == 401:
        return {"WWW-Authenticate": "Bearer"}
    if error.kind is ErrorKind.RATE_LIMITED:
        headers = dict(error.context.get("headers") or {})
        headers.setdefault("Retry-After", str(error.context.get("retry_after", 1)))
        return headers
    return {}


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Answer an AuthError according to its kind."""
    context = {key: value for key, value in exc.context.items() if key != "headers"}
    if exc.kind is ErrorKind.INTERNAL:
        logger.error(
            "Internal error on %s %s: %s %s",
            request.method,
            request.url.path,
            exc.message,
            context,
            exc_info=exc,
        )
    else:
        logger.info(
            "%s on %s %s: %s %s",
            exc.kind.value,
            request.method,
            request.url.path,
            exc.message,
            context,
        )

    return JSONResponse(
        status_code=exc.status_code,
        content=exc.to_dict(),
        headers=error_headers(exc),
    )


async def database_error_handler(request: Request, exc: DatabaseError) -> JSONResponse:
    """Answer a storage failure as an internal error."""
    logger.error("Database error on %s %s: %s", request.method, request.url.path, str(exc))
    error = AuthError.internal(exc.message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def request_validation_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Answer malformed request bodies with a 400 validation error."""
    fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
    error = AuthError.validation("Invalid request", fields=fields)
    payload = error.to_dict()
    payload["fields"] = fields
    return JSONResponse(status_code=error.status_code, content=payload)


def register_exception_handlers(app: FastAPI) -> None:
    """Install the error handlers on an application."""
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(DatabaseError, database_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
