"""Render storefront errors as JSON responses.

Each error type gets its own handler so Starlette's MRO lookup picks it
over protean's generic ``ValidationError``/``ObjectNotFoundError``
handlers, which still cover everything else.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.integrations.fastapi import register_exception_handlers

from storefront.errors import ERROR_TYPES, StorefrontError

logger = structlog.get_logger(__name__)


def _message(messages) -> str:
    if not isinstance(messages, dict):
        return str(messages)
    parts = []
    for values in messages.values():
        parts.extend(values if isinstance(values, list) else [values])
    return "; ".join(str(part) for part in parts)


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    logger.info(
        "Request rejected",
        path=request.url.path,
        error=exc.code,
        status_code=exc.status_code,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "error": exc.code,
            "message": _message(getattr(exc, "messages", str(exc))),
            "details": exc.details(),
        },
    )


def register_error_handlers(app: FastAPI) -> None:
    register_exception_handlers(app)
    for error_type in ERROR_TYPES:
        app.add_exception_handler(error_type, storefront_error_handler)
