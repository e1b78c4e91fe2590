"""Maps storefront and protean exceptions to JSON error responses.

Every error body carries a stable ``code`` and a human-readable ``reason``.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from protean.exceptions import InvalidOperationError, ObjectNotFoundError, ValidationError

from storefront.errors import StorefrontError

logger = structlog.get_logger(__name__)


async def storefront_error_handler(request: Request, exc: StorefrontError) -> JSONResponse:
    if exc.http_status >= 500:
        logger.error("Storefront error", path=request.url.path, code=exc.code, reason=exc.reason)
    return JSONResponse(status_code=exc.http_status, content=exc.to_dict())


async def validation_error_handler(request: Request, exc: ValidationError) -> JSONResponse:
    return JSONResponse(
        status_code=422,
        content={"code": "validation_error", "reason": "Invalid input", "details": exc.messages},
    )


async def not_found_handler(request: Request, exc: ObjectNotFoundError) -> JSONResponse:
    return JSONResponse(status_code=404, content={"code": "not_found", "reason": str(exc)})


async def invalid_operation_handler(request: Request, exc: InvalidOperationError) -> JSONResponse:
    return JSONResponse(status_code=409, content={"code": "invalid_operation", "reason": str(exc)})


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StorefrontError, storefront_error_handler)
    app.add_exception_handler(ValidationError, validation_error_handler)
    app.add_exception_handler(ObjectNotFoundError, not_found_handler)
    app.add_exception_handler(InvalidOperationError, invalid_operation_handler)
