"""FastAPI dependencies and Result-to-response conversion.

This module provides:
- Access to the ThumbnailService stored in app.state by the lifespan
- Conversion of service Results into HTTP responses
- Exception handlers that keep framework and escaped errors in the same envelope
"""

from typing import Any

import structlog
from fastapi import Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from thumbforge.core.errors import BaseError, ValidationError
from thumbforge.core.result import Err, Ok, Result
from thumbforge.services.thumbnails import ThumbnailService

logger = structlog.get_logger(__name__)


def get_thumbnail_service(request: Request) -> ThumbnailService:
    """Get ThumbnailService from app state.

    Example:
        >>> @router.get("/{thumbnail_id}")
        >>> async def endpoint(service: ThumbnailService = Depends(get_thumbnail_service)):
        ...     result = await service.get_thumbnail_by_id(thumbnail_id)
    """
    return request.app.state.thumbnail_service


def error_response(error: BaseError, request_id: str | None = None) -> JSONResponse:
    """Serialize an error value with its status code."""
    body: dict[str, Any] = {"error": error.to_dict()}
    if request_id is not None:
        body["request_id"] = request_id
    return JSONResponse(status_code=error.status_code, content=body)


def to_response(
    result: Result[BaseModel, BaseError],
    success_status: int = status.HTTP_200_OK,
    request_id: str | None = None,
) -> JSONResponse:
    """Convert a service Result into a JSON response.

    Ok values are serialized with their pydantic JSON representation; Err values
    use the error's status code and ``to_dict()`` payload.
    """
    match result:
        case Ok(value):
            return JSONResponse(status_code=success_status, content=value.model_dump(mode="json"))
        case Err(error):
            log = logger.error if error.status_code >= 500 else logger.info
            log(
                "request.failed",
                request_id=request_id,
                error=error.name,
                status_code=error.status_code,
                message=error.message,
            )
            return error_response(error, request_id)


async def request_validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Wrap FastAPI body/query/path validation failures in the error envelope."""
    error = ValidationError(
        "Request validation failed", {"errors": jsonable_encoder(exc.errors())}
    )
    logger.info("request.invalid", path=request.url.path, errors=len(exc.errors()))
    return error_response(error, request.headers.get("x-request-id"))


async def base_error_handler(request: Request, exc: BaseError) -> JSONResponse:
    """Serialize a BaseError that escaped a handler."""
    log = logger.error if exc.status_code >= 500 else logger.info
    log("request.error_raised", path=request.url.path, error=exc.name, message=exc.message)
    return error_response(exc, request.headers.get("x-request-id"))
