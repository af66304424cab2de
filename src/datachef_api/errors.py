"""Error handling for the FastAPI application and Data Chef domain exceptions."""

import pydantic
from fastapi import Request
from fastapi import status
from fastapi.responses import JSONResponse
from loguru import logger

from datachef_api.exceptions import ConfigError
from datachef_api.exceptions import DataChefError
from datachef_api.exceptions import EngineError
from datachef_api.exceptions import ExecutionInProgressError
from datachef_api.exceptions import NotFoundError
from datachef_api.exceptions import PipeValidationError
from datachef_api.exceptions import StorageError
from datachef_api.monitoring.logger import log_response_info

__all__ = [
    "handle_broad_exceptions",
    "handle_datachef_errors",
    "handle_pydantic_validation_errors",
    "status_code_for",
]

# Checked in order; subclasses must precede their bases
_STATUS_BY_ERROR = [
    (PipeValidationError, status.HTTP_422_UNPROCESSABLE_CONTENT),
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ExecutionInProgressError, status.HTTP_409_CONFLICT),
    (StorageError, status.HTTP_502_BAD_GATEWAY),
    (EngineError, status.HTTP_502_BAD_GATEWAY),
    (ConfigError, status.HTTP_503_SERVICE_UNAVAILABLE),
]


def status_code_for(exc: DataChefError) -> int:
    """Map a domain exception to its HTTP status code."""
    for error_type, http_status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return http_status
    return status.HTTP_500_INTERNAL_SERVER_ERROR


# fastapi docs on middlewares: https://fastapi.tiangolo.com/tutorial/middleware/
async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        error_response = {"detail": "Internal server error", "error_type": type(err).__name__}

        logger.error(
            f"Unhandled exception: {type(err).__name__}: {str(err)}",
            http_status=500,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=type(err).__name__,
            error_message=str(err),
            exc_info=True,
        )

        response = JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_response,
        )
        log_response_info(response)
        return response


# fastapi docs on error handlers: https://fastapi.tiangolo.com/tutorial/handling-errors/
async def handle_pydantic_validation_errors(request: Request, exc: pydantic.ValidationError) -> JSONResponse:
    """Handle Pydantic validation errors."""
    errors = exc.errors()
    error_response = {
        "detail": [
            {
                "msg": error["msg"],
                "input": error["input"],
            }
            for error in errors
        ]
    }

    logger.warning(
        f"Validation error: {len(errors)} validation errors",
        http_status=422,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type="ValidationError",
        validation_errors=errors,
    )

    response = JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=jsonable_errors(error_response),
    )
    log_response_info(response)

    return response


def jsonable_errors(payload: dict) -> dict:
    """Coerce non-JSON inputs (bytes, models) echoed by pydantic into strings."""
    for item in payload["detail"]:
        value = item["input"]
        if not isinstance(value, (str, int, float, bool, list, dict, type(None))):
            item["input"] = str(value)
    return payload


async def handle_datachef_errors(request: Request, exc: DataChefError) -> JSONResponse:
    """
    Convert Data Chef domain exceptions to HTTP responses.

    Maps:
    - PipeValidationError -> 422 with the full issue list
    - NotFoundError -> 404
    - ExecutionInProgressError -> 409
    - StorageError / EngineError -> 502 (upstream failure)
    - ConfigError -> 503
    """
    http_status = status_code_for(exc)
    error_type = type(exc).__name__

    if isinstance(exc, PipeValidationError):
        error_response = {
            "detail": exc.message,
            "error_type": error_type,
            "issues": [issue.model_dump() if hasattr(issue, "model_dump") else issue for issue in exc.issues],
        }
    else:
        error_response = {"detail": exc.message, "error_type": error_type}
        if isinstance(exc.detail, dict):
            error_response.update(exc.detail)

    log = logger.error if http_status >= 500 else logger.warning
    log(
        f"{error_type}: {exc.message}",
        http_status=http_status,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type=error_type,
    )

    response = JSONResponse(status_code=http_status, content=error_response)
    log_response_info(response)
    return response
