"""Error handling for the FastAPI application and workspace domain exceptions."""

import pydantic
from fastapi import Request
from fastapi import status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from loguru import logger

from projectflow_api.monitoring.logger import log_response_info
from projectflow_api.workspace.exceptions import AuthenticationFailed
from projectflow_api.workspace.exceptions import Conflict
from projectflow_api.workspace.exceptions import Forbidden
from projectflow_api.workspace.exceptions import ImageStoreError
from projectflow_api.workspace.exceptions import NotFound
from projectflow_api.workspace.exceptions import ServiceUnavailable
from projectflow_api.workspace.exceptions import ValidationFailed
from projectflow_api.workspace.exceptions import WorkspaceError

__all__ = [
    "WORKSPACE_ERROR_STATUS",
    "handle_broad_exceptions",
    "handle_pydantic_validation_errors",
    "handle_request_validation_errors",
    "handle_workspace_errors",
]

WORKSPACE_ERROR_STATUS = {
    ValidationFailed: status.HTTP_400_BAD_REQUEST,
    AuthenticationFailed: status.HTTP_401_UNAUTHORIZED,
    Forbidden: status.HTTP_403_FORBIDDEN,
    NotFound: status.HTTP_404_NOT_FOUND,
    Conflict: status.HTTP_409_CONFLICT,
    ImageStoreError: status.HTTP_502_BAD_GATEWAY,
    ServiceUnavailable: status.HTTP_503_SERVICE_UNAVAILABLE,
}


# fastapi docs on middlewares: https://fastapi.tiangolo.com/tutorial/middleware/
async def handle_broad_exceptions(request: Request, call_next):
    """Handle any exception that goes unhandled by a more specific exception handler."""
    try:
        return await call_next(request)
    except Exception as err:  # pylint: disable=broad-except
        error_response = {"detail": "Internal server error", "error_type": type(err).__name__}

        # Get request body from request state (set by RequestContextMiddleware)
        request_body = getattr(request.state, "request_body", None)

        logger.error(
            f"Unhandled exception: {type(err).__name__}: {str(err)}",
            http_status=500,
            http_method=request.method,
            url_path=str(request.url.path),
            error_type=type(err).__name__,
            error_message=str(err),
            request_body=request_body,
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
    """Handle Pydantic and request validation errors (422)."""
    errors = exc.errors()
    error_response = {
        "detail": [
            {
                "loc": list(error.get("loc", ())),
                "msg": error["msg"],
            }
            for error in errors
        ]
    }

    logger.warning(
        f"Validation error: {len(errors)} validation errors",
        http_status=422,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type=type(exc).__name__,
        request_body=getattr(request.state, "request_body", None),
        response_body=error_response,
    )

    response = JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_response,
    )
    log_response_info(response)
    return response


async def handle_workspace_errors(request: Request, exc: WorkspaceError) -> JSONResponse:
    """
    Convert domain exceptions to HTTP responses.

    Maps each ``WorkspaceError`` subclass to its status code:
    - ValidationFailed -> 400 Bad Request
    - AuthenticationFailed -> 401 Unauthorized
    - Forbidden -> 403 Forbidden
    - NotFound -> 404 Not Found
    - Conflict -> 409 Conflict
    - ImageStoreError -> 502 Bad Gateway
    - ServiceUnavailable -> 503 Service Unavailable

    Parameters
    ----------
    request : Request
        FastAPI request object
    exc : WorkspaceError
        Domain exception raised by a flow

    Returns
    -------
    JSONResponse
        ``{"detail": message, "error_type": class name}``
    """
    http_status = next(
        (code for cls, code in WORKSPACE_ERROR_STATUS.items() if isinstance(exc, cls)),
        status.HTTP_500_INTERNAL_SERVER_ERROR,
    )
    error_type = type(exc).__name__
    error_response = {"detail": exc.message, "error_type": error_type}

    log = logger.error if http_status >= 500 else logger.warning
    log(
        f"Request failed: {error_type}: {exc.message}",
        http_status=http_status,
        http_method=request.method,
        url_path=str(request.url.path),
        error_type=error_type,
    )

    response = JSONResponse(status_code=http_status, content=error_response)
    if http_status == status.HTTP_401_UNAUTHORIZED:
        response.headers["WWW-Authenticate"] = "Bearer"
    log_response_info(response)
    return response


async def handle_request_validation_errors(request: Request, exc: RequestValidationError) -> JSONResponse:
    return await handle_pydantic_validation_errors(request, exc)
