"""RFC 7807 problem responses for every error the API can return."""

import logging
from typing import Any, Mapping, Optional

from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .core.exceptions import ConfigurationException, DomainException

logger = logging.getLogger(__name__)

PROBLEM_MEDIA_TYPE = "application/problem+json"

_STATUS_TITLES = {
    400: "Bad Request",
    401: "Unauthorized",
    403: "Forbidden",
    404: "Not Found",
    409: "Conflict",
    422: "Unprocessable Entity",
    429: "Too Many Requests",
    500: "Internal Server Error",
}


def problem_response(
    request: Request,
    status_code: int,
    *,
    detail: Optional[str] = None,
    code: Optional[str] = None,
    errors: Any = None,
    headers: Optional[Mapping[str, str]] = None,
) -> JSONResponse:
    """Build a problem+json response; ``code`` and ``errors`` are omitted when empty."""
    body: dict[str, Any] = {
        "type": "about:blank",
        "title": _STATUS_TITLES.get(status_code, "Error"),
        "status": status_code,
        "detail": detail or "",
        "instance": request.url.path,
    }
    if code:
        body["code"] = code
    if errors:
        body["errors"] = jsonable_encoder(errors)
    return JSONResponse(
        body, status_code=status_code, media_type=PROBLEM_MEDIA_TYPE, headers=headers
    )


def _split_http_detail(detail: Any) -> tuple[Optional[str], Optional[str], Any]:
    """HTTPException.detail may be a plain message or a {code, message, details} dict."""
    if detail is None:
        return None, None, None
    if not isinstance(detail, dict):
        return str(detail), None, None
    code = detail.get("code")
    message = detail.get("message") or detail.get("detail")
    return (
        message if isinstance(message, str) else None,
        code if isinstance(code, str) else None,
        detail.get("details") or detail.get("errors"),
    )


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
        if isinstance(exc, ConfigurationException) and exc.status_code >= 500:
            logger.error(
                "Configuration error on %s: %s",
                request.url.path,
                exc.message,
                extra={"code": exc.code},
            )
        return problem_response(
            request, exc.status_code, detail=exc.message, code=exc.code, errors=exc.details
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(
        request: Request, exc: StarletteHTTPException
    ) -> JSONResponse:
        detail, code, errors = _split_http_detail(exc.detail)
        return problem_response(
            request,
            exc.status_code,
            detail=detail,
            code=code,
            errors=errors,
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return problem_response(
            request,
            422,
            detail="Request validation failed",
            code="validation_error",
            errors=exc.errors(),
        )

    @app.exception_handler(ValidationError)
    async def validation_exception_handler(request: Request, exc: ValidationError) -> JSONResponse:
        return problem_response(
            request, 422, detail="Validation failed", code="validation_error", errors=exc.errors()
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return problem_response(
            request, 500, detail="Internal Server Error", code="internal_server_error"
        )
