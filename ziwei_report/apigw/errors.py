"""Gestion standardisée des erreurs API avec enveloppes d'erreur.

Ce module fournit une gestion centralisée des erreurs avec des enveloppes standardisées
(`{code, message, trace_id, details}`), la correspondance erreurs métier → statuts HTTP et
l'enregistrement des handlers sur l'application.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from ziwei_report.core.http_constants import (
    HTTP_BAD_GATEWAY,
    HTTP_BAD_REQUEST,
    HTTP_CONFLICT,
    HTTP_INTERNAL_SERVER_ERROR,
    HTTP_NOT_FOUND,
    HTTP_SERVICE_UNAVAILABLE,
)
from ziwei_report.domain.errors import ReportError

log = logging.getLogger(__name__)


@dataclass
class ErrorEnvelope:
    """Standard error envelope for API responses."""

    code: str
    message: str
    trace_id: str | None = None
    details: dict[str, Any] | None = None


class APIError(HTTPException):
    """Custom API error with standard envelope."""

    def __init__(
        self,
        status_code: int,
        code: str,
        message: str,
        trace_id: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        """Initialize an API error with standardized envelope."""
        super().__init__(status_code=status_code, detail=message)
        self.code = code
        self.message = message
        self.trace_id = trace_id
        self.details = details


class ErrorCodes:
    """Standard error codes for the API."""

    BAD_REQUEST = "BAD_REQUEST"
    NOT_FOUND = "NOT_FOUND"
    CONFLICT = "CONFLICT"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    SERVICE_UNAVAILABLE = "SERVICE_UNAVAILABLE"

    # Business logic errors
    GENERATION_ERROR = "GENERATION_ERROR"
    GENERATION_FAILED = "GENERATION_FAILED"
    STORE_UNAVAILABLE = "STORE_UNAVAILABLE"


# Erreurs métier → statut HTTP
STATUS_BY_CODE: dict[str, int] = {
    ErrorCodes.VALIDATION_ERROR: HTTP_BAD_REQUEST,
    ErrorCodes.NOT_FOUND: HTTP_NOT_FOUND,
    ErrorCodes.GENERATION_ERROR: HTTP_BAD_GATEWAY,
    ErrorCodes.GENERATION_FAILED: HTTP_CONFLICT,
    ErrorCodes.STORE_UNAVAILABLE: HTTP_SERVICE_UNAVAILABLE,
}


def create_error_response(
    status_code: int,
    code: str,
    message: str,
    trace_id: str | None = None,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    """Create a standardized error response."""
    envelope = ErrorEnvelope(
        code=code,
        message=message,
        trace_id=trace_id,
        details=details,
    )

    return JSONResponse(
        status_code=status_code,
        content={
            "code": envelope.code,
            "message": envelope.message,
            "trace_id": envelope.trace_id,
            **({"details": envelope.details} if envelope.details else {}),
        },
    )


def extract_trace_id(request: Request) -> str | None:
    """Extract trace ID from request headers or request state."""
    trace_id = request.headers.get("X-Trace-ID") or request.headers.get("X-Request-ID")
    if trace_id:
        return trace_id

    # Check for trace ID in request state (set by middleware)
    if hasattr(request.state, "trace_id"):
        return request.state.trace_id

    return None


def handle_report_error(request: Request, exc: ReportError) -> JSONResponse:
    """Handle domain errors (`ReportError` family) with standard envelope."""
    trace_id = extract_trace_id(request)
    status_code = STATUS_BY_CODE.get(exc.code, HTTP_INTERNAL_SERVER_ERROR)

    log.warning(
        "Report error occurred",
        extra={
            "code": exc.code,
            "error_message": exc.message,
            "status_code": status_code,
            "trace_id": trace_id,
        },
    )

    return create_error_response(
        status_code=status_code,
        code=exc.code,
        message=exc.message,
        trace_id=trace_id,
        details=exc.details,
    )


def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions with standard envelope."""
    trace_id = extract_trace_id(request) or exc.trace_id

    log.error(
        "API error occurred",
        extra={
            "code": exc.code,
            "error_message": exc.message,
            "status_code": exc.status_code,
            "trace_id": trace_id,
            "details": exc.details,
        },
    )

    return create_error_response(
        status_code=exc.status_code,
        code=exc.code,
        message=exc.message,
        trace_id=trace_id,
        details=exc.details,
    )


def handle_generic_exception(request: Request, exc: Exception) -> JSONResponse:
    """Handle generic exceptions with standard envelope."""
    trace_id = extract_trace_id(request)

    log.error(
        "Unexpected error occurred",
        extra={
            "code": ErrorCodes.INTERNAL_ERROR,
            "trace_id": trace_id,
            "exception_type": type(exc).__name__,
        },
        exc_info=True,
    )

    return create_error_response(
        status_code=HTTP_INTERNAL_SERVER_ERROR,
        code=ErrorCodes.INTERNAL_ERROR,
        message="An unexpected error occurred",
        trace_id=trace_id,
    )


def register_error_handlers(app: FastAPI) -> None:
    """Branche les handlers d'enveloppe sur `app` (les 422 de schéma restent ceux de FastAPI)."""
    app.add_exception_handler(ReportError, handle_report_error)
    app.add_exception_handler(APIError, handle_api_error)
    app.add_exception_handler(Exception, handle_generic_exception)
