"""
API Middleware - Request/response processing.

Provides:
- Request ID tracking
- Response latency measurement
- Error handling with taxonomy codes
"""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from collections.abc import Awaitable, Callable
from typing import Any

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from councilsearch.config.errors import CouncilSearchError, ErrorCode

logger = logging.getLogger(__name__)


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Attach request ID for tracing across logs and responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers["X-Request-ID"] = request_id

        return response


class LatencyMiddleware(BaseHTTPMiddleware):
    """Track and log request latency."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        start_time = time.perf_counter()

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.2f}"

        request_id = getattr(request.state, "request_id", "unknown")
        logger.info(
            "%s %s status=%d latency_ms=%.2f request_id=%s",
            request.method,
            request.url.path,
            response.status_code,
            duration_ms,
            request_id,
        )

        return response


def _error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    request_id: str,
    details: dict[str, Any] | None = None,
) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={
            "error": {"code": code.value, "message": message, "details": details or {}},
            "request_id": request_id,
        },
    )


class ErrorHandlerMiddleware(BaseHTTPMiddleware):
    """Convert CouncilSearchError exceptions to structured JSON responses."""

    async def dispatch(
        self, request: Request, call_next: Callable[[Request], Awaitable[Response]]
    ) -> Response:
        try:
            return await call_next(request)
        except CouncilSearchError as e:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.error(
                "CouncilSearchError: %s request_id=%s details=%s",
                e.message,
                request_id,
                e.details,
            )
            return JSONResponse(
                status_code=_error_code_to_status(e.code),
                content={
                    "error": e.to_dict(),
                    "request_id": request_id,
                },
            )
        except asyncio.TimeoutError:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.error("Request deadline exceeded request_id=%s", request_id)
            return _error_response(
                504, ErrorCode.TRANSIENT_INFRA, "Upstream request timed out", request_id
            )
        except Exception as e:
            request_id = getattr(request.state, "request_id", "unknown")
            logger.exception("Unhandled error: %s request_id=%s", str(e), request_id)
            return _error_response(
                500, ErrorCode.INTERNAL_ERROR, "Internal server error", request_id
            )


def _error_code_to_status(code: ErrorCode) -> int:
    """Map error codes to HTTP status codes."""
    mapping = {
        # 400 Bad Request
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.SEARCH_INVALID_QUERY: 400,
        ErrorCode.SYNC_SCOPE_EMPTY: 400,
        ErrorCode.SYNC_SCOPE_UNKNOWN: 400,
        # 404 Not Found
        ErrorCode.NOT_FOUND: 404,
        ErrorCode.CONNECTOR_NOT_FOUND: 404,
        # 502 Bad Gateway
        ErrorCode.EXTRACTION_FAILED: 502,
        ErrorCode.LOCATION_LOOKUP_FAILED: 502,
        ErrorCode.CONNECTOR_REQUEST_FAILED: 502,
        # 503 Service Unavailable
        ErrorCode.SEARCH_INDEX_UNAVAILABLE: 503,
        ErrorCode.TRANSIENT_INFRA: 503,
        ErrorCode.STORAGE_CONNECTION_FAILED: 503,
    }
    return mapping.get(code, 500)
