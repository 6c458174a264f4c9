"""
Request middleware: error rendering, request logging, timing
"""
import time
import traceback
import uuid
from datetime import datetime
from typing import Any

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from starlette.middleware.base import BaseHTTPMiddleware

from talent_match.utils.exceptions import TalentMatchError, map_to_http_exception
from talent_match.utils.logging_config import get_logger

logger = get_logger(__name__)


def error_response(request_id: str, status_code: int, detail: Any) -> JSONResponse:
    """Standard error body shared by every failure path"""
    if isinstance(detail, str):
        detail = {"message": detail}
    elif not isinstance(detail, dict):
        detail = {"message": str(detail)}

    body = {
        "success": False,
        "timestamp": datetime.utcnow().isoformat(),
        "request_id": request_id,
        "status_code": status_code,
        **detail,
    }
    return JSONResponse(status_code=status_code, content=body, headers={"X-Request-ID": request_id})


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Tags the request with an id and renders errors the routes let escape"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        except TalentMatchError as exc:
            http_exc = map_to_http_exception(exc)
            log = logger.warning if http_exc.status_code < 500 else logger.error
            log(
                f"{exc.__class__.__name__} in {request.method} {request.url.path}: {exc.message}",
                extra={
                    "request_id": request_id,
                    "error_code": exc.error_code,
                    "details": exc.details,
                },
            )
            return error_response(request_id, http_exc.status_code, http_exc.detail)

        except PydanticValidationError as exc:
            # raised while building a response model or by service-side model validation
            logger.error(
                f"Data validation error in {request.method} {request.url.path}: {exc}",
                extra={"request_id": request_id, "validation_errors": exc.errors()},
            )
            return error_response(request_id, 400, {
                "error": "Data validation failed",
                "message": "Invalid data format or values",
                "validation_errors": exc.errors(include_url=False, include_context=False, include_input=False),
            })

        except HTTPException as exc:
            logger.warning(
                f"HTTP exception in {request.method} {request.url.path}: {exc.detail}",
                extra={"request_id": request_id, "status_code": exc.status_code},
            )
            return error_response(request_id, exc.status_code, exc.detail)

        except Exception as exc:
            logger.error(
                f"Unhandled exception in {request.method} {request.url.path}: {exc}",
                extra={
                    "request_id": request_id,
                    "exception_type": exc.__class__.__name__,
                    "traceback": traceback.format_exc(),
                },
                exc_info=True,
            )
            return error_response(request_id, 500, {
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            })


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, status and latency of each request"""

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        request_id = getattr(request.state, "request_id", None) or request.headers.get("X-Request-ID")

        logger.debug(
            f"Request: {request.method} {request.url.path}",
            extra={
                "request_id": request_id,
                "query_params": dict(request.query_params),
                "client_ip": request.client.host if request.client else "unknown",
            },
        )
        try:
            response = await call_next(request)
        except Exception as exc:
            elapsed = time.perf_counter() - start_time
            logger.error(
                f"Request failed: {request.method} {request.url.path} after {elapsed:.3f}s",
                extra={"request_id": request_id, "exception": str(exc)},
            )
            raise

        elapsed = time.perf_counter() - start_time
        logger.info(
            f"Response: {request.method} {request.url.path} - {response.status_code} in {elapsed:.3f}s",
            extra={"request_id": request_id, "status_code": response.status_code},
        )
        return response


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Flags slow requests and reports processing time in a header"""

    def __init__(self, app, slow_request_threshold: float = 2.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        start_time = time.perf_counter()
        response = await call_next(request)
        elapsed = time.perf_counter() - start_time

        if elapsed > self.slow_request_threshold:
            logger.warning(
                f"Slow request: {request.method} {request.url.path} took {elapsed:.3f}s",
                extra={
                    "request_id": getattr(request.state, "request_id", None),
                    "threshold": self.slow_request_threshold,
                },
            )
        response.headers["X-Processing-Time"] = f"{elapsed:.3f}"
        return response


class HealthCheckMiddleware(BaseHTTPMiddleware):
    """Answers liveness probes before they reach logging or routing"""

    HEALTH_PATHS = ("/healthz", "/ping")

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.HEALTH_PATHS:
            return JSONResponse({"status": "ok"})
        return await call_next(request)
