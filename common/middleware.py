"""
common.middleware
~~~~~~~~~~~~~~~~~
Structured JSON request-logging middleware powered by structlog.

Logs: method, path, status_code, duration_ms on every request/response cycle.
Every log line emitted while the request is handled carries ``request_id``.
"""
import time
import uuid

import structlog

logger = structlog.get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


class StructuredLoggingMiddleware:
    """
    WSGI middleware that emits one structured log record per HTTP request.

    Log record fields:
        event       – "http_request"
        request_id  – value of the ``X-Request-ID`` header, or a fresh UUID
        method      – HTTP verb (GET, POST, …)
        path        – URL path
        status      – HTTP response status code (int)
        duration_ms – Round-trip duration in milliseconds (float, 2 dp)
    """

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(request_id=request_id)

        start = time.monotonic()
        try:
            response = self.get_response(request)
            duration_ms = round((time.monotonic() - start) * 1000, 2)

            logger.info(
                "http_request",
                method=request.method,
                path=request.get_full_path(),
                status=response.status_code,
                duration_ms=duration_ms,
            )
            response[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            structlog.contextvars.clear_contextvars()
