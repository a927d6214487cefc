"""Request context middleware: request id propagation and access logging."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from curriculum_rag.utils.logging import log_request, request_id_var

REQUEST_ID_HEADER = "X-Request-ID"

# Polled by orchestrators every few seconds
PROBE_PATHS = frozenset({"/", "/health", "/ready", "/api/v1/health", "/api/v1/ready"})


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Bind a request id to the logging context for the duration of a request.

    The id is taken from the X-Request-ID header when the caller sends one and
    echoed back on the response. Every request except liveness and readiness
    probes is logged with its API area (ingestion, search, cache) and duration.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_var.set(request_id)
        start = time.perf_counter()
        try:
            response = await call_next(request)
            duration_ms = (time.perf_counter() - start) * 1000

            path = request.url.path
            if path not in PROBE_PATHS:
                log_request(
                    method=request.method,
                    path=path,
                    status_code=response.status_code,
                    duration_ms=duration_ms,
                    area=api_area(path),
                )
        finally:
            request_id_var.reset(token)

        response.headers[REQUEST_ID_HEADER] = request_id
        response.headers["X-Response-Time-Ms"] = f"{duration_ms:.1f}"
        return response


def api_area(path: str) -> str:
    """First segment after the API version prefix: /api/v1/search/context -> search."""
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 3 and parts[0] == "api":
        return parts[2]
    return parts[0] if parts else "root"
