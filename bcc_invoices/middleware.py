"""
Request logging middleware
"""
import time

from fastapi import Request

from .logging_config import get_logger

logger = get_logger("requests")

SKIP_PATHS = ["/healthz", "/docs", "/openapi.json", "/favicon.ico"]


async def log_request_middleware(request: Request, call_next):
    """
    Log every API request.

    Tracks:
    - HTTP method and path
    - Status code
    - Response time
    - Actor (when the route resolved one)
    """
    if any(request.url.path.startswith(path) for path in SKIP_PATHS):
        return await call_next(request)

    start_time = time.perf_counter()
    response = await call_next(request)
    response_time_ms = int((time.perf_counter() - start_time) * 1000)

    actor = getattr(request.state, "actor", None)
    logger.info(
        "%s %s -> %s in %dms (user=%s)",
        request.method,
        request.url.path,
        response.status_code,
        response_time_ms,
        actor or "-",
    )
    return response
