import logging
import time
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware


logger = logging.getLogger("app.middleware")


class LoggingMiddleware(BaseHTTPMiddleware):
    """Logs method, path, duration and status of every HTTP request.

    WebSocket scopes bypass BaseHTTPMiddleware; the hub logs those itself.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.perf_counter()
        response = await call_next(request)
        process_time = (time.perf_counter() - start_time) * 1000
        logger.info(
            "%s %s - %.2fms - %d",
            request.method,
            request.url.path,
            process_time,
            response.status_code,
        )
        return response
