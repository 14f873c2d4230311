import time
from typing import Awaitable, Callable, Optional

from loguru import logger as loguru_logger
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

ROLE_HEADER = "X-Role"
SESSION_HEADER = "X-Session-Id"


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its duration, caller role and editing session."""

    def __init__(self, app, logger: Optional[object] = None):
        super().__init__(app)
        self.logger = (logger or loguru_logger).bind(component="http")

    async def dispatch(self, request: Request, call_next: Callable[[Request], Awaitable[Response]]) -> Response:
        start_time = time.perf_counter()
        role = request.headers.get(ROLE_HEADER, "-")
        session_id = request.headers.get(SESSION_HEADER, "-")
        try:
            response = await call_next(request)
        except Exception:
            self.logger.exception(
                "{method} {path} -> unhandled error ({duration:.2f} ms) [role={role} session={session}]",
                method=request.method,
                path=request.url.path,
                duration=(time.perf_counter() - start_time) * 1000,
                role=role,
                session=session_id,
            )
            raise

        self.logger.info(
            "{method} {path} -> {status} ({duration:.2f} ms) [role={role} session={session}]",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration=(time.perf_counter() - start_time) * 1000,
            role=role,
            session=session_id,
        )
        return response
