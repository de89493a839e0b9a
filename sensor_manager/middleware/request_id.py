"""Request ID middleware"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from ..utils import generate_request_id


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Tag each request with an id, echo it back and bind it to log context"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or generate_request_id()
        request.state.request_id = request_id

        structlog.contextvars.bind_contextvars(request_id=request_id)
        try:
            response = await call_next(request)
        finally:
            structlog.contextvars.unbind_contextvars("request_id")

        response.headers["X-Request-ID"] = request_id
        return response
