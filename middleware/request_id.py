"""
Request ID middleware.

Every request gets an id (the caller's ``X-Request-ID`` when present) that
is stamped on each log record emitted while the request runs, echoed on the
response, and forwarded to the notification service as the correlation id.
"""

import uuid
import logging
from contextvars import ContextVar
from typing import Optional
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

_current_request_id: ContextVar[Optional[str]] = ContextVar("request_id", default=None)
_factory_installed = False


def install_log_record_factory():
    """
    Wrap the logging record factory once so records carry the id of the
    request being handled in the current task.
    """
    global _factory_installed
    if _factory_installed:
        return

    old_factory = logging.getLogRecordFactory()

    def record_factory(*args, **kwargs):
        record = old_factory(*args, **kwargs)
        record.request_id = _current_request_id.get()
        return record

    logging.setLogRecordFactory(record_factory)
    _factory_installed = True


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
        request.state.request_id = request_id

        token = _current_request_id.set(request_id)
        try:
            response: Response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response
        finally:
            _current_request_id.reset(token)


def get_request_id(request: Request) -> str:
    """
    Request id for the given request, or "no-request-id" outside the middleware.
    """
    return getattr(request.state, "request_id", "no-request-id")
