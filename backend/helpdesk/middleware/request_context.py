"""
Request context middleware.

WHAT: Assigns every request an id and records the client address, user
agent, path and method for the duration of the request.

WHY: Log lines from handlers, services and the notification hooks of one
request are correlated by the request id, which is stamped onto every log
record by ``RequestIdLogFilter`` and echoed in the ``X-Request-ID`` header.

HOW: The context is stored on ``request.state`` for handlers and in a
ContextVar for code that has no request object.
"""

import logging
import time
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Callable, Optional

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"


@dataclass(frozen=True)
class RequestInfo:
    """Transport-level facts about the current request."""

    request_id: str
    ip_address: str
    user_agent: Optional[str]
    path: str
    method: str


_request_info: ContextVar[Optional[RequestInfo]] = ContextVar("request_info", default=None)


def get_request_info() -> Optional[RequestInfo]:
    """Return the current request's info, or None outside a request."""
    return _request_info.get()


def get_request_id() -> str:
    info = _request_info.get()
    return info.request_id if info else "-"


def get_client_ip(request: Request) -> str:
    """
    Client address, preferring proxy headers.

    X-Real-IP first, then the leftmost X-Forwarded-For entry, then the TCP
    peer. The headers are only trustworthy behind a proxy that overwrites
    them.
    """
    x_real_ip = request.headers.get("X-Real-IP")
    if x_real_ip:
        return x_real_ip.strip()

    x_forwarded_for = request.headers.get("X-Forwarded-For")
    if x_forwarded_for:
        return x_forwarded_for.split(",")[0].strip()

    if request.client and request.client.host:
        return request.client.host

    return "unknown"


class RequestIdLogFilter(logging.Filter):
    """Adds ``request_id`` to every record so formats can use %(request_id)s."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        return True


class RequestContextMiddleware(BaseHTTPMiddleware):
    """
    Binds a RequestInfo to each request.

    An incoming ``X-Request-ID`` header is reused so ids survive a proxy
    hop; otherwise a UUID4 is generated.
    """

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())

        info = RequestInfo(
            request_id=request_id,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("User-Agent"),
            path=request.url.path,
            method=request.method,
        )
        request.state.request_info = info
        token = _request_info.set(info)

        started = time.perf_counter()
        try:
            response = await call_next(request)
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(
                f"{info.method} {info.path} -> {response.status_code} "
                f"({elapsed_ms:.1f} ms) from {info.ip_address}"
            )
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            _request_info.reset(token)
