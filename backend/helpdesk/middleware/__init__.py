"""
Middleware package.

WHY: Middleware provides cross-cutting concerns that apply to all requests.
"""

from helpdesk.middleware.request_context import (
    RequestContextMiddleware,
    RequestIdLogFilter,
    RequestInfo,
    get_client_ip,
    get_request_id,
    get_request_info,
)

__all__ = [
    "RequestContextMiddleware",
    "RequestIdLogFilter",
    "RequestInfo",
    "get_client_ip",
    "get_request_id",
    "get_request_info",
]
