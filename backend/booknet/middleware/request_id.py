"""
BookNet Backend — Correlation Context Middleware
=================================================

What:  Binds a correlation id and the acting member to each request.
Why:   A rejected borrow or a failed commit reported by a member has to be
       traceable to that member's log lines, error body and access entry.
How:   The client's X-Request-ID is reused only when it is a short token;
       anything else is replaced by a generated one. The X-User-ID header is
       recorded as the acting member when it parses as a member id, "-"
       otherwise. Both live in ContextVars, so exception handlers and the
       access log read them without touching the request.

The acting member recorded here is for correlation only. Authorization uses
the id resolved by booknet.dependencies.get_current_user_id.
"""

import re
import uuid
from contextvars import ContextVar
from typing import Optional

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own values
request_id_var: ContextVar[str] = ContextVar("request_id", default="")
acting_user_var: ContextVar[str] = ContextVar("acting_user", default="-")

_CLIENT_REQUEST_ID = re.compile(r"[A-Za-z0-9._-]{1,64}")
_MEMBER_ID = re.compile(r"[1-9][0-9]{0,18}")


def resolve_request_id(header_value: Optional[str]) -> str:
    """Keep a well-formed client id; otherwise mint an 8-char one."""
    if header_value and _CLIENT_REQUEST_ID.fullmatch(header_value):
        return header_value
    return uuid.uuid4().hex[:8]


def resolve_acting_user(header_value: Optional[str]) -> str:
    if header_value is None:
        return "-"
    value = header_value.strip()
    return value if _MEMBER_ID.fullmatch(value) else "-"


def correlation_tag() -> str:
    """`<request id> user=<member>` prefix for log lines."""
    return f"{request_id_var.get('')} user={acting_user_var.get('-')}"


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = resolve_request_id(request.headers.get("X-Request-ID"))
        acting_user = resolve_acting_user(request.headers.get("X-User-ID"))

        request_id_var.set(rid)
        acting_user_var.set(acting_user)
        request.state.request_id = rid
        request.state.acting_user = acting_user

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
