"""Request ID middleware for request tracing.

Every HTTP request gets an id (the caller's X-Request-ID, or a fresh
UUID4). It is kept in a ContextVar so log records emitted anywhere in the
request's task tree carry it, and it is echoed back on the response.
"""

import contextvars
import uuid

from starlette.datastructures import Headers, MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

REQUEST_ID_HEADER = "X-Request-ID"

request_id_var: contextvars.ContextVar[str] = contextvars.ContextVar(
    "request_id", default=""
)


class RequestIDMiddleware:
    """Pure ASGI middleware; leaves streaming and background tasks untouched."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rid = Headers(scope=scope).get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        token = request_id_var.set(rid)

        async def send_with_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                MutableHeaders(scope=message)[REQUEST_ID_HEADER] = rid
            await send(message)

        try:
            await self.app(scope, receive, send_with_id)
        finally:
            request_id_var.reset(token)


def get_request_id() -> str:
    """Current request id, or an empty string outside a request."""
    return request_id_var.get()
