"""ASGI middleware for request log context and validation."""

from __future__ import annotations

import re
import uuid
from typing import TYPE_CHECKING, Any, cast

from fastapi.responses import JSONResponse

from skillset_service.logging import bind_request_context, reset_request_context

if TYPE_CHECKING:
    from starlette.types import ASGIApp, Receive, Scope, Send


_JSON_VALIDATION_ENDPOINTS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("POST", re.compile(r"^/api/auth/register$")),
    ("POST", re.compile(r"^/api/auth/login$")),
    ("POST", re.compile(r"^/api/uploads$")),
    ("PUT", re.compile(r"^/api/uploads/[^/]+/file$")),
    ("POST", re.compile(r"^/api/contact$")),
)


class RequestValidationMiddleware:
    """
    ASGI middleware that tags each request for logging and validates
    Content-Type and body size.

    Every HTTP request gets a request id, bound with its method and path to
    the log context for the duration of the request.

    Only endpoints that take a JSON body are checked: they get 415 for a
    wrong content-type and 413 for oversized request bodies. Body-less actions (logout, validate, cancel, reject,
    upload URL issuance) and the raw object PUT pass through untouched;
    object size is enforced by the storage gateway while streaming.
    """

    def __init__(self, app: ASGIApp, max_body_size: int) -> None:
        self.app = app
        self.max_body_size = max_body_size

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        token = bind_request_context(
            request_id=uuid.uuid4().hex,
            method=scope.get("method", "GET"),
            path=scope.get("path", ""),
        )
        try:
            await self._dispatch(scope, receive, send)
        finally:
            reset_request_context(token)

    async def _dispatch(self, scope: Scope, receive: Receive, send: Send) -> None:
        method = cast("str", scope.get("method", "GET"))

        if method not in ("POST", "PUT", "PATCH"):
            await self.app(scope, receive, send)
            return

        path = cast("str", scope.get("path", ""))
        raw_headers = cast("list[tuple[bytes, bytes]]", scope.get("headers", []))
        headers: dict[bytes, bytes] = dict(raw_headers)
        content_type = headers.get(b"content-type", b"").decode().lower()

        expects_json = any(
            candidate_method == method and pattern.match(path) is not None
            for candidate_method, pattern in _JSON_VALIDATION_ENDPOINTS
        )

        # Unknown endpoint/method combos should be handled by router as 404/405.
        if not expects_json:
            await self.app(scope, receive, send)
            return

        if not content_type.startswith("application/json"):
            response = JSONResponse(
                status_code=415,
                content={
                    "error": "UNSUPPORTED_MEDIA_TYPE",
                    "message": "Content-Type must be application/json",
                    "details": {},
                },
            )
            await response(scope, receive, send)
            return

        # Read and buffer body, checking size
        body_parts: list[bytes] = []
        body_size = 0

        while True:
            message = cast("dict[str, Any]", await receive())
            chunk = cast("bytes", message.get("body", b""))
            body_parts.append(chunk)
            body_size += len(chunk)

            if body_size > self.max_body_size:
                response = JSONResponse(
                    status_code=413,
                    content={
                        "error": "PAYLOAD_TOO_LARGE",
                        "message": "Request body exceeds maximum allowed size",
                        "details": {},
                    },
                )
                await response(scope, receive, send)
                return

            if not message.get("more_body", False):
                break

        # Replay buffered body for downstream app
        full_body = b"".join(body_parts)
        body_sent = False

        async def buffered_receive() -> dict[str, Any]:
            nonlocal body_sent
            if not body_sent:
                body_sent = True
                return {"type": "http.request", "body": full_body, "more_body": False}
            return {"type": "http.disconnect"}

        await self.app(scope, buffered_receive, send)
