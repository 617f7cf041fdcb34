"""
ASGI middleware for logging API requests and websocket lifecycles.

Uses pure ASGI middleware (not BaseHTTPMiddleware) so websocket scopes pass
through untouched apart from the open/close log lines.

HTTP requests log method, path, status code and duration. Responses with a
status of 400 or above also log a short error reason taken from the body.
"""

import json
import logging
import time
from typing import Optional
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from ..core.logging_config import filter_sensitive_data, truncate_large_data

logger = logging.getLogger(__name__)


def _query_params(scope: Scope) -> Optional[dict]:
    query_string = scope.get("query_string", b"").decode("utf-8", errors="ignore")
    if not query_string:
        return None
    params = dict(item.split("=", 1) for item in query_string.split("&") if "=" in item)
    return filter_sensitive_data(params)


ERROR_REASON_KEYS = ("detail", "message", "error", "reason")


def _extract_error_reason(body: str) -> Optional[str]:
    """Pick a short human readable reason out of an error response body."""
    if not body:
        return None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return truncate_large_data(body, max_length=500)

    if isinstance(payload, dict):
        reason = next((payload[key] for key in ERROR_REASON_KEYS if payload.get(key)), payload)
    else:
        reason = payload
    if not isinstance(reason, str):
        reason = json.dumps(reason, ensure_ascii=False, default=str)
    return truncate_large_data(reason, max_length=500)


class RequestLoggingMiddleware:
    """Pure ASGI middleware to log HTTP requests and websocket sessions."""

    def __init__(self, app: ASGIApp, exclude_paths: Optional[list] = None):
        """
        Initialize the logging middleware.

        Args:
            app: The ASGI application
            exclude_paths: Paths to skip entirely (e.g., ["/health"])
        """
        self.app = app
        self.exclude_paths = exclude_paths or ["/health", "/"]

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] == "websocket":
            await self._log_websocket(scope, receive, send)
            return
        if scope["type"] != "http" or scope.get("path", "") in self.exclude_paths:
            await self.app(scope, receive, send)
            return
        await self._log_http(scope, receive, send)

    async def _log_http(self, scope: Scope, receive: Receive, send: Send) -> None:
        start_time = time.time()
        request_id = id(scope)
        method = scope.get("method", "UNKNOWN")
        path = scope.get("path", "")
        client = scope.get("client")

        status_code = 0
        error_chunks = []

        async def logging_send(message: Message) -> None:
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 0)
            elif message["type"] == "http.response.body" and status_code >= 400:
                error_chunks.append(message.get("body", b""))
            await send(message)

        logger.info(
            f"Request started: {method} {path}",
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "query_params": _query_params(scope),
                "client": client[0] if client else None,
            }}
        )

        try:
            await self.app(scope, receive, logging_send)
        except Exception as e:
            duration_ms = (time.time() - start_time) * 1000
            logger.error(
                f"Request failed: {method} {path} - {str(e)}",
                exc_info=True,
                extra={"extra_fields": {
                    "request_id": request_id,
                    "method": method,
                    "path": path,
                    "duration_ms": duration_ms,
                    "error": str(e),
                }}
            )
            raise

        duration_ms = (time.time() - start_time) * 1000

        error_reason = None
        if status_code >= 400 and error_chunks:
            body = b"".join(error_chunks).decode("utf-8", errors="ignore")
            error_reason = _extract_error_reason(body)

        if status_code < 400:
            log_level = logging.INFO
        elif status_code < 500:
            log_level = logging.WARNING
        else:
            log_level = logging.ERROR

        completion_message = f"Request completed: {method} {path} - {status_code} ({duration_ms:.2f}ms)"
        if error_reason:
            completion_message += f" | error_reason={error_reason}"

        logger.log(
            log_level,
            completion_message,
            extra={"extra_fields": {
                "request_id": request_id,
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": duration_ms,
                "error_reason": error_reason,
            }}
        )

    async def _log_websocket(self, scope: Scope, receive: Receive, send: Send) -> None:
        start_time = time.time()
        path = scope.get("path", "")
        close_code = None

        async def logging_send(message: Message) -> None:
            nonlocal close_code
            if message["type"] == "websocket.close":
                close_code = message.get("code", 1000)
            await send(message)

        async def logging_receive() -> Message:
            nonlocal close_code
            message = await receive()
            if message["type"] == "websocket.disconnect":
                close_code = message.get("code", 1000)
            return message

        logger.info(
            f"WebSocket opened: {path}",
            extra={"extra_fields": {"path": path, "query_params": _query_params(scope)}}
        )
        try:
            await self.app(scope, logging_receive, logging_send)
        finally:
            duration_ms = (time.time() - start_time) * 1000
            logger.info(
                f"WebSocket closed: {path} - code {close_code} ({duration_ms:.2f}ms)",
                extra={"extra_fields": {
                    "path": path,
                    "close_code": close_code,
                    "duration_ms": duration_ms,
                }}
            )
