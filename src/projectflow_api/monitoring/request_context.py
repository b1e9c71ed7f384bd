"""Request context middleware for logging."""
import asyncio
import json
import time
import uuid
from contextvars import ContextVar
from typing import Any
from typing import Callable
from typing import Optional

import jwt
from fastapi import Request
from fastapi import Response
from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware

# Context variables to store request-specific data
request_id_ctx: ContextVar[str] = ContextVar("request_id", default="")
client_ip_ctx: ContextVar[str] = ContextVar("client_ip", default="")
user_identity_ctx: ContextVar[str] = ContextVar("user_identity", default="")
user_agent_ctx: ContextVar[str] = ContextVar("user_agent", default="")
request_path_ctx: ContextVar[str] = ContextVar("request_path", default="")

# Maximum size for request/response body logging (to avoid memory issues)
MAX_BODY_LOG_SIZE = 10000  # 10KB limit

# Body keys whose values are replaced before logging
SENSITIVE_KEYS = (
    "password",
    "otp",
    "token",
    "secret",
    "backup_code",
    "backup_codes",
    "qr_code",
    "temporary_password",
)


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Middleware to capture and log request context information."""

    async def dispatch(self, request: Request, call_next: Callable) -> Any:
        """
        Capture request context and add to logging.

        Captures:
        - Request ID (from header or generated)
        - Client IP (forwarded headers or direct)
        - Account identity (unverified claims of the bearer token)
        - User agent
        - Redacted JSON request and response bodies
        """
        request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
        request_id_ctx.set(request_id)

        client_ip = self._get_client_ip(request)
        client_ip_ctx.set(client_ip)

        user_identity = self._get_user_identity(request)
        user_identity_ctx.set(user_identity)

        user_agent = request.headers.get("User-Agent", "unknown")
        user_agent_ctx.set(user_agent)

        request_path = f"{request.method} {request.url.path}"
        request_path_ctx.set(request_path)

        # Store in request state early so error handlers can access it
        request.state.request_body = None
        if request.method in ("POST", "PUT", "PATCH", "DELETE"):
            request.state.request_body = await self._get_request_body(request)

        with logger.contextualize(
            request_id=request_id,
            client_ip=client_ip,
            user_identity=user_identity,
            user_agent=user_agent,
            request_path=request_path,
        ):
            start_time = time.time()
            response = await call_next(request)
            duration_ms = (time.time() - start_time) * 1000

            response_body, response = await self._capture_response_body(response)

            logger.info(
                f"{request.method} {request.url.path} - {response.status_code}",
                event_type="http_request",
                http_method=request.method,
                url_path=str(request.url.path),
                url_query=str(request.query_params) if request.query_params else None,
                request_body=getattr(request.state, "request_body", None),
                http_status=response.status_code,
                response_time_ms=round(duration_ms, 2),
                response_body=response_body,
            )

            return response

    async def _get_request_body(self, request: Request) -> Optional[dict]:
        """
        Read a JSON request body and return it with sensitive values redacted.

        Multipart uploads and other content types are summarized rather than read.
        """
        content_type = request.headers.get("Content-Type", "")
        if "application/json" not in content_type.lower():
            if content_type:
                return {"_content_type": content_type, "_size": request.headers.get("Content-Length")}
            return None

        try:
            body = await asyncio.wait_for(request.body(), timeout=2.0)
        except asyncio.TimeoutError:
            return {"_error": "Request body read timeout (>2s)"}

        if not body:
            return None
        if len(body) > MAX_BODY_LOG_SIZE:
            return {"_truncated": True, "_size": len(body)}

        try:
            return redact_sensitive(json.loads(body))
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            return {"_error": "Failed to parse request body", "_error_detail": str(e)}

    async def _capture_response_body(self, response: Response) -> tuple[Optional[Any], Response]:
        """
        Capture the JSON response body without breaking the response.

        Returns:
            Tuple of (redacted body or None, new response)
        """
        content_type = response.headers.get("content-type", "")
        if "application/json" not in content_type:
            return None, response

        body_bytes = b""
        async for chunk in response.body_iterator:
            body_bytes += chunk

        new_response = Response(
            content=body_bytes,
            status_code=response.status_code,
            headers=dict(response.headers),
            media_type=response.media_type,
        )
        if not body_bytes:
            return None, new_response
        if len(body_bytes) > MAX_BODY_LOG_SIZE:
            return {"_truncated": True, "_size": len(body_bytes)}, new_response

        try:
            return redact_sensitive(json.loads(body_bytes)), new_response
        except json.JSONDecodeError:
            return {"_raw": body_bytes.decode("utf-8", errors="replace")[:1000]}, new_response

    def _get_client_ip(self, request: Request) -> str:
        """Get the real client IP address, honouring proxy headers."""
        forwarded_for = request.headers.get("X-Forwarded-For")
        if forwarded_for:
            # X-Forwarded-For can contain multiple IPs, take the first one
            return forwarded_for.split(",")[0].strip()

        real_ip = request.headers.get("X-Real-IP")
        if real_ip:
            return real_ip

        if request.client:
            return request.client.host

        return "unknown"

    def _get_user_identity(self, request: Request) -> str:
        """
        Describe the caller for log lines.

        The token is only peeked at here; signature verification happens in the
        authentication dependency.
        """
        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return "anonymous"

        try:
            claims = jwt.decode(auth_header[7:], options={"verify_signature": False})
        except jwt.PyJWTError:
            return "bearer_token:malformed"
        return f"{claims.get('kind', 'unknown')}:{claims.get('sub', 'unknown')}"


def redact_sensitive(body: Any) -> Any:
    """Recursively replace values of credential-like keys."""
    if isinstance(body, dict):
        return {
            key: (
                "***REDACTED***"
                if isinstance(key, str) and any(s in key.lower() for s in SENSITIVE_KEYS)
                else redact_sensitive(value)
            )
            for key, value in body.items()
        }
    if isinstance(body, list):
        return [redact_sensitive(item) for item in body]
    return body


def get_request_context() -> dict:
    """
    Get current request context for logging.

    Returns:
        Dictionary with request context variables
    """
    return {
        "request_id": request_id_ctx.get(),
        "client_ip": client_ip_ctx.get(),
        "user_identity": user_identity_ctx.get(),
        "user_agent": user_agent_ctx.get(),
        "request_path": request_path_ctx.get(),
    }
