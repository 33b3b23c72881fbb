from __future__ import annotations

import hashlib
from time import perf_counter
from typing import Iterable

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import Response
from starlette.types import ASGIApp

from .logging import get_logger


class AuditLoggingMiddleware(BaseHTTPMiddleware):
    """Emit a structured audit event for every API call."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        include_prefixes: Iterable[str] = ("/api/", "/metrics"),
        actor_header: str = "X-Actor-Id",
    ) -> None:
        super().__init__(app)
        self._prefixes = tuple(include_prefixes)
        self._actor_header = actor_header
        self._logger = get_logger(name="audit")

    async def dispatch(self, request: Request, call_next) -> Response:  # type: ignore[override]
        if self._prefixes and not any(request.url.path.startswith(prefix) for prefix in self._prefixes):
            return await call_next(request)

        start = perf_counter()
        payload_hash = None
        body = b""
        if request.method in {"POST", "PUT", "PATCH", "DELETE"}:
            body = await request.body()
            request._body = body  # type: ignore[attr-defined]
            if body:
                payload_hash = hashlib.sha256(body).hexdigest()

        response = await call_next(request)
        duration = perf_counter() - start

        self._logger.info(
            "audit_log",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            actor_id=request.headers.get(self._actor_header) or "anonymous",
            payload_hash=payload_hash,
            content_length=len(body) if body else 0,
            client_ip=(request.client.host if request.client else None),
            duration_ms=round(duration * 1000, 3),
        )
        return response


__all__ = ["AuditLoggingMiddleware"]
