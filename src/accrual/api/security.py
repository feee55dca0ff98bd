from __future__ import annotations

import os
from typing import Optional

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

# A relay envelope is a few hundred bytes; 16 KiB leaves room for batching proxies.
DEFAULT_MAX_REQUEST_BYTES = 16_384

_BODY_METHODS = frozenset({"POST", "PUT", "PATCH"})


def _limit_from_env() -> Optional[int]:
    """None when disabled (ACCRUAL_SIZE_LIMIT_DISABLE=1), else ACCRUAL_MAX_REQUEST_BYTES or the default."""
    if (os.environ.get("ACCRUAL_SIZE_LIMIT_DISABLE") or "").strip().lower() in {"1", "true", "yes", "on"}:
        return None
    raw = (os.environ.get("ACCRUAL_MAX_REQUEST_BYTES") or "").strip()
    return int(raw) if raw.isdigit() else DEFAULT_MAX_REQUEST_BYTES


def payload_too_large(limit: int) -> JSONResponse:
    return JSONResponse(
        status_code=413,
        content={
            "ok": False,
            "error": {"code": "payload_too_large", "message": "request body too large", "details": {"max": str(limit)}},
        },
    )


class RequestSizeLimitMiddleware(BaseHTTPMiddleware):
    """Refuse oversized bodies on write methods before routing.

    Content-Length is checked first; the body itself is measured too since
    chunked uploads don't declare a length.
    """

    def __init__(self, app, *, max_bytes: Optional[int] = None) -> None:
        super().__init__(app)
        self._limit = int(max_bytes) if max_bytes is not None else _limit_from_env()

    async def dispatch(self, request: Request, call_next):
        limit = self._limit
        if limit is None or request.method.upper() not in _BODY_METHODS:
            return await call_next(request)

        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > limit:
            return payload_too_large(limit)

        if len(await request.body()) > limit:
            return payload_too_large(limit)

        return await call_next(request)
