from __future__ import annotations

import logging
import os
import time
import uuid
from typing import Any, Dict

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from accrual.runtime.log import log_event

Json = Dict[str, Any]

_OFF = {"0", "false", "no", "n", "off"}
_LOGGED_HEADERS = ("user-agent", "content-length", "x-forwarded-for", "x-relay-id")


def _flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() not in _OFF


class RequestLogMiddleware(BaseHTTPMiddleware):
    """One `http_request` JSONL event per request, tagged with the domain id.

    ACCRUAL_LOG_REQUESTS=0          disables it
    ACCRUAL_LOG_REQUEST_HEADERS=1   adds a few relay-relevant headers
    """

    def __init__(self, app) -> None:
        super().__init__(app)
        self._enabled = _flag("ACCRUAL_LOG_REQUESTS", True)
        self._with_headers = _flag("ACCRUAL_LOG_REQUEST_HEADERS", False)
        self._logger = logging.getLogger("accrual.http")

    def _fields(self, request: Request) -> Json:
        domain = getattr(request.app.state, "domain", None)
        out: Json = {
            "domain": domain.domain_id if domain is not None else None,
            "method": request.method,
            "path": request.url.path,
        }
        if self._with_headers:
            out["headers"] = {h: request.headers[h] for h in _LOGGED_HEADERS if h in request.headers}
        return out

    async def dispatch(self, request: Request, call_next):
        if not self._enabled:
            return await call_next(request)

        rid = request.headers.get("x-request-id") or uuid.uuid4().hex
        request.state.request_id = rid
        t0 = time.monotonic()
        fields = self._fields(request)

        try:
            response = await call_next(request)
        except Exception as e:
            log_event(self._logger, "http_request", request_id=rid, status=500, error=type(e).__name__, **fields)
            raise

        response.headers.setdefault("x-request-id", rid)
        log_event(
            self._logger,
            "http_request",
            request_id=rid,
            status=response.status_code,
            duration_ms=int((time.monotonic() - t0) * 1000),
            **fields,
        )
        return response
