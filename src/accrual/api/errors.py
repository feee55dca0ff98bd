from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from fastapi import Request
from fastapi.responses import JSONResponse

from accrual.runtime.errors import AccrualError


@dataclass(frozen=True, slots=True)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def bad_request(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(400, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})


_STATUS_BY_CODE = {
    "unauthorized": 403,
    "bad_signature": 403,
    "unknown_remote_domain": 404,
    "domain_already_registered": 409,
    "payload_too_large": 413,
}


def from_accrual_error(e: AccrualError) -> ApiError:
    status = _STATUS_BY_CODE.get(e.code, 400)
    details = {k: (str(v) if isinstance(v, int) and not isinstance(v, bool) else v) for k, v in (e.details or {}).items()}
    return ApiError(status, e.code, e.reason, details)


def _response(err: ApiError) -> JSONResponse:
    return JSONResponse(
        status_code=err.status_code,
        content={"ok": False, "error": {"code": err.code, "message": err.message, "details": err.details}},
    )


async def api_error_handler(request: Request, exc: ApiError) -> JSONResponse:
    return _response(exc)


async def accrual_error_handler(request: Request, exc: AccrualError) -> JSONResponse:
    return _response(from_accrual_error(exc))
