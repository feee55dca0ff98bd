from __future__ import annotations

import os
from typing import Optional

from fastapi import FastAPI

from accrual.api.errors import ApiError, accrual_error_handler, api_error_handler
from accrual.api.routes import router
from accrual.api.security import RequestSizeLimitMiddleware
from accrual.api.structured_logging import RequestLogMiddleware
from accrual.runtime.boot import Domain, build_domain
from accrual.runtime.errors import AccrualError
from accrual.runtime.log import configure_structured_logging


def create_app(*, domain: Optional[Domain] = None, boot_runtime: bool = True) -> FastAPI:
    """Create the FastAPI application.

    domain:
      - given: attach it as-is (tests, embedded runs)
      - None + boot_runtime=True: build from ACCRUAL_DOMAIN_CONFIG_PATH / defaults
      - None + boot_runtime=False: no domain; only /v1/health answers
    """
    configure_structured_logging()
    mode = os.environ.get("ACCRUAL_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Accrual Domain API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Accrual Domain API")

    if domain is None and boot_runtime:
        domain = build_domain()
    app.state.domain = domain

    # --- Middleware ---
    app.add_middleware(RequestSizeLimitMiddleware)
    app.add_middleware(RequestLogMiddleware)

    # --- Errors ---
    app.add_exception_handler(ApiError, api_error_handler)
    app.add_exception_handler(AccrualError, accrual_error_handler)

    # --- Routers ---
    app.include_router(router, prefix="/v1")

    return app
