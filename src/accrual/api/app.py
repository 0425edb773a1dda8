from __future__ import annotations

import os
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from accrual.api.errors import ApiError, ledger_error_payload, ledger_error_status
from accrual.api.routes_public import public_router
from accrual.api.structured_logging import RequestLogMiddleware
from accrual.runtime.custody import AssetCustody
from accrual.runtime.engine_boot import build_ledger as _build_ledger
from accrual.runtime.errors import LedgerError


def build_ledger(*, custody: Optional[AssetCustody] = None):
    """Build the AccrualLedger for API runtime.

    This wrapper exists so tests can monkeypatch `accrual.api.app.build_ledger`
    without reaching into runtime modules.
    """
    return _build_ledger(custody=custody)


def create_app(*, boot_runtime: bool = True, custody: Optional[AssetCustody] = None) -> FastAPI:
    """Create the FastAPI application.

    boot_runtime:
      - True (default): load pool config + attach app.state.ledger
      - False: keep lightweight; tests attach their own ledger

    custody:
      Asset custody backend for the booted ledger. Required in prod mode.
    """
    mode = os.environ.get("ACCRUAL_MODE", "prod").strip().lower()

    # Disable docs in production.
    if mode == "prod":
        app = FastAPI(title="Accrual Ledger API", docs_url=None, redoc_url=None, openapi_url=None)
    else:
        app = FastAPI(title="Accrual Ledger API")

    app.state.ledger = build_ledger(custody=custody) if boot_runtime else None

    @app.exception_handler(ApiError)
    async def _api_error(_request: Request, exc: ApiError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.payload())

    @app.exception_handler(LedgerError)
    async def _ledger_error(_request: Request, exc: LedgerError) -> JSONResponse:
        return JSONResponse(status_code=ledger_error_status(exc), content=ledger_error_payload(exc))

    app.add_middleware(RequestLogMiddleware)
    app.include_router(public_router)

    return app
