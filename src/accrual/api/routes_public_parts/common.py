from __future__ import annotations

import os
import secrets

from fastapi import Request

from accrual.api.errors import ApiError
from accrual.runtime.engine import AccrualLedger, AdminCapability


def _ledger(request: Request) -> AccrualLedger:
    ledger = getattr(request.app.state, "ledger", None)
    if ledger is None:
        raise ApiError.internal("not_ready", "ledger not attached to app.state", {})
    return ledger


def _admin_capability(request: Request) -> AdminCapability:
    """Map a valid x-admin-token header to the pool owner's capability.

    Admin routes are disabled (403) unless ACCRUAL_ADMIN_TOKEN is set.
    """
    expected = (os.environ.get("ACCRUAL_ADMIN_TOKEN") or "").strip()
    if not expected:
        raise ApiError.forbidden("admin_disabled", "admin routes are disabled on this node", {})

    presented = (request.headers.get("x-admin-token") or "").strip()
    if not presented or not secrets.compare_digest(presented.encode("utf-8"), expected.encode("utf-8")):
        raise ApiError.forbidden("bad_admin_token", "missing or invalid x-admin-token", {})

    return AdminCapability(holder=_ledger(request).view().owner)
