from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from accrual.runtime.errors import (
    AuthorizationError,
    CustodyError,
    LedgerArithmeticError,
    LedgerError,
    ValidationError,
)


@dataclass(eq=False)
class ApiError(Exception):
    status_code: int
    code: str
    message: str
    details: Dict[str, Any]

    @staticmethod
    def forbidden(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(403, code, message, details or {})

    @staticmethod
    def internal(code: str, message: str, details: Optional[Dict[str, Any]] = None) -> "ApiError":
        return ApiError(500, code, message, details or {})

    def payload(self) -> Dict[str, Any]:
        return {"ok": False, "error": {"code": self.code, "message": self.message, "details": self.details}}


def ledger_error_status(e: LedgerError) -> int:
    if isinstance(e, LedgerArithmeticError):
        return 500
    if isinstance(e, AuthorizationError):
        return 403
    if isinstance(e, CustodyError):
        return 502
    if isinstance(e, ValidationError):
        return 400
    return 400


def ledger_error_payload(e: LedgerError) -> Dict[str, Any]:
    details = e.details if isinstance(e.details, dict) else ({} if e.details is None else {"value": e.details})
    return {"ok": False, "error": {"code": e.code, "reason": e.reason, "message": str(e), "details": details}}
