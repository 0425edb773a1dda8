from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass(eq=False)
class LedgerError(Exception):
    """Canonical error type for ledger operation failures.

    Every rejection is synchronous and leaves the pool exactly as it was
    before the call.
    """

    code: str
    reason: str
    details: Any | None = None

    def __str__(self) -> str:  # pragma: no cover
        if self.details is None:
            return f"{self.code}:{self.reason}"
        return f"{self.code}:{self.reason}:{self.details}"


@dataclass(eq=False)
class ValidationError(LedgerError):
    """Bad input, or an operation that does not fit the current pool state."""


@dataclass(eq=False)
class AuthorizationError(LedgerError):
    """Caller lacks the admin capability, or the pool is paused for deposits."""


@dataclass(eq=False)
class CustodyError(LedgerError):
    """The asset custody collaborator refused or failed a transfer."""


@dataclass(eq=False)
class LedgerArithmeticError(LedgerError, ArithmeticError):
    """A fixed-width field would overflow or underflow. Never wraps."""
