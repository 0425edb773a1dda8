"""
Accrual Ledger - Asset Custody (collaborator boundary)

The ledger never moves assets itself. It asks a custody backend to:
  * transfer_in:  pull `amount` from a holder's external balance into the pool
  * transfer_out: push `amount` from the pool back to a holder

Both calls are atomic: they either complete or raise CustodyError with no
external balance changed. The ledger calls custody as the last step of an
operation, inside the same logical transaction as its own bookkeeping.

InMemoryCustody is the process-local backend used by tests and dev nodes.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional, Protocol, runtime_checkable

from accrual.runtime.errors import CustodyError


@runtime_checkable
class AssetCustody(Protocol):
    def transfer_in(self, frm: str, amount: int) -> None: ...
    def transfer_out(self, to: str, amount: int) -> None: ...


class InMemoryCustody:
    """
    Single-asset custody held in memory.

    - Tracks each holder's external balance and the pool's custodial balance
    - Fails closed on insufficient funds (no partial moves)
    """

    def __init__(self, balances: Optional[Dict[str, int]] = None) -> None:
        self._lock = threading.Lock()
        self._balances: Dict[str, int] = {str(k): int(v) for k, v in (balances or {}).items()}
        self._held = 0

    def mint(self, holder: str, amount: int) -> None:
        """Credit a holder's external balance (dev/test faucet)."""
        amt = int(amount)
        if amt < 0:
            raise ValueError("mint amount must be non-negative")
        with self._lock:
            self._balances[str(holder)] = int(self._balances.get(str(holder), 0)) + amt

    def balance_of(self, holder: str) -> int:
        with self._lock:
            return int(self._balances.get(str(holder), 0))

    @property
    def held(self) -> int:
        with self._lock:
            return int(self._held)

    def transfer_in(self, frm: str, amount: int) -> None:
        who = str(frm)
        amt = int(amount)
        with self._lock:
            bal = int(self._balances.get(who, 0))
            if amt <= 0 or bal < amt:
                raise CustodyError(
                    "custody_failed",
                    "insufficient_balance",
                    {"holder": who, "balance": bal, "amount": amt},
                )
            self._balances[who] = bal - amt
            self._held += amt

    def transfer_out(self, to: str, amount: int) -> None:
        who = str(to)
        amt = int(amount)
        with self._lock:
            if amt <= 0 or self._held < amt:
                raise CustodyError(
                    "custody_failed",
                    "insufficient_custody",
                    {"holder": who, "held": int(self._held), "amount": amt},
                )
            self._held -= amt
            self._balances[who] = int(self._balances.get(who, 0)) + amt
