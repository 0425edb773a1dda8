# src/accrual/ledger/fixed_point.py
from __future__ import annotations

from typing import Any

from accrual.ledger.constants import MAX_UINT256
from accrual.runtime.errors import LedgerArithmeticError, ValidationError


def _in_range(value: int, op: str, operands: Any) -> int:
    if value < 0:
        raise LedgerArithmeticError("arithmetic", f"{op}_underflow", {"operands": operands})
    if value > MAX_UINT256:
        raise LedgerArithmeticError("arithmetic", f"{op}_overflow", {"operands": operands})
    return value


def as_uint(v: Any, name: str) -> int:
    """Coerce a caller-supplied quantity to a non-negative field value.

    bools and floats are rejected: amounts are integers in the asset's
    smallest unit.
    """
    if isinstance(v, bool) or not isinstance(v, int):
        raise ValidationError("invalid_input", f"{name}_must_be_int", {name: repr(v)})
    if v < 0:
        raise ValidationError("invalid_input", f"{name}_must_be_non_negative", {name: v})
    if v > MAX_UINT256:
        raise ValidationError("invalid_input", f"{name}_too_large", {name: v})
    return int(v)


def as_positive(v: Any, name: str) -> int:
    amt = as_uint(v, name)
    if amt == 0:
        raise ValidationError("invalid_input", f"{name}_must_be_positive", {name: amt})
    return amt


def checked_add(a: int, b: int) -> int:
    return _in_range(int(a) + int(b), "add", [a, b])


def checked_sub(a: int, b: int) -> int:
    return _in_range(int(a) - int(b), "sub", [a, b])


def checked_mul(a: int, b: int) -> int:
    return _in_range(int(a) * int(b), "mul", [a, b])


def mul_div(a: int, b: int, denominator: int) -> int:
    """floor(a * b / denominator), multiplying first.

    The intermediate product is held to the field width as well, so an
    oversized product fails instead of silently losing precision.
    """
    d = int(denominator)
    if d <= 0:
        raise LedgerArithmeticError("arithmetic", "division_by_zero", {"operands": [a, b, denominator]})
    return checked_mul(a, b) // d
