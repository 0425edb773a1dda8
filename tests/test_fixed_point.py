from __future__ import annotations

import pytest

from accrual.ledger.constants import MAX_UINT256, SCALE
from accrual.ledger.fixed_point import as_positive, as_uint, checked_add, checked_mul, checked_sub, mul_div
from accrual.runtime.errors import LedgerArithmeticError, ValidationError


def test_checked_add_overflow_is_hard_failure() -> None:
    assert checked_add(MAX_UINT256 - 1, 1) == MAX_UINT256
    with pytest.raises(LedgerArithmeticError) as e:
        checked_add(MAX_UINT256, 1)
    assert e.value.code == "arithmetic"
    assert e.value.reason == "add_overflow"
    # Still catchable as a plain ArithmeticError.
    assert isinstance(e.value, ArithmeticError)


def test_checked_sub_underflow_never_wraps() -> None:
    assert checked_sub(5, 5) == 0
    with pytest.raises(LedgerArithmeticError) as e:
        checked_sub(1, 2)
    assert e.value.reason == "sub_underflow"


def test_checked_mul_bounds_product() -> None:
    assert checked_mul(2**128, 2**127) == 2**255
    with pytest.raises(LedgerArithmeticError):
        checked_mul(2**128, 2**128)


def test_mul_div_multiplies_first_and_floors() -> None:
    # 50 * 1e18 / 300 keeps precision that divide-first would lose.
    assert mul_div(50, SCALE, 300) == 166_666_666_666_666_666
    assert (50 // 300) * SCALE == 0
    assert mul_div(7, 3, 2) == 10


def test_mul_div_rejects_zero_denominator() -> None:
    with pytest.raises(LedgerArithmeticError) as e:
        mul_div(1, 1, 0)
    assert e.value.reason == "division_by_zero"


@pytest.mark.parametrize("bad", [True, 1.5, "10", None])
def test_as_uint_rejects_non_integers(bad) -> None:
    with pytest.raises(ValidationError) as e:
        as_uint(bad, "amount")
    assert e.value.reason == "amount_must_be_int"


def test_as_uint_and_as_positive_ranges() -> None:
    assert as_uint(0, "amount") == 0
    with pytest.raises(ValidationError) as e:
        as_uint(-1, "amount")
    assert e.value.reason == "amount_must_be_non_negative"
    with pytest.raises(ValidationError) as e2:
        as_uint(MAX_UINT256 + 1, "amount")
    assert e2.value.reason == "amount_too_large"
    with pytest.raises(ValidationError) as e3:
        as_positive(0, "amount")
    assert e3.value.reason == "amount_must_be_positive"
