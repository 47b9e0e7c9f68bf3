"""Unsigned 128-bit arithmetic helpers."""

import pytest

from predledger.ledger.arith import U128_MAX, checked_add, pro_rata, require_uint


def test_require_uint_bounds():
    assert require_uint(0) == 0
    assert require_uint(U128_MAX) == U128_MAX
    with pytest.raises(OverflowError):
        require_uint(-1)
    with pytest.raises(OverflowError):
        require_uint(U128_MAX + 1)
    with pytest.raises(TypeError):
        require_uint(True)
    with pytest.raises(TypeError):
        require_uint(1.5)


def test_checked_add_refuses_to_wrap():
    assert checked_add(2, 3) == 5
    assert checked_add(U128_MAX - 1, 1) == U128_MAX
    with pytest.raises(OverflowError):
        checked_add(U128_MAX, 1)


def test_pro_rata_floors():
    assert pro_rata(300, 400, 300) == 400
    assert pro_rata(1, 5, 3) == 1
    assert pro_rata(7, 41, 31) == 9
    assert pro_rata(100, 400, 0) == 0


def test_pro_rata_exact_for_large_operands():
    """The intermediate product may exceed 128 bits; the quotient may not."""
    assert pro_rata(U128_MAX, U128_MAX, U128_MAX) == U128_MAX
    assert pro_rata(U128_MAX // 2, U128_MAX, U128_MAX) == U128_MAX // 2
    with pytest.raises(OverflowError):
        pro_rata(U128_MAX, U128_MAX, 1)
