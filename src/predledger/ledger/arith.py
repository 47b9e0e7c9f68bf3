"""Unsigned 128-bit amount arithmetic. Results that leave the range raise OverflowError."""

from __future__ import annotations

U128_MAX = 2**128 - 1


def require_uint(value: int) -> int:
    """Return value if it is a valid unsigned 128-bit amount."""
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError(f"amount must be int, got {type(value).__name__}")
    if value < 0 or value > U128_MAX:
        raise OverflowError(f"{value} outside unsigned 128-bit range")
    return value


def checked_add(a: int, b: int) -> int:
    """a + b, refusing to wrap past U128_MAX."""
    return require_uint(require_uint(a) + require_uint(b))


def pro_rata(stake: int, pool: int, winning_pool: int) -> int:
    """
    floor(stake * pool / winning_pool), or 0 when nobody backed the winner.
    The product is computed exactly; only the quotient must fit the range.
    """
    require_uint(stake)
    require_uint(pool)
    require_uint(winning_pool)
    if winning_pool == 0:
        return 0
    return require_uint(stake * pool // winning_pool)
