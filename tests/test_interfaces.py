"""Height counter and in-memory custody book."""

import pytest

from predledger import CustodyBook, ErrorKind, LedgerError, ManualHeight
from predledger.ledger.arith import U128_MAX


def test_manual_height_is_monotonic():
    h = ManualHeight(10)
    assert h.current_height() == 10
    assert h.advance() == 11
    assert h.advance(5) == 16
    h.set(16)
    h.set(100)
    assert h.current_height() == 100
    with pytest.raises(ValueError):
        h.set(99)
    with pytest.raises(ValueError):
        h.advance(-1)


def test_transfer_moves_value():
    book = CustodyBook({"a": 100})
    assert book.transfer(40, "a", "b") is True
    assert book.balance("a") == 60
    assert book.balance("b") == 40


def test_transfer_insufficient_balance_moves_nothing():
    book = CustodyBook({"a": 10})
    assert book.transfer(11, "a", "b") is False
    assert book.balance("a") == 10
    assert book.balance("b") == 0
    with pytest.raises(LedgerError) as exc:
        book._debit("a", 11)
    assert exc.value.kind is ErrorKind.INSUFFICIENT_BALANCE
    assert exc.value.code == 107


def test_transfer_recipient_overflow_moves_nothing():
    book = CustodyBook({"a": 5, "b": U128_MAX})
    assert book.transfer(5, "a", "b") is False
    assert book.balance("a") == 5
    assert book.balance("b") == U128_MAX


def test_mint_refuses_overflow():
    book = CustodyBook({"a": U128_MAX})
    with pytest.raises(OverflowError):
        book.mint("a", 1)
