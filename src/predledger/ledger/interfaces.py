"""Collaborator contracts the ledger consumes, plus in-process implementations."""

from __future__ import annotations

from typing import Protocol

import structlog

from predledger.ledger.arith import checked_add, require_uint
from predledger.ledger.errors import ErrorKind, LedgerError

log = structlog.get_logger(__name__)


class ValueTransfer(Protocol):
    """Atomic movement of value between accounts. Returns False without partial movement."""

    def transfer(self, amount: int, sender: str, recipient: str) -> bool: ...


class HeightSource(Protocol):
    """Monotonically increasing external counter."""

    def current_height(self) -> int: ...


class ManualHeight:
    """Height counter driven explicitly by the embedder."""

    def __init__(self, start: int = 0) -> None:
        self._height = require_uint(start)

    def current_height(self) -> int:
        return self._height

    def advance(self, blocks: int = 1) -> int:
        if blocks < 0:
            raise ValueError("height cannot move backwards")
        self._height = checked_add(self._height, blocks)
        return self._height

    def set(self, height: int) -> None:
        if height < self._height:
            raise ValueError(f"height cannot move backwards ({self._height} -> {height})")
        self._height = require_uint(height)


class CustodyBook:
    """In-memory balances implementing ValueTransfer."""

    def __init__(self, balances: dict[str, int] | None = None) -> None:
        self._balances: dict[str, int] = {}
        for account, amount in (balances or {}).items():
            self.mint(account, amount)

    def balance(self, account: str) -> int:
        return self._balances.get(account, 0)

    def mint(self, account: str, amount: int) -> None:
        self._balances[account] = checked_add(self.balance(account), amount)

    def _debit(self, account: str, amount: int) -> int:
        held = self.balance(account)
        if held < amount:
            raise LedgerError(
                ErrorKind.INSUFFICIENT_BALANCE, f"{account} holds {held}, needs {amount}"
            )
        return held - amount

    def transfer(self, amount: int, sender: str, recipient: str) -> bool:
        try:
            require_uint(amount)
            sender_after = self._debit(sender, amount)
            if sender == recipient:
                return True
            recipient_after = checked_add(self.balance(recipient), amount)
        except LedgerError as e:
            log.warning("transfer_rejected", sender=sender, recipient=recipient, amount=amount, kind=e.kind.name)
            return False
        except OverflowError:
            log.warning("transfer_overflow", sender=sender, recipient=recipient, amount=amount)
            return False
        self._balances[sender] = sender_after
        self._balances[recipient] = recipient_after
        return True
