"""Closed set of ledger error kinds and the exception that carries them."""

from __future__ import annotations

from enum import Enum


class ErrorKind(Enum):
    """Failure kinds callers may branch on. Values are stable numeric codes."""

    NOT_FOUND = 100
    UNAUTHORIZED = 101
    INVALID_PARAMS = 102
    MARKET_RESOLVED = 103
    MARKET_EXPIRED = 104
    TOO_EARLY = 105
    NO_POSITION = 106
    INSUFFICIENT_BALANCE = 107
    TRANSFER_FAILED = 108


class LedgerError(Exception):
    """Raised by a ledger operation that commits nothing."""

    def __init__(self, kind: ErrorKind, message: str = "") -> None:
        self.kind = kind
        self.message = message or kind.name.lower()
        super().__init__(f"{kind.name}: {self.message}")

    @property
    def code(self) -> int:
        return self.kind.value
