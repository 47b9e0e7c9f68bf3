"""Market ledger: lifecycle state machine, stake accounting, pro-rata settlement."""

from predledger.ledger.errors import ErrorKind, LedgerError

__all__ = [
    "ErrorKind",
    "LedgerError",
]
