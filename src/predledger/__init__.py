"""PredLedger - parimutuel prediction market ledger."""

from predledger.ledger.engine import MarketLedger
from predledger.ledger.errors import ErrorKind, LedgerError
from predledger.ledger.interfaces import CustodyBook, HeightSource, ManualHeight, ValueTransfer

__version__ = "0.1.0"

__all__ = [
    "CustodyBook",
    "ErrorKind",
    "HeightSource",
    "LedgerError",
    "ManualHeight",
    "MarketLedger",
    "ValueTransfer",
]
