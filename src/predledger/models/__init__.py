"""Ledger schema (Pydantic) - Market, Outcome, Position, LedgerEvent."""

from predledger.models.market import (
    MAX_OUTCOMES,
    MIN_RESOLUTION_BLOCKS,
    LedgerEvent,
    Market,
    Outcome,
    Position,
)

__all__ = [
    "MAX_OUTCOMES",
    "MIN_RESOLUTION_BLOCKS",
    "Market",
    "Outcome",
    "Position",
    "LedgerEvent",
]
