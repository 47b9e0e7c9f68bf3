"""Market, Outcome, Position - ledger entities."""

from __future__ import annotations

from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, model_validator

from predledger.ledger.arith import U128_MAX

MAX_OUTCOMES: Final = 100
# blocks_until_resolution must be strictly greater
MIN_RESOLUTION_BLOCKS: Final = 1000


class Market(BaseModel):
    """A question with a fixed number of mutually exclusive outcomes."""

    model_config = ConfigDict(frozen=True)

    market_id: int = Field(..., ge=0)
    creator: str
    question: str = Field(..., min_length=1)
    outcome_count: int = Field(..., ge=1, le=MAX_OUTCOMES)
    resolution_height: int = Field(..., ge=0, le=U128_MAX)
    resolved: bool = False
    winning_outcome: int | None = None
    total_staked: int = Field(0, ge=0, le=U128_MAX)

    @model_validator(mode="after")
    def _winner_matches_resolution(self) -> Market:
        if self.resolved != (self.winning_outcome is not None):
            raise ValueError("winning_outcome must be set exactly when resolved")
        if self.winning_outcome is not None and not 0 <= self.winning_outcome < self.outcome_count:
            raise ValueError("winning_outcome out of range")
        return self


class Outcome(BaseModel):
    """One defined outcome of a market and the stake backing it."""

    model_config = ConfigDict(frozen=True)

    market_id: int = Field(..., ge=0)
    index: int = Field(..., ge=0)
    description: str = Field(..., min_length=1)
    staked_amount: int = Field(0, ge=0, le=U128_MAX)


class Position(BaseModel):
    """A participant's accumulated stake on one outcome. Zero means no position."""

    model_config = ConfigDict(frozen=True)

    market_id: int = Field(..., ge=0)
    outcome_index: int = Field(..., ge=0)
    participant: str
    amount: int = Field(0, ge=0, le=U128_MAX)


class LedgerEvent(BaseModel):
    """Journal entry for one committed mutating operation."""

    seq: int
    op: str
    market_id: int
    caller: str
    height: int
    payload: dict[str, Any] = Field(default_factory=dict)
