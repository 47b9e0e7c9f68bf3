"""
Market ledger - lifecycle state machine and pro-rata settlement.

Per market: Open -> Resolved (terminal). Outcomes are defined by the creator
while Open, stakes are accepted while Open and strictly before the resolution
height, resolution happens once at or after that height, and claims pay
floor(stake * total_staked / winning_pool) to winning positions exactly once.

Every mutator reads the height once, checks preconditions in a fixed order,
then performs all writes plus the value transfer inside one store
transaction. A raised LedgerError means nothing was committed.
"""

from __future__ import annotations

from typing import Any

import structlog

from predledger.config.settings import LedgerLimits, Settings
from predledger.ledger.arith import checked_add, pro_rata
from predledger.ledger.errors import ErrorKind, LedgerError
from predledger.ledger.interfaces import HeightSource, ValueTransfer
from predledger.models import MAX_OUTCOMES, MIN_RESOLUTION_BLOCKS, LedgerEvent, Market, Outcome, Position
from predledger.storage import LedgerStore, open_store

log = structlog.get_logger(__name__)


def _reject(kind: ErrorKind, message: str, **context: Any) -> LedgerError:
    log.debug("ledger_rejected", kind=kind.name, reason=message, **context)
    return LedgerError(kind, message)


class MarketLedger:
    """Markets, outcomes and positions with their five mutating operations."""

    def __init__(
        self,
        store: LedgerStore,
        heights: HeightSource,
        transfers: ValueTransfer,
        limits: LedgerLimits | None = None,
    ) -> None:
        self.store = store
        self.heights = heights
        self.transfers = transfers
        self.limits = limits or LedgerLimits()

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        heights: HeightSource,
        transfers: ValueTransfer,
        store: LedgerStore | None = None,
    ) -> MarketLedger:
        return cls(store or open_store(settings), heights, transfers, settings.limits)

    @property
    def custody(self) -> str:
        return self.limits.custody_account

    # --- helpers

    def _require_market(self, market_id: int) -> Market:
        market = self.store.get_market(market_id)
        if market is None:
            raise _reject(ErrorKind.NOT_FOUND, "market not found", market_id=market_id)
        return market

    def _require_creator(self, market: Market, caller: str) -> None:
        if caller != market.creator:
            raise _reject(
                ErrorKind.UNAUTHORIZED, "caller is not the market creator",
                market_id=market.market_id, caller=caller,
            )

    def _require_int(self, value: Any, what: str) -> None:
        if isinstance(value, bool) or not isinstance(value, int):
            raise _reject(ErrorKind.INVALID_PARAMS, f"{what} must be an integer", value=repr(value))

    def _check_text(self, text: str, max_length: int, what: str) -> None:
        if not text or len(text) > max_length:
            raise _reject(ErrorKind.INVALID_PARAMS, f"{what} must be 1..{max_length} characters")

    # --- mutators

    def create_market(
        self, caller: str, question: str, outcome_count: int, blocks_until_resolution: int
    ) -> int:
        """Open a new market and return its id."""
        self._require_int(outcome_count, "outcome_count")
        self._require_int(blocks_until_resolution, "blocks_until_resolution")
        if not 0 < outcome_count <= MAX_OUTCOMES:
            raise _reject(ErrorKind.INVALID_PARAMS, f"outcome_count must be 1..{MAX_OUTCOMES}")
        if blocks_until_resolution <= MIN_RESOLUTION_BLOCKS:
            raise _reject(
                ErrorKind.INVALID_PARAMS,
                f"blocks_until_resolution must exceed {MIN_RESOLUTION_BLOCKS}",
            )
        self._check_text(question, self.limits.max_question_length, "question")
        height = self.heights.current_height()
        try:
            resolution_height = checked_add(height, blocks_until_resolution)
        except OverflowError:
            raise _reject(ErrorKind.INVALID_PARAMS, "resolution height overflows") from None

        with self.store.transaction():
            market_id = self.store.next_market_id()
            market = Market(
                market_id=market_id,
                creator=caller,
                question=question,
                outcome_count=outcome_count,
                resolution_height=resolution_height,
            )
            self.store.put_market(market)
            self.store.record_event(
                "create_market", market_id, caller, height,
                {"outcome_count": outcome_count, "resolution_height": resolution_height},
            )
        log.info(
            "market_created", market_id=market_id, creator=caller,
            outcome_count=outcome_count, resolution_height=resolution_height,
        )
        return market_id

    def define_outcome(self, caller: str, market_id: int, index: int, description: str) -> None:
        """Attach a description to outcome `index`. Each index can be defined once."""
        self._require_int(index, "outcome index")
        market = self._require_market(market_id)
        self._require_creator(market, caller)
        if market.resolved:
            raise _reject(ErrorKind.MARKET_RESOLVED, "market already resolved", market_id=market_id)
        if not 0 <= index < market.outcome_count:
            raise _reject(ErrorKind.INVALID_PARAMS, "outcome index out of range", market_id=market_id, index=index)
        self._check_text(description, self.limits.max_description_length, "description")
        if self.store.get_outcome(market_id, index) is not None:
            raise _reject(ErrorKind.INVALID_PARAMS, "outcome already defined", market_id=market_id, index=index)

        height = self.heights.current_height()
        with self.store.transaction():
            self.store.put_outcome(Outcome(market_id=market_id, index=index, description=description))
            self.store.record_event("define_outcome", market_id, caller, height, {"index": index})
        log.info("outcome_defined", market_id=market_id, index=index)

    def stake(self, caller: str, market_id: int, index: int, amount: int) -> bool:
        """Move `amount` from caller into custody, backing outcome `index`."""
        self._require_int(amount, "stake amount")
        self._require_int(index, "outcome index")
        if amount <= 0:
            raise _reject(ErrorKind.INVALID_PARAMS, "stake amount must be positive", market_id=market_id)
        market = self._require_market(market_id)
        height = self.heights.current_height()
        if height >= market.resolution_height:
            raise _reject(ErrorKind.MARKET_EXPIRED, "staking window closed", market_id=market_id, height=height)
        if market.resolved:
            raise _reject(ErrorKind.MARKET_RESOLVED, "market already resolved", market_id=market_id)
        outcome = self.store.get_outcome(market_id, index)
        if outcome is None:
            raise _reject(ErrorKind.NOT_FOUND, "outcome not defined", market_id=market_id, index=index)
        position = self.store.get_position(market_id, index, caller)
        held = position.amount if position else 0
        try:
            new_position = checked_add(held, amount)
            new_outcome_total = checked_add(outcome.staked_amount, amount)
            new_market_total = checked_add(market.total_staked, amount)
        except OverflowError:
            raise _reject(ErrorKind.INVALID_PARAMS, "stake overflows", market_id=market_id, index=index) from None

        with self.store.transaction():
            self.store.put_position(
                Position(market_id=market_id, outcome_index=index, participant=caller, amount=new_position)
            )
            self.store.put_outcome(outcome.model_copy(update={"staked_amount": new_outcome_total}))
            self.store.put_market(market.model_copy(update={"total_staked": new_market_total}))
            self.store.record_event("stake", market_id, caller, height, {"index": index, "amount": amount})
            if not self.transfers.transfer(amount, caller, self.custody):
                log.warning("stake_transfer_failed", market_id=market_id, caller=caller, amount=amount)
                raise LedgerError(ErrorKind.TRANSFER_FAILED, "transfer into custody failed")
        log.info("stake_placed", market_id=market_id, index=index, participant=caller, amount=amount)
        return True

    def resolve(self, caller: str, market_id: int, winning_outcome: int) -> None:
        """Declare the winning outcome. Irreversible."""
        self._require_int(winning_outcome, "winning outcome")
        market = self._require_market(market_id)
        self._require_creator(market, caller)
        if market.resolved:
            raise _reject(ErrorKind.MARKET_RESOLVED, "market already resolved", market_id=market_id)
        height = self.heights.current_height()
        if height < market.resolution_height:
            raise _reject(
                ErrorKind.TOO_EARLY, "resolution height not reached",
                market_id=market_id, height=height, resolution_height=market.resolution_height,
            )
        if not 0 <= winning_outcome < market.outcome_count:
            raise _reject(ErrorKind.INVALID_PARAMS, "winning outcome out of range", market_id=market_id)
        if self.store.get_outcome(market_id, winning_outcome) is None:
            raise _reject(ErrorKind.NOT_FOUND, "winning outcome was never defined", market_id=market_id)

        with self.store.transaction():
            self.store.put_market(market.model_copy(update={"resolved": True, "winning_outcome": winning_outcome}))
            self.store.record_event("resolve", market_id, caller, height, {"winning_outcome": winning_outcome})
        log.info("market_resolved", market_id=market_id, winning_outcome=winning_outcome, total_staked=market.total_staked)

    def claim(self, caller: str, market_id: int) -> int:
        """Pay caller's pro-rata share of the pool for their winning position."""
        market = self._require_market(market_id)
        if not market.resolved or market.winning_outcome is None:
            raise _reject(ErrorKind.INVALID_PARAMS, "market not resolved", market_id=market_id)
        winner = market.winning_outcome
        position = self.store.get_position(market_id, winner, caller)
        if position is None or position.amount == 0:
            raise _reject(ErrorKind.NO_POSITION, "no claimable position", market_id=market_id, caller=caller)
        outcome = self.store.get_outcome(market_id, winner)
        if outcome is None:
            raise _reject(ErrorKind.NOT_FOUND, "winning outcome missing", market_id=market_id)
        try:
            reward = pro_rata(position.amount, market.total_staked, outcome.staked_amount)
        except OverflowError:
            raise _reject(ErrorKind.INVALID_PARAMS, "reward overflows", market_id=market_id) from None
        if reward == 0:
            raise _reject(ErrorKind.INVALID_PARAMS, "reward is zero", market_id=market_id, caller=caller)
        if reward > market.total_staked:
            log.error("reward_exceeds_pool", market_id=market_id, reward=reward, total_staked=market.total_staked)
            raise LedgerError(ErrorKind.INVALID_PARAMS, "reward exceeds total staked")

        height = self.heights.current_height()
        with self.store.transaction():
            # Reset before paying so a re-entrant claim sees no position.
            self.store.put_position(position.model_copy(update={"amount": 0}))
            self.store.record_event("claim", market_id, caller, height, {"index": winner, "reward": reward})
            if not self.transfers.transfer(reward, self.custody, caller):
                log.warning("claim_transfer_failed", market_id=market_id, caller=caller, reward=reward)
                raise LedgerError(ErrorKind.TRANSFER_FAILED, "transfer out of custody failed")
        log.info("claim_paid", market_id=market_id, participant=caller, stake=position.amount, reward=reward)
        return reward

    # --- queries

    def get_market(self, market_id: int) -> Market | None:
        return self.store.get_market(market_id)

    def get_outcome(self, market_id: int, index: int) -> Outcome | None:
        return self.store.get_outcome(market_id, index)

    def get_position(self, market_id: int, index: int, participant: str) -> Position:
        """Absent and zero positions read the same: amount 0."""
        position = self.store.get_position(market_id, index, participant)
        if position is None:
            return Position(market_id=market_id, outcome_index=index, participant=participant)
        return position

    def market_counter(self) -> int:
        return self.store.market_counter()

    def is_market_active(self, market_id: int) -> bool:
        market = self.store.get_market(market_id)
        if market is None:
            return False
        return not market.resolved and self.heights.current_height() < market.resolution_height

    def history(self, market_id: int | None = None) -> list[LedgerEvent]:
        """Committed operations in commit order, optionally for one market."""
        return self.store.events(market_id)

    def market_summary(self, market_id: int) -> dict[str, Any] | None:
        market = self.store.get_market(market_id)
        if market is None:
            return None
        outcomes = self.store.list_outcomes(market_id)
        staked_sum = sum(o.staked_amount for o in outcomes)
        return {
            "market": market.model_dump(),
            "active": self.is_market_active(market_id),
            "outcomes": [
                {
                    "index": o.index,
                    "description": o.description,
                    "staked_amount": o.staked_amount,
                    "pool_share": o.staked_amount / market.total_staked if market.total_staked else None,
                }
                for o in outcomes
            ],
            "consistent": staked_sum == market.total_staked,
        }
