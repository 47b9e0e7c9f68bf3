"""Dict-backed ledger store. Transactions keep an undo log of the keys they touch."""

from __future__ import annotations

from typing import Any

import structlog

from predledger.models import LedgerEvent, Market, Outcome, Position
from predledger.storage.base import LedgerStore, RecordKey

log = structlog.get_logger(__name__)


class MemoryStore(LedgerStore):
    backend = "memory"

    def __init__(self) -> None:
        super().__init__()
        self._markets: dict[int, Market] = {}
        self._outcomes: dict[tuple[int, int], Outcome] = {}
        self._positions: dict[tuple[int, int, str], Position] = {}
        self._counter = 0
        self._events: list[LedgerEvent] = []

    def _rollback(self) -> None:
        log.debug("memory_tx_rolled_back")

    def _table(self, kind: str) -> dict:
        return {"market": self._markets, "outcome": self._outcomes, "position": self._positions}[kind]

    def _restore(self, key: RecordKey, prior: Market | Outcome | Position | None) -> None:
        kind, *rest = key
        table = self._table(kind)
        record_key = rest[0] if kind == "market" else tuple(rest)
        if prior is None:
            table.pop(record_key, None)
        else:
            table[record_key] = prior

    def _set_counter(self, value: int) -> None:
        self._counter = value

    def _event_mark(self) -> int:
        return len(self._events)

    def _discard_events_after(self, mark: int) -> None:
        del self._events[mark:]

    def get_market(self, market_id: int) -> Market | None:
        return self._markets.get(market_id)

    def put_market(self, market: Market) -> None:
        self._track(("market", market.market_id), lambda: self._markets.get(market.market_id))
        self._markets[market.market_id] = market

    def get_outcome(self, market_id: int, index: int) -> Outcome | None:
        return self._outcomes.get((market_id, index))

    def put_outcome(self, outcome: Outcome) -> None:
        key = (outcome.market_id, outcome.index)
        self._track(("outcome", *key), lambda: self._outcomes.get(key))
        self._outcomes[key] = outcome

    def list_outcomes(self, market_id: int) -> list[Outcome]:
        found = [o for (mid, _), o in self._outcomes.items() if mid == market_id]
        return sorted(found, key=lambda o: o.index)

    def get_position(self, market_id: int, index: int, participant: str) -> Position | None:
        return self._positions.get((market_id, index, participant))

    def put_position(self, position: Position) -> None:
        key = (position.market_id, position.outcome_index, position.participant)
        self._track(("position", *key), lambda: self._positions.get(key))
        self._positions[key] = position

    def market_counter(self) -> int:
        return self._counter

    def next_market_id(self) -> int:
        market_id = self._counter
        self._counter += 1
        return market_id

    def record_event(
        self, op: str, market_id: int, caller: str, height: int, payload: dict[str, Any]
    ) -> LedgerEvent:
        event = LedgerEvent(
            seq=len(self._events) + 1,
            op=op,
            market_id=market_id,
            caller=caller,
            height=height,
            payload=payload,
        )
        self._events.append(event)
        return event

    def events(self, market_id: int | None = None) -> list[LedgerEvent]:
        if market_id is None:
            return list(self._events)
        return [e for e in self._events if e.market_id == market_id]
