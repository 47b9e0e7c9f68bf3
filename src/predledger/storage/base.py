"""Abstract ledger store: the persistence contract the market ledger writes through."""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

from predledger.models import LedgerEvent, Market, Outcome, Position

# Undo-log keys: ("market", id), ("outcome", id, index), ("position", id, index, participant)
RecordKey = tuple


class _Scope:
    """Prior values of every record first written inside one transaction scope."""

    def __init__(self, counter: int, event_mark: int) -> None:
        self.counter = counter
        self.event_mark = event_mark
        self.undo: dict[RecordKey, Market | Outcome | Position | None] = {}


class LedgerStore(ABC):
    """
    Keyed storage for markets, outcomes and positions plus the market counter
    and operation journal. All writes of one ledger operation happen inside
    transaction(); an exception escaping a scope discards the writes made in
    that scope, including scopes nested inside another one.
    """

    backend: str = ""
    # True when the backend rolls back the outermost scope itself.
    native_rollback: bool = False

    def __init__(self) -> None:
        self._scopes: list[_Scope] = []

    @contextmanager
    def transaction(self) -> Iterator[None]:
        outermost = not self._scopes
        if outermost:
            self._begin()
        scope = _Scope(self.market_counter(), self._event_mark())
        self._scopes.append(scope)
        try:
            yield
        except BaseException:
            self._scopes.pop()
            if outermost and self.native_rollback:
                self._rollback()
            else:
                self._undo(scope)
                if outermost:
                    self._rollback()
            raise
        self._scopes.pop()
        if outermost:
            self._commit()
        else:
            parent = self._scopes[-1]
            for key, prior in scope.undo.items():
                parent.undo.setdefault(key, prior)

    @property
    def in_transaction(self) -> bool:
        return bool(self._scopes)

    def _track(self, key: RecordKey, load: Callable[[], Market | Outcome | Position | None]) -> None:
        """Remember a record's value before its first write in the current scope."""
        if not self._scopes:
            return
        if self.native_rollback and len(self._scopes) == 1:
            return
        scope = self._scopes[-1]
        if key not in scope.undo:
            scope.undo[key] = load()

    def _undo(self, scope: _Scope) -> None:
        for key, prior in scope.undo.items():
            self._restore(key, prior)
        self._set_counter(scope.counter)
        self._discard_events_after(scope.event_mark)

    # --- backend hooks

    def _begin(self) -> None:
        return None

    def _commit(self) -> None:
        return None

    def _rollback(self) -> None:
        return None

    @abstractmethod
    def _restore(self, key: RecordKey, prior: Market | Outcome | Position | None) -> None:
        """Write prior back under key, or remove the record when prior is None."""
        ...

    @abstractmethod
    def _set_counter(self, value: int) -> None: ...

    @abstractmethod
    def _event_mark(self) -> int:
        """Highest journal seq written so far (0 when empty)."""
        ...

    @abstractmethod
    def _discard_events_after(self, mark: int) -> None: ...

    # --- records

    @abstractmethod
    def get_market(self, market_id: int) -> Market | None: ...

    @abstractmethod
    def put_market(self, market: Market) -> None: ...

    @abstractmethod
    def get_outcome(self, market_id: int, index: int) -> Outcome | None: ...

    @abstractmethod
    def put_outcome(self, outcome: Outcome) -> None: ...

    @abstractmethod
    def list_outcomes(self, market_id: int) -> list[Outcome]:
        """Defined outcomes of a market ordered by index."""
        ...

    @abstractmethod
    def get_position(self, market_id: int, index: int, participant: str) -> Position | None: ...

    @abstractmethod
    def put_position(self, position: Position) -> None: ...

    @abstractmethod
    def market_counter(self) -> int: ...

    @abstractmethod
    def next_market_id(self) -> int:
        """Return the current counter value and advance it by one."""
        ...

    @abstractmethod
    def record_event(
        self, op: str, market_id: int, caller: str, height: int, payload: dict[str, Any]
    ) -> LedgerEvent: ...

    @abstractmethod
    def events(self, market_id: int | None = None) -> list[LedgerEvent]: ...

    def close(self) -> None:
        return None
