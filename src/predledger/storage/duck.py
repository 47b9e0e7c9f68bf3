"""DuckDB-backed ledger store."""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

import structlog

from predledger.models import LedgerEvent, Market, Outcome, Position
from predledger.storage.base import LedgerStore, RecordKey
from predledger.storage.db import get_connection, init_schema

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

log = structlog.get_logger(__name__)

_MARKET_COUNTER = "market"

_MARKET_COLUMNS = (
    "market_id, creator, question, outcome_count, CAST(resolution_height AS VARCHAR), "
    "resolved, winning_outcome, CAST(total_staked AS VARCHAR)"
)


def _row_to_market(row: tuple) -> Market:
    return Market(
        market_id=row[0],
        creator=row[1],
        question=row[2],
        outcome_count=row[3],
        resolution_height=int(row[4]),
        resolved=row[5],
        winning_outcome=row[6],
        total_staked=int(row[7]),
    )


def _row_to_outcome(row: tuple) -> Outcome:
    return Outcome(market_id=row[0], index=row[1], description=row[2], staked_amount=int(row[3]))


def _row_to_event(row: tuple) -> LedgerEvent:
    return LedgerEvent(
        seq=row[0],
        op=row[1],
        market_id=row[2],
        caller=row[3],
        height=int(row[4]),
        payload=json.loads(row[5]) if row[5] else {},
    )


class DuckDBStore(LedgerStore):
    """
    Ledger state in DuckDB tables. The outermost scope is one DuckDB
    transaction. DuckDB has no savepoints, so nested scopes undo their own
    writes from the base-class undo log.
    """

    backend = "duckdb"
    native_rollback = True

    def __init__(self, conn: DuckDBPyConnection) -> None:
        super().__init__()
        self.conn = conn
        init_schema(conn)

    @classmethod
    def open(cls, db_path: str | Path) -> DuckDBStore:
        return cls(get_connection(db_path))

    def _begin(self) -> None:
        self.conn.begin()

    def _commit(self) -> None:
        self.conn.commit()

    def _rollback(self) -> None:
        self.conn.rollback()
        log.debug("duckdb_tx_rolled_back")

    def _restore(self, key: RecordKey, prior: Market | Outcome | Position | None) -> None:
        kind, *rest = key
        if prior is not None:
            writer = {"market": self._write_market, "outcome": self._write_outcome, "position": self._write_position}
            writer[kind](prior)
            return
        where = {
            "market": ("markets", "market_id = ?"),
            "outcome": ("outcomes", "market_id = ? AND outcome_index = ?"),
            "position": ("positions", "market_id = ? AND outcome_index = ? AND participant = ?"),
        }
        table, clause = where[kind]
        self.conn.execute(f"DELETE FROM {table} WHERE {clause}", list(rest))

    def _set_counter(self, value: int) -> None:
        self.conn.execute(
            """
            INSERT INTO counters (name, value) VALUES (?, ?)
            ON CONFLICT (name) DO UPDATE SET value = excluded.value
            """,
            [_MARKET_COUNTER, value],
        )

    def _event_mark(self) -> int:
        return self.conn.execute("SELECT COALESCE(MAX(seq), 0) FROM ledger_events").fetchone()[0]

    def _discard_events_after(self, mark: int) -> None:
        self.conn.execute("DELETE FROM ledger_events WHERE seq > ?", [mark])

    def get_market(self, market_id: int) -> Market | None:
        row = self.conn.execute(
            f"SELECT {_MARKET_COLUMNS} FROM markets WHERE market_id = ?", [market_id]
        ).fetchone()
        return _row_to_market(row) if row else None

    def put_market(self, market: Market) -> None:
        self._track(("market", market.market_id), lambda: self.get_market(market.market_id))
        self._write_market(market)

    def _write_market(self, market: Market) -> None:
        self.conn.execute(
            """
            INSERT INTO markets (market_id, creator, question, outcome_count, resolution_height, resolved, winning_outcome, total_staked)
            VALUES (?, ?, ?, ?, CAST(? AS UHUGEINT), ?, ?, CAST(? AS UHUGEINT))
            ON CONFLICT (market_id) DO UPDATE SET
                resolved = excluded.resolved,
                winning_outcome = excluded.winning_outcome,
                total_staked = excluded.total_staked
            """,
            [
                market.market_id,
                market.creator,
                market.question,
                market.outcome_count,
                str(market.resolution_height),
                market.resolved,
                market.winning_outcome,
                str(market.total_staked),
            ],
        )

    def get_outcome(self, market_id: int, index: int) -> Outcome | None:
        row = self.conn.execute(
            """
            SELECT market_id, outcome_index, description, CAST(staked_amount AS VARCHAR)
            FROM outcomes WHERE market_id = ? AND outcome_index = ?
            """,
            [market_id, index],
        ).fetchone()
        return _row_to_outcome(row) if row else None

    def put_outcome(self, outcome: Outcome) -> None:
        self._track(
            ("outcome", outcome.market_id, outcome.index),
            lambda: self.get_outcome(outcome.market_id, outcome.index),
        )
        self._write_outcome(outcome)

    def _write_outcome(self, outcome: Outcome) -> None:
        self.conn.execute(
            """
            INSERT INTO outcomes (market_id, outcome_index, description, staked_amount)
            VALUES (?, ?, ?, CAST(? AS UHUGEINT))
            ON CONFLICT (market_id, outcome_index) DO UPDATE SET
                staked_amount = excluded.staked_amount
            """,
            [outcome.market_id, outcome.index, outcome.description, str(outcome.staked_amount)],
        )

    def list_outcomes(self, market_id: int) -> list[Outcome]:
        rows = self.conn.execute(
            """
            SELECT market_id, outcome_index, description, CAST(staked_amount AS VARCHAR)
            FROM outcomes WHERE market_id = ? ORDER BY outcome_index
            """,
            [market_id],
        ).fetchall()
        return [_row_to_outcome(r) for r in rows]

    def get_position(self, market_id: int, index: int, participant: str) -> Position | None:
        row = self.conn.execute(
            """
            SELECT CAST(amount AS VARCHAR) FROM positions
            WHERE market_id = ? AND outcome_index = ? AND participant = ?
            """,
            [market_id, index, participant],
        ).fetchone()
        if not row:
            return None
        return Position(market_id=market_id, outcome_index=index, participant=participant, amount=int(row[0]))

    def put_position(self, position: Position) -> None:
        key = (position.market_id, position.outcome_index, position.participant)
        self._track(("position", *key), lambda: self.get_position(*key))
        self._write_position(position)

    def _write_position(self, position: Position) -> None:
        self.conn.execute(
            """
            INSERT INTO positions (market_id, outcome_index, participant, amount)
            VALUES (?, ?, ?, CAST(? AS UHUGEINT))
            ON CONFLICT (market_id, outcome_index, participant) DO UPDATE SET
                amount = excluded.amount
            """,
            [position.market_id, position.outcome_index, position.participant, str(position.amount)],
        )

    def market_counter(self) -> int:
        row = self.conn.execute(
            "SELECT value FROM counters WHERE name = ?", [_MARKET_COUNTER]
        ).fetchone()
        return row[0] if row else 0

    def next_market_id(self) -> int:
        with self.transaction():
            market_id = self.market_counter()
            self._set_counter(market_id + 1)
        return market_id

    def record_event(
        self, op: str, market_id: int, caller: str, height: int, payload: dict[str, Any]
    ) -> LedgerEvent:
        with self.transaction():
            seq = self._event_mark() + 1
            event = LedgerEvent(
                seq=seq, op=op, market_id=market_id, caller=caller, height=height, payload=payload
            )
            self.conn.execute(
                """
                INSERT INTO ledger_events (seq, op, market_id, caller, height, payload)
                VALUES (?, ?, ?, ?, CAST(? AS UHUGEINT), ?)
                """,
                [seq, op, market_id, caller, str(height), json.dumps(payload)],
            )
        return event

    def events(self, market_id: int | None = None) -> list[LedgerEvent]:
        sql = "SELECT seq, op, market_id, caller, CAST(height AS VARCHAR), payload FROM ledger_events"
        params: list[Any] = []
        if market_id is not None:
            sql += " WHERE market_id = ?"
            params.append(market_id)
        rows = self.conn.execute(sql + " ORDER BY seq", params).fetchall()
        return [_row_to_event(r) for r in rows]

    def close(self) -> None:
        self.conn.close()
