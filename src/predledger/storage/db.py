"""DuckDB connection and schema init."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import duckdb

if TYPE_CHECKING:
    from duckdb import DuckDBPyConnection

# Amounts and heights are unsigned 128-bit; they cross the Python boundary as VARCHAR.
SCHEMA_SQL = """
-- Markets (never deleted, resolution and totals updated in place)
CREATE TABLE IF NOT EXISTS markets (
    market_id           BIGINT PRIMARY KEY,
    creator             VARCHAR NOT NULL,
    question            VARCHAR NOT NULL,
    outcome_count       INTEGER NOT NULL,
    resolution_height   UHUGEINT NOT NULL,
    resolved            BOOLEAN NOT NULL,
    winning_outcome     INTEGER,
    total_staked        UHUGEINT NOT NULL
);

-- Outcomes defined by the market creator
CREATE TABLE IF NOT EXISTS outcomes (
    market_id       BIGINT NOT NULL,
    outcome_index   INTEGER NOT NULL,
    description     VARCHAR NOT NULL,
    staked_amount   UHUGEINT NOT NULL,
    PRIMARY KEY (market_id, outcome_index)
);

-- Participant positions per (market, outcome)
CREATE TABLE IF NOT EXISTS positions (
    market_id       BIGINT NOT NULL,
    outcome_index   INTEGER NOT NULL,
    participant     VARCHAR NOT NULL,
    amount          UHUGEINT NOT NULL,
    PRIMARY KEY (market_id, outcome_index, participant)
);

-- Named monotonic counters (market id allocation)
CREATE TABLE IF NOT EXISTS counters (
    name            VARCHAR PRIMARY KEY,
    value           BIGINT NOT NULL
);

-- Journal of committed operations (append-only)
CREATE TABLE IF NOT EXISTS ledger_events (
    seq             BIGINT PRIMARY KEY,
    op              VARCHAR NOT NULL,
    market_id       BIGINT NOT NULL,
    caller          VARCHAR NOT NULL,
    height          UHUGEINT NOT NULL,
    payload         VARCHAR NOT NULL
);
"""


def get_connection(db_path: str | Path, read_only: bool = False) -> DuckDBPyConnection:
    """Return a DuckDB connection. Caller must close or use as context manager.
    Use read_only=True for query-only access while another process owns the ledger."""
    path = Path(db_path)
    if not read_only:
        path.parent.mkdir(parents=True, exist_ok=True)
    return duckdb.connect(str(path), read_only=read_only)


def init_schema(conn: DuckDBPyConnection) -> None:
    """Create tables if they do not exist."""
    for stmt in SCHEMA_SQL.split(";"):
        stmt = stmt.strip()
        if stmt:
            try:
                conn.execute(stmt)
            except duckdb.Error as e:
                if "already exists" not in str(e).lower():
                    raise
