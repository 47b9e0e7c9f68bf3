"""Config loading, profile overlay and ledger construction from settings."""

import tempfile
from pathlib import Path

import pytest

from predledger import CustodyBook, ErrorKind, LedgerError, ManualHeight, MarketLedger
from predledger.config import LedgerLimits, Settings, configure_logging, get_settings, load_config
from predledger.storage import DuckDBStore, MemoryStore, open_store


@pytest.fixture
def config_dir():
    tmp = Path(tempfile.mkdtemp())
    (tmp / "default.toml").write_text(
        '[ledger]\nmax_question_length = 40\n\n[storage]\nbackend = "memory"\n\n[logging]\nlevel = "info"\n'
    )
    (tmp / "strict.toml").write_text("[ledger]\nmax_description_length = 8\n")
    yield tmp
    for f in tmp.iterdir():
        f.unlink()
    tmp.rmdir()


def test_profile_overlay_deep_merges(config_dir):
    raw = load_config("strict", config_dir)
    assert raw["ledger"] == {"max_question_length": 40, "max_description_length": 8}
    settings = get_settings("strict", config_dir)
    assert settings.limits.max_question_length == 40
    assert settings.limits.max_description_length == 8
    assert settings.limits.custody_account == "ledger-custody"
    assert settings.logging_level == "INFO"


def test_missing_config_dir_gives_defaults(tmp_path):
    settings = get_settings(None, tmp_path)
    assert settings.limits == LedgerLimits()
    assert settings.storage_backend == "memory"
    assert settings.db_path == "data/predledger.duckdb"
    assert settings.logging_format == "console"


def test_open_store_backends(tmp_path):
    assert isinstance(open_store(Settings()), MemoryStore)
    db_settings = Settings(storage={"backend": "duckdb", "db_path": str(tmp_path / "l.duckdb")})
    store = open_store(db_settings)
    assert isinstance(store, DuckDBStore)
    store.close()
    with pytest.raises(ValueError):
        open_store(Settings(storage={"backend": "sqlite"}))


def test_ledger_uses_configured_limits(config_dir):
    settings = get_settings("strict", config_dir)
    configure_logging(settings)
    ledger = MarketLedger.from_settings(settings, ManualHeight(), CustodyBook())
    with pytest.raises(LedgerError) as exc:
        ledger.create_market("c", "Q" * 41, 2, 1001)
    assert exc.value.kind is ErrorKind.INVALID_PARAMS
    market_id = ledger.create_market("c", "Q" * 40, 2, 1001)
    with pytest.raises(LedgerError) as exc:
        ledger.define_outcome("c", market_id, 0, "too long!")
    assert exc.value.kind is ErrorKind.INVALID_PARAMS
    ledger.define_outcome("c", market_id, 0, "yes")


def test_config_cannot_move_fixed_bounds():
    settings = Settings(ledger={"max_outcomes": 500, "min_resolution_blocks": 5000})
    ledger = MarketLedger.from_settings(settings, ManualHeight(), CustodyBook())
    assert ledger.create_market("c", "Q", 2, 1001) == 0
    assert ledger.create_market("c", "Q", 100, 1001) == 1
    for count, blocks in [(101, 1001), (200, 1001), (2, 1000)]:
        with pytest.raises(LedgerError) as exc:
            ledger.create_market("c", "Q", count, blocks)
        assert exc.value.kind is ErrorKind.INVALID_PARAMS
    assert ledger.market_counter() == 2
