"""
Pytest configuration for the house-edge console.

Provides fixtures for:
- A fixed clock and deterministic rule ids
- A three-game catalog and an in-memory store/engine wired together
- Database connection management for the gated Postgres integration tests
"""

from __future__ import annotations

import itertools
import os
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Generator

import psycopg
import pytest

from edgeconsole.backends.memory import MemoryRuleStore
from edgeconsole.catalog import InMemoryGameCatalog
from edgeconsole.config import Settings, get_settings
from edgeconsole.domain.models import CatalogGame, GameType, GameVariant, HouseEdgeRule
from edgeconsole.engine import BulkMutationEngine
from edgeconsole.store import HouseEdgeStore

FIXED_NOW = datetime(2025, 1, 15, 12, 0, tzinfo=timezone.utc)


@pytest.fixture(autouse=True)
def _clear_settings_cache() -> Generator[None, None, None]:
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture
def engine_settings() -> Settings:
    """
    Settings for engine tests: no snapshot file and a small batch size so that
    multi-batch planning is exercised with a handful of games.
    """
    return Settings(
        snapshot_path=None,
        store_backend="memory",
        bulk_batch_size=2,
        default_window_days=365,
        default_max_bet="1000",
        default_variant="classic",
        log_level="DEBUG",
    )


@pytest.fixture
def catalog_games() -> list[CatalogGame]:
    return [
        CatalogGame(internal_id="101", game_code="g1", name="Sweet Bonanza", provider="Pragmatic Play"),
        CatalogGame(internal_id="102", game_code="g2", name="Lightning Roulette", provider="Evolution"),
        CatalogGame(internal_id="103", game_code="g3", name="Starburst", provider="NetEnt"),
    ]


@pytest.fixture
def catalog(catalog_games: list[CatalogGame]) -> InMemoryGameCatalog:
    return InMemoryGameCatalog(catalog_games)


@pytest.fixture
def make_rule() -> Callable[..., HouseEdgeRule]:
    """
    Factory for stored rules with sensible defaults; override any field by keyword.
    """
    counter = itertools.count(1)

    def _make(**overrides: Any) -> HouseEdgeRule:
        index = next(counter)
        created = FIXED_NOW - timedelta(hours=index)
        fields: dict[str, Any] = {
            "id": f"rule-{index}",
            "game_id": "g1",
            "game_name": "Sweet Bonanza",
            "game_type": GameType.SLOT,
            "game_variant": GameVariant.CLASSIC,
            "house_edge": "0.0250",
            "min_bet": "0.10",
            "max_bet": "500",
            "is_active": True,
            "effective_from": created,
            "effective_until": created + timedelta(days=365),
            "created_at": created,
            "updated_at": created,
        }
        fields.update(overrides)
        return HouseEdgeRule(**fields)

    return _make


@pytest.fixture
def memory_store() -> HouseEdgeStore:
    return HouseEdgeStore(MemoryRuleStore())


@pytest.fixture
def engine(
    memory_store: HouseEdgeStore, catalog: InMemoryGameCatalog, engine_settings: Settings
) -> BulkMutationEngine:
    ids = itertools.count(1)
    return BulkMutationEngine(
        memory_store,
        catalog,
        settings=engine_settings,
        clock=lambda: FIXED_NOW,
        id_factory=lambda: f"he-{next(ids)}",
    )


@pytest.fixture(scope="session")
def test_settings() -> Settings:
    """
    Settings fixture with test-specific overrides.

    Can be overridden via environment variables in CI or local testing.
    """
    return Settings(
        db_host=os.getenv("DB_HOST", "localhost"),
        db_port=int(os.getenv("DB_PORT", "5432")),
        db_user=os.getenv("DB_USER", "postgres"),
        db_password=os.getenv("DB_PASSWORD", "postgres"),
        db_name=os.getenv("DB_NAME", "house_edge"),
        log_level="DEBUG",
    )


@pytest.fixture(scope="session")
def test_dsn(test_settings: Settings) -> str:
    """
    Database connection string for tests.
    """
    return (
        f"postgresql://{test_settings.db_user}:{test_settings.db_password}"
        f"@{test_settings.db_host}:{test_settings.db_port}/{test_settings.db_name}"
    )


@pytest.fixture(scope="session")
def db_connection_available(test_dsn: str) -> bool:
    """
    Check if database is reachable.

    Used to conditionally skip integration tests when DB is not available.
    """
    try:
        with psycopg.connect(test_dsn, connect_timeout=5) as conn:
            with conn.cursor() as cur:
                cur.execute("SELECT 1;")
                cur.fetchone()
        return True
    except psycopg.Error:
        return False


@pytest.fixture(scope="session")
def db_connection(
    test_dsn: str, db_connection_available: bool
) -> Generator[psycopg.Connection, None, None]:
    """
    Provide a session-scoped database connection for integration tests.

    Skips tests if database is not available.
    """
    if not db_connection_available:
        pytest.skip("Database not available for integration tests")

    conn = psycopg.connect(test_dsn, autocommit=True)
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture(scope="function")
def clean_rules_table(db_connection: psycopg.Connection) -> Generator[None, None, None]:
    """
    Create the rules table if needed and empty it around each test.
    """
    from edgeconsole.infrastructure.db_factory import SCHEMA_SQL

    with db_connection.cursor() as cur:
        cur.execute(SCHEMA_SQL)
        cur.execute("TRUNCATE TABLE public.house_edge_rules RESTART IDENTITY;")
    yield
    with db_connection.cursor() as cur:
        cur.execute("TRUNCATE TABLE public.house_edge_rules RESTART IDENTITY;")
