"""
Postgres durability backend.

Rules live in `public.house_edge_rules` (see `SCHEMA_SQL`). Every mutation runs
inside a single transaction, so a bulk insert or bulk delete either commits as a
whole or not at all. Insertion order is preserved through the `seq` column.
"""

from __future__ import annotations

from contextlib import contextmanager
from datetime import datetime
from typing import Any, Generator, List, Optional, Sequence

import psycopg
from psycopg.rows import dict_row
from psycopg_pool import ConnectionPool, PoolTimeout

from edgeconsole.backends.abstract import AbstractRuleDurabilityStore
from edgeconsole.domain.models import HouseEdgeRule
from edgeconsole.errors import RuleNotFoundError, StoreError, StoreUnavailableError
from edgeconsole.infrastructure.db_factory import ensure_schema, get_sync_connection, get_sync_pool
from edgeconsole.utils.logging import get_logger

log = get_logger(__name__)

CONNECT_TIMEOUT_SECONDS = 10.0

_COLUMNS = (
    "id",
    "game_id",
    "game_name",
    "game_type",
    "game_variant",
    "house_edge",
    "min_bet",
    "max_bet",
    "is_active",
    "effective_from",
    "effective_until",
    "created_at",
    "updated_at",
)

SELECT_SQL = f"SELECT {', '.join(_COLUMNS)} FROM public.house_edge_rules ORDER BY seq;"
INSERT_SQL = (
    f"INSERT INTO public.house_edge_rules ({', '.join(_COLUMNS)}) "
    f"VALUES ({', '.join(['%s'] * len(_COLUMNS))});"
)
UPDATE_SQL = (
    "UPDATE public.house_edge_rules SET "
    + ", ".join(f"{column} = %s" for column in _COLUMNS[1:])
    + " WHERE id = %s;"
)
DELETE_SQL = "DELETE FROM public.house_edge_rules WHERE id = ANY(%s);"
STATUS_SQL = "UPDATE public.house_edge_rules SET is_active = %s, updated_at = %s WHERE id = ANY(%s);"


def _row_params(rule: HouseEdgeRule) -> tuple:
    return (
        rule.id,
        rule.game_id,
        rule.game_name,
        rule.game_type.value,
        rule.game_variant.value,
        rule.house_edge,
        rule.min_bet,
        rule.max_bet,
        rule.is_active,
        rule.effective_from,
        rule.effective_until,
        rule.created_at,
        rule.updated_at,
    )


def _rule_from_row(row: dict[str, Any]) -> HouseEdgeRule:
    data = dict(row)
    for column in ("house_edge", "min_bet", "max_bet"):
        if data.get(column) is not None:
            data[column] = str(data[column])
    return HouseEdgeRule.model_validate(data)


class PostgresRuleStore(AbstractRuleDurabilityStore):
    """
    Rules persisted in PostgreSQL through a psycopg connection pool.
    """

    name: str = "postgres"
    description: str = "PostgreSQL table public.house_edge_rules via psycopg pool."

    def __init__(
        self,
        pool: Optional[ConnectionPool] = None,
        dsn_override: Optional[str] = None,
        create_schema: bool = True,
    ) -> None:
        self._dsn_override = dsn_override
        self._pool = pool
        self._owns_pool = False
        self._schema_ready = not create_schema

    def _get_pool(self) -> ConnectionPool:
        if self._pool is not None:
            return self._pool
        if self._dsn_override:
            self._pool = ConnectionPool(conninfo=self._dsn_override, min_size=1, max_size=4, open=True)
            self._owns_pool = True
        else:
            self._pool = get_sync_pool()
        return self._pool

    def _ensure_schema(self) -> None:
        if self._schema_ready:
            return
        try:
            conn = get_sync_connection(self._dsn_override)
        except psycopg.OperationalError as exc:
            raise StoreUnavailableError("Postgres is unavailable", details={"error": str(exc)}) from exc
        try:
            ensure_schema(conn)
        finally:
            conn.close()
        self._schema_ready = True

    @contextmanager
    def _cursor(self) -> Generator[psycopg.Cursor, None, None]:
        self._ensure_schema()
        try:
            with self._get_pool().connection(timeout=CONNECT_TIMEOUT_SECONDS) as conn:
                with conn.transaction():
                    with conn.cursor(row_factory=dict_row) as cur:
                        yield cur
        except PoolTimeout as exc:
            raise StoreUnavailableError("Postgres is unavailable", details={"error": str(exc)}) from exc
        except psycopg.OperationalError as exc:
            raise StoreUnavailableError("Postgres is unavailable", details={"error": str(exc)}) from exc
        except psycopg.Error as exc:
            log.error("Postgres statement failed", extra={"error": str(exc)})
            raise StoreError(f"Postgres statement failed: {exc}") from exc

    def list_rules(self) -> List[HouseEdgeRule]:
        with self._cursor() as cur:
            cur.execute(SELECT_SQL)
            rows = cur.fetchall()
        return [_rule_from_row(row) for row in rows]

    def bulk_create(self, rules: Sequence[HouseEdgeRule]) -> List[HouseEdgeRule]:
        if not rules:
            return []
        with self._cursor() as cur:
            cur.executemany(INSERT_SQL, [_row_params(rule) for rule in rules])
        return list(rules)

    def update_rule(self, rule: HouseEdgeRule) -> HouseEdgeRule:
        params = _row_params(rule)
        with self._cursor() as cur:
            cur.execute(UPDATE_SQL, (*params[1:], rule.id))
            if cur.rowcount == 0:
                raise RuleNotFoundError(rule.id)
        return rule

    def bulk_delete(self, rule_ids: Sequence[str]) -> int:
        if not rule_ids:
            return 0
        with self._cursor() as cur:
            cur.execute(DELETE_SQL, (list(rule_ids),))
            return cur.rowcount

    def bulk_set_status(
        self, rule_ids: Sequence[str], is_active: bool, updated_at: datetime
    ) -> int:
        if not rule_ids:
            return 0
        with self._cursor() as cur:
            cur.execute(STATUS_SQL, (is_active, updated_at, list(rule_ids)))
            if cur.rowcount != len(rule_ids):
                raise StoreError(
                    "Some rules no longer exist",
                    details={"expected": len(rule_ids), "updated": cur.rowcount},
                )
            return cur.rowcount

    def close(self) -> None:
        if self._owns_pool and self._pool is not None:
            self._pool.close()
            self._pool = None


__all__ = ["PostgresRuleStore", "SELECT_SQL", "INSERT_SQL", "UPDATE_SQL", "DELETE_SQL", "STATUS_SQL"]
