"""
Postgres-backed collaborator stores.
Uses asyncpg for async Postgres access with connection pooling.

Two stores live here:
  - the localities reference store (one per tenant connection string),
    queried with PostGIS ST_AsGeoJSON for canonical point geometries
  - the author geo-profile store, keyed by author id

Every call is bounded (pool acquire timeout + per-query timeout) and every
backend failure surfaces as StoreError.
"""

from __future__ import annotations

import asyncio
import json
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import asyncpg

from message_geo.config import ProfileStoreConfig, ReferenceStoreConfig
from message_geo.errors import ConfigurationError, StoreError
from message_geo.gazetteer import GazetteerEntry
from message_geo.languages import LanguageColumns, is_identifier

logger = logging.getLogger(__name__)

_BACKEND_ERRORS = (
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    OSError,
    asyncio.TimeoutError,
)


# ── Connection Pools ───────────────────────────────────────────────────

class PoolRegistry:
    """Lazily created asyncpg pools, one per DSN, closed together."""

    def __init__(self, min_size: int = 1, max_size: int = 5, connect_timeout: float = 10.0):
        self.min_size = min_size
        self.max_size = max_size
        self.connect_timeout = connect_timeout
        self._pools: dict[str, asyncpg.Pool] = {}
        self._lock = asyncio.Lock()

    async def get_pool(self, dsn: str) -> asyncpg.Pool:
        pool = self._pools.get(dsn)
        if pool is not None:
            return pool
        async with self._lock:
            pool = self._pools.get(dsn)
            if pool is None:
                pool = await asyncpg.create_pool(
                    dsn=dsn,
                    min_size=self.min_size,
                    max_size=self.max_size,
                    timeout=self.connect_timeout,
                )
                self._pools[dsn] = pool
                logger.info("Database connection pool created (min=%d, max=%d)",
                            self.min_size, self.max_size)
        return pool

    @asynccontextmanager
    async def connection(self, dsn: str, timeout: float) -> AsyncIterator[asyncpg.Connection]:
        pool = await self.get_pool(dsn)
        async with pool.acquire(timeout=timeout) as conn:
            yield conn

    async def close(self) -> None:
        pools, self._pools = self._pools, {}
        for pool in pools.values():
            await pool.close()
        if pools:
            logger.info("Closed %d database connection pool(s)", len(pools))


# ── Localities Reference Store ────────────────────────────────────────

def build_localities_query(
    name_columns: list[str],
    alternate_names_column: str = "alternatenames",
    geometry_column: str = "geog",
    table: str = "localities",
) -> str:
    """
    One row per distinct locality: its name columns, alternate names and
    a single canonical geometry. Ordered by the name columns so lexicon
    collisions resolve the same way on every run.
    """
    identifiers = [*name_columns, alternate_names_column, geometry_column, table]
    bad = [i for i in identifiers if not is_identifier(i)]
    if bad or not name_columns:
        raise ConfigurationError(f"invalid localities query identifiers: {bad or 'no name columns'}")

    group_columns = ", ".join([*name_columns, alternate_names_column])
    return (
        f"SELECT {group_columns}, MAX(ST_AsGeoJSON({geometry_column})) AS feature "
        f"FROM {table} "
        f"GROUP BY {group_columns} "
        f"ORDER BY {group_columns}"
    )


def row_to_entry(row, name_columns: list[str], alternate_names_column: str) -> Optional[GazetteerEntry]:
    geometry = row["feature"]
    if not geometry:
        return None
    return GazetteerEntry(
        names=tuple(row[c] or "" for c in name_columns),
        alternate_names=row[alternate_names_column] or "",
        geometry=geometry,
    )


class PostgresReferenceStore:
    """Localities gazetteer table for one tenant (one connection string)."""

    def __init__(
        self,
        dsn: str,
        pools: PoolRegistry,
        language_columns: LanguageColumns,
        config: Optional[ReferenceStoreConfig] = None,
    ):
        self.dsn = dsn
        self.pools = pools
        self.language_columns = language_columns
        self.config = config or ReferenceStoreConfig()

    async def query_localities(self, languages: frozenset[str]) -> list[GazetteerEntry]:
        name_columns = self.language_columns.columns_for(languages)
        alt_column = self.config.alternate_names_column
        query = build_localities_query(
            name_columns,
            alternate_names_column=alt_column,
            geometry_column=self.config.geometry_column,
            table=self.config.localities_table,
        )
        timeout = self.config.query_timeout
        try:
            async with self.pools.connection(self.dsn, timeout=timeout) as conn:
                rows = await conn.fetch(query, timeout=timeout)
        except _BACKEND_ERRORS as e:
            logger.error("Localities query failed: %s", e)
            raise StoreError(f"error retrieving localities: {e}") from e

        entries = [row_to_entry(r, name_columns, alt_column) for r in rows]
        entries = [e for e in entries if e is not None]
        logger.debug("Loaded %d localities for languages %s", len(entries), sorted(languages))
        return entries


class ReferenceStores:
    """Hands out one reference store per tenant handle, sharing a pool registry."""

    def __init__(
        self,
        pools: PoolRegistry,
        language_columns: LanguageColumns,
        config: Optional[ReferenceStoreConfig] = None,
    ):
        self.pools = pools
        self.language_columns = language_columns
        self.config = config or ReferenceStoreConfig()
        self._stores: dict[str, PostgresReferenceStore] = {}

    def for_handle(self, handle: str) -> PostgresReferenceStore:
        store = self._stores.get(handle)
        if store is None:
            store = PostgresReferenceStore(handle, self.pools, self.language_columns, self.config)
            self._stores[handle] = store
        return store


# ── Author Geo-Profile Store ──────────────────────────────────────────

class PostgresAuthorProfileStore:
    """
    Author profiles keyed by author id. The location column holds a JSON
    object such as {"lat": 22.27, "lon": 33.32, "confidence": 0.8}.
    """

    def __init__(self, pools: PoolRegistry, config: Optional[ProfileStoreConfig] = None):
        self.pools = pools
        self.config = config or ProfileStoreConfig()
        if not is_identifier(self.config.table):
            raise ConfigurationError(f"invalid profile table name [{self.config.table}]")

    async def get_author_profile(self, author_id: str) -> Optional[dict]:
        """Raw stored location for an author, or None when there is no record."""
        timeout = self.config.query_timeout
        try:
            async with self.pools.connection(self.config.dsn, timeout=timeout) as conn:
                raw = await conn.fetchval(
                    f"SELECT location FROM {self.config.table} WHERE author_id = $1",
                    author_id,
                    timeout=timeout,
                )
        except _BACKEND_ERRORS as e:
            logger.error("Unable to retrieve profile [%s]: %s", author_id, e)
            raise StoreError(f"unable to retrieve profile [{author_id}]: {e}") from e

        if raw is None:
            return None
        if isinstance(raw, (str, bytes)):
            try:
                raw = json.loads(raw)
            except (json.JSONDecodeError, UnicodeDecodeError) as e:
                raise StoreError(f"malformed location for profile [{author_id}]") from e
        if not isinstance(raw, dict):
            raise StoreError(f"malformed location for profile [{author_id}]")
        return raw
