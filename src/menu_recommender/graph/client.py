"""
FalkorDB graph client for the restaurant order graph.

Read path: strategy queries run through ``execute_read`` which uses FalkorDB's
read-only ``ro_query`` so they can be served concurrently.

Write path: import and aggregation go through ``execute_write``. Each call is a
single FalkorDB statement and is applied atomically; callers that need several
mutations to land together must express them as one statement, or hold
``write_lock`` around them. The lock is a Redis lock kept in the FalkorDB
server, so it is shared by every process using the same server.

Driver errors never leak past this module: every failure is re-raised as
``GraphStoreError``.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from falkordb.asyncio import FalkorDB
from redis.asyncio import BlockingConnectionPool, Redis
from redis.exceptions import RedisError

from .schema import SCHEMA_STATEMENTS

logger = logging.getLogger(__name__)


class GraphStoreError(Exception):
    """Graph store failures: connectivity, malformed query, bad result shape."""

    pass


@dataclass(frozen=True)
class WriteSummary:
    """Mutation counters reported by FalkorDB for a write statement."""

    nodes_created: int = 0
    nodes_deleted: int = 0
    relationships_created: int = 0
    relationships_deleted: int = 0
    properties_set: int = 0

    @classmethod
    def from_result(cls, result: Any) -> "WriteSummary":
        def _stat(name: str) -> int:
            value = getattr(result, name, 0)
            return int(value) if isinstance(value, (int, float)) else 0

        return cls(
            nodes_created=_stat("nodes_created"),
            nodes_deleted=_stat("nodes_deleted"),
            relationships_created=_stat("relationships_created"),
            relationships_deleted=_stat("relationships_deleted"),
            properties_set=_stat("properties_set"),
        )


def _column_names(header: Any) -> list[str]:
    """Column names from a FalkorDB header (``[[type, name], ...]`` or plain names)."""
    names = []
    for column in header or []:
        if isinstance(column, (list, tuple)):
            names.append(str(column[-1]))
        else:
            names.append(str(column))
    return names


def rows_from_result(result: Any) -> list[dict[str, Any]]:
    """Convert a FalkorDB result set into a list of column -> value mappings."""
    columns = _column_names(getattr(result, "header", None))
    rows: list[dict[str, Any]] = []
    for raw in result.result_set or []:
        if len(raw) != len(columns):
            raise GraphStoreError(f"Result row has {len(raw)} values but header has {len(columns)} columns")
        rows.append(dict(zip(columns, raw)))
    return rows


class GraphClient:
    """
    Async FalkorDB client for the order graph.

    Manages a Redis connection pool (FalkorDB speaks the Redis protocol) and
    a handle on the selected graph.
    """

    def __init__(
        self,
        host: str = "localhost",
        port: int = 6379,
        password: str | None = None,
        graph_name: str = "menu_graph",
        max_connections: int = 16,
    ):
        self.host = host
        self.port = port
        self.password = password
        self.graph_name = graph_name
        self.max_connections = max_connections

        self._pool: BlockingConnectionPool | None = None
        self._db: FalkorDB | None = None
        self._graph = None
        self._initialized = False

    async def initialize(self) -> None:
        """Initialize connection pool, select graph, and apply schema."""
        if self._initialized:
            return

        pool = BlockingConnectionPool(
            host=self.host,
            port=self.port,
            password=self.password,
            max_connections=self.max_connections,
            timeout=None,
            decode_responses=True,
        )

        # FalkorDB() talks to the server straight away.
        try:
            db = FalkorDB(connection_pool=pool)
            graph = db.select_graph(self.graph_name)
        except Exception as e:
            logger.error(f"Failed to connect to FalkorDB at {self.host}:{self.port}: {e}")
            await pool.aclose()
            raise GraphStoreError(f"Cannot connect to FalkorDB at {self.host}:{self.port}: {e}") from e

        self._pool = pool
        self._db = db
        self._graph = graph

        for stmt in SCHEMA_STATEMENTS:
            try:
                await self._graph.query(stmt)
            except Exception as e:
                # Index already exists is not an error
                if "already indexed" not in str(e).lower():
                    logger.warning(f"Schema statement warning: {stmt} -> {e}")

        self._initialized = True
        logger.info(f"GraphClient initialized: {self.host}:{self.port}/{self.graph_name}")

    @property
    def graph(self):
        """Expose graph for direct query access."""
        if self._graph is None:
            raise RuntimeError("GraphClient not initialized. Call initialize() first.")
        return self._graph

    # ── Query execution ─────────────────────────────────────────────────

    async def execute_read(self, query: str, params: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """
        Run a read-only query.

        Returns:
            Ordered list of row mappings (column name -> scalar).

        Raises:
            GraphStoreError: On any driver failure.
        """
        try:
            result = await self.graph.ro_query(query, params=params or {})
        except Exception as e:
            logger.error(f"Graph read failed: {e}")
            raise GraphStoreError(f"Read query failed: {e}") from e
        return rows_from_result(result)

    async def execute_write(self, query: str, params: dict[str, Any] | None = None) -> WriteSummary:
        """
        Run a single write statement atomically.

        Raises:
            GraphStoreError: On any driver failure. Nothing from the statement
                is applied in that case.
        """
        try:
            result = await self.graph.query(query, params=params or {})
        except Exception as e:
            logger.error(f"Graph write failed: {e}")
            raise GraphStoreError(f"Write query failed: {e}") from e
        return WriteSummary.from_result(result)

    @asynccontextmanager
    async def write_lock(self, name: str, timeout: float, blocking_timeout: float) -> AsyncIterator[None]:
        """
        Hold the store-wide lock ``name`` for the duration of the block.

        Args:
            name: Redis key of the lock.
            timeout: Seconds after which the server expires the lock if its
                holder never releases it.
            blocking_timeout: Seconds to wait for a competing holder.

        Raises:
            GraphStoreError: If the lock cannot be acquired in time or the
                server is unreachable.
        """
        if self._pool is None:
            raise RuntimeError("GraphClient not initialized. Call initialize() first.")

        lock = Redis(connection_pool=self._pool).lock(name, timeout=timeout, blocking_timeout=blocking_timeout)
        try:
            acquired = await lock.acquire()
        except RedisError as e:
            logger.error(f"Acquiring lock {name} failed: {e}")
            raise GraphStoreError(f"Lock {name} unavailable: {e}") from e
        if not acquired:
            raise GraphStoreError(f"Timed out after {blocking_timeout}s waiting for lock {name}")

        try:
            yield
        finally:
            try:
                await lock.release()
            except RedisError as e:
                # Expired or unreachable; the server-side timeout frees it.
                logger.warning(f"Releasing lock {name} failed: {e}")

    async def health(self) -> bool:
        """Round-trip a trivial query."""
        try:
            await self.execute_read("RETURN 1 AS ok")
        except GraphStoreError:
            return False
        return True

    async def close(self) -> None:
        """Close the connection pool."""
        if self._pool is not None:
            try:
                await self._pool.aclose()
                logger.info("GraphClient connection pool closed")
            except Exception as e:
                logger.warning(f"Error closing GraphClient pool: {e}")
            finally:
                self._pool = None
                self._db = None
                self._graph = None
                self._initialized = False
