"""
Aggregation builder for derived recommendation edges.

Turns raw order facts (User-[:HAS_MADE]->Order-[:HAS_ITEM {quantity}]->Item)
into the two summary relations the strategies read:

    HAS_ORDERED (User -> Item)          times = summed quantity across orders
    ORDERED_ALONG_WITH (Item <-> Item)  times = number of orders with both items

Two entry points:
    rebuild_all()          - wipe and recompute from raw facts (idempotent)
    apply_new_order(id)    - incremental bump for one freshly recorded order

Every order whose contribution is reflected in the derived edges carries an
``aggregated_at`` marker. ``apply_new_order`` only fires for unmarked orders
and sets the marker in the same statement as its edge updates, so replaying an
order is a no-op. ``rebuild_all`` resets and re-stamps the markers.

Aggregation itself happens in Python over the order lines read back from the
graph; unordered item pairs use the canonical ``id1 < id2`` ordering and are
then written in both directions.
"""

import asyncio
import logging
import time
from collections import Counter, defaultdict
from collections.abc import AsyncIterator, Iterable
from contextlib import asynccontextmanager
from dataclasses import dataclass
from itertools import combinations
from typing import Any

from ..models.rows import ImportStatusRow, OrderLineRow, parse_rows
from .client import GraphClient
from .schema import DERIVED_RELATION_TYPES

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 500

# Seconds before the server frees a lock whose holder died, and seconds a
# caller waits for a competing rebuild or apply.
DEFAULT_LOCK_TIMEOUT = 600.0
DEFAULT_LOCK_WAIT = 60.0

# ── Cypher ──────────────────────────────────────────────────────────────

_ORDER_LINES_QUERY = (
    "MATCH (u:User)-[:HAS_MADE]->(o:Order)-[hi:HAS_ITEM]->(i:Item) "
    "RETURN u.db_id AS user_id, o.db_id AS order_id, i.db_id AS item_id, "
    "hi.quantity AS quantity"
)

_SINGLE_ORDER_LINES_QUERY = (
    "MATCH (u:User)-[:HAS_MADE]->(o:Order {db_id: $order_id})-[hi:HAS_ITEM]->(i:Item) "
    "RETURN u.db_id AS user_id, o.db_id AS order_id, i.db_id AS item_id, "
    "hi.quantity AS quantity, o.aggregated_at AS aggregated_at"
)

_CLEAR_DERIVED: list[str] = [f"MATCH ()-[r:{rel_type}]->() DELETE r" for rel_type in sorted(DERIVED_RELATION_TYPES)]
_CLEAR_MARKERS = "MATCH (o:Order) WHERE o.aggregated_at IS NOT NULL SET o.aggregated_at = NULL"

_WRITE_HAS_ORDERED = (
    "UNWIND $rows AS row "
    "MATCH (u:User {db_id: row.user_id}), (i:Item {db_id: row.item_id}) "
    "MERGE (u)-[r:HAS_ORDERED]->(i) "
    "SET r.times = row.times"
)

_WRITE_ORDERED_ALONG_WITH = (
    "UNWIND $rows AS row "
    "MATCH (a:Item {db_id: row.source}), (b:Item {db_id: row.target}) "
    "MERGE (a)-[r:ORDERED_ALONG_WITH]->(b) "
    "SET r.times = row.times"
)

_MARK_ORDERS = "UNWIND $order_ids AS oid MATCH (o:Order {db_id: oid}) SET o.aggregated_at = $ts"

# One statement so both relations (and the marker) land together or not at all.
# The pair section runs after the user-item section; an empty $pairs simply
# yields no further rows.
_APPLY_ORDER = (
    "MATCH (u:User)-[:HAS_MADE]->(o:Order {db_id: $order_id}) "
    "WHERE o.aggregated_at IS NULL "
    "SET o.aggregated_at = $ts "
    "WITH u, o "
    "UNWIND $lines AS line "
    "MATCH (i:Item {db_id: line.item_id}) "
    "MERGE (u)-[ho:HAS_ORDERED]->(i) "
    "ON CREATE SET ho.times = line.quantity "
    "ON MATCH SET ho.times = ho.times + line.quantity "
    "WITH DISTINCT o "
    "UNWIND $pairs AS pair "
    "MATCH (a:Item {db_id: pair.low}), (b:Item {db_id: pair.high}) "
    "MERGE (a)-[ab:ORDERED_ALONG_WITH]->(b) "
    "ON CREATE SET ab.times = 1 "
    "ON MATCH SET ab.times = ab.times + 1 "
    "MERGE (b)-[ba:ORDERED_ALONG_WITH]->(a) "
    "ON CREATE SET ba.times = 1 "
    "ON MATCH SET ba.times = ba.times + 1"
)

_IMPORT_STATUS_QUERY = (
    "OPTIONAL MATCH (u:User) WITH count(u) AS users "
    "OPTIONAL MATCH (i:Item) WITH users, count(i) AS items "
    "OPTIONAL MATCH (o:Order) WITH users, items, count(o) AS orders "
    "OPTIONAL MATCH ()-[ho:HAS_ORDERED]->() WITH users, items, orders, count(ho) AS has_ordered "
    "OPTIONAL MATCH ()-[oaw:ORDERED_ALONG_WITH]->() "
    "RETURN users, items, orders, has_ordered, count(oaw) AS ordered_along_with"
)


# ── Pure aggregation ────────────────────────────────────────────────────


def canonical_pairs(item_ids: Iterable[int]) -> list[tuple[int, int]]:
    """Unordered pairs of distinct items, each as ``(low, high)``."""
    return list(combinations(sorted(set(item_ids)), 2))


def aggregate_user_items(lines: Iterable[OrderLineRow]) -> dict[tuple[int, int], int]:
    """Sum quantities per (user_id, item_id)."""
    totals: Counter[tuple[int, int]] = Counter()
    for line in lines:
        totals[(line.user_id, line.item_id)] += line.quantity
    return dict(totals)


def aggregate_co_occurrences(lines: Iterable[OrderLineRow]) -> dict[tuple[int, int], int]:
    """Count orders containing each canonical item pair."""
    items_by_order: dict[int, set[int]] = defaultdict(set)
    for line in lines:
        items_by_order[line.order_id].add(line.item_id)

    counts: Counter[tuple[int, int]] = Counter()
    for item_ids in items_by_order.values():
        counts.update(canonical_pairs(item_ids))
    return dict(counts)


def symmetric_edges(pair_counts: dict[tuple[int, int], int]) -> list[dict[str, int]]:
    """Expand canonical pair counts into both edge directions."""
    edges = []
    for (low, high), times in pair_counts.items():
        edges.append({"source": low, "target": high, "times": times})
        edges.append({"source": high, "target": low, "times": times})
    return edges


def _batches(rows: list[Any], size: int) -> Iterable[list[Any]]:
    for start in range(0, len(rows), size):
        yield rows[start : start + size]


@dataclass(frozen=True)
class AggregationSummary:
    """What a full rebuild wrote."""

    orders: int
    user_item_edges: int
    co_occurrence_pairs: int
    elapsed_seconds: float


# ── Builder ─────────────────────────────────────────────────────────────


class AggregationBuilder:
    """
    Sole owner of the derived edges and the ``aggregated_at`` order marker.

    Rebuilds and incremental updates are serialised twice: an in-process lock
    orders calls on this instance, and the graph client's store-wide write
    lock orders them against every other builder on the same graph, including
    ones in other processes. Store failures propagate as ``GraphStoreError``
    and abort the operation.
    """

    def __init__(
        self,
        graph: GraphClient,
        batch_size: int = DEFAULT_BATCH_SIZE,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT,
        lock_wait: float = DEFAULT_LOCK_WAIT,
    ):
        self._graph = graph
        self._batch_size = batch_size
        self._lock_timeout = lock_timeout
        self._lock_wait = lock_wait
        self._lock = asyncio.Lock()

    @property
    def lock_name(self) -> str:
        return f"menu_recommender:{self._graph.graph_name}:aggregation"

    @asynccontextmanager
    async def _exclusive(self) -> AsyncIterator[None]:
        async with self._lock:
            async with self._graph.write_lock(self.lock_name, self._lock_timeout, self._lock_wait):
                yield

    async def rebuild_all(self) -> AggregationSummary:
        """
        Recompute every derived edge from the current raw facts.

        Safe to re-run: the result depends only on the raw order lines.
        """
        async with self._exclusive():
            start = time.perf_counter()
            rows = await self._graph.execute_read(_ORDER_LINES_QUERY)
            lines = parse_rows(OrderLineRow, rows)

            user_items = aggregate_user_items(lines)
            pair_counts = aggregate_co_occurrences(lines)
            order_ids = sorted({line.order_id for line in lines})

            for clear in _CLEAR_DERIVED:
                await self._graph.execute_write(clear)
            await self._graph.execute_write(_CLEAR_MARKERS)

            user_item_rows = [
                {"user_id": user_id, "item_id": item_id, "times": times}
                for (user_id, item_id), times in user_items.items()
            ]
            for batch in _batches(user_item_rows, self._batch_size):
                await self._graph.execute_write(_WRITE_HAS_ORDERED, {"rows": batch})

            for batch in _batches(symmetric_edges(pair_counts), self._batch_size):
                await self._graph.execute_write(_WRITE_ORDERED_ALONG_WITH, {"rows": batch})

            ts = time.time()
            for batch in _batches(order_ids, self._batch_size):
                await self._graph.execute_write(_MARK_ORDERS, {"order_ids": batch, "ts": ts})

            summary = AggregationSummary(
                orders=len(order_ids),
                user_item_edges=len(user_items),
                co_occurrence_pairs=len(pair_counts),
                elapsed_seconds=round(time.perf_counter() - start, 3),
            )
            logger.info(
                f"Rebuilt derived edges: {summary.user_item_edges} HAS_ORDERED, "
                f"{summary.co_occurrence_pairs} ORDERED_ALONG_WITH pairs from {summary.orders} orders "
                f"in {summary.elapsed_seconds}s"
            )
            return summary

    async def apply_new_order(self, order_id: int) -> bool:
        """
        Fold one recorded order into the derived edges.

        The order and its HAS_ITEM edges must already exist.

        Returns:
            True if the order was applied, False if it has no line items or
            was already aggregated.
        """
        async with self._exclusive():
            rows = await self._graph.execute_read(_SINGLE_ORDER_LINES_QUERY, {"order_id": order_id})
            lines = parse_rows(OrderLineRow, rows)

            if not lines:
                logger.info(f"Order {order_id} has no line items; nothing to aggregate")
                return False
            if any(line.aggregated_at is not None for line in lines):
                logger.info(f"Order {order_id} already aggregated; skipping")
                return False

            quantities: Counter[int] = Counter()
            for line in lines:
                quantities[line.item_id] += line.quantity
            pairs = canonical_pairs(quantities)

            summary = await self._graph.execute_write(
                _APPLY_ORDER,
                {
                    "order_id": order_id,
                    "ts": time.time(),
                    "lines": [{"item_id": item_id, "quantity": qty} for item_id, qty in quantities.items()],
                    "pairs": [{"low": low, "high": high} for low, high in pairs],
                },
            )

            if summary.properties_set == 0:
                # Another writer marked the order between our read and write
                logger.info(f"Order {order_id} was aggregated concurrently; skipping")
                return False

            logger.info(f"Applied order {order_id}: {len(quantities)} items, {len(pairs)} co-occurrence pairs")
            return True

    async def get_import_status(self) -> dict[str, int]:
        """Node and derived-edge counts."""
        rows = parse_rows(ImportStatusRow, await self._graph.execute_read(_IMPORT_STATUS_QUERY))
        if not rows:
            return {"users": 0, "items": 0, "orders": 0, "has_ordered": 0, "ordered_along_with": 0}
        return rows[0].model_dump()
