"""
The four scoring strategies.

Each strategy is a single read-only query against the graph, converted into a
list of ``Recommendation`` sorted by score descending. An unknown user or item
yields an empty list; store failures propagate as ``GraphStoreError``.
"""

import logging
from datetime import datetime, time, timedelta, timezone
from typing import Any

from ..graph.client import GraphClient
from ..models.recommendation import Recommendation, StrategyName
from ..models.rows import CoOrderRow, FrequencyRow, GlobalCoOrderRow, TrendRow, parse_rows

logger = logging.getLogger(__name__)

DEFAULT_TREND_DAYS = 7

ITEM_COLUMNS = (
    "i.db_id AS item_id, i.name AS name, i.price AS price, "
    "i.category AS category, i.description AS description"
)

_USER_FREQUENCY_QUERY = (
    "MATCH (u:User {db_id: $user_id})-[ho:HAS_ORDERED]->(i:Item) "
    f"RETURN {ITEM_COLUMNS}, ho.times AS times "
    "ORDER BY times DESC"
)

_USER_CO_ORDERS_QUERY = (
    "MATCH (u:User {db_id: $user_id})-[:HAS_MADE]->(o:Order)-[:HAS_ITEM]->(:Item {db_id: $item_id}) "
    "MATCH (o)-[:HAS_ITEM]->(i:Item) "
    "WHERE i.db_id <> $item_id "
    "WITH i, count(DISTINCT o) AS co_occurrences "
    f"RETURN {ITEM_COLUMNS}, co_occurrences "
    "ORDER BY co_occurrences DESC"
)

_GLOBAL_CO_ORDERS_QUERY = (
    "MATCH (:Item {db_id: $item_id})-[oaw:ORDERED_ALONG_WITH]->(i:Item) "
    f"RETURN {ITEM_COLUMNS}, oaw.times AS times "
    "ORDER BY times DESC"
)

_TREND_QUERY = (
    "MATCH (o:Order)-[:HAS_ITEM]->(i:Item) "
    "WHERE o.created_at >= $since "
    "WITH i, count(DISTINCT o) AS recent_orders "
    f"RETURN {ITEM_COLUMNS}, recent_orders "
    "ORDER BY recent_orders DESC"
)


def normalize_trend_days(days: Any, default: int = DEFAULT_TREND_DAYS) -> int:
    """Coerce a day window; non-positive or unparsable input falls back to ``default``."""
    try:
        value = int(str(days).strip())
    except (TypeError, ValueError):
        return default
    return value if value > 0 else default


def trend_window_start(days: int, now: datetime | None = None) -> float:
    """
    Lower bound of the trend window as a Unix timestamp.

    Calendar-day granularity (UTC): an order qualifies when its date is later
    than ``today - days``, i.e. from midnight of ``today - (days - 1)`` on.
    The window never reaches further back than ``days`` days before ``now``.
    """
    now = now or datetime.now(timezone.utc)
    first_day = now.astimezone(timezone.utc).date() - timedelta(days=days - 1)
    return datetime.combine(first_day, time.min, tzinfo=timezone.utc).timestamp()


def _by_score(recommendations: list[Recommendation]) -> list[Recommendation]:
    return sorted(recommendations, key=lambda r: r.score, reverse=True)


class StrategyQueries:
    """Stateless strategy queries over a shared GraphClient."""

    def __init__(self, graph: GraphClient):
        self._graph = graph

    async def user_frequency(self, user_id: int) -> list[Recommendation]:
        """What does this user order most often?"""
        rows = parse_rows(
            FrequencyRow,
            await self._graph.execute_read(_USER_FREQUENCY_QUERY, {"user_id": user_id}),
        )
        return _by_score(
            [
                Recommendation(
                    item=row.to_item(),
                    score=float(row.times),
                    explanation=f"You've ordered this {row.times} times",
                    strategy=StrategyName.USER_FREQUENCY,
                )
                for row in rows
            ]
        )

    async def user_co_orders(self, user_id: int, item_id: int) -> list[Recommendation]:
        """With ``item_id`` in the cart, what did this user order alongside it before?"""
        rows = parse_rows(
            CoOrderRow,
            await self._graph.execute_read(_USER_CO_ORDERS_QUERY, {"user_id": user_id, "item_id": item_id}),
        )
        return _by_score(
            [
                Recommendation(
                    item=row.to_item(),
                    score=float(row.co_occurrences),
                    explanation=f"You've ordered this {row.co_occurrences} times with item {item_id}",
                    strategy=StrategyName.USER_CO_ORDERS,
                )
                for row in rows
                if row.item_id != item_id
            ]
        )

    async def global_co_orders(self, item_id: int) -> list[Recommendation]:
        """With ``item_id`` in the cart, what do all customers order alongside it?"""
        rows = parse_rows(
            GlobalCoOrderRow,
            await self._graph.execute_read(_GLOBAL_CO_ORDERS_QUERY, {"item_id": item_id}),
        )
        return _by_score(
            [
                Recommendation(
                    item=row.to_item(),
                    score=float(row.times),
                    explanation=f"Customers who ordered item {item_id} also ordered this {row.times} times",
                    strategy=StrategyName.GLOBAL_CO_ORDERS,
                )
                for row in rows
            ]
        )

    async def time_based_trend(self, days: Any = DEFAULT_TREND_DAYS, now: datetime | None = None) -> list[Recommendation]:
        """Items appearing in the most orders over the last ``days`` days."""
        days = normalize_trend_days(days)
        since = trend_window_start(days, now)
        rows = parse_rows(TrendRow, await self._graph.execute_read(_TREND_QUERY, {"since": since}))
        return _by_score(
            [
                Recommendation(
                    item=row.to_item(),
                    score=float(row.recent_orders),
                    explanation=f"Ordered {row.recent_orders} times in the last {days} days",
                    strategy=StrategyName.TIME_BASED_TREND,
                )
                for row in rows
            ]
        )
