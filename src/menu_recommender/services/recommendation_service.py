"""
Recommendation Service - the interface the transport layer talks to.

Wraps the strategy queries, the hybrid combiner and the user classifier
behind one object, and adds the catalog lookups the UI needs.

Unknown users or items produce empty lists. Store failures surface as
``GraphStoreError`` except inside the hybrid path (degraded per strategy)
and classification (falls back to default weights).
"""

import logging
from typing import Any

from ..graph.client import GraphClient
from ..models.recommendation import HybridWeights, Item, Recommendation, User, UserExperience
from ..models.rows import ItemRow, UserRow, parse_rows
from .classifier import (
    DEFAULT_WEIGHTS,
    EXPERIENCED_USER_WEIGHTS,
    NEW_USER_ORDER_THRESHOLD,
    NEW_USER_WEIGHTS,
    UserClassifier,
)
from .hybrid import HybridCombiner
from .strategies import DEFAULT_TREND_DAYS, ITEM_COLUMNS, StrategyQueries

logger = logging.getLogger(__name__)

DEFAULT_HYBRID_LIMIT = 10

_ALL_ITEMS_QUERY = f"MATCH (i:Item) RETURN {ITEM_COLUMNS} ORDER BY category, name"

_ITEMS_BY_CATEGORY_QUERY = f"MATCH (i:Item {{category: $category}}) RETURN {ITEM_COLUMNS} ORDER BY name"

_ALL_USERS_QUERY = (
    "MATCH (u:User) "
    "RETURN u.db_id AS user_id, u.name AS name, u.email AS email, u.created_at AS created_at "
    "ORDER BY name"
)


class RecommendationService:
    """
    Shared service for recommendation retrieval.

    Holds no per-request state; all data lives in the graph.
    """

    def __init__(
        self,
        graph: GraphClient,
        trend_days: int = DEFAULT_TREND_DAYS,
        new_user_threshold: int = NEW_USER_ORDER_THRESHOLD,
    ):
        self._graph = graph
        self._default_trend_days = trend_days
        self.strategies = StrategyQueries(graph)
        self.combiner = HybridCombiner(self.strategies)
        self.classifier = UserClassifier(graph, threshold=new_user_threshold)

    # ── Single strategies ───────────────────────────────────────────────

    async def get_user_frequent_items(self, user_id: int) -> list[Recommendation]:
        return await self.strategies.user_frequency(user_id)

    async def get_user_co_ordered_items(self, user_id: int, item_id: int) -> list[Recommendation]:
        return await self.strategies.user_co_orders(user_id, item_id)

    async def get_global_co_ordered_items(self, item_id: int) -> list[Recommendation]:
        return await self.strategies.global_co_orders(item_id)

    async def get_time_based_trending_items(self, days: Any = None) -> list[Recommendation]:
        return await self.strategies.time_based_trend(days if days is not None else self._default_trend_days)

    # ── Hybrid ──────────────────────────────────────────────────────────

    async def hybrid_recommendation(
        self,
        user_id: int,
        item_id: int | None,
        weights: HybridWeights,
    ) -> list[Recommendation]:
        """All hybrid candidates, ranked. Never raises for a single failing strategy."""
        return await self.combiner.recommend(user_id, item_id, weights)

    async def recommend_for_user(
        self,
        user_id: int,
        item_id: int | None = None,
        overrides: dict[str, float] | None = None,
        limit: int = DEFAULT_HYBRID_LIMIT,
    ) -> tuple[UserExperience, HybridWeights, list[Recommendation]]:
        """
        Classifier-driven hybrid recommendation.

        Picks the weight preset for the user, applies any explicit per-field
        overrides, runs the combiner and keeps the top ``limit`` results.

        Returns:
            Tuple of (user experience, weights used, recommendations)
        """
        experience, weights = await self.weights_for_user(user_id)
        if overrides:
            weights = HybridWeights.model_validate({**weights.model_dump(), **overrides})

        recommendations = await self.hybrid_recommendation(user_id, item_id, weights)
        return experience, weights, recommendations[:limit]

    # ── Classification and presets ──────────────────────────────────────

    async def is_new_user(self, user_id: int) -> bool:
        return await self.classifier.is_new_user(user_id)

    async def weights_for_user(self, user_id: int) -> tuple[UserExperience, HybridWeights]:
        return await self.classifier.select_weights(user_id)

    @staticmethod
    def default_weights() -> HybridWeights:
        return DEFAULT_WEIGHTS

    @staticmethod
    def weights_for_new_user() -> HybridWeights:
        return NEW_USER_WEIGHTS

    @staticmethod
    def weights_for_experienced_user() -> HybridWeights:
        return EXPERIENCED_USER_WEIGHTS

    # ── Catalog ─────────────────────────────────────────────────────────

    async def get_all_items(self) -> list[Item]:
        rows = parse_rows(ItemRow, await self._graph.execute_read(_ALL_ITEMS_QUERY))
        return [row.to_item() for row in rows]

    async def get_items_by_category(self, category: str) -> list[Item]:
        rows = parse_rows(ItemRow, await self._graph.execute_read(_ITEMS_BY_CATEGORY_QUERY, {"category": category}))
        return [row.to_item() for row in rows]

    async def get_all_users(self) -> list[User]:
        rows = parse_rows(UserRow, await self._graph.execute_read(_ALL_USERS_QUERY))
        return [row.to_user() for row in rows]
