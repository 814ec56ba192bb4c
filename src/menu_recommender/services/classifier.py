"""
User experience classifier.

Counts a user's HAS_MADE edges and picks a hybrid weight preset: new users
lean on global co-orders and trends, experienced users on their own history.
Classification never fails a recommendation request; any store error falls
back to the default preset.
"""

import logging

from ..graph.client import GraphClient
from ..models.recommendation import HybridWeights, UserExperience
from ..models.rows import OrderCountRow, parse_rows

logger = logging.getLogger(__name__)

NEW_USER_ORDER_THRESHOLD = 3

DEFAULT_WEIGHTS = HybridWeights(
    user_frequency=0.4,
    user_co_orders=0.3,
    global_co_orders=0.2,
    time_based_trend=0.1,
)

NEW_USER_WEIGHTS = HybridWeights(
    user_frequency=0.1,
    user_co_orders=0.1,
    global_co_orders=0.5,
    time_based_trend=0.3,
)

EXPERIENCED_USER_WEIGHTS = HybridWeights(
    user_frequency=0.5,
    user_co_orders=0.3,
    global_co_orders=0.1,
    time_based_trend=0.1,
)

WEIGHT_PRESETS: dict[UserExperience, HybridWeights] = {
    UserExperience.NEW: NEW_USER_WEIGHTS,
    UserExperience.EXPERIENCED: EXPERIENCED_USER_WEIGHTS,
    UserExperience.UNKNOWN: DEFAULT_WEIGHTS,
}

_ORDER_COUNT_QUERY = "OPTIONAL MATCH (u:User {db_id: $user_id})-[:HAS_MADE]->(o:Order) RETURN count(o) AS order_count"


class UserClassifier:
    """Classifies users as new or experienced by recorded order count."""

    def __init__(self, graph: GraphClient, threshold: int = NEW_USER_ORDER_THRESHOLD):
        self._graph = graph
        self.threshold = threshold

    async def order_count(self, user_id: int) -> int:
        rows = parse_rows(OrderCountRow, await self._graph.execute_read(_ORDER_COUNT_QUERY, {"user_id": user_id}))
        return rows[0].order_count if rows else 0

    async def is_new_user(self, user_id: int) -> bool:
        """True when the user has fewer than ``threshold`` orders. Raises on store failure."""
        return await self.order_count(user_id) < self.threshold

    async def classify(self, user_id: int) -> UserExperience:
        """Classify, degrading to UNKNOWN instead of raising."""
        try:
            is_new = await self.is_new_user(user_id)
        except Exception as e:
            logger.warning(f"Could not classify user {user_id}, using default weights: {e}")
            return UserExperience.UNKNOWN
        return UserExperience.NEW if is_new else UserExperience.EXPERIENCED

    async def select_weights(self, user_id: int) -> tuple[UserExperience, HybridWeights]:
        experience = await self.classify(user_id)
        return experience, WEIGHT_PRESETS[experience]
