"""Domain models for the order graph and for recommendation results.

``Item``/``User``/``Order`` mirror the graph nodes. ``Recommendation`` is what
every strategy and the hybrid combiner return; ``HybridWeights`` carries the
per-strategy multipliers.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from .validators import DbId, NonNegativeFloat


class StrategyName(str, Enum):
    """The four scoring strategies, in hybrid inspection order."""

    USER_FREQUENCY = "UserFrequency"
    USER_CO_ORDERS = "UserCoOrders"
    GLOBAL_CO_ORDERS = "GlobalCoOrders"
    TIME_BASED_TREND = "TimeBasedTrend"


class UserExperience(str, Enum):
    """Outcome of classifying a user by order history."""

    NEW = "new"
    EXPERIENCED = "experienced"
    UNKNOWN = "unknown"  # classification failed, default weights apply


class Item(BaseModel):
    """A menu item."""

    db_id: DbId
    name: str
    price: NonNegativeFloat
    category: str
    description: str | None = None


class User(BaseModel):
    """A restaurant customer."""

    db_id: DbId
    name: str
    email: str
    created_at: float | None = None


class Order(BaseModel):
    """A placed order."""

    db_id: DbId
    created_at: float
    total_amount: NonNegativeFloat


class HybridWeights(BaseModel):
    """Per-strategy multipliers for the hybrid combiner.

    Weights are not normalised; callers decide what totals mean.
    """

    model_config = ConfigDict(frozen=True)

    user_frequency: NonNegativeFloat = 0.0
    user_co_orders: NonNegativeFloat = 0.0
    global_co_orders: NonNegativeFloat = 0.0
    time_based_trend: NonNegativeFloat = 0.0

    def for_strategy(self, strategy: StrategyName) -> float:
        return {
            StrategyName.USER_FREQUENCY: self.user_frequency,
            StrategyName.USER_CO_ORDERS: self.user_co_orders,
            StrategyName.GLOBAL_CO_ORDERS: self.global_co_orders,
            StrategyName.TIME_BASED_TREND: self.time_based_trend,
        }[strategy]


class Recommendation(BaseModel):
    """A scored, explained item."""

    item: Item
    score: float
    explanation: str
    # None when no strategy contributed a positive score.
    strategy: StrategyName | None = None
