"""
Hybrid combiner.

Blends the four strategies into one ranked list:

1. Run User Frequency, and (only with an item in the cart) User Co-Orders and
   Global Co-Orders, plus a fixed 7-day Time-Based Trend, concurrently.
2. Weight every strategy score: contribution = score * weight[strategy].
3. Sum contributions per item; a strategy contributes at most once per item.
4. Drop the in-cart item.
5. Attribute each item to its largest positive contribution (ties go to the
   strategy inspected first) and explain it from a fixed lookup. An item with
   no positive contribution keeps no strategy and a generic explanation.
6. Sort by total descending.

A failing strategy is logged and contributes nothing. Top-N truncation is the
caller's job.
"""

import asyncio
import logging
from collections.abc import Awaitable

from ..models.recommendation import HybridWeights, Item, Recommendation, StrategyName
from .strategies import StrategyQueries

logger = logging.getLogger(__name__)

HYBRID_TREND_DAYS = 7

# Fixed inspection order; also the tie-break order for the dominant strategy.
STRATEGY_ORDER: tuple[StrategyName, ...] = (
    StrategyName.USER_FREQUENCY,
    StrategyName.USER_CO_ORDERS,
    StrategyName.GLOBAL_CO_ORDERS,
    StrategyName.TIME_BASED_TREND,
)


def explain(strategy: StrategyName | None, item_in_cart: int | None) -> str:
    """Explanation for an item whose score is dominated by ``strategy``."""
    if strategy is StrategyName.USER_FREQUENCY:
        return "Recommended because you frequently order this"
    if strategy is StrategyName.USER_CO_ORDERS:
        return f"You often order this with item {item_in_cart}"
    if strategy is StrategyName.GLOBAL_CO_ORDERS:
        return f"Customers who order item {item_in_cart} also order this"
    if strategy is StrategyName.TIME_BASED_TREND:
        return "This item is trending right now"
    return "Recommended based on your preferences"


def merge_contributions(
    results: dict[StrategyName, list[Recommendation]],
    weights: HybridWeights,
    item_in_cart: int | None = None,
) -> list[Recommendation]:
    """
    Merge per-strategy results into hybrid recommendations.

    Two parallel mappings keyed by item id carry the running total and the
    dominant (strategy, contribution). Strategies are folded in
    ``STRATEGY_ORDER`` and a later strategy only takes over dominance with a
    strictly larger contribution. Zero and negative contributions never dominate.
    """
    totals: dict[int, float] = {}
    dominant: dict[int, tuple[StrategyName, float]] = {}
    items: dict[int, Item] = {}

    for strategy in STRATEGY_ORDER:
        if strategy not in results:
            continue
        weight = weights.for_strategy(strategy)

        # One contribution per item per strategy; a repeated item overwrites.
        contributions: dict[int, float] = {}
        for rec in results[strategy]:
            contributions[rec.item.db_id] = rec.score * weight
            items[rec.item.db_id] = rec.item

        for item_id, contribution in contributions.items():
            totals[item_id] = totals.get(item_id, 0.0) + contribution
            if contribution > dominant.get(item_id, (None, 0.0))[1]:
                dominant[item_id] = (strategy, contribution)

    if item_in_cart is not None:
        totals.pop(item_in_cart, None)

    merged = []
    for item_id, total in totals.items():
        top = dominant[item_id][0] if item_id in dominant else None
        merged.append(
            Recommendation(
                item=items[item_id],
                score=total,
                explanation=explain(top, item_in_cart),
                strategy=top,
            )
        )
    return sorted(merged, key=lambda r: r.score, reverse=True)


class HybridCombiner:
    """Runs the strategies for one request and merges their results."""

    def __init__(self, strategies: StrategyQueries, trend_days: int = HYBRID_TREND_DAYS):
        self._strategies = strategies
        self._trend_days = trend_days

    async def recommend(
        self,
        user_id: int,
        item_in_cart: int | None,
        weights: HybridWeights,
    ) -> list[Recommendation]:
        logger.info(f"Generating hybrid recommendations for user {user_id} with item in cart {item_in_cart}")

        calls: dict[StrategyName, Awaitable[list[Recommendation]]] = {
            StrategyName.USER_FREQUENCY: self._strategies.user_frequency(user_id),
        }
        if item_in_cart is not None:
            calls[StrategyName.USER_CO_ORDERS] = self._strategies.user_co_orders(user_id, item_in_cart)
            calls[StrategyName.GLOBAL_CO_ORDERS] = self._strategies.global_co_orders(item_in_cart)
        calls[StrategyName.TIME_BASED_TREND] = self._strategies.time_based_trend(self._trend_days)

        outcomes = await asyncio.gather(*calls.values(), return_exceptions=True)

        results: dict[StrategyName, list[Recommendation]] = {}
        for strategy, outcome in zip(calls.keys(), outcomes):
            if isinstance(outcome, BaseException):
                if not isinstance(outcome, Exception):
                    raise outcome
                logger.warning(f"Strategy {strategy.value} failed for user {user_id}, skipping: {outcome}")
                continue
            results[strategy] = outcome

        return merge_contributions(results, weights, item_in_cart)
