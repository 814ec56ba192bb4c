"""
Recommendation API endpoints.

One endpoint per strategy plus the classifier-driven hybrid endpoint. Query
parameters are parsed leniently: an unparsable ``days`` falls back to the
default window, and unparsable item/weight overrides are ignored.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from ...config import settings
from ...graph.client import GraphStoreError
from ...models.recommendation import HybridWeights, Recommendation, UserExperience
from ...services.recommendation_service import RecommendationService
from ...services.strategies import normalize_trend_days
from ..dependencies import get_recommendation_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/recommendations", tags=["recommendations"])

# Query parameter name -> HybridWeights field
WEIGHT_OVERRIDE_PARAMS: dict[str, str] = {
    "userFreq": "user_frequency",
    "userCoOrders": "user_co_orders",
    "globalCoOrders": "global_co_orders",
    "timeTrend": "time_based_trend",
}


class RecommendationResponse(BaseModel):
    """Response model shared by all recommendation endpoints."""

    recommendations: list[Recommendation]
    strategy: str
    description: str
    user_id: int | None = None
    item_id: int | None = None
    days: int | None = None


class HybridResponse(RecommendationResponse):
    """Hybrid response: also reports how weights were chosen."""

    item_in_cart: int | None = None
    weights: HybridWeights
    user_type: UserExperience = Field(..., description="Classifier outcome that picked the weight preset")


def _parse_int(value: str | None) -> int | None:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except ValueError:
        return None


def _parse_weight_overrides(params: dict[str, str | None]) -> dict[str, float]:
    overrides: dict[str, float] = {}
    for param, field in WEIGHT_OVERRIDE_PARAMS.items():
        raw = params.get(param)
        if raw is None or raw == "":
            continue
        try:
            value = float(raw)
        except ValueError:
            continue
        if value >= 0:
            overrides[field] = value
    return overrides


def _store_failure(action: str, e: GraphStoreError) -> HTTPException:
    logger.error(f"Error getting {action}: {e}")
    return HTTPException(status_code=500, detail="Failed to get recommendations")


@router.get("/user-frequent/{user_id}", response_model=RecommendationResponse)
async def get_user_frequent_items(
    user_id: int,
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationResponse:
    """Items the user orders most frequently."""
    try:
        recommendations = await service.get_user_frequent_items(user_id)
    except GraphStoreError as e:
        raise _store_failure("user frequent items", e) from e

    return RecommendationResponse(
        user_id=user_id,
        recommendations=recommendations,
        strategy="UserFrequency",
        description="Items you order most frequently",
    )


@router.get("/user-co-orders/{user_id}/{item_id}", response_model=RecommendationResponse)
async def get_user_co_ordered_items(
    user_id: int,
    item_id: int,
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationResponse:
    """Items this user has previously ordered together with ``item_id``."""
    try:
        recommendations = await service.get_user_co_ordered_items(user_id, item_id)
    except GraphStoreError as e:
        raise _store_failure("user co-ordered items", e) from e

    return RecommendationResponse(
        user_id=user_id,
        item_id=item_id,
        recommendations=recommendations,
        strategy="UserCoOrders",
        description="Items you frequently order with this item",
    )


@router.get("/global-co-orders/{item_id}", response_model=RecommendationResponse)
async def get_global_co_ordered_items(
    item_id: int,
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationResponse:
    """Items all customers frequently order together with ``item_id``."""
    try:
        recommendations = await service.get_global_co_ordered_items(item_id)
    except GraphStoreError as e:
        raise _store_failure("global co-ordered items", e) from e

    return RecommendationResponse(
        item_id=item_id,
        recommendations=recommendations,
        strategy="GlobalCoOrders",
        description="Items frequently ordered with this item by all customers",
    )


@router.get("/trending", response_model=RecommendationResponse)
async def get_trending_items(
    days: str | None = None,
    service: RecommendationService = Depends(get_recommendation_service),
) -> RecommendationResponse:
    """Items trending over the last ``days`` days (default 7)."""
    window = normalize_trend_days(days, default=settings.recommend.trend_window_days)
    try:
        recommendations = await service.get_time_based_trending_items(window)
    except GraphStoreError as e:
        raise _store_failure("trending items", e) from e

    return RecommendationResponse(
        days=window,
        recommendations=recommendations,
        strategy="TimeBasedTrend",
        description="Currently trending items",
    )


@router.get("/hybrid/{user_id}", response_model=HybridResponse)
async def get_hybrid_recommendations(
    user_id: int,
    itemInCart: str | None = None,  # noqa: N803 - public query parameter names
    userFreq: str | None = None,  # noqa: N803
    userCoOrders: str | None = None,  # noqa: N803
    globalCoOrders: str | None = None,  # noqa: N803
    timeTrend: str | None = None,  # noqa: N803
    service: RecommendationService = Depends(get_recommendation_service),
) -> HybridResponse:
    """
    Personalized recommendations blending all strategies.

    Weights come from the user's experience preset; any of ``userFreq``,
    ``userCoOrders``, ``globalCoOrders``, ``timeTrend`` override single fields.
    """
    item_in_cart = _parse_int(itemInCart)
    overrides = _parse_weight_overrides(
        {
            "userFreq": userFreq,
            "userCoOrders": userCoOrders,
            "globalCoOrders": globalCoOrders,
            "timeTrend": timeTrend,
        }
    )

    experience, weights, recommendations = await service.recommend_for_user(
        user_id,
        item_in_cart,
        overrides=overrides,
        limit=settings.recommend.hybrid_limit,
    )

    return HybridResponse(
        user_id=user_id,
        item_in_cart=item_in_cart,
        weights=weights,
        user_type=experience,
        recommendations=recommendations,
        strategy="Hybrid",
        description="Personalized recommendations based on multiple factors",
    )
