"""
Integration tests for the recommendation, catalog and management endpoints.

The graph-backed dependencies are overridden with mocks so the HTTP layer
(routing, query parsing, response shapes, error mapping) is exercised
without a running FalkorDB.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from menu_recommender.graph.aggregation import AggregationSummary
from menu_recommender.graph.client import GraphStoreError
from menu_recommender.models.recommendation import (
    HybridWeights,
    Item,
    Recommendation,
    StrategyName,
    User,
    UserExperience,
)
from menu_recommender.services.classifier import EXPERIENCED_USER_WEIGHTS, NEW_USER_WEIGHTS
from menu_recommender.web.app import app
from menu_recommender.web.dependencies import get_aggregation_builder, get_recommendation_service

BURGER = Item(db_id=7, name="Burger", price=9.0, category="Mains")
FRIES = Item(db_id=3, name="Fries", price=3.5, category="Sides")


def _rec(item: Item, score: float, strategy: StrategyName, explanation: str = "") -> Recommendation:
    return Recommendation(item=item, score=score, explanation=explanation, strategy=strategy)


@pytest.fixture
def service():
    service = MagicMock()
    service.get_user_frequent_items = AsyncMock(
        return_value=[
            _rec(BURGER, 5, StrategyName.USER_FREQUENCY, "You've ordered this 5 times"),
            _rec(FRIES, 2, StrategyName.USER_FREQUENCY, "You've ordered this 2 times"),
        ]
    )
    service.get_user_co_ordered_items = AsyncMock(return_value=[])
    service.get_global_co_ordered_items = AsyncMock(return_value=[])
    service.get_time_based_trending_items = AsyncMock(return_value=[])
    service.recommend_for_user = AsyncMock(
        return_value=(UserExperience.EXPERIENCED, EXPERIENCED_USER_WEIGHTS, [_rec(FRIES, 4.3, StrategyName.USER_FREQUENCY)])
    )
    service.get_all_items = AsyncMock(return_value=[FRIES, BURGER])
    service.get_items_by_category = AsyncMock(return_value=[BURGER])
    service.get_all_users = AsyncMock(return_value=[User(db_id=1, name="Ana", email="ana@example.com")])
    return service


@pytest.fixture
def builder():
    builder = MagicMock()
    builder.rebuild_all = AsyncMock(
        return_value=AggregationSummary(orders=3, user_item_edges=5, co_occurrence_pairs=2, elapsed_seconds=0.05)
    )
    builder.apply_new_order = AsyncMock(return_value=True)
    builder.get_import_status = AsyncMock(
        return_value={"users": 2, "items": 3, "orders": 3, "has_ordered": 5, "ordered_along_with": 4}
    )
    return builder


@pytest.fixture
def client(service, builder):
    app.dependency_overrides[get_recommendation_service] = lambda: service
    app.dependency_overrides[get_aggregation_builder] = lambda: builder
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestStrategyEndpoints:
    def test_user_frequent(self, client, service):
        response = client.get("/api/recommendations/user-frequent/1")

        assert response.status_code == 200
        data = response.json()
        assert data["user_id"] == 1
        assert data["strategy"] == "UserFrequency"
        assert [r["item"]["db_id"] for r in data["recommendations"]] == [7, 3]
        assert data["recommendations"][0]["score"] == 5.0
        assert data["recommendations"][0]["strategy"] == "UserFrequency"
        service.get_user_frequent_items.assert_awaited_once_with(1)

    def test_user_co_orders(self, client, service):
        response = client.get("/api/recommendations/user-co-orders/1/7")

        assert response.status_code == 200
        assert response.json()["item_id"] == 7
        service.get_user_co_ordered_items.assert_awaited_once_with(1, 7)

    def test_global_co_orders_empty(self, client, service):
        response = client.get("/api/recommendations/global-co-orders/5")

        assert response.status_code == 200
        assert response.json()["recommendations"] == []
        service.get_global_co_ordered_items.assert_awaited_once_with(5)

    def test_trending_default_days(self, client, service):
        response = client.get("/api/recommendations/trending")

        assert response.status_code == 200
        assert response.json()["days"] == 7
        service.get_time_based_trending_items.assert_awaited_once_with(7)

    @pytest.mark.parametrize("raw,expected", [("14", 14), ("abc", 7), ("0", 7), ("-2", 7)])
    def test_trending_days_parsing(self, client, service, raw, expected):
        response = client.get(f"/api/recommendations/trending?days={raw}")

        assert response.status_code == 200
        assert response.json()["days"] == expected

    def test_non_integer_user_id_rejected(self, client):
        response = client.get("/api/recommendations/user-frequent/abc")
        assert response.status_code == 422

    def test_store_failure_maps_to_500(self, client, service):
        service.get_user_frequent_items.side_effect = GraphStoreError("down")

        response = client.get("/api/recommendations/user-frequent/1")

        assert response.status_code == 500


class TestHybridEndpoint:
    def test_hybrid_response_shape(self, client, service):
        response = client.get("/api/recommendations/hybrid/2")

        assert response.status_code == 200
        data = response.json()
        assert data["strategy"] == "Hybrid"
        assert data["user_id"] == 2
        assert data["item_in_cart"] is None
        assert data["user_type"] == "experienced"
        assert data["weights"]["user_frequency"] == 0.5
        assert data["recommendations"][0]["score"] == 4.3
        service.recommend_for_user.assert_awaited_once_with(2, None, overrides={}, limit=10)

    def test_hybrid_with_cart_and_overrides(self, client, service):
        response = client.get("/api/recommendations/hybrid/2?itemInCart=7&userFreq=0.9&timeTrend=0.05")

        assert response.status_code == 200
        service.recommend_for_user.assert_awaited_once_with(
            2,
            7,
            overrides={"user_frequency": 0.9, "time_based_trend": 0.05},
            limit=10,
        )
        assert response.json()["item_in_cart"] == 7

    def test_hybrid_ignores_unparsable_params(self, client, service):
        response = client.get("/api/recommendations/hybrid/2?itemInCart=burger&globalCoOrders=lots&userCoOrders=-1")

        assert response.status_code == 200
        service.recommend_for_user.assert_awaited_once_with(2, None, overrides={}, limit=10)

    def test_hybrid_item_without_dominant_strategy(self, client, service):
        fallback = Recommendation(item=FRIES, score=0.0, explanation="Recommended based on your preferences")
        service.recommend_for_user.return_value = (UserExperience.EXPERIENCED, EXPERIENCED_USER_WEIGHTS, [fallback])

        data = client.get("/api/recommendations/hybrid/2").json()

        assert data["recommendations"][0]["strategy"] is None
        assert data["recommendations"][0]["explanation"] == "Recommended based on your preferences"

    def test_hybrid_new_user(self, client, service):
        service.recommend_for_user.return_value = (UserExperience.NEW, NEW_USER_WEIGHTS, [])

        data = client.get("/api/recommendations/hybrid/99").json()

        assert data["user_type"] == "new"
        assert data["weights"] == HybridWeights(
            user_frequency=0.1, user_co_orders=0.1, global_co_orders=0.5, time_based_trend=0.3
        ).model_dump()


class TestCatalogEndpoints:
    def test_items(self, client, service):
        data = client.get("/api/items").json()

        assert data["count"] == 2
        assert [i["name"] for i in data["items"]] == ["Fries", "Burger"]
        service.get_items_by_category.assert_not_called()

    def test_items_by_category(self, client, service):
        data = client.get("/api/items?category=Mains").json()

        assert data["count"] == 1
        service.get_items_by_category.assert_awaited_once_with("Mains")

    def test_users(self, client):
        data = client.get("/api/users").json()

        assert data["count"] == 1
        assert data["users"][0]["email"] == "ana@example.com"


class TestManageEndpoints:
    def test_rebuild(self, client, builder):
        response = client.post("/api/manage/rebuild")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["user_item_edges"] == 5
        builder.rebuild_all.assert_awaited_once()

    def test_rebuild_failure(self, client, builder):
        builder.rebuild_all.side_effect = GraphStoreError("write failed")

        response = client.post("/api/manage/rebuild")

        assert response.status_code == 500
        assert "Rebuild failed" in response.json()["detail"]

    def test_apply_order(self, client, builder):
        data = client.post("/api/manage/orders/42/apply").json()

        assert data == {"order_id": 42, "applied": True, "message": "Order applied"}
        builder.apply_new_order.assert_awaited_once_with(42)

    def test_apply_order_replay(self, client, builder):
        builder.apply_new_order.return_value = False

        data = client.post("/api/manage/orders/42/apply").json()

        assert data["applied"] is False

    def test_status(self, client):
        data = client.get("/api/manage/status").json()
        assert data["ordered_along_with"] == 4


class TestWithoutGraph:
    """No dependency overrides: the shared graph client was never initialized."""

    def test_routes_registered(self):
        routes = [route.path for route in app.routes]
        assert "/api/recommendations/hybrid/{user_id}" in routes
        assert "/api/items" in routes
        assert "/api/manage/rebuild" in routes

    def test_graph_endpoints_unavailable(self):
        client = TestClient(app)

        response = client.get("/api/recommendations/user-frequent/1")

        assert response.status_code == 503
        assert "graph" in response.json()["detail"].lower()

    def test_health_reports_degraded(self):
        client = TestClient(app)

        response = client.get("/health")

        assert response.status_code == 200
        assert response.json()["status"] == "degraded"
