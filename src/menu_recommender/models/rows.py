"""Typed row records for graph query results.

The graph store hands back loosely typed ``column -> value`` mappings. Each
query has one record type here, validated strictly so a wrong column type
surfaces immediately as ``GraphStoreError`` instead of flowing into scoring.
"""

from __future__ import annotations

from typing import Any, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from ..graph.client import GraphStoreError
from .recommendation import Item, User
from .validators import DbId, NonNegativeFloat, NonNegativeInt, Quantity

RowT = TypeVar("RowT", bound="GraphRow")


class GraphRow(BaseModel):
    """Base for all row records: strict types, unknown columns ignored."""

    model_config = ConfigDict(strict=True, extra="ignore", frozen=True)


class ItemColumns(GraphRow):
    """Item columns shared by every recommendation query."""

    item_id: DbId
    name: str
    price: NonNegativeFloat
    category: str
    description: str | None = None

    def to_item(self) -> Item:
        return Item(
            db_id=self.item_id,
            name=self.name,
            price=self.price,
            category=self.category,
            description=self.description,
        )


class FrequencyRow(ItemColumns):
    """User Frequency: one row per HAS_ORDERED edge."""

    times: NonNegativeInt


class CoOrderRow(ItemColumns):
    """User Co-Orders: orders of the user containing both items."""

    co_occurrences: NonNegativeInt


class GlobalCoOrderRow(ItemColumns):
    """Global Co-Orders: one row per ORDERED_ALONG_WITH edge."""

    times: NonNegativeInt


class TrendRow(ItemColumns):
    """Time-Based Trend: qualifying orders containing the item."""

    recent_orders: NonNegativeInt


class ItemRow(ItemColumns):
    """Catalog listing."""


class UserRow(GraphRow):
    user_id: DbId
    name: str
    email: str
    created_at: float | None = None

    def to_user(self) -> User:
        return User(db_id=self.user_id, name=self.name, email=self.email, created_at=self.created_at)


class OrderCountRow(GraphRow):
    order_count: NonNegativeInt


class OrderLineRow(GraphRow):
    """One HAS_ITEM edge joined with its order's owner."""

    user_id: DbId
    order_id: DbId
    item_id: DbId
    quantity: Quantity
    aggregated_at: float | None = None


class ImportStatusRow(GraphRow):
    users: NonNegativeInt
    items: NonNegativeInt
    orders: NonNegativeInt
    has_ordered: NonNegativeInt
    ordered_along_with: NonNegativeInt


def parse_rows(model: type[RowT], rows: list[dict[str, Any]]) -> list[RowT]:
    """Validate raw rows into ``model`` records.

    Raises:
        GraphStoreError: If any row does not match the record type.
    """
    try:
        return [model.model_validate(row) for row in rows]
    except ValidationError as e:
        raise GraphStoreError(f"Unexpected {model.__name__} shape from graph: {e}") from e
