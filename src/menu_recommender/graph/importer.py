"""
CSV importer for the raw order graph.

Loads the four source files in dependency order and writes them with batched
``UNWIND`` statements:

    users.csv        user_id, name, email, created_at
    items.csv        item_id, name, price, category[, description]
    orders.csv       order_id, user_id, created_at, total_amount
    order_items.csv  order_id, item_id, quantity

Timestamps are ISO-8601 in the files and stored as Unix epoch seconds.
Repeated (order_id, item_id) lines are collapsed into one HAS_ITEM edge with
the summed quantity. After loading, derived edges are rebuilt.
"""

import logging
from pathlib import Path
from typing import Any

import pandas as pd

from .aggregation import DEFAULT_BATCH_SIZE, AggregationBuilder, AggregationSummary
from .client import GraphClient

logger = logging.getLogger(__name__)

_EPOCH = pd.Timestamp("1970-01-01", tz="UTC")

REQUIRED_COLUMNS: dict[str, list[str]] = {
    "users": ["user_id", "name", "email", "created_at"],
    "items": ["item_id", "name", "price", "category"],
    "orders": ["order_id", "user_id", "created_at", "total_amount"],
    "order_items": ["order_id", "item_id", "quantity"],
}

_CLEAR_GRAPH = "MATCH (n) DETACH DELETE n"

_WRITE_USERS = (
    "UNWIND $rows AS row "
    "MERGE (u:User {db_id: row.user_id}) "
    "SET u.name = row.name, u.email = row.email, u.created_at = row.created_at"
)

_WRITE_ITEMS = (
    "UNWIND $rows AS row "
    "MERGE (i:Item {db_id: row.item_id}) "
    "SET i.name = row.name, i.price = toFloat(row.price), i.category = row.category, "
    "i.description = row.description"
)

_WRITE_ORDERS = (
    "UNWIND $rows AS row "
    "MATCH (u:User {db_id: row.user_id}) "
    "MERGE (o:Order {db_id: row.order_id}) "
    "SET o.created_at = row.created_at, o.total_amount = toFloat(row.total_amount) "
    "MERGE (u)-[:HAS_MADE]->(o)"
)

_WRITE_ORDER_ITEMS = (
    "UNWIND $rows AS row "
    "MATCH (o:Order {db_id: row.order_id}), (i:Item {db_id: row.item_id}) "
    "MERGE (o)-[hi:HAS_ITEM]->(i) "
    "SET hi.quantity = row.quantity"
)


class CsvImportError(Exception):
    """Raised when a source file is missing or malformed."""

    pass


def to_epoch_seconds(values: pd.Series) -> pd.Series:
    """Parse ISO-8601 strings into float Unix timestamps (naive values are UTC)."""
    parsed = pd.to_datetime(values, utc=True, format="ISO8601")
    return (parsed - _EPOCH) / pd.Timedelta(seconds=1)


def read_table(path: Path, kind: str) -> pd.DataFrame:
    """Read one CSV and check it carries the columns ``kind`` needs."""
    if not path.is_file():
        raise CsvImportError(f"Missing {kind} file: {path}")

    df = pd.read_csv(path, skipinitialspace=True)
    df.columns = [str(c).strip() for c in df.columns]

    missing = [c for c in REQUIRED_COLUMNS[kind] if c not in df.columns]
    if missing:
        raise CsvImportError(f"{path.name} is missing columns: {', '.join(missing)}")
    return df


def prepare_users(df: pd.DataFrame) -> list[dict[str, Any]]:
    out = pd.DataFrame(
        {
            "user_id": df["user_id"].astype("int64"),
            "name": df["name"].astype(str).str.strip(),
            "email": df["email"].astype(str).str.strip(),
            "created_at": to_epoch_seconds(df["created_at"]),
        }
    )
    return out.to_dict(orient="records")


def prepare_items(df: pd.DataFrame) -> list[dict[str, Any]]:
    if "description" in df.columns:
        description = df["description"].astype(object)
        description = description.where(description.notna(), None)
    else:
        description = pd.Series([None] * len(df), index=df.index, dtype=object)

    out = pd.DataFrame(
        {
            "item_id": df["item_id"].astype("int64"),
            "name": df["name"].astype(str).str.strip(),
            "price": df["price"].astype(float),
            "category": df["category"].astype(str).str.strip(),
            "description": description,
        }
    )
    if (out["price"] < 0).any():
        raise CsvImportError("items.csv contains negative prices")
    return out.to_dict(orient="records")


def prepare_orders(df: pd.DataFrame) -> list[dict[str, Any]]:
    out = pd.DataFrame(
        {
            "order_id": df["order_id"].astype("int64"),
            "user_id": df["user_id"].astype("int64"),
            "created_at": to_epoch_seconds(df["created_at"]),
            "total_amount": df["total_amount"].astype(float),
        }
    )
    return out.to_dict(orient="records")


def prepare_order_items(df: pd.DataFrame) -> list[dict[str, Any]]:
    """Collapse repeated (order, item) lines into one summed quantity."""
    lines = df[["order_id", "item_id", "quantity"]].astype("int64")
    if (lines["quantity"] < 1).any():
        raise CsvImportError("order_items.csv contains quantities below 1")
    grouped = lines.groupby(["order_id", "item_id"], as_index=False, sort=True)["quantity"].sum()
    return grouped.to_dict(orient="records")


class CsvImporter:
    """Loads CSV order history into the graph, then rebuilds derived edges."""

    def __init__(
        self,
        graph: GraphClient,
        builder: AggregationBuilder,
        data_dir: Path | str = Path("data"),
        batch_size: int = DEFAULT_BATCH_SIZE,
    ):
        self._graph = graph
        self._builder = builder
        self._data_dir = Path(data_dir)
        self._batch_size = batch_size

    async def _write_batched(self, query: str, rows: list[dict[str, Any]]) -> int:
        for start in range(0, len(rows), self._batch_size):
            await self._graph.execute_write(query, {"rows": rows[start : start + self._batch_size]})
        return len(rows)

    async def import_users(self) -> int:
        rows = prepare_users(read_table(self._data_dir / "users.csv", "users"))
        return await self._write_batched(_WRITE_USERS, rows)

    async def import_items(self) -> int:
        rows = prepare_items(read_table(self._data_dir / "items.csv", "items"))
        return await self._write_batched(_WRITE_ITEMS, rows)

    async def import_orders(self) -> int:
        rows = prepare_orders(read_table(self._data_dir / "orders.csv", "orders"))
        return await self._write_batched(_WRITE_ORDERS, rows)

    async def import_order_items(self) -> int:
        rows = prepare_order_items(read_table(self._data_dir / "order_items.csv", "order_items"))
        return await self._write_batched(_WRITE_ORDER_ITEMS, rows)

    async def import_all(self, clear_existing: bool = True, rebuild: bool = True) -> AggregationSummary | None:
        """
        Import every file in dependency order.

        Args:
            clear_existing: Detach-delete the whole graph first
            rebuild: Recompute derived edges afterwards

        Returns:
            The rebuild summary, or None when ``rebuild`` is False.
        """
        logger.info(f"Starting CSV import from {self._data_dir}")

        if clear_existing:
            logger.info("Clearing existing graph...")
            await self._graph.execute_write(_CLEAR_GRAPH)

        steps = [
            ("users", self.import_users),
            ("items", self.import_items),
            ("orders", self.import_orders),
            ("order_items", self.import_order_items),
        ]
        for name, step in steps:
            count = await step()
            logger.info(f"Imported {count} {name}")

        summary = await self._builder.rebuild_all() if rebuild else None
        logger.info("CSV import completed")
        return summary
