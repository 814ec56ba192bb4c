"""
Unit tests for the CSV importer.

Uses real CSV files under tmp_path and a mocked GraphClient/AggregationBuilder.
"""

from unittest.mock import AsyncMock, MagicMock

import pandas as pd
import pytest

from menu_recommender.graph.aggregation import AggregationSummary
from menu_recommender.graph.client import WriteSummary
from menu_recommender.graph.importer import (
    CsvImporter,
    CsvImportError,
    prepare_items,
    prepare_order_items,
    prepare_orders,
    prepare_users,
    read_table,
    to_epoch_seconds,
)

USERS_CSV = """user_id,name,email,created_at
1,Ana,ana@example.com,2024-01-01T00:00:00Z
2,Ben,ben@example.com,2024-01-02T12:00:00Z
"""

ITEMS_CSV = """item_id,name,price,category,description
3,Fries,3.5,Sides,
7,Burger,9,Mains,Beef patty
"""

ORDERS_CSV = """order_id,user_id,created_at,total_amount
100,1,2024-02-01T18:30:00Z,16.5
101,2,2024-02-02T19:00:00Z,9.0
"""

ORDER_ITEMS_CSV = """order_id,item_id,quantity
100,7,1
100,3,1
100,3,1
101,7,1
"""


@pytest.fixture
def data_dir(tmp_path):
    (tmp_path / "users.csv").write_text(USERS_CSV)
    (tmp_path / "items.csv").write_text(ITEMS_CSV)
    (tmp_path / "orders.csv").write_text(ORDERS_CSV)
    (tmp_path / "order_items.csv").write_text(ORDER_ITEMS_CSV)
    return tmp_path


class TestPrepare:
    def test_epoch_seconds(self):
        values = to_epoch_seconds(pd.Series(["2024-01-01T00:00:00Z", "2024-01-01T01:00:00+01:00"]))
        assert list(values) == [1704067200.0, 1704067200.0]

    def test_naive_timestamps_are_utc(self):
        values = to_epoch_seconds(pd.Series(["2024-01-01T00:00:00"]))
        assert values.iloc[0] == 1704067200.0

    def test_users(self, data_dir):
        rows = prepare_users(read_table(data_dir / "users.csv", "users"))
        assert rows[0] == {
            "user_id": 1,
            "name": "Ana",
            "email": "ana@example.com",
            "created_at": 1704067200.0,
        }

    def test_items_missing_description_is_none(self, data_dir):
        rows = prepare_items(read_table(data_dir / "items.csv", "items"))
        by_id = {row["item_id"]: row for row in rows}
        assert by_id[3]["description"] is None
        assert by_id[7]["description"] == "Beef patty"
        assert by_id[7]["price"] == 9.0

    def test_items_without_description_column(self, tmp_path):
        path = tmp_path / "items.csv"
        path.write_text("item_id,name,price,category\n1,Tea,2.0,Drinks\n")
        rows = prepare_items(read_table(path, "items"))
        assert rows[0]["description"] is None

    def test_negative_price_rejected(self, tmp_path):
        path = tmp_path / "items.csv"
        path.write_text("item_id,name,price,category\n1,Tea,-2.0,Drinks\n")
        with pytest.raises(CsvImportError, match="negative"):
            prepare_items(read_table(path, "items"))

    def test_orders(self, data_dir):
        rows = prepare_orders(read_table(data_dir / "orders.csv", "orders"))
        assert [row["order_id"] for row in rows] == [100, 101]
        assert rows[0]["total_amount"] == 16.5

    def test_duplicate_order_lines_are_summed(self, data_dir):
        rows = prepare_order_items(read_table(data_dir / "order_items.csv", "order_items"))
        assert {(r["order_id"], r["item_id"]): r["quantity"] for r in rows} == {
            (100, 3): 2,
            (100, 7): 1,
            (101, 7): 1,
        }

    def test_zero_quantity_rejected(self, tmp_path):
        path = tmp_path / "order_items.csv"
        path.write_text("order_id,item_id,quantity\n1,1,0\n")
        with pytest.raises(CsvImportError):
            prepare_order_items(read_table(path, "order_items"))


class TestReadTable:
    def test_missing_file(self, tmp_path):
        with pytest.raises(CsvImportError, match="Missing users file"):
            read_table(tmp_path / "users.csv", "users")

    def test_missing_columns(self, tmp_path):
        path = tmp_path / "orders.csv"
        path.write_text("order_id,user_id\n1,1\n")
        with pytest.raises(CsvImportError, match="created_at"):
            read_table(path, "orders")


class TestCsvImporter:
    @pytest.fixture
    def graph(self):
        graph = MagicMock()
        graph.execute_write = AsyncMock(return_value=WriteSummary())
        return graph

    @pytest.fixture
    def builder(self):
        builder = MagicMock()
        builder.rebuild_all = AsyncMock(
            return_value=AggregationSummary(orders=2, user_item_edges=3, co_occurrence_pairs=1, elapsed_seconds=0.1)
        )
        return builder

    @pytest.mark.asyncio
    async def test_import_all_order_and_rebuild(self, data_dir, graph, builder):
        importer = CsvImporter(graph, builder, data_dir=data_dir)

        summary = await importer.import_all()

        queries = [c[0][0] for c in graph.execute_write.call_args_list]
        assert "DETACH DELETE" in queries[0]
        labels = ["(u:User", "(i:Item", "(o:Order", "HAS_ITEM"]
        positions = [next(i for i, q in enumerate(queries) if label in q and "UNWIND" in q) for label in labels]
        assert positions == sorted(positions)
        builder.rebuild_all.assert_awaited_once()
        assert summary.orders == 2

    @pytest.mark.asyncio
    async def test_import_without_clear_or_rebuild(self, data_dir, graph, builder):
        importer = CsvImporter(graph, builder, data_dir=data_dir)

        summary = await importer.import_all(clear_existing=False, rebuild=False)

        assert summary is None
        assert not any("DETACH DELETE" in c[0][0] for c in graph.execute_write.call_args_list)
        builder.rebuild_all.assert_not_called()

    @pytest.mark.asyncio
    async def test_batches_rows(self, data_dir, graph, builder):
        importer = CsvImporter(graph, builder, data_dir=data_dir, batch_size=1)

        count = await importer.import_users()

        assert count == 2
        assert graph.execute_write.call_count == 2
        assert graph.execute_write.call_args[0][1]["rows"][0]["user_id"] == 2

    @pytest.mark.asyncio
    async def test_missing_file_aborts_before_rebuild(self, tmp_path, graph, builder):
        (tmp_path / "users.csv").write_text(USERS_CSV)
        importer = CsvImporter(graph, builder, data_dir=tmp_path)

        with pytest.raises(CsvImportError):
            await importer.import_all(clear_existing=False)
        builder.rebuild_all.assert_not_called()
