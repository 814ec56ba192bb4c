#!/usr/bin/env python3
"""
Load CSV order history into FalkorDB and maintain derived edges.

Usage:
    # Import users/items/orders/order_items from ./data and rebuild derived edges
    python scripts/import_data.py

    # Import from another directory, keeping whatever is already in the graph
    python scripts/import_data.py --data-dir /srv/menu-data --no-clear

    # Recompute HAS_ORDERED / ORDERED_ALONG_WITH only
    python scripts/import_data.py --rebuild-only

    # Fold one newly recorded order into the derived edges
    python scripts/import_data.py --apply-order 1042

    # Show node and edge counts
    python scripts/import_data.py --status
"""

import argparse
import asyncio
import logging
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from menu_recommender.config import settings  # noqa: E402
from menu_recommender.graph.aggregation import AggregationBuilder  # noqa: E402
from menu_recommender.graph.client import GraphClient, GraphStoreError  # noqa: E402
from menu_recommender.graph.importer import CsvImporter, CsvImportError  # noqa: E402

logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")
logger = logging.getLogger(__name__)


async def show_status(builder: AggregationBuilder) -> None:
    status = await builder.get_import_status()
    logger.info("Graph state:")
    logger.info(f"  Users: {status['users']:,}")
    logger.info(f"  Items: {status['items']:,}")
    logger.info(f"  Orders: {status['orders']:,}")
    logger.info(f"  HAS_ORDERED edges: {status['has_ordered']:,}")
    logger.info(f"  ORDERED_ALONG_WITH edges: {status['ordered_along_with']:,}")


async def main() -> int:
    parser = argparse.ArgumentParser(description="Import menu order history into FalkorDB")
    mode = parser.add_mutually_exclusive_group()
    mode.add_argument("--rebuild-only", action="store_true", help="Only rebuild derived edges")
    mode.add_argument("--apply-order", type=int, metavar="ID", help="Apply a single new order incrementally")
    mode.add_argument("--status", action="store_true", help="Print node and edge counts")
    parser.add_argument("--data-dir", type=Path, default=settings.importer.data_dir, help="Directory with the CSV files")
    parser.add_argument("--no-clear", action="store_true", help="Keep existing graph contents when importing")
    parser.add_argument("--no-rebuild", action="store_true", help="Skip the derived-edge rebuild after importing")
    parser.add_argument("--falkordb-host", default=settings.falkordb.host, help="FalkorDB host")
    parser.add_argument("--falkordb-port", type=int, default=settings.falkordb.port, help="FalkorDB port")
    args = parser.parse_args()

    password = settings.falkordb.password
    graph_client = GraphClient(
        host=args.falkordb_host,
        port=args.falkordb_port,
        password=password.get_secret_value() if password else None,
        graph_name=settings.falkordb.graph_name,
        max_connections=settings.falkordb.max_connections,
    )
    builder = AggregationBuilder(
        graph_client,
        batch_size=settings.recommend.rebuild_batch_size,
        lock_timeout=settings.recommend.aggregation_lock_timeout,
        lock_wait=settings.recommend.aggregation_lock_wait,
    )

    try:
        await graph_client.initialize()
        start_time = time.time()

        if args.status:
            await show_status(builder)
            return 0

        if args.apply_order is not None:
            applied = await builder.apply_new_order(args.apply_order)
            if applied:
                logger.info(f"Order {args.apply_order} applied to derived edges")
            else:
                logger.info(f"Order {args.apply_order} was already aggregated or has no items; nothing to do")
            return 0

        if args.rebuild_only:
            await builder.rebuild_all()
        else:
            importer = CsvImporter(
                graph_client,
                builder,
                data_dir=args.data_dir,
                batch_size=settings.recommend.rebuild_batch_size,
            )
            clear = settings.importer.clear_existing and not args.no_clear
            rebuild = settings.importer.rebuild_after_import and not args.no_rebuild
            await importer.import_all(clear_existing=clear, rebuild=rebuild)

        elapsed = time.time() - start_time
        logger.info("=" * 60)
        logger.info(f"Done in {elapsed:.1f}s")
        logger.info("=" * 60)
        await show_status(builder)
        return 0

    except CsvImportError as e:
        logger.error(f"Import failed: {e}")
        return 1
    except GraphStoreError as e:
        logger.error(f"Graph operation failed: {e}")
        return 1
    finally:
        await graph_client.close()


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
