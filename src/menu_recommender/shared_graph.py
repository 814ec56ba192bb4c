"""
Shared graph manager.

Holds the single GraphClient (and its connection pool) used by the HTTP API
and the import script, so the pool is created once per process.
"""

import asyncio
import logging
from threading import Lock
from typing import Optional

from .graph.client import GraphClient
from .graph.factory import create_graph_client

logger = logging.getLogger(__name__)


class GraphManager:
    """Manages a singleton GraphClient for shared access."""

    _instance: Optional["GraphManager"] = None
    _lock: Lock = Lock()

    def __init__(self):
        self._graph_client: GraphClient | None = None
        self._initialization_lock: asyncio.Lock = asyncio.Lock()

    @classmethod
    def get_instance(cls) -> "GraphManager":
        """Get singleton instance of GraphManager."""
        if cls._instance is None:
            with cls._lock:
                if cls._instance is None:
                    cls._instance = cls()
                    logger.info("Created new GraphManager singleton instance")
        return cls._instance

    async def get_graph_client(self) -> GraphClient:
        """Get or create the shared graph client. Concurrent callers share one initialization."""
        if self._graph_client is not None:
            return self._graph_client

        async with self._initialization_lock:
            if self._graph_client is None:
                logger.info("Initializing shared graph client...")
                self._graph_client = await create_graph_client()
            return self._graph_client

    @property
    def graph_client(self) -> GraphClient | None:
        return self._graph_client

    async def close(self) -> None:
        if self._graph_client is not None:
            await self._graph_client.close()
            self._graph_client = None


async def initialize_graph() -> GraphClient:
    """Create (once) and return the shared graph client."""
    return await GraphManager.get_instance().get_graph_client()


def get_graph_client() -> GraphClient | None:
    """The shared graph client, or None if it has not been initialized."""
    return GraphManager.get_instance().graph_client


async def close_graph() -> None:
    await GraphManager.get_instance().close()
