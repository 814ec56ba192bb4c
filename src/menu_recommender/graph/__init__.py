"""
Graph layer for the menu recommender.

Provides the FalkorDB-backed order graph:
- Concurrent read-only strategy queries
- Single-statement atomic writes for import and aggregation
- Derived HAS_ORDERED / ORDERED_ALONG_WITH edges owned by the aggregation builder
"""

from .client import GraphClient, GraphStoreError, WriteSummary
from .schema import DERIVED_RELATION_TYPES

__all__ = [
    "GraphClient",
    "GraphStoreError",
    "WriteSummary",
    "DERIVED_RELATION_TYPES",
]
