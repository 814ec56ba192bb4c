"""
Graph schema for the restaurant order graph.

Defines the Cypher schema for FalkorDB: node labels, relationship types and
indices. The derived relationship types are the ones a full rebuild wipes. Schema is applied idempotently on startup.

Node Labels:
    :User   - A customer (keyed by db_id)
    :Item   - A menu item (keyed by db_id)
    :Order  - A placed order (keyed by db_id)

Raw relationship types (written once by import):
    :HAS_MADE   - User -> Order
    :HAS_ITEM   - Order -> Item, carries ``quantity``

Derived relationship types (owned by the aggregation builder):
    :HAS_ORDERED         - User -> Item, ``times`` = summed quantity
    :ORDERED_ALONG_WITH  - Item <-> Item, ``times`` = co-occurring orders,
                           always written as a symmetric pair

Indices:
    User(db_id), Item(db_id), Order(db_id) - id lookup
    Item(category)                         - catalog browsing
    Order(created_at)                      - trend window scans
"""

# Relationships computed from raw facts. Only graph/aggregation.py writes these.
DERIVED_RELATION_TYPES: frozenset[str] = frozenset({"HAS_ORDERED", "ORDERED_ALONG_WITH"})

SCHEMA_STATEMENTS: list[str] = [
    "CREATE INDEX IF NOT EXISTS FOR (u:User) ON (u.db_id)",
    "CREATE INDEX IF NOT EXISTS FOR (i:Item) ON (i.db_id)",
    "CREATE INDEX IF NOT EXISTS FOR (o:Order) ON (o.db_id)",
    "CREATE INDEX IF NOT EXISTS FOR (i:Item) ON (i.category)",
    "CREATE INDEX IF NOT EXISTS FOR (o:Order) ON (o.created_at)",
]
