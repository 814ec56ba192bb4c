"""Shared Pydantic types for reuse across models.

Centralises id, quantity and weight constraints so the domain models and the
row records read back from the graph agree on what a valid value is.
"""

from __future__ import annotations

from typing import Annotated

from pydantic import Field

# ---------------------------------------------------------------------------
# Identifiers and counts
# ---------------------------------------------------------------------------

DbId = Annotated[int, Field(ge=0)]
"""Integer primary key carried on every node as ``db_id``."""

Quantity = Annotated[int, Field(ge=1)]
"""Line-item quantity on a HAS_ITEM edge."""

NonNegativeInt = Annotated[int, Field(ge=0)]
"""Integer ≥ 0, for counts."""


# ---------------------------------------------------------------------------
# Numeric types
# ---------------------------------------------------------------------------

NonNegativeFloat = Annotated[float, Field(ge=0.0)]
"""Float ≥ 0 for prices, amounts and hybrid weights."""
