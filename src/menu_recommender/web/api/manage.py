# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Management endpoints for the HTTP interface.

Exposes derived-edge maintenance: full rebuild, incremental order
application, and import status counts.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...graph.aggregation import AggregationBuilder
from ...graph.client import GraphStoreError
from ..dependencies import get_aggregation_builder

router = APIRouter(prefix="/manage", tags=["management"])
logger = logging.getLogger(__name__)


class RebuildResponse(BaseModel):
    """Response model for a full rebuild."""

    success: bool
    orders: int
    user_item_edges: int
    co_occurrence_pairs: int
    elapsed_seconds: float


class ApplyOrderResponse(BaseModel):
    """Response model for incremental order application."""

    order_id: int
    applied: bool
    message: str


class ImportStatusResponse(BaseModel):
    users: int
    items: int
    orders: int
    has_ordered: int
    ordered_along_with: int


@router.post("/rebuild", response_model=RebuildResponse)
async def rebuild_derived_edges(
    builder: AggregationBuilder = Depends(get_aggregation_builder),
) -> RebuildResponse:
    """Recompute HAS_ORDERED and ORDERED_ALONG_WITH from raw order facts."""
    try:
        summary = await builder.rebuild_all()
    except GraphStoreError as e:
        logger.error(f"Rebuild failed: {e}")
        raise HTTPException(status_code=500, detail=f"Rebuild failed: {str(e)}") from e

    return RebuildResponse(
        success=True,
        orders=summary.orders,
        user_item_edges=summary.user_item_edges,
        co_occurrence_pairs=summary.co_occurrence_pairs,
        elapsed_seconds=summary.elapsed_seconds,
    )


@router.post("/orders/{order_id}/apply", response_model=ApplyOrderResponse)
async def apply_order(
    order_id: int,
    builder: AggregationBuilder = Depends(get_aggregation_builder),
) -> ApplyOrderResponse:
    """Fold a newly recorded order into the derived edges. Replays are no-ops."""
    try:
        applied = await builder.apply_new_order(order_id)
    except GraphStoreError as e:
        logger.error(f"Applying order {order_id} failed: {e}")
        raise HTTPException(status_code=500, detail=f"Applying order failed: {str(e)}") from e

    message = "Order applied" if applied else "Order already aggregated or has no items"
    return ApplyOrderResponse(order_id=order_id, applied=applied, message=message)


@router.get("/status", response_model=ImportStatusResponse)
async def import_status(
    builder: AggregationBuilder = Depends(get_aggregation_builder),
) -> ImportStatusResponse:
    try:
        status = await builder.get_import_status()
    except GraphStoreError as e:
        logger.error(f"Failed to get import status: {e}")
        raise HTTPException(status_code=500, detail="Failed to get import status") from e
    return ImportStatusResponse(**status)
