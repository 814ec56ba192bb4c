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
FastAPI dependencies for the HTTP interface.
"""

import logging

from fastapi import Depends, HTTPException

from ..config import settings
from ..graph.aggregation import AggregationBuilder
from ..graph.client import GraphClient
from ..services.recommendation_service import RecommendationService
from ..shared_graph import get_graph_client

logger = logging.getLogger(__name__)

# One builder per process so its lock serialises rebuilds and order updates
_builder: AggregationBuilder | None = None


def require_graph_client(graph: GraphClient | None = Depends(get_graph_client)) -> GraphClient:
    """The shared graph client, or 503 if the graph layer is not up."""
    if graph is None:
        raise HTTPException(status_code=503, detail="Graph client unavailable. Recommendations require FalkorDB.")
    return graph


def get_recommendation_service(graph: GraphClient = Depends(require_graph_client)) -> RecommendationService:
    """Get a RecommendationService bound to the shared graph client."""
    return RecommendationService(
        graph,
        trend_days=settings.recommend.trend_window_days,
        new_user_threshold=settings.recommend.new_user_order_threshold,
    )


def get_aggregation_builder(graph: GraphClient = Depends(require_graph_client)) -> AggregationBuilder:
    """Get the process-wide AggregationBuilder."""
    global _builder
    if _builder is None:
        _builder = AggregationBuilder(
            graph,
            batch_size=settings.recommend.rebuild_batch_size,
            lock_timeout=settings.recommend.aggregation_lock_timeout,
            lock_wait=settings.recommend.aggregation_lock_wait,
        )
    return _builder
