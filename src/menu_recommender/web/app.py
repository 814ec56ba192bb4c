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
FastAPI application for the menu recommender.

The graph client is created in the lifespan hook and shared by all requests.
If FalkorDB is unreachable at startup the app still serves ``/health``;
graph-backed endpoints answer 503 until the process is restarted.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .. import __version__
from ..config import settings
from ..shared_graph import close_graph, get_graph_client, initialize_graph
from .api.catalog import router as catalog_router
from .api.manage import router as manage_router
from .api.recommendations import router as recommendations_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Initialize the shared graph client and close it on shutdown."""
    try:
        await initialize_graph()
        logger.info("Graph client ready")
    except Exception as e:
        logger.warning(f"Graph client initialization failed, serving without graph: {e}")

    try:
        yield
    finally:
        logger.info("Shutting down menu recommender...")
        await close_graph()


def create_app() -> FastAPI:
    app = FastAPI(title="Menu Recommender", version=__version__, lifespan=lifespan)

    origins = [origin.strip() for origin in settings.http.cors_origins.split(",") if origin.strip()]
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["*"],
    )

    app.include_router(recommendations_router, prefix="/api")
    app.include_router(catalog_router, prefix="/api")
    app.include_router(manage_router, prefix="/api")

    @app.get("/health", summary="Health Check")
    async def health() -> dict[str, str]:
        graph = get_graph_client()
        if graph is None or not await graph.health():
            return {"status": "degraded", "message": "Graph store unavailable"}
        return {"status": "ok", "message": "Menu recommendation API is running"}

    return app


app = create_app()


def main():
    """Main entry point for the HTTP server."""
    logging.basicConfig(level=logging.INFO)
    host, port = settings.http.host, settings.http.port
    logger.info(f"Starting menu recommender on {host}:{port}")
    uvicorn.run(app, host=host, port=port)


if __name__ == "__main__":
    main()
