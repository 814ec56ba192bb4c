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
Catalog endpoints: menu items and users for pickers in the UI.
"""

import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel

from ...graph.client import GraphStoreError
from ...models.recommendation import Item, User
from ...services.recommendation_service import RecommendationService
from ..dependencies import get_recommendation_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["catalog"])


class ItemListResponse(BaseModel):
    items: list[Item]
    count: int


class UserListResponse(BaseModel):
    users: list[User]
    count: int


@router.get("/items", response_model=ItemListResponse)
async def list_items(
    category: str | None = None,
    service: RecommendationService = Depends(get_recommendation_service),
) -> ItemListResponse:
    """All menu items (ordered by category, name), or one category's items."""
    try:
        items = await service.get_items_by_category(category) if category else await service.get_all_items()
    except GraphStoreError as e:
        logger.error(f"Failed to list items: {e}")
        raise HTTPException(status_code=500, detail="Failed to get items") from e
    return ItemListResponse(items=items, count=len(items))


@router.get("/users", response_model=UserListResponse)
async def list_users(
    service: RecommendationService = Depends(get_recommendation_service),
) -> UserListResponse:
    try:
        users = await service.get_all_users()
    except GraphStoreError as e:
        logger.error(f"Failed to list users: {e}")
        raise HTTPException(status_code=500, detail="Failed to get users") from e
    return UserListResponse(users=users, count=len(users))
