"""Categories API router.

- GET  /categories - All categories, ordered by name
- POST /categories - Create a category (409 on duplicate name)
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from petitionhub.api.deps import InvalidatorDep, RepositoriesDep, ResponseCacheDep, SettingsDep
from petitionhub.api.errors import ConflictError
from petitionhub.api.responses import json_response
from petitionhub.models import Category, CreateCategoryInput
from petitionhub.persistence.repositories import DuplicateRecordError

router = APIRouter(prefix="/categories", tags=["categories"])


@router.get("")
async def list_categories(
    request: Request,
    cache: ResponseCacheDep,
    repos: RepositoriesDep,
    config: SettingsDep,
) -> Response:
    async def compute_fresh() -> list[Category]:
        return await repos.categories.list_all()

    return await cache.handle(request, compute_fresh, config.ttl_categories)


@router.post("", status_code=201)
async def create_category(
    data: CreateCategoryInput,
    repos: RepositoriesDep,
    invalidator: InvalidatorDep,
) -> Response:
    try:
        category = await repos.categories.create(data)
    except DuplicateRecordError as e:
        raise ConflictError(str(e)) from e
    await repos.commit()

    await invalidator.category_created()
    return json_response(category, status_code=201)
