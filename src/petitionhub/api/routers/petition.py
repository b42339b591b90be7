"""Petition detail by slug (the shareable public URL)."""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from petitionhub.api.deps import RepositoriesDep, ResponseCacheDep, SettingsDep
from petitionhub.api.errors import NotFoundError, ValidationError
from petitionhub.models import PetitionWithDetails

router = APIRouter(prefix="/petition", tags=["petitions"])


@router.get("/{slug}")
async def get_petition_by_slug(
    slug: str,
    request: Request,
    cache: ResponseCacheDep,
    repos: RepositoriesDep,
    config: SettingsDep,
) -> Response:
    if not slug.strip():
        raise ValidationError("Invalid petition slug")

    async def compute_fresh() -> PetitionWithDetails:
        petition = await repos.petitions.get_by_slug(slug)
        if petition is None:
            raise NotFoundError("Petition", slug)
        return petition

    return await cache.handle(request, compute_fresh, config.ttl_petition_detail)
