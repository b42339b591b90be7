"""Petitions API router.

- GET  /petitions                   - List petitions (type filter, paginated)
- POST /petitions                   - Create a draft petition
- GET  /petitions/{id}              - Petition with creator and categories
- PUT  /petitions/{id}              - Update a petition
- POST /petitions/{id}/publish      - Make a petition active
- GET  /petitions/{id}/signatures   - Signatures that carry a comment

Reads go through the response cache; writes commit and then invalidate the
affected cache prefixes before responding.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Query, Request, Response

from petitionhub.api.deps import (
    InvalidatorDep,
    RepositoriesDep,
    ResponseCacheDep,
    SettingsDep,
    parse_int_id,
)
from petitionhub.api.errors import NotFoundError
from petitionhub.api.responses import json_response
from petitionhub.models import (
    CreatePetitionInput,
    Petition,
    PetitionType,
    PetitionWithDetails,
    Signature,
    UpdatePetitionInput,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/petitions", tags=["petitions"])


@router.get("")
async def list_petitions(
    request: Request,
    cache: ResponseCacheDep,
    repos: RepositoriesDep,
    config: SettingsDep,
    petition_type: PetitionType | None = Query(None, alias="type"),
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
    user_id: str | None = Query(None, alias="userId"),
) -> Response:
    """List petitions, newest first.

    ``userId`` narrows the listing to one creator's petitions.
    """
    if user_id:

        async def compute_fresh() -> list[PetitionWithDetails]:
            return await repos.petitions.list_by_user(user_id)

        return await cache.handle(request, compute_fresh, config.ttl_user_petitions)

    async def compute_all() -> list[PetitionWithDetails]:
        return await repos.petitions.list_all(
            limit=limit, offset=offset, petition_type=petition_type
        )

    return await cache.handle(request, compute_all, config.ttl_petitions_list)


@router.post("", status_code=201)
async def create_petition(
    data: CreatePetitionInput,
    repos: RepositoriesDep,
    invalidator: InvalidatorDep,
) -> Response:
    petition = await repos.petitions.create(data)
    await repos.commit()

    logger.info(f"Petition {petition.id} created by {petition.created_by}")
    await invalidator.petition_created(petition.created_by)
    return json_response(petition, status_code=201)


@router.get("/{petition_id}")
async def get_petition(
    petition_id: str,
    request: Request,
    cache: ResponseCacheDep,
    repos: RepositoriesDep,
    config: SettingsDep,
) -> Response:
    pid = parse_int_id(petition_id, "petition")

    async def compute_fresh() -> PetitionWithDetails:
        petition = await repos.petitions.get_by_id(pid)
        if petition is None:
            raise NotFoundError("Petition", pid)
        return petition

    return await cache.handle(request, compute_fresh, config.ttl_petition_detail)


@router.put("/{petition_id}")
async def update_petition(
    petition_id: str,
    data: UpdatePetitionInput,
    repos: RepositoriesDep,
    invalidator: InvalidatorDep,
) -> Response:
    pid = parse_int_id(petition_id, "petition")

    # A retitled petition gets a new slug; the whole petition: namespace is dropped
    petition = await repos.petitions.update(pid, data)
    if petition is None:
        raise NotFoundError("Petition", pid)
    await repos.commit()

    await invalidator.petition_updated(petition)
    return json_response(petition)


@router.post("/{petition_id}/publish")
async def publish_petition(
    petition_id: str,
    repos: RepositoriesDep,
    invalidator: InvalidatorDep,
) -> Response:
    pid = parse_int_id(petition_id, "petition")

    petition: Petition | None = await repos.petitions.publish(pid)
    if petition is None:
        raise NotFoundError("Petition", pid)
    await repos.commit()

    logger.info(f"Petition {pid} published")
    await invalidator.petition_published(petition)
    return json_response(petition)


@router.get("/{petition_id}/signatures")
async def list_petition_signatures(
    petition_id: str,
    request: Request,
    cache: ResponseCacheDep,
    repos: RepositoriesDep,
    config: SettingsDep,
    limit: int = Query(50, ge=1, le=100),
    offset: int = Query(0, ge=0),
) -> Response:
    pid = parse_int_id(petition_id, "petition")

    async def compute_fresh() -> list[Signature]:
        return await repos.signatures.list_by_petition(pid, limit=limit, offset=offset)

    return await cache.handle(request, compute_fresh, config.ttl_petition_signatures)
