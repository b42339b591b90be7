"""Users API router.

- POST /users                  - Register a user (409 on duplicate email)
- GET  /users/{id}             - User profile
- GET  /users/{id}/signatures  - Ids of the petitions the user has signed
- GET  /users/{id}/petitions   - Petitions the user created

User ids are opaque strings issued by the identity provider.
"""

from __future__ import annotations

from fastapi import APIRouter, Request, Response

from petitionhub.api.deps import RepositoriesDep, ResponseCacheDep, SettingsDep, parse_user_id
from petitionhub.api.errors import ConflictError, NotFoundError
from petitionhub.api.responses import json_response
from petitionhub.models import CreateUserInput, PetitionWithDetails, User
from petitionhub.persistence.repositories import DuplicateRecordError

router = APIRouter(prefix="/users", tags=["users"])


@router.post("", status_code=201)
async def create_user(data: CreateUserInput, repos: RepositoriesDep) -> Response:
    if await repos.users.get_by_email(data.email) is not None:
        raise ConflictError(f"A user with email {data.email!r} already exists")

    try:
        user = await repos.users.create(data)
    except DuplicateRecordError as e:
        raise ConflictError(str(e)) from e
    await repos.commit()
    return json_response(user, status_code=201)


@router.get("/{user_id}")
async def get_user(
    user_id: str,
    request: Request,
    cache: ResponseCacheDep,
    repos: RepositoriesDep,
    config: SettingsDep,
) -> Response:
    uid = parse_user_id(user_id)

    async def compute_fresh() -> User:
        user = await repos.users.get(uid)
        if user is None:
            raise NotFoundError("User", uid)
        return user

    return await cache.handle(request, compute_fresh, config.ttl_user_detail)


@router.get("/{user_id}/signatures")
async def get_user_signatures(
    user_id: str,
    request: Request,
    cache: ResponseCacheDep,
    repos: RepositoriesDep,
    config: SettingsDep,
) -> Response:
    uid = parse_user_id(user_id)

    async def compute_fresh() -> list[int]:
        # Petition ids only; comments and timestamps stay private
        signatures = await repos.signatures.list_by_user(uid)
        return [signature.petition_id for signature in signatures]

    return await cache.handle(request, compute_fresh, config.ttl_user_signatures)


@router.get("/{user_id}/petitions")
async def get_user_petitions(
    user_id: str,
    request: Request,
    cache: ResponseCacheDep,
    repos: RepositoriesDep,
    config: SettingsDep,
) -> Response:
    uid = parse_user_id(user_id)

    async def compute_fresh() -> list[PetitionWithDetails]:
        return await repos.petitions.list_by_user(uid)

    return await cache.handle(request, compute_fresh, config.ttl_user_petitions)
