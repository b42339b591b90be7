"""Signatures API router.

POST /signatures records one signature per user per petition. The duplicate
check reads the database, never the cache; the unique constraint on
(petition_id, user_id) catches concurrent double submissions.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request, Response

from petitionhub.api.deps import InvalidatorDep, RepositoriesDep
from petitionhub.api.errors import ConflictError, NotFoundError
from petitionhub.api.responses import json_response
from petitionhub.models import CreateSignatureInput
from petitionhub.persistence.repositories import DuplicateRecordError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/signatures", tags=["signatures"])

DUPLICATE_SIGNATURE_MESSAGE = "You have already signed this petition"


@router.post("", status_code=201)
async def create_signature(
    data: CreateSignatureInput,
    request: Request,
    repos: RepositoriesDep,
    invalidator: InvalidatorDep,
) -> Response:
    petition = await repos.petitions.get_record(data.petition_id)
    if petition is None:
        raise NotFoundError("Petition", data.petition_id)

    if await repos.signatures.has_signed(data.petition_id, data.user_id):
        raise ConflictError(DUPLICATE_SIGNATURE_MESSAGE)

    if data.ip_address is None and request.client is not None:
        data = data.model_copy(update={"ip_address": request.client.host})

    try:
        signature = await repos.signatures.create(data)
    except DuplicateRecordError as e:
        raise ConflictError(DUPLICATE_SIGNATURE_MESSAGE) from e
    await repos.commit()

    logger.info(f"Signature {signature.id} recorded for petition {data.petition_id}")
    await invalidator.signature_created(data.user_id, petition)
    return json_response(signature, status_code=201)
