from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import orjson
from fastapi import Response
from pydantic import BaseModel

JSON_MEDIA_TYPE = "application/json"


def _default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json")
    raise TypeError(f"Type is not JSON serializable: {type(obj).__name__}")


def dump_payload(payload: Any) -> bytes:
    """Serialize a handler payload (dicts, lists, Pydantic models) to JSON bytes."""
    return orjson.dumps(payload, default=_default)


def json_bytes_response(
    payload: bytes,
    status_code: int | None = None,
    headers: Mapping[str, str] | None = None,
) -> Response:
    if status_code is None:
        return Response(content=payload, media_type=JSON_MEDIA_TYPE, headers=headers)
    return Response(
        content=payload, media_type=JSON_MEDIA_TYPE, status_code=status_code, headers=headers
    )


def json_response(
    payload: Any,
    status_code: int | None = None,
    headers: Mapping[str, str] | None = None,
) -> Response:
    return json_bytes_response(dump_payload(payload), status_code=status_code, headers=headers)
