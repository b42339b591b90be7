"""Pydantic records and inputs for the petition domain.

Records mirror the relational rows returned by the repositories; inputs are
the request bodies accepted by the write endpoints. Identity is opaque: user
ids are plain strings supplied by the identity provider.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class PetitionType(str, Enum):
    LOCAL = "local"
    NATIONAL = "national"


class PetitionStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    COMPLETED = "completed"
    CLOSED = "closed"


class Record(BaseModel):
    model_config = ConfigDict(from_attributes=True)


class User(Record):
    id: str
    first_name: str
    last_name: str
    email: str
    anonymous: bool = False
    created_at: datetime | None = None
    updated_at: datetime | None = None


class Category(Record):
    id: int
    name: str
    description: str | None = None
    created_at: datetime | None = None


class Creator(BaseModel):
    first_name: str
    last_name: str
    anonymous: bool = False


class Petition(Record):
    id: int
    title: str
    description: str
    slug: str | None = None
    type: PetitionType
    image_url: str | None = None
    target_count: int
    current_count: int = 0
    status: PetitionStatus
    location: str | None = None
    due_date: datetime | None = None
    created_by: str
    created_at: datetime | None = None
    updated_at: datetime | None = None


class PetitionWithDetails(Petition):
    creator: Creator
    categories: list[Category] = Field(default_factory=list)


class Signature(Record):
    id: int
    petition_id: int
    user_id: str
    comment: str | None = None
    anonymous: bool = False
    created_at: datetime | None = None


class CreateUserInput(BaseModel):
    id: str | None = None
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: str = Field(min_length=3)
    anonymous: bool = False


class CreatePetitionInput(BaseModel):
    title: str = Field(min_length=1)
    description: str = Field(min_length=1)
    type: PetitionType
    image_url: str | None = None
    target_count: int | None = Field(default=None, gt=0)
    location: str | None = None
    due_date: datetime | None = None
    created_by: str = Field(min_length=1)
    category_ids: list[int] = Field(default_factory=list)


class UpdatePetitionInput(BaseModel):
    title: str | None = Field(default=None, min_length=1)
    description: str | None = Field(default=None, min_length=1)
    type: PetitionType | None = None
    image_url: str | None = None
    target_count: int | None = Field(default=None, gt=0)
    location: str | None = None
    due_date: datetime | None = None
    status: PetitionStatus | None = None
    category_ids: list[int] | None = None


class CreateSignatureInput(BaseModel):
    petition_id: int
    user_id: str = Field(min_length=1)
    comment: str | None = None
    anonymous: bool = False
    ip_address: str | None = None


class CreateCategoryInput(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
