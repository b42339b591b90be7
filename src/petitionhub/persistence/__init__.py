"""Persistence layer for PetitionHub.

This module provides:
- Async PostgreSQL engine and session factory
- SQLAlchemy ORM tables for users, petitions, signatures and categories
- Repositories returning Pydantic records

The relational store is the source of truth; the response cache only ever
holds serialized copies of what these repositories return.
"""

from petitionhub.persistence.db import get_engine, init_db
from petitionhub.persistence.repositories import (
    CategoryRepository,
    DuplicateRecordError,
    PetitionRepository,
    Repositories,
    SignatureRepository,
    UserRepository,
)
from petitionhub.persistence.tables import (
    CategoryTable,
    PetitionCategoryTable,
    PetitionTable,
    SignatureTable,
    UserTable,
)

__all__ = [
    # DB
    "get_engine",
    "init_db",
    # Tables
    "UserTable",
    "PetitionTable",
    "SignatureTable",
    "CategoryTable",
    "PetitionCategoryTable",
    # Repositories
    "PetitionRepository",
    "SignatureRepository",
    "CategoryRepository",
    "UserRepository",
    "Repositories",
    "DuplicateRecordError",
]
