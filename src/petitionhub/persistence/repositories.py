"""Repository pattern for petition persistence.

Getters return a Pydantic record or None when the row does not exist;
handlers turn None into a 404. Writes that violate a uniqueness constraint
raise DuplicateRecordError so handlers can answer 409 rather than 500.

Repositories never read the response cache: duplicate-signature checks and
every other write decision go to the database.
"""

from __future__ import annotations

import re
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import uuid4

from sqlalchemy import Select, and_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from petitionhub.models import (
    Category,
    CreateCategoryInput,
    CreatePetitionInput,
    CreateSignatureInput,
    CreateUserInput,
    Creator,
    Petition,
    PetitionStatus,
    PetitionType,
    PetitionWithDetails,
    Signature,
    UpdatePetitionInput,
    User,
)
from petitionhub.persistence.tables import (
    CategoryTable,
    PetitionCategoryTable,
    PetitionTable,
    SignatureTable,
    UserTable,
)

DEFAULT_TARGET_COUNT = 1000
DEFAULT_DURATION_DAYS = 60

_NON_WORD = re.compile(r"[^\w\s-]")
_SEPARATORS = re.compile(r"[\s_-]+")


class DuplicateRecordError(Exception):
    """A write collided with a uniqueness constraint."""


def generate_slug(title: str, petition_id: int | None = None) -> str:
    """URL-friendly slug from a title, suffixed with the id when known.

    >>> generate_slug("Save the Park!", 42)
    'save-the-park-42'
    """
    base = _SEPARATORS.sub("-", _NON_WORD.sub("", title.lower().strip())).strip("-")
    if petition_id is None:
        return base
    return f"{base}-{petition_id}" if base else str(petition_id)


def default_due_date(days: int = DEFAULT_DURATION_DAYS) -> datetime:
    return datetime.now(timezone.utc) + timedelta(days=days)


class BaseRepository:
    """Base repository holding the session."""

    def __init__(self, session: AsyncSession):
        self.session = session


class UserRepository(BaseRepository):
    async def get(self, user_id: str) -> User | None:
        row = await self.session.get(UserTable, user_id)
        return User.model_validate(row) if row is not None else None

    async def get_by_email(self, email: str) -> User | None:
        result = await self.session.execute(select(UserTable).where(UserTable.email == email))
        row = result.scalar_one_or_none()
        return User.model_validate(row) if row is not None else None

    async def create(self, data: CreateUserInput) -> User:
        row = UserTable(
            id=data.id or uuid4().hex,
            first_name=data.first_name,
            last_name=data.last_name,
            email=data.email,
            anonymous=data.anonymous,
        )
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateRecordError(f"User with email '{data.email}' already exists") from e
        await self.session.refresh(row)
        return User.model_validate(row)


class CategoryRepository(BaseRepository):
    async def list_all(self) -> list[Category]:
        result = await self.session.execute(select(CategoryTable).order_by(CategoryTable.name))
        return [Category.model_validate(row) for row in result.scalars()]

    async def create(self, data: CreateCategoryInput) -> Category:
        row = CategoryTable(name=data.name, description=data.description)
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateRecordError(f"Category '{data.name}' already exists") from e
        await self.session.refresh(row)
        return Category.model_validate(row)

    async def for_petitions(self, petition_ids: Sequence[int]) -> dict[int, list[Category]]:
        """Categories keyed by petition id, fetched in one query."""
        if not petition_ids:
            return {}
        stmt = (
            select(PetitionCategoryTable.petition_id, CategoryTable)
            .join(CategoryTable, CategoryTable.id == PetitionCategoryTable.category_id)
            .where(PetitionCategoryTable.petition_id.in_(petition_ids))
            .order_by(CategoryTable.name)
        )
        result = await self.session.execute(stmt)
        categories: dict[int, list[Category]] = {pid: [] for pid in petition_ids}
        for petition_id, row in result.all():
            categories[petition_id].append(Category.model_validate(row))
        return categories

    async def link(self, petition_id: int, category_ids: Sequence[int]) -> None:
        existing = await self.session.execute(
            select(PetitionCategoryTable.category_id).where(
                PetitionCategoryTable.petition_id == petition_id
            )
        )
        linked = set(existing.scalars())
        for category_id in dict.fromkeys(category_ids):
            if category_id not in linked:
                self.session.add(
                    PetitionCategoryTable(petition_id=petition_id, category_id=category_id)
                )
        await self.session.flush()


class PetitionRepository(BaseRepository):
    """Petition reads return PetitionWithDetails (creator and categories)."""

    def __init__(
        self,
        session: AsyncSession,
        default_target: int = DEFAULT_TARGET_COUNT,
        duration_days: int = DEFAULT_DURATION_DAYS,
    ):
        super().__init__(session)
        self.categories = CategoryRepository(session)
        self.default_target = default_target
        self.duration_days = duration_days

    def _detail_query(self) -> Select[Any]:
        return select(PetitionTable, UserTable).join(
            UserTable, UserTable.id == PetitionTable.created_by
        )

    async def _with_details(self, rows: Sequence[Any]) -> list[PetitionWithDetails]:
        categories = await self.categories.for_petitions([petition.id for petition, _ in rows])
        return [
            PetitionWithDetails(
                **Petition.model_validate(petition).model_dump(),
                creator=Creator(
                    first_name=user.first_name,
                    last_name=user.last_name,
                    anonymous=user.anonymous,
                ),
                categories=categories.get(petition.id, []),
            )
            for petition, user in rows
        ]

    async def _one(self, stmt: Select[Any]) -> PetitionWithDetails | None:
        result = await self.session.execute(stmt)
        row = result.first()
        if row is None:
            return None
        return (await self._with_details([row]))[0]

    async def get_by_id(self, petition_id: int) -> PetitionWithDetails | None:
        return await self._one(self._detail_query().where(PetitionTable.id == petition_id))

    async def get_by_slug(self, slug: str) -> PetitionWithDetails | None:
        return await self._one(self._detail_query().where(PetitionTable.slug == slug))

    async def get_record(self, petition_id: int) -> Petition | None:
        row = await self.session.get(PetitionTable, petition_id)
        return Petition.model_validate(row) if row is not None else None

    async def list_all(
        self,
        limit: int = 50,
        offset: int = 0,
        petition_type: PetitionType | None = None,
    ) -> list[PetitionWithDetails]:
        stmt = self._detail_query()
        if petition_type is not None:
            stmt = stmt.where(PetitionTable.type == petition_type.value)
        stmt = stmt.order_by(PetitionTable.created_at.desc()).limit(limit).offset(offset)
        result = await self.session.execute(stmt)
        return await self._with_details(result.all())

    async def list_by_user(self, user_id: str) -> list[PetitionWithDetails]:
        stmt = (
            self._detail_query()
            .where(PetitionTable.created_by == user_id)
            .order_by(PetitionTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return await self._with_details(result.all())

    async def create(self, data: CreatePetitionInput) -> Petition:
        row = PetitionTable(
            title=data.title,
            description=data.description,
            type=data.type.value,
            image_url=data.image_url,
            target_count=data.target_count or self.default_target,
            current_count=0,
            status=PetitionStatus.DRAFT.value,
            location=data.location,
            due_date=data.due_date or default_due_date(self.duration_days),
            created_by=data.created_by,
        )
        self.session.add(row)
        await self.session.flush()

        # The slug embeds the generated id
        row.slug = generate_slug(data.title, row.id)
        if data.category_ids:
            await self.categories.link(row.id, data.category_ids)
        await self.session.flush()
        await self.session.refresh(row)
        return Petition.model_validate(row)

    async def update(self, petition_id: int, data: UpdatePetitionInput) -> Petition | None:
        row = await self.session.get(PetitionTable, petition_id)
        if row is None:
            return None

        changes = data.model_dump(exclude_unset=True, exclude={"category_ids"})
        for field_name, value in changes.items():
            if isinstance(value, (PetitionType, PetitionStatus)):
                value = value.value
            setattr(row, field_name, value)
        if "title" in changes:
            row.slug = generate_slug(row.title, row.id)
        if data.category_ids is not None:
            await self.categories.link(row.id, data.category_ids)

        await self.session.flush()
        await self.session.refresh(row)
        return Petition.model_validate(row)

    async def publish(self, petition_id: int) -> Petition | None:
        """Move a petition to active; publishing twice is a no-op."""
        row = await self.session.get(PetitionTable, petition_id)
        if row is None:
            return None
        row.status = PetitionStatus.ACTIVE.value
        await self.session.flush()
        await self.session.refresh(row)
        return Petition.model_validate(row)


class SignatureRepository(BaseRepository):
    async def has_signed(self, petition_id: int, user_id: str) -> bool:
        stmt = select(SignatureTable.id).where(
            and_(SignatureTable.petition_id == petition_id, SignatureTable.user_id == user_id)
        )
        result = await self.session.execute(stmt)
        return result.first() is not None

    async def create(self, data: CreateSignatureInput) -> Signature:
        """Insert a signature and bump the petition's counter."""
        row = SignatureTable(
            petition_id=data.petition_id,
            user_id=data.user_id,
            comment=data.comment,
            anonymous=data.anonymous,
            ip_address=data.ip_address,
        )
        self.session.add(row)
        try:
            await self.session.flush()
        except IntegrityError as e:
            await self.session.rollback()
            raise DuplicateRecordError(
                f"User has already signed petition {data.petition_id}"
            ) from e

        await self.session.execute(
            update(PetitionTable)
            .where(PetitionTable.id == data.petition_id)
            .values(current_count=PetitionTable.current_count + 1)
        )
        await self.session.refresh(row)
        return Signature.model_validate(row)

    async def list_by_user(self, user_id: str) -> list[Signature]:
        stmt = (
            select(SignatureTable)
            .where(SignatureTable.user_id == user_id)
            .order_by(SignatureTable.created_at.desc())
        )
        result = await self.session.execute(stmt)
        return [Signature.model_validate(row) for row in result.scalars()]

    async def list_by_petition(
        self, petition_id: int, limit: int = 50, offset: int = 0
    ) -> list[Signature]:
        """Signatures that carry a comment, newest first."""
        stmt = (
            select(SignatureTable)
            .where(
                SignatureTable.petition_id == petition_id,
                SignatureTable.comment.is_not(None),
                SignatureTable.comment != "",
            )
            .order_by(SignatureTable.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self.session.execute(stmt)
        return [Signature.model_validate(row) for row in result.scalars()]


@dataclass
class Repositories:
    """The repositories a request works with, sharing one session."""

    petitions: PetitionRepository
    signatures: SignatureRepository
    categories: CategoryRepository
    users: UserRepository
    session: AsyncSession | None = None

    @classmethod
    def from_session(
        cls,
        session: AsyncSession,
        default_target: int = DEFAULT_TARGET_COUNT,
        duration_days: int = DEFAULT_DURATION_DAYS,
    ) -> Repositories:
        return cls(
            petitions=PetitionRepository(session, default_target, duration_days),
            signatures=SignatureRepository(session),
            categories=CategoryRepository(session),
            users=UserRepository(session),
            session=session,
        )

    async def commit(self) -> None:
        if self.session is not None:
            await self.session.commit()
