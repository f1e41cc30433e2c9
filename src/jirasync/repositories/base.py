"""Base repository with the single-record operations the sync layer consumes."""

from typing import Any, TypeVar

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from jirasync.db.base import Base
from jirasync.models.enums import EntityKind
from jirasync.models.webhook import ExternalEntityRef
from jirasync.services.id_generator import generate_id

T = TypeVar("T", bound=Base)


class BaseRepository:
    """Generic async repository for SQLAlchemy models."""

    def __init__(self, session: AsyncSession, model_class: type[T]):
        self.session = session
        self.model_class = model_class

    async def get_by_id(self, pk_field: str, pk_value: str) -> T | None:
        """Get a single record by primary key."""
        stmt = select(self.model_class).where(
            getattr(self.model_class, pk_field) == pk_value
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def create(self, **kwargs: Any) -> T:
        """Create and persist a new record."""
        row = self.model_class(**kwargs)
        self.session.add(row)
        await self.session.flush()
        return row

    async def update(self, row: T, **kwargs: Any) -> T:
        """Update an existing record."""
        for key, value in kwargs.items():
            setattr(row, key, value)
        await self.session.flush()
        return row

    async def list_by_field(self, field: str, value: Any) -> list[T]:
        """List records matching a field value."""
        stmt = select(self.model_class).where(
            getattr(self.model_class, field) == value
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())


class SyncedRecordRepository(BaseRepository):
    """Repository for records mirrored from the source system.

    Records are correlated by ``ExternalEntityRef`` only; the local ``id`` is
    an internal key and never used to match incoming snapshots.
    """

    entity_kind: EntityKind
    id_prefix: str

    async def get(self, record_id: str) -> T | None:
        return await self.get_by_id("id", record_id)

    async def find_by_external_ref(
        self, ref: ExternalEntityRef, *, for_update: bool = False
    ) -> T | None:
        """Look up a record by external id, optionally taking a row lock."""
        if ref.entity_kind != self.entity_kind:
            raise ValueError(f"{ref} is not a {self.entity_kind} reference")
        stmt = select(self.model_class).where(
            self.model_class.external_id == ref.source_system_id
        )
        if for_update:
            # Row lock on PostgreSQL; refresh any copy already in the session
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def insert(self, **kwargs: Any) -> T:
        """Insert a new record under a freshly generated local id."""
        return await self.create(id=generate_id(self.id_prefix), **kwargs)

    async def delete(self, row: T) -> None:
        """Remove a record."""
        await self.session.delete(row)
        await self.session.flush()
