"""Mirrored project table."""

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from jirasync.db.base import Base, SyncedRecordMixin


class ProjectRow(Base, SyncedRecordMixin):
    __tablename__ = "sync_projects"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Created ahead of its own project event to satisfy an issue's foreign key
    is_placeholder: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
