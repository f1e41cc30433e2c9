"""Read models for mirrored records."""

from datetime import datetime

from pydantic import BaseModel, ConfigDict


class _MirroredRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    external_id: str
    key: str | None = None
    description: str | None = None
    is_deleted: bool = False
    deleted_at: datetime | None = None
    external_last_modified: datetime | None = None
    last_synced_at: datetime | None = None
    version: int


class ProjectRecord(_MirroredRecord):
    name: str
    is_placeholder: bool = False


class IssueRecord(_MirroredRecord):
    project_id: str
    project_external_id: str | None = None
    summary: str
    status: str | None = None
