"""Project repository."""

from sqlalchemy.ext.asyncio import AsyncSession

from jirasync.db.models.project import ProjectRow
from jirasync.models.enums import EntityKind
from jirasync.repositories.base import SyncedRecordRepository


class ProjectRepository(SyncedRecordRepository):
    entity_kind = EntityKind.PROJECT
    id_prefix = "prj_"

    def __init__(self, session: AsyncSession):
        super().__init__(session, ProjectRow)
