"""Issue repository."""

from sqlalchemy import delete
from sqlalchemy.ext.asyncio import AsyncSession

from jirasync.db.models.issue import IssueRow
from jirasync.models.enums import EntityKind
from jirasync.repositories.base import SyncedRecordRepository


class IssueRepository(SyncedRecordRepository):
    entity_kind = EntityKind.ISSUE
    id_prefix = "iss_"

    def __init__(self, session: AsyncSession):
        super().__init__(session, IssueRow)

    async def list_by_project(self, project_id: str) -> list[IssueRow]:
        return await self.list_by_field("project_id", project_id)

    async def delete_for_project(self, project_id: str) -> int:
        """Remove every issue of a project. Returns the number of rows removed."""
        stmt = (
            delete(IssueRow)
            .where(IssueRow.project_id == project_id)
            .execution_options(synchronize_session="fetch")
        )
        result = await self.session.execute(stmt)
        return result.rowcount
