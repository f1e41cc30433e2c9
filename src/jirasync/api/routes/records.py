"""Read-only routes over the mirrored projects and issues."""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from jirasync.dependencies import get_db
from jirasync.errors.exceptions import NotFoundError
from jirasync.models.enums import EntityKind
from jirasync.models.records import IssueRecord, ProjectRecord
from jirasync.models.webhook import ExternalEntityRef
from jirasync.repositories.issue_repo import IssueRepository
from jirasync.repositories.project_repo import ProjectRepository

router = APIRouter(tags=["Records"])


@router.get("/projects/{external_id}")
async def get_project(
    external_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    repo = ProjectRepository(db)
    row = await repo.find_by_external_ref(ExternalEntityRef(external_id, EntityKind.PROJECT))
    if not row:
        raise NotFoundError("Project", external_id)
    return ProjectRecord.model_validate(row).model_dump(mode="json")


@router.get("/projects/{external_id}/issues")
async def list_project_issues(
    external_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[dict]:
    """List a project's mirrored issues, tombstones included."""
    project = await ProjectRepository(db).find_by_external_ref(
        ExternalEntityRef(external_id, EntityKind.PROJECT)
    )
    if not project:
        raise NotFoundError("Project", external_id)

    rows = await IssueRepository(db).list_by_project(project.id)
    return [
        IssueRecord.model_validate(row)
        .model_copy(update={"project_external_id": project.external_id})
        .model_dump(mode="json")
        for row in rows
    ]


@router.get("/issues/{external_id}")
async def get_issue(
    external_id: str,
    db: AsyncSession = Depends(get_db),
) -> dict:
    row = await IssueRepository(db).find_by_external_ref(
        ExternalEntityRef(external_id, EntityKind.ISSUE)
    )
    if not row:
        raise NotFoundError("Issue", external_id)

    project = await ProjectRepository(db).get(row.project_id)
    record = IssueRecord.model_validate(row)
    if project:
        record = record.model_copy(update={"project_external_id": project.external_id})
    return record.model_dump(mode="json")
