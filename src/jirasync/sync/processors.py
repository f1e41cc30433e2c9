"""Per-event processors: apply one webhook's effect to the mirrored store.

Each processor is a small value holding its operation and reconciliation
options. Processors validate the snapshot for their operation, translate it
into an ``EntityChange`` and hand it to a ``Reconciler``; they never write to
the store directly.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, ClassVar, Protocol, TypeVar

import pydantic
from sqlalchemy.ext.asyncio import AsyncSession

from jirasync.errors.exceptions import ValidationError
from jirasync.models.enums import DeletePolicy, EntityKind, Operation, UpsertOutcome
from jirasync.models.webhook import (
    ExternalEntityRef,
    IssueSnapshot,
    ProjectReference,
    ProjectSnapshot,
    WebhookEnvelope,
)
from jirasync.repositories.issue_repo import IssueRepository
from jirasync.repositories.project_repo import ProjectRepository
from jirasync.sync.parser import validation_details
from jirasync.sync.reconcile import EntityChange, Reconciler, cascade_project_delete

S = TypeVar("S", bound=pydantic.BaseModel)


@dataclass(frozen=True)
class ProcessResult:
    outcome: UpsertOutcome
    ref: ExternalEntityRef
    record_id: str | None


class Processor(Protocol):
    """Capability shared by every event-type table entry."""

    kind: EntityKind
    operation: Operation

    async def process(self, envelope: WebhookEnvelope, session: AsyncSession) -> ProcessResult: ...


def _load_snapshot(model: type[S], envelope: WebhookEnvelope, kind: EntityKind) -> S:
    try:
        return model.model_validate(envelope.entity_payload)
    except pydantic.ValidationError as exc:
        details = validation_details(exc)
        fields = ", ".join(d["field"] for d in details)
        raise ValidationError(f"Invalid {kind} snapshot: {fields}", details=details) from exc


def _require(snapshot: pydantic.BaseModel, kind: EntityKind, operation: Operation, *names: str) -> None:
    missing = [name for name in names if getattr(snapshot, name) in (None, "")]
    if missing:
        raise ValidationError(
            f"{kind}_{operation} requires {', '.join(missing)}",
            details={"missing": missing},
        )


def effective_time(snapshot: ProjectSnapshot | IssueSnapshot, envelope: WebhookEnvelope) -> datetime:
    """The snapshot's own modification time, falling back to the event time."""
    return snapshot.last_modified or envelope.timestamp


@dataclass(frozen=True)
class ProjectProcessor:
    operation: Operation
    delete_policy: DeletePolicy = DeletePolicy.SOFT
    protect_local_edits: bool = False

    kind: ClassVar[EntityKind] = EntityKind.PROJECT

    async def process(self, envelope: WebhookEnvelope, session: AsyncSession) -> ProcessResult:
        snapshot = _load_snapshot(ProjectSnapshot, envelope, self.kind)
        if self.operation is Operation.CREATED:
            _require(snapshot, self.kind, self.operation, "name")

        ref = ExternalEntityRef(snapshot.external_id, self.kind)
        issues = IssueRepository(session)

        async def cascade(row: Any, policy: DeletePolicy, deleted_at: datetime) -> None:
            await cascade_project_delete(issues, row, policy, deleted_at)

        reconciler = Reconciler(
            ProjectRepository(session),
            delete_policy=self.delete_policy,
            protect_local_edits=self.protect_local_edits,
            on_delete=cascade,
        )
        resolution = await reconciler.resolve(ref, self._change(snapshot, envelope), self.operation)
        return ProcessResult(resolution.outcome, ref, resolution.record_id)

    def _change(self, snapshot: ProjectSnapshot, envelope: WebhookEnvelope) -> EntityChange:
        modified_at = effective_time(snapshot, envelope)
        if self.operation is Operation.DELETED:
            return EntityChange(modified_at=modified_at)
        # Any genuine project event promotes a placeholder to a full record
        attributes = {**snapshot.present("key", "name", "description"), "is_placeholder": False}
        return EntityChange(
            modified_at=modified_at,
            attributes=attributes,
            insert_attributes={
                "key": snapshot.key,
                "name": snapshot.name or snapshot.key or snapshot.external_id,
                "description": snapshot.description,
                "is_placeholder": False,
            },
        )


@dataclass(frozen=True)
class IssueProcessor:
    operation: Operation
    delete_policy: DeletePolicy = DeletePolicy.SOFT
    protect_local_edits: bool = False

    kind: ClassVar[EntityKind] = EntityKind.ISSUE

    async def process(self, envelope: WebhookEnvelope, session: AsyncSession) -> ProcessResult:
        snapshot = _load_snapshot(IssueSnapshot, envelope, self.kind)
        if self.operation is Operation.CREATED:
            _require(snapshot, self.kind, self.operation, "summary", "project")

        ref = ExternalEntityRef(snapshot.external_id, self.kind)
        reconciler = Reconciler(
            IssueRepository(session),
            delete_policy=self.delete_policy,
            protect_local_edits=self.protect_local_edits,
        )

        modified_at = effective_time(snapshot, envelope)
        if self.operation is Operation.DELETED:
            change = EntityChange(modified_at=modified_at)
        else:
            project_id = None
            if snapshot.project is not None:
                project_id = await self._resolve_parent(snapshot.project, session)
            change = self._change(snapshot, modified_at, project_id)

        resolution = await reconciler.resolve(ref, change, self.operation)
        return ProcessResult(resolution.outcome, ref, resolution.record_id)

    async def _resolve_parent(self, project: ProjectReference, session: AsyncSession) -> str:
        """Local id of the owning project, creating a placeholder when it is unknown."""
        reconciler = Reconciler(ProjectRepository(session))
        return await reconciler.ensure_exists(
            ExternalEntityRef(project.external_id, EntityKind.PROJECT),
            {
                "key": project.key,
                "name": project.name or project.key or project.external_id,
                "is_placeholder": True,
            },
        )

    @staticmethod
    def _change(snapshot: IssueSnapshot, modified_at: datetime, project_id: str | None) -> EntityChange:
        attributes = snapshot.present("key", "summary", "status", "description")
        insert_attributes = None
        if project_id is not None:
            attributes["project_id"] = project_id
            insert_attributes = {
                "key": snapshot.key,
                "summary": snapshot.summary or snapshot.key or snapshot.external_id,
                "status": snapshot.status,
                "description": snapshot.description,
                "project_id": project_id,
            }
        return EntityChange(
            modified_at=modified_at,
            attributes=attributes,
            insert_attributes=insert_attributes,
        )
