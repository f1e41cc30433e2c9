"""Reconciliation of incoming snapshots against mirrored records.

Every write the sync pipeline performs goes through ``Reconciler``. A call to
``resolve`` decides exactly one ``UpsertOutcome`` for one record and executes
it:

* the record is looked up by ``ExternalEntityRef`` with a row lock
  (``SELECT ... FOR UPDATE``; a no-op on SQLite), so two webhooks for the same
  entity serialize while webhooks for different entities never contend;
* every UPDATE is a compare-and-set on the ``version`` column, so a write that
  lost a race raises instead of silently overwriting;
* unique-key and version failures surface as ``PersistenceConflict``.

The caller owns the transaction: it commits after a successful ``resolve`` and
rolls back on any exception, which keeps each event all-or-nothing.
"""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from jirasync.errors.exceptions import PersistenceConflict, ValidationError
from jirasync.models.enums import DeletePolicy, Operation, UpsertOutcome
from jirasync.models.webhook import ExternalEntityRef, as_utc
from jirasync.repositories.base import SyncedRecordRepository
from jirasync.repositories.issue_repo import IssueRepository

logger = logging.getLogger(__name__)

DeleteHook = Callable[[Any, DeletePolicy, datetime], Awaitable[None]]


@dataclass(frozen=True)
class EntityChange:
    """An incoming snapshot expressed as column values.

    ``attributes`` are merged into an existing record and hold only what the
    payload supplied. ``insert_attributes`` are the full values for a new
    record; None means the payload cannot create one.
    """

    modified_at: datetime
    attributes: dict[str, Any] = field(default_factory=dict)
    insert_attributes: dict[str, Any] | None = None


@dataclass(frozen=True)
class Resolution:
    outcome: UpsertOutcome
    record_id: str | None


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Reconciler:
    """Resolve one entity kind's snapshots against its repository."""

    def __init__(
        self,
        repository: SyncedRecordRepository,
        *,
        delete_policy: DeletePolicy = DeletePolicy.SOFT,
        protect_local_edits: bool = False,
        on_delete: DeleteHook | None = None,
    ):
        self.repository = repository
        self.delete_policy = delete_policy
        self.protect_local_edits = protect_local_edits
        self.on_delete = on_delete

    async def resolve(
        self,
        ref: ExternalEntityRef,
        incoming: EntityChange,
        operation: Operation,
    ) -> Resolution:
        """Apply one snapshot and return the outcome."""
        try:
            row = await self.repository.find_by_external_ref(ref, for_update=True)
            if operation is Operation.DELETED:
                return await self._delete(ref, row, incoming)
            return await self._upsert(ref, row, incoming)
        except (IntegrityError, StaleDataError) as exc:
            logger.warning(
                "persistence_conflict",
                extra={"ref": str(ref), "operation": str(operation), "error": type(exc).__name__},
            )
            raise PersistenceConflict(
                f"Concurrent write to {ref}",
                details={"source_system_id": ref.source_system_id, "entity_kind": str(ref.entity_kind)},
            ) from exc

    async def ensure_exists(
        self, ref: ExternalEntityRef, placeholder_attributes: dict[str, Any]
    ) -> str:
        """Return the local id for ``ref``, inserting a placeholder if it is unknown.

        Placeholders carry no ``external_last_modified``, so the first genuine
        event for the entity always merges into them.
        """
        try:
            row = await self.repository.find_by_external_ref(ref, for_update=True)
            if row is not None:
                return row.id
            row = await self.repository.insert(
                external_id=ref.source_system_id,
                last_synced_at=_now(),
                **placeholder_attributes,
            )
        except IntegrityError as exc:
            raise PersistenceConflict(
                f"Concurrent placeholder insert for {ref}",
                details={"source_system_id": ref.source_system_id, "entity_kind": str(ref.entity_kind)},
            ) from exc
        logger.info("placeholder_created", extra={"ref": str(ref), "record_id": row.id})
        return row.id

    def is_stale(self, row: Any, modified_at: datetime) -> bool:
        """True when applying ``modified_at`` would regress the stored state."""
        stored = as_utc(row.external_last_modified)
        if stored is not None and modified_at < stored:
            return True
        if self.protect_local_edits:
            local = as_utc(row.local_modified_at)
            if local is not None and modified_at < local:
                return True
        return False

    async def _upsert(self, ref: ExternalEntityRef, row: Any, incoming: EntityChange) -> Resolution:
        modified_at = as_utc(incoming.modified_at)
        sync_columns = {"external_last_modified": modified_at, "last_synced_at": _now()}

        if row is None:
            values = self._insert_values(ref, incoming)
            row = await self.repository.insert(
                external_id=ref.source_system_id, **values, **sync_columns
            )
            return Resolution(UpsertOutcome.INSERTED, row.id)

        if self.is_stale(row, modified_at):
            logger.info(
                "stale_event",
                extra={
                    "ref": str(ref),
                    "incoming_modified": modified_at.isoformat(),
                    "stored_modified": as_utc(row.external_last_modified).isoformat()
                    if row.external_last_modified
                    else None,
                },
            )
            return Resolution(UpsertOutcome.NOOP_STALE, row.id)

        if row.is_deleted:
            # A newer snapshot than the tombstone brings the record back; columns
            # the snapshot omits keep their last mirrored values
            await self.repository.update(
                row, **incoming.attributes, **sync_columns, is_deleted=False, deleted_at=None
            )
            return Resolution(UpsertOutcome.INSERTED, row.id)

        await self.repository.update(row, **incoming.attributes, **sync_columns)
        return Resolution(UpsertOutcome.MERGED, row.id)

    async def _delete(self, ref: ExternalEntityRef, row: Any, incoming: EntityChange) -> Resolution:
        if row is None or row.is_deleted:
            return Resolution(UpsertOutcome.NOOP_ABSENT, row.id if row is not None else None)

        deleted_at = as_utc(incoming.modified_at)
        record_id = row.id
        if self.on_delete is not None:
            await self.on_delete(row, self.delete_policy, deleted_at)

        if self.delete_policy is DeletePolicy.HARD:
            await self.repository.delete(row)
        else:
            await self.repository.update(row, **tombstone_values(row, deleted_at))
        return Resolution(UpsertOutcome.DELETED, record_id)

    @staticmethod
    def _insert_values(ref: ExternalEntityRef, incoming: EntityChange) -> dict[str, Any]:
        if incoming.insert_attributes is None:
            raise ValidationError(
                f"{ref} is not mirrored yet and the payload lacks the fields needed to create it",
                details={"source_system_id": ref.source_system_id, "entity_kind": str(ref.entity_kind)},
            )
        return incoming.insert_attributes


def tombstone_values(row: Any, deleted_at: datetime) -> dict[str, Any]:
    """Column values that soft-delete ``row`` as of ``deleted_at``."""
    stored = as_utc(row.external_last_modified)
    return {
        "is_deleted": True,
        "deleted_at": deleted_at,
        "external_last_modified": max(stored, deleted_at) if stored else deleted_at,
        "last_synced_at": _now(),
    }


async def cascade_project_delete(
    issues: IssueRepository, project: Any, policy: DeletePolicy, deleted_at: datetime
) -> None:
    """Apply a project's deletion to its issues under the same policy."""
    if policy is DeletePolicy.HARD:
        removed = await issues.delete_for_project(project.id)
    else:
        removed = 0
        for issue in await issues.list_by_project(project.id):
            if not issue.is_deleted:
                await issues.update(issue, **tombstone_values(issue, deleted_at))
                removed += 1
    if removed:
        logger.info(
            "project_delete_cascaded",
            extra={"project_external_id": project.external_id, "issues": removed, "policy": str(policy)},
        )
