"""Unit tests for the reconciler's staleness guard and conflict mapping."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm.exc import StaleDataError

from jirasync.errors.exceptions import PersistenceConflict, ValidationError
from jirasync.models.enums import EntityKind, Operation
from jirasync.models.webhook import ExternalEntityRef
from jirasync.sync.reconcile import EntityChange, Reconciler, tombstone_values

NOW = datetime(2025, 6, 1, tzinfo=timezone.utc)
REF = ExternalEntityRef("PRJ-1", EntityKind.PROJECT)


def _row(**overrides):
    values = {
        "id": "prj_1",
        "external_last_modified": NOW,
        "local_modified_at": None,
        "is_deleted": False,
    }
    values.update(overrides)
    return SimpleNamespace(**values)


class FakeRepository:
    """Repository double whose writes fail the way a racing writer makes them fail."""

    def __init__(self, row=None, error=None):
        self.row = row
        self.error = error

    async def find_by_external_ref(self, ref, *, for_update=False):
        return self.row

    async def insert(self, **kwargs):
        raise self.error

    async def update(self, row, **kwargs):
        raise self.error


def test_is_stale_compares_source_times():
    reconciler = Reconciler(FakeRepository())
    row = _row()
    assert reconciler.is_stale(row, NOW - timedelta(seconds=1))
    assert not reconciler.is_stale(row, NOW)
    assert not reconciler.is_stale(row, NOW + timedelta(seconds=1))


def test_is_stale_handles_naive_stored_values():
    reconciler = Reconciler(FakeRepository())
    row = _row(external_last_modified=NOW.replace(tzinfo=None))
    assert reconciler.is_stale(row, NOW - timedelta(minutes=1))


def test_placeholder_is_never_stale():
    reconciler = Reconciler(FakeRepository())
    assert not reconciler.is_stale(_row(external_last_modified=None), datetime(1970, 1, 1, tzinfo=timezone.utc))


def test_local_edit_marker_only_counts_when_protected():
    row = _row(local_modified_at=NOW + timedelta(hours=1))
    incoming = NOW + timedelta(minutes=30)
    assert not Reconciler(FakeRepository()).is_stale(row, incoming)
    assert Reconciler(FakeRepository(), protect_local_edits=True).is_stale(row, incoming)


def test_tombstone_keeps_latest_source_time():
    row = _row()
    earlier = NOW - timedelta(days=1)
    values = tombstone_values(row, earlier)
    assert values["is_deleted"] is True
    assert values["deleted_at"] == earlier
    assert values["external_last_modified"] == NOW

    later = NOW + timedelta(days=1)
    assert tombstone_values(row, later)["external_last_modified"] == later


@pytest.mark.asyncio
async def test_unique_violation_becomes_persistence_conflict():
    error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
    reconciler = Reconciler(FakeRepository(row=None, error=error))
    change = EntityChange(modified_at=NOW, attributes={"name": "x"}, insert_attributes={"name": "x"})

    with pytest.raises(PersistenceConflict) as exc_info:
        await reconciler.resolve(REF, change, Operation.CREATED)
    assert exc_info.value.retriable is True
    assert exc_info.value.status_code == 503


@pytest.mark.asyncio
async def test_lost_version_race_becomes_persistence_conflict():
    reconciler = Reconciler(FakeRepository(row=_row(), error=StaleDataError("version mismatch")))
    change = EntityChange(modified_at=NOW + timedelta(seconds=1), attributes={"name": "x"})

    with pytest.raises(PersistenceConflict):
        await reconciler.resolve(REF, change, Operation.UPDATED)


@pytest.mark.asyncio
async def test_placeholder_insert_race_becomes_persistence_conflict():
    error = IntegrityError("INSERT", {}, Exception("UNIQUE constraint failed"))
    reconciler = Reconciler(FakeRepository(row=None, error=error))

    with pytest.raises(PersistenceConflict):
        await reconciler.ensure_exists(REF, {"name": "PRJ-1", "is_placeholder": True})


@pytest.mark.asyncio
async def test_insert_without_insert_attributes_is_rejected():
    reconciler = Reconciler(FakeRepository(row=None))
    change = EntityChange(modified_at=NOW, attributes={"summary": "x"})

    with pytest.raises(ValidationError):
        await reconciler.resolve(REF, change, Operation.UPDATED)
