"""Tests for entity snapshot normalization."""

from datetime import datetime, timezone

import pydantic
import pytest

from jirasync.models.enums import EntityKind
from jirasync.models.webhook import ExternalEntityRef, IssueSnapshot, ProjectSnapshot, as_utc


def test_project_snapshot_numeric_id_becomes_string():
    snapshot = ProjectSnapshot.model_validate({"id": 10000, "key": "ALPHA", "name": "Alpha"})
    assert snapshot.external_id == "10000"


def test_project_snapshot_requires_id():
    with pytest.raises(pydantic.ValidationError):
        ProjectSnapshot.model_validate({"name": "Alpha"})
    with pytest.raises(pydantic.ValidationError):
        ProjectSnapshot.model_validate({"id": "  ", "name": "Alpha"})


def test_present_only_returns_supplied_attributes():
    snapshot = ProjectSnapshot.model_validate({"id": "PRJ-1", "description": None})
    assert snapshot.present("key", "name", "description") == {"description": None}


def test_present_drops_null_for_required_columns():
    snapshot = ProjectSnapshot.model_validate({"id": "PRJ-1", "name": None, "key": "A"})
    assert snapshot.present("key", "name") == {"key": "A"}


def test_issue_snapshot_lifts_native_fields():
    snapshot = IssueSnapshot.model_validate({
        "id": "10001",
        "key": "ALPHA-1",
        "fields": {
            "summary": "Broken build",
            "status": {"name": "In Progress", "id": "3"},
            "project": {"id": "10000", "key": "ALPHA", "name": "Alpha"},
            "updated": "2025-01-02T10:00:00.000+0000",
        },
    })
    assert snapshot.summary == "Broken build"
    assert snapshot.status == "In Progress"
    assert snapshot.project.external_id == "10000"
    assert snapshot.project.key == "ALPHA"
    assert snapshot.last_modified == datetime(2025, 1, 2, 10, tzinfo=timezone.utc)
    assert set(snapshot.present("summary", "status", "description")) == {"summary", "status"}


def test_issue_snapshot_flat_project_id():
    snapshot = IssueSnapshot.model_validate({"id": "1", "summary": "s", "projectId": "P-999"})
    assert snapshot.project.external_id == "P-999"


def test_issue_snapshot_project_as_plain_id():
    snapshot = IssueSnapshot.model_validate({"id": "1", "project": "P-1"})
    assert snapshot.project.external_id == "P-1"


def test_last_modified_prefers_explicit_field():
    snapshot = IssueSnapshot.model_validate({
        "id": "1",
        "lastModified": "2025-03-01T00:00:00Z",
        "fields": {"updated": "2025-01-01T00:00:00.000+0000"},
    })
    assert snapshot.last_modified == datetime(2025, 3, 1, tzinfo=timezone.utc)


def test_as_utc_treats_naive_as_utc():
    naive = datetime(2025, 1, 1, 12)
    assert as_utc(naive) == datetime(2025, 1, 1, 12, tzinfo=timezone.utc)
    assert as_utc(None) is None


def test_external_ref_is_hashable_and_kind_scoped():
    a = ExternalEntityRef("1", EntityKind.PROJECT)
    b = ExternalEntityRef("1", EntityKind.ISSUE)
    assert a != b
    assert len({a, b, ExternalEntityRef("1", EntityKind.PROJECT)}) == 2
    assert str(a) == "project:1"
