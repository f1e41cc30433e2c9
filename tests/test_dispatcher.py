"""Tests for event-type classification."""

import pytest

from jirasync.config import Settings
from jirasync.errors.exceptions import UnsupportedEventType
from jirasync.models.enums import DeletePolicy, EntityKind, Operation
from jirasync.sync.dispatcher import EventDispatcher, build_default_dispatcher, default_processors
from jirasync.sync.processors import IssueProcessor, ProjectProcessor


@pytest.fixture
def dispatcher():
    return EventDispatcher(default_processors())


@pytest.mark.parametrize(
    "event_type,kind,operation",
    [
        ("jira:project_created", EntityKind.PROJECT, Operation.CREATED),
        ("jira:project_updated", EntityKind.PROJECT, Operation.UPDATED),
        ("jira:project_deleted", EntityKind.PROJECT, Operation.DELETED),
        ("jira:issue_created", EntityKind.ISSUE, Operation.CREATED),
        ("jira:issue_updated", EntityKind.ISSUE, Operation.UPDATED),
        ("jira:issue_deleted", EntityKind.ISSUE, Operation.DELETED),
    ],
)
def test_classify_supported_tags(dispatcher, event_type, kind, operation):
    processor = dispatcher.classify(event_type)
    assert processor.kind is kind
    assert processor.operation is operation


def test_bare_tag_is_accepted(dispatcher):
    assert isinstance(dispatcher.classify("project_created"), ProjectProcessor)


@pytest.mark.parametrize(
    "event_type",
    ["jira:widget_frobnicated", "github:issue_created", "jira:comment_created", "jira:", "issue"],
)
def test_unknown_tags_are_unsupported(dispatcher, event_type):
    with pytest.raises(UnsupportedEventType) as exc_info:
        dispatcher.classify(event_type)
    assert exc_info.value.event_type == event_type
    assert exc_info.value.code == "UNSUPPORTED_EVENT_TYPE"


def test_domain_check_can_be_disabled():
    dispatcher = EventDispatcher(default_processors(), domain=None)
    assert isinstance(dispatcher.classify("anything:issue_updated"), IssueProcessor)


def test_supported_event_types(dispatcher):
    assert dispatcher.supported_event_types == (
        "issue_created",
        "issue_deleted",
        "issue_updated",
        "project_created",
        "project_deleted",
        "project_updated",
    )


def test_with_processor_returns_extended_copy(dispatcher):
    extra = ProjectProcessor(Operation.UPDATED)
    extended = dispatcher.with_processor("project_archived", extra)

    assert extended.classify("jira:project_archived") is extra
    with pytest.raises(UnsupportedEventType):
        dispatcher.classify("jira:project_archived")


def test_table_is_read_only(dispatcher):
    with pytest.raises(TypeError):
        dispatcher._processors["issue_created"] = None


def test_build_default_dispatcher_applies_settings():
    dispatcher = build_default_dispatcher(Settings(delete_policy="hard", protect_local_edits=True))
    processor = dispatcher.classify("jira:issue_deleted")
    assert processor.delete_policy is DeletePolicy.HARD
    assert processor.protect_local_edits is True
