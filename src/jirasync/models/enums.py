"""String enums shared by the sync pipeline and API."""

from enum import StrEnum


class EntityKind(StrEnum):
    PROJECT = "project"
    ISSUE = "issue"


class Operation(StrEnum):
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"


class UpsertOutcome(StrEnum):
    INSERTED = "inserted"
    MERGED = "merged"
    NOOP_STALE = "noop_stale"
    DELETED = "deleted"
    NOOP_ABSENT = "noop_absent"


class ResultStatus(StrEnum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class DeletePolicy(StrEnum):
    SOFT = "soft"
    HARD = "hard"


class UnsupportedEventPolicy(StrEnum):
    REJECT = "reject"
    IGNORE = "ignore"
