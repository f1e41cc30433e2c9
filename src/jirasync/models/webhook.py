"""Pydantic models for inbound webhook envelopes and entity snapshots."""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, ClassVar

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator

from jirasync.models.enums import EntityKind, ResultStatus, UpsertOutcome

# Jira renders offsets as +0000; ISO-8601 parsers want +00:00
_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


def as_utc(value: datetime | None) -> datetime | None:
    """Normalize to an aware UTC datetime; naive values are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _coerce_timestamp(value: Any) -> Any:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float)):
        # Native payloads carry epoch milliseconds
        if isinstance(value, float) and not math.isfinite(value):
            raise ValueError("timestamp out of range")
        try:
            return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise ValueError("timestamp out of range") from exc
    if isinstance(value, str):
        return _COMPACT_OFFSET.sub(r"\1:\2", value.strip())
    return value


class WebhookEnvelope(BaseModel):
    """One inbound notification: event tag, event time and entity snapshot."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    event_type: str = Field(
        ...,
        min_length=1,
        validation_alias=AliasChoices("eventType", "webhookEvent", "event_type"),
    )
    timestamp: datetime
    # None when the delivery carries no snapshot this service knows how to find
    entity_payload: dict[str, Any] | None = Field(
        None, validation_alias=AliasChoices("entityPayload", "entity_payload")
    )

    @model_validator(mode="before")
    @classmethod
    def _lift_native_snapshot(cls, data: Any) -> Any:
        """Accept Jira's native layout, where the snapshot sits under ``issue``/``project``."""
        if not isinstance(data, dict) or "entityPayload" in data or "entity_payload" in data:
            return data
        tag = str(data.get("eventType") or data.get("webhookEvent") or "")
        for key in ("issue", "project"):
            if key in tag and isinstance(data.get(key), dict):
                return {**data, "entityPayload": data[key]}
        return data

    @field_validator("timestamp", mode="before")
    @classmethod
    def _parse_timestamp(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    @field_validator("timestamp")
    @classmethod
    def _timestamp_utc(cls, value: datetime) -> datetime:
        return as_utc(value)

    @property
    def source_system_id(self) -> str | None:
        """Best-effort external id, for logging before the snapshot is validated."""
        if self.entity_payload is None:
            return None
        value = self.entity_payload.get("id")
        return str(value) if value is not None else None


@dataclass(frozen=True)
class ExternalEntityRef:
    """Identity correlation key: the source system's id within one entity kind."""

    source_system_id: str
    entity_kind: EntityKind

    def __str__(self) -> str:
        return f"{self.entity_kind}:{self.source_system_id}"


class _Snapshot(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    external_id: str = Field(
        ..., max_length=128, validation_alias=AliasChoices("id", "external_id")
    )

    @field_validator("external_id", mode="before")
    @classmethod
    def _stringify_id(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("external_id")
    @classmethod
    def _non_empty_id(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("id must not be empty")
        return value

    # Attributes backed by NOT NULL columns; an explicit null counts as absent
    non_nullable: ClassVar[frozenset[str]] = frozenset()

    def present(self, *names: str) -> dict[str, Any]:
        """Return the named attributes that were actually supplied by the payload."""
        supplied = {}
        for name in names:
            if name not in self.model_fields_set:
                continue
            value = getattr(self, name)
            if value is None and name in self.non_nullable:
                continue
            supplied[name] = value
        return supplied


class ProjectSnapshot(_Snapshot):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"name"})

    key: str | None = Field(None, max_length=64)
    name: str | None = Field(None, max_length=255)
    description: str | None = None
    last_modified: datetime | None = Field(
        None, validation_alias=AliasChoices("lastModified", "last_modified")
    )

    @field_validator("last_modified", mode="before")
    @classmethod
    def _parse_last_modified(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    @field_validator("last_modified")
    @classmethod
    def _last_modified_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class ProjectReference(_Snapshot):
    """Project identity carried inside an issue snapshot."""

    key: str | None = Field(None, max_length=64)
    name: str | None = Field(None, max_length=255)


class IssueSnapshot(_Snapshot):
    non_nullable: ClassVar[frozenset[str]] = frozenset({"summary"})

    key: str | None = Field(None, max_length=64)
    summary: str | None = Field(None, max_length=1000)
    status: str | None = Field(None, max_length=100)
    description: str | None = None
    project: ProjectReference | None = None
    last_modified: datetime | None = Field(
        None, validation_alias=AliasChoices("lastModified", "last_modified", "updated")
    )

    @model_validator(mode="before")
    @classmethod
    def _flatten_fields(cls, data: Any) -> Any:
        """Lift attributes nested under Jira's ``fields`` object."""
        if not isinstance(data, dict):
            return data
        flat = dict(data.get("fields") or {}) if isinstance(data.get("fields"), dict) else {}
        flat.update({k: v for k, v in data.items() if k != "fields"})
        if "project" not in flat and flat.get("projectId") is not None:
            flat["project"] = {"id": flat["projectId"]}
        return flat

    @field_validator("status", mode="before")
    @classmethod
    def _status_name(cls, value: Any) -> Any:
        if isinstance(value, dict):
            return value.get("name")
        return value

    @field_validator("project", mode="before")
    @classmethod
    def _project_ref(cls, value: Any) -> Any:
        if isinstance(value, (str, int)) and not isinstance(value, bool):
            return {"id": value}
        return value

    @field_validator("last_modified", mode="before")
    @classmethod
    def _parse_last_modified(cls, value: Any) -> Any:
        return _coerce_timestamp(value)

    @field_validator("last_modified")
    @classmethod
    def _last_modified_utc(cls, value: datetime | None) -> datetime | None:
        return as_utc(value)


class WebhookResult(BaseModel):
    """Response contract handed back to the endpoint adapter."""

    status: ResultStatus
    reason: str | None = None
    code: str | None = None
    event_type: str | None = None
    source_system_id: str | None = None
    outcome: UpsertOutcome | None = None
