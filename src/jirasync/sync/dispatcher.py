"""Event classifier: maps event-type tags to processors."""

from collections.abc import Mapping
from types import MappingProxyType

from jirasync.config import Settings
from jirasync.errors.exceptions import UnsupportedEventType
from jirasync.models.enums import DeletePolicy, Operation
from jirasync.sync.processors import IssueProcessor, ProjectProcessor, Processor


class EventDispatcher:
    """Read-only lookup table from ``<entity>_<operation>`` keys to processors.

    Tags arrive as ``<domain>:<entity>_<operation>`` (``jira:issue_created``)
    or bare (``project_created``, as Jira sends project events). A tag from a
    foreign domain or with an unregistered key is rejected.
    """

    def __init__(self, processors: Mapping[str, Processor], domain: str | None = "jira"):
        self._processors = MappingProxyType(dict(processors))
        self.domain = domain

    @property
    def supported_event_types(self) -> tuple[str, ...]:
        return tuple(sorted(self._processors))

    def classify(self, event_type: str) -> Processor:
        """Return the processor for ``event_type`` or raise ``UnsupportedEventType``."""
        domain, sep, key = event_type.partition(":")
        if not sep:
            domain, key = None, event_type
        if domain is not None and self.domain is not None and domain != self.domain:
            raise UnsupportedEventType(event_type)
        processor = self._processors.get(key)
        if processor is None:
            raise UnsupportedEventType(event_type)
        return processor

    def with_processor(self, key: str, processor: Processor) -> "EventDispatcher":
        """Return a new dispatcher with one more table entry."""
        return EventDispatcher({**self._processors, key: processor}, domain=self.domain)


def default_processors(
    delete_policy: DeletePolicy = DeletePolicy.SOFT,
    protect_local_edits: bool = False,
) -> dict[str, Processor]:
    options = {"delete_policy": delete_policy, "protect_local_edits": protect_local_edits}
    return {
        "project_created": ProjectProcessor(Operation.CREATED, **options),
        "project_updated": ProjectProcessor(Operation.UPDATED, **options),
        "project_deleted": ProjectProcessor(Operation.DELETED, **options),
        "issue_created": IssueProcessor(Operation.CREATED, **options),
        "issue_updated": IssueProcessor(Operation.UPDATED, **options),
        "issue_deleted": IssueProcessor(Operation.DELETED, **options),
    }


def build_default_dispatcher(settings: Settings) -> EventDispatcher:
    """Build the process-wide dispatcher once at startup."""
    processors = default_processors(
        delete_policy=DeletePolicy(settings.delete_policy),
        protect_local_edits=settings.protect_local_edits,
    )
    return EventDispatcher(processors, domain=settings.source_domain or None)
