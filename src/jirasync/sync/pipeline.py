"""Parse -> classify -> process pipeline for one inbound webhook."""

import logging

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from jirasync.errors.exceptions import (
    JiraSyncError,
    MalformedPayload,
    PersistenceConflict,
    UnsupportedEventType,
    ValidationError,
)
from jirasync.logging_config import bind_webhook_context
from jirasync.models.enums import ResultStatus, UnsupportedEventPolicy
from jirasync.models.webhook import WebhookEnvelope, WebhookResult
from jirasync.sync.dispatcher import EventDispatcher
from jirasync.sync.parser import parse_payload

logger = logging.getLogger(__name__)


class WebhookPipeline:
    """Run one webhook through parser, dispatcher and processor.

    Parse and classify failures are answered without opening a session. The
    snapshot is required only once the event type is known to be handled, so
    an unhandled native delivery is classified rather than called malformed.
    Processing runs in a request-scoped session that is committed on success
    and rolled back on any failure. ``PersistenceConflict`` and unexpected
    errors propagate so the endpoint can answer with a retriable status.
    """

    def __init__(
        self,
        dispatcher: EventDispatcher,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        unsupported_event_policy: UnsupportedEventPolicy = UnsupportedEventPolicy.REJECT,
        max_body_bytes: int | None = None,
    ):
        self.dispatcher = dispatcher
        self.session_factory = session_factory
        self.unsupported_event_policy = UnsupportedEventPolicy(unsupported_event_policy)
        self.max_body_bytes = max_body_bytes

    async def handle(self, body: bytes, content_type: str | None = None) -> WebhookResult:
        try:
            envelope = parse_payload(body, content_type, max_bytes=self.max_body_bytes)
        except MalformedPayload as exc:
            logger.warning("webhook_malformed", extra={"code": exc.code, "reason": exc.message})
            return _rejected(exc)

        source_system_id = envelope.source_system_id
        bind_webhook_context(event_type=envelope.event_type, source_system_id=source_system_id)

        try:
            processor = self.dispatcher.classify(envelope.event_type)
        except UnsupportedEventType as exc:
            return self._unsupported(exc, envelope)

        if envelope.entity_payload is None:
            exc = MalformedPayload(
                f"Missing entity snapshot for '{envelope.event_type}'",
                details=[{"field": "entityPayload", "message": "Field required"}],
            )
            logger.warning("webhook_malformed", extra={"code": exc.code, "reason": exc.message})
            return _rejected(exc, envelope)

        async with self.session_factory() as session:
            try:
                result = await processor.process(envelope, session)
                await session.commit()
            except ValidationError as exc:
                await session.rollback()
                logger.warning(
                    "webhook_invalid",
                    extra={
                        "event_type": envelope.event_type,
                        "source_system_id": source_system_id,
                        "reason": exc.message,
                    },
                )
                return _rejected(exc, envelope)
            except PersistenceConflict:
                await session.rollback()
                logger.warning(
                    "webhook_conflict",
                    extra={"event_type": envelope.event_type, "source_system_id": source_system_id},
                )
                raise
            except Exception:
                await session.rollback()
                logger.exception(
                    "webhook_failed",
                    extra={"event_type": envelope.event_type, "source_system_id": source_system_id},
                )
                raise

        logger.info(
            "webhook_applied",
            extra={
                "event_type": envelope.event_type,
                "source_system_id": result.ref.source_system_id,
                "outcome": str(result.outcome),
                "record_id": result.record_id,
            },
        )
        return WebhookResult(
            status=ResultStatus.ACCEPTED,
            event_type=envelope.event_type,
            source_system_id=result.ref.source_system_id,
            outcome=result.outcome,
        )

    def _unsupported(self, exc: UnsupportedEventType, envelope: WebhookEnvelope) -> WebhookResult:
        extra = {
            "event_type": envelope.event_type,
            "source_system_id": envelope.source_system_id,
            "policy": str(self.unsupported_event_policy),
        }
        if self.unsupported_event_policy is UnsupportedEventPolicy.IGNORE:
            logger.info("webhook_ignored", extra=extra)
            return WebhookResult(
                status=ResultStatus.ACCEPTED,
                reason=f"ignored: {exc.message}",
                code=exc.code,
                event_type=envelope.event_type,
                source_system_id=envelope.source_system_id,
            )
        logger.warning("webhook_unsupported", extra=extra)
        return _rejected(exc, envelope)


def _rejected(exc: JiraSyncError, envelope: WebhookEnvelope | None = None) -> WebhookResult:
    return WebhookResult(
        status=ResultStatus.REJECTED,
        reason=exc.message,
        code=exc.code,
        event_type=envelope.event_type if envelope else None,
        source_system_id=envelope.source_system_id if envelope else None,
    )
