"""Custom exception classes for jirasync."""


class JiraSyncError(Exception):
    """Base exception for jirasync."""

    def __init__(
        self,
        code: str,
        message: str,
        details=None,
        status_code: int = 500,
        retriable: bool = False,
    ):
        self.code = code
        self.message = message
        self.details = details
        self.status_code = status_code
        self.retriable = retriable
        super().__init__(message)


class MalformedPayload(JiraSyncError):
    """Request body could not be decoded into a webhook envelope."""

    def __init__(self, message: str, details=None):
        super().__init__("MALFORMED_PAYLOAD", message, details, status_code=400)


class UnsupportedEventType(JiraSyncError):
    """No processor is registered for the event type."""

    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(
            "UNSUPPORTED_EVENT_TYPE",
            f"Unsupported event type '{event_type}'",
            details={"event_type": event_type},
            status_code=400,
        )


class ValidationError(JiraSyncError):
    """Snapshot is missing a field required by the operation."""

    def __init__(self, message: str, details=None):
        super().__init__("VALIDATION_ERROR", message, details, status_code=422)


class PersistenceConflict(JiraSyncError):
    """Store-level conflict; safe to retry because processing is idempotent."""

    def __init__(self, message: str, details=None):
        super().__init__(
            "PERSISTENCE_CONFLICT", message, details, status_code=503, retriable=True
        )


class ProcessingTimeout(JiraSyncError):
    """The pipeline did not finish within the configured budget."""

    def __init__(self, timeout_seconds: float):
        super().__init__(
            "PROCESSING_TIMEOUT",
            f"Webhook processing exceeded {timeout_seconds:g}s",
            status_code=503,
            retriable=True,
        )


class NotFoundError(JiraSyncError):
    """Resource not found."""

    def __init__(self, resource: str, resource_id: str):
        super().__init__(
            "NOT_FOUND",
            f"{resource} '{resource_id}' not found",
            status_code=404,
        )
