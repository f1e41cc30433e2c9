"""FastAPI exception handlers producing ErrorResponse bodies."""

import logging
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from jirasync.errors.exceptions import JiraSyncError
from jirasync.models.common import ErrorDetail, ErrorResponse

logger = logging.getLogger(__name__)


def register_exception_handlers(app: FastAPI) -> None:
    """Register all custom exception handlers on the FastAPI app."""

    @app.exception_handler(JiraSyncError)
    async def jirasync_error_handler(request: Request, exc: JiraSyncError):
        trace_id = getattr(request.state, "trace_id", "unknown")
        if exc.retriable:
            logger.warning(
                "retriable_failure",
                extra={
                    "path": request.url.path,
                    "trace_id": trace_id,
                    "code": exc.code,
                    "reason": exc.message,
                },
            )
        error_response = ErrorResponse(
            status="rejected",
            reason=exc.message,
            error=ErrorDetail(
                code=exc.code,
                message=exc.message,
                details=exc.details,
                retriable=exc.retriable,
                trace_id=trace_id,
                timestamp=datetime.now(timezone.utc),
            ),
        )
        headers = {"Retry-After": "1"} if exc.retriable else None
        return JSONResponse(
            status_code=exc.status_code,
            content=error_response.model_dump(mode="json", exclude_none=True),
            headers=headers,
        )
