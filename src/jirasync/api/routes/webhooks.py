"""Inbound webhook endpoint for the source system."""

import asyncio
import logging

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse

from jirasync.config import settings
from jirasync.dependencies import Pipeline
from jirasync.errors.exceptions import ProcessingTimeout
from jirasync.models.enums import ResultStatus

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Webhooks"])

# Rejection code -> HTTP status; anything unlisted is a plain 400
_REJECTION_STATUS: dict[str, int] = {
    "MALFORMED_PAYLOAD": 400,
    "UNSUPPORTED_EVENT_TYPE": 400,
    "VALIDATION_ERROR": 422,
}


@router.post("/webhooks/jira")
async def receive_jira_webhook(
    request: Request,
    pipeline: Pipeline,
) -> JSONResponse:
    """Apply one change notification to the local mirror.

    Accepted events (including stale and ignored ones) answer 200, rejected
    events 4xx with the reason in the body. Store conflicts and timeouts answer
    503 so the source system retries; retries are safe because processing is
    idempotent.
    """
    body = await request.body()
    logger.info(
        "webhook_received",
        extra={
            "webhook_id": request.headers.get("x-atlassian-webhook-identifier"),
            "retry": request.headers.get("x-atlassian-webhook-retry"),
            "bytes": len(body),
        },
    )

    timeout = settings.processing_timeout_seconds
    try:
        result = await asyncio.wait_for(
            pipeline.handle(body, request.headers.get("content-type")),
            timeout=timeout,
        )
    except TimeoutError:
        raise ProcessingTimeout(timeout)

    if result.status is ResultStatus.ACCEPTED:
        status_code = 200
    else:
        status_code = _REJECTION_STATUS.get(result.code or "", 400)
    return JSONResponse(
        status_code=status_code,
        content=result.model_dump(mode="json", exclude_none=True),
    )
