"""Pydantic models for error responses."""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict

from jirasync.models.enums import ResultStatus


class ErrorDetail(BaseModel):
    """Error detail in API responses."""

    model_config = ConfigDict(extra="forbid")

    code: str
    message: str
    details: dict[str, Any] | list[Any] | str | None = None
    retriable: bool = False
    trace_id: str
    timestamp: datetime


class ErrorResponse(BaseModel):
    """Standard error response; ``status``/``reason`` mirror the webhook ack."""

    model_config = ConfigDict(extra="forbid")

    status: ResultStatus = ResultStatus.REJECTED
    reason: str | None = None
    error: ErrorDetail
