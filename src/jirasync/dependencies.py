"""FastAPI dependency injection providers."""

from collections.abc import AsyncGenerator
from typing import Annotated

from fastapi import Depends, Request

from jirasync.config import settings
from jirasync.sync.pipeline import WebhookPipeline


async def get_db(request: Request) -> AsyncGenerator:
    """Yield a database session from the app's session factory."""
    session_factory = request.app.state.db_session_factory
    async with session_factory() as session:
        yield session


def get_pipeline(request: Request) -> WebhookPipeline:
    """Build a pipeline over the process-wide dispatcher and session factory."""
    return WebhookPipeline(
        request.app.state.dispatcher,
        request.app.state.db_session_factory,
        unsupported_event_policy=settings.unsupported_event_policy,
        max_body_bytes=settings.max_body_bytes,
    )


# Type aliases for dependency injection
Pipeline = Annotated[WebhookPipeline, Depends(get_pipeline)]
