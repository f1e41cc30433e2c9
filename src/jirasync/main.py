"""FastAPI application factory and lifespan management."""

import logging
import os
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jirasync import __version__
from jirasync.config import settings
from jirasync.db.engine import create_db_engine, create_session_factory
from jirasync.logging_config import configure_logging
from jirasync.sync.dispatcher import build_default_dispatcher

# Configure logging at import time
_json_logs = os.environ.get("JIRASYNC_LOCAL_MODE", "0") != "1"
configure_logging(log_level=settings.log_level, json_output=_json_logs)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application startup and shutdown resources."""
    db_url = settings.effective_database_url
    engine = create_db_engine(db_url)

    # Auto-create tables for SQLite (local dev, no migrations)
    if "sqlite" in db_url:
        from jirasync.db.base import Base
        import jirasync.db.models  # noqa: F401  register all ORM models

        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        logger.info("SQLite tables created (local mode)")

    app.state.db_engine = engine
    app.state.db_session_factory = create_session_factory(engine)

    logger.info(
        "jirasync started (db=%s, delete_policy=%s, unsupported_events=%s)",
        "sqlite" if "sqlite" in db_url else "postgresql",
        settings.delete_policy,
        settings.unsupported_event_policy,
    )
    yield

    await engine.dispose()
    logger.info("jirasync shutdown complete")


def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="jirasync",
        version=__version__,
        description="Inbound webhook ingestion and synchronization for Jira projects and issues.",
        lifespan=lifespan,
    )

    # Event-type table is read-only process-wide state
    app.state.dispatcher = build_default_dispatcher(settings)

    from jirasync.api.middleware.trace_id import TraceIdMiddleware
    app.add_middleware(TraceIdMiddleware)

    # Register error handlers
    from jirasync.errors.handlers import register_exception_handlers
    register_exception_handlers(app)

    # Import and mount routers
    from jirasync.api.router import api_router
    app.include_router(api_router)

    return app


app = create_app()
