"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (logging, schema, engine).
Middleware, the error handler, and routers are all registered here.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from runlens import __version__
from runlens.api import api_router
from runlens.config import settings
from runlens.db.engine import engine, init_db
from runlens.errors import RunlensError
from runlens.logs import configure_logging
from runlens.middleware.request_id import RequestIdMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` at shutdown.
    The SQLite parent directory is created here so a fresh install just works.
    """
    configure_logging(settings.log_level, settings.json_logs)

    db_path = settings.sqlite_path
    if db_path is not None:
        db_path.parent.mkdir(parents=True, exist_ok=True)
    await init_db(engine)

    logger.info(
        "runlens.starting",
        version=__version__,
        environment=settings.environment,
        database=str(db_path) if db_path else settings.database_url,
        port=settings.port,
    )

    yield

    logger.info("runlens.shutdown")
    await engine.dispose()


async def runlens_error_handler(request: Request, exc: RunlensError) -> JSONResponse:
    """Render domain errors as {"detail": ..., "error": <kind>}."""
    if exc.status_code >= 500:
        logger.error("request.failed", error=exc.kind, detail=str(exc))
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.kind},
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="runlens",
        description="Observability for AI coding agent sessions — latency, cost, regressions, budgets",
        version=__version__,
        lifespan=lifespan,
    )

    app.add_middleware(RequestIdMiddleware)
    app.add_exception_handler(RunlensError, runlens_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: runlens.main:app)
app = create_app()
