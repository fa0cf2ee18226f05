"""hearth - household chore coordination service."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from hearth.core.config import constants, settings
from hearth.core.container import Container
from hearth.core.db_client import Database, init_db
from hearth.core.errors import ConflictError, classify_error
from hearth.core.logging import configure_logfire, instrument_fastapi
from hearth.interface.routes import router


logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan context manager."""
    # Configure logging first so startup logs are captured
    configure_logfire()

    db = Database(db_path=settings.sqlite_db_path, pool_size=settings.db_pool_size)
    await db.open()
    await init_db(db)
    logger.info("Database initialized")

    container = Container(settings=settings, db=db)
    app.state.container = container
    container.start_schedulers()
    try:
        yield
    finally:
        del app.state.container
        await container.stop_schedulers()
        await db.close()


app = FastAPI(
    title="hearth",
    description="Household chore coordination",
    version="0.1.0",
    lifespan=lifespan,
)

# Instrument FastAPI with Logfire
instrument_fastapi(app)

app.include_router(router)


async def handle_domain_error(_request: Request, exc: Exception) -> JSONResponse:
    """Map domain exceptions to structured error responses."""
    response = classify_error(exc)
    logger.info("Request rejected", extra={"error": str(exc), "error_code": response.code})
    return JSONResponse(
        content=response.model_dump(mode="json", exclude={"status_code"}),
        status_code=response.status_code,
    )


for _exc_type in (ConflictError, LookupError, PermissionError, ValueError):
    app.add_exception_handler(_exc_type, handle_domain_error)


@app.get("/health")
async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint with database and scheduler status."""
    container: Container | None = getattr(request.app.state, "container", None)
    if container is None:
        return JSONResponse(content={"status": "healthy"}, status_code=constants.HTTP_OK)

    database_ok = await container.db.ping()
    schedulers_running = all(scheduler.is_running for scheduler in container.schedulers)
    healthy = database_ok and schedulers_running
    return JSONResponse(
        content={
            "status": "healthy" if healthy else "unhealthy",
            "database": "ok" if database_ok else "unavailable",
            "schedulers": {scheduler.name: scheduler.is_running for scheduler in container.schedulers},
        },
        status_code=constants.HTTP_OK if healthy else constants.HTTP_SERVICE_UNAVAILABLE,
    )


@app.get("/health/scheduler")
async def scheduler_health_check(request: Request) -> JSONResponse:
    """Scheduler health check endpoint with job statuses."""
    container: Container | None = getattr(request.app.state, "container", None)
    if container is None:
        return JSONResponse(content={"status": "starting", "jobs": {}}, status_code=constants.HTTP_SERVICE_UNAVAILABLE)

    job_statuses = {}
    for scheduler in container.schedulers:
        status = await container.tracker.get_job_status(scheduler.name)
        job_statuses[scheduler.name] = {**status, "running": scheduler.is_running}

    has_failures = any(status["consecutive_failures"] > 0 for status in job_statuses.values())
    overall_status = "degraded" if has_failures else "healthy"

    return JSONResponse(
        content={"status": overall_status, "jobs": job_statuses},
        status_code=constants.HTTP_OK if overall_status == "healthy" else constants.HTTP_SERVICE_UNAVAILABLE,
    )
