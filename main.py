"""
Tutor Scheduling Engine API Server

FastAPI application for the tutoring marketplace scheduling core.
Serves session lifecycle, registration, matching and sweep controls.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware

from scheduling_engine import __version__
from scheduling_engine.api.errors import register_exception_handlers
from scheduling_engine.api.routes import matching, scheduler, sessions
from scheduling_engine.config import get_settings
from scheduling_engine.database import dispose_engine
from scheduling_engine.dependencies import get_session_service
from scheduling_engine.services.scheduler import start_scheduler, stop_scheduler

SERVICE_NAME = "tutor-scheduling-engine"
DESCRIPTION = "Session lifecycle, registration and matching for the tutoring marketplace"

logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service on startup; run the sweep job while the server is up"""
    settings = get_settings()
    service = get_session_service()
    logger.info(
        f"Starting {SERVICE_NAME} v{__version__} "
        f"(backend={settings.repository_backend}, tz={settings.canonical_timezone})"
    )

    if settings.scheduler_enabled:
        start_scheduler(service.sweeper, settings)
    else:
        logger.info("Background sweep disabled (SCHEDULER_ENABLED=false)")

    yield

    logger.info(f"Shutting down {SERVICE_NAME}...")
    stop_scheduler()
    await dispose_engine()


app = FastAPI(
    title="Tutor Scheduling Engine API",
    description=DESCRIPTION,
    version=__version__,
    lifespan=lifespan,
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    openapi_url="/api/openapi.json"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)


@app.middleware("http")
async def time_requests(request: Request, call_next):
    started = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - started) * 1000

    response.headers["X-Process-Time-Ms"] = f"{elapsed_ms:.2f}"
    logger.info(f"{request.method} {request.url.path} -> {response.status_code} in {elapsed_ms:.2f}ms")
    return response


app.include_router(sessions.router)
app.include_router(matching.router)
app.include_router(scheduler.router)


@app.get("/health", tags=["Health"])
async def health_check():
    """Liveness probe with version information"""
    return {
        "status": "ok",
        "timestamp": datetime.utcnow().isoformat(),
        "version": __version__,
        "service": SERVICE_NAME,
    }


@app.get("/", tags=["Root"])
async def root():
    return {
        "name": "Tutor Scheduling Engine API",
        "version": __version__,
        "description": DESCRIPTION,
        "docs": "/api/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True, log_level="info")
