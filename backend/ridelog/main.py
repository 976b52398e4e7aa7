"""
Ride Telemetry Collector - FastAPI Backend

Main application entry point and configuration.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from ridelog.api.rides import router as rides_router
from ridelog.config import ServiceSettings
from ridelog.errors import RideLogError
from ridelog.services.broadcaster import get_broadcaster
from ridelog.services import sessions
from ridelog.services.sessions import get_session_manager, init_session_manager


# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    logger.info("Starting Ride Telemetry Collector")

    # Tests may have installed a manager already
    if sessions._manager is None:
        settings = ServiceSettings.from_env()
        init_session_manager(settings.export_folder)
        logger.info(f"Storing ride exports in: {settings.export_folder}")

    yield

    # Shutdown
    logger.info("Shutting down Ride Telemetry Collector")


# Create FastAPI app
app = FastAPI(
    title="Ride Telemetry Collector",
    description="""
    Collection service for ride recordings.

    ## Features
    - Ingest batches of fused location + acceleration records
    - Assemble batches into one ride per session
    - Finalize a ride into a downloadable CSV export
    - Push accepted batches live to WebSocket observers

    ## Data Flow
    1. Send batches via POST /upload or `data` frames on /ws
    2. End the ride via POST /stop or a `stop` frame on /ws
    3. Download the export via GET /download/{index}
    """,
    version="0.1.0",
    lifespan=lifespan,
)


# CORS middleware (allow all origins for development)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # In production, restrict this
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(RideLogError)
async def ride_error_handler(request: Request, exc: RideLogError):
    """Render pipeline errors as ``{"message", "error"}``."""
    return JSONResponse(status_code=exc.status_code, content=exc.to_payload())


# Include routers
app.include_router(rides_router)


@app.get("/")
async def root():
    """Root endpoint - basic health check."""
    return {
        "name": "Ride Telemetry Collector",
        "version": "0.1.0",
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    manager = get_session_manager()
    snapshot = manager.status()

    return {
        "status": "healthy",
        "export_folder": str(manager.store.folder),
        "session_count": len(manager.store),
        "open_record_count": snapshot.record_count,
        "live_clients": get_broadcaster().client_count,
    }
