from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from .core.config import settings
from .core.logging_config import configure_logging
from .api.routes import router as api_router
from .api.schemas import HealthResponse
from .api.websocket import manager as ws_manager, router as ws_router
from .scanner.device_types import get_device_classifier
from .scanner.oui_lookup import get_vendor_database

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan handler."""
    # Startup
    configure_logging()
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")

    # Load the lookup tables once, before the first scan needs them
    get_vendor_database()
    get_device_classifier()

    yield

    # Shutdown
    canceled = ws_manager.cancel_all()
    logger.info(f"Shutting down... ({canceled} running scans canceled)")


# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="Host discovery and port scanning service",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(api_router, prefix="/api", tags=["API"])
app.include_router(ws_router, tags=["WebSocket"])


@app.get("/")
async def root():
    """Root endpoint."""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running"
    }


@app.get("/health", response_model=HealthResponse)
async def health():
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        vendors_loaded=len(get_vendor_database()),
        vendor_mappings_loaded=len(get_device_classifier()),
    )
