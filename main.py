"""
Kiosk Sync - offline-resilient customer cache for the check-in kiosk
FastAPI Application Entry Point
"""
import uvicorn
from fastapi import FastAPI
from contextlib import asynccontextmanager
import logging

from kiosk.core import settings, engine, Base
from kiosk.core.log_config import setup_logging
from kiosk.api.router import api_router
from kiosk.jobs import start_scheduler, stop_scheduler

logger = logging.getLogger(__name__)

# Lifespan for startup/shutdown
@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging("kiosk")

    # Startup: Create tables if not exist
    Base.metadata.create_all(bind=engine)
    logger.info(f"{settings.APP_NAME} starting on port {settings.APP_PORT}")

    # Start background scheduler; restores the last selected venue
    try:
        start_scheduler()
    except Exception as e:
        logger.error(f"Could not start scheduler: {e}")

    yield

    # Shutdown: running sync passes stop before their next page
    stop_scheduler()
    logger.info(f"{settings.APP_NAME} shutting down")

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    description="Local customer directory mirror and offline check-in queue",
    version="1.0.0",
    lifespan=lifespan
)

# Include routers
app.include_router(api_router, prefix="/api")

# Health check
@app.get("/health")
async def health_check():
    return {"status": "healthy", "app": settings.APP_NAME}

if __name__ == "__main__":
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.APP_PORT,
        reload=settings.DEBUG
    )
