"""
FastAPI application serving market data through the tiered cache.
"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger

from marketcache.api.v1.router import router as api_v1_router
from marketcache.core.config import settings
from marketcache.core.logging import setup_logging
from marketcache.services.market_feed import get_market_feed


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown tasks"""
    setup_logging()
    logger.info(f"🚀 Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"📊 Environment: {settings.ENVIRONMENT}")

    feed = get_market_feed()
    feed.service.preload_static_data()
    await feed.start_maintenance()
    logger.info("✅ Application started successfully")

    yield

    logger.info(f"Shutting down {settings.APP_NAME}...")
    await feed.close()
    await feed.service.close()
    logger.info("✅ Shutdown complete")


app = FastAPI(
    title="Skepsis Market Cache API",
    version=settings.APP_VERSION,
    description="Read-through multi-tier cache for prediction market data",
    lifespan=lifespan,
)

if settings.CORS_ORIGINS:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[origin.strip() for origin in settings.CORS_ORIGINS.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.include_router(api_v1_router, prefix="/api/v1")


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "message": "Skepsis Market Cache API",
        "version": settings.APP_VERSION,
        "status": "running",
        "docs": "/docs"
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
