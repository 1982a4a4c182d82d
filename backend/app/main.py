"""
SolBridge - Main FastAPI Application
Position monitoring and automated exits for CEX and Solana DEX trades
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging

from core.config import settings
from api.router import api_router
from db.session import init_db, close_db
from engine.runtime import start_position_monitor, stop_position_monitor

# Configure logging
logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan - startup and shutdown"""
    # Startup
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")

    # Initialize database tables
    try:
        await init_db()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Database initialization failed: {e}")

    # Position monitor runs inside the API process
    if settings.MONITOR_ENABLED:
        try:
            await start_position_monitor()
            logger.info("Position monitor background task started")
        except Exception as e:
            logger.error(f"Failed to start position monitor: {e}")
    else:
        logger.warning("Position monitor disabled (MONITOR_ENABLED=false); relying on the Celery sweep")

    yield

    # Shutdown
    logger.info("Shutting down...")
    await stop_position_monitor()
    await close_db()


# Create FastAPI application
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
    SolBridge - Trading assistant backend

    ## Features
    - 🎯 Take profit, stop loss and trailing stop on open positions
    - 🔁 Background monitor with automatic exits on CEX and Jupiter
    - 📱 Telegram notifications for every closure
    """,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include API router
app.include_router(api_router, prefix="/api/v1")


# Root endpoint
@app.get("/")
async def root():
    """Root endpoint with system info"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "online",
        "docs": "/docs",
        "monitor_enabled": settings.MONITOR_ENABLED
    }


# Health check (simple, no auth)
@app.get("/health")
async def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.DEBUG
    )
