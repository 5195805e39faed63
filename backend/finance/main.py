import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager

from finance.config import settings
from finance.database import AsyncSessionLocal, init_db, dispose_db
from finance.services.rate_cache import RateCache
from finance.services.scheduler_service import RateSyncScheduler

logging.basicConfig(
    level=settings.log_level.upper(),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Lifecycle manager for the FastAPI application.
    Owns the rate cache and the exchange rate scheduler.
    """
    # Startup: Initialize database
    await init_db()
    logger.info("Database initialized successfully")

    app.state.rate_cache = RateCache(
        ttl_seconds=settings.rate_cache_ttl_seconds,
        max_entries=settings.rate_cache_max_entries
    )

    # Start the daily exchange rate sync
    rate_sync = RateSyncScheduler(AsyncSessionLocal, settings=settings)
    app.state.rate_sync = rate_sync
    if settings.scheduler_enabled:
        rate_sync.start()
        logger.info(
            f"Scheduler started - ECB sync daily at {settings.sync_hour:02d}:{settings.sync_minute:02d} "
            f"{settings.sync_timezone}"
        )
    else:
        logger.info("Scheduler disabled by configuration")

    yield

    # Shutdown: Clean up resources
    logger.info("Application shutting down")
    if rate_sync.scheduler is not None:
        rate_sync.shutdown()
    await dispose_db()


# Create FastAPI application
app = FastAPI(
    title="Finance API",
    description="Household finance backend with ECB exchange rates and multi-currency conversion",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Health check endpoint
@app.get("/")
async def root():
    return {
        "message": "Finance API",
        "version": "1.0.0",
        "status": "running"
    }


@app.get("/health")
async def health_check():
    return {"status": "healthy"}


# Import and include routers
from finance.routers import currencies, scheduler, admin  # noqa: E402

app.include_router(currencies.router, prefix="/api/currencies", tags=["currencies"])
app.include_router(scheduler.router, prefix="/api/scheduler", tags=["scheduler"])
app.include_router(admin.router, prefix="/api/admin", tags=["admin"])
