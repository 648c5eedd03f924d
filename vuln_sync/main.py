#!/usr/bin/env python3
"""
Vulnerability Sync - API Server and Ingester
Synchronizes NVD advisories enriched with OSV records and exposes admin operations
"""

import uvicorn
from fastapi import FastAPI, Depends
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
import logging
from datetime import datetime, timezone

from .api.routes import admin, purls
from .core.auth import require_api_key
from .core.config import settings, validate_settings
from .core.database import DatabaseManager
from .core.retry import RetryPolicy
from .orchestration.ingestion_service import IngestionService
from .orchestration.scheduler import IngestionScheduler
from .repositories.dataset_store import DatasetStore
from .repositories.history_store import HistoryStore
from .sources.nvd_client import NvdClient
from .sources.osv_client import OsvClient

# Setup logging
logging.basicConfig(
    level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    handlers=[
        logging.FileHandler(settings.LOG_FILE),
        logging.StreamHandler()
    ]
)
logger = logging.getLogger(__name__)


def skip_scheduler() -> bool:
    """True when this deployment is not an ingester"""
    return not settings.is_ingester


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan management"""
    logger.info("Starting Vulnerability Sync...")
    validate_settings(settings)

    db_manager = DatabaseManager()
    await db_manager.initialize()

    nvd_client = NvdClient()
    osv_client = OsvClient()

    service = IngestionService(
        history=HistoryStore(db_manager, capacity=settings.HISTORY_CAPACITY),
        dataset=DatasetStore(db_manager),
        nvd_client=nvd_client,
        osv_client=osv_client,
        page_size=settings.INGESTER_PAGE_SIZE,
        retry_policy=RetryPolicy(settings.RETRY_BACKOFF_SECONDS, settings.RETRY_BUDGET_SECONDS),
        skip_ingestion=skip_scheduler,
    )

    # Reconcile a run interrupted by a crash before any trigger can fire
    await service.recover_unfinished_run()

    scheduler = IngestionScheduler(
        service.sync,
        every=settings.INGESTER_SCHEDULE_EVERY,
        initial_delay=settings.INGESTER_INITIAL_DELAY,
        skip_if=skip_scheduler,
    )
    if not skip_scheduler():
        scheduler.start()

    app.state.db_manager = db_manager
    app.state.ingestion_service = service
    app.state.osv_client = osv_client
    app.state.scheduler = scheduler

    logger.info("Vulnerability Sync started successfully")

    yield

    # Cleanup
    logger.info("Shutting down Vulnerability Sync...")
    await scheduler.shutdown()
    await nvd_client.close()
    await osv_client.close()
    await db_manager.close()


app = FastAPI(
    title="Vulnerability Sync API",
    description="NVD/OSV vulnerability database synchronization",
    version="1.0.0",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(
    admin.router,
    prefix="/admin",
    tags=["admin"],
    dependencies=[Depends(require_api_key)]
)
app.include_router(
    purls.router,
    prefix="/api/v1/purls",
    tags=["purls"],
    dependencies=[Depends(require_api_key)]
)


# Root endpoint
@app.get("/")
async def root():
    """Health check endpoint"""
    return {
        "message": "Vulnerability Sync API",
        "version": "1.0.0",
        "status": "running",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }


@app.get("/health")
async def health_check():
    """Detailed health check"""
    db_manager = getattr(app.state, "db_manager", None)
    db_status = await db_manager.check_connection() if db_manager else False
    scheduler = getattr(app.state, "scheduler", None)

    return {
        "status": "healthy" if db_status else "unhealthy",
        "database": "connected" if db_status else "disconnected",
        "ingester": settings.is_ingester,
        "ingestion_running": bool(scheduler and scheduler.running),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "version": "1.0.0"
    }


def run():
    uvicorn.run(
        "vuln_sync.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="info"
    )


if __name__ == "__main__":
    run()
