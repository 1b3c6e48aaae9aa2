"""
Commission Engine - marketplace commission resolution and settlement

Main FastAPI application with:
- Commission rule management (admin and supplier panel)
- Rate resolution for products
- Sale settlement with frozen commission split
- Supplier commission summaries
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import RedirectResponse

from src.api import api_router
from src.config import settings
from src.db import get_db_context
from src.services.rule_lifecycle import seed_global_rule

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan manager.

    Startup:
    - Creates the platform global rule if configured and none is active
    """
    logger.info("Starting commission engine...")

    if settings.seed_global_rate is not None:
        async with get_db_context() as db:
            await seed_global_rule(db, settings.seed_global_rate)

    logger.info("Commission engine started successfully!")

    yield

    # Shutdown
    logger.info("Shutting down commission engine...")


# Create FastAPI application
app = FastAPI(
    title="Commission Engine",
    description="Marketplace commission resolution and settlement",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

# Include routers
app.include_router(api_router)  # /api/* endpoints


@app.get("/", include_in_schema=False)
async def root():
    """Redirect root to the API health check."""
    return RedirectResponse(url="/api/health", status_code=302)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
