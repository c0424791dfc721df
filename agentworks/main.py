"""
AgentWorks - Rebate versioning and resolution service

Main FastAPI application with:
- Talent rebate updates (immediate and next cooperation)
- Agency rebate updates with batch sync to talents
- Customer-specific rebate overrides
- Effective rate resolution and rebate history
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from agentworks.api import api_router
from agentworks.api.errors import install_exception_handlers
from agentworks.config import settings

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level.upper()),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    logger.info("Starting AgentWorks rebate service...")
    logger.info(
        f"Default rebate rate {settings.default_rebate_rate}, "
        f"history page size {settings.history_default_limit}"
    )

    yield

    # Shutdown
    logger.info("Shutting down AgentWorks rebate service...")


# Create FastAPI application
app = FastAPI(
    title="AgentWorks Rebates",
    description="Rebate versioning and resolution",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/docs" if not settings.is_production else None,
    redoc_url="/redoc" if not settings.is_production else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)

install_exception_handlers(app)

# Include routers
app.include_router(api_router)  # /api/* endpoints


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "agentworks.main:app",
        host="0.0.0.0",
        port=8000,
        reload=not settings.is_production,
    )
