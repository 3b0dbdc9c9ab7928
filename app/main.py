"""
Workflow Registry - FastAPI Application
Administrative API for workflow definitions and their default selection
"""
from contextlib import asynccontextmanager
import logging

from fastapi import Depends, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware

from app.config import settings
from app.core.context import now_utc
from app.core.security import get_current_user
from app.database import init_db
from app.api.routes import auth, health
from app.api.v1 import workflows

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handle startup and shutdown events."""
    logger.info("Starting Workflow Registry API...")

    try:
        init_db()
        logger.info("Database initialized")
    except Exception:
        logger.exception("Database initialization failed")
        raise

    logger.info(f"API running on {settings.app_env} environment")
    yield
    logger.info("Shutting down Workflow Registry API...")


app = FastAPI(
    title=settings.app_name,
    description="Backend API for workflow administration",
    version="1.0.0",
    lifespan=lifespan,
)

# Respect proxy forwarded proto/host so redirects don't downgrade to http.
app.add_middleware(ProxyHeadersMiddleware, trusted_hosts="*")

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/")
async def root() -> dict:
    return {
        "name": settings.app_name,
        "environment": settings.app_env,
        "timestamp": now_utc().isoformat(),
    }


prefix = settings.api_v1_prefix

app.include_router(health.router, prefix=prefix, tags=["Health"])
app.include_router(auth.router, prefix=f"{prefix}/auth", tags=["Auth"])
app.include_router(
    workflows.router,
    prefix=f"{prefix}/workflows",
    tags=["Workflows"],
    dependencies=[Depends(get_current_user)],
)
