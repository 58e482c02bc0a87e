# backend/app/main.py
"""FastAPI application: settings cascade, pool registration and access administration."""

from contextlib import asynccontextmanager
import logging
from typing import AsyncGenerator

from fastapi import APIRouter, FastAPI
from fastapi.routing import APIRoute

from .core.config import settings
from .core.constants import API_DESCRIPTION, API_TITLE, API_VERSION, BRAND_NAME
from .database import init_db
from .errors import register_error_handlers
from .routes.v1 import (
    access_admin as access_admin_v1,
    health as health_v1,
    prometheus as prometheus_v1,
    registration as registration_v1,
    settings as settings_v1,
)

# Configure logging
logging.basicConfig(
    level=getattr(logging, settings.log_level, logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def app_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Handle application startup/shutdown without deprecated events."""
    logger.info(f"{BRAND_NAME} API starting up...")
    logger.info(f"Environment: {settings.environment} (site_mode={settings.site_mode})")
    if settings.is_production_database() and settings.environment != "production":
        logger.warning("Non-production environment is pointed at a production database")

    # Tables come straight from model metadata; there is no migration step.
    init_db()
    yield
    logger.info(f"{BRAND_NAME} API shutting down...")


def _unique_operation_id(route: APIRoute) -> str:
    methods = "_".join(sorted(m.lower() for m in route.methods or []))
    path = route.path_format.replace("/", "_").replace("{", "").replace("}", "").strip("_")
    name = (route.name or "operation").lower().replace(" ", "_")
    return f"{methods}__{path}__{name}".strip("_")


app = FastAPI(
    title=API_TITLE,
    description=API_DESCRIPTION,
    version=API_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=app_lifespan,
    generate_unique_id_function=_unique_operation_id,
)

# Register unified error envelope handlers
register_error_handlers(app)

# Create API v1 router
api_v1 = APIRouter(prefix="/api/v1")

api_v1.include_router(health_v1.router, prefix="/health")
api_v1.include_router(settings_v1.router, prefix="/settings")
api_v1.include_router(registration_v1.router, prefix="/pools/{pool_id}/registration")
api_v1.include_router(access_admin_v1.router, prefix="/pools/{pool_id}/access")
api_v1.include_router(access_admin_v1.events_router, prefix="/invitations")
api_v1.include_router(access_admin_v1.maintenance_router, prefix="/admin/access")

app.include_router(api_v1)
app.include_router(prometheus_v1.router)


__all__ = ["app"]
