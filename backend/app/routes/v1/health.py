# backend/app/routes/v1/health.py
"""
Health check endpoint for monitoring and load balancer probes.
"""

from __future__ import annotations

from datetime import datetime, timezone
import logging

from fastapi import APIRouter, Response
from sqlalchemy import text

from app.core.config import settings
from app.core.constants import API_VERSION, BRAND_NAME
from app.database import engine
from app.schemas.health import HealthResponse

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


def _database_ok() -> bool:
    try:
        with engine.connect() as connection:
            connection.execute(text("SELECT 1"))
    except Exception:
        logger.warning("Health check could not reach the database", exc_info=True)
        return False
    return True


@router.get("", response_model=HealthResponse)
def health_check(response: Response) -> HealthResponse:
    database_ok = _database_ok()
    if not database_ok:
        response.status_code = 503
    return HealthResponse(
        status="healthy" if database_ok else "degraded",
        service=f"{BRAND_NAME.lower()}-api",
        version=API_VERSION,
        environment=settings.environment,
        timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
        database=database_ok,
    )
