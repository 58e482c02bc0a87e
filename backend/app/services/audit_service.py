"""Service for writing best-effort audit trail entries."""

from __future__ import annotations

from datetime import date, datetime
from enum import Enum
import logging
from typing import Any, Mapping, Optional

from sqlalchemy.orm import Session

from app.core.config import settings
from app.models.audit_log import AuditLog
from app.monitoring.prometheus_metrics import prometheus_metrics
from app.repositories.factory import RepositoryFactory
from app.services.anti_abuse import sanitize_ip_address
from app.services.settings_service import SettingsService

logger = logging.getLogger(__name__)


class AuditService:
    """
    Create and persist audit entries without ever failing the caller.

    Each entry is written inside a SAVEPOINT of the caller's transaction: a
    failed write rolls back only itself, is logged, and the surrounding
    operation carries on.
    """

    def __init__(self, db: Session, settings_service: Optional[SettingsService] = None):
        self.db = db
        self.settings_service = settings_service or SettingsService(db)
        self.repository = RepositoryFactory.create_audit_repository(db)

    def record(
        self,
        action: str,
        resource_type: str,
        resource_id: str | None = None,
        *,
        tenant_id: str | None = None,
        pool_id: str | None = None,
        actor_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> AuditLog | None:
        """Write one entry; returns None when disabled or when the write failed."""
        action_name = str(getattr(action, "value", action))
        if not settings.audit_enabled:
            return None

        try:
            with self.db.begin_nested():
                entry = AuditLog.from_action(
                    action_name,
                    resource_type,
                    resource_id,
                    tenant_id=tenant_id,
                    actor_id=actor_id,
                    ip_address=sanitize_ip_address(
                        self.settings_service, ip_address, tenant_id, pool_id
                    ),
                    user_agent=user_agent,
                    metadata=_normalize_value(dict(metadata or {})),
                )
                self.repository.write(entry)
        except Exception:
            logger.warning(
                "Audit write failed for %s on %s %s",
                action_name,
                resource_type,
                resource_id,
                exc_info=True,
            )
            prometheus_metrics.record_audit_write(action_name, status="failed")
            return None

        prometheus_metrics.record_audit_write(action_name)
        return entry


def _normalize_value(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _normalize_value(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_normalize_value(v) for v in value]
    return value
