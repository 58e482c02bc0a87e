# backend/app/models/audit_log.py
"""
Audit trail model for admissions and administrative changes.

Provides a helper for building rows from an action plus the acting principal.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping

from sqlalchemy import Column, DateTime, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.sql import func
from sqlalchemy.types import JSON
import ulid

from app.database import Base


def _now_utc() -> datetime:
    """Return timezone-aware UTC timestamp for defaults."""
    return datetime.now(timezone.utc)


class AuditLog(Base):
    """Persistence model for audit trail entries."""

    __tablename__ = "audit_log"

    id = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id = Column(String(26), nullable=True, index=True)
    actor_id = Column(String(64), nullable=True)
    action = Column(String(50), nullable=False)
    resource_type = Column(String(50), nullable=False)
    resource_id = Column(String(64), nullable=True)
    ip_address = Column(String(64), nullable=True)
    user_agent = Column(String(512), nullable=True)
    metadata_json = Column(
        JSONB(astext_type=Text()).with_variant(JSON(), "sqlite"),
        nullable=True,
    )
    occurred_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_now_utc,
        server_default=func.now(),
    )

    @classmethod
    def from_action(
        cls,
        action: str,
        resource_type: str,
        resource_id: str | None,
        *,
        tenant_id: str | None = None,
        actor_id: str | None = None,
        ip_address: str | None = None,
        user_agent: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> "AuditLog":
        """Factory helper to build an AuditLog instance for a single action."""
        payload = {k: v for k, v in dict(metadata or {}).items() if v is not None}
        return cls(
            tenant_id=tenant_id,
            actor_id=actor_id,
            action=str(getattr(action, "value", action)),
            resource_type=resource_type,
            resource_id=resource_id,
            ip_address=ip_address,
            user_agent=user_agent[:512] if user_agent else None,
            metadata_json=payload or None,
        )
