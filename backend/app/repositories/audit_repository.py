# backend/app/repositories/audit_repository.py
"""Persistence for audit_log entries."""

from __future__ import annotations

from sqlalchemy.orm import Session

from app.models.audit_log import AuditLog


class AuditRepository:
    """Append-only writer for audit trail entries."""

    def __init__(self, db: Session):
        self.db = db

    def write(self, audit: AuditLog) -> None:
        """Persist a new audit row inside the active transaction."""
        self.db.add(audit)
        self.db.flush()
