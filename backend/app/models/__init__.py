"""
Database models for the quinielas platform.

The models are organized by functionality:
- Tenants and pools
- Scoped settings overrides
- Access policies and admission credentials (code batches, invite codes, invitations)
- Registrations
- Audit trail
"""

from .access import AccessPolicy, CodeBatch, Invitation, InviteCode
from .audit_log import AuditLog
from .registration import Registration
from .setting import Setting
from .tenant import Pool, Tenant

__all__ = [
    # Tenancy
    "Tenant",
    "Pool",
    # Settings
    "Setting",
    # Access
    "AccessPolicy",
    "CodeBatch",
    "InviteCode",
    "Invitation",
    # Admission
    "Registration",
    # Audit
    "AuditLog",
]
