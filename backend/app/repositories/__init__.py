# backend/app/repositories/__init__.py
"""
Repository Pattern Implementation for the quinielas platform.

This package provides the repository layer for data access,
separating business logic from database queries.

Key Components:
- BaseRepository: Foundation for all repositories with generic CRUD operations
- RepositoryFactory: Factory for creating repository instances
- SettingRepository: Scoped setting overrides
- PoolRepository / AccessPolicyRepository: Pools and their admission policy
- CodeBatchRepository / InviteCodeRepository: Invite codes, including the
  compare-and-swap consumption
- InvitationRepository: Email invitations
- RegistrationRepository: Pool admissions
- AuditRepository: Audit trail

Usage:
    from app.repositories import RepositoryFactory

    # In a service:
    codes = RepositoryFactory.create_invite_code_repository(db)
    if codes.consume(code.id) == 0:
        ...  # last use already taken
"""

from .audit_repository import AuditRepository
from .base_repository import BaseRepository
from .factory import RepositoryFactory
from .invitation_repository import InvitationRepository
from .invite_code_repository import CodeBatchRepository, InviteCodeRepository
from .pool_repository import AccessPolicyRepository, PoolRepository
from .registration_repository import RegistrationRepository
from .setting_repository import SettingRepository

__all__ = [
    "AccessPolicyRepository",
    "AuditRepository",
    "BaseRepository",
    "CodeBatchRepository",
    "InvitationRepository",
    "InviteCodeRepository",
    "PoolRepository",
    "RegistrationRepository",
    "RepositoryFactory",
    "SettingRepository",
]
