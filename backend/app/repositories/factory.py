# backend/app/repositories/factory.py
"""
Repository Factory for the quinielas platform.

Provides centralized creation of repository instances,
ensuring consistent initialization and dependency injection.
"""

from sqlalchemy.orm import Session

from .audit_repository import AuditRepository
from .invitation_repository import InvitationRepository
from .invite_code_repository import CodeBatchRepository, InviteCodeRepository
from .pool_repository import AccessPolicyRepository, PoolRepository
from .registration_repository import RegistrationRepository
from .setting_repository import SettingRepository


class RepositoryFactory:
    """
    Factory class for creating repository instances.

    Centralizes repository creation so services and tests can swap
    implementations in one place.
    """

    @staticmethod
    def create_setting_repository(db: Session) -> SettingRepository:
        return SettingRepository(db)

    @staticmethod
    def create_pool_repository(db: Session) -> PoolRepository:
        return PoolRepository(db)

    @staticmethod
    def create_access_policy_repository(db: Session) -> AccessPolicyRepository:
        return AccessPolicyRepository(db)

    @staticmethod
    def create_code_batch_repository(db: Session) -> CodeBatchRepository:
        return CodeBatchRepository(db)

    @staticmethod
    def create_invite_code_repository(db: Session) -> InviteCodeRepository:
        return InviteCodeRepository(db)

    @staticmethod
    def create_invitation_repository(db: Session) -> InvitationRepository:
        return InvitationRepository(db)

    @staticmethod
    def create_registration_repository(db: Session) -> RegistrationRepository:
        return RegistrationRepository(db)

    @staticmethod
    def create_audit_repository(db: Session) -> AuditRepository:
        return AuditRepository(db)
