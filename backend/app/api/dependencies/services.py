# backend/app/api/dependencies/services.py
"""
Service layer dependencies for dependency injection.

This module provides factory functions that create service instances
with their required dependencies properly injected.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...services.access_gate import AccessGate
from ...services.access_policy_service import AccessPolicyService
from ...services.audit_service import AuditService
from ...services.captcha import CaptchaVerifier, PresenceCaptchaVerifier
from ...services.code_batch_service import CodeBatchService
from ...services.invitation_service import InvitationService
from ...services.registration_service import RegistrationService
from ...services.settings_service import SettingsService
from .database import get_db


def get_captcha_verifier() -> CaptchaVerifier:
    """Override to plug in a real CAPTCHA provider."""
    return PresenceCaptchaVerifier()


def get_settings_service(db: Session = Depends(get_db)) -> SettingsService:
    return SettingsService(db)


def get_audit_service(
    db: Session = Depends(get_db),
    settings_service: SettingsService = Depends(get_settings_service),
) -> AuditService:
    return AuditService(db, settings_service)


def get_access_gate(db: Session = Depends(get_db)) -> AccessGate:
    return AccessGate(db)


def get_registration_service(
    db: Session = Depends(get_db),
    settings_service: SettingsService = Depends(get_settings_service),
    captcha_verifier: CaptchaVerifier = Depends(get_captcha_verifier),
    audit_service: AuditService = Depends(get_audit_service),
) -> RegistrationService:
    """
    Get registration service instance with all dependencies.

    Args:
        db: Database session
        settings_service: Cascade resolver used for the captcha level
        captcha_verifier: Token checker for pools that require a CAPTCHA
        audit_service: Best-effort audit writer

    Returns:
        RegistrationService instance
    """
    return RegistrationService(
        db,
        settings_service=settings_service,
        captcha_verifier=captcha_verifier,
        audit_service=audit_service,
    )


def get_access_policy_service(db: Session = Depends(get_db)) -> AccessPolicyService:
    return AccessPolicyService(db)


def get_code_batch_service(
    db: Session = Depends(get_db), audit_service: AuditService = Depends(get_audit_service)
) -> CodeBatchService:
    return CodeBatchService(db, audit_service)


def get_invitation_service(
    db: Session = Depends(get_db), audit_service: AuditService = Depends(get_audit_service)
) -> InvitationService:
    return InvitationService(db, audit_service)
