# backend/app/api/dependencies/__init__.py
"""
Central export point for all dependencies.

This module re-exports all dependencies from submodules
for convenient access throughout the application.
"""

from .auth import (
    get_current_principal,
    get_tenant_principal,
    require_superadmin,
    require_tenant_admin,
)
from .database import get_db
from .pools import get_member_pool, get_tenant_pool
from .services import (
    get_access_gate,
    get_access_policy_service,
    get_audit_service,
    get_captcha_verifier,
    get_code_batch_service,
    get_invitation_service,
    get_registration_service,
    get_settings_service,
)

__all__ = [
    # Auth
    "get_current_principal",
    "get_tenant_principal",
    "require_tenant_admin",
    "require_superadmin",
    # Database
    "get_db",
    # Pools
    "get_member_pool",
    "get_tenant_pool",
    # Services
    "get_access_gate",
    "get_access_policy_service",
    "get_audit_service",
    "get_captcha_verifier",
    "get_code_batch_service",
    "get_invitation_service",
    "get_registration_service",
    "get_settings_service",
]
