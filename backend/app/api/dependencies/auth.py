# backend/app/api/dependencies/auth.py
"""
Principal dependencies.

Tenant resolution and authentication happen in front of this service; the
results arrive as ``X-User-Id``, ``X-Tenant-Id`` and ``X-User-Role`` headers.
These dependencies only read and check them.
"""

import logging
from typing import Optional

from fastapi import Depends, Header, HTTPException, status

from ...core.constants import TENANT_ID_HEADER, USER_ID_HEADER, USER_ROLE_HEADER
from ...core.enums import RoleName
from ...principal import Principal

logger = logging.getLogger(__name__)


def get_current_principal(
    user_id: Optional[str] = Header(default=None, alias=USER_ID_HEADER),
    tenant_id: Optional[str] = Header(default=None, alias=TENANT_ID_HEADER),
    role: Optional[str] = Header(default=None, alias=USER_ROLE_HEADER),
) -> Principal:
    """Build the principal from upstream headers; 401 when no user is present."""
    if not user_id or not user_id.strip():
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED, detail="Authentication required"
        )
    try:
        role_name = RoleName((role or RoleName.PLAYER.value).strip().lower())
    except ValueError:
        logger.warning("Rejected unknown role header %r", role)
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Unknown role")
    return Principal(
        user_id=user_id.strip(),
        tenant_id=tenant_id.strip() if tenant_id and tenant_id.strip() else None,
        role=role_name,
    )


def get_tenant_principal(principal: Principal = Depends(get_current_principal)) -> Principal:
    """A principal bound to a resolved tenant."""
    if principal.tenant_id is None:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Tenant not resolved")
    return principal


def require_tenant_admin(principal: Principal = Depends(get_tenant_principal)) -> Principal:
    """Tenant administrators (and superadmins) only."""
    if not principal.is_tenant_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return principal


def require_superadmin(principal: Principal = Depends(get_current_principal)) -> Principal:
    if not principal.is_superadmin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN, detail="Superadmin access required"
        )
    return principal
