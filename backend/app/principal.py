"""The acting principal of a request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .core.enums import RoleName


@dataclass(frozen=True)
class Principal:
    """
    Who is calling, and on behalf of which tenant.

    Resolved upstream (host resolution plus authentication) and handed to
    this service through request headers.
    """

    user_id: str
    tenant_id: Optional[str]
    role: RoleName = RoleName.PLAYER

    @property
    def is_superadmin(self) -> bool:
        return self.role == RoleName.SUPERADMIN

    @property
    def is_tenant_admin(self) -> bool:
        return self.role in (RoleName.TENANT_ADMIN, RoleName.SUPERADMIN)


__all__ = ["Principal"]
