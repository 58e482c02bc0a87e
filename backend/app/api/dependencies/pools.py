# backend/app/api/dependencies/pools.py
"""
Pool dependencies.

Resolve the ``{pool_id}`` path parameter against the caller's tenant. A pool
owned by another tenant is reported exactly like a missing one.
"""

from fastapi import Depends
from sqlalchemy.orm import Session

from ...core.exceptions import NotFoundException
from ...models.tenant import Pool
from ...principal import Principal
from ...repositories.factory import RepositoryFactory
from .auth import get_tenant_principal, require_tenant_admin
from .database import get_db


def _pool_in_tenant(db: Session, pool_id: str, tenant_id: str) -> Pool:
    pool = RepositoryFactory.create_pool_repository(db).get_for_tenant(pool_id, tenant_id)
    if pool is None:
        raise NotFoundException(
            "Pool not found or does not belong to tenant", code="POOL_NOT_FOUND"
        )
    return pool


def get_member_pool(
    pool_id: str,
    principal: Principal = Depends(get_tenant_principal),
    db: Session = Depends(get_db),
) -> Pool:
    """The path's pool for any user of the owning tenant."""
    return _pool_in_tenant(db, pool_id, str(principal.tenant_id))


def get_tenant_pool(
    pool_id: str,
    principal: Principal = Depends(require_tenant_admin),
    db: Session = Depends(get_db),
) -> Pool:
    """The path's pool, for administrators of the owning tenant."""
    return _pool_in_tenant(db, pool_id, str(principal.tenant_id))
