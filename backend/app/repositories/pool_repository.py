"""Repositories for pools and their access policies."""

from typing import Optional, cast

from sqlalchemy.orm import Query, Session, joinedload

from ..models.access import AccessPolicy
from ..models.tenant import Pool
from .base_repository import BaseRepository


class PoolRepository(BaseRepository[Pool]):
    def __init__(self, db: Session):
        super().__init__(db, Pool)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(joinedload(Pool.access_policy))

    def get_with_policy(self, pool_id: str) -> Optional[Pool]:
        """Pool plus its access policy in one round trip."""
        return self.get_by_id(pool_id, load_relationships=True)

    def get_for_tenant(self, pool_id: str, tenant_id: str) -> Optional[Pool]:
        result = (
            self._apply_eager_loading(self.db.query(Pool))
            .filter(Pool.id == pool_id, Pool.tenant_id == tenant_id)
            .first()
        )
        return cast(Optional[Pool], result)


class AccessPolicyRepository(BaseRepository[AccessPolicy]):
    def __init__(self, db: Session):
        super().__init__(db, AccessPolicy)

    def get_by_pool(self, pool_id: str) -> Optional[AccessPolicy]:
        return self.find_one_by(pool_id=pool_id)


__all__ = ["AccessPolicyRepository", "PoolRepository"]
