"""Repository for pool registrations."""

from typing import Dict, List, Optional, cast

from sqlalchemy import case, func
from sqlalchemy.orm import Query, Session, joinedload

from ..models.registration import Registration
from ..models.tenant import Pool
from .base_repository import BaseRepository


class RegistrationRepository(BaseRepository[Registration]):
    def __init__(self, db: Session):
        super().__init__(db, Registration)

    def _apply_eager_loading(self, query: Query) -> Query:
        return query.options(
            joinedload(Registration.pool).joinedload(Pool.access_policy),
            joinedload(Registration.invite_code),
            joinedload(Registration.invitation),
        )

    def get_for_user_and_pool(
        self, user_id: str, pool_id: str, load_relationships: bool = False
    ) -> Optional[Registration]:
        """
        The (user, pool) registration if any.

        With ``load_relationships`` the pool, its policy and the linked
        credential come back in the same round trip.
        """
        query = self.db.query(Registration).filter(
            Registration.user_id == user_id, Registration.pool_id == pool_id
        )
        if load_relationships:
            query = self._apply_eager_loading(query)
        return self._execute_first(query)

    def count_for_pool(self, pool_id: str) -> int:
        return self.count(pool_id=pool_id)

    def get_latest_for_user(self, user_id: str) -> Optional[Registration]:
        result = (
            self.db.query(Registration)
            .filter(Registration.user_id == user_id)
            .order_by(Registration.joined_at.desc(), Registration.id.desc())
            .first()
        )
        return cast(Optional[Registration], result)

    def list_by_pool(self, pool_id: str, tenant_id: str) -> List[Registration]:
        return self._execute_query(
            self.db.query(Registration)
            .filter(Registration.pool_id == pool_id, Registration.tenant_id == tenant_id)
            .order_by(Registration.joined_at.desc(), Registration.id.desc())
        )

    def pool_stats(self, pool_id: str, tenant_id: str) -> Dict[str, int]:
        row = (
            self.db.query(
                func.count(Registration.id),
                func.count(Registration.invite_code_id),
                func.count(Registration.invitation_id),
                func.coalesce(
                    func.sum(case((Registration.email_verified.is_(True), 1), else_=0)), 0
                ),
            )
            .filter(Registration.pool_id == pool_id, Registration.tenant_id == tenant_id)
            .one()
        )
        total, via_code, via_invite, verified = (int(value or 0) for value in row)
        return {
            "total": total,
            "email_verified": verified,
            "via_code": via_code,
            "via_invite": via_invite,
            "public": total - via_code - via_invite,
        }


__all__ = ["RegistrationRepository"]
