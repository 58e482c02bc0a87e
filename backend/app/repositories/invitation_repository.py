"""Repository for email invitations."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, cast

from sqlalchemy import func, update
from sqlalchemy.orm import Session

from ..core.enums import InvitationStatus
from ..models.access import Invitation
from .base_repository import BaseRepository


class InvitationRepository(BaseRepository[Invitation]):
    def __init__(self, db: Session):
        super().__init__(db, Invitation)

    def get_by_token(self, token: str) -> Optional[Invitation]:
        return self.find_one_by(token=token)

    def get_by_token_for_pool(self, pool_id: str, token: str) -> Optional[Invitation]:
        return self.find_one_by(pool_id=pool_id, token=token)

    def get_pending_for_email(self, policy_id: str, email: str) -> Optional[Invitation]:
        result = (
            self.db.query(Invitation)
            .filter(
                Invitation.access_policy_id == policy_id,
                Invitation.email == email.lower(),
                Invitation.status == InvitationStatus.PENDING,
            )
            .first()
        )
        return cast(Optional[Invitation], result)

    def pending_emails(self, policy_id: str, emails: Iterable[str]) -> Set[str]:
        candidates = [email.lower() for email in emails]
        if not candidates:
            return set()
        rows = (
            self.db.query(Invitation.email)
            .filter(
                Invitation.access_policy_id == policy_id,
                Invitation.status == InvitationStatus.PENDING,
                Invitation.email.in_(candidates),
            )
            .all()
        )
        return {row[0] for row in rows}

    def list_by_pool(
        self, pool_id: str, tenant_id: str, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        query = self.db.query(Invitation).filter(
            Invitation.pool_id == pool_id, Invitation.tenant_id == tenant_id
        )
        if status is not None:
            query = query.filter(Invitation.status == status)
        return self._execute_query(query.order_by(Invitation.created_at.desc()))

    def accept(self, invitation_id: str, accepted_at: datetime) -> int:
        """PENDING -> ACCEPTED, at most once. Returns rows affected."""
        stmt = (
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.status == InvitationStatus.PENDING.value,
            )
            .values(status=InvitationStatus.ACCEPTED.value, accepted_at=accepted_at)
            .execution_options(synchronize_session=False)
        )
        return int(self.db.execute(stmt).rowcount or 0)

    def mark_expired(self, invitation_id: str) -> int:
        stmt = (
            update(Invitation)
            .where(
                Invitation.id == invitation_id,
                Invitation.status == InvitationStatus.PENDING.value,
            )
            .values(status=InvitationStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        return int(self.db.execute(stmt).rowcount or 0)

    def expire_due(self, now: datetime) -> int:
        stmt = (
            update(Invitation)
            .where(
                Invitation.status == InvitationStatus.PENDING.value,
                Invitation.expires_at < now,
            )
            .values(status=InvitationStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        return int(self.db.execute(stmt).rowcount or 0)

    def status_counts(self, pool_id: str) -> Dict[str, int]:
        rows = (
            self.db.query(Invitation.status, func.count(Invitation.id))
            .filter(Invitation.pool_id == pool_id)
            .group_by(Invitation.status)
            .all()
        )
        return {str(getattr(status, "value", status)): int(count) for status, count in rows}

    def engagement_counts(self, pool_id: str) -> Dict[str, int]:
        row = (
            self.db.query(
                func.count(Invitation.opened_at),
                func.count(Invitation.clicked_at),
                func.count(Invitation.bounced_at),
                func.coalesce(func.sum(Invitation.sent_count), 0),
            )
            .filter(Invitation.pool_id == pool_id)
            .one()
        )
        return {
            "opened": int(row[0]),
            "clicked": int(row[1]),
            "bounced": int(row[2]),
            "sent": int(row[3] or 0),
        }


__all__ = ["InvitationRepository"]
