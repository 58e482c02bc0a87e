# backend/app/services/invitation_service.py
"""Email invitations for EMAIL_INVITE pools. Delivery itself happens elsewhere."""

from __future__ import annotations

from datetime import datetime, timedelta
import secrets
from typing import Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import INVITATION_TOKEN_BYTES, MAX_BULK_INVITATIONS
from ..core.enums import AccessType, AuditAction, InvitationStatus
from ..core.exceptions import (
    BusinessRuleException,
    ConflictException,
    NotFoundException,
    ValidationException,
)
from ..core.timezone_utils import is_past, utc_now
from ..models.access import AccessPolicy, Invitation
from ..repositories.factory import RepositoryFactory
from .audit_service import AuditService
from .base import BaseService

ENGAGEMENT_EVENTS = {"opened": "opened_at", "clicked": "clicked_at", "bounced": "bounced_at"}


def generate_token() -> str:
    return secrets.token_hex(INVITATION_TOKEN_BYTES)


def normalize_email(email: str) -> str:
    normalized = (email or "").strip().lower()
    if "@" not in normalized or normalized.startswith("@") or normalized.endswith("@"):
        raise ValidationException(f"Invalid email address: {email}", code="EMAIL_INVALID")
    return normalized


class InvitationService(BaseService):
    def __init__(self, db: Session, audit_service: Optional[AuditService] = None):
        super().__init__(db)
        self.audit = audit_service or AuditService(db)
        self.policies = RepositoryFactory.create_access_policy_repository(db)
        self.invitations = RepositoryFactory.create_invitation_repository(db)

    def _invite_policy(self, pool_id: str, tenant_id: str) -> AccessPolicy:
        policy = self.policies.find_one_by(pool_id=pool_id, tenant_id=tenant_id)
        if policy is None or policy.access_type != AccessType.EMAIL_INVITE.value:
            raise ValidationException(
                "Access policy must be of type EMAIL_INVITE",
                code="ACCESS_POLICY_NOT_EMAIL_INVITE",
            )
        return policy

    @staticmethod
    def _default_expiry() -> datetime:
        return utc_now() + timedelta(hours=settings.invitation_ttl_hours)

    @BaseService.measure_operation("invitation.create")
    def create(
        self,
        pool_id: str,
        tenant_id: str,
        email: str,
        *,
        expires_at: Optional[datetime] = None,
        actor_id: Optional[str] = None,
    ) -> Invitation:
        address = normalize_email(email)
        with self.transaction():
            policy = self._invite_policy(pool_id, tenant_id)
            if self.invitations.get_pending_for_email(policy.id, address) is not None:
                raise ConflictException(
                    "An active invitation already exists for this email",
                    code="INVITATION_PENDING",
                )
            invitation = self.invitations.create(
                access_policy_id=policy.id,
                pool_id=pool_id,
                tenant_id=tenant_id,
                email=address,
                token=generate_token(),
                status=InvitationStatus.PENDING,
                expires_at=expires_at or self._default_expiry(),
            )
            self.audit.record(
                AuditAction.INVITATION_CREATE,
                "INVITATION",
                invitation.id,
                tenant_id=tenant_id,
                pool_id=pool_id,
                actor_id=actor_id,
                metadata={"email": address},
            )
        return invitation

    @BaseService.measure_operation("invitation.create_bulk")
    def create_bulk(
        self,
        pool_id: str,
        tenant_id: str,
        emails: Iterable[str],
        *,
        expires_at: Optional[datetime] = None,
        actor_id: Optional[str] = None,
    ) -> List[Invitation]:
        """
        Invite many addresses at once, skipping those with a pending invitation.

        Raises:
            BusinessRuleException: every address already had one
        """
        addresses = list(dict.fromkeys(normalize_email(email) for email in emails))
        if not addresses:
            raise ValidationException("At least one email is required", code="EMAIL_INVALID")
        if len(addresses) > MAX_BULK_INVITATIONS:
            raise ValidationException(
                f"At most {MAX_BULK_INVITATIONS} invitations per request",
                code="INVITATIONS_TOO_MANY",
            )

        with self.transaction():
            policy = self._invite_policy(pool_id, tenant_id)
            pending = self.invitations.pending_emails(policy.id, addresses)
            fresh = [address for address in addresses if address not in pending]
            if not fresh:
                raise BusinessRuleException(
                    "All emails already have active invitations",
                    code="INVITATIONS_ALL_PENDING",
                )
            expiry = expires_at or self._default_expiry()
            created = self.invitations.bulk_create(
                [
                    {
                        "access_policy_id": policy.id,
                        "pool_id": pool_id,
                        "tenant_id": tenant_id,
                        "email": address,
                        "token": generate_token(),
                        "status": InvitationStatus.PENDING,
                        "expires_at": expiry,
                    }
                    for address in fresh
                ]
            )
            self.audit.record(
                AuditAction.INVITATION_CREATE,
                "POOL",
                pool_id,
                tenant_id=tenant_id,
                pool_id=pool_id,
                actor_id=actor_id,
                metadata={"created": len(created), "skipped": len(addresses) - len(fresh)},
            )

        self.log_operation(
            "invitation.bulk_created",
            pool_id=pool_id,
            created_count=len(created),
            skipped_count=len(addresses) - len(fresh),
        )
        return created

    def get_by_token(self, token: str, tenant_id: str) -> Invitation:
        invitation = self.invitations.find_one_by(token=token.strip(), tenant_id=tenant_id)
        if invitation is None:
            raise NotFoundException("Invitation not found", code="INVITATION_NOT_FOUND")
        return invitation

    def list_by_pool(
        self, pool_id: str, tenant_id: str, status: Optional[InvitationStatus] = None
    ) -> List[Invitation]:
        return self.invitations.list_by_pool(pool_id, tenant_id, status)

    @BaseService.measure_operation("invitation.resend")
    def resend(
        self, invitation_id: str, tenant_id: str, *, actor_id: Optional[str] = None
    ) -> Invitation:
        with self.transaction():
            invitation = self.invitations.find_one_by(id=invitation_id, tenant_id=tenant_id)
            if invitation is None:
                raise NotFoundException("Invitation not found", code="INVITATION_NOT_FOUND")
            status = InvitationStatus(invitation.status)
            if status == InvitationStatus.ACCEPTED:
                raise BusinessRuleException(
                    "Invitation has already been accepted", code="INVITATION_ALREADY_ACCEPTED"
                )
            if status == InvitationStatus.EXPIRED or is_past(invitation.expires_at):
                raise BusinessRuleException("Invitation has expired", code="INVITATION_EXPIRED")

            invitation.sent_count = (invitation.sent_count or 0) + 1
            invitation.last_sent_at = utc_now()
            self.invitations.flush()
            self.audit.record(
                AuditAction.INVITATION_RESEND,
                "INVITATION",
                invitation.id,
                tenant_id=tenant_id,
                pool_id=invitation.pool_id,
                actor_id=actor_id,
                metadata={"sent_count": invitation.sent_count},
            )
        return invitation

    def record_engagement(self, token: str, event: str) -> Invitation:
        """Stamp the first opened / clicked / bounced time reported for an invitation."""
        column = ENGAGEMENT_EVENTS.get(event)
        if column is None:
            raise ValidationException(
                f"Unknown engagement event: {event}", code="ENGAGEMENT_EVENT_INVALID"
            )
        with self.transaction():
            invitation = self.invitations.get_by_token(token.strip())
            if invitation is None:
                raise NotFoundException("Invitation not found", code="INVITATION_NOT_FOUND")
            if getattr(invitation, column) is None:
                setattr(invitation, column, utc_now())
                self.invitations.flush()
        return invitation

    def get_stats(self, pool_id: str) -> Dict[str, int]:
        counts = self.invitations.status_counts(pool_id)
        engagement = self.invitations.engagement_counts(pool_id)
        return {
            "total": sum(counts.values()),
            "pending": counts.get(InvitationStatus.PENDING.value, 0),
            "accepted": counts.get(InvitationStatus.ACCEPTED.value, 0),
            "expired": counts.get(InvitationStatus.EXPIRED.value, 0),
            "total_sent": engagement["sent"],
            "opened": engagement["opened"],
            "clicked": engagement["clicked"],
            "bounced": engagement["bounced"],
        }

    @BaseService.measure_operation("invitation.expire_pending")
    def expire_pending(self, now: Optional[datetime] = None) -> int:
        """Sweep: flip PENDING invitations past their expiry to EXPIRED."""
        with self.transaction():
            expired = self.invitations.expire_due(now or utc_now())
        if expired:
            self.log_operation("invitation.expired", count=expired)
        return expired


__all__ = ["ENGAGEMENT_EVENTS", "InvitationService", "generate_token", "normalize_email"]
