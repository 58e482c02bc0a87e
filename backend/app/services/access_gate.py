# backend/app/services/access_gate.py
"""
Access gate for pool registrations.

Two paths share the credential rules in this module:

* the read-only re-check (``assert_registration_access``) run before every
  protected pool action, which judges the persisted registration against the
  *current* state of the credential it was admitted with;
* the pre-admission validators (``validate_invite_code`` /
  ``validate_invite_token``) used by registration forms and by the
  registration service before it consumes a credential.

Admission failures raise ``AccessDeniedException`` carrying a stable reason
code. A policy whose access type the gate does not know is a configuration
fault and raises ``AccessConfigurationError`` instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
import logging
from typing import Dict, Optional

from sqlalchemy.orm import Session

from ..core.enums import AccessDenialReason, AccessType, InvitationStatus, InviteCodeStatus
from ..core.exceptions import (
    AccessConfigurationError,
    AccessDeniedException,
    NotFoundException,
)
from ..core.timezone_utils import is_past, utc_now
from ..models.access import AccessPolicy, Invitation, InviteCode
from ..models.registration import Registration
from ..models.tenant import Pool
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .base import BaseService

logger = logging.getLogger(__name__)

_DENIAL_MESSAGES: Dict[AccessDenialReason, str] = {
    AccessDenialReason.REGISTRATION_REQUIRED: "You must register for this pool first",
    AccessDenialReason.TENANT_MISMATCH: "This registration belongs to a different organization",
    AccessDenialReason.CODE_REQUIRED: "This pool requires an invite code",
    AccessDenialReason.CODE_INVALID: "This invite code is no longer valid",
    AccessDenialReason.CODE_EXHAUSTED: "This invite code has reached its usage limit",
    AccessDenialReason.CODE_EXPIRED: "This invite code has expired",
    AccessDenialReason.INVITATION_REQUIRED: "This pool requires an invitation",
    AccessDenialReason.INVITATION_NOT_ACCEPTED: "This invitation is no longer valid",
    AccessDenialReason.INVITATION_EXPIRED: "This invitation has expired",
}


@dataclass(frozen=True)
class AccessCheckResult:
    allowed: bool
    reason: Optional[AccessDenialReason] = None
    registration_id: Optional[str] = None


@dataclass(frozen=True)
class CodeValidation:
    valid: bool
    code_id: str
    uses_remaining: int


@dataclass(frozen=True)
class TokenValidation:
    valid: bool
    invitation_id: str
    email: str


def deny(
    reason: AccessDenialReason,
    message: Optional[str] = None,
    **details: object,
) -> AccessDeniedException:
    """Build (and count) an admission failure; callers raise it."""
    logger.info(
        "Access denied: %s",
        reason.value,
        extra={"reason": reason.value, **{k: v for k, v in details.items() if v is not None}},
    )
    prometheus_metrics.record_access_denial(reason.value)
    clean = {k: v for k, v in details.items() if v is not None}
    return AccessDeniedException(reason, message or _DENIAL_MESSAGES.get(reason), details=clean)


def resolve_access_type(policy: Optional[AccessPolicy]) -> AccessType:
    """
    Access type of a policy; a pool without a policy is PUBLIC.

    Raises:
        AccessConfigurationError: the stored access type is not recognized
    """
    if policy is None:
        return AccessType.PUBLIC
    try:
        return AccessType(policy.access_type)
    except ValueError:
        logger.error(
            "Pool %s has unknown access type %r",
            policy.pool_id,
            policy.access_type,
            extra={"pool_id": policy.pool_id, "tenant_id": policy.tenant_id},
        )
        raise AccessConfigurationError(
            f"Unknown access type: {policy.access_type}",
            details={"pool_id": policy.pool_id},
        ) from None


def code_denial_reason(code: InviteCode, now: datetime) -> Optional[AccessDenialReason]:
    """Why a registration's linked code no longer grants access, if it doesn't."""
    status = InviteCodeStatus(code.status)
    if status in (InviteCodeStatus.EXPIRED, InviteCodeStatus.PAUSED):
        return AccessDenialReason.CODE_INVALID
    if code.used_count > code.uses_per_code:
        return AccessDenialReason.CODE_EXHAUSTED
    if is_past(code.expires_at, now):
        return AccessDenialReason.CODE_EXPIRED
    return None


def invitation_denial_reason(
    invitation: Invitation, now: datetime
) -> Optional[AccessDenialReason]:
    if InvitationStatus(invitation.status) != InvitationStatus.ACCEPTED:
        return AccessDenialReason.INVITATION_NOT_ACCEPTED
    if is_past(invitation.expires_at, now):
        return AccessDenialReason.INVITATION_EXPIRED
    return None


def evaluate_registration(
    registration: Registration,
    access_type: AccessType,
    now: Optional[datetime] = None,
) -> Optional[AccessDenialReason]:
    """
    Apply the per-access-type rules to a persisted registration.

    Reads current credential state: a code paused or expired after the user
    registered blocks them from then on.
    """
    now = now or utc_now()
    if access_type == AccessType.PUBLIC:
        return None
    if access_type == AccessType.CODE:
        if not registration.invite_code_id or registration.invite_code is None:
            return AccessDenialReason.CODE_REQUIRED
        return code_denial_reason(registration.invite_code, now)
    if access_type == AccessType.EMAIL_INVITE:
        if not registration.invitation_id or registration.invitation is None:
            return AccessDenialReason.INVITATION_REQUIRED
        return invitation_denial_reason(registration.invitation, now)
    raise AccessConfigurationError(f"Unknown access type: {access_type}")


class AccessGate(BaseService):
    """Read-side admission checks; never consumes a credential."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.registrations = RepositoryFactory.create_registration_repository(db)
        self.pools = RepositoryFactory.create_pool_repository(db)
        self.codes = RepositoryFactory.create_invite_code_repository(db)
        self.invitations = RepositoryFactory.create_invitation_repository(db)

    @BaseService.measure_operation("access.assert_registration")
    def assert_registration_access(
        self, pool_id: str, user_id: str, tenant_id: str
    ) -> Registration:
        """
        Return the user's registration if it still grants access to the pool.

        Raises:
            AccessDeniedException: REGISTRATION_REQUIRED, TENANT_MISMATCH or a
                CODE_* / INVITATION_* reason
            AccessConfigurationError: the pool's access type is unknown
        """
        registration = self.registrations.get_for_user_and_pool(
            user_id, pool_id, load_relationships=True
        )
        if registration is None:
            raise deny(AccessDenialReason.REGISTRATION_REQUIRED, pool_id=pool_id)

        if registration.tenant_id != tenant_id:
            raise deny(AccessDenialReason.TENANT_MISMATCH, pool_id=pool_id)

        policy = registration.pool.access_policy if registration.pool is not None else None
        access_type = resolve_access_type(policy)
        reason = evaluate_registration(registration, access_type)
        if reason is not None:
            raise deny(reason, pool_id=pool_id, registration_id=registration.id)
        return registration

    def check_registration_access(
        self, pool_id: str, user_id: str, tenant_id: str
    ) -> AccessCheckResult:
        """Non-raising variant for status displays. Configuration faults still raise."""
        try:
            registration = self.assert_registration_access(pool_id, user_id, tenant_id)
        except AccessDeniedException as exc:
            return AccessCheckResult(allowed=False, reason=exc.reason)
        return AccessCheckResult(allowed=True, registration_id=registration.id)

    # ------------------------------------------------------------------
    # Pre-admission validation
    # ------------------------------------------------------------------

    def load_pool(self, pool_id: str) -> Pool:
        pool = self.pools.get_with_policy(pool_id)
        if pool is None:
            raise NotFoundException("Pool not found", code="POOL_NOT_FOUND")
        return pool

    def find_code(self, pool: Pool, code: str) -> InviteCode:
        """
        Locate a code among the pool's batches.

        Raises:
            AccessDeniedException: CODE_INVALID when the pool does not admit by code
            NotFoundException: no such code for this pool
        """
        policy = pool.access_policy
        if policy is None or resolve_access_type(policy) != AccessType.CODE:
            raise deny(
                AccessDenialReason.CODE_INVALID,
                "This pool does not accept invite codes",
                pool_id=pool.id,
            )
        invite_code = self.codes.find_for_policy(policy.id, pool.tenant_id, normalize_code(code))
        if invite_code is None:
            raise NotFoundException("Invalid invite code", code="CODE_NOT_FOUND")
        return invite_code

    def ensure_code_redeemable(self, invite_code: InviteCode, now: Optional[datetime] = None) -> None:
        """Admission-time checks: expiry, pause and remaining capacity."""
        now = now or utc_now()
        status = InviteCodeStatus(invite_code.status)
        if status == InviteCodeStatus.EXPIRED or is_past(invite_code.expires_at, now):
            raise deny(AccessDenialReason.CODE_EXPIRED, code_id=invite_code.id)
        if status == InviteCodeStatus.PAUSED:
            raise deny(
                AccessDenialReason.CODE_INVALID,
                "This invite code is currently paused",
                code_id=invite_code.id,
            )
        if invite_code.used_count >= invite_code.uses_per_code:
            raise deny(AccessDenialReason.CODE_EXHAUSTED, code_id=invite_code.id)

    @BaseService.measure_operation("access.validate_code")
    def validate_invite_code(self, pool_id: str, code: str) -> CodeValidation:
        pool = self.load_pool(pool_id)
        invite_code = self.find_code(pool, code)
        self.ensure_code_redeemable(invite_code)
        return CodeValidation(
            valid=True, code_id=invite_code.id, uses_remaining=invite_code.uses_remaining
        )

    def find_invitation(self, pool: Pool, token: str) -> Invitation:
        """
        Invitation for ``token`` in this pool, whatever its status.

        Raises:
            AccessConfigurationError: the pool has no access policy
            NotFoundException: no such token for this pool
        """
        if pool.access_policy is None:
            logger.error("Pool %s has no access policy", pool.id, extra={"pool_id": pool.id})
            raise AccessConfigurationError(
                "This pool does not have an access policy configured",
                code="ACCESS_POLICY_MISSING",
                details={"pool_id": pool.id},
            )
        invitation = self.invitations.get_by_token_for_pool(pool.id, token.strip())
        if invitation is None:
            raise NotFoundException(
                "Invalid or already used invitation token", code="INVITATION_NOT_FOUND"
            )
        return invitation

    def ensure_invitation_usable(
        self, invitation: Invitation, now: Optional[datetime] = None
    ) -> None:
        """
        Admission-time checks for an invitation.

        An expired one raises INVITATION_EXPIRED with ``invitation_id`` in the
        details so the caller can persist the lazy PENDING -> EXPIRED flip
        once its own transaction has rolled back.
        """
        status = InvitationStatus(invitation.status)
        if status == InvitationStatus.EXPIRED or (
            status == InvitationStatus.PENDING and is_past(invitation.expires_at, now)
        ):
            raise deny(AccessDenialReason.INVITATION_EXPIRED, invitation_id=invitation.id)
        if status != InvitationStatus.PENDING:
            raise deny(AccessDenialReason.INVITATION_NOT_ACCEPTED, invitation_id=invitation.id)

    def expire_invitation(self, invitation_id: str) -> None:
        """Persist a lazy PENDING -> EXPIRED flip in its own transaction."""
        with self.transaction():
            self.invitations.mark_expired(invitation_id)

    def persist_lazy_expiry(self, exc: AccessDeniedException) -> None:
        if exc.reason == AccessDenialReason.INVITATION_EXPIRED and exc.details.get(
            "invitation_id"
        ):
            self.expire_invitation(str(exc.details["invitation_id"]))

    @BaseService.measure_operation("access.validate_token")
    def validate_invite_token(self, pool_id: str, token: str) -> TokenValidation:
        pool = self.load_pool(pool_id)
        invitation = self.find_invitation(pool, token)
        try:
            self.ensure_invitation_usable(invitation)
        except AccessDeniedException as exc:
            self.persist_lazy_expiry(exc)
            raise
        return TokenValidation(valid=True, invitation_id=invitation.id, email=invitation.email)


def normalize_code(code: str) -> str:
    return code.strip().upper()


__all__ = [
    "AccessCheckResult",
    "AccessGate",
    "CodeValidation",
    "TokenValidation",
    "code_denial_reason",
    "deny",
    "evaluate_registration",
    "invitation_denial_reason",
    "normalize_code",
    "resolve_access_type",
]
