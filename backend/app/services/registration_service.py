# backend/app/services/registration_service.py
"""
Pool admission.

Each entry point runs as one transaction: rule checks, credential
consumption (code counter or invitation acceptance), the registration insert
and a best-effort audit entry either all persist or none do.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.enums import (
    AccessDenialReason,
    AccessType,
    AuditAction,
    InviteCodeStatus,
    RegistrationRejection,
)
from ..core.exceptions import (
    AccessConfigurationError,
    AccessDeniedException,
    ConflictException,
    DomainException,
    RegistrationRejectedException,
)
from ..core.timezone_utils import as_utc, utc_now
from ..models.access import AccessPolicy
from ..models.registration import Registration
from ..models.tenant import Pool
from ..monitoring.prometheus_metrics import prometheus_metrics
from ..repositories.factory import RepositoryFactory
from .access_gate import AccessGate, deny, resolve_access_type
from .anti_abuse import should_require_captcha
from .audit_service import AuditService
from .base import BaseService
from .captcha import CaptchaVerifier, PresenceCaptchaVerifier
from .settings_service import SettingsService

ALREADY_REGISTERED = "ALREADY_REGISTERED"
_REGISTRATION_UNIQUE_MARKERS = ("uq_registrations_user_pool", "registrations.user_id")


@dataclass(frozen=True)
class RequestContext:
    """Client details recorded on the audit entry."""

    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class _Profile:
    display_name: Optional[str]
    email: Optional[str]
    phone: Optional[str]


def _reject(reason: RegistrationRejection, message: str, **details: Any) -> None:
    raise RegistrationRejectedException(reason, message, details=details or None)


def _already_registered() -> ConflictException:
    return ConflictException("You are already registered for this pool", code=ALREADY_REGISTERED)


def _email_domain(email: str) -> str:
    return email.rsplit("@", 1)[-1].strip().lower()


class RegistrationService(BaseService):
    """Admit users into pools through PUBLIC, CODE or EMAIL_INVITE policies."""

    def __init__(
        self,
        db: Session,
        settings_service: Optional[SettingsService] = None,
        captcha_verifier: Optional[CaptchaVerifier] = None,
        audit_service: Optional[AuditService] = None,
    ):
        super().__init__(db)
        self.settings_service = settings_service or SettingsService(db)
        self.captcha_verifier = captcha_verifier or PresenceCaptchaVerifier()
        self.audit = audit_service or AuditService(db, self.settings_service)
        self.gate = AccessGate(db)
        self.registrations = RepositoryFactory.create_registration_repository(db)
        self.codes = RepositoryFactory.create_invite_code_repository(db)
        self.batches = RepositoryFactory.create_code_batch_repository(db)
        self.invitations = RepositoryFactory.create_invitation_repository(db)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    @BaseService.measure_operation("registration.public")
    def register_public(
        self,
        pool_id: str,
        user_id: str,
        *,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        captcha_token: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> Registration:
        def consume(pool: Pool, policy: AccessPolicy, profile: _Profile) -> Dict[str, Any]:
            return {}

        return self._admit(
            AccessType.PUBLIC,
            pool_id,
            user_id,
            _Profile(display_name, email, phone),
            captcha_token,
            context or RequestContext(),
            consume,
        )

    @BaseService.measure_operation("registration.code")
    def register_with_code(
        self,
        pool_id: str,
        user_id: str,
        invite_code: str,
        *,
        display_name: Optional[str] = None,
        email: Optional[str] = None,
        phone: Optional[str] = None,
        captcha_token: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> Registration:
        def consume(pool: Pool, policy: AccessPolicy, profile: _Profile) -> Dict[str, Any]:
            code = self.gate.find_code(pool, invite_code)
            self.gate.ensure_code_redeemable(code)

            # Compare-and-swap on the counter; a stale read above cannot
            # push the code past its capacity.
            if self.codes.consume(code.id) == 0:
                raise deny(AccessDenialReason.CODE_EXHAUSTED, code_id=code.id)
            self.codes.refresh(code)
            if InviteCodeStatus(code.status) == InviteCodeStatus.USED:
                self.batches.increment_used_codes(code.batch_id)
            else:
                self.batches.mark_partially_used(code.batch_id)
            return {
                "invite_code_id": code.id,
                "_audit": {"invite_code": code.code, "invite_code_id": code.id},
            }

        return self._admit(
            AccessType.CODE,
            pool_id,
            user_id,
            _Profile(display_name, email, phone),
            captcha_token,
            context or RequestContext(),
            consume,
        )

    @BaseService.measure_operation("registration.email_invite")
    def register_with_email_invite(
        self,
        pool_id: str,
        user_id: str,
        invite_token: str,
        email: str,
        *,
        display_name: Optional[str] = None,
        phone: Optional[str] = None,
        captcha_token: Optional[str] = None,
        context: Optional[RequestContext] = None,
    ) -> Registration:
        def consume(pool: Pool, policy: AccessPolicy, profile: _Profile) -> Dict[str, Any]:
            invitation = self.gate.find_invitation(pool, invite_token)
            self.gate.ensure_invitation_usable(invitation)
            if invitation.email.strip().lower() != (email or "").strip().lower():
                _reject(RegistrationRejection.EMAIL_MISMATCH, "Email does not match the invitation")
            if self.invitations.accept(invitation.id, utc_now()) == 0:
                raise ConflictException(
                    "This invitation has already been accepted",
                    code="INVITATION_ALREADY_ACCEPTED",
                )
            self.invitations.refresh(invitation)
            return {
                "invitation_id": invitation.id,
                "email_verified": True,
                "_audit": {"email": invitation.email},
            }

        try:
            return self._admit(
                AccessType.EMAIL_INVITE,
                pool_id,
                user_id,
                _Profile(display_name, email, phone),
                captcha_token,
                context or RequestContext(),
                consume,
            )
        except AccessDeniedException as exc:
            self.gate.persist_lazy_expiry(exc)
            raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def check_registration(self, user_id: str, pool_id: str) -> Dict[str, Any]:
        registration = self.registrations.get_for_user_and_pool(user_id, pool_id)
        return {"is_registered": registration is not None, "registration": registration}

    def get_existing_profile(self, user_id: str) -> Optional[Dict[str, Optional[str]]]:
        """Profile fields from the user's most recent registration, if any."""
        latest = self.registrations.get_latest_for_user(user_id)
        if latest is None:
            return None
        return {"display_name": latest.display_name, "email": latest.email, "phone": latest.phone}

    def list_by_pool(self, pool_id: str, tenant_id: str) -> List[Registration]:
        return self.registrations.list_by_pool(pool_id, tenant_id)

    @BaseService.measure_operation("registration.pool_stats")
    def get_pool_stats(self, pool_id: str, tenant_id: str) -> Dict[str, int]:
        return self.registrations.pool_stats(pool_id, tenant_id)

    # ------------------------------------------------------------------
    # Admission pipeline
    # ------------------------------------------------------------------

    def _admit(
        self,
        access_type: AccessType,
        pool_id: str,
        user_id: str,
        profile: _Profile,
        captcha_token: Optional[str],
        context: RequestContext,
        consume: Callable[[Pool, AccessPolicy, _Profile], Dict[str, Any]],
    ) -> Registration:
        try:
            with self.transaction():
                registration = self._admit_in_transaction(
                    access_type, pool_id, user_id, profile, captcha_token, context, consume
                )
        except ConflictException:
            prometheus_metrics.record_admission(access_type.value, "conflict")
            raise
        except DomainException as exc:
            prometheus_metrics.record_admission(access_type.value, "rejected")
            self.logger.info(
                "Registration rejected for pool %s: %s",
                pool_id,
                exc.code,
                extra={"reason": exc.code, "pool_id": pool_id, "access_type": access_type.value},
            )
            raise
        prometheus_metrics.record_admission(access_type.value, "admitted")
        return registration

    def _admit_in_transaction(
        self,
        access_type: AccessType,
        pool_id: str,
        user_id: str,
        profile: _Profile,
        captcha_token: Optional[str],
        context: RequestContext,
        consume: Callable[[Pool, AccessPolicy, _Profile], Dict[str, Any]],
    ) -> Registration:
        pool = self.gate.load_pool(pool_id)
        policy = self._require_policy(pool)

        if not pool.is_active:
            _reject(
                RegistrationRejection.POOL_INACTIVE, "This pool is not accepting registrations"
            )
        actual_type = resolve_access_type(policy)
        if actual_type != access_type:
            _reject(
                RegistrationRejection.ACCESS_TYPE_MISMATCH,
                f"This pool admits registrations via {actual_type.value}",
                access_type=actual_type.value,
            )

        if access_type in (AccessType.PUBLIC, AccessType.CODE):
            self._check_window_and_cap(pool, policy)

        if self.registrations.get_for_user_and_pool(user_id, pool.id) is not None:
            raise _already_registered()

        self._check_captcha(pool, policy, captcha_token, context)
        profile = self._complete_profile(
            user_id, profile, require_display_name=access_type != AccessType.EMAIL_INVITE
        )
        self._check_email_domain(policy, profile.email)

        credential = consume(pool, policy, profile)
        audit_metadata = credential.pop("_audit", {})
        email_verified = credential.pop("email_verified", not policy.require_email_verification)

        registration = self._insert_registration(
            user_id=user_id,
            pool=pool,
            profile=profile,
            email_verified=email_verified,
            **credential,
        )

        self.audit.record(
            _AUDIT_ACTIONS[access_type],
            "REGISTRATION",
            registration.id,
            tenant_id=pool.tenant_id,
            pool_id=pool.id,
            actor_id=user_id,
            ip_address=context.ip_address,
            user_agent=context.user_agent,
            metadata={"pool_id": pool.id, "display_name": profile.display_name, **audit_metadata},
        )
        self.log_operation(
            "registration.admitted",
            pool_id=pool.id,
            tenant_id=pool.tenant_id,
            access_type=access_type.value,
        )
        return registration

    def _require_policy(self, pool: Pool) -> AccessPolicy:
        if pool.access_policy is None:
            self.logger.error(
                "Pool %s has no access policy", pool.id, extra={"pool_id": pool.id}
            )
            raise AccessConfigurationError(
                "This pool does not have an access policy configured",
                code="ACCESS_POLICY_MISSING",
                details={"pool_id": pool.id},
            )
        return pool.access_policy

    def _check_window_and_cap(self, pool: Pool, policy: AccessPolicy) -> None:
        now = utc_now()
        start = as_utc(policy.registration_start_date)
        end = as_utc(policy.registration_end_date)
        if start is not None and now < start:
            _reject(
                RegistrationRejection.REGISTRATION_NOT_STARTED, "Registration has not started yet"
            )
        if end is not None and now > end:
            _reject(RegistrationRejection.REGISTRATION_CLOSED, "Registration period has ended")

        # Soft cap: count-then-insert is not serialized against concurrent admissions.
        if policy.max_registrations:
            if self.registrations.count_for_pool(pool.id) >= policy.max_registrations:
                _reject(
                    RegistrationRejection.POOL_FULL,
                    "This pool has reached its maximum number of registrations",
                    max_registrations=policy.max_registrations,
                )

    def _check_captcha(
        self,
        pool: Pool,
        policy: AccessPolicy,
        captcha_token: Optional[str],
        context: RequestContext,
    ) -> None:
        required = policy.require_captcha or should_require_captcha(
            self.settings_service, pool.tenant_id, pool.id
        )
        if not required:
            return
        if not captcha_token or not captcha_token.strip():
            _reject(RegistrationRejection.CAPTCHA_REQUIRED, "CAPTCHA verification is required")
        if not self.captcha_verifier.verify(captcha_token, ip_address=context.ip_address):
            _reject(RegistrationRejection.CAPTCHA_INVALID, "CAPTCHA verification failed")

    def _complete_profile(
        self, user_id: str, profile: _Profile, *, require_display_name: bool
    ) -> _Profile:
        if profile.display_name and profile.email:
            return profile
        previous = self.get_existing_profile(user_id)
        if previous is None:
            if not profile.email or (require_display_name and not profile.display_name):
                _reject(
                    RegistrationRejection.PROFILE_REQUIRED,
                    "Display name and email are required for first-time registration",
                )
            return profile
        return _Profile(
            display_name=profile.display_name or previous["display_name"],
            email=profile.email or previous["email"],
            phone=profile.phone or previous["phone"],
        )

    def _check_email_domain(self, policy: AccessPolicy, email: Optional[str]) -> None:
        allowed = {
            entry.strip().lstrip("@").lower()
            for entry in (policy.domain_allow_list or [])
            if entry and entry.strip()
        }
        if not allowed:
            return
        if not email or _email_domain(email) not in allowed:
            _reject(
                RegistrationRejection.EMAIL_DOMAIN_NOT_ALLOWED,
                "Registrations for this pool are limited to approved email domains",
            )

    def _insert_registration(
        self,
        *,
        user_id: str,
        pool: Pool,
        profile: _Profile,
        email_verified: bool,
        invite_code_id: Optional[str] = None,
        invitation_id: Optional[str] = None,
    ) -> Registration:
        try:
            return self.registrations.create(
                user_id=user_id,
                pool_id=pool.id,
                tenant_id=pool.tenant_id,
                display_name=profile.display_name,
                email=profile.email.strip() if profile.email else None,
                phone=profile.phone,
                email_verified=email_verified,
                phone_verified=False,
                invite_code_id=invite_code_id,
                invitation_id=invitation_id,
            )
        except IntegrityError as exc:
            # The (user, pool) unique constraint decides concurrent duplicates.
            if any(marker in str(exc.orig) for marker in _REGISTRATION_UNIQUE_MARKERS):
                raise _already_registered() from exc
            raise


_AUDIT_ACTIONS = {
    AccessType.PUBLIC: AuditAction.REGISTRATION_PUBLIC,
    AccessType.CODE: AuditAction.REGISTRATION_CODE,
    AccessType.EMAIL_INVITE: AuditAction.REGISTRATION_EMAIL_INVITE,
}


__all__ = ["ALREADY_REGISTERED", "RegistrationService", "RequestContext"]
