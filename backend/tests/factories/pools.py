"""Builders for tenants, pools, policies and admission credentials."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Optional

from sqlalchemy.orm import Session

from app.core.enums import (
    AccessType,
    CodeBatchStatus,
    InvitationStatus,
    InviteCodeStatus,
)
from app.core.timezone_utils import utc_now
from app.models.access import AccessPolicy, CodeBatch, Invitation, InviteCode
from app.models.registration import Registration
from app.models.tenant import Pool, Tenant


def make_tenant(db: Session, slug: str = "acme", name: Optional[str] = None) -> Tenant:
    tenant = Tenant(slug=slug, name=name or slug.title())
    db.add(tenant)
    db.commit()
    return tenant


def make_pool(
    db: Session, tenant: Tenant, slug: str = "mundial", *, is_active: bool = True
) -> Pool:
    pool = Pool(tenant_id=tenant.id, name=slug.title(), slug=slug, is_active=is_active)
    db.add(pool)
    db.commit()
    return pool


def make_policy(
    db: Session, pool: Pool, access_type: Any = AccessType.PUBLIC, **fields: Any
) -> AccessPolicy:
    value = access_type.value if isinstance(access_type, AccessType) else access_type
    policy = AccessPolicy(
        pool_id=pool.id,
        tenant_id=pool.tenant_id,
        access_type=value,
        domain_allow_list=fields.pop("domain_allow_list", []),
        **fields,
    )
    db.add(policy)
    db.commit()
    return policy


def make_code(
    db: Session,
    policy: AccessPolicy,
    code: str = "ABCD2345",
    *,
    uses_per_code: int = 1,
    used_count: int = 0,
    status: InviteCodeStatus = InviteCodeStatus.UNUSED,
    expires_at: Optional[datetime] = None,
) -> InviteCode:
    batch = CodeBatch(
        access_policy_id=policy.id,
        tenant_id=policy.tenant_id,
        name="batch",
        total_codes=1,
        used_codes=0,
        max_uses_per_code=uses_per_code,
        status=CodeBatchStatus.UNUSED,
        expires_at=expires_at,
    )
    db.add(batch)
    db.flush()
    invite_code = InviteCode(
        batch_id=batch.id,
        tenant_id=policy.tenant_id,
        code=code,
        uses_per_code=uses_per_code,
        used_count=used_count,
        status=status,
        expires_at=expires_at,
    )
    db.add(invite_code)
    db.commit()
    return invite_code


def make_invitation(
    db: Session,
    policy: AccessPolicy,
    email: str = "fan@example.com",
    *,
    token: Optional[str] = None,
    status: InvitationStatus = InvitationStatus.PENDING,
    expires_at: Optional[datetime] = None,
) -> Invitation:
    invitation = Invitation(
        access_policy_id=policy.id,
        pool_id=policy.pool_id,
        tenant_id=policy.tenant_id,
        email=email.lower(),
        token=token or f"tok-{email.lower()}",
        status=status,
        expires_at=expires_at or utc_now() + timedelta(hours=72),
    )
    db.add(invitation)
    db.commit()
    return invitation


def make_registration(
    db: Session,
    pool: Pool,
    user_id: str = "user-1",
    *,
    tenant_id: Optional[str] = None,
    invite_code: Optional[InviteCode] = None,
    invitation: Optional[Invitation] = None,
    email: str = "fan@example.com",
) -> Registration:
    registration = Registration(
        user_id=user_id,
        pool_id=pool.id,
        tenant_id=tenant_id or pool.tenant_id,
        display_name="Fan",
        email=email,
        email_verified=True,
        invite_code_id=invite_code.id if invite_code else None,
        invitation_id=invitation.id if invitation else None,
    )
    db.add(registration)
    db.commit()
    return registration


@dataclass
class PoolWorld:
    tenant: Tenant
    public_pool: Pool
    code_pool: Pool
    invite_pool: Pool
    public_policy: AccessPolicy
    code_policy: AccessPolicy
    invite_policy: AccessPolicy


def build_pool_world(db: Session) -> PoolWorld:
    tenant = make_tenant(db)
    public_pool = make_pool(db, tenant, "publica")
    code_pool = make_pool(db, tenant, "con-codigo")
    invite_pool = make_pool(db, tenant, "por-invitacion")
    return PoolWorld(
        tenant=tenant,
        public_pool=public_pool,
        code_pool=code_pool,
        invite_pool=invite_pool,
        public_policy=make_policy(db, public_pool, AccessType.PUBLIC),
        code_policy=make_policy(db, code_pool, AccessType.CODE),
        invite_policy=make_policy(db, invite_pool, AccessType.EMAIL_INVITE),
    )
