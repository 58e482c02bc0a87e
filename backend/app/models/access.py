"""Access policy and admission credential models: code batches, invite codes, invitations."""

from typing import Optional

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..core.enums import AccessType, CodeBatchStatus, InvitationStatus, InviteCodeStatus
from ..database import Base
from .base_enum import create_safe_enum


class AccessPolicy(Base):
    """Admission configuration of a pool (one per pool)."""

    __tablename__ = "access_policies"

    id: str = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    pool_id: str = Column(
        String(26), ForeignKey("pools.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    tenant_id: str = Column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )

    # Stored as plain text so an unrecognized value can be detected (and
    # rejected as a configuration error) instead of failing at load time.
    access_type: str = Column(String(32), nullable=False, default=AccessType.PUBLIC.value)

    require_captcha: bool = Column(Boolean, nullable=False, default=False)
    require_email_verification: bool = Column(Boolean, nullable=False, default=False)
    domain_allow_list = Column(JSON, nullable=False, default=list)

    max_registrations: Optional[int] = Column(Integer, nullable=True)
    registration_start_date = Column(DateTime(timezone=True), nullable=True)
    registration_end_date = Column(DateTime(timezone=True), nullable=True)

    user_cap: Optional[int] = Column(Integer, nullable=True)
    window_start = Column(DateTime(timezone=True), nullable=True)
    window_end = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now(), nullable=False
    )

    pool = relationship("Pool", back_populates="access_policy")
    code_batches = relationship(
        "CodeBatch", back_populates="access_policy", cascade="all, delete-orphan"
    )
    invitations = relationship(
        "Invitation", back_populates="access_policy", cascade="all, delete-orphan"
    )


class CodeBatch(Base):
    """A group of invite codes generated together."""

    __tablename__ = "code_batches"

    id: str = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    access_policy_id: str = Column(
        String(26),
        ForeignKey("access_policies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    tenant_id: str = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)
    name: Optional[str] = Column(String(255), nullable=True)
    description: Optional[str] = Column(Text, nullable=True)
    total_codes: int = Column(Integer, nullable=False, default=0)
    # Number of codes in the batch that reached USED
    used_codes: int = Column(Integer, nullable=False, default=0)
    max_uses_per_code: int = Column(Integer, nullable=False, default=1)
    status = Column(
        create_safe_enum(CodeBatchStatus, "code_batch_status"),
        nullable=False,
        default=CodeBatchStatus.UNUSED,
    )
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    access_policy = relationship("AccessPolicy", back_populates="code_batches")
    codes = relationship(
        "InviteCode",
        back_populates="batch",
        cascade="all, delete-orphan",
        order_by="InviteCode.created_at",
    )


class InviteCode(Base):
    """
    Shareable multi-use admission credential.

    ``status`` is a cached projection of (used_count vs uses_per_code,
    expires_at vs now) and is rewritten together with every increment.
    """

    __tablename__ = "invite_codes"
    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_invite_codes_tenant_code"),
        CheckConstraint("used_count >= 0", name="ck_invite_codes_used_nonnegative"),
        CheckConstraint("uses_per_code >= 1", name="ck_invite_codes_capacity_positive"),
        CheckConstraint("used_count <= uses_per_code", name="ck_invite_codes_within_capacity"),
    )

    id: str = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    batch_id: str = Column(
        String(26), ForeignKey("code_batches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id: str = Column(String(26), ForeignKey("tenants.id"), nullable=False)
    code: str = Column(String(32), nullable=False, index=True)
    status = Column(
        create_safe_enum(InviteCodeStatus, "invite_code_status"),
        nullable=False,
        default=InviteCodeStatus.UNUSED,
    )
    uses_per_code: int = Column(Integer, nullable=False, default=1)
    used_count: int = Column(Integer, nullable=False, default=0)
    expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    batch = relationship("CodeBatch", back_populates="codes")

    @property
    def uses_remaining(self) -> int:
        return max(0, self.uses_per_code - self.used_count)


class Invitation(Base):
    """Single-recipient admission credential bound to an email address."""

    __tablename__ = "invitations"

    id: str = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    access_policy_id: str = Column(
        String(26),
        ForeignKey("access_policies.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    pool_id: str = Column(String(26), ForeignKey("pools.id"), nullable=False, index=True)
    tenant_id: str = Column(String(26), ForeignKey("tenants.id"), nullable=False)
    email: str = Column(String(255), nullable=False, index=True)
    token: str = Column(String(128), unique=True, nullable=False, index=True)
    status = Column(
        create_safe_enum(InvitationStatus, "invitation_status"),
        nullable=False,
        default=InvitationStatus.PENDING,
    )
    expires_at = Column(DateTime(timezone=True), nullable=False)
    accepted_at = Column(DateTime(timezone=True), nullable=True)

    # Delivery telemetry, write-only
    sent_count: int = Column(Integer, nullable=False, default=0)
    last_sent_at = Column(DateTime(timezone=True), nullable=True)
    opened_at = Column(DateTime(timezone=True), nullable=True)
    clicked_at = Column(DateTime(timezone=True), nullable=True)
    bounced_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    access_policy = relationship("AccessPolicy", back_populates="invitations")


__all__ = ["AccessPolicy", "CodeBatch", "InviteCode", "Invitation"]
