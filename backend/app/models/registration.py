"""Registration: the record of one user's admission into one pool."""

from typing import Optional

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Registration(Base):
    """
    Admission record, unique per (user, pool).

    Its existence is the sole authority for "this user is admitted"; later
    protected actions re-check through it together with the credential it
    links to.
    """

    __tablename__ = "registrations"
    __table_args__ = (
        UniqueConstraint("user_id", "pool_id", name="uq_registrations_user_pool"),
        CheckConstraint(
            "invite_code_id IS NULL OR invitation_id IS NULL",
            name="ck_registrations_single_credential",
        ),
    )

    id: str = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    user_id: str = Column(String(64), nullable=False, index=True)
    pool_id: str = Column(
        String(26), ForeignKey("pools.id", ondelete="CASCADE"), nullable=False, index=True
    )
    tenant_id: str = Column(String(26), ForeignKey("tenants.id"), nullable=False, index=True)

    display_name: Optional[str] = Column(String(100), nullable=True)
    email: Optional[str] = Column(String(255), nullable=True)
    phone: Optional[str] = Column(String(32), nullable=True)
    email_verified: bool = Column(Boolean, nullable=False, default=False)
    phone_verified: bool = Column(Boolean, nullable=False, default=False)

    invite_code_id: Optional[str] = Column(
        String(26), ForeignKey("invite_codes.id"), nullable=True, index=True
    )
    invitation_id: Optional[str] = Column(
        String(26), ForeignKey("invitations.id"), nullable=True, index=True
    )

    joined_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    pool = relationship("Pool", back_populates="registrations")
    invite_code = relationship("InviteCode")
    invitation = relationship("Invitation")


__all__ = ["Registration"]
