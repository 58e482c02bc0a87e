"""Tenant and pool models."""

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, String, UniqueConstraint
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
import ulid

from ..database import Base


class Tenant(Base):
    """Top-level customer that owns brands and pools."""

    __tablename__ = "tenants"

    id: str = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    slug: str = Column(String(64), unique=True, index=True, nullable=False)
    name: str = Column(String(255), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    pools = relationship("Pool", back_populates="tenant", cascade="all, delete-orphan")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Tenant slug={self.slug}>"


class Pool(Base):
    """One prediction competition (a quiniela) run by a tenant."""

    __tablename__ = "pools"
    __table_args__ = (UniqueConstraint("tenant_id", "slug", name="uq_pools_tenant_slug"),)

    id: str = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    tenant_id: str = Column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False, index=True
    )
    name: str = Column(String(255), nullable=False)
    slug: str = Column(String(64), nullable=False)
    is_active: bool = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)

    tenant = relationship("Tenant", back_populates="pools")
    access_policy = relationship(
        "AccessPolicy", back_populates="pool", uselist=False, cascade="all, delete-orphan"
    )
    registrations = relationship("Registration", back_populates="pool")

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Pool slug={self.slug} tenant={self.tenant_id}>"


__all__ = ["Pool", "Tenant"]
