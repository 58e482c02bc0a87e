"""Scoped setting overrides (GLOBAL / TENANT / POOL)."""

from sqlalchemy import JSON, CheckConstraint, Column, DateTime, ForeignKey, Index, String, func
import ulid

from ..core.enums import SettingScope
from ..database import Base
from .base_enum import create_safe_enum


class Setting(Base):
    """
    One override of a registry key at a given scope.

    Absence of a row at a scope means "fall through to the next scope"; rows
    are only ever created by an explicit upsert.
    """

    __tablename__ = "settings"
    __table_args__ = (
        CheckConstraint(
            "(scope = 'GLOBAL' AND tenant_id IS NULL AND pool_id IS NULL)"
            " OR (scope = 'TENANT' AND tenant_id IS NOT NULL AND pool_id IS NULL)"
            " OR (scope = 'POOL' AND tenant_id IS NOT NULL AND pool_id IS NOT NULL)",
            name="ck_settings_scope_shape",
        ),
    )

    id: str = Column(String(26), primary_key=True, default=lambda: str(ulid.ULID()))
    scope = Column(create_safe_enum(SettingScope, "setting_scope"), nullable=False)
    tenant_id = Column(
        String(26), ForeignKey("tenants.id", ondelete="CASCADE"), nullable=True, index=True
    )
    pool_id = Column(String(26), ForeignKey("pools.id", ondelete="CASCADE"), nullable=True)
    key: str = Column(String(128), nullable=False)
    value_json = Column(JSON, nullable=True)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    def __repr__(self) -> str:  # pragma: no cover - debug helper
        return f"<Setting {self.scope} {self.key} tenant={self.tenant_id} pool={self.pool_id}>"


# NULL ids never collide in a plain unique constraint, so the natural key is
# enforced on coalesced columns.
Index(
    "uq_settings_natural_key",
    Setting.scope,
    func.coalesce(Setting.tenant_id, ""),
    func.coalesce(Setting.pool_id, ""),
    Setting.key,
    unique=True,
)


__all__ = ["Setting"]
