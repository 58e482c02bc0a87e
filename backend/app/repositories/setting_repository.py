"""Repository for scoped setting overrides."""

from __future__ import annotations

from typing import Any, Iterable, List, Optional, cast

from sqlalchemy import and_, or_
from sqlalchemy.orm import Session

from ..core.enums import SettingScope
from ..core.timezone_utils import utc_now
from ..models.setting import Setting
from .base_repository import BaseRepository


class SettingRepository(BaseRepository[Setting]):
    """Data access for GLOBAL / TENANT / POOL setting rows."""

    def __init__(self, db: Session):
        super().__init__(db, Setting)

    def get_override(
        self,
        key: str,
        scope: SettingScope,
        tenant_id: Optional[str] = None,
        pool_id: Optional[str] = None,
    ) -> Optional[Setting]:
        """Exact natural-key lookup of a single override."""
        result = (
            self.db.query(Setting)
            .filter(
                Setting.key == key,
                Setting.scope == scope,
                _id_matches(Setting.tenant_id, tenant_id),
                _id_matches(Setting.pool_id, pool_id),
            )
            .first()
        )
        return cast(Optional[Setting], result)

    def list_cascade_candidates(
        self,
        tenant_id: Optional[str],
        pool_id: Optional[str],
        keys: Optional[Iterable[str]] = None,
    ) -> List[Setting]:
        """
        Every override that could win the cascade for (tenant_id, pool_id).

        One query: GLOBAL rows, plus the tenant's TENANT rows when a tenant id
        is given, plus the pool's POOL rows when both ids are given.
        """
        scopes = [Setting.scope == SettingScope.GLOBAL]
        if tenant_id:
            scopes.append(
                and_(Setting.scope == SettingScope.TENANT, Setting.tenant_id == tenant_id)
            )
            if pool_id:
                scopes.append(
                    and_(
                        Setting.scope == SettingScope.POOL,
                        Setting.tenant_id == tenant_id,
                        Setting.pool_id == pool_id,
                    )
                )
        query = self.db.query(Setting).filter(or_(*scopes))
        if keys is not None:
            query = query.filter(Setting.key.in_(list(keys)))
        return self._execute_query(query)

    def upsert(
        self,
        *,
        key: str,
        value: Any,
        scope: SettingScope,
        tenant_id: Optional[str] = None,
        pool_id: Optional[str] = None,
    ) -> Setting:
        record = self.get_override(key, scope, tenant_id, pool_id)
        if record is None:
            record = Setting(
                key=key,
                scope=scope,
                tenant_id=tenant_id,
                pool_id=pool_id,
                value_json=value,
                updated_at=utc_now(),
            )
            self.db.add(record)
        else:
            record.value_json = value
            record.updated_at = utc_now()
        self.flush()
        return record

    def delete_override(
        self,
        key: str,
        scope: SettingScope,
        tenant_id: Optional[str] = None,
        pool_id: Optional[str] = None,
    ) -> bool:
        record = self.get_override(key, scope, tenant_id, pool_id)
        if record is None:
            return False
        self.db.delete(record)
        self.flush()
        return True

    def list_overrides(
        self,
        *,
        scope: Optional[SettingScope] = None,
        tenant_id: Optional[str] = None,
        pool_id: Optional[str] = None,
    ) -> List[Setting]:
        """Rows matching every supplied filter, ordered for display."""
        query = self.db.query(Setting)
        if scope is not None:
            query = query.filter(Setting.scope == scope)
        if tenant_id is not None:
            query = query.filter(Setting.tenant_id == tenant_id)
        if pool_id is not None:
            query = query.filter(Setting.pool_id == pool_id)
        return self._execute_query(query.order_by(Setting.key.asc(), Setting.scope.asc()))


def _id_matches(column: Any, value: Optional[str]) -> Any:
    return column.is_(None) if value is None else column == value


__all__ = ["SettingRepository"]
