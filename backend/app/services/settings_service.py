# backend/app/services/settings_service.py
"""
Hierarchical settings resolution.

A value for (key, tenant, pool) is looked up as a POOL override, then a
TENANT override, then a GLOBAL override, then the registry default; the
first hit wins and is reported together with the level that produced it.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any, Dict, Iterable, List, Literal, Optional

from sqlalchemy.orm import Session

from ..core.enums import CaptchaLevel, SettingScope
from ..core.exceptions import InvalidSettingValueError, SettingScopeError
from ..models.setting import Setting
from ..repositories.factory import RepositoryFactory
from .base import BaseService
from .setting_registry import (
    CAPTCHA_LEVEL_KEY,
    COOKIE_BANNER_KEY,
    DEFAULT_SETTING_REGISTRY,
    DEVICE_FINGERPRINT_KEY,
    IP_LOGGING_KEY,
    RATE_LIMIT_KEY,
    SettingRegistry,
)

logger = logging.getLogger(__name__)

SettingSource = Literal["pool", "tenant", "global", "default"]

GLOBAL_SCOPE_ERROR = "Global settings cannot have tenantId"
TENANT_SCOPE_ERROR = "Tenant settings must have tenantId"
POOL_SCOPE_ERROR = "Pool settings must have both tenantId and poolId"

_SOURCE_BY_SCOPE: Dict[SettingScope, SettingSource] = {
    SettingScope.POOL: "pool",
    SettingScope.TENANT: "tenant",
    SettingScope.GLOBAL: "global",
}


@dataclass(frozen=True)
class ResolvedSetting:
    """Effective value of a key plus the level that produced it."""

    key: str
    value: Any
    scope: SettingScope
    source: SettingSource


def _clean_id(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def check_scope_shape(
    scope: SettingScope, tenant_id: Optional[str], pool_id: Optional[str]
) -> None:
    """Raise SettingScopeError when the ids do not fit the declared scope."""
    if scope == SettingScope.GLOBAL and (tenant_id or pool_id):
        raise SettingScopeError(GLOBAL_SCOPE_ERROR)
    if scope == SettingScope.TENANT and (not tenant_id or pool_id):
        raise SettingScopeError(TENANT_SCOPE_ERROR)
    if scope == SettingScope.POOL and (not tenant_id or not pool_id):
        raise SettingScopeError(POOL_SCOPE_ERROR)


class SettingsService(BaseService):
    """Read and write scoped setting overrides against a key registry."""

    def __init__(self, db: Session, registry: Optional[SettingRegistry] = None):
        super().__init__(db)
        self.registry = registry or DEFAULT_SETTING_REGISTRY
        self.repository = RepositoryFactory.create_setting_repository(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    @BaseService.measure_operation("settings.get")
    def get_setting(
        self, key: str, tenant_id: Optional[str] = None, pool_id: Optional[str] = None
    ) -> ResolvedSetting:
        """
        Resolve one key through the cascade.

        Raises:
            UnknownSettingError: key is not in the registry
        """
        self.registry.get(key)
        tenant_id, pool_id = _clean_id(tenant_id), _clean_id(pool_id)
        rows = self.repository.list_cascade_candidates(tenant_id, pool_id, keys=[key])
        return self._resolve(key, rows, tenant_id, pool_id)

    @BaseService.measure_operation("settings.get_all")
    def get_all_settings(
        self, tenant_id: Optional[str] = None, pool_id: Optional[str] = None
    ) -> Dict[str, ResolvedSetting]:
        """Every registry key resolved for the given scope, in one query."""
        tenant_id, pool_id = _clean_id(tenant_id), _clean_id(pool_id)
        keys = self.registry.keys()
        rows = self.repository.list_cascade_candidates(tenant_id, pool_id, keys=keys)
        return {key: self._resolve(key, rows, tenant_id, pool_id) for key in keys}

    def get_effective_settings(
        self, tenant_id: Optional[str] = None, pool_id: Optional[str] = None
    ) -> Dict[str, Any]:
        """Flat key -> value view of ``get_all_settings``."""
        return {
            key: resolved.value
            for key, resolved in self.get_all_settings(tenant_id, pool_id).items()
        }

    def list_overrides(
        self,
        scope: Optional[SettingScope] = None,
        tenant_id: Optional[str] = None,
        pool_id: Optional[str] = None,
    ) -> List[Setting]:
        return self.repository.list_overrides(
            scope=scope, tenant_id=_clean_id(tenant_id), pool_id=_clean_id(pool_id)
        )

    def validate_setting_value(self, key: str, value: Any) -> bool:
        """False for unknown keys and for values that do not fit the key's shape."""
        if key not in self.registry:
            return False
        return self.registry.get(key).is_valid(value)

    # ------------------------------------------------------------------
    # Writes (caller owns the transaction)
    # ------------------------------------------------------------------

    @BaseService.measure_operation("settings.upsert")
    def upsert_setting(
        self,
        key: str,
        value: Any,
        scope: SettingScope,
        tenant_id: Optional[str] = None,
        pool_id: Optional[str] = None,
    ) -> Setting:
        """
        Create or update the override for (scope, tenant, pool, key).

        Raises:
            SettingScopeError: ids inconsistent with ``scope``
            UnknownSettingError: key is not in the registry
            InvalidSettingValueError: value does not fit the key's shape
        """
        scope = SettingScope(scope)
        tenant_id, pool_id = _clean_id(tenant_id), _clean_id(pool_id)
        try:
            check_scope_shape(scope, tenant_id, pool_id)
        except SettingScopeError as exc:
            self.logger.error(
                "Rejected %s setting write for %s: %s",
                scope.value,
                key,
                exc.message,
                extra={"tenant_id": tenant_id, "pool_id": pool_id},
            )
            raise

        errors = self.registry.get(key).validation_errors(value)
        if errors is not None:
            raise InvalidSettingValueError(key, errors)

        record = self.repository.upsert(
            key=key, value=value, scope=scope, tenant_id=tenant_id, pool_id=pool_id
        )
        self.log_operation(
            "settings.upsert", key=key, scope=scope.value, tenant_id=tenant_id, pool_id=pool_id
        )
        return record

    @BaseService.measure_operation("settings.delete")
    def delete_setting(
        self,
        key: str,
        scope: SettingScope,
        tenant_id: Optional[str] = None,
        pool_id: Optional[str] = None,
    ) -> bool:
        """Remove an override; later reads fall through to the next level."""
        scope = SettingScope(scope)
        tenant_id, pool_id = _clean_id(tenant_id), _clean_id(pool_id)
        check_scope_shape(scope, tenant_id, pool_id)
        self.registry.get(key)
        return self.repository.delete_override(key, scope, tenant_id, pool_id)

    # ------------------------------------------------------------------
    # Typed getters. Stored values that no longer fit fall back to the
    # safest value instead of propagating.
    # ------------------------------------------------------------------

    def get_captcha_level(
        self, tenant_id: Optional[str] = None, pool_id: Optional[str] = None
    ) -> CaptchaLevel:
        value = self.get_setting(CAPTCHA_LEVEL_KEY, tenant_id, pool_id).value
        try:
            return CaptchaLevel(value)
        except ValueError:
            logger.warning("Unrecognized captcha level %r; using auto", value)
            return CaptchaLevel.AUTO

    def get_rate_limit(
        self, tenant_id: Optional[str] = None, pool_id: Optional[str] = None
    ) -> Dict[str, int]:
        value = self.get_setting(RATE_LIMIT_KEY, tenant_id, pool_id).value
        if self.registry.get(RATE_LIMIT_KEY).is_valid(value):
            return {"windowSec": int(value["windowSec"]), "max": int(value["max"])}
        logger.warning("Invalid stored rate limit %r; using default", value)
        return dict(self.registry.default_for(RATE_LIMIT_KEY))

    def get_ip_logging_enabled(
        self, tenant_id: Optional[str] = None, pool_id: Optional[str] = None
    ) -> bool:
        return self._get_flag(IP_LOGGING_KEY, tenant_id, pool_id)

    def get_cookie_banner_enabled(
        self, tenant_id: Optional[str] = None, pool_id: Optional[str] = None
    ) -> bool:
        return self._get_flag(COOKIE_BANNER_KEY, tenant_id, pool_id)

    def get_device_fingerprint_enabled(
        self, tenant_id: Optional[str] = None, pool_id: Optional[str] = None
    ) -> bool:
        return self._get_flag(DEVICE_FINGERPRINT_KEY, tenant_id, pool_id)

    # ------------------------------------------------------------------

    def _get_flag(self, key: str, tenant_id: Optional[str], pool_id: Optional[str]) -> bool:
        value = self.get_setting(key, tenant_id, pool_id).value
        if isinstance(value, bool):
            return value
        logger.warning("Non-boolean value %r stored for %s; using default", value, key)
        return bool(self.registry.default_for(key))

    def _resolve(
        self,
        key: str,
        rows: Iterable[Setting],
        tenant_id: Optional[str],
        pool_id: Optional[str],
    ) -> ResolvedSetting:
        by_scope: Dict[SettingScope, Setting] = {}
        for row in rows:
            if row.key != key:
                continue
            scope = SettingScope(row.scope)
            if scope == SettingScope.POOL and not (
                tenant_id and row.tenant_id == tenant_id and row.pool_id == pool_id
            ):
                continue
            if scope == SettingScope.TENANT and row.tenant_id != tenant_id:
                continue
            by_scope[scope] = row

        for scope in (SettingScope.POOL, SettingScope.TENANT, SettingScope.GLOBAL):
            row = by_scope.get(scope)
            if row is not None:
                return ResolvedSetting(
                    key=key, value=row.value_json, scope=scope, source=_SOURCE_BY_SCOPE[scope]
                )

        return ResolvedSetting(
            key=key,
            value=self.registry.default_for(key),
            scope=SettingScope.GLOBAL,
            source="default",
        )


__all__ = [
    "GLOBAL_SCOPE_ERROR",
    "POOL_SCOPE_ERROR",
    "ResolvedSetting",
    "SettingsService",
    "TENANT_SCOPE_ERROR",
    "check_scope_shape",
]
