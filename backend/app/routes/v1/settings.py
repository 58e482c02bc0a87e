# backend/app/routes/v1/settings.py
"""
Settings routes - API v1

Scoped configuration resolved through the POOL -> TENANT -> GLOBAL -> default
cascade.

Endpoints:
    GET /                    → All registry keys resolved for a scope
    GET /overrides           → Stored overrides (admins)
    GET /{key}               → One key resolved for a scope
    PUT /{key}               → Create or update an override
    DELETE /{key}            → Remove an override
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ...api.dependencies import (
    get_audit_service,
    get_current_principal,
    get_settings_service,
    require_tenant_admin,
)
from ...core.enums import AuditAction, SettingScope
from ...models.setting import Setting
from ...principal import Principal
from ...schemas.settings import (
    ResolvedSettingResponse,
    SettingDeleteResponse,
    SettingOverrideResponse,
    SettingOverridesResponse,
    SettingsMapResponse,
    SettingUpsertRequest,
)
from ...services.audit_service import AuditService
from ...services.settings_service import SettingsService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["settings-v1"])


def _authorize_write(principal: Principal, scope: SettingScope, tenant_id: Optional[str]) -> None:
    if principal.is_superadmin:
        return
    if scope == SettingScope.GLOBAL:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only superadmins can change global settings",
        )
    if not principal.is_tenant_admin:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Admin access required")
    if tenant_id and tenant_id != principal.tenant_id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Cannot change settings of another tenant",
        )


@router.get("", response_model=SettingsMapResponse)
async def get_all_settings(
    tenant_id: Optional[str] = Query(default=None),
    pool_id: Optional[str] = Query(default=None),
    _: Principal = Depends(get_current_principal),
    settings_service: SettingsService = Depends(get_settings_service),
) -> SettingsMapResponse:
    resolved = await asyncio.to_thread(settings_service.get_all_settings, tenant_id, pool_id)
    return SettingsMapResponse(
        settings={
            key: ResolvedSettingResponse.model_validate(value) for key, value in resolved.items()
        }
    )


@router.get("/overrides", response_model=SettingOverridesResponse)
async def list_overrides(
    scope: Optional[SettingScope] = Query(default=None),
    pool_id: Optional[str] = Query(default=None),
    principal: Principal = Depends(require_tenant_admin),
    settings_service: SettingsService = Depends(get_settings_service),
) -> SettingOverridesResponse:
    """Overrides stored for the caller's tenant (all tenants for superadmins)."""
    tenant_id = None if principal.is_superadmin else principal.tenant_id
    rows = await asyncio.to_thread(settings_service.list_overrides, scope, tenant_id, pool_id)
    return SettingOverridesResponse(
        overrides=[SettingOverrideResponse.model_validate(row) for row in rows]
    )


@router.get("/{key}", response_model=ResolvedSettingResponse)
async def get_setting(
    key: str,
    tenant_id: Optional[str] = Query(default=None),
    pool_id: Optional[str] = Query(default=None),
    _: Principal = Depends(get_current_principal),
    settings_service: SettingsService = Depends(get_settings_service),
) -> ResolvedSettingResponse:
    resolved = await asyncio.to_thread(settings_service.get_setting, key, tenant_id, pool_id)
    return ResolvedSettingResponse.model_validate(resolved)


@router.put("/{key}", response_model=SettingOverrideResponse)
async def upsert_setting(
    key: str,
    payload: SettingUpsertRequest,
    principal: Principal = Depends(get_current_principal),
    settings_service: SettingsService = Depends(get_settings_service),
    audit_service: AuditService = Depends(get_audit_service),
) -> SettingOverrideResponse:
    """
    Create or update an override.

    GLOBAL writes are limited to superadmins; TENANT and POOL writes to
    administrators of that tenant.
    """
    _authorize_write(principal, payload.scope, payload.tenant_id)

    def _write() -> Setting:
        with settings_service.transaction():
            record = settings_service.upsert_setting(
                key, payload.value, payload.scope, payload.tenant_id, payload.pool_id
            )
            audit_service.record(
                AuditAction.SETTING_UPSERT,
                "SETTING",
                record.id,
                tenant_id=record.tenant_id,
                pool_id=record.pool_id,
                actor_id=principal.user_id,
                metadata={"key": key, "scope": payload.scope.value, "value": payload.value},
            )
        return record

    record = await asyncio.to_thread(_write)
    return SettingOverrideResponse.model_validate(record)


@router.delete("/{key}", response_model=SettingDeleteResponse)
async def delete_setting(
    key: str,
    scope: SettingScope = Query(...),
    tenant_id: Optional[str] = Query(default=None),
    pool_id: Optional[str] = Query(default=None),
    principal: Principal = Depends(get_current_principal),
    settings_service: SettingsService = Depends(get_settings_service),
    audit_service: AuditService = Depends(get_audit_service),
) -> SettingDeleteResponse:
    _authorize_write(principal, scope, tenant_id)

    def _delete() -> bool:
        with settings_service.transaction():
            deleted = settings_service.delete_setting(key, scope, tenant_id, pool_id)
            if deleted:
                audit_service.record(
                    AuditAction.SETTING_DELETE,
                    "SETTING",
                    None,
                    tenant_id=tenant_id,
                    pool_id=pool_id,
                    actor_id=principal.user_id,
                    metadata={"key": key, "scope": scope.value},
                )
        return deleted

    deleted = await asyncio.to_thread(_delete)
    return SettingDeleteResponse(deleted=deleted)
