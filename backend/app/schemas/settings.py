"""Schemas for the settings cascade endpoints."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from ..core.enums import SettingScope
from ._strict_base import StrictModel, StrictRequestModel


class SettingUpsertRequest(StrictRequestModel):
    value: Any
    scope: SettingScope
    tenant_id: Optional[str] = None
    pool_id: Optional[str] = None


class ResolvedSettingResponse(StrictModel):
    key: str
    value: Any
    scope: SettingScope
    source: str = Field(description="pool, tenant, global or default")


class SettingsMapResponse(StrictModel):
    settings: Dict[str, ResolvedSettingResponse]


class SettingOverrideResponse(StrictModel):
    id: str
    key: str
    scope: SettingScope
    tenant_id: Optional[str] = None
    pool_id: Optional[str] = None
    value: Any = Field(validation_alias="value_json")
    updated_at: Optional[datetime] = None


class SettingOverridesResponse(StrictModel):
    overrides: List[SettingOverrideResponse]


class SettingDeleteResponse(StrictModel):
    deleted: bool
