from __future__ import annotations

import pytest

from app.core.enums import CaptchaLevel, SettingScope
from app.core.exceptions import (
    InvalidSettingValueError,
    SettingScopeError,
    UnknownSettingError,
)
from app.models.setting import Setting
from app.services.setting_registry import (
    CAPTCHA_LEVEL_KEY,
    COOKIE_BANNER_KEY,
    DEVICE_FINGERPRINT_KEY,
    IP_LOGGING_KEY,
    RATE_LIMIT_KEY,
)
from app.services.settings_service import (
    GLOBAL_SCOPE_ERROR,
    POOL_SCOPE_ERROR,
    TENANT_SCOPE_ERROR,
    SettingsService,
)
from tests.factories.pools import make_pool, make_tenant


def _store(db, key, value, scope, tenant_id=None, pool_id=None) -> Setting:
    service = SettingsService(db)
    with service.transaction():
        return service.upsert_setting(key, value, scope, tenant_id, pool_id)


def test_unset_key_resolves_to_registry_default(db):
    resolved = SettingsService(db).get_setting(CAPTCHA_LEVEL_KEY)

    assert resolved.value == "auto"
    assert resolved.source == "default"
    assert resolved.scope == SettingScope.GLOBAL


def test_cascade_prefers_pool_then_tenant_then_global(db, world):
    tenant_id, pool_id = world.tenant.id, world.public_pool.id
    service = SettingsService(db)

    _store(db, CAPTCHA_LEVEL_KEY, "off", SettingScope.GLOBAL)
    resolved = service.get_setting(CAPTCHA_LEVEL_KEY, tenant_id, pool_id)
    assert (resolved.value, resolved.source) == ("off", "global")

    _store(db, CAPTCHA_LEVEL_KEY, "auto", SettingScope.TENANT, tenant_id)
    resolved = service.get_setting(CAPTCHA_LEVEL_KEY, tenant_id, pool_id)
    assert (resolved.value, resolved.source) == ("auto", "tenant")
    assert resolved.scope == SettingScope.TENANT

    _store(db, CAPTCHA_LEVEL_KEY, "force", SettingScope.POOL, tenant_id, pool_id)
    resolved = service.get_setting(CAPTCHA_LEVEL_KEY, tenant_id, pool_id)
    assert (resolved.value, resolved.source) == ("force", "pool")
    assert resolved.scope == SettingScope.POOL


def test_overrides_do_not_leak_across_tenants_or_pools(db, world):
    other_tenant = make_tenant(db, "rival")
    other_pool = make_pool(db, other_tenant, "liga")
    _store(db, IP_LOGGING_KEY, False, SettingScope.TENANT, other_tenant.id)
    _store(db, IP_LOGGING_KEY, False, SettingScope.POOL, world.tenant.id, world.code_pool.id)

    service = SettingsService(db)
    assert service.get_ip_logging_enabled(world.tenant.id, world.public_pool.id) is True
    assert service.get_ip_logging_enabled(world.tenant.id, world.code_pool.id) is False
    assert service.get_ip_logging_enabled(other_tenant.id, other_pool.id) is False


def test_pool_override_ignored_without_tenant_id(db, world):
    _store(db, CAPTCHA_LEVEL_KEY, "force", SettingScope.POOL, world.tenant.id, world.public_pool.id)

    resolved = SettingsService(db).get_setting(CAPTCHA_LEVEL_KEY, None, world.public_pool.id)

    assert resolved.source == "default"


def test_get_all_settings_reports_every_registry_key(db, world):
    _store(db, RATE_LIMIT_KEY, {"windowSec": 30, "max": 5}, SettingScope.TENANT, world.tenant.id)

    service = SettingsService(db)
    resolved = service.get_all_settings(world.tenant.id, world.public_pool.id)

    assert set(resolved) == set(service.registry.keys())
    assert resolved[RATE_LIMIT_KEY].value == {"windowSec": 30, "max": 5}
    assert resolved[RATE_LIMIT_KEY].source == "tenant"
    assert resolved[CAPTCHA_LEVEL_KEY].source == "default"
    assert service.get_effective_settings(world.tenant.id)[RATE_LIMIT_KEY]["max"] == 5


def test_upsert_updates_existing_override_in_place(db, world):
    first = _store(db, CAPTCHA_LEVEL_KEY, "off", SettingScope.TENANT, world.tenant.id)
    second = _store(db, CAPTCHA_LEVEL_KEY, "force", SettingScope.TENANT, world.tenant.id)

    assert first.id == second.id
    assert db.query(Setting).count() == 1
    assert SettingsService(db).get_captcha_level(world.tenant.id) == CaptchaLevel.FORCE


@pytest.mark.parametrize(
    "scope, tenant_id, pool_id, message",
    [
        (SettingScope.GLOBAL, "tenant", None, GLOBAL_SCOPE_ERROR),
        (SettingScope.GLOBAL, None, "pool", GLOBAL_SCOPE_ERROR),
        (SettingScope.TENANT, None, None, TENANT_SCOPE_ERROR),
        (SettingScope.TENANT, "tenant", "pool", TENANT_SCOPE_ERROR),
        (SettingScope.POOL, "tenant", None, POOL_SCOPE_ERROR),
        (SettingScope.POOL, None, "pool", POOL_SCOPE_ERROR),
    ],
)
def test_upsert_rejects_ids_inconsistent_with_scope(db, scope, tenant_id, pool_id, message):
    service = SettingsService(db)

    with pytest.raises(SettingScopeError) as exc_info:
        service.upsert_setting(CAPTCHA_LEVEL_KEY, "off", scope, tenant_id, pool_id)

    assert exc_info.value.message == message
    assert db.query(Setting).count() == 0


def test_scope_messages_are_stable():
    assert GLOBAL_SCOPE_ERROR == "Global settings cannot have tenantId"
    assert TENANT_SCOPE_ERROR == "Tenant settings must have tenantId"
    assert POOL_SCOPE_ERROR == "Pool settings must have both tenantId and poolId"


def test_upsert_rejects_unknown_key_and_bad_value(db):
    service = SettingsService(db)

    with pytest.raises(UnknownSettingError):
        service.upsert_setting("antiAbuse.nope", True, SettingScope.GLOBAL)
    with pytest.raises(InvalidSettingValueError) as exc_info:
        service.upsert_setting(IP_LOGGING_KEY, "true", SettingScope.GLOBAL)

    assert exc_info.value.details["key"] == IP_LOGGING_KEY
    assert exc_info.value.details["errors"]


def test_get_setting_rejects_unknown_key(db):
    with pytest.raises(UnknownSettingError):
        SettingsService(db).get_setting("privacy.unknown")


def test_delete_falls_through_to_next_level(db, world):
    _store(db, CAPTCHA_LEVEL_KEY, "off", SettingScope.GLOBAL)
    _store(db, CAPTCHA_LEVEL_KEY, "force", SettingScope.TENANT, world.tenant.id)
    service = SettingsService(db)

    with service.transaction():
        assert service.delete_setting(CAPTCHA_LEVEL_KEY, SettingScope.TENANT, world.tenant.id)

    resolved = service.get_setting(CAPTCHA_LEVEL_KEY, world.tenant.id)
    assert (resolved.value, resolved.source) == ("off", "global")
    assert service.delete_setting(CAPTCHA_LEVEL_KEY, SettingScope.TENANT, world.tenant.id) is False


def test_validate_setting_value(db):
    service = SettingsService(db)

    assert service.validate_setting_value(CAPTCHA_LEVEL_KEY, "force")
    assert not service.validate_setting_value(CAPTCHA_LEVEL_KEY, "always")
    assert service.validate_setting_value(RATE_LIMIT_KEY, {"windowSec": 1, "max": 1})
    assert not service.validate_setting_value(RATE_LIMIT_KEY, {"windowSec": 0, "max": 1})
    assert not service.validate_setting_value(RATE_LIMIT_KEY, {"windowSec": 10})
    assert not service.validate_setting_value("unknown.key", 1)


def test_typed_getters_fall_back_on_corrupt_stored_values(db):
    db.add(Setting(scope=SettingScope.GLOBAL, key=CAPTCHA_LEVEL_KEY, value_json="sometimes"))
    db.add(Setting(scope=SettingScope.GLOBAL, key=RATE_LIMIT_KEY, value_json={"max": "lots"}))
    db.add(Setting(scope=SettingScope.GLOBAL, key=IP_LOGGING_KEY, value_json="yes"))
    db.commit()
    service = SettingsService(db)

    assert service.get_captcha_level() == CaptchaLevel.AUTO
    assert service.get_rate_limit() == {"windowSec": 60, "max": 60}
    assert service.get_ip_logging_enabled() is True


def test_privacy_flags_follow_the_cascade(db, world):
    tenant_id, pool_id = world.tenant.id, world.public_pool.id
    _store(db, COOKIE_BANNER_KEY, False, SettingScope.TENANT, tenant_id)
    _store(db, DEVICE_FINGERPRINT_KEY, True, SettingScope.POOL, tenant_id, pool_id)
    db.add(Setting(scope=SettingScope.GLOBAL, key=DEVICE_FINGERPRINT_KEY, value_json="on"))
    db.commit()
    service = SettingsService(db)

    assert service.get_cookie_banner_enabled() is True
    assert service.get_cookie_banner_enabled(tenant_id, pool_id) is False
    assert service.get_device_fingerprint_enabled(tenant_id, pool_id) is True
    assert service.get_device_fingerprint_enabled(tenant_id) is False


def test_list_overrides_filters_by_scope_and_tenant(db, world):
    _store(db, CAPTCHA_LEVEL_KEY, "off", SettingScope.GLOBAL)
    _store(db, CAPTCHA_LEVEL_KEY, "force", SettingScope.TENANT, world.tenant.id)
    _store(db, IP_LOGGING_KEY, False, SettingScope.POOL, world.tenant.id, world.public_pool.id)
    service = SettingsService(db)

    assert len(service.list_overrides()) == 3
    tenant_rows = service.list_overrides(tenant_id=world.tenant.id)
    assert {row.scope for row in tenant_rows} == {SettingScope.TENANT, SettingScope.POOL}
    assert [row.key for row in service.list_overrides(scope=SettingScope.GLOBAL)] == [
        CAPTCHA_LEVEL_KEY
    ]
