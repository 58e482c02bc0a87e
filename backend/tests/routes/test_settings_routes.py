from __future__ import annotations

from app.models.audit_log import AuditLog
from app.models.setting import Setting

BASE = "/api/v1/settings"


def test_requires_authenticated_principal(client):
    response = client.get(BASE)

    assert response.status_code == 401
    assert response.headers["content-type"].startswith("application/problem+json")


def test_get_all_settings_resolves_defaults(client, headers):
    response = client.get(BASE, headers=headers())

    assert response.status_code == 200
    captcha = response.json()["settings"]["antiAbuse.captchaLevel"]
    assert captcha == {
        "key": "antiAbuse.captchaLevel",
        "value": "auto",
        "scope": "GLOBAL",
        "source": "default",
    }


def test_tenant_admin_override_applies_to_tenant_and_pools(client, world, headers):
    admin = headers(user_id="admin-1", tenant_id=world.tenant.id, role="tenant_admin")

    written = client.put(
        f"{BASE}/antiAbuse.captchaLevel",
        json={"value": "force", "scope": "TENANT", "tenant_id": world.tenant.id},
        headers=admin,
    )
    resolved = client.get(
        f"{BASE}/antiAbuse.captchaLevel",
        params={"tenant_id": world.tenant.id, "pool_id": world.public_pool.id},
        headers=headers(),
    )

    assert written.status_code == 200
    assert written.json()["value"] == "force"
    assert resolved.json()["source"] == "tenant"
    assert resolved.json()["value"] == "force"
    global_view = client.get(f"{BASE}/antiAbuse.captchaLevel", headers=headers())
    assert global_view.json()["value"] == "auto"


def test_override_write_is_audited(client, db, world, headers):
    admin = headers(user_id="admin-1", tenant_id=world.tenant.id, role="tenant_admin")

    client.put(
        f"{BASE}/privacy.ipLogging",
        json={
            "value": False,
            "scope": "POOL",
            "tenant_id": world.tenant.id,
            "pool_id": world.public_pool.id,
        },
        headers=admin,
    )

    entry = db.query(AuditLog).one()
    assert entry.action == "SETTING_UPSERT"
    assert entry.actor_id == "admin-1"
    assert entry.tenant_id == world.tenant.id
    assert entry.metadata_json == {"key": "privacy.ipLogging", "scope": "POOL", "value": False}


def test_global_writes_need_superadmin(client, world, headers):
    payload = {"value": "off", "scope": "GLOBAL"}

    denied = client.put(
        f"{BASE}/antiAbuse.captchaLevel",
        json=payload,
        headers=headers(tenant_id=world.tenant.id, role="tenant_admin"),
    )
    allowed = client.put(
        f"{BASE}/antiAbuse.captchaLevel", json=payload, headers=headers(role="superadmin")
    )

    assert denied.status_code == 403
    assert allowed.status_code == 200
    assert allowed.json()["scope"] == "GLOBAL"


def test_players_and_foreign_admins_cannot_write(client, world, headers):
    payload = {"value": "off", "scope": "TENANT", "tenant_id": world.tenant.id}

    player = client.put(
        f"{BASE}/antiAbuse.captchaLevel", json=payload, headers=headers(tenant_id=world.tenant.id)
    )
    foreign = client.put(
        f"{BASE}/antiAbuse.captchaLevel",
        json=payload,
        headers=headers(tenant_id="other-tenant", role="tenant_admin"),
    )

    assert player.status_code == 403
    assert foreign.status_code == 403
    assert foreign.json()["detail"] == "Cannot change settings of another tenant"


def test_scope_errors_are_problem_responses(client, world, headers):
    response = client.put(
        f"{BASE}/antiAbuse.captchaLevel",
        json={"value": "off", "scope": "GLOBAL", "tenant_id": world.tenant.id},
        headers=headers(role="superadmin"),
    )

    assert response.status_code == 400
    body = response.json()
    assert body["code"] == "SETTING_SCOPE_INVALID"
    assert body["detail"] == "Global settings cannot have tenantId"
    assert body["instance"] == f"{BASE}/antiAbuse.captchaLevel"


def test_unknown_key_and_invalid_value(client, headers):
    superadmin = headers(role="superadmin")

    unknown = client.get(f"{BASE}/antiAbuse.nothing", headers=superadmin)
    invalid = client.put(
        f"{BASE}/antiAbuse.captchaLevel",
        json={"value": "sometimes", "scope": "GLOBAL"},
        headers=superadmin,
    )

    assert unknown.status_code == 404
    assert unknown.json()["code"] == "SETTING_UNKNOWN"
    assert invalid.status_code == 400
    assert invalid.json()["code"] == "SETTING_VALUE_INVALID"


def test_delete_override_falls_back(client, db, world, headers):
    admin = headers(tenant_id=world.tenant.id, role="tenant_admin")
    client.put(
        f"{BASE}/privacy.cookieBanner",
        json={"value": False, "scope": "TENANT", "tenant_id": world.tenant.id},
        headers=admin,
    )

    deleted = client.delete(
        f"{BASE}/privacy.cookieBanner",
        params={"scope": "TENANT", "tenant_id": world.tenant.id},
        headers=admin,
    )
    again = client.delete(
        f"{BASE}/privacy.cookieBanner",
        params={"scope": "TENANT", "tenant_id": world.tenant.id},
        headers=admin,
    )
    resolved = client.get(
        f"{BASE}/privacy.cookieBanner", params={"tenant_id": world.tenant.id}, headers=admin
    )

    assert deleted.json() == {"deleted": True}
    assert again.json() == {"deleted": False}
    assert resolved.json()["source"] == "default"
    assert db.query(Setting).count() == 0


def test_list_overrides_is_tenant_scoped(client, world, headers):
    admin = headers(tenant_id=world.tenant.id, role="tenant_admin")
    client.put(
        f"{BASE}/privacy.ipLogging",
        json={"value": False, "scope": "TENANT", "tenant_id": world.tenant.id},
        headers=admin,
    )
    client.put(
        f"{BASE}/privacy.ipLogging",
        json={"value": True, "scope": "GLOBAL"},
        headers=headers(role="superadmin"),
    )

    own = client.get(f"{BASE}/overrides", headers=admin).json()["overrides"]
    everything = client.get(
        f"{BASE}/overrides", headers=headers(tenant_id=world.tenant.id, role="superadmin")
    ).json()["overrides"]

    assert [row["scope"] for row in own] == ["TENANT"]
    assert {row["scope"] for row in everything} == {"TENANT", "GLOBAL"}
    player = client.get(f"{BASE}/overrides", headers=headers(tenant_id=world.tenant.id))
    assert player.status_code == 403
