from __future__ import annotations

from app.core.enums import InvitationStatus
from app.models.access import InviteCode
from app.models.audit_log import AuditLog
from tests.factories.pools import make_code, make_invitation

PROFILE = {"display_name": "Ana", "email": "ana@example.com"}


def _url(pool_id: str, path: str) -> str:
    return f"/api/v1/pools/{pool_id}/registration/{path}"


def test_principal_headers_are_required(client, world, headers):
    anonymous = client.post(_url(world.public_pool.id, "public"), json=PROFILE)
    no_tenant = client.post(_url(world.public_pool.id, "public"), json=PROFILE, headers=headers())
    bad_role = client.post(
        _url(world.public_pool.id, "public"),
        json=PROFILE,
        headers=headers(tenant_id=world.tenant.id, role="owner"),
    )

    assert anonymous.status_code == 401
    assert no_tenant.status_code == 400
    assert no_tenant.json()["detail"] == "Tenant not resolved"
    assert bad_role.status_code == 403


def test_public_registration_then_access(client, db, world, headers):
    player = headers(tenant_id=world.tenant.id)

    created = client.post(
        _url(world.public_pool.id, "public"),
        json=PROFILE,
        headers={**player, "X-Forwarded-For": "203.0.113.9, 10.0.0.1"},
    )
    access = client.get(_url(world.public_pool.id, "access"), headers=player)

    assert created.status_code == 201
    body = created.json()
    assert body["user_id"] == "user-1"
    assert body["tenant_id"] == world.tenant.id
    assert body["email"] == "ana@example.com"
    assert access.status_code == 200
    assert access.json() == {"allowed": True, "registration_id": body["id"]}
    assert db.query(AuditLog).one().ip_address == "203.0.113.9"


def test_duplicate_registration_conflicts(client, world, headers):
    player = headers(tenant_id=world.tenant.id)
    client.post(_url(world.public_pool.id, "public"), json=PROFILE, headers=player)

    again = client.post(_url(world.public_pool.id, "public"), json=PROFILE, headers=player)

    assert again.status_code == 409
    assert again.json()["code"] == "ALREADY_REGISTERED"


def test_rejections_carry_reason_codes(client, world, headers):
    player = headers(tenant_id=world.tenant.id)

    wrong_path = client.post(_url(world.code_pool.id, "public"), json=PROFILE, headers=player)
    no_profile = client.post(_url(world.public_pool.id, "public"), json={}, headers=player)
    bad_email = client.post(
        _url(world.public_pool.id, "public"),
        json={"display_name": "Ana", "email": "nope"},
        headers=player,
    )

    assert wrong_path.status_code == 422
    assert wrong_path.json()["code"] == "ACCESS_TYPE_MISMATCH"
    assert no_profile.status_code == 422
    assert no_profile.json()["code"] == "PROFILE_REQUIRED"
    assert bad_email.status_code == 422
    assert bad_email.json()["code"] == "validation_error"


def test_access_denied_is_a_coded_problem(client, world, headers):
    response = client.get(
        _url(world.public_pool.id, "access"), headers=headers(tenant_id=world.tenant.id)
    )

    assert response.status_code == 403
    assert response.headers["content-type"].startswith("application/problem+json")
    assert response.json()["code"] == "REGISTRATION_REQUIRED"


def test_access_from_another_tenant_is_denied(client, world, headers):
    player = headers(tenant_id=world.tenant.id)
    client.post(_url(world.public_pool.id, "public"), json=PROFILE, headers=player)

    response = client.get(
        _url(world.public_pool.id, "access"), headers=headers(tenant_id="another-tenant")
    )

    assert response.json()["code"] == "TENANT_MISMATCH"


def test_code_registration_consumes_code(client, db, world, headers):
    make_code(db, world.code_policy, "ABCD2345")

    response = client.post(
        _url(world.code_pool.id, "code"),
        json={**PROFILE, "invite_code": "abcd2345"},
        headers=headers(tenant_id=world.tenant.id),
    )
    second = client.post(
        _url(world.code_pool.id, "code"),
        json={**PROFILE, "invite_code": "ABCD2345"},
        headers=headers(user_id="user-2", tenant_id=world.tenant.id),
    )

    assert response.status_code == 201
    db.expire_all()
    code = db.query(InviteCode).one()
    assert response.json()["invite_code_id"] == code.id
    assert code.used_count == 1
    assert second.status_code == 403
    assert second.json()["code"] == "CODE_EXHAUSTED"


def test_foreign_tenant_cannot_spend_or_check_codes(client, db, world, headers):
    make_code(db, world.code_policy, "ABCD2345")
    outsider = headers(tenant_id="another-tenant")

    registered = client.post(
        _url(world.code_pool.id, "code"),
        json={**PROFILE, "invite_code": "ABCD2345"},
        headers=outsider,
    )
    validated = client.get(
        _url(world.code_pool.id, "validate-code"), params={"code": "ABCD2345"}, headers=outsider
    )

    assert registered.status_code == 404
    assert registered.json()["code"] == "POOL_NOT_FOUND"
    assert validated.status_code == 404
    db.expire_all()
    assert db.query(InviteCode).one().used_count == 0


def test_validate_code(client, db, world, headers):
    make_code(db, world.code_policy, "ABCD2345", uses_per_code=3)
    player = headers(tenant_id=world.tenant.id)

    valid = client.get(
        _url(world.code_pool.id, "validate-code"), params={"code": "abcd2345"}, headers=player
    )
    unknown = client.get(
        _url(world.code_pool.id, "validate-code"), params={"code": "ZZZZ2345"}, headers=player
    )
    wrong_pool = client.get(
        _url(world.public_pool.id, "validate-code"), params={"code": "ABCD2345"}, headers=player
    )

    assert valid.status_code == 200
    assert valid.json()["valid"] is True
    assert valid.json()["uses_remaining"] == 3
    assert unknown.status_code == 404
    assert wrong_pool.status_code == 403
    assert wrong_pool.json()["code"] == "CODE_INVALID"


def test_email_invite_flow(client, db, world, headers):
    invitation = make_invitation(db, world.invite_policy, "ana@example.com")
    player = headers(tenant_id=world.tenant.id)

    checked = client.get(
        _url(world.invite_pool.id, "validate-token"),
        params={"token": invitation.token},
        headers=player,
    )
    created = client.post(
        _url(world.invite_pool.id, "email-invite"),
        json={**PROFILE, "invite_token": invitation.token},
        headers=player,
    )
    reused = client.get(
        _url(world.invite_pool.id, "validate-token"),
        params={"token": invitation.token},
        headers=player,
    )

    assert checked.json() == {
        "valid": True,
        "invitation_id": invitation.id,
        "email": "ana@example.com",
    }
    assert created.status_code == 201
    assert created.json()["invitation_id"] == invitation.id
    assert created.json()["email_verified"] is True
    db.expire_all()
    assert invitation.status == InvitationStatus.ACCEPTED
    assert reused.status_code == 403
    assert reused.json()["code"] == "INVITATION_NOT_ACCEPTED"


def test_email_invite_rejects_other_address(client, db, world, headers):
    invitation = make_invitation(db, world.invite_policy, "ana@example.com")

    response = client.post(
        _url(world.invite_pool.id, "email-invite"),
        json={
            "display_name": "Beto",
            "email": "beto@example.com",
            "invite_token": invitation.token,
        },
        headers=headers(tenant_id=world.tenant.id),
    )

    assert response.status_code == 422
    assert response.json()["code"] == "EMAIL_MISMATCH"


def test_status_reports_registration_and_access(client, world, headers):
    player = headers(tenant_id=world.tenant.id)

    before = client.get(_url(world.public_pool.id, "status"), headers=player).json()
    client.post(_url(world.public_pool.id, "public"), json=PROFILE, headers=player)
    after = client.get(_url(world.public_pool.id, "status"), headers=player).json()

    assert before["is_registered"] is False
    assert before["registration"] is None
    assert before["access_allowed"] is False
    assert before["access_reason"] == "REGISTRATION_REQUIRED"
    assert after["is_registered"] is True
    assert after["registration"]["display_name"] == "Ana"
    assert after["access_allowed"] is True
    assert after["access_reason"] is None
