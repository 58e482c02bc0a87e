from __future__ import annotations

from datetime import timedelta

import pytest

from app.core.enums import AccessDenialReason, InvitationStatus, InviteCodeStatus
from app.core.exceptions import (
    AccessConfigurationError,
    AccessDeniedException,
    NotFoundException,
)
from app.core.timezone_utils import utc_now
from app.models.access import Invitation
from app.services.access_gate import AccessGate, evaluate_registration, normalize_code
from tests.factories.pools import (
    make_code,
    make_invitation,
    make_policy,
    make_pool,
    make_registration,
    make_tenant,
)


def _denial(gate, pool_id, user_id, tenant_id) -> AccessDenialReason:
    with pytest.raises(AccessDeniedException) as exc_info:
        gate.assert_registration_access(pool_id, user_id, tenant_id)
    return exc_info.value.reason


def test_unregistered_user_needs_registration(db, world):
    gate = AccessGate(db)

    reason = _denial(gate, world.public_pool.id, "nobody", world.tenant.id)

    assert reason == AccessDenialReason.REGISTRATION_REQUIRED


def test_public_registration_grants_access(db, world):
    registration = make_registration(db, world.public_pool)

    granted = AccessGate(db).assert_registration_access(
        world.public_pool.id, "user-1", world.tenant.id
    )

    assert granted.id == registration.id


def test_pool_without_policy_is_treated_as_public(db, world):
    pool = make_pool(db, world.tenant, "sin-politica")
    make_registration(db, pool)

    assert AccessGate(db).assert_registration_access(pool.id, "user-1", world.tenant.id)


def test_registration_from_other_tenant_is_rejected(db, world):
    make_registration(db, world.public_pool)

    reason = _denial(AccessGate(db), world.public_pool.id, "user-1", "another-tenant")

    assert reason == AccessDenialReason.TENANT_MISMATCH


def test_tenant_check_precedes_credential_checks(db, world):
    make_registration(db, world.code_pool)

    reason = _denial(AccessGate(db), world.code_pool.id, "user-1", "another-tenant")

    assert reason == AccessDenialReason.TENANT_MISMATCH


def test_code_pool_registration_without_code_is_rejected(db, world):
    make_registration(db, world.code_pool)

    assert _denial(AccessGate(db), world.code_pool.id, "user-1", world.tenant.id) == (
        AccessDenialReason.CODE_REQUIRED
    )


def test_code_registration_keeps_access_after_last_use(db, world):
    code = make_code(db, world.code_policy, used_count=1, status=InviteCodeStatus.USED)
    make_registration(db, world.code_pool, invite_code=code)

    assert AccessGate(db).assert_registration_access(
        world.code_pool.id, "user-1", world.tenant.id
    )


@pytest.mark.parametrize("status", [InviteCodeStatus.PAUSED, InviteCodeStatus.EXPIRED])
def test_paused_or_expired_code_blocks_existing_registration(db, world, status):
    """
    Access is re-judged against the code's current state, not its state at admission.

    Whether pausing or expiring a code mid-season should revoke registrants who
    already used it is an unresolved product question; this pins today's behavior.
    """
    code = make_code(db, world.code_policy, used_count=1, status=InviteCodeStatus.USED)
    make_registration(db, world.code_pool, invite_code=code)
    gate = AccessGate(db)
    assert gate.assert_registration_access(world.code_pool.id, "user-1", world.tenant.id)

    code.status = status
    db.commit()

    assert _denial(gate, world.code_pool.id, "user-1", world.tenant.id) == (
        AccessDenialReason.CODE_INVALID
    )


def test_code_past_expiry_blocks_existing_registration(db, world):
    code = make_code(
        db,
        world.code_policy,
        used_count=1,
        status=InviteCodeStatus.USED,
        expires_at=utc_now() - timedelta(minutes=1),
    )
    make_registration(db, world.code_pool, invite_code=code)

    assert _denial(AccessGate(db), world.code_pool.id, "user-1", world.tenant.id) == (
        AccessDenialReason.CODE_EXPIRED
    )


def test_invite_pool_requires_linked_invitation(db, world):
    make_registration(db, world.invite_pool)

    assert _denial(AccessGate(db), world.invite_pool.id, "user-1", world.tenant.id) == (
        AccessDenialReason.INVITATION_REQUIRED
    )


def test_accepted_invitation_grants_access(db, world):
    invitation = make_invitation(db, world.invite_policy, status=InvitationStatus.ACCEPTED)
    make_registration(db, world.invite_pool, invitation=invitation)

    assert AccessGate(db).assert_registration_access(
        world.invite_pool.id, "user-1", world.tenant.id
    )


def test_invitation_not_accepted_or_expired_blocks_access(db, world):
    invitation = make_invitation(db, world.invite_policy, status=InvitationStatus.PENDING)
    make_registration(db, world.invite_pool, invitation=invitation)
    gate = AccessGate(db)
    assert _denial(gate, world.invite_pool.id, "user-1", world.tenant.id) == (
        AccessDenialReason.INVITATION_NOT_ACCEPTED
    )

    invitation.status = InvitationStatus.ACCEPTED
    invitation.expires_at = utc_now() - timedelta(hours=1)
    db.commit()

    assert _denial(gate, world.invite_pool.id, "user-1", world.tenant.id) == (
        AccessDenialReason.INVITATION_EXPIRED
    )


def test_unknown_access_type_is_a_configuration_error(db, world):
    make_registration(db, world.public_pool)
    world.public_policy.access_type = "LOTTERY"
    db.commit()

    with pytest.raises(AccessConfigurationError):
        AccessGate(db).assert_registration_access(
            world.public_pool.id, "user-1", world.tenant.id
        )


def test_check_registration_access_reports_reason(db, world):
    gate = AccessGate(db)

    denied = gate.check_registration_access(world.public_pool.id, "user-1", world.tenant.id)
    assert not denied.allowed
    assert denied.reason == AccessDenialReason.REGISTRATION_REQUIRED

    registration = make_registration(db, world.public_pool)
    allowed = gate.check_registration_access(world.public_pool.id, "user-1", world.tenant.id)
    assert allowed.allowed
    assert allowed.registration_id == registration.id


def test_evaluate_registration_unknown_type_raises(db, world):
    registration = make_registration(db, world.public_pool)

    with pytest.raises(AccessConfigurationError):
        evaluate_registration(registration, "RAFFLE")  # type: ignore[arg-type]


def test_assert_registration_access_writes_nothing(db, world):
    code = make_code(
        db,
        world.code_policy,
        uses_per_code=3,
        used_count=1,
        status=InviteCodeStatus.PARTIALLY_USED,
    )
    make_registration(db, world.code_pool, invite_code=code)

    AccessGate(db).assert_registration_access(world.code_pool.id, "user-1", world.tenant.id)
    db.expire_all()

    assert code.used_count == 1
    assert code.status == InviteCodeStatus.PARTIALLY_USED


# ----------------------------------------------------------------------
# Pre-admission validation
# ----------------------------------------------------------------------


def test_validate_invite_code_is_case_insensitive(db, world):
    code = make_code(
        db,
        world.code_policy,
        "ABCD2345",
        uses_per_code=5,
        used_count=2,
        status=InviteCodeStatus.PARTIALLY_USED,
    )

    result = AccessGate(db).validate_invite_code(world.code_pool.id, "  abcd2345 ")

    assert result.valid
    assert result.code_id == code.id
    assert result.uses_remaining == 3
    assert normalize_code(" ab12 ") == "AB12"


def test_validate_invite_code_failures(db, world):
    gate = AccessGate(db)
    make_code(db, world.code_policy, "FULL2345", used_count=1, status=InviteCodeStatus.USED)
    make_code(db, world.code_policy, "STOP2345", status=InviteCodeStatus.PAUSED)
    make_code(db, world.code_policy, "LATE2345", expires_at=utc_now() - timedelta(days=1))

    with pytest.raises(NotFoundException) as not_found:
        gate.validate_invite_code(world.code_pool.id, "NOPE2345")
    assert not_found.value.code == "CODE_NOT_FOUND"

    expectations = {
        "FULL2345": AccessDenialReason.CODE_EXHAUSTED,
        "STOP2345": AccessDenialReason.CODE_INVALID,
        "LATE2345": AccessDenialReason.CODE_EXPIRED,
    }
    for value, reason in expectations.items():
        with pytest.raises(AccessDeniedException) as exc_info:
            gate.validate_invite_code(world.code_pool.id, value)
        assert exc_info.value.reason == reason


def test_validate_invite_code_on_non_code_pool(db, world):
    with pytest.raises(AccessDeniedException) as exc_info:
        AccessGate(db).validate_invite_code(world.public_pool.id, "ABCD2345")

    assert exc_info.value.reason == AccessDenialReason.CODE_INVALID


def test_codes_are_scoped_to_their_pool(db, world):
    other_pool = make_pool(db, world.tenant, "otra-con-codigo")
    other_policy = make_policy(db, other_pool, "CODE")
    make_code(db, other_policy, "ELSE2345")

    with pytest.raises(NotFoundException):
        AccessGate(db).validate_invite_code(world.code_pool.id, "ELSE2345")


def test_validate_invite_code_unknown_pool(db):
    with pytest.raises(NotFoundException) as exc_info:
        AccessGate(db).validate_invite_code("missing-pool", "ABCD2345")

    assert exc_info.value.code == "POOL_NOT_FOUND"


def test_validate_invite_token(db, world):
    invitation = make_invitation(db, world.invite_policy, "Fan@Example.com")

    result = AccessGate(db).validate_invite_token(world.invite_pool.id, invitation.token)

    assert result.valid
    assert result.invitation_id == invitation.id
    assert result.email == "fan@example.com"


def test_validate_invite_token_rejects_accepted_invitation(db, world):
    invitation = make_invitation(db, world.invite_policy, status=InvitationStatus.ACCEPTED)

    with pytest.raises(AccessDeniedException) as exc_info:
        AccessGate(db).validate_invite_token(world.invite_pool.id, invitation.token)

    assert exc_info.value.reason == AccessDenialReason.INVITATION_NOT_ACCEPTED


def test_validate_invite_token_persists_lazy_expiry(db, world):
    invitation = make_invitation(
        db, world.invite_policy, expires_at=utc_now() - timedelta(minutes=5)
    )

    with pytest.raises(AccessDeniedException) as exc_info:
        AccessGate(db).validate_invite_token(world.invite_pool.id, invitation.token)

    assert exc_info.value.reason == AccessDenialReason.INVITATION_EXPIRED
    db.expire_all()
    assert db.get(Invitation, invitation.id).status == InvitationStatus.EXPIRED


def test_validate_invite_token_unknown_token_and_missing_policy(db, world):
    gate = AccessGate(db)
    with pytest.raises(NotFoundException) as not_found:
        gate.validate_invite_token(world.invite_pool.id, "no-such-token")
    assert not_found.value.code == "INVITATION_NOT_FOUND"

    bare_pool = make_pool(db, make_tenant(db, "sin-config"), "vacia")
    with pytest.raises(AccessConfigurationError) as missing:
        gate.validate_invite_token(bare_pool.id, "whatever")
    assert missing.value.code == "ACCESS_POLICY_MISSING"
