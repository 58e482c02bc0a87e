from __future__ import annotations

from datetime import timedelta

import pytest

from app.core.enums import AccessType
from app.core.exceptions import ConflictException, NotFoundException, ValidationException
from app.core.timezone_utils import utc_now
from app.models.access import AccessPolicy
from app.services.access_policy_service import AccessPolicyService
from tests.factories.pools import make_pool, make_tenant


def test_create_and_fetch_policy(db, world):
    pool = make_pool(db, world.tenant, "nueva")
    service = AccessPolicyService(db)

    policy = service.create(
        pool.id, world.tenant.id, access_type="CODE", max_registrations=50, domain_allow_list=None
    )

    assert policy.access_type == AccessType.CODE.value
    assert policy.domain_allow_list == []
    assert service.get_by_pool(pool.id, world.tenant.id).id == policy.id


def test_create_twice_conflicts(db, world):
    with pytest.raises(ConflictException) as exc_info:
        AccessPolicyService(db).create(world.public_pool.id, world.tenant.id)

    assert exc_info.value.code == "ACCESS_POLICY_EXISTS"


def test_policy_operations_are_tenant_scoped(db, world):
    other = make_tenant(db, "rival")
    service = AccessPolicyService(db)

    with pytest.raises(NotFoundException):
        service.get_by_pool(world.public_pool.id, other.id)
    with pytest.raises(NotFoundException) as exc_info:
        service.upsert(world.public_pool.id, other.id, access_type="CODE")
    assert exc_info.value.code == "POOL_NOT_FOUND"
    assert len(service.list_by_tenant(world.tenant.id)) == 3
    assert service.list_by_tenant(other.id) == []


def test_upsert_overwrites_only_supplied_fields(db, world):
    world.public_policy.require_captcha = True
    db.commit()

    policy = AccessPolicyService(db).upsert(
        world.public_pool.id, world.tenant.id, access_type="EMAIL_INVITE"
    )

    assert policy.id == world.public_policy.id
    assert policy.access_type == "EMAIL_INVITE"
    assert policy.require_captcha is True


def test_upsert_creates_missing_policy(db, world):
    pool = make_pool(db, world.tenant, "sin-politica")

    policy = AccessPolicyService(db).upsert(pool.id, world.tenant.id, require_captcha=True)

    assert policy.pool_id == pool.id
    assert policy.access_type == AccessType.PUBLIC.value


@pytest.mark.parametrize(
    "fields",
    [
        {"access_type": "LOTTERY"},
        {"colour": "red"},
        {
            "registration_start_date": utc_now() + timedelta(days=2),
            "registration_end_date": utc_now(),
        },
    ],
)
def test_invalid_policy_fields(db, world, fields):
    with pytest.raises(ValidationException) as exc_info:
        AccessPolicyService(db).update(world.public_policy.id, world.tenant.id, **fields)

    assert exc_info.value.code == "ACCESS_POLICY_INVALID"


def test_update_and_delete(db, world):
    service = AccessPolicyService(db)

    updated = service.update(world.public_policy.id, world.tenant.id, max_registrations=10)
    assert updated.max_registrations == 10

    service.delete(world.public_policy.id, world.tenant.id)
    assert db.query(AccessPolicy).filter_by(pool_id=world.public_pool.id).count() == 0
    with pytest.raises(NotFoundException):
        service.update(world.public_policy.id, world.tenant.id, max_registrations=5)
