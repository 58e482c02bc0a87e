from __future__ import annotations

import pytest

from app.core.enums import InviteCodeStatus
from app.repositories.factory import RepositoryFactory
from tests.factories.pools import make_code


@pytest.fixture
def repository(db):
    return RepositoryFactory.create_invite_code_repository(db)


def test_consume_moves_counter_and_status_together(db, world, repository):
    code = make_code(db, world.code_policy, uses_per_code=2)

    assert repository.consume(code.id) == 1
    db.refresh(code)
    assert (code.used_count, code.status) == (1, InviteCodeStatus.PARTIALLY_USED)

    assert repository.consume(code.id) == 1
    db.refresh(code)
    assert (code.used_count, code.status) == (2, InviteCodeStatus.USED)

    assert repository.consume(code.id) == 0
    db.refresh(code)
    assert code.used_count == 2


@pytest.mark.parametrize("status", [InviteCodeStatus.PAUSED, InviteCodeStatus.EXPIRED])
def test_consume_skips_codes_that_are_not_redeemable(db, world, repository, status):
    code = make_code(db, world.code_policy, status=status)

    assert repository.consume(code.id) == 0
    db.refresh(code)
    assert code.used_count == 0


def test_find_for_policy_is_scoped(db, world, repository):
    code = make_code(db, world.code_policy, "ABCD2345")

    assert repository.find_for_policy(world.code_policy.id, world.tenant.id, "ABCD2345") is code
    assert repository.find_for_policy(world.public_policy.id, world.tenant.id, "ABCD2345") is None
    assert repository.find_for_policy(world.code_policy.id, "other", "ABCD2345") is None
    assert repository.existing_codes(world.tenant.id, ["ABCD2345", "WXYZ2345"]) == {"ABCD2345"}
