# backend/app/services/access_policy_service.py
"""Tenant-admin management of pool access policies."""

from __future__ import annotations

from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from ..core.enums import AccessType
from ..core.exceptions import ConflictException, NotFoundException, ValidationException
from ..core.timezone_utils import as_utc
from ..models.access import AccessPolicy
from ..models.tenant import Pool
from ..repositories.factory import RepositoryFactory
from .base import BaseService

POLICY_FIELDS = frozenset(
    {
        "access_type",
        "require_captcha",
        "require_email_verification",
        "domain_allow_list",
        "max_registrations",
        "registration_start_date",
        "registration_end_date",
        "user_cap",
        "window_start",
        "window_end",
    }
)


def _clean_policy_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    unknown = set(fields) - POLICY_FIELDS
    if unknown:
        raise ValidationException(
            "Unknown access policy fields",
            code="ACCESS_POLICY_INVALID",
            details={"fields": sorted(unknown)},
        )
    data = dict(fields)
    if "access_type" in data:
        try:
            data["access_type"] = AccessType(data["access_type"]).value
        except ValueError:
            raise ValidationException(
                f"Unknown access type: {data['access_type']}",
                code="ACCESS_POLICY_INVALID",
            ) from None
    if data.get("domain_allow_list") is None and "domain_allow_list" in data:
        data["domain_allow_list"] = []

    start = as_utc(data.get("registration_start_date"))
    end = as_utc(data.get("registration_end_date"))
    if start is not None and end is not None and start > end:
        raise ValidationException(
            "Registration start date must be before the end date",
            code="ACCESS_POLICY_INVALID",
        )
    return data


class AccessPolicyService(BaseService):
    """CRUD for the one-per-pool access policy, always scoped to a tenant."""

    def __init__(self, db: Session):
        super().__init__(db)
        self.policies = RepositoryFactory.create_access_policy_repository(db)
        self.pools = RepositoryFactory.create_pool_repository(db)

    def _pool_for_tenant(self, pool_id: str, tenant_id: str) -> Pool:
        pool = self.pools.get_for_tenant(pool_id, tenant_id)
        if pool is None:
            raise NotFoundException(
                "Pool not found or does not belong to tenant", code="POOL_NOT_FOUND"
            )
        return pool

    @BaseService.measure_operation("access_policy.create")
    def create(self, pool_id: str, tenant_id: str, **fields: Any) -> AccessPolicy:
        data = _clean_policy_fields(fields)
        with self.transaction():
            if self.policies.get_by_pool(pool_id) is not None:
                raise ConflictException(
                    "Access policy already exists for this pool", code="ACCESS_POLICY_EXISTS"
                )
            self._pool_for_tenant(pool_id, tenant_id)
            policy = self.policies.create(pool_id=pool_id, tenant_id=tenant_id, **data)
        self.log_operation("access_policy.created", pool_id=pool_id, tenant_id=tenant_id)
        return policy

    def get_by_pool(self, pool_id: str, tenant_id: str) -> AccessPolicy:
        policy = self.policies.find_one_by(pool_id=pool_id, tenant_id=tenant_id)
        if policy is None:
            raise NotFoundException("Access policy not found", code="ACCESS_POLICY_NOT_FOUND")
        return policy

    def list_by_tenant(self, tenant_id: str) -> List[AccessPolicy]:
        return self.policies.find_by(tenant_id=tenant_id)

    @BaseService.measure_operation("access_policy.update")
    def update(self, policy_id: str, tenant_id: str, **fields: Any) -> AccessPolicy:
        data = _clean_policy_fields(fields)
        with self.transaction():
            policy = self.policies.find_one_by(id=policy_id, tenant_id=tenant_id)
            if policy is None:
                raise NotFoundException("Access policy not found", code="ACCESS_POLICY_NOT_FOUND")
            for key, value in data.items():
                setattr(policy, key, value)
            self.policies.flush()
        return policy

    @BaseService.measure_operation("access_policy.upsert")
    def upsert(self, pool_id: str, tenant_id: str, **fields: Any) -> AccessPolicy:
        """Create the pool's policy, or overwrite the supplied fields of the existing one."""
        data = _clean_policy_fields(fields)
        with self.transaction():
            self._pool_for_tenant(pool_id, tenant_id)
            policy: Optional[AccessPolicy] = self.policies.get_by_pool(pool_id)
            if policy is None:
                policy = self.policies.create(pool_id=pool_id, tenant_id=tenant_id, **data)
            else:
                for key, value in data.items():
                    setattr(policy, key, value)
                self.policies.flush()
        self.log_operation(
            "access_policy.upserted",
            pool_id=pool_id,
            tenant_id=tenant_id,
            access_type=policy.access_type,
        )
        return policy

    @BaseService.measure_operation("access_policy.delete")
    def delete(self, policy_id: str, tenant_id: str) -> None:
        with self.transaction():
            policy = self.policies.find_one_by(id=policy_id, tenant_id=tenant_id)
            if policy is None:
                raise NotFoundException("Access policy not found", code="ACCESS_POLICY_NOT_FOUND")
            self.db.delete(policy)
            self.policies.flush()


__all__ = ["AccessPolicyService", "POLICY_FIELDS"]
