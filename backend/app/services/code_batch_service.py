# backend/app/services/code_batch_service.py
"""
Invite code batches.

Codes are drawn from an alphabet without look-alike characters and must be
unique within a tenant. Generation checks candidates against the store in
chunks and gives up after a bounded number of draws.
"""

from __future__ import annotations

import csv
from datetime import datetime
import io
import secrets
from typing import Dict, List, Optional, Set

from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.constants import (
    CSV_EXPORT_HEADERS,
    INVITE_CODE_ALPHABET,
    MAX_CODES_PER_BATCH,
    MAX_USES_PER_CODE,
)
from ..core.enums import AccessType, AuditAction, CodeBatchStatus, InviteCodeStatus
from ..core.exceptions import NotFoundException, ServiceException, ValidationException
from ..core.timezone_utils import as_utc, utc_now
from ..models.access import AccessPolicy, CodeBatch, InviteCode
from ..repositories.factory import RepositoryFactory
from .audit_service import AuditService
from .base import BaseService


def generate_code(length: Optional[int] = None) -> str:
    size = length or settings.invite_code_length
    return "".join(secrets.choice(INVITE_CODE_ALPHABET) for _ in range(size))


class CodeBatchService(BaseService):
    def __init__(self, db: Session, audit_service: Optional[AuditService] = None):
        super().__init__(db)
        self.audit = audit_service or AuditService(db)
        self.policies = RepositoryFactory.create_access_policy_repository(db)
        self.batches = RepositoryFactory.create_code_batch_repository(db)
        self.codes = RepositoryFactory.create_invite_code_repository(db)

    def _code_policy(self, policy_id: str, tenant_id: str) -> AccessPolicy:
        policy = self.policies.find_one_by(id=policy_id, tenant_id=tenant_id)
        if policy is None or policy.access_type != AccessType.CODE.value:
            raise ValidationException(
                "Access policy must be of type CODE", code="ACCESS_POLICY_NOT_CODE"
            )
        return policy

    def generate_unique_codes(self, tenant_id: str, quantity: int) -> List[str]:
        """
        Draw ``quantity`` codes not yet used in the tenant.

        Raises:
            ServiceException: the draw budget ran out first
        """
        budget = quantity * settings.invite_code_generation_attempts
        accepted: List[str] = []
        seen: Set[str] = set()
        while len(accepted) < quantity and budget > 0:
            draw = min(quantity - len(accepted), budget)
            budget -= draw
            candidates = []
            for _ in range(draw):
                candidate = generate_code()
                if candidate not in seen:
                    seen.add(candidate)
                    candidates.append(candidate)
            taken = self.codes.existing_codes(tenant_id, candidates)
            accepted.extend(code for code in candidates if code not in taken)

        if len(accepted) < quantity:
            self.logger.error(
                "Could not generate %s unique codes for tenant %s",
                quantity,
                tenant_id,
                extra={"tenant_id": tenant_id, "generated": len(accepted)},
            )
            raise ServiceException(
                "Failed to generate enough unique codes", code="CODE_GENERATION_FAILED"
            )
        return accepted[:quantity]

    @BaseService.measure_operation("code_batch.create")
    def create_batch(
        self,
        policy_id: str,
        tenant_id: str,
        quantity: int,
        *,
        uses_per_code: int = 1,
        name: Optional[str] = None,
        description: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        actor_id: Optional[str] = None,
    ) -> CodeBatch:
        if not 1 <= quantity <= MAX_CODES_PER_BATCH:
            raise ValidationException(
                f"Quantity must be between 1 and {MAX_CODES_PER_BATCH}",
                code="CODE_BATCH_INVALID",
            )
        if not 1 <= uses_per_code <= MAX_USES_PER_CODE:
            raise ValidationException(
                f"Uses per code must be between 1 and {MAX_USES_PER_CODE}",
                code="CODE_BATCH_INVALID",
            )

        with self.transaction():
            policy = self._code_policy(policy_id, tenant_id)
            codes = self.generate_unique_codes(tenant_id, quantity)
            batch = self.batches.create(
                access_policy_id=policy.id,
                tenant_id=tenant_id,
                name=name,
                description=description,
                total_codes=quantity,
                used_codes=0,
                max_uses_per_code=uses_per_code,
                status=CodeBatchStatus.UNUSED,
                expires_at=expires_at,
                codes=[
                    InviteCode(
                        tenant_id=tenant_id,
                        code=code,
                        uses_per_code=uses_per_code,
                        used_count=0,
                        status=InviteCodeStatus.UNUSED,
                        expires_at=expires_at,
                    )
                    for code in codes
                ],
            )
            self.audit.record(
                AuditAction.CODE_BATCH_CREATE,
                "CODE_BATCH",
                batch.id,
                tenant_id=tenant_id,
                pool_id=policy.pool_id,
                actor_id=actor_id,
                metadata={"quantity": quantity, "uses_per_code": uses_per_code},
            )

        self.log_operation(
            "code_batch.created", batch_id=batch.id, tenant_id=tenant_id, quantity=quantity
        )
        return batch

    def get_batch(self, batch_id: str, tenant_id: str) -> CodeBatch:
        batch = self.batches.find_one_by(id=batch_id, tenant_id=tenant_id)
        if batch is None:
            raise NotFoundException("Code batch not found", code="CODE_BATCH_NOT_FOUND")
        return batch

    def list_by_policy(self, policy_id: str, tenant_id: str) -> List[CodeBatch]:
        return self.batches.list_by_policy(policy_id, tenant_id)

    def get_batch_stats(self, batch_id: str, tenant_id: str) -> Dict[str, int]:
        batch = self.get_batch(batch_id, tenant_id)
        counts = self.codes.status_counts(batch.id)
        return {
            "total_codes": batch.total_codes,
            "unused_codes": counts.get(InviteCodeStatus.UNUSED.value, 0),
            "partially_used_codes": counts.get(InviteCodeStatus.PARTIALLY_USED.value, 0),
            "used_codes": counts.get(InviteCodeStatus.USED.value, 0),
            "expired_codes": counts.get(InviteCodeStatus.EXPIRED.value, 0),
            "paused_codes": counts.get(InviteCodeStatus.PAUSED.value, 0),
            "total_redemptions": self.codes.total_uses(batch.id),
        }

    @BaseService.measure_operation("code_batch.set_paused")
    def set_batch_paused(
        self, batch_id: str, tenant_id: str, paused: bool, *, actor_id: Optional[str] = None
    ) -> CodeBatch:
        """
        Pause or resume a batch together with its codes.

        Pausing touches only codes that can still be redeemed; resuming puts
        each paused code back to the status its counter implies. Registrations
        already admitted with a paused code lose access until it is resumed.
        """
        with self.transaction():
            batch = self.get_batch(batch_id, tenant_id)
            if paused:
                affected = self.codes.pause_batch_codes(batch.id)
                batch.status = CodeBatchStatus.PAUSED
            else:
                affected = self.codes.resume_batch_codes(batch.id)
                if CodeBatchStatus(batch.status) == CodeBatchStatus.PAUSED:
                    batch.status = self._projected_batch_status(batch)
            self.batches.flush()
            self.audit.record(
                AuditAction.CODE_BATCH_PAUSE if paused else AuditAction.CODE_BATCH_RESUME,
                "CODE_BATCH",
                batch.id,
                tenant_id=tenant_id,
                actor_id=actor_id,
                metadata={"codes_affected": affected},
            )
        return batch

    def _projected_batch_status(self, batch: CodeBatch) -> CodeBatchStatus:
        if batch.total_codes and batch.used_codes >= batch.total_codes:
            return CodeBatchStatus.USED
        if self.codes.total_uses(batch.id) > 0:
            return CodeBatchStatus.PARTIALLY_USED
        return CodeBatchStatus.UNUSED

    def export_batch_csv(self, batch_id: str, tenant_id: str) -> str:
        """Codes of a batch as CSV, one row per code."""
        batch = self.get_batch(batch_id, tenant_id)
        output = io.StringIO(newline="")
        writer = csv.writer(output, lineterminator="\n")
        writer.writerow(CSV_EXPORT_HEADERS)
        for code in self.codes.list_by_batch(batch.id):
            expires_at = as_utc(code.expires_at)
            writer.writerow(
                [
                    code.code,
                    InviteCodeStatus(code.status).value,
                    code.used_count,
                    code.uses_per_code,
                    expires_at.isoformat() if expires_at else "Never",
                ]
            )
        return output.getvalue()

    @BaseService.measure_operation("code_batch.expire_codes")
    def expire_codes(self, now: Optional[datetime] = None) -> int:
        """Sweep: mark redeemable codes past their expiry as EXPIRED."""
        with self.transaction():
            expired = self.codes.expire_due(now or utc_now())
        if expired:
            self.log_operation("code_batch.codes_expired", count=expired)
        return expired


__all__ = ["CodeBatchService", "generate_code"]
