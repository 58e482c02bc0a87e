"""Repositories for code batches and invite codes."""

from __future__ import annotations

from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, cast

from sqlalchemy import case, func, update
from sqlalchemy.orm import Session

from ..core.enums import CodeBatchStatus, InviteCodeStatus
from ..models.access import CodeBatch, InviteCode
from .base_repository import BaseRepository

# Statuses that still accept a consumption
_REDEEMABLE = (InviteCodeStatus.UNUSED.value, InviteCodeStatus.PARTIALLY_USED.value)


def _projected_status(used_count_expr, capacity_expr):
    """SQL CASE deriving a code's status from its counter."""
    return case(
        (used_count_expr >= capacity_expr, InviteCodeStatus.USED.value),
        (used_count_expr > 0, InviteCodeStatus.PARTIALLY_USED.value),
        else_=InviteCodeStatus.UNUSED.value,
    )


class InviteCodeRepository(BaseRepository[InviteCode]):
    def __init__(self, db: Session):
        super().__init__(db, InviteCode)

    def find_for_policy(self, policy_id: str, tenant_id: str, code: str) -> Optional[InviteCode]:
        """Look up a code string among the batches of one access policy."""
        result = (
            self.db.query(InviteCode)
            .join(CodeBatch, CodeBatch.id == InviteCode.batch_id)
            .filter(
                CodeBatch.access_policy_id == policy_id,
                InviteCode.tenant_id == tenant_id,
                InviteCode.code == code,
            )
            .first()
        )
        return cast(Optional[InviteCode], result)

    def existing_codes(self, tenant_id: str, codes: Iterable[str]) -> Set[str]:
        candidates = list(codes)
        if not candidates:
            return set()
        rows = (
            self.db.query(InviteCode.code)
            .filter(InviteCode.tenant_id == tenant_id, InviteCode.code.in_(candidates))
            .all()
        )
        return {row[0] for row in rows}

    def list_by_batch(self, batch_id: str) -> List[InviteCode]:
        return self._execute_query(
            self.db.query(InviteCode)
            .filter(InviteCode.batch_id == batch_id)
            .order_by(InviteCode.created_at.asc(), InviteCode.code.asc())
        )

    def consume(self, code_id: str) -> int:
        """
        Take one use of a code with a single compare-and-swap UPDATE.

        The counter and the cached status move together, and only while the
        code still has capacity and is neither paused nor expired. Returns the
        number of rows affected: 0 means the last use was already taken.
        """
        stmt = (
            update(InviteCode)
            .where(
                InviteCode.id == code_id,
                InviteCode.used_count < InviteCode.uses_per_code,
                InviteCode.status.in_(_REDEEMABLE),
            )
            .values(
                used_count=InviteCode.used_count + 1,
                status=_projected_status(InviteCode.used_count + 1, InviteCode.uses_per_code),
            )
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        return int(result.rowcount or 0)

    def pause_batch_codes(self, batch_id: str) -> int:
        stmt = (
            update(InviteCode)
            .where(InviteCode.batch_id == batch_id, InviteCode.status.in_(_REDEEMABLE))
            .values(status=InviteCodeStatus.PAUSED.value)
            .execution_options(synchronize_session=False)
        )
        return int(self.db.execute(stmt).rowcount or 0)

    def resume_batch_codes(self, batch_id: str) -> int:
        """Unpause codes, restoring the status their counters imply."""
        stmt = (
            update(InviteCode)
            .where(
                InviteCode.batch_id == batch_id,
                InviteCode.status == InviteCodeStatus.PAUSED.value,
            )
            .values(status=_projected_status(InviteCode.used_count, InviteCode.uses_per_code))
            .execution_options(synchronize_session=False)
        )
        return int(self.db.execute(stmt).rowcount or 0)

    def expire_due(self, now: datetime) -> int:
        """Flip redeemable codes whose expiry has passed to EXPIRED."""
        stmt = (
            update(InviteCode)
            .where(
                InviteCode.expires_at.is_not(None),
                InviteCode.expires_at < now,
                InviteCode.status.in_(_REDEEMABLE),
            )
            .values(status=InviteCodeStatus.EXPIRED.value)
            .execution_options(synchronize_session=False)
        )
        return int(self.db.execute(stmt).rowcount or 0)

    def status_counts(self, batch_id: str) -> Dict[str, int]:
        rows = (
            self.db.query(InviteCode.status, func.count(InviteCode.id))
            .filter(InviteCode.batch_id == batch_id)
            .group_by(InviteCode.status)
            .all()
        )
        return {_status_value(status): int(count) for status, count in rows}

    def total_uses(self, batch_id: str) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(InviteCode.used_count), 0))
            .filter(InviteCode.batch_id == batch_id)
            .scalar()
        )
        return int(total or 0)


class CodeBatchRepository(BaseRepository[CodeBatch]):
    def __init__(self, db: Session):
        super().__init__(db, CodeBatch)

    def list_by_policy(self, policy_id: str, tenant_id: str) -> List[CodeBatch]:
        return self._execute_query(
            self.db.query(CodeBatch)
            .filter(CodeBatch.access_policy_id == policy_id, CodeBatch.tenant_id == tenant_id)
            .order_by(CodeBatch.created_at.desc())
        )

    def increment_used_codes(self, batch_id: str) -> int:
        """Count one more fully used code and refresh the batch status."""
        stmt = (
            update(CodeBatch)
            .where(CodeBatch.id == batch_id, CodeBatch.used_codes < CodeBatch.total_codes)
            .values(
                used_codes=CodeBatch.used_codes + 1,
                status=case(
                    (CodeBatch.status == CodeBatchStatus.PAUSED.value, CodeBatch.status),
                    (
                        CodeBatch.used_codes + 1 >= CodeBatch.total_codes,
                        CodeBatchStatus.USED.value,
                    ),
                    else_=CodeBatchStatus.PARTIALLY_USED.value,
                ),
            )
            .execution_options(synchronize_session=False)
        )
        return int(self.db.execute(stmt).rowcount or 0)

    def mark_partially_used(self, batch_id: str) -> int:
        stmt = (
            update(CodeBatch)
            .where(CodeBatch.id == batch_id, CodeBatch.status == CodeBatchStatus.UNUSED.value)
            .values(status=CodeBatchStatus.PARTIALLY_USED.value)
            .execution_options(synchronize_session=False)
        )
        return int(self.db.execute(stmt).rowcount or 0)


def _status_value(status) -> str:
    return str(getattr(status, "value", status))


__all__ = ["CodeBatchRepository", "InviteCodeRepository"]
