# backend/app/routes/v1/access_admin.py
"""
Pool access administration routes - API v1

Mounted under /api/v1/pools/{pool_id}/access; tenant administrators only.

Endpoints:
    GET /policy                         → Pool access policy
    PUT /policy                         → Create or update the policy
    GET /code-batches                   → Batches of the pool's CODE policy
    POST /code-batches                  → Generate a batch of invite codes
    GET /code-batches/{batch_id}        → Batch with its codes
    GET /code-batches/{batch_id}/stats  → Code status counts
    POST /code-batches/{batch_id}/pause → Pause the batch and its codes
    POST /code-batches/{batch_id}/resume→ Resume the batch and its codes
    GET /code-batches/{batch_id}/export → Codes as CSV
    GET /invitations                    → Invitations of the pool
    POST /invitations                   → Invite one email
    POST /invitations/bulk              → Invite many emails
    GET /invitations/stats              → Invitation status and engagement counts
    POST /invitations/{id}/resend       → Count a resend
    GET /registrations                  → Registrations of the pool
    GET /registrations/stats            → Registration counts by admission path

Also defines the unauthenticated invitation engagement hook and the
superadmin expiry sweep.
"""

import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Response, status

from ...api.dependencies import (
    get_access_policy_service,
    get_code_batch_service,
    get_invitation_service,
    get_registration_service,
    get_tenant_pool,
    require_superadmin,
    require_tenant_admin,
)
from ...core.enums import InvitationStatus
from ...models.tenant import Pool
from ...principal import Principal
from ...schemas.access import (
    AccessPolicyRequest,
    AccessPolicyResponse,
    CodeBatchCreateRequest,
    CodeBatchResponse,
    CodeBatchStatsResponse,
    InvitationBulkRequest,
    InvitationCreateRequest,
    InvitationEngagementRequest,
    InvitationResponse,
    InvitationStatsResponse,
    SweepResponse,
)
from ...schemas.registration import PoolRegistrationStatsResponse, RegistrationResponse
from ...services.access_policy_service import AccessPolicyService
from ...services.code_batch_service import CodeBatchService
from ...services.invitation_service import InvitationService
from ...services.registration_service import RegistrationService

logger = logging.getLogger(__name__)

router = APIRouter(tags=["access-admin-v1"])
events_router = APIRouter(tags=["invitation-events-v1"])
maintenance_router = APIRouter(tags=["access-maintenance-v1"])


# ----------------------------------------------------------------------
# Policy
# ----------------------------------------------------------------------


@router.get("/policy", response_model=AccessPolicyResponse)
async def get_policy(
    pool: Pool = Depends(get_tenant_pool),
    policy_service: AccessPolicyService = Depends(get_access_policy_service),
) -> AccessPolicyResponse:
    policy = await asyncio.to_thread(policy_service.get_by_pool, pool.id, pool.tenant_id)
    return AccessPolicyResponse.model_validate(policy)


@router.put("/policy", response_model=AccessPolicyResponse)
async def upsert_policy(
    payload: AccessPolicyRequest,
    pool: Pool = Depends(get_tenant_pool),
    policy_service: AccessPolicyService = Depends(get_access_policy_service),
) -> AccessPolicyResponse:
    """Only the fields present in the body are written."""
    fields = payload.model_dump(exclude_unset=True)
    policy = await asyncio.to_thread(policy_service.upsert, pool.id, pool.tenant_id, **fields)
    return AccessPolicyResponse.model_validate(policy)


# ----------------------------------------------------------------------
# Code batches
# ----------------------------------------------------------------------


@router.get("/code-batches", response_model=List[CodeBatchResponse])
async def list_code_batches(
    pool: Pool = Depends(get_tenant_pool),
    policy_service: AccessPolicyService = Depends(get_access_policy_service),
    batch_service: CodeBatchService = Depends(get_code_batch_service),
) -> List[CodeBatchResponse]:
    policy = await asyncio.to_thread(policy_service.get_by_pool, pool.id, pool.tenant_id)
    batches = await asyncio.to_thread(batch_service.list_by_policy, policy.id, pool.tenant_id)
    return [CodeBatchResponse.model_validate(batch) for batch in batches]


@router.post(
    "/code-batches", response_model=CodeBatchResponse, status_code=status.HTTP_201_CREATED
)
async def create_code_batch(
    payload: CodeBatchCreateRequest,
    pool: Pool = Depends(get_tenant_pool),
    principal: Principal = Depends(require_tenant_admin),
    policy_service: AccessPolicyService = Depends(get_access_policy_service),
    batch_service: CodeBatchService = Depends(get_code_batch_service),
) -> CodeBatchResponse:
    policy = await asyncio.to_thread(policy_service.get_by_pool, pool.id, pool.tenant_id)
    batch = await asyncio.to_thread(
        batch_service.create_batch,
        policy.id,
        pool.tenant_id,
        payload.quantity,
        uses_per_code=payload.uses_per_code,
        name=payload.name,
        description=payload.description,
        expires_at=payload.expires_at,
        actor_id=principal.user_id,
    )
    return CodeBatchResponse.model_validate(batch)


@router.get("/code-batches/{batch_id}", response_model=CodeBatchResponse)
async def get_code_batch(
    batch_id: str,
    pool: Pool = Depends(get_tenant_pool),
    batch_service: CodeBatchService = Depends(get_code_batch_service),
) -> CodeBatchResponse:
    batch = await asyncio.to_thread(batch_service.get_batch, batch_id, pool.tenant_id)
    return CodeBatchResponse.model_validate(batch)


@router.get("/code-batches/{batch_id}/stats", response_model=CodeBatchStatsResponse)
async def get_code_batch_stats(
    batch_id: str,
    pool: Pool = Depends(get_tenant_pool),
    batch_service: CodeBatchService = Depends(get_code_batch_service),
) -> CodeBatchStatsResponse:
    stats = await asyncio.to_thread(batch_service.get_batch_stats, batch_id, pool.tenant_id)
    return CodeBatchStatsResponse(**stats)


async def _set_paused(
    batch_service: CodeBatchService, batch_id: str, pool: Pool, principal: Principal, paused: bool
) -> CodeBatchResponse:
    batch = await asyncio.to_thread(
        batch_service.set_batch_paused,
        batch_id,
        pool.tenant_id,
        paused,
        actor_id=principal.user_id,
    )
    return CodeBatchResponse.model_validate(batch)


@router.post("/code-batches/{batch_id}/pause", response_model=CodeBatchResponse)
async def pause_code_batch(
    batch_id: str,
    pool: Pool = Depends(get_tenant_pool),
    principal: Principal = Depends(require_tenant_admin),
    batch_service: CodeBatchService = Depends(get_code_batch_service),
) -> CodeBatchResponse:
    return await _set_paused(batch_service, batch_id, pool, principal, True)


@router.post("/code-batches/{batch_id}/resume", response_model=CodeBatchResponse)
async def resume_code_batch(
    batch_id: str,
    pool: Pool = Depends(get_tenant_pool),
    principal: Principal = Depends(require_tenant_admin),
    batch_service: CodeBatchService = Depends(get_code_batch_service),
) -> CodeBatchResponse:
    return await _set_paused(batch_service, batch_id, pool, principal, False)


@router.get("/code-batches/{batch_id}/export")
async def export_code_batch(
    batch_id: str,
    pool: Pool = Depends(get_tenant_pool),
    batch_service: CodeBatchService = Depends(get_code_batch_service),
) -> Response:
    content = await asyncio.to_thread(batch_service.export_batch_csv, batch_id, pool.tenant_id)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="codes-{batch_id}.csv"'},
    )


# ----------------------------------------------------------------------
# Invitations
# ----------------------------------------------------------------------


@router.get("/invitations", response_model=List[InvitationResponse])
async def list_invitations(
    invitation_status: Optional[InvitationStatus] = None,
    pool: Pool = Depends(get_tenant_pool),
    invitation_service: InvitationService = Depends(get_invitation_service),
) -> List[InvitationResponse]:
    invitations = await asyncio.to_thread(
        invitation_service.list_by_pool, pool.id, pool.tenant_id, invitation_status
    )
    return [InvitationResponse.model_validate(invitation) for invitation in invitations]


@router.post(
    "/invitations", response_model=InvitationResponse, status_code=status.HTTP_201_CREATED
)
async def create_invitation(
    payload: InvitationCreateRequest,
    pool: Pool = Depends(get_tenant_pool),
    principal: Principal = Depends(require_tenant_admin),
    invitation_service: InvitationService = Depends(get_invitation_service),
) -> InvitationResponse:
    invitation = await asyncio.to_thread(
        invitation_service.create,
        pool.id,
        pool.tenant_id,
        payload.email,
        expires_at=payload.expires_at,
        actor_id=principal.user_id,
    )
    return InvitationResponse.model_validate(invitation)


@router.post(
    "/invitations/bulk",
    response_model=List[InvitationResponse],
    status_code=status.HTTP_201_CREATED,
)
async def create_invitations_bulk(
    payload: InvitationBulkRequest,
    pool: Pool = Depends(get_tenant_pool),
    principal: Principal = Depends(require_tenant_admin),
    invitation_service: InvitationService = Depends(get_invitation_service),
) -> List[InvitationResponse]:
    invitations = await asyncio.to_thread(
        invitation_service.create_bulk,
        pool.id,
        pool.tenant_id,
        payload.emails,
        expires_at=payload.expires_at,
        actor_id=principal.user_id,
    )
    return [InvitationResponse.model_validate(invitation) for invitation in invitations]


@router.get("/invitations/stats", response_model=InvitationStatsResponse)
async def get_invitation_stats(
    pool: Pool = Depends(get_tenant_pool),
    invitation_service: InvitationService = Depends(get_invitation_service),
) -> InvitationStatsResponse:
    stats = await asyncio.to_thread(invitation_service.get_stats, pool.id)
    return InvitationStatsResponse(**stats)


@router.post("/invitations/{invitation_id}/resend", response_model=InvitationResponse)
async def resend_invitation(
    invitation_id: str,
    pool: Pool = Depends(get_tenant_pool),
    principal: Principal = Depends(require_tenant_admin),
    invitation_service: InvitationService = Depends(get_invitation_service),
) -> InvitationResponse:
    invitation = await asyncio.to_thread(
        invitation_service.resend, invitation_id, pool.tenant_id, actor_id=principal.user_id
    )
    return InvitationResponse.model_validate(invitation)


# ----------------------------------------------------------------------
# Registrations
# ----------------------------------------------------------------------


@router.get("/registrations", response_model=List[RegistrationResponse])
async def list_registrations(
    pool: Pool = Depends(get_tenant_pool),
    registration_service: RegistrationService = Depends(get_registration_service),
) -> List[RegistrationResponse]:
    rows = await asyncio.to_thread(registration_service.list_by_pool, pool.id, pool.tenant_id)
    return [RegistrationResponse.model_validate(row) for row in rows]


@router.get("/registrations/stats", response_model=PoolRegistrationStatsResponse)
async def get_registration_stats(
    pool: Pool = Depends(get_tenant_pool),
    registration_service: RegistrationService = Depends(get_registration_service),
) -> PoolRegistrationStatsResponse:
    stats = await asyncio.to_thread(registration_service.get_pool_stats, pool.id, pool.tenant_id)
    return PoolRegistrationStatsResponse(**stats)


# ----------------------------------------------------------------------
# Engagement hook and sweeps
# ----------------------------------------------------------------------


@events_router.post("/{token}/engagement", status_code=status.HTTP_204_NO_CONTENT)
async def record_invitation_engagement(
    token: str,
    payload: InvitationEngagementRequest,
    invitation_service: InvitationService = Depends(get_invitation_service),
) -> Response:
    """Delivery provider callback: opened / clicked / bounced."""
    await asyncio.to_thread(invitation_service.record_engagement, token, payload.event)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@maintenance_router.post("/expire-codes", response_model=SweepResponse)
async def expire_codes(
    _: Principal = Depends(require_superadmin),
    batch_service: CodeBatchService = Depends(get_code_batch_service),
) -> SweepResponse:
    return SweepResponse(expired=await asyncio.to_thread(batch_service.expire_codes))


@maintenance_router.post("/expire-invitations", response_model=SweepResponse)
async def expire_invitations(
    _: Principal = Depends(require_superadmin),
    invitation_service: InvitationService = Depends(get_invitation_service),
) -> SweepResponse:
    return SweepResponse(expired=await asyncio.to_thread(invitation_service.expire_pending))
