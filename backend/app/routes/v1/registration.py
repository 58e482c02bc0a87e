# backend/app/routes/v1/registration.py
"""
Registration routes - API v1

Admission into a pool and the access checks run before protected pool
actions. Mounted under /api/v1/pools/{pool_id}/registration.

Endpoints:
    GET /status                → Registration and current access state
    GET /access                → Re-check access (403 with a reason code when denied)
    GET /validate-code         → Pre-check an invite code
    GET /validate-token        → Pre-check an invitation token
    POST /public               → Join a PUBLIC pool
    POST /code                 → Join with an invite code
    POST /email-invite         → Join with an email invitation

Admission and the pre-checks only resolve pools of the caller's tenant and answer
404 for any other pool. /status and /access evaluate the gate as is, so a
foreign tenant there is denied with TENANT_MISMATCH.
"""

import asyncio
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from ...api.dependencies import (
    get_access_gate,
    get_member_pool,
    get_registration_service,
    get_tenant_principal,
)
from ...models.tenant import Pool
from ...principal import Principal
from ...schemas.registration import (
    AccessCheckResponse,
    CodeRegistrationRequest,
    CodeValidationResponse,
    EmailInviteRegistrationRequest,
    PublicRegistrationRequest,
    RegistrationResponse,
    RegistrationStatusResponse,
    TokenValidationResponse,
)
from ...services.access_gate import AccessGate
from ...services.registration_service import RegistrationService, RequestContext

logger = logging.getLogger(__name__)

router = APIRouter(tags=["registration-v1"])


def _request_context(request: Request) -> RequestContext:
    forwarded = request.headers.get("x-forwarded-for")
    ip_address: Optional[str] = None
    if forwarded:
        ip_address = forwarded.split(",")[0].strip() or None
    elif request.client is not None:
        ip_address = request.client.host
    return RequestContext(ip_address=ip_address, user_agent=request.headers.get("user-agent"))


@router.get("/status", response_model=RegistrationStatusResponse)
async def registration_status(
    pool_id: str,
    principal: Principal = Depends(get_tenant_principal),
    registration_service: RegistrationService = Depends(get_registration_service),
    gate: AccessGate = Depends(get_access_gate),
) -> RegistrationStatusResponse:
    status_info = await asyncio.to_thread(
        registration_service.check_registration, principal.user_id, pool_id
    )
    registration = status_info["registration"]
    access = await asyncio.to_thread(
        gate.check_registration_access, pool_id, principal.user_id, principal.tenant_id
    )
    return RegistrationStatusResponse(
        is_registered=status_info["is_registered"],
        registration=RegistrationResponse.model_validate(registration) if registration else None,
        access_allowed=access.allowed,
        access_reason=access.reason,
    )


@router.get("/access", response_model=AccessCheckResponse)
async def assert_access(
    pool_id: str,
    principal: Principal = Depends(get_tenant_principal),
    gate: AccessGate = Depends(get_access_gate),
) -> AccessCheckResponse:
    """Raises 403 with the denial reason as ``code`` when access is not granted."""
    registration = await asyncio.to_thread(
        gate.assert_registration_access, pool_id, principal.user_id, principal.tenant_id
    )
    return AccessCheckResponse(allowed=True, registration_id=registration.id)


@router.get("/validate-code", response_model=CodeValidationResponse)
async def validate_code(
    code: str = Query(..., min_length=1, max_length=32),
    pool: Pool = Depends(get_member_pool),
    gate: AccessGate = Depends(get_access_gate),
) -> CodeValidationResponse:
    result = await asyncio.to_thread(gate.validate_invite_code, pool.id, code)
    return CodeValidationResponse.model_validate(result)


@router.get("/validate-token", response_model=TokenValidationResponse)
async def validate_token(
    token: str = Query(..., min_length=1, max_length=128),
    pool: Pool = Depends(get_member_pool),
    gate: AccessGate = Depends(get_access_gate),
) -> TokenValidationResponse:
    result = await asyncio.to_thread(gate.validate_invite_token, pool.id, token)
    return TokenValidationResponse.model_validate(result)


@router.post(
    "/public", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED
)
async def register_public(
    payload: PublicRegistrationRequest,
    request: Request,
    pool: Pool = Depends(get_member_pool),
    principal: Principal = Depends(get_tenant_principal),
    registration_service: RegistrationService = Depends(get_registration_service),
) -> RegistrationResponse:
    registration = await asyncio.to_thread(
        registration_service.register_public,
        pool.id,
        principal.user_id,
        display_name=payload.display_name,
        email=payload.email,
        phone=payload.phone,
        captcha_token=payload.captcha_token,
        context=_request_context(request),
    )
    return RegistrationResponse.model_validate(registration)


@router.post("/code", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
async def register_with_code(
    payload: CodeRegistrationRequest,
    request: Request,
    pool: Pool = Depends(get_member_pool),
    principal: Principal = Depends(get_tenant_principal),
    registration_service: RegistrationService = Depends(get_registration_service),
) -> RegistrationResponse:
    registration = await asyncio.to_thread(
        registration_service.register_with_code,
        pool.id,
        principal.user_id,
        payload.invite_code,
        display_name=payload.display_name,
        email=payload.email,
        phone=payload.phone,
        captcha_token=payload.captcha_token,
        context=_request_context(request),
    )
    return RegistrationResponse.model_validate(registration)


@router.post(
    "/email-invite", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED
)
async def register_with_email_invite(
    payload: EmailInviteRegistrationRequest,
    request: Request,
    pool: Pool = Depends(get_member_pool),
    principal: Principal = Depends(get_tenant_principal),
    registration_service: RegistrationService = Depends(get_registration_service),
) -> RegistrationResponse:
    registration = await asyncio.to_thread(
        registration_service.register_with_email_invite,
        pool.id,
        principal.user_id,
        payload.invite_token,
        payload.email,
        display_name=payload.display_name,
        phone=payload.phone,
        captcha_token=payload.captcha_token,
        context=_request_context(request),
    )
    return RegistrationResponse.model_validate(registration)
