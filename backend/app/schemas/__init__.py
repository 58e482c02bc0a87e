# backend/app/schemas/__init__.py
"""
Pydantic schemas for the quinielas API.

Request models forbid unknown fields; response models read ORM objects by
attribute.
"""

from .access import (
    AccessPolicyRequest,
    AccessPolicyResponse,
    CodeBatchCreateRequest,
    CodeBatchResponse,
    CodeBatchStatsResponse,
    InvitationBulkRequest,
    InvitationCreateRequest,
    InvitationResponse,
    InvitationStatsResponse,
)
from .registration import (
    CodeRegistrationRequest,
    EmailInviteRegistrationRequest,
    PublicRegistrationRequest,
    RegistrationResponse,
    RegistrationStatusResponse,
)
from .settings import ResolvedSettingResponse, SettingUpsertRequest

__all__ = [
    "AccessPolicyRequest",
    "AccessPolicyResponse",
    "CodeBatchCreateRequest",
    "CodeBatchResponse",
    "CodeBatchStatsResponse",
    "CodeRegistrationRequest",
    "EmailInviteRegistrationRequest",
    "InvitationBulkRequest",
    "InvitationCreateRequest",
    "InvitationResponse",
    "InvitationStatsResponse",
    "PublicRegistrationRequest",
    "RegistrationResponse",
    "RegistrationStatusResponse",
    "ResolvedSettingResponse",
    "SettingUpsertRequest",
]
