"""Schemas for pool access administration: policies, code batches, invitations."""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import EmailStr, Field

from ..core.constants import MAX_BULK_INVITATIONS, MAX_CODES_PER_BATCH, MAX_USES_PER_CODE
from ..core.enums import AccessType, CodeBatchStatus, InvitationStatus, InviteCodeStatus
from ._strict_base import StrictModel, StrictRequestModel


class AccessPolicyRequest(StrictRequestModel):
    access_type: Optional[AccessType] = None
    require_captcha: Optional[bool] = None
    require_email_verification: Optional[bool] = None
    domain_allow_list: Optional[List[str]] = None
    max_registrations: Optional[int] = Field(default=None, ge=1)
    registration_start_date: Optional[datetime] = None
    registration_end_date: Optional[datetime] = None
    user_cap: Optional[int] = Field(default=None, ge=1)
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None


class AccessPolicyResponse(StrictModel):
    id: str
    pool_id: str
    tenant_id: str
    access_type: str
    require_captcha: bool
    require_email_verification: bool
    domain_allow_list: List[str] = Field(default_factory=list)
    max_registrations: Optional[int] = None
    registration_start_date: Optional[datetime] = None
    registration_end_date: Optional[datetime] = None
    user_cap: Optional[int] = None
    window_start: Optional[datetime] = None
    window_end: Optional[datetime] = None


class CodeBatchCreateRequest(StrictRequestModel):
    quantity: int = Field(ge=1, le=MAX_CODES_PER_BATCH)
    uses_per_code: int = Field(default=1, ge=1, le=MAX_USES_PER_CODE)
    name: Optional[str] = Field(default=None, max_length=255)
    description: Optional[str] = None
    expires_at: Optional[datetime] = None


class InviteCodeResponse(StrictModel):
    id: str
    code: str
    status: InviteCodeStatus
    used_count: int
    uses_per_code: int
    expires_at: Optional[datetime] = None


class CodeBatchResponse(StrictModel):
    id: str
    access_policy_id: str
    name: Optional[str] = None
    description: Optional[str] = None
    total_codes: int
    used_codes: int
    max_uses_per_code: int
    status: CodeBatchStatus
    expires_at: Optional[datetime] = None
    codes: List[InviteCodeResponse] = Field(default_factory=list)


class CodeBatchStatsResponse(StrictModel):
    total_codes: int
    unused_codes: int
    partially_used_codes: int
    used_codes: int
    expired_codes: int
    paused_codes: int
    total_redemptions: int


class InvitationCreateRequest(StrictRequestModel):
    email: EmailStr
    expires_at: Optional[datetime] = None


class InvitationBulkRequest(StrictRequestModel):
    emails: List[EmailStr] = Field(min_length=1, max_length=MAX_BULK_INVITATIONS)
    expires_at: Optional[datetime] = None


class InvitationResponse(StrictModel):
    id: str
    pool_id: str
    email: str
    token: str
    status: InvitationStatus
    expires_at: datetime
    accepted_at: Optional[datetime] = None
    sent_count: int
    last_sent_at: Optional[datetime] = None


class InvitationStatsResponse(StrictModel):
    total: int
    pending: int
    accepted: int
    expired: int
    total_sent: int
    opened: int
    clicked: int
    bounced: int


class InvitationEngagementRequest(StrictRequestModel):
    event: Literal["opened", "clicked", "bounced"]


class SweepResponse(StrictModel):
    expired: int
