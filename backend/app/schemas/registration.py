"""Schemas for pool registration and access checks."""

from datetime import datetime
from typing import Optional

from pydantic import EmailStr, Field

from ..core.enums import AccessDenialReason
from ._strict_base import StrictModel, StrictRequestModel


class _ProfileFields(StrictRequestModel):
    display_name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, max_length=32)
    captcha_token: Optional[str] = None


class PublicRegistrationRequest(_ProfileFields):
    email: Optional[EmailStr] = None


class CodeRegistrationRequest(_ProfileFields):
    invite_code: str = Field(min_length=1, max_length=32)
    email: Optional[EmailStr] = None


class EmailInviteRegistrationRequest(_ProfileFields):
    invite_token: str = Field(min_length=1, max_length=128)
    email: EmailStr


class RegistrationResponse(StrictModel):
    id: str
    user_id: str
    pool_id: str
    tenant_id: str
    display_name: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    email_verified: bool
    invite_code_id: Optional[str] = None
    invitation_id: Optional[str] = None
    joined_at: Optional[datetime] = None


class RegistrationStatusResponse(StrictModel):
    is_registered: bool
    registration: Optional[RegistrationResponse] = None
    access_allowed: bool
    access_reason: Optional[AccessDenialReason] = None


class AccessCheckResponse(StrictModel):
    allowed: bool
    registration_id: Optional[str] = None


class CodeValidationResponse(StrictModel):
    valid: bool
    code_id: str
    uses_remaining: int


class TokenValidationResponse(StrictModel):
    valid: bool
    invitation_id: str
    email: str


class PoolRegistrationStatsResponse(StrictModel):
    total: int
    email_verified: int
    via_code: int
    via_invite: int
    public: int
