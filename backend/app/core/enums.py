# backend/app/core/enums.py
"""
Core enums for the quinielas platform.

All enums persisted to the database inherit from (str, Enum) so that the
stored value is the stable string, never the member name.
"""

from enum import Enum


class RoleName(str, Enum):
    """Roles carried by the acting principal."""

    SUPERADMIN = "superadmin"
    TENANT_ADMIN = "tenant_admin"
    PLAYER = "player"


class SettingScope(str, Enum):
    """Override level of a stored setting, from broadest to narrowest."""

    GLOBAL = "GLOBAL"
    TENANT = "TENANT"
    POOL = "POOL"


class AccessType(str, Enum):
    """Admission mode of a pool."""

    PUBLIC = "PUBLIC"
    CODE = "CODE"
    EMAIL_INVITE = "EMAIL_INVITE"


class InviteCodeStatus(str, Enum):
    UNUSED = "UNUSED"
    PARTIALLY_USED = "PARTIALLY_USED"
    USED = "USED"
    EXPIRED = "EXPIRED"
    PAUSED = "PAUSED"


class CodeBatchStatus(str, Enum):
    UNUSED = "UNUSED"
    PARTIALLY_USED = "PARTIALLY_USED"
    USED = "USED"
    EXPIRED = "EXPIRED"
    PAUSED = "PAUSED"


class InvitationStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    EXPIRED = "EXPIRED"


class CaptchaLevel(str, Enum):
    AUTO = "auto"
    OFF = "off"
    FORCE = "force"


class AccessDenialReason(str, Enum):
    """
    Stable, machine-readable reasons returned when access to a pool is refused.

    These strings are part of the external contract; front-ends branch and
    localize on them.
    """

    REGISTRATION_REQUIRED = "REGISTRATION_REQUIRED"
    TENANT_MISMATCH = "TENANT_MISMATCH"
    CODE_REQUIRED = "CODE_REQUIRED"
    CODE_INVALID = "CODE_INVALID"
    CODE_EXHAUSTED = "CODE_EXHAUSTED"
    CODE_EXPIRED = "CODE_EXPIRED"
    INVITATION_REQUIRED = "INVITATION_REQUIRED"
    INVITATION_NOT_ACCEPTED = "INVITATION_NOT_ACCEPTED"
    INVITATION_EXPIRED = "INVITATION_EXPIRED"
    UNKNOWN_ACCESS_TYPE = "UNKNOWN_ACCESS_TYPE"


class RegistrationRejection(str, Enum):
    """Reasons an admission attempt is refused before any credential is consumed."""

    POOL_INACTIVE = "POOL_INACTIVE"
    ACCESS_TYPE_MISMATCH = "ACCESS_TYPE_MISMATCH"
    REGISTRATION_NOT_STARTED = "REGISTRATION_NOT_STARTED"
    REGISTRATION_CLOSED = "REGISTRATION_CLOSED"
    POOL_FULL = "POOL_FULL"
    EMAIL_DOMAIN_NOT_ALLOWED = "EMAIL_DOMAIN_NOT_ALLOWED"
    CAPTCHA_REQUIRED = "CAPTCHA_REQUIRED"
    CAPTCHA_INVALID = "CAPTCHA_INVALID"
    EMAIL_MISMATCH = "EMAIL_MISMATCH"
    PROFILE_REQUIRED = "PROFILE_REQUIRED"


class AuditAction(str, Enum):
    REGISTRATION_PUBLIC = "REGISTRATION_PUBLIC"
    REGISTRATION_CODE = "REGISTRATION_CODE"
    REGISTRATION_EMAIL_INVITE = "REGISTRATION_EMAIL_INVITE"
    SETTING_UPSERT = "SETTING_UPSERT"
    SETTING_DELETE = "SETTING_DELETE"
    CODE_BATCH_CREATE = "CODE_BATCH_CREATE"
    CODE_BATCH_PAUSE = "CODE_BATCH_PAUSE"
    CODE_BATCH_RESUME = "CODE_BATCH_RESUME"
    INVITATION_CREATE = "INVITATION_CREATE"
    INVITATION_RESEND = "INVITATION_RESEND"
