# backend/app/core/exceptions.py
"""
Domain-specific exceptions for the quinielas platform.

Three families matter to callers:

* admission failures (``AccessDeniedException`` and the business-rule
  rejections raised while registering) are expected, user-facing outcomes
  carrying a stable ``code``;
* configuration failures (``ConfigurationException`` and subclasses) mean a
  tenant or pool is misconfigured and surface as server faults;
* conflicts (``ConflictException``) signal a repeated request.

Storage errors are never wrapped here; they propagate unchanged.
"""

from typing import Any, Dict, Optional

from fastapi import status

from .enums import AccessDenialReason, RegistrationRejection

HTTP_422_UNPROCESSABLE: int = getattr(status, "HTTP_422_UNPROCESSABLE_CONTENT", 422)


class DomainException(Exception):
    """Base exception for all domain-specific errors."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.__class__.__name__
        self.details = details or {}
        super().__init__(self.message)


class ValidationException(DomainException):
    """Raised when business validation fails."""

    status_code = status.HTTP_400_BAD_REQUEST


class NotFoundException(DomainException):
    """Raised when a requested resource is not found."""

    status_code = status.HTTP_404_NOT_FOUND


class ConflictException(DomainException):
    """Raised when there's a conflict with existing data."""

    status_code = status.HTTP_409_CONFLICT


class BusinessRuleException(DomainException):
    """Raised when a business rule is violated."""

    status_code = HTTP_422_UNPROCESSABLE


class ForbiddenException(DomainException):
    """Raised when user lacks permission for an action."""

    status_code = status.HTTP_403_FORBIDDEN


class ServiceException(DomainException):
    """Raised when a service operation fails."""


# Access control


class AccessDeniedException(ForbiddenException):
    """Raised when a user may not register for, or act within, a pool."""

    def __init__(
        self,
        reason: AccessDenialReason,
        message: Optional[str] = None,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.reason = reason
        super().__init__(
            message=message or reason.value,
            code=reason.value,
            details=details or {},
        )


class RegistrationRejectedException(BusinessRuleException):
    """An admission attempt broke a pool rule (window, cap, captcha, email...)."""

    def __init__(
        self,
        reason: RegistrationRejection,
        message: str,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.reason = reason
        super().__init__(message=message, code=reason.value, details=details or {})


class ConfigurationException(DomainException):
    """A tenant, pool or setting is structurally misconfigured."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class AccessConfigurationError(ConfigurationException):
    """Missing access policy or an access type the gate does not know."""

    def __init__(
        self,
        message: str,
        code: str = AccessDenialReason.UNKNOWN_ACCESS_TYPE.value,
        *,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message=message, code=code, details=details or {})


class SettingScopeError(ConfigurationException):
    """Tenant/pool ids are inconsistent with the declared setting scope."""

    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str):
        super().__init__(message=message, code="SETTING_SCOPE_INVALID")


class UnknownSettingError(ConfigurationException):
    """The requested key is not in the setting registry."""

    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, key: str):
        self.key = key
        super().__init__(
            message=f"Unknown setting key: {key}",
            code="SETTING_UNKNOWN",
            details={"key": key},
        )


class InvalidSettingValueError(ValidationException):
    """The value does not match the declared shape for its key."""

    def __init__(self, key: str, errors: Optional[list[Any]] = None):
        self.key = key
        super().__init__(
            message=f"Invalid value for setting key: {key}",
            code="SETTING_VALUE_INVALID",
            details={"key": key, "errors": errors or []},
        )

