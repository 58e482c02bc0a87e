"""Anti-abuse helpers driven by the settings cascade."""

from __future__ import annotations

from typing import Any, Dict, Optional

from ..core.enums import CaptchaLevel
from .settings_service import SettingsService


def should_require_captcha(
    settings: SettingsService,
    tenant_id: Optional[str] = None,
    pool_id: Optional[str] = None,
    has_anomaly: bool = False,
) -> bool:
    """
    Whether a CAPTCHA token must accompany a request in this scope.

    ``force`` always requires one, ``off`` never does, and ``auto`` only
    when the caller has flagged the request as anomalous.
    """
    level = settings.get_captcha_level(tenant_id, pool_id)
    if level == CaptchaLevel.FORCE:
        return True
    if level == CaptchaLevel.OFF:
        return False
    return has_anomaly


def sanitize_ip_address(
    settings: SettingsService,
    ip_address: Optional[str],
    tenant_id: Optional[str] = None,
    pool_id: Optional[str] = None,
) -> Optional[str]:
    """Return the IP only when IP logging is enabled for the scope."""
    if not ip_address:
        return None
    if not settings.get_ip_logging_enabled(tenant_id, pool_id):
        return None
    return ip_address


def prepare_audit_data(
    settings: SettingsService,
    data: Dict[str, Any],
    tenant_id: Optional[str] = None,
    pool_id: Optional[str] = None,
) -> Dict[str, Any]:
    """Copy of ``data`` with ``ip_address`` stripped when IP logging is off."""
    prepared = dict(data)
    prepared["ip_address"] = sanitize_ip_address(
        settings, data.get("ip_address"), tenant_id, pool_id
    )
    return prepared


__all__ = ["prepare_audit_data", "sanitize_ip_address", "should_require_captcha"]
