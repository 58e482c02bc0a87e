"""CAPTCHA verification seam; concrete providers live outside this service."""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable


@runtime_checkable
class CaptchaVerifier(Protocol):
    """Checks a client-supplied CAPTCHA token."""

    def verify(self, token: str, *, ip_address: Optional[str] = None) -> bool:
        ...


class PresenceCaptchaVerifier:
    """Accepts any non-blank token. Used until a provider is wired in."""

    def verify(self, token: str, *, ip_address: Optional[str] = None) -> bool:
        return bool(token and token.strip())


__all__ = ["CaptchaVerifier", "PresenceCaptchaVerifier"]
