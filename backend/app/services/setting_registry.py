"""
Registry of known setting keys.

Each key carries its compiled-in default and the shape its value must have.
Shapes are pydantic types checked through ``TypeAdapter``; strict scalar
types are used so ``"true"`` is not accepted where a boolean is declared.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, Iterator, List, Literal, Optional

from pydantic import Field, StrictBool, StrictInt, TypeAdapter, ValidationError
from typing_extensions import Annotated, TypedDict

from ..core.exceptions import UnknownSettingError

CAPTCHA_LEVEL_KEY = "antiAbuse.captchaLevel"
RATE_LIMIT_KEY = "antiAbuse.rateLimit"
IP_LOGGING_KEY = "privacy.ipLogging"
COOKIE_BANNER_KEY = "privacy.cookieBanner"
DEVICE_FINGERPRINT_KEY = "privacy.deviceFingerprint"

PositiveStrictInt = Annotated[StrictInt, Field(gt=0)]


class RateLimitValue(TypedDict):
    windowSec: PositiveStrictInt
    max: PositiveStrictInt


CaptchaLevelValue = Literal["auto", "off", "force"]


@dataclass(frozen=True)
class SettingDefinition:
    """A registry entry: key, default value and value shape."""

    key: str
    default: Any
    schema: Any
    description: str = ""
    _adapter: TypeAdapter = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "_adapter", TypeAdapter(self.schema))
        # A registry whose own default is invalid is a programming error.
        self._adapter.validate_python(self.default)

    def validation_errors(self, value: Any) -> Optional[List[Dict[str, Any]]]:
        """None when ``value`` fits the shape, else pydantic's error list."""
        try:
            self._adapter.validate_python(value)
        except ValidationError as exc:
            return [
                {"loc": list(err.get("loc", ())), "msg": err.get("msg", ""), "type": err.get("type")}
                for err in exc.errors()
            ]
        return None

    def is_valid(self, value: Any) -> bool:
        return self.validation_errors(value) is None

    def default_value(self) -> Any:
        """A copy of the default so callers cannot mutate the registry."""
        return copy.deepcopy(self.default)


class SettingRegistry:
    """Key -> definition mapping consulted by the settings cascade."""

    def __init__(self, definitions: Iterable[SettingDefinition]):
        self._definitions: Dict[str, SettingDefinition] = {}
        for definition in definitions:
            if definition.key in self._definitions:
                raise ValueError(f"Duplicate setting key: {definition.key}")
            self._definitions[definition.key] = definition

    def __contains__(self, key: object) -> bool:
        return key in self._definitions

    def __iter__(self) -> Iterator[SettingDefinition]:
        return iter(self._definitions.values())

    def __len__(self) -> int:
        return len(self._definitions)

    def keys(self) -> List[str]:
        return list(self._definitions.keys())

    def get(self, key: str) -> SettingDefinition:
        try:
            return self._definitions[key]
        except KeyError:
            raise UnknownSettingError(key) from None

    def default_for(self, key: str) -> Any:
        return self.get(key).default_value()


DEFAULT_SETTING_REGISTRY = SettingRegistry(
    [
        SettingDefinition(
            key=CAPTCHA_LEVEL_KEY,
            default="auto",
            schema=CaptchaLevelValue,
            description="When registration forms demand a CAPTCHA token",
        ),
        SettingDefinition(
            key=RATE_LIMIT_KEY,
            default={"windowSec": 60, "max": 60},
            schema=RateLimitValue,
            description="Request budget per client window",
        ),
        SettingDefinition(
            key=IP_LOGGING_KEY,
            default=True,
            schema=StrictBool,
            description="Store client IP addresses on audit entries",
        ),
        SettingDefinition(
            key=COOKIE_BANNER_KEY,
            default=True,
            schema=StrictBool,
            description="Show the cookie consent banner",
        ),
        SettingDefinition(
            key=DEVICE_FINGERPRINT_KEY,
            default=False,
            schema=StrictBool,
            description="Collect device fingerprints for abuse detection",
        ),
    ]
)


__all__ = [
    "CAPTCHA_LEVEL_KEY",
    "COOKIE_BANNER_KEY",
    "DEFAULT_SETTING_REGISTRY",
    "DEVICE_FINGERPRINT_KEY",
    "IP_LOGGING_KEY",
    "RATE_LIMIT_KEY",
    "RateLimitValue",
    "SettingDefinition",
    "SettingRegistry",
]
