# src/config/options.py — v1
"""Per-call resolution options: static schema, defaults and field-wise merge.

Options arrive as a plain mapping with camelCase keys (the names embedding
pages already use). Every key is validated on its own so that one bad
value is reported and skipped without discarding the rest.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from id5resolver.config.settings import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_REFRESH_IN_SECONDS = 7200
DEFAULT_COOKIE_EXPIRATION_IN_SECONDS = 90 * 24 * 60 * 60
DEFAULT_MAX_CASCADES = 8


class AbTestingConfig(BaseModel):
    """A/B testing switch forwarded to the identity service."""

    model_config = ConfigDict(strict=True, populate_by_name=True)

    enabled: bool = False
    control_group_pct: float = Field(default=0.0, alias="controlGroupPct", ge=0, le=1)


class Id5Options(BaseModel):
    """Validated options for one resolution status."""

    model_config = ConfigDict(
        strict=True,
        populate_by_name=True,
        validate_assignment=True,
        arbitrary_types_allowed=True,
    )

    partner_id: int | None = Field(default=None, alias="partnerId")
    refresh_in_seconds: float = Field(
        default=DEFAULT_REFRESH_IN_SECONDS, alias="refreshInSeconds", ge=0
    )
    cookie_expiration_in_seconds: float = Field(
        default=DEFAULT_COOKIE_EXPIRATION_IN_SECONDS,
        alias="cookieExpirationInSeconds",
        gt=0,
    )
    partner_user_id: str | None = Field(default=None, alias="partnerUserId")
    cmp_api: Literal["iab", "static"] = Field(default="iab", alias="cmpApi")
    consent_data: dict[str, Any] | None = Field(default=None, alias="consentData")
    pd: str = ""
    custom_hostname: str = Field(default="", alias="customHostname")
    auto_switch_hostname: bool = Field(default=True, alias="autoSwitchHostname")
    allow_id5_without_consent_api: bool = Field(
        default=False, alias="allowID5WithoutConsentApi"
    )
    allow_local_storage_without_consent_api: bool = Field(
        default=False, alias="allowLocalStorageWithoutConsentApi"
    )
    debug_bypass_consent: bool = Field(default=False, alias="debugBypassConsent")
    debug: bool = False
    callback: Callable[..., Any] | None = None
    callback_timeout_in_ms: int | None = Field(
        default=None,
        alias="callbackTimeoutInMs",
        ge=0,
        description="Validated and kept only; the caller schedules the timeout.",
    )
    max_cascades: int = Field(default=DEFAULT_MAX_CASCADES, alias="maxCascades")
    provider: str | None = None
    ab_testing: AbTestingConfig = Field(
        default_factory=AbTestingConfig, alias="abTesting"
    )

    @property
    def allow_without_consent_api(self) -> bool:
        """Either bypass flag lets storage be used without a consent API."""
        return (
            self.allow_id5_without_consent_api
            or self.allow_local_storage_without_consent_api
        )


class OptionDiagnostic(BaseModel):
    """One rejected option key."""

    key: str
    message: str


# alias or field name -> field name
_FIELD_LOOKUP: dict[str, str] = {}
for _name, _info in Id5Options.model_fields.items():
    _FIELD_LOOKUP[_name] = _name
    if _info.alias:
        _FIELD_LOOKUP[_info.alias] = _name


def merge_options(
    base: Id5Options | None,
    updates: Mapping[str, Any] | None,
) -> tuple[Id5Options, list[OptionDiagnostic]]:
    """Apply ``updates`` on top of ``base`` one key at a time.

    Args:
        base: Current options (defaults if None). Never mutated.
        updates: camelCase (or snake_case) keyed option values.

    Returns:
        The merged options and one diagnostic per rejected key.
    """
    # Shallow copy: values are replaced, never mutated in place.
    merged = base.model_copy() if base is not None else Id5Options()
    diagnostics: list[OptionDiagnostic] = []

    if updates is None:
        return merged, diagnostics
    if not isinstance(updates, Mapping):
        diagnostics.append(
            OptionDiagnostic(key="*", message="options must be a mapping")
        )
        logger.error("Options must be a mapping, got %s", type(updates).__name__)
        return merged, diagnostics

    for key, value in updates.items():
        field_name = _FIELD_LOOKUP.get(key)
        if field_name is None:
            diagnostics.append(OptionDiagnostic(key=key, message="unknown option"))
            logger.error("Option %s is not recognized", key)
            continue
        if field_name == "ab_testing" and isinstance(value, Mapping):
            try:
                value = AbTestingConfig.model_validate(dict(value))
            except ValidationError as e:
                diagnostics.append(OptionDiagnostic(key=key, message=_first_error(e)))
                logger.error("Option %s rejected: %s", key, _first_error(e))
                continue
        try:
            setattr(merged, field_name, value)
        except ValidationError as e:
            diagnostics.append(OptionDiagnostic(key=key, message=_first_error(e)))
            logger.error(
                "Option %s rejected (got %s): %s",
                key, type(value).__name__, _first_error(e),
            )

    return merged, diagnostics


def build_options(
    raw: Mapping[str, Any] | None,
) -> tuple[Id5Options, list[OptionDiagnostic]]:
    """Build options for a new status; partnerId is mandatory.

    Raises:
        ConfigurationError: If no valid partnerId was supplied.
    """
    options, diagnostics = merge_options(None, raw)
    if options.partner_id is None:
        raise ConfigurationError("partnerId is required and must be a number")
    return options, diagnostics


def _first_error(error: ValidationError) -> str:
    errs = error.errors()
    return errs[0]["msg"] if errs else str(error)
