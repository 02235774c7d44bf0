from __future__ import annotations

from typing import Any, Mapping

from somnia_agent.errors import ConfigurationError, ValidationError


def text_field(params: Mapping[str, Any], name: str, default: str = "") -> str:
    return str(params.get(name) or default).strip()


def optional_text(params: Mapping[str, Any], name: str) -> str | None:
    value = text_field(params, name)
    return value or None


def configured_address(value: str, env_name: str) -> str:
    address = str(value or "").strip()
    if not address:
        raise ConfigurationError(f"{env_name} is not configured.")
    return address


def required_text(params: Mapping[str, Any], name: str) -> str:
    value = text_field(params, name)
    if not value:
        raise ValidationError(f"{name} must not be empty.", details={"field": name})
    return value
