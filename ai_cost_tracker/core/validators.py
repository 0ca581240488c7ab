"""
Form-level validation for cost sources and provider credentials.

Validation never raises; problems are reported per field so a UI or CLI can
show them next to the offending input.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Pattern, Tuple

from ai_cost_tracker.core.utils import parse_date
from ai_cost_tracker.storage.models import (
    BillingMode,
    Currency,
    ProviderConfig,
    SourceType,
    source_keys_to_attributes,
)

MAX_NAME_LENGTH = 100
MAX_DESCRIPTION_LENGTH = 500
MAX_COST = 9_999_999


@dataclass
class ValidationResult:
    """Outcome of validating one record."""
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        return not self.errors

    def messages(self) -> List[str]:
        return [f"{name}: {message}" for name, message in self.errors.items()]


@dataclass(frozen=True)
class ApiKeyRule:
    name: str
    pattern: Pattern
    message: str


_DEFAULT_KEY_RULES: Tuple[ApiKeyRule, ...] = (
    ApiKeyRule("min_length", re.compile(r"^.{8,}$"), "API key must be at least 8 characters"),
    ApiKeyRule("no_whitespace", re.compile(r"^\S+$"), "API key must not contain whitespace"),
)

_PROVIDER_KEY_RULES: Dict[str, Tuple[ApiKeyRule, ...]] = {
    "openai": (
        ApiKeyRule("starts_with_sk", re.compile(r"^sk-[A-Za-z0-9_-]{20,}$"), "API key must start with sk-"),
    ),
    "anthropic": (
        ApiKeyRule("starts_with_sk_ant", re.compile(r"^sk-ant-[A-Za-z0-9_-]{30,}$"), "API key must start with sk-ant-"),
    ),
}


def get_api_key_rules(provider: str) -> Tuple[ApiKeyRule, ...]:
    return _PROVIDER_KEY_RULES.get((provider or "").lower(), _DEFAULT_KEY_RULES)


def validate_api_key(api_key: str, provider: str) -> List[str]:
    """Return the messages of every rule the key fails."""
    return [rule.message for rule in get_api_key_rules(provider) if not rule.pattern.match(api_key or "")]


def validate_provider_config(config: ProviderConfig) -> ValidationResult:
    result = ValidationResult()

    if not config.provider or not config.provider.strip():
        result.errors["provider"] = "Provider name is required"

    if not config.api_key:
        result.errors["api_key"] = "API key is required"
    else:
        key_errors = validate_api_key(config.api_key, config.provider)
        if key_errors:
            result.errors["api_key"] = "; ".join(key_errors)

    if config.base_url and not re.match(r"^https?://", config.base_url):
        result.errors["base_url"] = "Base URL must start with http:// or https://"

    return result


def _check_enum(result: ValidationResult, data: Mapping[str, Any], key: str, enum_cls, label: str) -> None:
    value = data.get(key)
    if value is None or value == "":
        result.errors[key] = f"{label} is required"
        return
    if isinstance(value, enum_cls):
        return
    try:
        enum_cls(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_cls)
        result.errors[key] = f"{label} must be one of: {allowed}"


def _check_date(result: ValidationResult, data: Mapping[str, Any], key: str) -> Optional[Any]:
    value = data.get(key)
    if value is None or value == "":
        return None
    try:
        return parse_date(value)
    except ValueError:
        result.errors[key] = "Must be an ISO date (YYYY-MM-DD)"
        return None


def validate_cost_source(data: Mapping[str, Any]) -> ValidationResult:
    """Validate a cost source form submission.

    Accepts camelCase or snake_case keys. Errors are keyed by snake_case
    field name.
    """
    fields = source_keys_to_attributes(data)
    result = ValidationResult()

    name = fields.get("name")
    if not name or not str(name).strip():
        result.errors["name"] = "Name is required"
    elif len(str(name)) > MAX_NAME_LENGTH:
        result.errors["name"] = f"Name must be at most {MAX_NAME_LENGTH} characters"

    _check_enum(result, fields, "type", SourceType, "Type")
    _check_enum(result, fields, "billing_mode", BillingMode, "Billing mode")
    _check_enum(result, fields, "currency", Currency, "Currency")

    cost = fields.get("cost")
    try:
        cost_value = float(cost)
    except (TypeError, ValueError):
        result.errors["cost"] = "Cost must be a number"
    else:
        if not cost_value > 0:
            result.errors["cost"] = "Cost must be greater than 0"
        elif cost_value > MAX_COST:
            result.errors["cost"] = f"Cost must not exceed {MAX_COST:,}"

    start = _check_date(result, fields, "start_date")
    end = _check_date(result, fields, "end_date")
    if start and end and end < start:
        result.errors["end_date"] = "End date must not be before start date"

    description = fields.get("description")
    if description and len(str(description)) > MAX_DESCRIPTION_LENGTH:
        result.errors["description"] = f"Description must be at most {MAX_DESCRIPTION_LENGTH} characters"

    return result
