"""
Data models for cost tracking.

Defines cost sources, derived summaries, and normalized provider usage.
Persisted records are serialized with camelCase keys so the stored JSON
matches what other clients of the same storage expect.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ai_cost_tracker.core.utils import parse_date


class BillingMode(Enum):
    """Cadence at which a cost recurs."""
    DAILY = "daily"
    MONTHLY = "monthly"
    YEARLY = "yearly"
    ONE_TIME = "one-time"


class SourceType(Enum):
    """Category of a cost source."""
    API = "api"
    SUBSCRIPTION = "subscription"
    HARDWARE = "hardware"
    ONE_TIME = "one-time"


class Currency(Enum):
    CNY = "CNY"
    USD = "USD"
    EUR = "EUR"


# camelCase wire name -> attribute name
_SOURCE_WIRE_FIELDS = {
    "id": "id",
    "name": "name",
    "type": "type",
    "provider": "provider",
    "billingMode": "billing_mode",
    "cost": "cost",
    "currency": "currency",
    "startDate": "start_date",
    "endDate": "end_date",
    "isEnabled": "is_enabled",
    "description": "description",
    "createdAt": "created_at",
    "updatedAt": "updated_at",
}
_SOURCE_ATTRS = set(_SOURCE_WIRE_FIELDS.values())


def _parse_timestamp(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def _optional_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_date(value)


def source_attribute(key: str) -> Optional[str]:
    """Attribute name for a camelCase or snake_case key, or None if unknown."""
    attr = _SOURCE_WIRE_FIELDS.get(key, key)
    return attr if attr in _SOURCE_ATTRS else None


def source_keys_to_attributes(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename keys to CostSource attribute names, dropping unknown keys."""
    fields: Dict[str, Any] = {}
    for key, value in data.items():
        attr = source_attribute(key)
        if attr:
            fields[attr] = value
    return fields


def coerce_source_fields(data: Mapping[str, Any]) -> Dict[str, Any]:
    """Map a raw record (camelCase or snake_case keys) onto CostSource attributes.

    Enum, date, and numeric fields are coerced; keys that are not CostSource
    attributes are dropped.

    Raises:
        ValueError: If an enum or date value is invalid
    """
    fields = source_keys_to_attributes(data)

    if "type" in fields and not isinstance(fields["type"], SourceType):
        fields["type"] = SourceType(fields["type"])
    if "billing_mode" in fields and not isinstance(fields["billing_mode"], BillingMode):
        fields["billing_mode"] = BillingMode(fields["billing_mode"])
    if "currency" in fields and not isinstance(fields["currency"], Currency):
        fields["currency"] = Currency(fields["currency"])
    if "cost" in fields:
        fields["cost"] = float(fields["cost"])
    for key in ("start_date", "end_date"):
        if key in fields:
            fields[key] = _optional_date(fields[key])
    for key in ("created_at", "updated_at"):
        if key in fields and fields[key] is not None:
            fields[key] = _parse_timestamp(fields[key])
    if "is_enabled" in fields:
        fields["is_enabled"] = bool(fields["is_enabled"])
    if fields.get("provider") == "":
        fields["provider"] = None
    return fields


@dataclass(frozen=True)
class CostSource:
    """A user-declared recurring or one-time expense.

    Records are immutable; the store replaces them wholesale on edit.
    """
    id: str
    name: str
    type: SourceType
    billing_mode: BillingMode
    cost: float
    currency: Currency
    created_at: datetime
    updated_at: datetime
    provider: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_enabled: bool = True
    description: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "name": self.name,
            "type": self.type.value,
            "billingMode": self.billing_mode.value,
            "cost": self.cost,
            "currency": self.currency.value,
            "isEnabled": self.is_enabled,
            "createdAt": self.created_at.isoformat(),
            "updatedAt": self.updated_at.isoformat(),
        }
        if self.provider:
            data["provider"] = self.provider
        if self.start_date:
            data["startDate"] = self.start_date.isoformat()
        if self.end_date:
            data["endDate"] = self.end_date.isoformat()
        if self.description:
            data["description"] = self.description
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CostSource":
        return cls(**coerce_source_fields(data))


@dataclass(frozen=True)
class MonthlyTrend:
    month: str  # YYYY-MM
    cost: float

    def to_dict(self) -> Dict[str, Any]:
        return {"month": self.month, "cost": self.cost}


@dataclass(frozen=True)
class CostSummary:
    """Derived totals for a set of cost sources. Never persisted."""
    total_daily_cost: float
    total_monthly_cost: float
    total_yearly_cost: float
    enabled_sources_count: int
    total_sources_count: int
    cost_by_provider: Dict[str, float] = field(default_factory=dict)
    cost_by_type: Dict[str, float] = field(default_factory=dict)
    monthly_trend: List[MonthlyTrend] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalDailyCost": self.total_daily_cost,
            "totalMonthlyCost": self.total_monthly_cost,
            "totalYearlyCost": self.total_yearly_cost,
            "enabledSourcesCount": self.enabled_sources_count,
            "totalSourcesCount": self.total_sources_count,
            "costByProvider": dict(self.cost_by_provider),
            "costByType": dict(self.cost_by_type),
            "monthlyTrend": [t.to_dict() for t in self.monthly_trend],
        }


@dataclass(frozen=True)
class NormalizedUsage:
    """Vendor-agnostic token usage record for a single model and day."""
    id: str
    model_id: str
    model_name: str
    provider: str
    input_tokens: int
    output_tokens: int
    cost: float
    currency: str
    date: str  # YYYY-MM-DD
    session_id: Optional[str] = None
    project_id: Optional[str] = None

    @property
    def total_tokens(self) -> int:
        """Total tokens used (input + output)."""
        return self.input_tokens + self.output_tokens

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "id": self.id,
            "modelId": self.model_id,
            "modelName": self.model_name,
            "provider": self.provider,
            "inputTokens": self.input_tokens,
            "outputTokens": self.output_tokens,
            "totalTokens": self.total_tokens,
            "cost": self.cost,
            "currency": self.currency,
            "date": self.date,
        }
        if self.session_id:
            data["sessionId"] = self.session_id
        if self.project_id:
            data["projectId"] = self.project_id
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "NormalizedUsage":
        # totalTokens is derived and ignored on read
        return cls(
            id=data["id"],
            model_id=data["modelId"],
            model_name=data["modelName"],
            provider=data["provider"],
            input_tokens=int(data.get("inputTokens", 0)),
            output_tokens=int(data.get("outputTokens", 0)),
            cost=float(data.get("cost", 0)),
            currency=data.get("currency") or "USD",
            date=data["date"],
            session_id=data.get("sessionId"),
            project_id=data.get("projectId"),
        )


@dataclass(frozen=True)
class ProviderConfig:
    """Credentials for one provider's usage API."""
    provider: str
    api_key: str
    base_url: Optional[str] = None
    is_enabled: bool = True

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "provider": self.provider,
            "apiKey": self.api_key,
            "isEnabled": self.is_enabled,
        }
        if self.base_url:
            data["baseUrl"] = self.base_url
        return data

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProviderConfig":
        return cls(
            provider=data["provider"],
            api_key=data.get("apiKey", ""),
            base_url=data.get("baseUrl") or None,
            is_enabled=bool(data.get("isEnabled", True)),
        )
