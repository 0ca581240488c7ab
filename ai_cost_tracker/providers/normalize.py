"""
Mapping of raw provider usage payloads onto NormalizedUsage.

Vendors disagree on field names (``input_tokens`` vs ``prompt_tokens`` vs
``inputTokens``); the first present alias wins.
"""

from datetime import date
from typing import Any, Iterable, List, Mapping, Optional

from ai_cost_tracker.core.utils import generate_id
from ai_cost_tracker.storage.models import NormalizedUsage

DEFAULT_CURRENCY = "USD"

_ALIASES = {
    "id": ("id", "usage_id", "request_id"),
    "model_id": ("model_id", "modelId", "model"),
    "model_name": ("model_name", "modelName", "name", "model"),
    "input_tokens": ("input_tokens", "inputTokens", "prompt_tokens", "n_context_tokens_total"),
    "output_tokens": ("output_tokens", "outputTokens", "completion_tokens", "n_generated_tokens_total"),
    "cost": ("cost", "total_cost", "cost_usd"),
    "currency": ("currency",),
    "date": ("date", "day", "usage_date"),
    "session_id": ("session_id", "sessionId"),
    "project_id": ("project_id", "projectId"),
}


def _pick(raw: Mapping[str, Any], field: str, default: Any = None) -> Any:
    for alias in _ALIASES[field]:
        value = raw.get(alias)
        if value is not None and value != "":
            return value
    return default


def normalize_usage_record(
    raw: Mapping[str, Any],
    provider: str,
    default_date: Optional[str] = None,
) -> NormalizedUsage:
    """Translate one vendor usage item into a NormalizedUsage.

    Missing ids get a fresh generated id, missing currency defaults to USD,
    and missing dates default to ``default_date`` or today.

    Raises:
        ValueError: If token or cost fields are not numeric
    """
    model_id = str(_pick(raw, "model_id", "unknown"))
    return NormalizedUsage(
        id=str(_pick(raw, "id") or generate_id()),
        model_id=model_id,
        model_name=str(_pick(raw, "model_name", model_id)),
        provider=provider,
        input_tokens=int(_pick(raw, "input_tokens", 0)),
        output_tokens=int(_pick(raw, "output_tokens", 0)),
        cost=float(_pick(raw, "cost", 0)),
        currency=str(_pick(raw, "currency", DEFAULT_CURRENCY)).upper(),
        date=str(_pick(raw, "date", default_date or date.today().isoformat()))[:10],
        session_id=_pick(raw, "session_id"),
        project_id=_pick(raw, "project_id"),
    )


def normalize_usage_records(
    items: Iterable[Mapping[str, Any]],
    provider: str,
    default_date: Optional[str] = None,
) -> List[NormalizedUsage]:
    return [normalize_usage_record(item, provider, default_date) for item in items or []]
