"""
Cost normalization and aggregation.

Reconciles cost sources billed daily, monthly, yearly or once into comparable
daily/monthly/yearly figures and aggregates them into summaries and trends.

Every function is pure: no stored state, no I/O, safe to call concurrently.
Inputs are assumed validated upstream; degenerate numeric input yields
degenerate output (0 or NaN) instead of an exception.
"""

from dataclasses import dataclass, field
from datetime import date
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Union

from .currency import format_currency
from .pricing import ModelPricing
from .utils import (
    DateLike,
    last_day_of_month,
    month_key,
    parse_date,
    round_cost,
    shift_months,
)
from ai_cost_tracker.storage.models import (
    BillingMode,
    CostSource,
    CostSummary,
    MonthlyTrend,
    NormalizedUsage,
)

DAYS_IN_MONTH = 30
DAYS_IN_YEAR = 365
DEFAULT_TREND_MONTHS = 6
UNASSIGNED_PROVIDER = "custom"


@dataclass(frozen=True)
class BatchCosts:
    """Token cost of a batch of usage records."""
    total: float
    by_model: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class UsageCostBreakdown:
    """Reported usage cost grouped by model and by day."""
    total: float
    by_model: Dict[str, float] = field(default_factory=dict)
    by_day: Dict[str, float] = field(default_factory=dict)


@dataclass(frozen=True)
class AmortizedCost:
    monthly_cost: float
    total_months: int
    effective_months: int


@dataclass(frozen=True)
class CostComparison:
    current_monthly: float
    previous_monthly: float
    change: float
    change_percent: float


def _billing_mode(mode: Union[BillingMode, str]) -> Optional[BillingMode]:
    if isinstance(mode, BillingMode):
        return mode
    try:
        return BillingMode(mode)
    except ValueError:
        return None


def normalize_to_daily(cost: float, billing_mode: Union[BillingMode, str]) -> float:
    """Convert a cost to its daily equivalent.

    Monthly costs are spread over 30 days and yearly costs over 365. One-time
    costs are taken at face value as a daily figure, so they scale back up
    like recurring costs in monthly/yearly totals. Unknown modes are treated
    as daily.

    Args:
        cost: Cost in the source's native cadence
        billing_mode: Cadence of ``cost``

    Returns:
        Daily cost rounded half-up to cents
    """
    mode = _billing_mode(billing_mode)
    if mode == BillingMode.MONTHLY:
        return round_cost(cost / DAYS_IN_MONTH)
    if mode == BillingMode.YEARLY:
        return round_cost(cost / DAYS_IN_YEAR)
    return round_cost(cost)


def normalize_to_monthly(cost: float, billing_mode: Union[BillingMode, str]) -> float:
    return round_cost(normalize_to_daily(cost, billing_mode) * DAYS_IN_MONTH)


def normalize_to_yearly(cost: float, billing_mode: Union[BillingMode, str]) -> float:
    return round_cost(normalize_to_daily(cost, billing_mode) * DAYS_IN_YEAR)


def calculate_summary(
    sources: Sequence[CostSource],
    months: int = DEFAULT_TREND_MONTHS,
    today: Optional[date] = None,
) -> CostSummary:
    """Aggregate cost sources into a summary.

    Only enabled sources contribute to totals, breakdowns and the trend;
    ``total_sources_count`` counts every source. Monthly and yearly totals
    are derived from the rounded daily total so the three figures always
    agree (monthly == daily * 30).

    Args:
        sources: All cost sources, enabled or not
        months: Length of the trailing trend window
        today: Reference date for the trend window (defaults to today)

    Returns:
        CostSummary for the given sources
    """
    enabled = [s for s in sources if s.is_enabled]

    cost_by_provider: Dict[str, float] = {}
    cost_by_type: Dict[str, float] = {}
    total_daily = 0.0

    for source in enabled:
        daily_cost = normalize_to_daily(source.cost, source.billing_mode)
        total_daily += daily_cost

        provider = source.provider or UNASSIGNED_PROVIDER
        cost_by_provider[provider] = cost_by_provider.get(provider, 0) + daily_cost

        source_type = getattr(source.type, "value", source.type)
        cost_by_type[source_type] = cost_by_type.get(source_type, 0) + daily_cost

    total_daily_cost = round_cost(total_daily)

    return CostSummary(
        total_daily_cost=total_daily_cost,
        total_monthly_cost=round_cost(total_daily_cost * DAYS_IN_MONTH),
        total_yearly_cost=round_cost(total_daily_cost * DAYS_IN_YEAR),
        enabled_sources_count=len(enabled),
        total_sources_count=len(sources),
        cost_by_provider=cost_by_provider,
        cost_by_type=cost_by_type,
        monthly_trend=calculate_monthly_trend(enabled, months=months, today=today),
    )


def _is_active_in(source: CostSource, month_start: date, month_end: date) -> bool:
    """Whether the source's active window overlaps the month."""
    if source.start_date and month_end < parse_date(source.start_date):
        return False
    if source.end_date and month_start > parse_date(source.end_date):
        return False
    return True


def calculate_monthly_trend(
    sources: Iterable[CostSource],
    months: int = DEFAULT_TREND_MONTHS,
    today: Optional[date] = None,
) -> List[MonthlyTrend]:
    """Monthly cost for each of the trailing ``months`` calendar months.

    The window ends at the current month inclusive and is ordered oldest
    first. A source counts toward a month when its start/end dates overlap
    that month. The caller decides which sources to pass; no enabled
    filtering happens here.
    """
    anchor = today or date.today()
    sources = list(sources)
    trend = []

    for offset in range(months - 1, -1, -1):
        month_start = shift_months(anchor, -offset)
        month_end = last_day_of_month(month_start)

        month_cost = 0.0
        for source in sources:
            if _is_active_in(source, month_start, month_end):
                month_cost += normalize_to_monthly(source.cost, source.billing_mode)

        trend.append(MonthlyTrend(month=month_key(month_start), cost=round_cost(month_cost)))

    return trend


def calculate_token_cost(input_tokens: int, output_tokens: int, pricing: ModelPricing) -> float:
    """Cost of a request given per-million token prices."""
    input_cost = (input_tokens / 1_000_000) * pricing.input_price_per_million
    output_cost = (output_tokens / 1_000_000) * pricing.output_price_per_million
    return round_cost(input_cost + output_cost)


def calculate_batch_costs(
    usages: Iterable[NormalizedUsage],
    pricing_by_model_id: Mapping[str, ModelPricing],
) -> BatchCosts:
    """Price a batch of usage records.

    Records whose model has no pricing contribute 0 to the total and to their
    model bucket; missing pricing is not an error.
    """
    by_model: Dict[str, float] = {}
    total = 0.0

    for usage in usages:
        pricing = pricing_by_model_id.get(usage.model_id)
        cost = (
            calculate_token_cost(usage.input_tokens, usage.output_tokens, pricing)
            if pricing
            else 0.0
        )
        total += cost
        by_model[usage.model_name] = by_model.get(usage.model_name, 0) + cost

    return BatchCosts(total=round_cost(total), by_model=by_model)


def summarize_usage_costs(usages: Iterable[NormalizedUsage]) -> UsageCostBreakdown:
    """Group provider-reported usage cost by model and by day."""
    by_model: Dict[str, float] = {}
    by_day: Dict[str, float] = {}
    total = 0.0

    for usage in usages:
        total += usage.cost
        by_model[usage.model_name] = by_model.get(usage.model_name, 0) + usage.cost
        by_day[usage.date] = by_day.get(usage.date, 0) + usage.cost

    return UsageCostBreakdown(total=round_cost(total), by_model=by_model, by_day=by_day)


def filter_by_date_range(
    usages: Iterable[NormalizedUsage],
    start_date: DateLike,
    end_date: DateLike,
) -> List[NormalizedUsage]:
    """Usage records dated within [start_date, end_date] inclusive."""
    start = parse_date(start_date)
    end = parse_date(end_date)
    return [u for u in usages if start <= parse_date(u.date) <= end]


def calculate_amortized_cost(
    total_cost: float,
    start_date: DateLike,
    end_date: Optional[DateLike] = None,
    max_months: int = 12,
) -> AmortizedCost:
    """Spread a one-off purchase over the calendar months it covers.

    Months are counted inclusively between start and end (end defaults to
    today), with a minimum of 1, and capped at ``max_months``.

    Args:
        total_cost: Purchase price
        start_date: First day of use
        end_date: Last day of use, or None for today
        max_months: Upper bound on months to spread over

    Returns:
        AmortizedCost with the per-month share
    """
    start = parse_date(start_date)
    end = parse_date(end_date) if end_date else date.today()

    total_months = max(1, (end.year - start.year) * 12 + (end.month - start.month) + 1)
    effective_months = min(total_months, max_months)
    monthly_cost = round_cost(total_cost / effective_months) if effective_months > 0 else 0.0

    return AmortizedCost(
        monthly_cost=monthly_cost,
        total_months=total_months,
        effective_months=effective_months,
    )


def compare_costs(
    current_sources: Sequence[CostSource],
    previous_sources: Sequence[CostSource],
) -> CostComparison:
    """Compare the monthly totals of two independent sets of sources."""
    current_monthly = calculate_summary(current_sources).total_monthly_cost
    previous_monthly = calculate_summary(previous_sources).total_monthly_cost
    change = round_cost(current_monthly - previous_monthly)

    change_percent = 0.0
    if previous_monthly > 0:
        change_percent = round_cost((current_monthly - previous_monthly) / previous_monthly * 100)

    return CostComparison(
        current_monthly=round_cost(current_monthly),
        previous_monthly=round_cost(previous_monthly),
        change=change,
        change_percent=change_percent,
    )


def format_cost(cost: float, currency: str = "CNY") -> str:
    return format_currency(cost, currency)
