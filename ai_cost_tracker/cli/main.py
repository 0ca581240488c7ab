"""
CLI interface for AI Cost Tracker.

Provides command-line access to cost sources, summaries and provider usage.
"""

import asyncio
import json
import logging
import sys
from dataclasses import dataclass, field
from typing import List, Optional

import typer
import yaml
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from ai_cost_tracker.config.loader import TrackerConfig, load_tracker_config
from ai_cost_tracker.core.calculator import (
    calculate_amortized_cost,
    calculate_batch_costs,
    filter_by_date_range,
    format_cost,
    summarize_usage_costs,
)
from ai_cost_tracker.core.pricing import DEFAULT_PRICING
from ai_cost_tracker.core.utils import format_number
from ai_cost_tracker.core.validators import validate_cost_source
from ai_cost_tracker.demo.seed_demo_data import seed_demo_sources
from ai_cost_tracker.providers.base import ProviderValidationResult
from ai_cost_tracker.providers.config_store import ProviderConfigStore
from ai_cost_tracker.providers.connection import check_provider_connection, mock_connection_test
from ai_cost_tracker.providers.registry import ProviderRegistry, register_builtin_providers
from ai_cost_tracker.providers.usage import UsageSync, default_date_range
from ai_cost_tracker.storage.db import DEFAULT_DB_PATH, initialize_schema
from ai_cost_tracker.storage.kv import SQLiteKeyValueStore
from ai_cost_tracker.storage.models import BillingMode, Currency, ProviderConfig, SourceType
from ai_cost_tracker.storage.repository import CostTrackerRepository
from ai_cost_tracker.store.cost_store import CostSourceStore

app = typer.Typer()
console = Console()

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


@dataclass
class CliState:
    db_path: str = DEFAULT_DB_PATH
    config: TrackerConfig = field(default_factory=TrackerConfig)

    def repository(self) -> CostTrackerRepository:
        return CostTrackerRepository(SQLiteKeyValueStore(self.db_path))

    def store(self) -> CostSourceStore:
        return CostSourceStore(self.repository(), trend_months=self.config.trend_months)

    def provider_store(self) -> ProviderConfigStore:
        return ProviderConfigStore(self.repository())


def _state(ctx: typer.Context) -> CliState:
    if ctx.obj is None:
        ctx.obj = CliState()
    return ctx.obj


def _fail(message: str) -> None:
    console.print(f"[red]Error:[/] {message}")
    sys.exit(EXIT_CODE_FAIL)


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    db: Optional[str] = typer.Option(None, "--db", help="Path to the SQLite database"),
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to a YAML config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """AI Cost Tracker CLI."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    tracker_config = TrackerConfig()
    if config:
        try:
            tracker_config = load_tracker_config(config)
        except (FileNotFoundError, ValueError, yaml.YAMLError) as e:
            _fail(str(e))

    ctx.obj = CliState(db_path=db or tracker_config.storage_path, config=tracker_config)

    if ctx.invoked_subcommand is None:
        console.print("AI Cost Tracker - Use --help to see available commands")


@app.command()
def init(ctx: typer.Context):
    """Initialize the AI Cost Tracker database."""
    db_path = _state(ctx).db_path
    try:
        initialize_schema(db_path)
        console.print(f"[green]✓[/] Database initialized at {db_path}")
        sys.exit(EXIT_CODE_PASS)
    except Exception as e:
        console.print(f"[red]Error initializing database:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


# -- cost sources ------------------------------------------------------


@app.command()
def add(
    ctx: typer.Context,
    name: str = typer.Argument(..., help="Display name of the cost source"),
    cost: float = typer.Option(..., "--cost", help="Amount per billing period"),
    source_type: SourceType = typer.Option(SourceType.API, "--type", "-t", help="Source category"),
    billing_mode: BillingMode = typer.Option(BillingMode.MONTHLY, "--billing-mode", "-b", help="Billing cadence"),
    currency: Currency = typer.Option(Currency.USD, "--currency", help="Currency of the cost"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p", help="Provider name"),
    start_date: Optional[str] = typer.Option(None, "--start", help="Start date (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--end", help="End date (YYYY-MM-DD)"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
    disabled: bool = typer.Option(False, "--disabled", help="Add the source disabled"),
):
    """Add a cost source."""
    record = {
        "name": name,
        "type": source_type.value,
        "billingMode": billing_mode.value,
        "cost": cost,
        "currency": currency.value,
        "provider": provider,
        "startDate": start_date,
        "endDate": end_date,
        "description": description,
        "isEnabled": not disabled,
    }
    validation = validate_cost_source(record)
    if not validation.is_valid:
        _fail("; ".join(validation.messages()))

    source_id = _state(ctx).store().add_source(record)
    console.print(f"[green]✓[/] Added {name} ({source_id})")


@app.command("list")
def list_sources(
    ctx: typer.Context,
    source_type: Optional[SourceType] = typer.Option(None, "--type", "-t"),
    billing_mode: Optional[BillingMode] = typer.Option(None, "--billing-mode", "-b"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p"),
    enabled_only: bool = typer.Option(False, "--enabled", help="Only show enabled sources"),
):
    """List cost sources."""
    store = _state(ctx).store()
    sources = store.filter_sources(
        type=source_type,
        billing_mode=billing_mode,
        provider=provider,
        is_enabled=True if enabled_only else None,
    )
    if not sources:
        console.print("[dim]No cost sources found.[/]")
        return

    table = Table(title="Cost sources")
    table.add_column("ID", style="dim")
    table.add_column("Name")
    table.add_column("Type")
    table.add_column("Provider")
    table.add_column("Billing")
    table.add_column("Cost", justify="right")
    table.add_column("Enabled")
    for source in sources:
        table.add_row(
            source.id,
            source.name,
            source.type.value,
            source.provider or "-",
            source.billing_mode.value,
            format_cost(source.cost, source.currency.value),
            "yes" if source.is_enabled else "no",
        )
    console.print(table)


@app.command()
def update(
    ctx: typer.Context,
    source_id: str = typer.Argument(...),
    name: Optional[str] = typer.Option(None, "--name"),
    cost: Optional[float] = typer.Option(None, "--cost"),
    source_type: Optional[SourceType] = typer.Option(None, "--type", "-t"),
    billing_mode: Optional[BillingMode] = typer.Option(None, "--billing-mode", "-b"),
    currency: Optional[Currency] = typer.Option(None, "--currency"),
    provider: Optional[str] = typer.Option(None, "--provider", "-p"),
    start_date: Optional[str] = typer.Option(None, "--start"),
    end_date: Optional[str] = typer.Option(None, "--end"),
    description: Optional[str] = typer.Option(None, "--description", "-d"),
):
    """Change fields of a cost source."""
    store = _state(ctx).store()
    source = store.get_source(source_id)
    if source is None:
        _fail(f"No cost source with id {source_id}")

    changes = {
        "name": name,
        "cost": cost,
        "type": source_type.value if source_type else None,
        "billingMode": billing_mode.value if billing_mode else None,
        "currency": currency.value if currency else None,
        "provider": provider,
        "startDate": start_date,
        "endDate": end_date,
        "description": description,
    }
    changes = {key: value for key, value in changes.items() if value is not None}
    if not changes:
        _fail("Nothing to update")

    merged = source.to_dict()
    merged.update(changes)
    validation = validate_cost_source(merged)
    if not validation.is_valid:
        _fail("; ".join(validation.messages()))

    store.update_source(source_id, changes)
    console.print(f"[green]✓[/] Updated {source_id}")


@app.command()
def delete(ctx: typer.Context, source_ids: List[str] = typer.Argument(...)):
    """Delete one or more cost sources."""
    _state(ctx).store().bulk_delete(source_ids)
    console.print(f"[green]✓[/] Deleted {len(source_ids)} source(s)")


@app.command()
def duplicate(ctx: typer.Context, source_id: str = typer.Argument(...)):
    """Copy a cost source; the copy starts disabled."""
    new_id = _state(ctx).store().duplicate_source(source_id)
    if new_id is None:
        _fail(f"No cost source with id {source_id}")
    console.print(f"[green]✓[/] Duplicated {source_id} as {new_id}")


@app.command()
def enable(ctx: typer.Context, source_ids: List[str] = typer.Argument(...)):
    """Enable cost sources."""
    _state(ctx).store().bulk_enable(source_ids)
    console.print(f"[green]✓[/] Enabled {len(source_ids)} source(s)")


@app.command()
def disable(ctx: typer.Context, source_ids: List[str] = typer.Argument(...)):
    """Disable cost sources."""
    _state(ctx).store().bulk_disable(source_ids)
    console.print(f"[green]✓[/] Disabled {len(source_ids)} source(s)")


@app.command("set-mode")
def set_mode(
    ctx: typer.Context,
    mode: BillingMode = typer.Argument(..., help="New billing mode"),
    source_ids: List[str] = typer.Argument(...),
):
    """Change the billing mode of several cost sources."""
    _state(ctx).store().bulk_update_billing_mode(source_ids, mode)
    console.print(f"[green]✓[/] Set {len(source_ids)} source(s) to {mode.value}")


# -- summaries ---------------------------------------------------------


@app.command()
def summary(ctx: typer.Context):
    """Show daily, monthly and yearly totals."""
    store = _state(ctx).store()
    result = store.summary
    currency = store.default_currency.value

    console.print("\n[bold]AI Cost Summary[/bold]")
    console.print("-" * 40)
    console.print(f"Daily:   {format_cost(result.total_daily_cost, currency)}")
    console.print(f"Monthly: {format_cost(result.total_monthly_cost, currency)}")
    console.print(f"Yearly:  {format_cost(result.total_yearly_cost, currency)}")
    console.print(f"Sources: {result.enabled_sources_count} enabled / {result.total_sources_count} total")

    for title, breakdown in (("By provider", result.cost_by_provider), ("By type", result.cost_by_type)):
        if not breakdown:
            continue
        table = Table(title=f"{title} (daily)")
        table.add_column("Name")
        table.add_column("Daily cost", justify="right")
        for key, value in sorted(breakdown.items(), key=lambda item: -item[1]):
            table.add_row(key, format_cost(value, currency))
        console.print(table)


@app.command()
def trend(
    ctx: typer.Context,
    months: Optional[int] = typer.Option(None, "--months", "-m", min=1, help="Number of months to show"),
):
    """Show the monthly cost trend."""
    state = _state(ctx)
    store = CostSourceStore(state.repository(), trend_months=months or state.config.trend_months)
    currency = store.default_currency.value

    table = Table(title="Monthly trend")
    table.add_column("Month")
    table.add_column("Cost", justify="right")
    for point in store.summary.monthly_trend:
        table.add_row(point.month, format_cost(point.cost, currency))
    console.print(table)


@app.command()
def amortize(
    total: float = typer.Argument(..., help="Purchase price"),
    start_date: str = typer.Option(..., "--start", help="First day of use (YYYY-MM-DD)"),
    end_date: Optional[str] = typer.Option(None, "--end", help="Last day of use, defaults to today"),
    max_months: int = typer.Option(12, "--max-months"),
    currency: Currency = typer.Option(Currency.USD, "--currency"),
):
    """Spread a one-off purchase over the months it covers."""
    try:
        result = calculate_amortized_cost(total, start_date, end_date, max_months=max_months)
    except ValueError as e:
        _fail(str(e))
    console.print(
        f"{format_cost(result.monthly_cost, currency.value)}/month over "
        f"{result.effective_months} month(s) ({result.total_months} in range)"
    )


# -- import / export / settings ----------------------------------------


@app.command("import")
def import_sources(ctx: typer.Context, path: str = typer.Argument(..., help="JSON file to import")):
    """Import cost sources from a JSON file."""
    try:
        with open(path, 'r', encoding='utf-8') as f:
            payload = json.load(f)
    except (OSError, ValueError) as e:
        _fail(f"Cannot read {path}: {e}")

    records = payload.get("sources", []) if isinstance(payload, dict) else payload
    if not isinstance(records, list):
        _fail("Expected a list of cost sources")
    if not all(isinstance(r, dict) for r in records):
        _fail("Each cost source must be a JSON object")

    invalid = [r.get("name", "?") for r in records if not validate_cost_source(r).is_valid]
    if invalid:
        _fail(f"Invalid cost sources: {', '.join(map(str, invalid))}")

    ids = _state(ctx).store().import_sources(records)
    console.print(f"[green]✓[/] Imported {len(ids)} source(s)")


@app.command()
def export(
    ctx: typer.Context,
    output: Optional[str] = typer.Option(None, "--output", "-o", help="Write to a file instead of stdout"),
):
    """Export cost sources as JSON."""
    store = _state(ctx).store()
    text = json.dumps([s.to_dict() for s in store.export_sources()], indent=2, ensure_ascii=False)
    if output is None:
        typer.echo(text)
        return
    with open(output, 'w', encoding='utf-8') as f:
        f.write(text)
    console.print(f"[green]✓[/] Exported {len(store.sources)} source(s) to {output}")


@app.command()
def reset(
    ctx: typer.Context,
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
):
    """Delete every cost source and restore default settings."""
    if not yes and not typer.confirm("Delete all cost sources?"):
        console.print("Aborted")
        sys.exit(EXIT_CODE_FAIL)
    _state(ctx).store().reset()
    console.print("[green]✓[/] All cost sources removed")


@app.command()
def currency(ctx: typer.Context, code: Optional[Currency] = typer.Argument(None)):
    """Show or set the default display currency."""
    store = _state(ctx).store()
    if code is None:
        console.print(store.default_currency.value)
        return
    store.set_default_currency(code)
    console.print(f"[green]✓[/] Default currency set to {code.value}")


# -- providers ---------------------------------------------------------


def _registry() -> ProviderRegistry:
    return register_builtin_providers(ProviderRegistry())


@app.command()
def providers(ctx: typer.Context):
    """List supported providers and saved credentials."""
    saved = {c.provider: c for c in _state(ctx).provider_store().list_configs()}
    for config in _state(ctx).config.provider_configs():
        saved.setdefault(config.provider, config)

    table = Table(title="Providers")
    table.add_column("Name")
    table.add_column("Display name")
    table.add_column("Features")
    table.add_column("Configured")
    for info in _registry().list_metadata():
        config = saved.get(info.name)
        status = "-" if config is None else ("enabled" if config.is_enabled else "disabled")
        table.add_row(info.name, info.display_name, ", ".join(sorted(info.features)), status)
    console.print(table)


def _sync_configs(state: CliState) -> List[ProviderConfig]:
    """Saved credentials, overridden by those in the config file."""
    configs = {c.provider: c for c in state.provider_store().list_configs()}
    for config in state.config.provider_configs():
        configs[config.provider] = config
    return list(configs.values())


@app.command()
def sync(
    ctx: typer.Context,
    start_date: Optional[str] = typer.Option(None, "--start"),
    end_date: Optional[str] = typer.Option(None, "--end"),
):
    """Fetch usage from every enabled provider."""
    state = _state(ctx)
    configs = [c for c in _sync_configs(state) if c.is_enabled]
    if not configs:
        console.print("[yellow]No enabled providers configured[/]")
        sys.exit(EXIT_CODE_PASS)

    usage_sync = UsageSync(_registry(), state.repository(), timeouts=state.config.timeouts)
    results = asyncio.run(usage_sync.sync(configs, start_date, end_date))

    table = Table(title="Usage sync")
    table.add_column("Provider")
    table.add_column("Status")
    table.add_column("Records", justify="right")
    table.add_column("Cost", justify="right")
    table.add_column("Message")
    for name, result in results.items():
        if result.success:
            table.add_row(
                name, "[green]ok[/]", str(len(result.data)),
                format_cost(result.total_cost, "USD"), result.message or "",
            )
        else:
            table.add_row(name, f"[red]{result.error_code.value}[/]", "0", "-", result.error or "")
    console.print(table)

    if not any(r.success for r in results.values()):
        sys.exit(EXIT_CODE_FAIL)


@app.command("usage-costs")
def usage_costs(
    ctx: typer.Context,
    start_date: Optional[str] = typer.Option(None, "--start"),
    end_date: Optional[str] = typer.Option(None, "--end"),
):
    """Break down the last synced usage by model."""
    repository = _state(ctx).repository()
    usage = repository.load_usage()
    if not usage:
        console.print("[dim]No synced usage. Run `ai-cost-tracker sync` first.[/]")
        return

    default_start, default_end = default_date_range()
    usage = filter_by_date_range(usage, start_date or default_start, end_date or default_end)
    reported = summarize_usage_costs(usage)
    estimated = calculate_batch_costs(usage, DEFAULT_PRICING.prices)
    last_sync = repository.get_last_sync()

    table = Table(title="Usage cost by model")
    table.add_column("Model")
    table.add_column("Reported", justify="right")
    table.add_column("Estimated", justify="right")
    for model in sorted(set(reported.by_model) | set(estimated.by_model)):
        table.add_row(
            model,
            format_cost(reported.by_model.get(model, 0.0), "USD"),
            format_cost(estimated.by_model.get(model, 0.0), "USD"),
        )
    console.print(table)
    console.print(f"Records: {format_number(len(usage))}")
    console.print(f"Reported total:  {format_cost(reported.total, 'USD')}")
    console.print(f"Estimated total: {format_cost(estimated.total, 'USD')}")
    if last_sync:
        console.print(f"[dim]Last sync: {last_sync.isoformat(timespec='seconds')}[/]")


async def _mock_connection_check(config: ProviderConfig) -> ProviderValidationResult:
    return await mock_connection_test(True, delay=0)


@app.command("check-connection")
def check_connection(
    ctx: typer.Context,
    provider: str = typer.Argument(..., help="Provider name"),
    api_key: str = typer.Option(..., "--api-key", prompt=True, hide_input=True),
    base_url: Optional[str] = typer.Option(None, "--base-url"),
    save: bool = typer.Option(False, "--save", help="Save the credentials when the check passes"),
    mock: bool = typer.Option(False, "--mock", help="Simulate a successful check without network access"),
):
    """Test provider credentials, optionally saving them."""
    state = _state(ctx)
    config = ProviderConfig(provider=provider, api_key=api_key, base_url=base_url)

    if save:
        store = (
            ProviderConfigStore(state.repository(), connection_check=_mock_connection_check)
            if mock else state.provider_store()
        )
        result = asyncio.run(store.save_config(config))
    elif mock:
        result = asyncio.run(mock_connection_test(True, delay=0))
    else:
        result = asyncio.run(check_provider_connection(
            provider, api_key, base_url, timeout=state.config.timeouts.connection_test,
        ))

    if result.is_valid:
        console.print(f"[green]✓[/] {result.message}")
        sys.exit(EXIT_CODE_PASS)
    code = f" ({result.error_code.value})" if result.error_code else ""
    console.print(f"[red]✗[/] {result.message}{code}")
    sys.exit(EXIT_CODE_FAIL)


@app.command()
def demo(ctx: typer.Context):
    """Load a set of example cost sources."""
    ids = seed_demo_sources(_state(ctx).store())
    console.print(f"[green]✓[/] Inserted {len(ids)} demo cost sources")


if __name__ == "__main__":
    app()
