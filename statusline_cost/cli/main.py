"""
CLI interface for statusline cost accounting.

Provides the status line entry point plus commands to inspect and maintain
the transcript cache and the cost ledger.
"""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from statusline_cost.config.loader import AppConfig, default_config, resolve_config
from statusline_cost.core.pricing import model_price
from statusline_cost.core.reporting import (
    LiveCostReporter,
    parse_status_input,
    render_cost_line,
)
from statusline_cost.core.scanner import TranscriptScanner
from statusline_cost.storage.cache import TTLCache
from statusline_cost.storage.errors import StorageError
from statusline_cost.storage.ledger import CostLedger
from statusline_cost.storage.models import LedgerEntry, format_timestamp

app = typer.Typer(help="Cost accounting for the Claude status line.")
ledger_app = typer.Typer(help="Inspect and maintain the cost ledger.")
cache_app = typer.Typer(help="Maintain the transcript total cache.")
app.add_typer(ledger_app, name="ledger")
app.add_typer(cache_app, name="cache")

console = Console()
err_console = Console(stderr=True)

logger = logging.getLogger(__name__)

EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def setup_logging(verbose: bool = False, debug: bool = False) -> None:
    """Send log records to stderr so stdout only carries command output."""
    level = logging.WARNING
    if verbose:
        level = logging.INFO
    if debug:
        level = logging.DEBUG

    logging.basicConfig(
        level=level,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


def _load_config(ctx: typer.Context) -> AppConfig:
    """Load configuration or exit with a failure code."""
    try:
        return resolve_config(ctx.obj.get("config_path"))
    except Exception as e:
        console.print(f"[red]Error loading config:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)


def _build_cache(config: AppConfig) -> TTLCache:
    return TTLCache(config.paths.cache_dir)


def _build_ledger(config: AppConfig) -> CostLedger:
    return CostLedger(
        config.paths.ledger_path,
        retention=config.ledger.retention,
        compaction_interval=config.ledger.compaction_interval,
    )


def _build_scanner(config: AppConfig) -> TranscriptScanner:
    return TranscriptScanner(
        config.paths.projects_dir,
        _build_cache(config),
        ttl=config.cache.transcript_ttl,
    )


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${amount:,.2f}"


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to a YAML config file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log progress to stderr"),
    debug: bool = typer.Option(False, "--debug", help="Log debug details to stderr"),
):
    """Statusline cost CLI."""
    setup_logging(verbose=verbose, debug=debug)
    ctx.obj = {"config_path": config}
    if ctx.invoked_subcommand is None:
        console.print("statusline-cost - Use --help to see available commands")


@app.command()
def statusline(ctx: typer.Context):
    """
    Render the cost segments for the status line.

    Reads the host's JSON status payload from stdin, records the live
    session cost in the ledger, and prints the 30-day, 7-day, today and
    live totals. Never fails: unavailable figures render as $0.00.
    """
    try:
        config = resolve_config(ctx.obj.get("config_path"))
    except Exception as e:
        logger.warning("Falling back to default config: %s", e)
        config = default_config()

    cache = _build_cache(config)
    try:
        cache.prune(config.cache.prune_max_age)
    except StorageError as e:
        logger.debug("Cache prune skipped: %s", e)

    status = parse_status_input(sys.stdin.read())
    scanner = TranscriptScanner(config.paths.projects_dir, cache, ttl=config.cache.transcript_ttl)
    reporter = LiveCostReporter(_build_ledger(config))
    typer.echo(render_cost_line(scanner, reporter, status))


@app.command()
def period(
    ctx: typer.Context,
    days: Optional[float] = typer.Option(
        None,
        "--days",
        "-d",
        help="Window length in days (default 30)"
    ),
    hours: Optional[float] = typer.Option(
        None,
        "--hours",
        help="Window length in hours"
    ),
):
    """Show transcript spend over a trailing window."""
    if days is not None and hours is not None:
        console.print("[red]Error:[/] use either --days or --hours, not both")
        sys.exit(EXIT_CODE_FAIL)
    if days is None and hours is None:
        days = 30
    label = f"{hours:g}h" if hours is not None else f"{days:g}d"
    if (hours if hours is not None else days) <= 0:
        console.print("[red]Error:[/] window must be positive")
        sys.exit(EXIT_CODE_FAIL)

    scanner = _build_scanner(_load_config(ctx))
    try:
        window = timedelta(hours=hours) if hours is not None else timedelta(days=days)
        total = scanner.calculate_period(window)
    except OverflowError:
        console.print(f"[red]Error:[/] window of {label} is out of range")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"Transcript spend (last {label}): {_format_currency(total)}")


@app.command()
def today(ctx: typer.Context):
    """Show transcript spend since local midnight."""
    scanner = _build_scanner(_load_config(ctx))
    total = scanner.calculate_today()
    console.print(f"Transcript spend (today): {_format_currency(total)}")


@app.command()
def price(model: str = typer.Argument(..., help="Model identifier")):
    """Show the rates a model identifier resolves to."""
    pricing = model_price(model)
    table = Table(title=f"Pricing for {model} (USD per million tokens)")
    table.add_column("Input", justify="right")
    table.add_column("Output", justify="right")
    table.add_column("Cache write", justify="right")
    table.add_column("Cache read", justify="right")
    table.add_row(
        _format_currency(float(pricing.input_per_million)),
        _format_currency(float(pricing.output_per_million)),
        _format_currency(float(pricing.cache_write_per_million)),
        _format_currency(float(pricing.cache_read_per_million)),
    )
    console.print(table)


@ledger_app.command("total")
def ledger_total(
    ctx: typer.Context,
    days: float = typer.Option(1, "--days", "-d", help="Window length in days"),
):
    """Show the ledger total (latest snapshot per session) for a window."""
    ledger = _build_ledger(_load_config(ctx))
    try:
        total = ledger.calculate_period(timedelta(days=days))
    except OverflowError:
        console.print(f"[red]Error:[/] window of {days:g}d is out of range")
        sys.exit(EXIT_CODE_FAIL)
    except StorageError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"Ledger spend (last {days:g}d): {_format_currency(total)}")


@ledger_app.command("record")
def ledger_record(
    ctx: typer.Context,
    session_id: str = typer.Argument(..., help="Session identifier"),
    cost: float = typer.Argument(..., help="Session cost so far in USD"),
):
    """Append a session cost snapshot to the ledger."""
    ledger = _build_ledger(_load_config(ctx))
    entry = LedgerEntry(session_id=session_id, cost=cost, timestamp=datetime.now().astimezone())
    try:
        ledger.append(entry)
    except StorageError as e:
        console.print(f"[red]Error recording cost:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Recorded {_format_currency(cost)} for {session_id}")


@ledger_app.command("compact")
def ledger_compact(ctx: typer.Context):
    """Drop ledger entries older than the retention horizon."""
    ledger = _build_ledger(_load_config(ctx))
    try:
        result = ledger.compact()
    except StorageError as e:
        console.print(f"[red]Error compacting ledger:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(
        f"[green]✓[/] Ledger compacted: {result.retained} retained, {result.dropped} dropped"
    )


@ledger_app.command("show")
def ledger_show(ctx: typer.Context):
    """List every entry in the ledger."""
    ledger = _build_ledger(_load_config(ctx))
    try:
        entries = ledger.read_entries()
    except StorageError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    if not entries:
        console.print("\n[dim]No ledger entries found.[/]")
        return

    table = Table(title="Cost ledger")
    table.add_column("Timestamp")
    table.add_column("Session")
    table.add_column("Cost", justify="right")
    for entry in entries:
        table.add_row(format_timestamp(entry.timestamp), entry.session_id, _format_currency(entry.cost))
    console.print(table)


@cache_app.command("prune")
def cache_prune(
    ctx: typer.Context,
    max_age_days: Optional[float] = typer.Option(
        None,
        "--max-age-days",
        help="Remove entries older than this (default from config)"
    ),
):
    """Remove stale cache entries."""
    config = _load_config(ctx)
    try:
        max_age = timedelta(days=max_age_days) if max_age_days is not None else config.cache.prune_max_age
    except OverflowError:
        console.print(f"[red]Error:[/] max age of {max_age_days:g}d is out of range")
        sys.exit(EXIT_CODE_FAIL)
    try:
        removed = _build_cache(config).prune(max_age)
    except StorageError as e:
        console.print(f"[red]Error pruning cache:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    console.print(f"[green]✓[/] Removed {removed} cache entries")


if __name__ == "__main__":
    app()
