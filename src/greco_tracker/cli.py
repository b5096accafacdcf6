"""Click-based CLI for greco-tracker.

Thin read-only wrapper around the query and valuation modules. Zero business
logic: every command delegates to the services built from config.
"""

from __future__ import annotations

import asyncio
import json
import logging
from datetime import datetime

import click
from rich.console import Console
from rich.table import Table

console = Console(stderr=True)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _run_async(coro):
    """Run an async coroutine from synchronous Click code."""
    return asyncio.run(coro)


def _load_services(ctx: click.Context):
    """Load config and build services lazily, caching on first call."""
    if "services" not in ctx.obj:
        from greco_tracker.core import load_config
        from greco_tracker.services import create_services

        config = load_config(config_path=ctx.obj.get("config_path"))
        ctx.obj["services"] = create_services(config)
    return ctx.obj["services"]


def _invoke(ctx: click.Context, fn) -> None:
    """Run `fn(services)` and turn library errors into exit code 1."""
    from greco_tracker.core import GrecoError

    try:
        services = _load_services(ctx)
        fn(services)
    except GrecoError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1) from e


def _fmt_price(value: float | None) -> str:
    return "N/A" if value is None else f"{value:,.4f}"


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.option(
    "--config",
    "-c",
    type=click.Path(exists=True),
    envvar="GRECO_CONFIG",
    default=None,
    help="Path to greco.yml config file.",
)
@click.option(
    "--verbose",
    "-v",
    is_flag=True,
    default=False,
    help="Enable verbose output.",
)
@click.version_option(package_name="greco-tracker")
@click.pass_context
def cli(ctx: click.Context, config: str | None, verbose: bool) -> None:
    """Greco Tracker: commodity-basket purchasing power over time."""
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config
    ctx.obj["verbose"] = verbose
    ctx.obj["console"] = console


# ---------------------------------------------------------------------------
# status
# ---------------------------------------------------------------------------


@cli.command()
@click.pass_context
def status(ctx: click.Context) -> None:
    """Show date-range index statistics."""

    def _show(services) -> None:
        stats = services.index.stats()
        commodities = services.index.list_commodities()

        table = Table(title="Greco Price Store")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")

        table.add_row("Index file", str(services.index.path))
        table.add_row("Generated at", str(stats.generated_at or "N/A"))
        table.add_row("Commodities", str(stats.commodity_count))
        table.add_row("Total records", f"{stats.total_records:,}")
        table.add_row("Total size", f"{stats.total_size_mb:.2f} MB")
        table.add_section()
        for entry in sorted(commodities, key=lambda e: e.commodity_id):
            span = (
                f"{entry.date_range.start} → {entry.date_range.end}"
                if entry.date_range
                else "N/A"
            )
            table.add_row(entry.commodity_id, f"{len(entry.shards)} shards, {span}")

        console.print(table)

    _invoke(ctx, _show)


# ---------------------------------------------------------------------------
# prices
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("commodity")
@click.option("--start", "-s", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="Start date (YYYY-MM-DD).")
@click.option("--end", "-e", type=click.DateTime(formats=["%Y-%m-%d"]), default=None,
              help="End date (YYYY-MM-DD).")
@click.option("--limit", "-n", type=click.IntRange(min=0), default=None,
              help="Maximum rows to return.")
@click.option("--offset", type=click.IntRange(min=0), default=0, help="Rows to skip.")
@click.option(
    "--quality",
    "-q",
    multiple=True,
    type=click.Choice(
        ["high", "interpolated_linear", "quarterly_average", "annual_average", "unavailable"]
    ),
    help="Only include these quality tiers (repeatable).",
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def prices(
    ctx: click.Context,
    commodity: str,
    start: datetime | None,
    end: datetime | None,
    limit: int | None,
    offset: int,
    quality: tuple[str, ...],
    output_format: str,
) -> None:
    """Query stored prices for COMMODITY, newest first."""
    from greco_tracker.storage import PriceQueryOptions

    options = PriceQueryOptions(
        start_date=start.date() if start else None,
        end_date=end.date() if end else None,
        quality=frozenset(quality) or None,
        limit=limit,
        offset=offset,
    )

    def _show(services) -> None:
        result = _run_async(services.query.get_prices(commodity, options))
        if output_format == "json":
            click.echo(json.dumps(result.model_dump(mode="json"), indent=2))
            return

        meta = result.metadata
        table = Table(title=f"{result.commodity_id} prices")
        table.add_column("Date")
        table.add_column("Price (USD)", justify="right")
        table.add_column("Unit")
        table.add_column("Quality")
        for p in result.prices:
            table.add_row(str(p.date), _fmt_price(p.price), p.unit, p.quality.value)
        console.print(table)
        console.print(
            f"{meta.record_count} rows from {len(meta.shards_loaded)} shard(s) "
            f"in {meta.query_time_ms:.1f}ms" + (" (more available)" if meta.truncated else "")
        )
        for file, reason in meta.failed_shards.items():
            console.print(f"[yellow]Skipped shard {file}: {reason}[/yellow]")

    _invoke(ctx, _show)


# ---------------------------------------------------------------------------
# value
# ---------------------------------------------------------------------------


@cli.command()
@click.argument("target", type=click.DateTime(formats=["%Y-%m-%d"]))
@click.option("--currency", default="USD", show_default=True, help="Currency code.")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def value(ctx: click.Context, target: datetime, currency: str, output_format: str) -> None:
    """Compute the Greco value on TARGET (YYYY-MM-DD)."""

    def _show(services) -> None:
        valuation = _run_async(
            services.engine.calculate_greco_value(target.date(), currency)
        )
        if valuation is None:
            console.print(
                f"[yellow]Insufficient data to value the basket on "
                f"{target.date()} in {currency.upper()}.[/yellow]"
            )
            raise SystemExit(1)

        if output_format == "json":
            click.echo(json.dumps(valuation.model_dump(mode="json"), indent=2))
            return
        _output_valuations_table([valuation], title=f"Greco value on {valuation.date}")
        if valuation.missing_commodity_ids:
            console.print("Missing: " + ", ".join(valuation.missing_commodity_ids))

    _invoke(ctx, _show)


# ---------------------------------------------------------------------------
# timeseries
# ---------------------------------------------------------------------------


@cli.command()
@click.option("--start", "-s", type=click.DateTime(formats=["%Y-%m-%d"]), required=True,
              help="First date (YYYY-MM-DD).")
@click.option("--end", "-e", type=click.DateTime(formats=["%Y-%m-%d"]), required=True,
              help="Last date (YYYY-MM-DD).")
@click.option("--currency", default="USD", show_default=True, help="Currency code.")
@click.option(
    "--interval",
    type=click.Choice(["monthly", "quarterly", "annual"], case_sensitive=False),
    default="monthly",
    show_default=True,
)
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["table", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@click.pass_context
def timeseries(
    ctx: click.Context,
    start: datetime,
    end: datetime,
    currency: str,
    interval: str,
    output_format: str,
) -> None:
    """Compute Greco values over a date range."""
    from greco_tracker.core import Interval

    def _show(services) -> None:
        series = _run_async(
            services.timeseries.generate(
                start.date(), end.date(), currency, Interval(interval.lower())
            )
        )
        if output_format == "json":
            output = [v.model_dump(mode="json") for v in series]
            click.echo(json.dumps(output, indent=2))
            return
        if not series:
            console.print("[yellow]No dates had enough data to value the basket.[/yellow]")
            return
        _output_valuations_table(series, title="Greco time series")

    _invoke(ctx, _show)


def _output_valuations_table(valuations, title: str) -> None:
    """Render valuations as a Rich table."""
    table = Table(title=title)
    table.add_column("Date")
    table.add_column("Currency")
    table.add_column("Value", justify="right")
    table.add_column("Value (USD)", justify="right")
    table.add_column("Complete", justify="right")
    table.add_column("Quality")

    for v in valuations:
        table.add_row(
            str(v.date),
            v.currency_id,
            f"{v.value:,.4f}",
            f"{v.value_usd:,.4f}",
            f"{v.completeness_pct:.1f}%",
            v.quality.value,
        )

    console.print(table)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def main() -> None:
    """Main entry point for the CLI."""
    cli()


if __name__ == "__main__":
    main()
