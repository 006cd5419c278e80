"""CLI entry point for the P2P quote scanner.

Fetches quotes or a market summary once and renders them with rich, or
serves the HTTP API with uvicorn.
"""

import asyncio
import sys
from pathlib import Path
from typing import Optional, Tuple

import click
from rich.console import Console
from rich.table import Table

from p2p_scanner.models.config import ConfigManager, ScannerConfig
from p2p_scanner.models.data_models import QuoteSet, Side, SummaryView
from p2p_scanner.pipeline.orchestrator import QuoteService
from p2p_scanner.pipeline.output import JSONOutputFormatter


console = Console()

EXIT_NO_DATA = 2


def _load_config(config_path: Path, source: Optional[str], log_level: Optional[str]) -> ScannerConfig:
    cli_overrides = {}
    if source is not None:
        cli_overrides["source_mode"] = source
    if log_level is not None:
        cli_overrides["log_level"] = log_level.upper()
    return ConfigManager(config_path).load_config(cli_overrides)


def _resolve_pair(
    config: ScannerConfig,
    fiat: Optional[str],
    crypto: Optional[str],
    limit: Optional[int]
) -> Tuple[str, str, int]:
    """Fill unset pair options from config and enforce the configured limit bound."""
    limit = limit or config.default_limit
    if limit > config.max_limit:
        raise click.BadParameter(f"must be at most {config.max_limit}", param_hint="'--limit'")
    return (fiat or config.default_fiat).upper(), (crypto or config.default_crypto).upper(), limit


def _run(coro):
    """Run a coroutine, mapping interrupts and unexpected errors to exit codes."""
    try:
        return asyncio.run(coro)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(130)  # Standard exit code for SIGINT
    except Exception as e:
        console.print(f"\n[red]Error:[/red] {e}", style="bold red")
        if "--debug" in sys.argv:
            console.print_exception()
        sys.exit(1)


config_option = click.option(
    "--config",
    "-c",
    "config_path",
    type=click.Path(path_type=Path),
    default="config/config.yaml",
    help="Path to configuration YAML file (ignored if missing)",
)
source_option = click.option(
    "--source",
    "-s",
    type=click.Choice(["auto", "primary-only", "secondary-only"], case_sensitive=False),
    help="Provider priority mode (overrides config)",
)
log_level_option = click.option(
    "--log-level",
    "-l",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (overrides config)",
)
pair_options = [
    click.option("--fiat", help="Fiat currency (default from config)"),
    click.option("--crypto", help="Crypto asset (default from config)"),
    click.option("--limit", type=click.IntRange(min=1), help="Offers per side (default from config)"),
    click.option("--json", "as_json", is_flag=True, help="Print wire JSON instead of tables"),
]


def with_pair_options(func):
    for option in reversed(pair_options):
        func = option(func)
    return func


@click.group()
@click.version_option(version="1.0.0", prog_name="p2p-scanner")
def main() -> None:
    """
    P2P Quote Scanner - resilient peer-to-peer exchange quotes.

    Examples:

        # Buy-side offers for UAH/USDT
        $ p2p-scanner quotes --side buy

        # Market summary as JSON
        $ p2p-scanner summary --json

        # Serve the HTTP API
        $ p2p-scanner serve --port 8000
    """


@main.command()
@click.option(
    "--side",
    type=click.Choice([s.value for s in Side], case_sensitive=False),
    default="buy",
    show_default=True,
    help="Quote side",
)
@with_pair_options
@config_option
@source_option
@log_level_option
def quotes(
    side: str,
    fiat: Optional[str],
    crypto: Optional[str],
    limit: Optional[int],
    as_json: bool,
    config_path: Path,
    source: Optional[str],
    log_level: Optional[str],
) -> None:
    """Fetch normalized offers for one side."""
    config = _load_config(config_path, source, log_level)
    fiat, crypto, limit = _resolve_pair(config, fiat, crypto, limit)

    async def fetch():
        async with QuoteService(config) as service:
            data, _ = await service.fetch_quotes(Side(side.lower()), fiat, crypto, limit)
            return data, service.fallback_hint()

    data, hint = _run(fetch())
    if data is None:
        _report_no_data(hint)
        sys.exit(EXIT_NO_DATA)

    if as_json:
        formatter = JSONOutputFormatter()
        click.echo(formatter.dumps(formatter.format_quote_set(data)))
    else:
        _display_quote_set(data)


@main.command()
@with_pair_options
@config_option
@source_option
@log_level_option
def summary(
    fiat: Optional[str],
    crypto: Optional[str],
    limit: Optional[int],
    as_json: bool,
    config_path: Path,
    source: Optional[str],
    log_level: Optional[str],
) -> None:
    """Fetch both sides and show best prices, midpoint and spread."""
    config = _load_config(config_path, source, log_level)
    fiat, crypto, limit = _resolve_pair(config, fiat, crypto, limit)

    async def fetch():
        async with QuoteService(config) as service:
            return await service.fetch_summary(fiat, crypto, limit), service.fallback_hint()

    result, hint = _run(fetch())
    if result is None:
        _report_no_data(hint)
        sys.exit(EXIT_NO_DATA)

    if as_json:
        formatter = JSONOutputFormatter()
        click.echo(formatter.dumps(formatter.format_summary(result)))
    else:
        _display_summary(result)


@main.command()
@click.option("--host", help="Bind address (overrides config)")
@click.option("--port", type=int, help="Port (overrides config)")
@config_option
@source_option
@log_level_option
def serve(
    host: Optional[str],
    port: Optional[int],
    config_path: Path,
    source: Optional[str],
    log_level: Optional[str],
) -> None:
    """Serve the HTTP API."""
    import uvicorn

    from p2p_scanner.api.app import create_app

    config = _load_config(config_path, source, log_level)
    app = create_app(config)
    uvicorn.run(
        app,
        host=host or config.host,
        port=port or config.port,
        log_level=config.log_level.lower(),
    )


def _report_no_data(hint: Optional[str]) -> None:
    console.print("[red]No data:[/red] every configured source failed")
    if hint:
        console.print(f"[yellow]Hint:[/yellow] {hint}")


def _offers_table(title: str, quote_set_items) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right", style="dim")
    table.add_column("Price", justify="right", style="green")
    table.add_column("Limits", justify="right")
    table.add_column("Available", justify="right")
    table.add_column("Merchant", style="cyan")
    table.add_column("Orders", justify="right")
    table.add_column("Completion", justify="right")
    table.add_column("Payment Methods", style="magenta")

    for index, quote in enumerate(quote_set_items, start=1):
        table.add_row(
            str(index),
            f"{quote.price:.2f}",
            f"{quote.min_limit:,.0f} - {quote.max_limit:,.0f}",
            f"{quote.available:,.2f}",
            quote.merchant_name,
            str(quote.merchant_orders) if quote.merchant_orders is not None else "N/A",
            f"{quote.merchant_completion_rate:.1f}%" if quote.merchant_completion_rate is not None else "N/A",
            ", ".join(quote.payment_methods),
        )
    return table


def _display_quote_set(data: QuoteSet) -> None:
    """Display one side's offers."""
    title = f"{data.side.value.upper()} {data.crypto}/{data.fiat} ({data.source})"
    console.print(_offers_table(title, data.items))
    if data.stale:
        console.print("[yellow]Data is stale[/yellow]")


def _display_summary(result: SummaryView) -> None:
    """Display summary table plus top offers per side."""
    summary_table = Table(title=f"{result.crypto}/{result.fiat} Summary", show_header=False)
    summary_table.add_column("Metric", style="cyan")
    summary_table.add_column("Value", style="green")

    summary_table.add_row("Best Buy", f"{result.best_buy_price:.2f}")
    summary_table.add_row("Best Sell", f"{result.best_sell_price:.2f}")
    summary_table.add_row("Mid", f"{result.mid:.2f}")
    spread_style = "red" if result.spread_pct < 0 else "green"
    summary_table.add_row("Spread", f"[{spread_style}]{result.spread_pct:.2f}%[/{spread_style}]")
    summary_table.add_row("Stale", "yes" if result.stale else "no")

    console.print(summary_table)
    console.print()
    console.print(_offers_table("Buy Offers", result.buy_top))
    console.print(_offers_table("Sell Offers", result.sell_top))


if __name__ == "__main__":
    main()
