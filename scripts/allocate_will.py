#!/usr/bin/env python3
"""Will allocation CLI tool.

Builds a will over the configured demo wallet, applies portfolio-level
allocations, and prints the review summary.

Examples:
    # Split the portfolio 40/30 between two beneficiaries using live prices
    python scripts/allocate_will.py summary alice bob \\
        --portfolio alice=40 --portfolio bob=30

    # Same, priced from the fallback table without network access
    python scripts/allocate_will.py summary alice bob --offline \\
        --portfolio alice=40 --portfolio bob=30 --show-assets

    # Show current prices for the wallet assets
    python scripts/allocate_will.py prices
"""

import sys
from typing import Dict, Optional

import click
import pandas as pd
from rich.console import Console
from rich.table import Table

# Add src to path
sys.path.append(".")

from src.allocation import Beneficiary, OverAllocationPolicy, WillAllocationStore
from src.registry.factory import build_registry, coin_ids_for
from src.registry.providers.coingecko import CoinGeckoPriceClient
from src.utils.config import load_price_feed_config
from src.utils.exceptions import DataProviderError, WillAllocError
from src.utils.logging import setup_logging

console = Console()


def parse_allocations(pairs: tuple) -> Dict[str, str]:
    """Parse "name=percentage" strings into a dictionary.

    Args:
        pairs: Tuple of "name=percentage" strings

    Returns:
        Dictionary of {beneficiary_id: raw percentage text}
    """
    allocations = {}
    for pair in pairs:
        if "=" not in pair:
            click.echo(f"Warning: Invalid allocation '{pair}', expected 'name=percentage'")
            continue

        name, value = pair.split("=", 1)
        allocations[name.strip()] = value.strip()

    return allocations


def frame_table(frame: pd.DataFrame, title: str) -> Table:
    """Render a DataFrame as a rich Table, formatting floats to 4 decimals."""
    table = Table(title=title)
    for column in frame.columns:
        table.add_column(str(column), style="cyan" if column == frame.columns[0] else None)

    for row in frame.itertuples(index=False):
        table.add_row(
            *(f"{value:,.4f}" if isinstance(value, float) else str(value) for value in row)
        )
    return table


@click.group()
@click.option("--config", "config_file", type=click.Path(), help="Path to YAML config")
@click.option("--log-level", default=None, help="Logging level (default from config)")
@click.pass_context
def cli(ctx, config_file: Optional[str], log_level: Optional[str]):
    """Digital will allocation tool"""
    config, credentials = load_price_feed_config(config_file)
    setup_logging(level=log_level or config.get("logging.level", "INFO"))
    ctx.obj = {"config": config, "credentials": credentials}


@cli.command()
@click.argument("beneficiaries", nargs=-1, required=True)
@click.option("--portfolio", "-p", multiple=True, help="Portfolio allocation (name=percentage)")
@click.option(
    "--policy",
    type=click.Choice([p.value for p in OverAllocationPolicy]),
    default=None,
    help="Over-allocation policy (default from config)",
)
@click.option("--offline", is_flag=True, help="Use fallback prices instead of CoinGecko")
@click.option("--reset-shares", is_flag=True, help="Reset beneficiary shares to an equal split")
@click.option("--show-assets", is_flag=True, help="Show the per-asset allocation table")
@click.pass_context
def summary(
    ctx,
    beneficiaries: tuple,
    portfolio: tuple,
    policy: Optional[str],
    offline: bool,
    reset_shares: bool,
    show_assets: bool,
):
    """Allocate the portfolio and print the review summary.

    BENEFICIARIES: Beneficiary ids, in display order
    """
    config = ctx.obj["config"]
    api_key = ctx.obj["credentials"]["api_key"]

    click.echo("=" * 70)
    click.echo("DIGITAL WILL - ALLOCATION SUMMARY")
    click.echo("=" * 70)

    try:
        registry = build_registry(config, offline=offline, api_key=api_key)
        registry.refresh()

        store = WillAllocationStore.from_config(config, registry)
        for beneficiary_id in beneficiaries:
            store.add_beneficiary(Beneficiary(beneficiary_id, display_name=beneficiary_id))

        if reset_shares:
            store.reset_shares_to_equal()

        edit_policy = OverAllocationPolicy(policy) if policy else None
        for beneficiary_id, value in parse_allocations(portfolio).items():
            result = store.set_portfolio_percentage(beneficiary_id, value, edit_policy)
            if result is None:
                click.echo(f"✗ {beneficiary_id} is not a beneficiary of this will")
            elif not result.accepted:
                reason = "; ".join(result.notes)
                click.echo(f"✗ {beneficiary_id} = {value}% not applied ({reason})")
            elif result.exceeded:
                click.echo(f"! {beneficiary_id} clamped to {result.applied}%")
            else:
                click.echo(f"✓ {beneficiary_id} = {result.applied}%")

        click.echo()
        totals = store.summary()
        click.echo(f"Portfolio value:     ${totals.total_portfolio_usd:,.2f}")
        click.echo(f"Allocated value:     ${totals.total_allocated_usd:,.2f}")
        click.echo(f"Allocated:           {totals.total_allocated_percentage:.1f}%")
        click.echo(f"Assets allocated:    {totals.allocated_asset_count} / {totals.asset_count}")
        click.echo(f"Beneficiaries:       {totals.beneficiary_count}")
        click.echo()
        console.print(frame_table(store.projector.to_frame(store.beneficiary_ids), "Beneficiaries"))

        if show_assets:
            click.echo()
            click.echo("=" * 70)
            click.echo("PER-ASSET ALLOCATIONS")
            click.echo("=" * 70)
            frame = store.table.to_frame()
            if frame.empty:
                click.echo("No allocations")
            else:
                console.print(frame_table(frame, "Allocations"))

        errors = store.validation_errors()
        for message in errors.values():
            click.echo(f"✗ {message}")

    except WillAllocError as e:
        click.echo(f"✗ Error: {e}")
        sys.exit(1)


@cli.command()
@click.pass_context
def prices(ctx):
    """Show current USD prices for the configured wallet assets."""
    config = ctx.obj["config"]
    client = CoinGeckoPriceClient.from_config(
        config.section("price_feed"), api_key=ctx.obj["credentials"]["api_key"]
    )

    coin_ids = coin_ids_for(config)
    try:
        quotes = client.get_prices(coin_ids)
    except DataProviderError as e:
        click.echo(f"✗ Error: {e}")
        sys.exit(1)

    table = Table(title="CoinGecko Prices (USD)")
    table.add_column("Coin", style="cyan")
    table.add_column("Price", style="green", justify="right")

    for coin_id in coin_ids:
        usd = quotes.get(coin_id, {}).get("usd")
        table.add_row(coin_id, f"${usd:,.4f}" if usd is not None else "[red]n/a[/red]")

    console.print(table)


if __name__ == "__main__":
    cli()
