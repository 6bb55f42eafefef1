#!/usr/bin/env python3
"""
zapvault CLI

Inspect vault share pricing and replay vault scenarios in memory.

    zapvault preview --total-assets 1000 --total-shares 800 --assets 250
    zapvault simulate scenario.yaml --json-output
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict

import click
import yaml
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from zapvault import __version__
from zapvault.core.config import Config
from zapvault.core.defi.share_math import Valuation
from zapvault.core.logging_config import setup_logging
from zapvault.core.simulation import ScenarioError, Simulation
from zapvault.core.vm.exceptions import VMExecutionError

logger = logging.getLogger(__name__)

console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


@click.group()
@click.version_option(__version__, prog_name="zapvault")
@click.option(
    '--log-level',
    default=Config.LOG_LEVEL,
    type=click.Choice(['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'], case_sensitive=False),
    help='Logging level',
    show_default=True,
)
@click.option('--log-file', default=Config.LOG_FILE or None, help='JSON log file (rotated)')
@click.option('--json-output', is_flag=True, help='Output raw JSON')
@click.pass_context
def cli(ctx: click.Context, log_level: str, log_file: str | None, json_output: bool):
    """
    zapvault - share vault over a yield wrapper with swap-and-deposit.

    All state is simulated in memory; nothing is sent to a network.
    """
    ctx.ensure_object(dict)
    setup_logging(
        name="zapvault",
        log_file=log_file,
        level=log_level,
        environment=Config.ENVIRONMENT_TYPE.value,
        enable_file=bool(log_file),
    )
    ctx.obj['json_output'] = json_output


@cli.command('preview')
@click.option('--total-assets', required=True, type=click.IntRange(min=0), help='Vault total assets')
@click.option('--total-shares', required=True, type=click.IntRange(min=0), help='Vault total shares')
@click.option('--assets', type=click.IntRange(min=0), help='Asset amount to price')
@click.option('--shares', type=click.IntRange(min=0), help='Share amount to price (defaults to --assets)')
@click.pass_context
def preview(
    ctx: click.Context,
    total_assets: int,
    total_shares: int,
    assets: int | None,
    shares: int | None,
):
    """Price deposit, withdraw, mint and redeem at a given valuation"""
    if assets is None and shares is None:
        raise click.UsageError("Provide --assets and/or --shares")
    assets = assets if assets is not None else shares
    shares = shares if shares is not None else assets

    valuation = Valuation(total_assets=total_assets, total_shares=total_shares)
    try:
        data = {
            "total_assets": total_assets,
            "total_shares": total_shares,
            "preview_deposit": valuation.preview_deposit(assets),
            "preview_withdraw": valuation.preview_withdraw(assets),
            "preview_mint": valuation.preview_mint(shares),
            "preview_redeem": valuation.preview_redeem(shares),
        }
    except VMExecutionError as exc:
        _cli_fail(exc)

    if ctx.obj['json_output']:
        click.echo(json.dumps(data, indent=2))
        return

    table = Table(show_header=True, box=box.ROUNDED)
    table.add_column("Operation", style="bold cyan")
    table.add_column("Input", justify="right")
    table.add_column("Result", justify="right", style="green")
    table.add_row("deposit (assets -> shares, floor)", str(assets), str(data["preview_deposit"]))
    table.add_row("withdraw (assets -> shares, ceil)", str(assets), str(data["preview_withdraw"]))
    table.add_row("mint (shares -> assets, ceil)", str(shares), str(data["preview_mint"]))
    table.add_row("redeem (shares -> assets, floor)", str(shares), str(data["preview_redeem"]))

    console.print(Panel(table, title=f"[bold]Valuation {total_assets} / {total_shares}", border_style="cyan"))


@cli.command('simulate')
@click.argument('scenario', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--stop-on-error', is_flag=True, help='Abort at the first reverted step')
@click.pass_context
def simulate(ctx: click.Context, scenario: Path, stop_on_error: bool):
    """Replay a YAML vault scenario in memory"""
    try:
        simulation = Simulation.from_yaml(scenario)
        simulation.run(stop_on_error=stop_on_error)
        summary = simulation.summary()
    except (ScenarioError, VMExecutionError, yaml.YAMLError, OSError) as exc:
        _cli_fail(exc)

    if ctx.obj['json_output']:
        click.echo(json.dumps(summary, indent=2))
    else:
        _render_summary(summary)

    if stop_on_error and any(not step["ok"] for step in summary["steps"]):
        sys.exit(1)


def _render_summary(summary: Dict[str, Any]) -> None:
    steps = Table(title="Steps", box=box.ROUNDED)
    steps.add_column("#", justify="right")
    steps.add_column("Action", style="cyan")
    steps.add_column("Status")
    steps.add_column("Result", justify="right")
    for step in summary["steps"]:
        if step["ok"]:
            steps.add_row(str(step["index"]), step["action"], "[green]ok[/]", str(step["result"]))
        else:
            steps.add_row(
                str(step["index"]),
                step["action"],
                "[red]reverted[/]",
                f"{step['error_type']}: {step['error']}",
            )
    console.print(steps)

    holders = Table(title="Holders", box=box.ROUNDED)
    holders.add_column("Account", style="bold cyan")
    columns = sorted({key for row in summary["holders"].values() for key in row} - {"shares"})
    holders.add_column("shares", justify="right", style="green")
    for column in columns:
        holders.add_column(column, justify="right")
    for name, row in summary["holders"].items():
        holders.add_row(name, str(row["shares"]), *(str(row.get(c, 0)) for c in columns))
    console.print(holders)

    events = Table(title="Vault Events", box=box.ROUNDED)
    for column in ("type", "sender", "receiver", "owner", "assets", "shares"):
        events.add_column(column)
    for event in summary["events"]:
        events.add_row(*(str(event[c]) for c in ("type", "sender", "receiver", "owner", "assets", "shares")))
    console.print(events)

    vault = summary["vault"]
    console.print(
        f"[bold]Total assets:[/] {vault['total_assets']}  "
        f"[bold]Total shares:[/] {vault['total_supply']}  "
        f"[bold]Price per share:[/] {vault['price_per_share']}"
    )


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)
    except (click.ClickException, ValueError, KeyError, TypeError) as exc:
        _cli_fail(exc)


if __name__ == '__main__':
    main()
