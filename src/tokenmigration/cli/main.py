#!/usr/bin/env python3
"""
Campaign inspection CLI.

Reads a campaign configuration file and previews what the ledger would do: the
rate tiers, a conversion quote at a given moment, and the claim ladder a vesting
allocation would follow. Nothing here mutates a live campaign.
"""

from __future__ import annotations

import json
import logging
import sys
import time
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import click
from rich import box
from rich.console import Console
from rich.table import Table

from tokenmigration.core.config import SECONDS_PER_DAY, CampaignConfig, ConfigurationError, load_config
from tokenmigration.core.logging_config import setup_logging
from tokenmigration.migration.rate_table import PeriodClock, RateTable, RateTier, SourceKind
from tokenmigration.security.access_gate import DEPOSITOR_ROLE, AccessGate
from tokenmigration.tokens.token_ledger import TokenLedger
from tokenmigration.vesting.schedule import VestingSchedule

logger = logging.getLogger(__name__)

console = Console()

PREVIEW_DEPOSITOR = "0xPreviewDepositor"
PREVIEW_BENEFICIARY = "0xPreviewBeneficiary"


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _format_ts(timestamp: int) -> str:
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC")


def _load(ctx: click.Context, config_path: str) -> CampaignConfig:
    try:
        config = load_config(config_path)
    except ConfigurationError as exc:
        _cli_fail(exc)
    if ctx.obj.get("verbose"):
        setup_logging(level="DEBUG", log_file=config.log_file)
    return config


def _clock_for(config: CampaignConfig) -> PeriodClock:
    table = RateTable([RateTier(t.period_end, t.rate_a, t.rate_b) for t in config.tiers])
    return PeriodClock(table, config.start_time)


def _emit(ctx: click.Context, payload: Dict[str, Any], table: Optional[Table]) -> None:
    if ctx.obj.get("json_output") or table is None:
        click.echo(json.dumps(payload, indent=2))
    else:
        console.print(table)


@click.group()
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option("--verbose", is_flag=True, help="Emit structured debug logs to stderr")
@click.pass_context
def cli(ctx: click.Context, json_output: bool, verbose: bool):
    """Inspect a token migration campaign configuration."""
    ctx.ensure_object(dict)
    ctx.obj["json_output"] = json_output
    ctx.obj["verbose"] = verbose


@cli.command("tiers")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.pass_context
def tiers(ctx: click.Context, config_path: str):
    """Show the seeded rate tiers."""
    config = _load(ctx, config_path)
    rows = [
        {"index": index, "period_end": tier.period_end, "rate_a": tier.rate_a, "rate_b": tier.rate_b}
        for index, tier in enumerate(config.tiers)
    ]
    table = Table(title=f"Rate tiers (start {_format_ts(config.start_time)})", box=box.ROUNDED)
    table.add_column("#", style="cyan", justify="right")
    table.add_column("Period end", style="green")
    table.add_column("Legacy rate", justify="right")
    table.add_column("Staked rate", justify="right")
    for row in rows:
        table.add_row(str(row["index"]), _format_ts(row["period_end"]), str(row["rate_a"]), str(row["rate_b"]))
    _emit(ctx, {"start_time": config.start_time, "tiers": rows}, table)


@cli.command("quote")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("amount", type=click.IntRange(min=1))
@click.option(
    "--kind",
    type=click.Choice([kind.name.lower() for kind in SourceKind]),
    default=SourceKind.LEGACY.name.lower(),
    show_default=True,
    help="Legacy token kind being migrated.",
)
@click.option("--at", "at_time", type=int, help="Unix timestamp to quote at (defaults to now).")
@click.pass_context
def quote(ctx: click.Context, config_path: str, amount: int, kind: str, at_time: Optional[int]):
    """Preview how many new tokens AMOUNT legacy units convert to."""
    config = _load(ctx, config_path)
    when = int(time.time()) if at_time is None else at_time
    source_kind = SourceKind[kind.upper()]
    rate = _clock_for(config).current_rate(when, source_kind)
    converted = amount // rate if rate else 0
    payload = {"amount": amount, "kind": source_kind.name, "at": when, "rate": rate, "converted": converted}

    table = Table(show_header=False, box=box.ROUNDED, title="Conversion quote")
    table.add_row("[bold cyan]Amount", str(amount))
    table.add_row("[bold cyan]Kind", source_kind.name)
    table.add_row("[bold cyan]At", _format_ts(when))
    if rate:
        table.add_row("[bold cyan]Rate", str(rate))
        table.add_row("[bold green]Converted", str(converted))
        table.add_row("[bold yellow]Dust", str(amount - converted * rate))
    else:
        table.add_row("[bold red]Rate", "campaign not active at this time")
    _emit(ctx, payload, table)


@cli.command("vesting-preview")
@click.argument("config_path", type=click.Path(exists=True, dir_okay=False))
@click.argument("principal", type=click.IntRange(min=1))
@click.option("--days", type=click.IntRange(min=1), default=730, show_default=True,
              help="How far past the allocation to project.")
@click.pass_context
def vesting_preview(ctx: click.Context, config_path: str, principal: int, days: int):
    """Project the claim ladder for PRINCIPAL allocated at campaign start."""
    config = _load(ctx, config_path)
    start = config.start_time
    gate = AccessGate(admins=[config.admin])
    gate.assign_role(config.admin, PREVIEW_DEPOSITOR, DEPOSITOR_ROLE)
    schedule = VestingSchedule(
        "0xPreviewVesting",
        TokenLedger("0xPreviewToken", "NEW"),
        gate,
        config.vesting,
        time_provider=lambda: start,
    )
    schedule.allocate(PREVIEW_DEPOSITOR, PREVIEW_BENEFICIARY, principal)
    ladder = schedule.projection(PREVIEW_BENEFICIARY, start + days * SECONDS_PER_DAY)

    rows = []
    claimed = 0
    for moment, unlocked, reward in ladder:
        claimed += unlocked
        rows.append({
            "timestamp": moment,
            "day": (moment - start) // SECONDS_PER_DAY,
            "unlocked": unlocked,
            "reward": reward,
            "claimed_total": claimed,
        })

    table = Table(title=f"Vesting ladder for {principal}", box=box.SIMPLE)
    table.add_column("Day", justify="right", style="cyan")
    table.add_column("Date", style="green")
    table.add_column("Unlocked", justify="right")
    table.add_column("Reward", justify="right")
    table.add_column("Claimed total", justify="right")
    for row in rows:
        table.add_row(
            str(row["day"]),
            _format_ts(row["timestamp"]),
            str(row["unlocked"]),
            str(row["reward"]),
            str(row["claimed_total"]),
        )
    _emit(ctx, {"principal": principal, "start": start, "ladder": rows}, table)


def main():
    return cli(obj={})


if __name__ == "__main__":
    sys.exit(main() or 0)
