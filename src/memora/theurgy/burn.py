"""
Theurgy Burn - plain burns and burn statistics.

Commands:
- memo:  Burn tokens with a message
- init:  Initialize your burn statistics account
- stats: Show a user's burn statistics
- top:   Show the largest burners
"""

from __future__ import annotations

from typing import Optional

import click

from ..domains.base import tokens
from ..domains.burn import build_burn, build_initialize_burn_stats, fetch_burn_stats, top_burners
from .common import Session, field_line, format_time, format_tokens, report, run, signer_or_exit


@click.group()
def burn() -> None:
    """Burn tokens and inspect burn statistics."""


@burn.command("memo")
@click.argument("amount", type=int)
@click.argument("message")
def memo(amount: int, message: str) -> None:
    """Burn AMOUNT tokens with MESSAGE (39-587 bytes)."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = build_burn(session.programs, signer.public_key(), tokens(amount), message)
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Burned {amount:,} tokens")

    run(action)


@burn.command("init")
def init() -> None:
    """Create your burn statistics account."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        existing = await fetch_burn_stats(session.rpc, session.programs, signer.public_key())
        if existing is not None:
            click.echo("  Burn statistics account already exists.")
            return
        op = build_initialize_burn_stats(session.programs, signer.public_key())
        submission = await session.submit(op, signer)
        report(submission, f"Stats account created: {submission.result}")

    run(action)


@burn.command("stats")
@click.argument("address", required=False)
def stats(address: Optional[str]) -> None:
    """Show burn statistics for ADDRESS (default: your own)."""
    user = address or str(signer_or_exit().public_key())

    async def action(session: Session) -> None:
        found = await fetch_burn_stats(session.rpc, session.programs, user)
        click.echo(f"  {user}")
        if found is None:
            click.secho("    (no burn statistics)", fg="yellow")
            return
        field_line("Total burned:", format_tokens(found.total_burned))
        field_line("Burns:", found.burn_count)
        field_line("Last burn:", format_time(found.last_burn_time))

    run(action)


@burn.command("top")
@click.option("--limit", type=int, default=10, show_default=True)
def top(limit: int) -> None:
    """Show the users with the largest total burn."""

    async def action(session: Session) -> None:
        burners = await top_burners(session.rpc, session.programs, limit)
        for rank, entry in enumerate(burners, start=1):
            click.echo(f"  #{rank:<4} {entry.user:<44} {format_tokens(entry.total_burned):>20}")

    run(action)
