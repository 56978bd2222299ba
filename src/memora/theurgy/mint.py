"""
Theurgy Mint - mint the current reward against a memo.

Commands:
- memo:   Mint with a memo, creating the token account when missing
- reward: Show the current supply and reward tier
"""

from __future__ import annotations

import click

from ..domains.mint import current_reward, prepare_mint
from .common import Session, field_line, format_tokens, report, run, signer_or_exit


@click.group()
def mint() -> None:
    """Mint tokens."""


@mint.command("memo")
@click.argument("text")
def memo(text: str) -> None:
    """Mint the current reward with memo TEXT (69-800 bytes)."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = await prepare_mint(session.rpc, session.programs, signer.public_key(), text)
        submission = await session.submit(op, signer)
        report(submission, "Minted")
        field_line("Token account:", submission.result)

    run(action)


@mint.command("reward")
def reward() -> None:
    """Show the current supply and reward per mint."""

    async def action(session: Session) -> None:
        supply, tier = await current_reward(session.rpc, session.programs)
        field_line("Supply:", format_tokens(supply))
        field_line("Tier:", tier.label)
        field_line("Reward:", format_tokens(tier.reward))

    run(action)
