"""
Theurgy Transfer - send native or memo tokens.

Amounts are decimal strings: ``1.5`` native is 1,500,000,000 lamports and
``1.5`` memo tokens are 1,500,000 base units.
"""

from __future__ import annotations

import click

from ..config import NATIVE_DECIMALS, TOKEN_DECIMALS
from ..domains.transfer import build_native_transfer, parse_amount, prepare_token_transfer
from .common import Session, field_line, report, run, signer_or_exit


@click.group()
def transfer() -> None:
    """Transfer native or memo tokens."""


@transfer.command("native")
@click.argument("recipient")
@click.argument("amount")
def native(recipient: str, amount: str) -> None:
    """Send AMOUNT native tokens to RECIPIENT."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        lamports = parse_amount(amount, NATIVE_DECIMALS)
        op = build_native_transfer(signer.public_key(), recipient, lamports)
        submission = await session.submit(op, signer)
        report(submission, f"Sent {amount} XNT")
        field_line("Recipient:", submission.result)

    run(action)


@transfer.command("token")
@click.argument("recipient")
@click.argument("amount")
def token(recipient: str, amount: str) -> None:
    """Send AMOUNT memo tokens to RECIPIENT's token account."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        units = parse_amount(amount, TOKEN_DECIMALS)
        op = await prepare_token_transfer(session.rpc, session.programs, signer.public_key(), recipient, units)
        submission = await session.submit(op, signer)
        report(submission, f"Sent {amount} memo tokens")
        field_line("Token account:", submission.result)

    run(action)
