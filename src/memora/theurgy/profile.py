"""
Theurgy Profile - manage the signer's on-chain profile.

Commands:
- show:   Show one or more profiles (default: the signer's)
- create: Create a profile, burning at least 420 tokens
- update: Change username, image or about-me, burning at least 420 tokens
- delete: Close the profile account
"""

from __future__ import annotations

from typing import Optional

import click

from ..domains.base import tokens
from ..domains.profile import (
    build_create_profile,
    build_delete_profile,
    build_update_profile,
    fetch_profiles,
)
from .common import Session, field_line, format_time, report, run, signer_or_exit


@click.group()
def profile() -> None:
    """Manage user profiles."""


@profile.command("show")
@click.argument("addresses", nargs=-1)
def show(addresses: tuple[str, ...]) -> None:
    """Show profiles for ADDRESSES (default: your own)."""
    if not addresses:
        addresses = (str(signer_or_exit().public_key()),)

    async def action(session: Session) -> None:
        found = await fetch_profiles(
            session.rpc, session.programs, list(addresses), session.settings.concurrency
        )
        for user, prof in found:
            click.echo(f"  {user}")
            if prof is None:
                click.secho("    (no profile)", fg="yellow")
                continue
            field_line("  Username:", prof.username)
            field_line("  Image:", prof.image or "-")
            field_line("  About me:", prof.about_me or "-")
            field_line("  Created:", format_time(prof.created_at))
            field_line("  Updated:", format_time(prof.last_updated))

    run(action)


@profile.command("create")
@click.option("--username", required=True, help="1-32 bytes")
@click.option("--burn", "burn_tokens", type=int, default=420, show_default=True, help="Tokens to burn")
@click.option("--image", default="", help="Image URL or pixel data")
@click.option("--about-me", default=None, help="Up to 128 bytes")
def create(username: str, burn_tokens: int, image: str, about_me: Optional[str]) -> None:
    """Create your profile."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = build_create_profile(
            session.programs, signer.public_key(), username, tokens(burn_tokens),
            image=image, about_me=about_me,
        )
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Profile created: {submission.result}")

    run(action)


@profile.command("update")
@click.option("--burn", "burn_tokens", type=int, default=420, show_default=True, help="Tokens to burn")
@click.option("--username", default=None)
@click.option("--image", default=None)
@click.option("--about-me", default=None, help="Empty string clears it")
def update(burn_tokens: int, username: Optional[str], image: Optional[str], about_me: Optional[str]) -> None:
    """Update your profile; omitted fields stay unchanged."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = build_update_profile(
            session.programs, signer.public_key(), tokens(burn_tokens),
            username=username, image=image, about_me=about_me,
        )
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, "Profile updated")

    run(action)


@profile.command("delete")
@click.confirmation_option(prompt="Delete your profile?")
def delete() -> None:
    """Close your profile account."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        submission = await session.submit(build_delete_profile(session.programs, signer.public_key()), signer)
        report(submission, f"Profile deleted: {submission.result}")

    run(action)
