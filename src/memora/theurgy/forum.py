"""
Theurgy Forum - posts and replies.

Commands:
- show:   Show a post
- create: Create a post under the next id
- reply:  Reply to a post by burning or minting
"""

from __future__ import annotations

from typing import Optional

import click

from ..domains.base import tokens
from ..domains.forum import (
    build_burn_for_post,
    build_create_post,
    build_mint_for_post,
    fetch_post,
    next_post_id,
)
from .common import ENTITY_ID, Session, field_line, format_time, format_tokens, report, run, signer_or_exit


@click.group()
def forum() -> None:
    """Create posts and reply to them."""


@forum.command("show")
@click.argument("post_id", type=ENTITY_ID)
def show(post_id: int) -> None:
    """Show post POST_ID."""

    async def action(session: Session) -> None:
        post = await fetch_post(session.rpc, session.programs, post_id)
        click.secho(f"  Post #{post.post_id}: {post.title}", fg="bright_white", bold=True)
        field_line("Creator:", post.creator)
        field_line("Content:", post.content)
        if post.image:
            field_line("Image:", post.image)
        field_line("Replies:", post.reply_count)
        field_line("Burned:", format_tokens(post.burned_amount))
        field_line("Created:", format_time(post.created_at))
        field_line("Last reply:", format_time(post.last_reply_time))

    run(action)


@forum.command("create")
@click.option("--title", required=True, help="1-128 bytes")
@click.option("--content", required=True, help="1-512 bytes")
@click.option("--burn", "burn_tokens", type=int, default=1, show_default=True, help="Tokens to burn")
@click.option("--image", default="")
def create(title: str, content: str, burn_tokens: int, image: str) -> None:
    """Create a post."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        post_id = await next_post_id(session.rpc, session.programs)
        op = build_create_post(
            session.programs, signer.public_key(), post_id, title, content, tokens(burn_tokens), image=image
        )
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Post #{submission.result} created")

    run(action)


@forum.command("reply")
@click.argument("post_id", type=ENTITY_ID)
@click.option("--message", "-m", required=True, help="Up to 512 bytes")
@click.option("--burn", "burn_tokens", type=int, default=None, help="Burn this many tokens (default: mint)")
def reply(post_id: int, message: str, burn_tokens: Optional[int]) -> None:
    """Reply to post POST_ID."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        user = signer.public_key()
        if burn_tokens is None:
            submission = await session.submit(build_mint_for_post(session.programs, user, post_id, message), signer)
            report(submission, f"Mint reply posted to #{post_id}")
            return
        op = build_burn_for_post(session.programs, user, post_id, tokens(burn_tokens), message)
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Burn reply posted to #{post_id}")

    run(action)
