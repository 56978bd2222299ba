"""
Theurgy Blog - numbered blogs.

Commands:
- show:   Show one blog
- list:   Show blogs in an id range
- create: Create a blog under the next id
- update: Change a blog's name, description or image
- burn:   Burn tokens for a blog with a message
- mint:   Mint for a blog with a message
"""

from __future__ import annotations

from typing import Optional

import click

from ..codex.accounts import Blog
from ..domains.base import tokens
from ..domains.blog import (
    build_burn_for_blog,
    build_create_blog,
    build_mint_for_blog,
    build_update_blog,
    fetch_blog,
    fetch_blogs_range,
    next_blog_id,
)
from .common import ENTITY_ID, Session, field_line, format_time, format_tokens, report, run, signer_or_exit


def print_blog(blog: Blog) -> None:
    click.secho(f"  Blog #{blog.blog_id}: {blog.name}", fg="bright_white", bold=True)
    field_line("Creator:", blog.creator)
    if blog.description:
        field_line("Description:", blog.description)
    if blog.image:
        field_line("Image:", blog.image)
    field_line("Memos:", blog.memo_count)
    field_line("Burned:", format_tokens(blog.burned_amount))
    field_line("Minted:", format_tokens(blog.minted_amount))
    field_line("Created:", format_time(blog.created_at))
    field_line("Last memo:", format_time(blog.last_memo_time))


@click.group()
def blog() -> None:
    """Create and interact with blogs."""


@blog.command("show")
@click.argument("blog_id", type=ENTITY_ID)
def show(blog_id: int) -> None:
    """Show blog BLOG_ID."""

    async def action(session: Session) -> None:
        print_blog(await fetch_blog(session.rpc, session.programs, blog_id))

    run(action)


@blog.command("list")
@click.argument("start", type=ENTITY_ID, default=0)
@click.argument("end", type=ENTITY_ID, required=False)
def list_blogs(start: int, end: Optional[int]) -> None:
    """Show blogs with START <= id < END (default: all)."""

    async def action(session: Session) -> None:
        stop = end if end is not None else await next_blog_id(session.rpc, session.programs)
        blogs = await fetch_blogs_range(
            session.rpc, session.programs, start, stop, session.settings.concurrency
        )
        for b in blogs:
            click.echo(f"  #{b.blog_id:<6} {b.name:<32} {format_tokens(b.burned_amount):>16} burned")
        click.echo(f"  {len(blogs)} blogs")

    run(action)


@blog.command("create")
@click.option("--name", required=True, help="1-64 bytes")
@click.option("--burn", "burn_tokens", type=int, default=1, show_default=True, help="Tokens to burn")
@click.option("--description", default="")
@click.option("--image", default="")
def create(name: str, burn_tokens: int, description: str, image: str) -> None:
    """Create a blog."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        blog_id = await next_blog_id(session.rpc, session.programs)
        op = build_create_blog(
            session.programs, signer.public_key(), blog_id, name, tokens(burn_tokens),
            description=description, image=image,
        )
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Blog #{submission.result} created")

    run(action)


@blog.command("update")
@click.argument("blog_id", type=ENTITY_ID)
@click.option("--burn", "burn_tokens", type=int, default=1, show_default=True, help="Tokens to burn")
@click.option("--name", default=None)
@click.option("--description", default=None)
@click.option("--image", default=None)
def update(
    blog_id: int,
    burn_tokens: int,
    name: Optional[str],
    description: Optional[str],
    image: Optional[str],
) -> None:
    """Update blog BLOG_ID; omitted fields stay unchanged."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = build_update_blog(
            session.programs, signer.public_key(), blog_id, tokens(burn_tokens),
            name=name, description=description, image=image,
        )
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Blog #{blog_id} updated")

    run(action)


@blog.command("burn")
@click.argument("blog_id", type=ENTITY_ID)
@click.argument("amount", type=int)
@click.option("--message", "-m", default="", help="Up to 696 bytes")
def burn(blog_id: int, amount: int, message: str) -> None:
    """Burn AMOUNT tokens for blog BLOG_ID."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = build_burn_for_blog(session.programs, signer.public_key(), blog_id, tokens(amount), message)
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Burned {amount:,} tokens for blog #{blog_id}")

    run(action)


@blog.command("mint")
@click.argument("blog_id", type=ENTITY_ID)
@click.option("--message", "-m", default="", help="Up to 696 bytes")
def mint(blog_id: int, message: str) -> None:
    """Mint for blog BLOG_ID."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = build_mint_for_blog(session.programs, signer.public_key(), blog_id, message)
        submission = await session.submit(op, signer)
        report(submission, f"Minted for blog #{blog_id}")

    run(action)
