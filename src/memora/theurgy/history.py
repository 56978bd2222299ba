"""
Theurgy History - decoded memo history of a blog, post, project or chat group.

Pages are cursor based: pass the printed cursor back with ``--before`` to
continue with older transactions.
"""

from __future__ import annotations

from typing import Optional

import click

from ..anamnesis.history import MemoPage
from ..codex.records import BlogMint, ChatMessage, PostBurn, PostMint
from ..domains.blog import blog_messages
from ..domains.chat import chat_messages
from ..domains.forum import post_replies
from ..domains.profile import display_name, fetch_profiles
from ..domains.project import project_burn_messages
from .common import ENTITY_ID, Session, format_time, format_tokens, run


def author_of(record) -> str:
    if isinstance(record, BlogMint):
        return record.minter
    if isinstance(record, ChatMessage):
        return record.sender
    if isinstance(record, (PostBurn, PostMint)):
        return record.user
    return record.burner


async def print_page(session: Session, page: MemoPage) -> None:
    authors = sorted({author_of(e.memo.record) for e in page.entries})
    names = dict(await fetch_profiles(session.rpc, session.programs, authors, session.settings.concurrency))
    for entry in page.entries:
        record = entry.memo.record
        author = author_of(record)
        action = f"burned {format_tokens(entry.memo.burn_amount)}" if entry.memo.burn_amount else "minted"
        click.echo(
            click.style(f"  {format_time(entry.block_time)}  ", dim=True)
            + click.style(display_name(author, names.get(author)), fg="cyan")
            + f" {action}"
        )
        if record.message:
            click.echo(f"    {record.message}")
    if not page.entries:
        click.echo("  No messages.")
    if page.has_more and page.cursor:
        click.secho(f"  More: --before {page.cursor}", dim=True)


def history_options(func):
    func = click.option("--before", default=None, help="Cursor from a previous page")(func)
    func = click.option("--limit", type=int, default=20, show_default=True, help="Transactions to scan")(func)
    return func


@click.group()
def history() -> None:
    """Read the message history of blogs, posts, projects and chat groups."""


@history.command("blog")
@click.argument("blog_id", type=ENTITY_ID)
@history_options
def blog(blog_id: int, limit: int, before: Optional[str]) -> None:
    """Burn and mint messages of blog BLOG_ID, newest first."""

    async def action(session: Session) -> None:
        await print_page(session, await blog_messages(session.rpc, session.programs, blog_id, limit, before))

    run(action)


@history.command("post")
@click.argument("post_id", type=ENTITY_ID)
@history_options
def post(post_id: int, limit: int, before: Optional[str]) -> None:
    """Replies to post POST_ID, newest first."""

    async def action(session: Session) -> None:
        await print_page(session, await post_replies(session.rpc, session.programs, post_id, limit, before))

    run(action)


@history.command("project")
@click.argument("project_id", type=ENTITY_ID)
@history_options
def project(project_id: int, limit: int, before: Optional[str]) -> None:
    """Burn messages of project PROJECT_ID, oldest first."""

    async def action(session: Session) -> None:
        page = await project_burn_messages(session.rpc, session.programs, project_id, limit, before)
        await print_page(session, page)

    run(action)


@history.command("chat")
@click.argument("group_id", type=ENTITY_ID)
@history_options
def chat(group_id: int, limit: int, before: Optional[str]) -> None:
    """Messages of chat group GROUP_ID, oldest first."""

    async def action(session: Session) -> None:
        await print_page(session, await chat_messages(session.rpc, session.programs, group_id, limit, before))

    run(action)
