"""
Theurgy Stats - aggregate statistics.

Every entity is fetched with bounded concurrency; entities that cannot be
read are skipped and counted as invalid.
"""

from __future__ import annotations

import click

from ..domains.blog import blog_statistics
from ..domains.chat import chat_statistics
from ..domains.forum import forum_statistics
from ..domains.project import project_statistics
from .common import Session, field_line, format_tokens, run


@click.group()
def stats() -> None:
    """Aggregate statistics over blogs, posts, projects and chat groups."""


@stats.command("blogs")
def blogs() -> None:
    """Blog statistics."""

    async def action(session: Session) -> None:
        result = await blog_statistics(session.rpc, session.programs, session.settings.concurrency)
        field_line("Blogs:", f"{result.valid_blogs} / {result.total_blogs}")
        field_line("Memos:", result.total_memos)
        field_line("Burned:", format_tokens(result.total_burned))
        field_line("Minted:", format_tokens(result.total_minted))

    run(action)


@stats.command("posts")
def posts() -> None:
    """Forum statistics."""

    async def action(session: Session) -> None:
        result = await forum_statistics(session.rpc, session.programs, session.settings.concurrency)
        field_line("Posts:", f"{result.valid_posts} / {result.total_posts}")
        field_line("Replies:", result.total_replies)
        field_line("Burned:", format_tokens(result.total_burned))

    run(action)


@stats.command("projects")
def projects() -> None:
    """Project statistics."""

    async def action(session: Session) -> None:
        result = await project_statistics(session.rpc, session.programs, session.settings.concurrency)
        field_line("Projects:", f"{result.valid_projects} / {result.total_projects}")
        field_line("Memos:", result.total_memos)
        field_line("Burned:", format_tokens(result.total_burned))

    run(action)


@stats.command("chat")
def chat() -> None:
    """Chat group statistics."""

    async def action(session: Session) -> None:
        result = await chat_statistics(session.rpc, session.programs, session.settings.concurrency)
        field_line("Groups:", f"{result.valid_groups} / {result.total_groups}")
        field_line("Memos:", result.total_memos)
        field_line("Burned:", format_tokens(result.total_burned))

    run(action)
