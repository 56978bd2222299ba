"""
Theurgy Project - projects and the burn leaderboard.

Commands:
- show:        Show a project and its leaderboard rank
- list:        Show projects in an id range
- create:      Create a project under the next id
- update:      Change a project's fields
- burn:        Burn tokens for a project
- leaderboard: Show the burn leaderboard
"""

from __future__ import annotations

from typing import Optional

import click

from ..domains.base import tokens
from ..domains.project import (
    build_burn_for_project,
    build_create_project,
    build_update_project,
    fetch_leaderboard,
    fetch_project,
    fetch_projects_range,
    next_project_id,
    project_rank,
)
from .common import ENTITY_ID, Session, field_line, format_time, format_tokens, report, run, signer_or_exit


@click.group()
def project() -> None:
    """Create projects and burn for them."""


@project.command("show")
@click.argument("project_id", type=ENTITY_ID)
def show(project_id: int) -> None:
    """Show project PROJECT_ID."""

    async def action(session: Session) -> None:
        proj = await fetch_project(session.rpc, session.programs, project_id)
        rank = await project_rank(session.rpc, session.programs, project_id)
        click.secho(f"  Project #{proj.project_id}: {proj.name}", fg="bright_white", bold=True)
        field_line("Creator:", proj.creator)
        for label, value in (
            ("Description:", proj.description),
            ("Image:", proj.image),
            ("Website:", proj.website),
            ("Tags:", ", ".join(proj.tags)),
        ):
            if value:
                field_line(label, value)
        field_line("Memos:", proj.memo_count)
        field_line("Burned:", format_tokens(proj.burned_amount))
        field_line("Rank:", f"#{rank}" if rank is not None else "unranked")
        field_line("Created:", format_time(proj.created_at))
        field_line("Last memo:", format_time(proj.last_memo_time))

    run(action)


@project.command("list")
@click.argument("start", type=ENTITY_ID, default=0)
@click.argument("end", type=ENTITY_ID, required=False)
def list_projects(start: int, end: Optional[int]) -> None:
    """Show projects with START <= id < END (default: all)."""

    async def action(session: Session) -> None:
        stop = end if end is not None else await next_project_id(session.rpc, session.programs)
        projects = await fetch_projects_range(
            session.rpc, session.programs, start, stop, session.settings.concurrency
        )
        for p in projects:
            click.echo(f"  #{p.project_id:<6} {p.name:<32} {format_tokens(p.burned_amount):>16} burned")
        click.echo(f"  {len(projects)} projects")

    run(action)


@project.command("create")
@click.option("--name", required=True, help="1-64 bytes")
@click.option("--burn", "burn_tokens", type=int, default=42_069, show_default=True, help="Tokens to burn")
@click.option("--description", default="")
@click.option("--image", default="")
@click.option("--website", default="")
@click.option("--tag", "tags", multiple=True, help="Repeat for up to 4 tags")
def create(
    name: str,
    burn_tokens: int,
    description: str,
    image: str,
    website: str,
    tags: tuple[str, ...],
) -> None:
    """Create a project."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        project_id = await next_project_id(session.rpc, session.programs)
        op = build_create_project(
            session.programs, signer.public_key(), project_id, name, tokens(burn_tokens),
            description=description, image=image, website=website, tags=tags,
        )
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Project #{submission.result} created")

    run(action)


@project.command("update")
@click.argument("project_id", type=ENTITY_ID)
@click.option("--burn", "burn_tokens", type=int, default=42_069, show_default=True, help="Tokens to burn")
@click.option("--name", default=None)
@click.option("--description", default=None)
@click.option("--image", default=None)
@click.option("--website", default=None)
@click.option("--tag", "tags", multiple=True, help="Replaces all tags")
def update(
    project_id: int,
    burn_tokens: int,
    name: Optional[str],
    description: Optional[str],
    image: Optional[str],
    website: Optional[str],
    tags: tuple[str, ...],
) -> None:
    """Update project PROJECT_ID; omitted fields stay unchanged."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = build_update_project(
            session.programs, signer.public_key(), project_id, tokens(burn_tokens),
            name=name, description=description, image=image, website=website,
            tags=tags or None,
        )
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Project #{project_id} updated")

    run(action)


@project.command("burn")
@click.argument("project_id", type=ENTITY_ID)
@click.argument("amount", type=int)
@click.option("--message", "-m", default="", help="Up to 696 bytes")
def burn(project_id: int, amount: int, message: str) -> None:
    """Burn AMOUNT tokens for project PROJECT_ID."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = build_burn_for_project(session.programs, signer.public_key(), project_id, tokens(amount), message)
        await session.ensure_burn_stats(signer)
        submission = await session.submit(op, signer)
        report(submission, f"Burned {amount:,} tokens for project #{project_id}")

    run(action)


@project.command("leaderboard")
@click.option("--limit", type=int, default=20, show_default=True)
def leaderboard(limit: int) -> None:
    """Show the project burn leaderboard."""

    async def action(session: Session) -> None:
        board = await fetch_leaderboard(session.rpc, session.programs)
        for entry in board.entries[:limit]:
            click.echo(f"  #{entry.rank:<4} project {entry.entity_id:<8} {format_tokens(entry.burned_amount):>20}")
        click.echo()
        field_line("Total burned:", format_tokens(board.total_burned))

    run(action)
