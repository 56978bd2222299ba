"""
Theurgy Chat - chat groups.

Commands:
- show: Show one chat group
- list: Show groups in an id range
- send: Send a message to a group and mint the current reward
"""

from __future__ import annotations

from typing import Optional

import click

from ..codex.accounts import ChatGroup
from ..domains.chat import fetch_chat_group, fetch_chat_groups_range, next_group_id, prepare_send_message
from .common import ENTITY_ID, Session, field_line, format_time, format_tokens, report, run, signer_or_exit


def print_group(group: ChatGroup) -> None:
    click.secho(f"  Group #{group.group_id}: {group.name}", fg="bright_white", bold=True)
    field_line("Creator:", group.creator)
    if group.description:
        field_line("Description:", group.description)
    if group.tags:
        field_line("Tags:", ", ".join(group.tags))
    field_line("Memos:", group.memo_count)
    field_line("Burned:", format_tokens(group.burned_amount))
    field_line("Min interval:", f"{group.min_memo_interval}s")
    field_line("Created:", format_time(group.created_at))
    field_line("Last memo:", format_time(group.last_memo_time))


@click.group()
def chat() -> None:
    """Chat groups and messages."""


@chat.command("show")
@click.argument("group_id", type=ENTITY_ID)
def show(group_id: int) -> None:
    """Show chat group GROUP_ID."""

    async def action(session: Session) -> None:
        print_group(await fetch_chat_group(session.rpc, session.programs, group_id))

    run(action)


@chat.command("list")
@click.argument("start", type=ENTITY_ID, default=0)
@click.argument("end", type=ENTITY_ID, required=False)
def list_groups(start: int, end: Optional[int]) -> None:
    """Show chat groups with START <= id < END (default: all)."""

    async def action(session: Session) -> None:
        stop = end if end is not None else await next_group_id(session.rpc, session.programs)
        groups = await fetch_chat_groups_range(
            session.rpc, session.programs, start, stop, session.settings.concurrency
        )
        for g in groups:
            click.echo(f"  #{g.group_id:<6} {g.name:<32} {g.memo_count:>8} memos")
        click.echo(f"  {len(groups)} groups")

    run(action)


@chat.command("send")
@click.argument("group_id", type=ENTITY_ID)
@click.argument("message")
@click.option("--to", "receiver", default=None, help="Address the message is addressed to")
@click.option("--reply-to", default=None, help="Signature of the message being answered")
def send(group_id: int, message: str, receiver: Optional[str], reply_to: Optional[str]) -> None:
    """Send MESSAGE (1-512 bytes) to chat group GROUP_ID."""
    signer = signer_or_exit()

    async def action(session: Session) -> None:
        op = await prepare_send_message(
            session.rpc, session.programs, signer.public_key(), group_id, message, receiver, reply_to
        )
        submission = await session.submit(op, signer)
        report(submission, f"Message sent to group #{group_id}")

    run(action)
