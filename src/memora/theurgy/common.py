"""
Shared plumbing for CLI commands.

Commands describe their work as an ``async`` function of a ``Session``;
``run`` opens the transport, drives the coroutine and turns any
``MemoraError`` into a red message and the error's exit code.
"""

from __future__ import annotations

import asyncio
import datetime
import sys
from dataclasses import dataclass
from typing import Awaitable, Callable, Optional, TypeVar

import click

from ..codex.records import U64_MAX
from ..config import UNITS_PER_TOKEN, ProgramIds, Settings
from ..domains.base import Operation
from ..domains.burn import build_initialize_burn_stats, fetch_burn_stats
from ..errors import MemoraError, TransactionFailedError
from ..pneuma.pipeline import Submission, TransactionPipeline
from ..pneuma.rpc import RpcClient
from ..sigil.signer import KeypairSigner, load_signer

T = TypeVar("T")

# on-chain ids are u64 seeds
ENTITY_ID = click.IntRange(0, U64_MAX)


@dataclass
class Session:
    settings: Settings
    rpc: RpcClient

    @property
    def programs(self) -> ProgramIds:
        return self.settings.network.programs

    async def submit(self, operation: Operation, signer: KeypairSigner) -> Submission:
        pipeline = TransactionPipeline(self.rpc, self.settings)
        return await pipeline.submit(operation, signer)

    async def ensure_burn_stats(self, signer: KeypairSigner) -> None:
        """Initialize the signer's burn statistics account if it is missing."""
        user = signer.public_key()
        if await fetch_burn_stats(self.rpc, self.programs, user) is not None:
            return
        click.echo("  Initializing burn statistics account...")
        submission = await self.submit(build_initialize_burn_stats(self.programs, user), signer)
        click.echo(f"  Stats account: {submission.result} ({submission.signature})")


def fail(exc: MemoraError) -> None:
    click.secho(f"ERROR: {exc}", fg="red", err=True)
    if isinstance(exc, TransactionFailedError):
        for line in exc.logs[-10:]:
            click.secho(f"  {line}", dim=True, err=True)
    sys.exit(exc.exit_code)


def run(action: Callable[[Session], Awaitable[T]]) -> T:
    """Run ``action`` against a fresh session built from the environment."""

    async def _main(settings: Settings) -> T:
        async with RpcClient(settings) as rpc:
            return await action(Session(settings=settings, rpc=rpc))

    try:
        settings = Settings.from_env()
        return asyncio.run(_main(settings))
    except MemoraError as exc:
        fail(exc)
        raise


def signer_or_exit() -> KeypairSigner:
    try:
        return load_signer()
    except MemoraError as exc:
        fail(exc)
        raise


def format_tokens(units: int) -> str:
    whole, frac = divmod(units, UNITS_PER_TOKEN)
    if frac == 0:
        return f"{whole:,}"
    return f"{whole:,}.{frac:06d}".rstrip("0")


def format_time(timestamp: Optional[int]) -> str:
    if not timestamp:
        return "never"
    ts = datetime.datetime.fromtimestamp(timestamp, tz=datetime.timezone.utc)
    return ts.strftime("%Y-%m-%d %H:%M:%S UTC")


def field_line(label: str, value: object) -> None:
    click.echo(click.style(f"  {label:<16}", dim=True) + str(value))


def report(submission: Submission, what: str) -> None:
    click.secho(f"  {what}", fg="green")
    field_line("Signature:", submission.signature)
    field_line("CU limit:", submission.unit_limit)
