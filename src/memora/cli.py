"""
Memora CLI

Command-line interface for the X1 memo-token programs.

Every write is simulated first to size its compute budget, then signed
locally with the configured keypair and submitted. Settings come from the
environment, seeded from ``~/.memora/.env``.

Commands:
  profile   - Create, update, delete and show profiles
  blog      - Numbered blogs with burn and mint messages
  forum     - Posts and replies
  project   - Projects and the burn leaderboard
  chat      - Chat groups; sending a message mints
  burn      - Plain burns and burn statistics
  mint      - Mint the current reward against a memo
  transfer  - Send native or memo tokens
  stats     - Aggregate statistics
  history   - Message history of an entity
  whoami    - Show the signing address
  balance   - Show native and token balances
  info      - Show network and node information
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import click

from .config import LAMPORTS_PER_NATIVE, Settings
from .errors import MemoraError
from .sigil.signer import load_signer
from .theurgy.common import Session, field_line, format_tokens, run, signer_or_exit


# ============ Constants ============

VERSION = "1.0.0"


# ============ Banner ============


def _print_banner() -> None:
    border = click.style("  ◆ ═══════════════════════════════════════ ◆", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()
    click.echo(
        click.style("          M E M O R A", fg="bright_white", bold=True)
        + click.style(f"          v{VERSION}", dim=True)
    )
    click.secho("        ─── Memo Token Programs on X1 ───", fg="cyan")
    click.echo()
    click.echo(border)
    click.echo()


# ============ Main CLI Group ============


@click.group(invoke_without_command=True)
@click.version_option(version=VERSION, prog_name="memora")
@click.option("--verbose", "-v", is_flag=True, help="Log RPC and pipeline activity")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Memora - memo-token programs on X1."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    if ctx.invoked_subcommand is None:
        _print_banner()
        click.echo(ctx.get_help())


# ============ Top-level Commands ============

from .theurgy.blog import blog
from .theurgy.burn import burn
from .theurgy.chat import chat
from .theurgy.forum import forum
from .theurgy.history import history
from .theurgy.mint import mint
from .theurgy.profile import profile
from .theurgy.project import project
from .theurgy.stats import stats
from .theurgy.transfer import transfer

cli.add_command(profile)
cli.add_command(blog)
cli.add_command(forum)
cli.add_command(project)
cli.add_command(chat)
cli.add_command(burn)
cli.add_command(mint)
cli.add_command(transfer)
cli.add_command(stats)
cli.add_command(history)


# ============ Identity ============


@cli.command()
def whoami() -> None:
    """Show the signing address."""
    try:
        signer = load_signer()
    except MemoraError as exc:
        click.echo(f"No signing key: {exc}")
        click.echo("Set MEMORA_KEYPAIR or PRIVATE_KEY in ~/.memora/.env")
        sys.exit(exc.exit_code)
    click.echo(f"Address: {signer.public_key()}")


@cli.command()
@click.argument("address", required=False)
def balance(address: Optional[str]) -> None:
    """Show native and token balances of ADDRESS (default: your own)."""
    owner = address or str(signer_or_exit().public_key())

    async def action(session: Session) -> None:
        lamports = await session.rpc.get_balance(owner)
        units = await session.rpc.get_token_balance(owner, str(session.programs.token_mint))
        click.echo(f"  {owner}")
        field_line("XNT:", f"{lamports / LAMPORTS_PER_NATIVE:,.9f}")
        field_line("Memo tokens:", format_tokens(units))

    run(action)


# ============ Info ============


@cli.command()
def info() -> None:
    """Show network and node information."""
    _print_banner()

    click.secho("  Status ─────────────────────────────────", fg="cyan")
    click.echo()

    try:
        address = str(load_signer().public_key())
        field_line("Address:", click.style(address, fg="bright_white"))
    except MemoraError:
        field_line(
            "Address:",
            click.style("not configured", fg="yellow") + click.style("  (set PRIVATE_KEY)", dim=True),
        )

    async def action(session: Session) -> None:
        settings: Settings = session.settings
        field_line("Network:", settings.network.name)
        field_line("Endpoint:", session.rpc.endpoint)
        try:
            version = await session.rpc.get_version()
            field_line("Node:", version.solana_core)
        except MemoraError as exc:
            field_line("Node:", click.style(f"unreachable ({exc})", fg="yellow"))
        multiplier = settings.compute_unit_multiplier()
        field_line("CU buffer:", f"x{multiplier:.2f}" if multiplier else "per operation")
        field_line("CU price:", f"{settings.compute_unit_price} micro-lamports")

    run(action)
    click.echo()


# ============ Entry Points ============


def main() -> None:
    """Memora CLI entry point."""
    if sys.platform == "win32":
        try:
            sys.stdout.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
            sys.stderr.reconfigure(encoding="utf-8")  # type: ignore[union-attr]
        except (AttributeError, OSError):
            pass
    cli()


if __name__ == "__main__":
    main()
