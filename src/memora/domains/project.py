"""
memo-project: numbered projects ranked on a burn leaderboard.

Creating or updating a project burns at least 42,069 tokens; supporting a
project burns at least 420. Every burn moves the project on the program's
leaderboard account.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Sequence

from borsh_construct import CStruct, U64
from solders.pubkey import Pubkey

from ..anamnesis.history import MemoPage, read_memos
from ..anamnesis.stats import fetch_range
from ..codex.accounts import Leaderboard, Project, parse_leaderboard, parse_project
from ..codex.memo import encode_memo
from ..codex.records import ProjectBurn, ProjectCreation, ProjectUpdate
from ..config import DEFAULT_CONCURRENCY, ProgramIds
from ..errors import InvalidParameterError
from ..pneuma.rpc import RpcClient
from ..sigil.derive import GLOBAL_COUNTER_SEED, PROJECT_SEED, burn_leaderboard_address, entity_address, global_counter_address
from .base import (
    BurnRule,
    Operation,
    OperationDescriptor,
    build_operation,
    burn_accounts,
    read_counter,
    require_owned,
    tokens,
)

logger = logging.getLogger(__name__)

MIN_PROJECT_CREATION_BURN = tokens(42_069)
MIN_PROJECT_UPDATE_BURN = tokens(42_069)
MIN_PROJECT_BURN = tokens(420)

CREATE_PROJECT = OperationDescriptor(
    "create_project",
    args=CStruct("project_id" / U64, "burn_amount" / U64),
    burn_rule=BurnRule(MIN_PROJECT_CREATION_BURN),
)
UPDATE_PROJECT = OperationDescriptor(
    "update_project",
    args=CStruct("project_id" / U64, "burn_amount" / U64),
    burn_rule=BurnRule(MIN_PROJECT_UPDATE_BURN),
)
BURN_FOR_PROJECT = OperationDescriptor(
    "burn_for_project",
    args=CStruct("project_id" / U64, "amount" / U64),
    burn_rule=BurnRule(MIN_PROJECT_BURN),
)


@dataclass(frozen=True)
class ProjectStatistics:
    total_projects: int
    valid_projects: int
    total_memos: int
    total_burned: int
    projects: tuple[Project, ...]


def project_address(programs: ProgramIds, project_id: int) -> Pubkey:
    return entity_address(programs.project, PROJECT_SEED, project_id)


def build_create_project(
    programs: ProgramIds,
    user: Pubkey,
    project_id: int,
    name: str,
    burn_amount: int,
    description: str = "",
    image: str = "",
    website: str = "",
    tags: Sequence[str] = (),
) -> Operation:
    """
    Build a ``create_project`` operation.

    Args:
        programs: Program ids of the target network
        user: Creator and fee payer
        project_id: Next id from the global counter (see ``next_project_id``)
        name: 1-64 bytes
        burn_amount: Base units, whole tokens, at least 42,069 tokens
        description: Up to 256 bytes
        image: Up to 256 bytes
        website: Up to 128 bytes
        tags: Up to 4 tags of 1-32 bytes

    Returns:
        Operation whose result is the new project id
    """
    CREATE_PROJECT.burn_rule.check(burn_amount)
    record = ProjectCreation(
        project_id=project_id,
        name=name,
        description=description,
        image=image,
        website=website,
        tags=tuple(tags),
    )
    memo = encode_memo(record, burn_amount)
    entities = [
        global_counter_address(programs.project, GLOBAL_COUNTER_SEED),
        project_address(programs, project_id),
        burn_leaderboard_address(programs.project),
    ]
    accounts = burn_accounts(programs, user, entities, creates=True)
    return build_operation(
        CREATE_PROJECT, programs.project, user, accounts,
        memo=memo, memo_signers=[user], result=project_id, project_id=project_id, burn_amount=burn_amount,
    )


def build_update_project(
    programs: ProgramIds,
    user: Pubkey,
    project_id: int,
    burn_amount: int,
    name: Optional[str] = None,
    description: Optional[str] = None,
    image: Optional[str] = None,
    website: Optional[str] = None,
    tags: Optional[Sequence[str]] = None,
) -> Operation:
    """Build an ``update_project`` operation; ``None`` fields stay unchanged."""
    UPDATE_PROJECT.burn_rule.check(burn_amount)
    if all(v is None for v in (name, description, image, website, tags)):
        raise InvalidParameterError("project", "nothing to update")
    record = ProjectUpdate(
        project_id=project_id,
        name=name,
        description=description,
        image=image,
        website=website,
        tags=None if tags is None else tuple(tags),
    )
    memo = encode_memo(record, burn_amount)
    entities = [project_address(programs, project_id), burn_leaderboard_address(programs.project)]
    accounts = burn_accounts(programs, user, entities)
    return build_operation(
        UPDATE_PROJECT, programs.project, user, accounts,
        memo=memo, memo_signers=[user], result=project_id, project_id=project_id, burn_amount=burn_amount,
    )


def build_burn_for_project(
    programs: ProgramIds,
    user: Pubkey,
    project_id: int,
    amount: int,
    message: str = "",
) -> Operation:
    """Burn ``amount`` base units for a project (message up to 696 bytes)."""
    BURN_FOR_PROJECT.burn_rule.check(amount, "amount")
    memo = encode_memo(ProjectBurn(project_id=project_id, burner=str(user), message=message), amount)
    entities = [project_address(programs, project_id), burn_leaderboard_address(programs.project)]
    accounts = burn_accounts(programs, user, entities)
    return build_operation(
        BURN_FOR_PROJECT, programs.project, user, accounts,
        memo=memo, memo_signers=[user], result=project_id, project_id=project_id, amount=amount,
    )


# ============ Reads ============


async def next_project_id(rpc: RpcClient, programs: ProgramIds) -> int:
    return await read_counter(rpc, programs.project, GLOBAL_COUNTER_SEED, "project global counter")


async def fetch_project(rpc: RpcClient, programs: ProgramIds, project_id: int) -> Project:
    data = await require_owned(
        rpc, project_address(programs, project_id), programs.project, f"project {project_id}"
    )
    return parse_project(data)


async def fetch_projects_range(
    rpc: RpcClient,
    programs: ProgramIds,
    start_id: int,
    end_id: int,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> list[Project]:
    """Existing projects with ``start_id <= id < end_id``; missing ids are skipped."""
    if start_id >= end_id:
        raise InvalidParameterError("range", f"start_id {start_id} must be below end_id {end_id}")
    result = await fetch_range(
        end_id, lambda i: fetch_project(rpc, programs, i), concurrency, start=start_id, what="project"
    )
    return list(result.items)


async def project_statistics(
    rpc: RpcClient,
    programs: ProgramIds,
    concurrency: int = DEFAULT_CONCURRENCY,
) -> ProjectStatistics:
    """Fetch every project and aggregate; unreadable projects are skipped."""
    total = await next_project_id(rpc, programs)
    result = await fetch_range(total, lambda i: fetch_project(rpc, programs, i), concurrency, what="project")
    return ProjectStatistics(
        total_projects=result.total,
        valid_projects=result.valid,
        total_memos=sum(p.memo_count for p in result.items),
        total_burned=sum(p.burned_amount for p in result.items),
        projects=result.items,
    )


async def fetch_leaderboard(rpc: RpcClient, programs: ProgramIds) -> Leaderboard:
    address = burn_leaderboard_address(programs.project)
    data = await require_owned(rpc, address, programs.project, "project burn leaderboard")
    board = parse_leaderboard(data)
    logger.info("Leaderboard: %d entries, %d units burned", len(board.entries), board.total_burned)
    return board


async def project_rank(rpc: RpcClient, programs: ProgramIds, project_id: int) -> Optional[int]:
    """1-based leaderboard rank, or None if the project is not ranked."""
    board = await fetch_leaderboard(rpc, programs)
    return board.rank_of(project_id)


async def project_burn_messages(
    rpc: RpcClient,
    programs: ProgramIds,
    project_id: int,
    limit: int = 50,
    before: Optional[str] = None,
) -> MemoPage:
    """Burn messages posted to a project, oldest first."""
    address = project_address(programs, project_id)
    await require_owned(rpc, address, programs.project, f"project {project_id}")

    def accept(memo) -> bool:
        record = memo.record
        return (
            isinstance(record, ProjectBurn)
            and record.matches(project_id=project_id)
            and bool(record.message.strip())
        )

    return await read_memos(rpc, str(address), limit=limit, before=before, accept=accept, newest_first=False)
