"""
Operation descriptors.

Every memo-token program instruction has the same shape: a memo at index 0
carrying a ``BurnMemo`` (or plain text for minting), then the program
instruction, whose data is the Anchor discriminator followed by Borsh
arguments. An ``OperationDescriptor`` captures the per-instruction constants
(discriminator name, argument layout, burn rule, budget policy, memo range)
and ``build_operation`` turns one into a ready-to-assemble ``Operation``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional, Sequence

from construct import Construct
from solders.instruction import AccountMeta, Instruction
from solders.pubkey import Pubkey

from ..codex.accounts import parse_global_counter
from ..codex.memo import PROGRAM_MEMO_RANGE, U64_MAX, MemoRange
from ..config import SYSTEM_PROGRAM, SYSVAR_INSTRUCTIONS, UNITS_PER_TOKEN, ProgramIds
from ..errors import AccountNotFoundError, DecodeError, InvalidParameterError
from ..pneuma.budget import SOCIAL_POLICY, BudgetPolicy
from ..pneuma.rpc import RpcClient
from ..pneuma.tx import memo_instruction
from ..sigil.derive import (
    associated_token_address,
    discriminator,
    global_counter_address,
    mint_authority_address,
    user_burn_stats_address,
)


def writable(pubkey: Pubkey, signer: bool = False) -> AccountMeta:
    return AccountMeta(pubkey=pubkey, is_signer=signer, is_writable=True)


def readonly(pubkey: Pubkey) -> AccountMeta:
    return AccountMeta(pubkey=pubkey, is_signer=False, is_writable=False)


def tokens(amount: int) -> int:
    """Whole tokens to base units."""
    return amount * UNITS_PER_TOKEN


@dataclass(frozen=True)
class BurnRule:
    """Allowed burn amounts, in base units."""

    minimum: int
    maximum: int = U64_MAX
    whole_tokens: bool = True

    def check(self, amount: int, field_name: str = "burn_amount") -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise InvalidParameterError(field_name, f"expected an integer, got {type(amount).__name__}")
        if amount < self.minimum:
            raise InvalidParameterError(
                field_name,
                f"must be at least {self.minimum // UNITS_PER_TOKEN} tokens ({self.minimum} units)",
                limit=self.minimum,
            )
        if amount > self.maximum:
            raise InvalidParameterError(
                field_name, f"must be at most {self.maximum} units", limit=self.maximum
            )
        if self.whole_tokens and amount % UNITS_PER_TOKEN != 0:
            raise InvalidParameterError(field_name, "must be a whole number of tokens")


@dataclass(frozen=True)
class OperationDescriptor:
    """Constants of one program instruction."""

    instruction: str
    args: Optional[Construct] = None
    burn_rule: Optional[BurnRule] = None
    policy: BudgetPolicy = SOCIAL_POLICY
    memo_range: MemoRange = PROGRAM_MEMO_RANGE

    @property
    def discriminator(self) -> bytes:
        return discriminator(self.instruction)

    def instruction_data(self, **args: Any) -> bytes:
        data = self.discriminator
        if self.args is not None:
            data += self.args.build(args)
        elif args:
            raise TypeError(f"{self.instruction} takes no arguments")
        return data


@dataclass(frozen=True)
class Operation:
    """A built, unassembled operation: instructions in final order plus estimation inputs."""

    descriptor: OperationDescriptor
    payer: Pubkey
    instructions: tuple[Instruction, ...]
    memo_size: int = 0
    result: Any = None
    summary: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return self.descriptor.instruction

    @property
    def policy(self) -> BudgetPolicy:
        return self.descriptor.policy


def build_operation(
    descriptor: OperationDescriptor,
    program_id: Pubkey,
    payer: Pubkey,
    accounts: Sequence[AccountMeta],
    memo: Optional[str] = None,
    memo_signers: Sequence[Pubkey] = (),
    prefix: Sequence[Instruction] = (),
    result: Any = None,
    **args: Any,
) -> Operation:
    """
    Assemble the instruction list of an operation.

    Order is ``[memo] + prefix + [program instruction]``.

    Args:
        descriptor: Instruction constants
        program_id: Target program
        payer: Fee payer and signing user
        accounts: Program instruction accounts, in program order
        memo: Memo text, already encoded and range-checked
        memo_signers: Accounts the memo instruction requires as signers
        prefix: Extra instructions between memo and program instruction
        result: Value handed back to the caller with the signature (e.g. a new id)
        **args: Instruction arguments for ``descriptor.args``

    Returns:
        Operation ready for the pipeline
    """
    instructions: list[Instruction] = []
    if memo is not None:
        instructions.append(memo_instruction(memo, memo_signers))
    instructions.extend(prefix)
    instructions.append(Instruction(program_id, descriptor.instruction_data(**args), list(accounts)))
    return Operation(
        descriptor=descriptor,
        payer=payer,
        instructions=tuple(instructions),
        memo_size=len(memo.encode("utf-8")) if memo is not None else 0,
        result=result,
        summary=dict(args),
    )


# ============ Account reads ============


async def fetch_owned(rpc: RpcClient, address: Pubkey, owner: Pubkey, what: str) -> Optional[bytes]:
    """
    Fetch account data, checking the owning program.

    Returns:
        Account data, or None if the account does not exist

    Raises:
        DecodeError: If the account is owned by a different program
    """
    info = await rpc.get_account_info(str(address))
    if info is None:
        return None
    if info.owner != str(owner):
        raise DecodeError(f"{what} {address} is owned by {info.owner}, expected {owner}")
    return info.data


async def require_owned(rpc: RpcClient, address: Pubkey, owner: Pubkey, what: str) -> bytes:
    data = await fetch_owned(rpc, address, owner, what)
    if data is None:
        raise AccountNotFoundError(f"{what} not found: {address}")
    return data


async def read_counter(rpc: RpcClient, program_id: Pubkey, seed: bytes, what: str) -> int:
    """Current value of a program's global counter (the next entity id)."""
    address = global_counter_address(program_id, seed)
    data = await require_owned(rpc, address, program_id, what)
    return parse_global_counter(data)


# ============ Shared account lists ============


def burn_accounts(
    programs: ProgramIds,
    user: Pubkey,
    entities: Sequence[Pubkey],
    creates: bool = False,
) -> list[AccountMeta]:
    """
    Accounts of an instruction that burns through memo-burn.

    ``entities`` are the program's own writable accounts, in program order
    (e.g. counter, entity, leaderboard). ``creates`` adds the system program
    for instructions that allocate a new account.
    """
    token_account = associated_token_address(user, programs.token_mint, programs.token_2022)
    accounts = [writable(user, signer=True)]
    accounts.extend(writable(entity) for entity in entities)
    accounts.extend(
        [
            writable(programs.token_mint),
            writable(token_account),
            writable(user_burn_stats_address(programs.burn, user)),
            readonly(programs.token_2022),
            readonly(programs.burn),
        ]
    )
    if creates:
        accounts.append(readonly(SYSTEM_PROGRAM))
    accounts.append(readonly(SYSVAR_INSTRUCTIONS))
    return accounts


def mint_accounts(programs: ProgramIds, user: Pubkey, entity: Pubkey) -> list[AccountMeta]:
    """Accounts of an instruction that mints through memo-mint."""
    token_account = associated_token_address(user, programs.token_mint, programs.token_2022)
    return [
        writable(user, signer=True),
        writable(entity),
        writable(programs.token_mint),
        readonly(mint_authority_address(programs.mint)),
        writable(token_account),
        readonly(programs.token_2022),
        readonly(programs.mint),
        readonly(SYSVAR_INSTRUCTIONS),
    ]
