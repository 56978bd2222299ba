"""
Transaction assembly.

Instruction order is fixed and identical for the simulation and the final
transaction::

    [memo] + program instruction(s) + set_compute_unit_limit [+ set_compute_unit_price]

The programs read the memo at index 0 through the instructions sysvar, and
the simulated unit count is only valid for the exact same instruction list.
Transactions are built unsigned; signing belongs to the ``Signer``.
"""

from __future__ import annotations

from typing import Optional, Sequence

from borsh_construct import CStruct, U8, U64
from solders.compute_budget import set_compute_unit_limit, set_compute_unit_price
from solders.hash import Hash
from solders.instruction import AccountMeta, Instruction
from solders.message import Message
from solders.pubkey import Pubkey
from solders.transaction import Transaction

from ..config import ASSOCIATED_TOKEN_PROGRAM, MEMO_PROGRAM, SYSTEM_PROGRAM, TOKEN_2022_PROGRAM

# Platform maximum; also the placeholder limit used while simulating
MAX_COMPUTE_UNIT_LIMIT = 1_400_000

TRANSFER_CHECKED = 12

TRANSFER_CHECKED_LAYOUT = CStruct("instruction" / U8, "amount" / U64, "decimals" / U8)


def memo_instruction(text: str, signers: Sequence[Pubkey] = ()) -> Instruction:
    """SPL memo instruction carrying ``text`` (optionally requiring signers)."""
    accounts = [AccountMeta(pubkey=s, is_signer=True, is_writable=False) for s in signers]
    return Instruction(MEMO_PROGRAM, text.encode("utf-8"), accounts)


def create_idempotent_ata_instruction(
    payer: Pubkey,
    owner: Pubkey,
    mint: Pubkey,
    ata: Pubkey,
    token_program: Pubkey = TOKEN_2022_PROGRAM,
) -> Instruction:
    """Associated-token-account ``CreateIdempotent`` (instruction index 1)."""
    return Instruction(
        ASSOCIATED_TOKEN_PROGRAM,
        bytes([1]),
        [
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(ata, is_signer=False, is_writable=True),
            AccountMeta(owner, is_signer=False, is_writable=False),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM, is_signer=False, is_writable=False),
            AccountMeta(token_program, is_signer=False, is_writable=False),
        ],
    )


def transfer_checked_instruction(
    source: Pubkey,
    mint: Pubkey,
    destination: Pubkey,
    owner: Pubkey,
    amount: int,
    decimals: int,
    token_program: Pubkey = TOKEN_2022_PROGRAM,
) -> Instruction:
    """Token program ``TransferChecked`` between two token accounts of ``mint``."""
    data = TRANSFER_CHECKED_LAYOUT.build({"instruction": TRANSFER_CHECKED, "amount": amount, "decimals": decimals})
    return Instruction(
        token_program,
        data,
        [
            AccountMeta(source, is_signer=False, is_writable=True),
            AccountMeta(mint, is_signer=False, is_writable=False),
            AccountMeta(destination, is_signer=False, is_writable=True),
            AccountMeta(owner, is_signer=True, is_writable=False),
        ],
    )

def compute_budget_instructions(unit_limit: int, unit_price: Optional[int] = None) -> list[Instruction]:
    """Limit instruction, followed by the price instruction when a price is set."""
    instructions = [set_compute_unit_limit(min(unit_limit, MAX_COMPUTE_UNIT_LIMIT))]
    if unit_price:
        instructions.append(set_compute_unit_price(unit_price))
    return instructions


def order_instructions(
    base: Sequence[Instruction],
    unit_limit: int,
    unit_price: Optional[int] = None,
) -> list[Instruction]:
    """Final instruction order: base instructions (memo first), then compute budget."""
    return list(base) + compute_budget_instructions(unit_limit, unit_price)


def assemble(
    base: Sequence[Instruction],
    payer: Pubkey,
    blockhash: Hash,
    unit_limit: int,
    unit_price: Optional[int] = None,
) -> Transaction:
    """
    Build an unsigned legacy transaction.

    Args:
        base: Memo and program instructions, memo first
        payer: Fee payer (and signer)
        blockhash: Recent blockhash
        unit_limit: Compute unit limit
        unit_price: Optional priority fee in micro-lamports per unit

    Returns:
        Unsigned transaction
    """
    instructions = order_instructions(base, unit_limit, unit_price)
    message = Message.new_with_blockhash(instructions, payer, blockhash)
    return Transaction.new_unsigned(message)


def instruction_program_ids(tx: Transaction) -> list[Pubkey]:
    """Program id of each instruction, in order."""
    keys = tx.message.account_keys
    return [keys[ix.program_id_index] for ix in tx.message.instructions]
