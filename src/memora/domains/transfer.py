"""
Native and memo-token transfers.

Transfers carry no memo and call no memo-token program, so they are built
as ``Operation`` values directly rather than through ``build_operation``.
Token transfers use Token-2022 ``TransferChecked``; the recipient's token
account is created in the same transaction when missing.
"""

from __future__ import annotations

import logging
from decimal import Decimal, InvalidOperation
from typing import Union

from solders.pubkey import Pubkey
from solders.system_program import TransferParams, transfer

from ..codex.records import U64_MAX
from ..config import TOKEN_DECIMALS, ProgramIds
from ..errors import InvalidParameterError
from ..pneuma.budget import TRANSFER_POLICY
from ..pneuma.rpc import RpcClient
from ..pneuma.tx import create_idempotent_ata_instruction, transfer_checked_instruction
from ..sigil.derive import associated_token_address, to_pubkey
from .base import Operation, OperationDescriptor

logger = logging.getLogger(__name__)

NATIVE_TRANSFER = OperationDescriptor("transfer", policy=TRANSFER_POLICY)
TOKEN_TRANSFER = OperationDescriptor("transfer_checked", policy=TRANSFER_POLICY)


def parse_amount(text: str, decimals: int) -> int:
    """
    Convert a decimal amount (``"1.5"``) to base units.

    Raises:
        InvalidParameterError: If the text is not a number, is not positive,
            has more than ``decimals`` fractional digits or overflows a u64
    """
    try:
        value = Decimal(text.strip())
    except (InvalidOperation, AttributeError) as exc:
        raise InvalidParameterError("amount", f"not a number: {text!r}") from exc
    if not value.is_finite():
        raise InvalidParameterError("amount", f"not a number: {text!r}")
    units = value.scaleb(decimals)
    if units != units.to_integral_value():
        raise InvalidParameterError("amount", f"at most {decimals} decimal places")
    return check_amount(int(units))


def check_amount(amount: int) -> int:
    if not isinstance(amount, int) or isinstance(amount, bool):
        raise InvalidParameterError("amount", f"expected an integer, got {type(amount).__name__}")
    if amount <= 0:
        raise InvalidParameterError("amount", "must be greater than zero")
    if amount > U64_MAX:
        raise InvalidParameterError("amount", f"must be at most {U64_MAX} units", limit=U64_MAX)
    return amount


def build_native_transfer(user: Pubkey, recipient: Union[str, Pubkey], lamports: int) -> Operation:
    """System program transfer of ``lamports`` from ``user`` to ``recipient``."""
    check_amount(lamports)
    to = to_pubkey(recipient, "recipient")
    ix = transfer(TransferParams(from_pubkey=user, to_pubkey=to, lamports=lamports))
    return Operation(
        descriptor=NATIVE_TRANSFER,
        payer=user,
        instructions=(ix,),
        result=str(to),
        summary={"recipient": str(to), "lamports": lamports},
    )


def build_token_transfer(
    programs: ProgramIds,
    user: Pubkey,
    recipient: Union[str, Pubkey],
    amount: int,
    create_recipient_account: bool = False,
) -> Operation:
    """
    Transfer ``amount`` base units of the memo token to ``recipient``.

    Args:
        programs: Program ids of the target network
        user: Sender, token account owner and fee payer
        recipient: Recipient wallet address (not a token account)
        amount: Base units, greater than zero
        create_recipient_account: Create the recipient's token account first

    Returns:
        Operation whose result is the recipient's token account
    """
    check_amount(amount)
    to = to_pubkey(recipient, "recipient")
    source = associated_token_address(user, programs.token_mint, programs.token_2022)
    destination = associated_token_address(to, programs.token_mint, programs.token_2022)
    instructions = []
    if create_recipient_account:
        instructions.append(
            create_idempotent_ata_instruction(user, to, programs.token_mint, destination, programs.token_2022)
        )
    instructions.append(
        transfer_checked_instruction(
            source, programs.token_mint, destination, user, amount, TOKEN_DECIMALS, programs.token_2022
        )
    )
    return Operation(
        descriptor=TOKEN_TRANSFER,
        payer=user,
        instructions=tuple(instructions),
        result=str(destination),
        summary={"recipient": str(to), "amount": amount},
    )


async def prepare_token_transfer(
    rpc: RpcClient,
    programs: ProgramIds,
    user: Pubkey,
    recipient: Union[str, Pubkey],
    amount: int,
) -> Operation:
    """``build_token_transfer``, creating the recipient's token account if the ledger has none."""
    operation = build_token_transfer(programs, user, recipient, amount)
    destination = operation.result
    if await rpc.get_account_info(destination) is not None:
        return operation
    logger.info("Recipient token account %s does not exist; it will be created", destination)
    return build_token_transfer(programs, user, recipient, amount, create_recipient_account=True)
