"""Instruction builders for the dmandate program.

Account order follows the program's instruction definitions; Anchor resolves
accounts positionally.
"""
from __future__ import annotations

from dataclasses import dataclass

from .solana.borsh import BorshWriter, instruction_discriminator
from .solana.keys import Pubkey
from .solana.transaction import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    AccountMeta,
    Instruction,
)

EXECUTE_PAYMENT = instruction_discriminator("execute_payment")
CANCEL_MANDATE = instruction_discriminator("cancel_mandate")
CLOSE_PAYMENT_HISTORY = instruction_discriminator("close_payment_history")
REGISTER_USER = instruction_discriminator("register_user")
CREATE_MANDATE = instruction_discriminator("create_mandate")
REAPPROVE_MANDATE = instruction_discriminator("reapprove_mandate")


@dataclass(frozen=True)
class ExecutePaymentAccounts:
    """Every account the transfer-and-record instruction touches."""
    signer: Pubkey
    payer: Pubkey
    payer_holding: Pubkey
    payee: Pubkey
    mandate: Pubkey
    payment_record: Pubkey
    token: Pubkey
    payee_holding: Pubkey


def execute_payment(program_id: Pubkey, accounts: ExecutePaymentAccounts) -> Instruction:
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(accounts.signer, is_signer=True, is_writable=True),
            AccountMeta(accounts.payer, is_signer=False, is_writable=True),
            AccountMeta(accounts.payer_holding, is_signer=False, is_writable=True),
            AccountMeta(accounts.payee, is_signer=False, is_writable=True),
            AccountMeta(accounts.mandate, is_signer=False, is_writable=True),
            AccountMeta(accounts.payment_record, is_signer=False, is_writable=True),
            AccountMeta(accounts.token, is_signer=False, is_writable=False),
            AccountMeta(accounts.payee_holding, is_signer=False, is_writable=True),
            AccountMeta(ASSOCIATED_TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        data=EXECUTE_PAYMENT,
    )


def cancel_mandate(
    program_id: Pubkey,
    *,
    payer: Pubkey,
    token: Pubkey,
    payer_holding: Pubkey,
    mandate: Pubkey,
    payer_user: Pubkey,
    payee_user: Pubkey,
) -> Instruction:
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(token, is_signer=False, is_writable=False),
            AccountMeta(payer_holding, is_signer=False, is_writable=True),
            AccountMeta(mandate, is_signer=False, is_writable=True),
            AccountMeta(payer_user, is_signer=False, is_writable=True),
            AccountMeta(payee_user, is_signer=False, is_writable=True),
            AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        data=CANCEL_MANDATE,
    )


def close_payment_history(
    program_id: Pubkey,
    *,
    authority: Pubkey,
    mandate: Pubkey,
    payment_record: Pubkey,
) -> Instruction:
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(authority, is_signer=True, is_writable=True),
            AccountMeta(mandate, is_signer=False, is_writable=False),
            AccountMeta(payment_record, is_signer=False, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        data=CLOSE_PAYMENT_HISTORY,
    )


def register_user(
    program_id: Pubkey,
    *,
    authority: Pubkey,
    user: Pubkey,
    name: str,
) -> Instruction:
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(user, is_signer=False, is_writable=True),
            AccountMeta(authority, is_signer=True, is_writable=True),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        data=BorshWriter().raw(REGISTER_USER).string(name).to_bytes(),
    )


def create_mandate(
    program_id: Pubkey,
    *,
    payer: Pubkey,
    payee: Pubkey,
    token: Pubkey,
    payer_holding: Pubkey,
    mandate: Pubkey,
    payer_user: Pubkey,
    payee_user: Pubkey,
    amount: int,
    frequency: int,
    name: str,
    description: str,
) -> Instruction:
    """Create a mandate; the program also approves the mandate as delegate on
    the payer's token account."""
    data = (
        BorshWriter()
        .raw(CREATE_MANDATE)
        .u64(amount)
        .i64(frequency)
        .string(name)
        .string(description)
        .to_bytes()
    )
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(payee, is_signer=False, is_writable=True),
            AccountMeta(token, is_signer=False, is_writable=False),
            AccountMeta(payer_holding, is_signer=False, is_writable=True),
            AccountMeta(mandate, is_signer=False, is_writable=True),
            AccountMeta(payer_user, is_signer=False, is_writable=True),
            AccountMeta(payee_user, is_signer=False, is_writable=True),
            AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
            AccountMeta(SYSTEM_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        data=data,
    )


def reapprove_mandate(
    program_id: Pubkey,
    *,
    payer: Pubkey,
    token: Pubkey,
    payer_holding: Pubkey,
    mandate: Pubkey,
    amount: int,
) -> Instruction:
    return Instruction(
        program_id=program_id,
        accounts=[
            AccountMeta(payer, is_signer=True, is_writable=True),
            AccountMeta(token, is_signer=False, is_writable=False),
            AccountMeta(payer_holding, is_signer=False, is_writable=True),
            AccountMeta(mandate, is_signer=False, is_writable=True),
            AccountMeta(TOKEN_PROGRAM_ID, is_signer=False, is_writable=False),
        ],
        data=BorshWriter().raw(REAPPROVE_MANDATE).u64(amount).to_bytes(),
    )
