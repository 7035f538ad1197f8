"""Deterministic address derivation shared by the processor and the CLI.

Seeds must match the dmandate program bit-for-bit:

- user account:      ["user", owner]
- mandate account:   ["dmandate", payer, payee]
- payment record:    ["payment_history", mandate, u32 LE payment number]
- token holding:     [owner, token program, mint] under the associated token program

The payment-record address doubles as the idempotency key of a payment: the
same (mandate, payment number) always derives the same account, so a second
submission fails on the ledger instead of paying twice.
"""
from __future__ import annotations

import struct

from .exceptions import InvalidAddressError
from .solana.keys import Pubkey, PubkeyLike, as_pubkey, find_program_address
from .solana.transaction import ASSOCIATED_TOKEN_PROGRAM_ID, TOKEN_PROGRAM_ID

USER_SEED = b"user"
MANDATE_SEED = b"dmandate"
PAYMENT_HISTORY_SEED = b"payment_history"

MAX_PAYMENT_NUMBER = 0xFFFFFFFF


def encode_payment_number(payment_number: int) -> bytes:
    """Encode a payment sequence number as 4-byte little-endian."""
    if not 0 <= payment_number <= MAX_PAYMENT_NUMBER:
        raise InvalidAddressError(
            f"Payment number out of u32 range: {payment_number}",
            details={"payment_number": payment_number},
        )
    return struct.pack("<I", payment_number)


def find_user_address(owner: PubkeyLike, program_id: PubkeyLike) -> tuple[Pubkey, int]:
    return find_program_address([USER_SEED, bytes(as_pubkey(owner))], program_id)


def find_mandate_address(
    payer: PubkeyLike,
    payee: PubkeyLike,
    program_id: PubkeyLike,
) -> tuple[Pubkey, int]:
    return find_program_address(
        [MANDATE_SEED, bytes(as_pubkey(payer)), bytes(as_pubkey(payee))],
        program_id,
    )


def find_payment_record_address(
    mandate: PubkeyLike,
    payment_number: int,
    program_id: PubkeyLike,
) -> tuple[Pubkey, int]:
    return find_program_address(
        [
            PAYMENT_HISTORY_SEED,
            bytes(as_pubkey(mandate)),
            encode_payment_number(payment_number),
        ],
        program_id,
    )


def find_token_holding_address(
    owner: PubkeyLike,
    mint: PubkeyLike,
    token_program_id: PubkeyLike = TOKEN_PROGRAM_ID,
) -> Pubkey:
    """Associated token account of owner for mint."""
    address, _ = find_program_address(
        [
            bytes(as_pubkey(owner)),
            bytes(as_pubkey(token_program_id)),
            bytes(as_pubkey(mint)),
        ],
        ASSOCIATED_TOKEN_PROGRAM_ID,
    )
    return address
