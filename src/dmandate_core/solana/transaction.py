"""Legacy Solana transaction building and signing."""
from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Sequence

import base58

from .keys import Keypair, Pubkey

# Well-known program IDs
SYSTEM_PROGRAM_ID = Pubkey.from_string("11111111111111111111111111111111")
TOKEN_PROGRAM_ID = Pubkey.from_string("TokenkegQfeZyiNwAJbNbGKPFXCWuBvf9Ss623VQ5DA")
ASSOCIATED_TOKEN_PROGRAM_ID = Pubkey.from_string("ATokenGPvbdGVxr1b2hvZbsiqW5xWH25efTNsLJA8knL")

SIGNATURE_LENGTH = 64
# Solana packet data limit
MAX_TRANSACTION_SIZE = 1232


@dataclass(frozen=True)
class AccountMeta:
    pubkey: Pubkey
    is_signer: bool
    is_writable: bool


@dataclass(frozen=True)
class Instruction:
    program_id: Pubkey
    accounts: Sequence[AccountMeta]
    data: bytes = b""


def encode_compact_u16(value: int) -> bytes:
    """Encode an integer in Solana's compact-u16 (shortvec) format."""
    if not 0 <= value <= 0xFFFF:
        raise ValueError(f"compact-u16 value out of range: {value}")
    out = bytearray()
    while True:
        byte = value & 0x7F
        value >>= 7
        if value:
            out.append(byte | 0x80)
        else:
            out.append(byte)
            return bytes(out)


@dataclass
class _KeyFlags:
    is_signer: bool = False
    is_writable: bool = False


@dataclass
class Message:
    """A compiled legacy message."""
    num_required_signatures: int
    num_readonly_signed: int
    num_readonly_unsigned: int
    account_keys: list[Pubkey]
    recent_blockhash: str
    instructions: list[tuple[int, list[int], bytes]] = field(default_factory=list)

    def serialize(self) -> bytes:
        out = bytearray(
            [self.num_required_signatures, self.num_readonly_signed, self.num_readonly_unsigned]
        )
        out += encode_compact_u16(len(self.account_keys))
        for key in self.account_keys:
            out += bytes(key)
        out += base58.b58decode(self.recent_blockhash)
        out += encode_compact_u16(len(self.instructions))
        for program_index, account_indexes, data in self.instructions:
            out.append(program_index)
            out += encode_compact_u16(len(account_indexes))
            out += bytes(account_indexes)
            out += encode_compact_u16(len(data))
            out += data
        return bytes(out)


def compile_message(
    fee_payer: Pubkey,
    instructions: Sequence[Instruction],
    recent_blockhash: str,
) -> Message:
    """Order accounts and compile instructions into a legacy message.

    Accounts are grouped as writable signers (fee payer first), readonly
    signers, writable non-signers, then readonly non-signers; a key used by
    several instructions gets the union of its flags.
    """
    flags: dict[Pubkey, _KeyFlags] = {fee_payer: _KeyFlags(is_signer=True, is_writable=True)}
    for ix in instructions:
        for meta in ix.accounts:
            entry = flags.setdefault(meta.pubkey, _KeyFlags())
            entry.is_signer |= meta.is_signer
            entry.is_writable |= meta.is_writable
        flags.setdefault(ix.program_id, _KeyFlags())

    def group(signer: bool, writable: bool) -> list[Pubkey]:
        return [
            key
            for key, f in flags.items()
            if f.is_signer == signer and f.is_writable == writable and key != fee_payer
        ]

    writable_signers = [fee_payer, *group(True, True)]
    readonly_signers = group(True, False)
    writable_unsigned = group(False, True)
    readonly_unsigned = group(False, False)
    account_keys = writable_signers + readonly_signers + writable_unsigned + readonly_unsigned
    index = {key: i for i, key in enumerate(account_keys)}

    compiled = [
        (
            index[ix.program_id],
            [index[meta.pubkey] for meta in ix.accounts],
            bytes(ix.data),
        )
        for ix in instructions
    ]
    return Message(
        num_required_signatures=len(writable_signers) + len(readonly_signers),
        num_readonly_signed=len(readonly_signers),
        num_readonly_unsigned=len(readonly_unsigned),
        account_keys=account_keys,
        recent_blockhash=recent_blockhash,
        instructions=compiled,
    )


@dataclass
class SignedTransaction:
    signatures: list[bytes]
    message: bytes

    @property
    def signature(self) -> str:
        """The transaction ID (base58 of the fee payer's signature)."""
        return base58.b58encode(self.signatures[0]).decode()

    def serialize(self) -> bytes:
        out = bytearray(encode_compact_u16(len(self.signatures)))
        for sig in self.signatures:
            out += sig
        out += self.message
        return bytes(out)

    def to_base64(self) -> str:
        return base64.b64encode(self.serialize()).decode()


def sign_transaction(
    instructions: Sequence[Instruction],
    signers: Sequence[Keypair],
    recent_blockhash: str,
) -> SignedTransaction:
    """Compile and sign a transaction; the first signer pays fees."""
    if not signers:
        raise ValueError("At least one signer is required")
    message = compile_message(signers[0].pubkey, instructions, recent_blockhash)
    message_bytes = message.serialize()

    by_key = {kp.pubkey: kp for kp in signers}
    signatures = []
    for key in message.account_keys[: message.num_required_signatures]:
        keypair = by_key.get(key)
        if keypair is None:
            raise ValueError(f"Missing signer for {key}")
        signatures.append(keypair.sign(message_bytes))

    tx = SignedTransaction(signatures=signatures, message=message_bytes)
    size = len(tx.serialize())
    if size > MAX_TRANSACTION_SIZE:
        raise ValueError(f"Transaction too large: {size} > {MAX_TRANSACTION_SIZE} bytes")
    return tx
