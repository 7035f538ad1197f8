"""Solana primitives used by the dmandate ledger gateway."""
from dmandate_core.solana.client import KeyedAccount, SolanaClient, SolanaConfig
from dmandate_core.solana.keys import (
    Keypair,
    Pubkey,
    find_program_address,
    is_on_curve,
    load_keypair,
)
from dmandate_core.solana.transaction import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
    AccountMeta,
    Instruction,
    sign_transaction,
)

__all__ = [
    "KeyedAccount",
    "SolanaClient",
    "SolanaConfig",
    "Keypair",
    "Pubkey",
    "find_program_address",
    "is_on_curve",
    "load_keypair",
    "ASSOCIATED_TOKEN_PROGRAM_ID",
    "SYSTEM_PROGRAM_ID",
    "TOKEN_PROGRAM_ID",
    "AccountMeta",
    "Instruction",
    "sign_transaction",
]
