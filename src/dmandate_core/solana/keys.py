"""Solana public keys, program-derived addresses and signing keypairs."""
from __future__ import annotations

import hashlib
import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence, Union

import base58
from nacl.signing import SigningKey

from ..exceptions import CredentialError, InvalidAddressError

logger = logging.getLogger(__name__)

PUBKEY_LENGTH = 32
MAX_SEED_LENGTH = 32
MAX_SEEDS = 16
PDA_MARKER = b"ProgramDerivedAddress"

# Edwards25519 curve parameters
_P = 2**255 - 19
_D = (-121665 * pow(121666, _P - 2, _P)) % _P


@dataclass(frozen=True)
class Pubkey:
    """A 32-byte Solana account address."""

    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != PUBKEY_LENGTH:
            raise InvalidAddressError(
                f"Public key must be {PUBKEY_LENGTH} bytes, got {len(self.raw)}",
                details={"length": len(self.raw)},
            )

    @classmethod
    def from_string(cls, value: str) -> "Pubkey":
        """Parse a base58 address."""
        try:
            raw = base58.b58decode(value.strip())
        except ValueError as e:
            raise InvalidAddressError(f"Invalid base58 address: {value!r}") from e
        return cls(raw)

    def __bytes__(self) -> bytes:
        return self.raw

    def __str__(self) -> str:
        return base58.b58encode(self.raw).decode()

    def __repr__(self) -> str:
        return f"Pubkey({self})"


PubkeyLike = Union[Pubkey, str]


def as_pubkey(value: PubkeyLike) -> Pubkey:
    """Accept either a Pubkey or a base58 string."""
    if isinstance(value, Pubkey):
        return value
    return Pubkey.from_string(value)


def is_on_curve(data: bytes) -> bool:
    """Check whether 32 bytes decompress to a point on the ed25519 curve.

    Mirrors Solana's ``bytes_are_curve_point``: the y coordinate is the
    little-endian value with the sign bit cleared, and the point is valid when
    ``(y^2 - 1) / (d*y^2 + 1)`` is a square mod p.
    """
    if len(data) != PUBKEY_LENGTH:
        return False
    y = int.from_bytes(data, "little") & ((1 << 255) - 1)
    y = y % _P
    y2 = y * y % _P
    u = (y2 - 1) % _P
    v = (_D * y2 + 1) % _P
    x2 = u * pow(v, _P - 2, _P) % _P
    if x2 == 0:
        return True
    return pow(x2, (_P - 1) // 2, _P) == 1


def _program_address_digest(seeds: Sequence[bytes], program: Pubkey) -> bytes:
    if len(seeds) > MAX_SEEDS:
        raise InvalidAddressError(f"At most {MAX_SEEDS} seeds allowed, got {len(seeds)}")
    hasher = hashlib.sha256()
    for seed in seeds:
        if len(seed) > MAX_SEED_LENGTH:
            raise InvalidAddressError(
                f"Seed exceeds {MAX_SEED_LENGTH} bytes",
                details={"seed_length": len(seed)},
            )
        hasher.update(seed)
    hasher.update(bytes(program))
    hasher.update(PDA_MARKER)
    return hasher.digest()


def create_program_address(seeds: Sequence[bytes], program_id: PubkeyLike) -> Pubkey:
    """Hash seeds into an address; raises if the result lies on the curve."""
    digest = _program_address_digest(seeds, as_pubkey(program_id))
    if is_on_curve(digest):
        raise InvalidAddressError("Derived address lies on the ed25519 curve")
    return Pubkey(digest)


def find_program_address(seeds: Sequence[bytes], program_id: PubkeyLike) -> tuple[Pubkey, int]:
    """Find the canonical program-derived address and its bump seed."""
    program = as_pubkey(program_id)
    for bump in range(255, -1, -1):
        digest = _program_address_digest([*seeds, bytes([bump])], program)
        if not is_on_curve(digest):
            return Pubkey(digest), bump
    raise InvalidAddressError("Unable to find a viable program address bump seed")


class Keypair:
    """An ed25519 signing keypair in Solana's 64-byte secret key format."""

    def __init__(self, signing_key: SigningKey):
        self._signing_key = signing_key
        self.pubkey = Pubkey(bytes(signing_key.verify_key))

    @classmethod
    def from_secret_key(cls, secret: bytes) -> "Keypair":
        """Build from a 64-byte secret (seed || public key) or a 32-byte seed."""
        if len(secret) not in (32, 64):
            raise CredentialError(f"Secret key must be 32 or 64 bytes, got {len(secret)}")
        keypair = cls(SigningKey(bytes(secret[:32])))
        if len(secret) == 64 and bytes(secret[32:]) != bytes(keypair.pubkey):
            raise CredentialError("Secret key does not match its embedded public key")
        return keypair

    @classmethod
    def generate(cls) -> "Keypair":
        return cls(SigningKey.generate())

    def sign(self, message: bytes) -> bytes:
        """Return the detached 64-byte signature of message."""
        return self._signing_key.sign(message).signature

    def secret_bytes(self) -> bytes:
        return bytes(self._signing_key) + bytes(self.pubkey)


def load_keypair(path: Union[str, Path]) -> Keypair:
    """Load a solana-keygen JSON keypair file."""
    expanded = Path(path).expanduser()
    if not expanded.exists():
        raise CredentialError(f"Keypair file not found at: {expanded}", path=str(expanded))
    try:
        values = json.loads(expanded.read_text(encoding="utf-8"))
        secret = bytes(values)
    except (OSError, json.JSONDecodeError, TypeError, ValueError) as e:
        raise CredentialError(f"Invalid keypair file format: {expanded}", path=str(expanded)) from e
    keypair = Keypair.from_secret_key(secret)
    logger.debug("Loaded keypair %s from %s", keypair.pubkey, expanded)
    return keypair
