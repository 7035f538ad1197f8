"""Borsh encoding for Anchor accounts and instruction data."""
from __future__ import annotations

import hashlib
import struct

from ..exceptions import AccountDecodeError
from .keys import PUBKEY_LENGTH, Pubkey

DISCRIMINATOR_LENGTH = 8


def account_discriminator(name: str) -> bytes:
    """Anchor account discriminator: ``sha256("account:<Name>")[:8]``."""
    return hashlib.sha256(f"account:{name}".encode()).digest()[:DISCRIMINATOR_LENGTH]


def instruction_discriminator(name: str) -> bytes:
    """Anchor instruction discriminator: ``sha256("global:<snake_name>")[:8]``."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:DISCRIMINATOR_LENGTH]


class BorshReader:
    """Sequential reader over a little-endian Borsh buffer."""

    def __init__(self, data: bytes, offset: int = 0):
        self._data = data
        self._offset = offset

    @property
    def offset(self) -> int:
        return self._offset

    def _take(self, size: int) -> bytes:
        end = self._offset + size
        if end > len(self._data):
            raise AccountDecodeError(
                f"Unexpected end of account data at offset {self._offset} (need {size} bytes)",
                details={"offset": self._offset, "length": len(self._data)},
            )
        chunk = self._data[self._offset:end]
        self._offset = end
        return chunk

    def u8(self) -> int:
        return self._take(1)[0]

    def u32(self) -> int:
        return struct.unpack("<I", self._take(4))[0]

    def u64(self) -> int:
        return struct.unpack("<Q", self._take(8))[0]

    def i64(self) -> int:
        return struct.unpack("<q", self._take(8))[0]

    def boolean(self) -> bool:
        value = self.u8()
        if value not in (0, 1):
            raise AccountDecodeError(f"Invalid bool byte {value} at offset {self._offset - 1}")
        return value == 1

    def pubkey(self) -> Pubkey:
        return Pubkey(self._take(PUBKEY_LENGTH))

    def string(self) -> str:
        length = self.u32()
        try:
            return self._take(length).decode("utf-8")
        except UnicodeDecodeError as e:
            raise AccountDecodeError("Account string is not valid UTF-8") from e


def reader_for_account(data: bytes, name: str) -> BorshReader:
    """Check the discriminator and return a reader positioned after it."""
    expected = account_discriminator(name)
    if data[:DISCRIMINATOR_LENGTH] != expected:
        raise AccountDecodeError(
            f"Account data is not a {name} account",
            details={"expected": expected.hex(), "found": data[:DISCRIMINATOR_LENGTH].hex()},
        )
    return BorshReader(data, DISCRIMINATOR_LENGTH)


class BorshWriter:
    """Sequential Borsh encoder."""

    def __init__(self) -> None:
        self._parts: list[bytes] = []

    def raw(self, data: bytes) -> "BorshWriter":
        self._parts.append(bytes(data))
        return self

    def u8(self, value: int) -> "BorshWriter":
        return self.raw(struct.pack("<B", value))

    def u32(self, value: int) -> "BorshWriter":
        return self.raw(struct.pack("<I", value))

    def u64(self, value: int) -> "BorshWriter":
        return self.raw(struct.pack("<Q", value))

    def i64(self, value: int) -> "BorshWriter":
        return self.raw(struct.pack("<q", value))

    def boolean(self, value: bool) -> "BorshWriter":
        return self.u8(1 if value else 0)

    def pubkey(self, value: Pubkey) -> "BorshWriter":
        return self.raw(bytes(value))

    def string(self, value: str) -> "BorshWriter":
        encoded = value.encode("utf-8")
        return self.u32(len(encoded)).raw(encoded)

    def to_bytes(self) -> bytes:
        return b"".join(self._parts)
