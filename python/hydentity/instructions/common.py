"""Anchor instruction encoding helpers."""

import hashlib
import struct

from solders.pubkey import Pubkey  # type: ignore


def anchor_discriminator(name: str) -> bytes:
    """First 8 bytes of ``sha256("global:<name>")``."""
    return hashlib.sha256(f"global:{name}".encode()).digest()[:8]


def encode_option(value, encode) -> bytes:
    """Borsh ``Option<T>``: a 0 tag, or a 1 tag followed by the value."""
    if value is None:
        return b"\x00"
    return b"\x01" + encode(value)


def encode_u8(value: int) -> bytes:
    return struct.pack("<B", value)


def encode_u32(value: int) -> bytes:
    return struct.pack("<I", value)


def encode_u64(value: int) -> bytes:
    return struct.pack("<Q", value)


def encode_i64(value: int) -> bytes:
    return struct.pack("<q", value)


def encode_bool(value: bool) -> bytes:
    return b"\x01" if value else b"\x00"


def encode_pubkey(value: Pubkey) -> bytes:
    return bytes(value)


def encode_pubkey_vec(values: list[Pubkey]) -> bytes:
    return encode_u32(len(values)) + b"".join(bytes(v) for v in values)
