"""Common utility helpers: SHA-256, hex decoding, big-endian ints."""

import hashlib
from typing import Union


def sha256(data: Union[bytes, str]) -> bytes:
    """
    Compute SHA-256 and return the raw 32-byte digest.
    Accepts bytes or str (utf-8).
    """
    if isinstance(data, str):
        data = data.encode("utf-8")
    return hashlib.sha256(data).digest()


def hex_to_bytes(s: str, length: int) -> bytes:
    """
    Decode a hex string that must describe exactly `length` bytes.

    Raises ValueError on bad hex or wrong length.
    """
    s = s.strip()
    if s.startswith(("0x", "0X")):
        s = s[2:]
    raw = bytes.fromhex(s)
    if len(raw) != length:
        raise ValueError(f"expected {length} bytes of hex, got {len(raw)}")
    return raw


def int_from_be(data: bytes) -> int:
    return int.from_bytes(data, "big")
