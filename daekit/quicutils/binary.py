"""Decoding of QUIC variable-length integers."""

from __future__ import annotations


def big_endian_uvarint(buf: bytes) -> tuple[int, int]:
    """Decode a QUIC variable-length integer from the start of ``buf``.

    Returns the decoded value and the number of bytes it occupied.
    Raises ``EOFError`` when ``buf`` is too short to hold the integer.
    """
    if not buf:
        raise EOFError("unexpected EOF")
    length = 1 << (buf[0] >> 6)
    if len(buf) < length:
        raise EOFError("unexpected EOF")
    value = buf[0] & 0x3F
    for byte in buf[1:length]:
        value = (value << 8) | byte
    return value, length