"""Extraction and reassembly of QUIC CRYPTO frames, and byte locators over them."""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import Iterable

from .binary import big_endian_uvarint

FRAME_TYPE_PADDING = 0
FRAME_TYPE_PING = 1
FRAME_TYPE_CRYPTO = 6
FRAME_TYPE_CONNECTION_CLOSE = 0x1C
FRAME_TYPE_CONNECTION_CLOSE2 = 0x1D


class UnknownFrameTypeError(ValueError):
    """A frame of a type that cannot appear in an Initial packet."""


class MissingCryptoError(ValueError):
    """The requested bytes are not covered by the collected CRYPTO frames."""


class ConnectionClosedError(Exception):
    """A CONNECTION_CLOSE frame was found."""


@dataclass
class CryptoFrameOffset:
    """Data of one CRYPTO frame and its offset in the crypto stream."""

    upper_app_offset: int
    data: bytes


def extract_crypto_frame_offset(
    remainder: bytes, transport_offset: int
) -> tuple[CryptoFrameOffset | None, int]:
    """Parse the frame at the start of ``remainder``.

    Returns the CRYPTO frame found (or ``None`` for PING and PADDING) and the
    size of the frame in bytes.
    """
    if not remainder:
        raise IndexError("frame has no length: index out of range")
    frame_type, next_field = big_endian_uvarint(remainder)
    if frame_type == FRAME_TYPE_PING:
        return None, next_field
    if frame_type == FRAME_TYPE_PADDING:
        while next_field < len(remainder) and remainder[next_field] == 0:
            next_field += 1
        return None, next_field
    if frame_type == FRAME_TYPE_CRYPTO:
        offset, n = big_endian_uvarint(remainder[next_field:])
        next_field += n
        length, n = big_endian_uvarint(remainder[next_field:])
        next_field += n
        end = next_field + length
        if end > len(remainder):
            raise EOFError("unexpected EOF")
        return CryptoFrameOffset(offset, bytes(remainder[next_field:end])), end
    if frame_type in (FRAME_TYPE_CONNECTION_CLOSE, FRAME_TYPE_CONNECTION_CLOSE2):
        raise ConnectionClosedError("connection closed")
    raise UnknownFrameTypeError(f"unknown frame type: {frame_type}")


def reassemble_cryptos(
    offsets: Iterable[CryptoFrameOffset], new_payload: bytes
) -> list[CryptoFrameOffset]:
    """Add the CRYPTO frames of ``new_payload`` to ``offsets``.

    The result is ordered by stream offset; earlier frames come first among
    frames with equal offsets.
    """
    new_frames = []
    position = 0
    while position < len(new_payload):
        frame, size = extract_crypto_frame_offset(new_payload[position:], position)
        position += size
        if frame is not None:
            new_frames.append(frame)
    return sorted([*offsets, *new_frames], key=lambda frame: frame.upper_app_offset)


class LinearLocator:
    """Reads bytes of the crypto stream from sorted CRYPTO frames.

    It only moves forward: once a later frame has been reached, bytes of
    earlier frames can no longer be read.
    """

    def __init__(self, offsets: Iterable[CryptoFrameOffset]) -> None:
        self._offsets = list(offsets)
        self._left = 0
        self._outer = 0
        if self._offsets:
            last = self._offsets[-1]
            self._length = last.upper_app_offset + len(last.data)
            self._select(0)
        else:
            self._length = 0
            self._base_data = b""
            self._base_start = 0
            self._base_end = 0

    def _select(self, index: int) -> None:
        self._outer = index
        frame = self._offsets[index]
        self._base_data = frame.data
        self._base_start = frame.upper_app_offset
        self._base_end = self._base_start + len(frame.data)

    def _relocate(self, i: int) -> None:
        while i >= self._base_end:
            if self._outer + 1 >= len(self._offsets):
                raise MissingCryptoError("missing crypto frame")
            self._select(self._outer + 1)
        if i < self._base_start:
            raise MissingCryptoError("missing crypto frame")

    def range(self, i: int, j: int) -> bytes:
        """Return the bytes from ``i`` up to, not including, ``j``."""
        if i == j:
            return b""
        if not self._offsets:
            raise MissingCryptoError("missing crypto frame")
        i += self._left
        last = j + self._left - 1
        self._relocate(i)
        if last < self._base_end:
            return bytes(self._base_data[i - self._base_start : last - self._base_start + 1])
        out = bytearray()
        while last >= self._base_end:
            out += self._base_data[i - self._base_start :]
            i = max(i, self._base_end)
            if (
                self._outer + 1 >= len(self._offsets)
                or self._offsets[self._outer + 1].upper_app_offset > i
            ):
                raise MissingCryptoError("missing crypto frame")
            self._select(self._outer + 1)
        out += self._base_data[i - self._base_start : last - self._base_start + 1]
        return bytes(out)

    def at(self, i: int) -> int:
        """Return the byte at position ``i``."""
        if not self._offsets:
            raise MissingCryptoError("missing crypto frame")
        i += self._left
        self._relocate(i)
        return self._base_data[i - self._base_start]

    def slice(self, i: int, j: int) -> LinearLocator:
        """Return a locator over positions ``i`` up to ``j``."""
        view = copy.copy(self)
        view._left += i
        view._length = j - i
        return view

    def to_bytes(self) -> bytes:
        """Return all bytes the locator covers."""
        return self.range(0, len(self))

    def __len__(self) -> int:
        return self._length


class BytesLocator:
    """A locator over one contiguous byte string."""

    def __init__(self, data: bytes) -> None:
        self._data = bytes(data)

    def range(self, i: int, j: int) -> bytes:
        """Return the bytes from ``i`` up to, not including, ``j``."""
        return self._data[i:j]

    def at(self, i: int) -> int:
        """Return the byte at position ``i``."""
        return self._data[i]

    def slice(self, i: int, j: int) -> BytesLocator:
        """Return a locator over positions ``i`` up to ``j``."""
        return BytesLocator(self._data[i:j])

    def to_bytes(self) -> bytes:
        """Return all bytes the locator covers."""
        return self._data

    def __len__(self) -> int:
        return len(self._data)