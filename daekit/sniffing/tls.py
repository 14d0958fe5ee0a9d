"""Extraction of the server name from a TLS ClientHello."""

from __future__ import annotations

from typing import Union

from ..quicutils.relocation import BytesLocator, LinearLocator
from .errors import NeedMoreError, NotApplicableError, NotFoundError

CONTENT_TYPE_HANDSHAKE = 22
HANDSHAKE_TYPE_HELLO = 1
TLS_EXTENSION_SERVER_NAME = 0
TLS_EXTENSION_SERVER_NAME_TYPE_HOST_NAME = 0

ASSUMED_TLS_CLIENT_HELLO_MAX_LENGTH = 4096

VERSION_TLS1_0 = b"\x03\x01"
VERSION_TLS1_2 = b"\x03\x03"

Locator = Union[BytesLocator, LinearLocator]


def _u16(data: bytes) -> int:
    return int.from_bytes(data[:2], "big")


def sniff_tls(data: bytes) -> str:
    """Return the SNI of the TLS 1.2/1.3 ClientHello record at the start of ``data``."""
    if len(data) < 5:
        raise NotApplicableError()
    if data[0] != CONTENT_TYPE_HANDSHAKE or bytes(data[1:3]) not in (VERSION_TLS1_0, VERSION_TLS1_2):
        raise NotApplicableError()
    length = _u16(data[3:5])
    search = data[5:]
    if len(search) < length:
        raise NeedMoreError()
    return extract_sni_from_tls(BytesLocator(search[:length]))


def extract_sni_from_tls(search: Locator) -> str:
    """Return the SNI of the ClientHello handshake message covered by ``search``."""
    boundary = 39
    if len(search) < boundary:
        raise NotApplicableError()
    head = search.range(0, 6)
    if head[0] != HANDSHAKE_TYPE_HELLO:
        raise NotApplicableError()
    length = int.from_bytes(head[1:4], "big")
    if len(search) > length + 4:
        raise NotApplicableError()
    if bytes(head[4:6]) != VERSION_TLS1_2:
        raise NotApplicableError()

    # The 32 random bytes are skipped.
    session_id_length = search.at(boundary - 1)
    boundary += session_id_length + 2
    if len(search) < boundary:
        raise NotApplicableError()

    cipher_suite_length = _u16(search.range(boundary - 2, boundary))
    boundary += cipher_suite_length + 1
    if len(search) < boundary:
        raise NotApplicableError()

    compress_methods_length = search.at(boundary - 1)
    boundary += compress_methods_length + 2
    if len(search) < boundary:
        raise NotApplicableError()

    extensions_length = _u16(search.range(boundary - 2, boundary))
    boundary += extensions_length
    if len(search) < boundary:
        raise NotApplicableError()
    return find_sni_extension(search.slice(boundary - extensions_length, boundary))


def find_sni_extension(search: Locator) -> str:
    """Return the host name from the server_name extension in an extension list."""
    i = 0
    while True:
        if i + 4 >= len(search):
            raise NotFoundError()
        head = search.range(i, i + 4)
        extension_type = _u16(head)
        extension_length = _u16(head[2:])
        next_field = i + 4 + extension_length
        if next_field > len(search):
            raise NotApplicableError()
        if extension_type == TLS_EXTENSION_SERVER_NAME:
            list_length = _u16(search.range(i + 4, i + 6))
            if extension_length < list_length + 2:
                raise NotApplicableError()
            j = i + 6
            while j + 3 <= next_field:
                entry = search.range(j, j + 3)
                indicator_length = _u16(entry[1:])
                if entry[0] != TLS_EXTENSION_SERVER_NAME_TYPE_HOST_NAME:
                    if indicator_length == 0:
                        raise NotApplicableError()
                    j += indicator_length
                    continue
                if j + 3 + indicator_length > next_field:
                    raise NotApplicableError()
                name = search.range(j + 3, j + 3 + indicator_length)
                # A trailing dot is not allowed in an SNI, but is accepted here.
                host = bytes(name).decode("utf-8", errors="replace")
                return host[:-1] if host.endswith(".") else host
        i = next_field