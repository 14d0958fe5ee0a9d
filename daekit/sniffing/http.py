"""Extraction of the Host header from a plain HTTP request."""

from __future__ import annotations

from .errors import NotApplicableError, NotFoundError

HTTP_METHODS = frozenset(
    {
        "GET",
        "POST",
        "PUT",
        "PATCH",
        "DELETE",
        "COPY",
        "HEAD",
        "OPTIONS",
        "LINK",
        "UNLINK",
        "PURGE",
        "LOCK",
        "UNLOCK",
        "PROPFIND",
        "CONNECT",
        "TRACE",
    }
)


def is_valid_http_method(method: str) -> bool:
    """Tell whether ``method`` is a known HTTP request method."""
    return method in HTTP_METHODS


def sniff_http(data: bytes) -> str:
    """Return the raw value of the Host header of the request in ``data``."""
    if not data or not chr(data[0]).isprintable():
        raise NotApplicableError()
    method, separator, _ = bytes(data[:12]).partition(b" ")
    if not separator or not is_valid_http_method(method.decode("latin-1")):
        raise NotApplicableError()

    # From here on the data is taken to be HTTP.
    for line in bytes(data).split(b"\r\n"):
        if not line:
            break
        key, separator, value = line.partition(b":")
        if not separator:
            continue
        if key.decode("utf-8", errors="replace").casefold() == "host":
            return value.decode("utf-8", errors="replace")
    raise NotFoundError()