"""Errors raised by the traffic sniffers and normalisation of sniffed hosts."""

from __future__ import annotations


class SniffingError(Exception):
    """Base class of every sniffing failure."""

    default_message = "sniffing error"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)


class NotApplicableError(SniffingError):
    """The data does not belong to the protocol being sniffed."""

    default_message = "sniffing error: not applicable"


class NeedMoreError(SniffingError):
    """The data belongs to the protocol but is not complete yet."""

    default_message = "sniffing error: need more"


class NotFoundError(SniffingError):
    """The data belongs to the protocol but carries no domain.

    ``need_more`` is set when more data may still reveal the domain.
    """

    default_message = "sniffing error: not found"

    def __init__(self, message: str | None = None, *, need_more: bool = False) -> None:
        super().__init__(message)
        self.need_more = need_more


def is_sniffing_error(err: BaseException | None) -> bool:
    """Tell whether ``err``, or an error it was raised from, is a sniffing error."""
    seen = set()
    while err is not None and id(err) not in seen:
        if isinstance(err, SniffingError):
            return True
        seen.add(id(err))
        err = err.__cause__
    return False


def _split_host(hostport: str) -> str | None:
    """Return the host of ``host:port``, or ``None`` if it is not of that form."""
    colon = hostport.rfind(":")
    if colon < 0:
        return None
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0 or end + 1 != colon:
            return None
        host = hostport[1:end]
        open_from, close_from = 1, end + 1
    else:
        host = hostport[:colon]
        if ":" in host:
            return None
        open_from, close_from = 0, 0
    if "[" in hostport[open_from:] or "]" in hostport[close_from:]:
        return None
    return host


def normalize_domain(host: str) -> str:
    """Lower-case a sniffed host and strip brackets, port and trailing dot."""
    host = host.strip().lower()
    if host.endswith("]"):
        # An IPv6 literal such as "[2606:4700:20::681a:d1f]".
        return host.strip("[]")
    domain = _split_host(host)
    if domain is not None:
        return domain
    return host[:-1] if host.endswith(".") else host