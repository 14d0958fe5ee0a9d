"""Network types checked for connectivity and the per-type check state of a dialer."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

from .latency import LatenciesN

L4_PROTO_TCP = "tcp"
L4_PROTO_UDP = "udp"
IP_VERSION_4 = "4"
IP_VERSION_6 = "6"


@dataclass(frozen=True)
class NetworkType:
    """A transport protocol, an IP version and whether the traffic is DNS."""

    l4_proto: str
    ip_version: str
    is_dns: bool = False

    def string_without_dns(self) -> str:
        """Render the type without the DNS marker, e.g. ``tcp4``."""
        return f"{self.l4_proto}{self.ip_version}"

    def __str__(self) -> str:
        text = self.string_without_dns()
        return f"{text}(DNS)" if self.is_dns else text


# UDP traffic shares the result of the DNS over UDP check.
_COLLECTION_INDEX = {
    (L4_PROTO_TCP, IP_VERSION_4, True): 0,
    (L4_PROTO_TCP, IP_VERSION_6, True): 1,
    (L4_PROTO_UDP, IP_VERSION_4, True): 2,
    (L4_PROTO_UDP, IP_VERSION_6, True): 3,
    (L4_PROTO_TCP, IP_VERSION_4, False): 4,
    (L4_PROTO_TCP, IP_VERSION_6, False): 5,
    (L4_PROTO_UDP, IP_VERSION_4, False): 2,
    (L4_PROTO_UDP, IP_VERSION_6, False): 3,
}

COLLECTION_COUNT = 6


def collection_index(network_type: NetworkType) -> int:
    """Return the slot that holds the check state of ``network_type``.

    Raises ``ValueError`` for an unknown protocol or IP version.
    """
    key = (str(network_type.l4_proto), str(network_type.ip_version), bool(network_type.is_dns))
    try:
        return _COLLECTION_INDEX[key]
    except KeyError:
        raise ValueError("invalid param") from None


@dataclass(eq=False)
class Collection:
    """Check state of one network type: latencies, liveness and the sets to notify.

    ``alive_dialer_set_set`` maps each registered alive dialer set to its
    reference count.
    """

    alive_dialer_set_set: dict = field(default_factory=dict)
    latencies10: LatenciesN = field(default_factory=lambda: LatenciesN(10))
    moving_average: timedelta = timedelta(0)
    alive: bool = True