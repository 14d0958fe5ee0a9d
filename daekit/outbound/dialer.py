"""Dialers and their connectivity-check bookkeeping."""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable

from .network import COLLECTION_COUNT, Collection, NetworkType, collection_index

TIMEOUT = timedelta(seconds=10)


@dataclass
class GlobalOption:
    """Options shared by every dialer."""

    logger: logging.Logger = field(default_factory=lambda: logging.getLogger("daekit.outbound"))
    check_interval: timedelta = timedelta(seconds=30)
    check_tolerance: timedelta = timedelta(0)
    check_dns_tcp: bool = True


@dataclass
class Property:
    """What is known about the node behind a dialer."""

    name: str = ""
    address: str = ""
    protocol: str = ""
    link: str = ""
    subscription_tag: str = ""


@dataclass
class CheckOption:
    """A connectivity check of one network type.

    ``check_func`` receives the network type and returns whether the check
    passed; it may raise to report why it failed.
    """

    network_type: NetworkType
    check_func: Callable[[NetworkType], bool]


def _describe_error(error: BaseException, network_type: NetworkType) -> str:
    message = str(error)
    if message.endswith("network is unreachable"):
        return "network is unreachable"
    if message.endswith("no suitable address found") or message.endswith("non-IPv4 address"):
        return f"IPv{network_type.ip_version} is not supported"
    return message


class Dialer:
    """A node to dial through, with the check state of each network type.

    Alive dialer sets registered with a dialer must expose ``network_type``
    and ``notify_latency_change(dialer, alive)``.
    """

    def __init__(self, option: GlobalOption, prop: Property, disable_check: bool = False) -> None:
        self.option = option
        self.property = prop
        self.disable_check = disable_check
        self._collections = [Collection() for _ in range(COLLECTION_COUNT)]
        self._lock = threading.RLock()
        self._closed = threading.Event()
        option.logger.debug("NewDialer: dialer=%s p=%#x", prop.name, id(self))

    @property
    def logger(self) -> logging.Logger:
        return self.option.logger

    @property
    def closed(self) -> bool:
        """Whether ``close`` has been called."""
        return self._closed.is_set()

    def clone(self) -> Dialer:
        """Return a dialer for the same node with fresh check state."""
        return Dialer(self.option, self.property, self.disable_check)

    def close(self) -> None:
        """Stop the dialer."""
        self._closed.set()

    def collection(self, network_type: NetworkType) -> Collection:
        """Return the check state of ``network_type``."""
        return self._collections[collection_index(network_type)]

    def must_get_alive(self, network_type: NetworkType) -> bool:
        """Whether the last check of ``network_type`` succeeded."""
        return self.collection(network_type).alive

    def must_get_latencies10(self, network_type: NetworkType):
        """The last ten latencies of ``network_type``."""
        return self.collection(network_type).latencies10

    def register_alive_dialer_set(self, alive_set: Any) -> None:
        """Count one more reference of ``alive_set``; ``None`` is ignored."""
        if alive_set is None:
            return
        with self._lock:
            sets = self.collection(alive_set.network_type).alive_dialer_set_set
            sets[alive_set] = sets.get(alive_set, 0) + 1

    def unregister_alive_dialer_set(self, alive_set: Any) -> None:
        """Drop one reference of ``alive_set``; ``None`` is ignored."""
        if alive_set is None:
            return
        with self._lock:
            sets = self.collection(alive_set.network_type).alive_dialer_set_set
            count = sets.get(alive_set, 0) - 1
            if count <= 0:
                sets.pop(alive_set, None)
            else:
                sets[alive_set] = count

    def _log_unavailable(
        self, collection: Collection, network_type: NetworkType, error: BaseException | None
    ) -> None:
        if error is not None:
            self.logger.debug(
                "Connectivity Check Failed: network=%s node=%s err=%s",
                network_type,
                self.property.name,
                _describe_error(error, network_type),
            )
        collection.latencies10.append_latency(TIMEOUT)
        collection.moving_average = (collection.moving_average + TIMEOUT) // 2
        collection.alive = False

    def _inform_dialer_group_update(self, collection: Collection) -> None:
        with self._lock:
            for alive_set in list(collection.alive_dialer_set_set):
                alive_set.notify_latency_change(self, collection.alive)

    def report_unavailable(self, network_type: NetworkType, error: BaseException | None) -> None:
        """Mark ``network_type`` as failed and notify the registered sets."""
        collection = self.collection(network_type)
        self._log_unavailable(collection, network_type, error)
        self._inform_dialer_group_update(collection)

    def check(self, option: CheckOption) -> bool:
        """Run a connectivity check and record its latency or failure.

        The registered sets are notified in every case. An error raised by
        the check is raised again once the failure has been recorded.
        """
        collection = self.collection(option.network_type)
        error: BaseException | None = None
        start = time.monotonic()
        try:
            ok = bool(option.check_func(option.network_type))
        except Exception as err:
            ok = False
            error = err
        if ok:
            latency = timedelta(seconds=time.monotonic() - start)
            collection.latencies10.append_latency(latency)
            average = collection.latencies10.avg_latency()
            collection.moving_average = (collection.moving_average + latency) // 2
            collection.alive = True
            self.logger.debug(
                "Connectivity Check: network=%s node=%s last=%s avg_10=%s mov_avg=%s",
                option.network_type,
                self.property.name,
                latency,
                average,
                collection.moving_average,
            )
        else:
            self._log_unavailable(collection, option.network_type, error)
        self._inform_dialer_group_update(collection)
        if error is not None:
            raise error
        return ok