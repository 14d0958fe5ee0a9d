"""A named group of dialers and the choice of one of them for a connection."""

from __future__ import annotations

import dataclasses
import logging
from datetime import timedelta
from typing import Callable, Sequence

from .alive_dialer_set import AliveDialerSet
from .dialer import TIMEOUT, Dialer, GlobalOption
from .latency import Annotation
from .network import (
    COLLECTION_COUNT,
    IP_VERSION_4,
    IP_VERSION_6,
    L4_PROTO_TCP,
    L4_PROTO_UDP,
    NetworkType,
    collection_index,
)
from .selection_policy import DialerSelectionPolicy, SelectionPolicy

AliveChangeCallback = Callable[[bool, NetworkType, bool], None]

_NEEDS_ALIVE_STATE = frozenset(
    {
        SelectionPolicy.RANDOM,
        SelectionPolicy.MIN_LAST_LATENCY,
        SelectionPolicy.MIN_AVERAGE10_LATENCIES,
        SelectionPolicy.MIN_MOVING_AVERAGE_LATENCIES,
    }
)

_MIN_POLICIES = frozenset(
    {
        SelectionPolicy.MIN_LAST_LATENCY,
        SelectionPolicy.MIN_AVERAGE10_LATENCIES,
        SelectionPolicy.MIN_MOVING_AVERAGE_LATENCIES,
    }
)

# Network types whose alive state is always tracked, in the order they are set up.
_TRACKED_TYPES = (
    NetworkType(L4_PROTO_TCP, IP_VERSION_4, False),
    NetworkType(L4_PROTO_TCP, IP_VERSION_6, False),
    NetworkType(L4_PROTO_UDP, IP_VERSION_4, True),
    NetworkType(L4_PROTO_UDP, IP_VERSION_6, True),
)

# Tracked only when DNS over TCP is checked.
_DNS_TCP_TYPES = (
    NetworkType(L4_PROTO_TCP, IP_VERSION_4, True),
    NetworkType(L4_PROTO_TCP, IP_VERSION_6, True),
)


class NoAliveDialerError(Exception):
    """No dialer of the group is alive for the requested network type."""

    def __init__(self, message: str = "no alive dialer") -> None:
        super().__init__(message)


def _policy_of(policy: DialerSelectionPolicy) -> SelectionPolicy:
    try:
        return SelectionPolicy(policy.policy)
    except ValueError:
        raise ValueError(f"unsupported DialerSelectionPolicy: {policy.policy}") from None


class DialerGroup:
    """Dialers that share a selection policy and per-network alive state."""

    def __init__(
        self,
        option: GlobalOption,
        name: str,
        dialers: Sequence[Dialer],
        annotations: Sequence[Annotation],
        policy: DialerSelectionPolicy,
        alive_change_callback: AliveChangeCallback | None = None,
    ) -> None:
        try:
            policy_name = SelectionPolicy(policy.policy)
        except ValueError:
            raise ValueError(f"Unexpected dialer selection policy: {policy.policy}") from None
        needs_alive_state = policy_name in _NEEDS_ALIVE_STATE

        callback = alive_change_callback or (lambda alive, network_type, is_init: None)
        self._logger: logging.Logger = option.logger
        self.name = name
        self.dialers = list(dialers)
        self.selection_policy = policy
        self._alive_sets: list[AliveDialerSet | None] = [None] * COLLECTION_COUNT

        def make_set(network_type: NetworkType, on_change) -> AliveDialerSet:
            return AliveDialerSet(
                self._logger,
                name,
                network_type,
                option.check_tolerance,
                policy_name,
                self.dialers,
                annotations,
                on_change,
                True,
            )

        for network_type in _TRACKED_TYPES:
            if needs_alive_state:
                self._alive_sets[collection_index(network_type)] = make_set(
                    network_type,
                    lambda alive, nt=network_type: callback(alive, nt, False),
                )
            callback(True, network_type, True)

        if option.check_dns_tcp and needs_alive_state:
            for network_type in _DNS_TCP_TYPES:
                self._alive_sets[collection_index(network_type)] = make_set(network_type, None)

        for dialer in self.dialers:
            for alive_set in self._alive_sets:
                dialer.register_alive_dialer_set(alive_set)

    def close(self) -> None:
        """Unregister the group's alive dialer sets from its dialers."""
        for dialer in self.dialers:
            for alive_set in self._alive_sets:
                dialer.unregister_alive_dialer_set(alive_set)

    def must_get_alive_dialer_set(self, network_type: NetworkType) -> AliveDialerSet | None:
        """The alive dialer set of ``network_type``; ``None`` if it is not tracked.

        Raises ``ValueError`` for an invalid network type.
        """
        return self._alive_sets[collection_index(network_type)]

    def select(
        self, network_type: NetworkType, strict_ip_version: bool = False
    ) -> tuple[Dialer, timedelta]:
        """Choose a dialer according to the selection policy.

        Returns the dialer and its latency. When no dialer is alive and
        ``strict_ip_version`` is false, the other IP version is tried. A
        group of exactly one dialer falls back to that dialer.
        """
        policy = self.selection_policy
        try:
            return self._select(network_type, policy)
        except NoAliveDialerError:
            if not strict_ip_version:
                other = IP_VERSION_4 if network_type.ip_version == IP_VERSION_6 else IP_VERSION_6
                return self._select(dataclasses.replace(network_type, ip_version=other), policy)
            if len(self.dialers) != 1:
                raise
        # The only dialer of the group is chosen instead of failing.
        dialer, _ = self._select(
            network_type, DialerSelectionPolicy(policy=SelectionPolicy.FIXED, fixed_index=0)
        )
        return dialer, TIMEOUT

    def _select(
        self, network_type: NetworkType, policy: DialerSelectionPolicy
    ) -> tuple[Dialer, timedelta]:
        if not self.dialers:
            raise ValueError("no dialer in this group")
        alive_set = self.must_get_alive_dialer_set(network_type)
        policy_name = _policy_of(policy)
        if policy_name is SelectionPolicy.RANDOM:
            dialer = alive_set.get_rand() if alive_set is not None else None
            if dialer is None:
                raise NoAliveDialerError()
            return dialer, timedelta(0)
        if policy_name is SelectionPolicy.FIXED:
            index = policy.fixed_index
            if index < 0 or index >= len(self.dialers):
                raise ValueError("selected dialer index is out of range")
            return self.dialers[index], timedelta(0)
        if policy_name in _MIN_POLICIES:
            dialer, latency = (
                alive_set.get_min_latency() if alive_set is not None else (None, timedelta(0))
            )
            if dialer is None:
                raise NoAliveDialerError()
            return dialer, latency
        raise ValueError(f"unsupported DialerSelectionPolicy: {policy.policy}")