"""The alive dialers of a group for one network type, and the best of them."""

from __future__ import annotations

import logging
import random
import threading
from datetime import timedelta
from typing import Callable, Sequence

from .dialer import Dialer
from .latency import Annotation, latency_string
from .network import NetworkType
from .selection_policy import SelectionPolicy

_INIT = 1
_NOT_ALIVE = 2

# Latency assumed before any dialer has been measured.
_HOUR = timedelta(hours=1)

_MIN_POLICIES = frozenset(
    {
        SelectionPolicy.MIN_LAST_LATENCY,
        SelectionPolicy.MIN_AVERAGE10_LATENCIES,
        SelectionPolicy.MIN_MOVING_AVERAGE_LATENCIES,
    }
)


class AliveDialerSet:
    """Tracks which dialers of a group are alive for one network type.

    The dialers given at construction must stay the same for the life of the
    set. It is thread-safe.
    """

    def __init__(
        self,
        logger: logging.Logger | None,
        group_name: str,
        network_type: NetworkType,
        tolerance: timedelta,
        policy: SelectionPolicy | str,
        dialers: Sequence[Dialer],
        annotations: Sequence[Annotation],
        alive_change_callback: Callable[[bool], None] | None = None,
        set_alive: bool = True,
    ) -> None:
        if len(dialers) != len(annotations):
            raise ValueError(
                f"unmatched annotations length: {len(dialers)} dialers "
                f"and {len(annotations)} annotations"
            )
        self._logger = logger or logging.getLogger(__name__)
        self.group_name = group_name
        self.network_type = network_type
        self.tolerance = tolerance
        self.policy = SelectionPolicy(policy)
        self._alive_change_callback = alive_change_callback or (lambda alive: None)
        self._lock = threading.RLock()
        self._index: dict[Dialer, int] = {d: -_INIT for d in dialers}
        self._latency: dict[Dialer, timedelta] = {}
        self._offset: dict[Dialer, timedelta] = {
            d: a.add_latency for d, a in zip(dialers, annotations)
        }
        self._alive: list[Dialer] = []
        self._min_latency = _HOUR
        self._min_dialer: Dialer | None = None
        for dialer in dialers:
            self.notify_latency_change(dialer, set_alive)

    def __repr__(self) -> str:
        return f"AliveDialerSet(group={self.group_name!r}, network={self.network_type})"

    @property
    def alive_dialers(self) -> list[Dialer]:
        """The alive dialers, in no particular order."""
        with self._lock:
            return list(self._alive)

    def get_rand(self) -> Dialer | None:
        """A random alive dialer, or ``None`` when none is alive."""
        with self._lock:
            return random.choice(self._alive) if self._alive else None

    def sorting_latency(self, dialer: Dialer) -> timedelta:
        """The measured latency of ``dialer`` plus its annotated offset."""
        return self._latency.get(dialer, timedelta(0)) + self._offset.get(dialer, timedelta(0))

    def get_min_latency(self) -> tuple[Dialer | None, timedelta]:
        """The best dialer under a min-latency policy and its sorting latency."""
        with self._lock:
            return self._min_dialer, self._min_latency

    def _raw_latency(self, dialer: Dialer) -> tuple[timedelta | None, bool]:
        collection = dialer.collection(self.network_type)
        if self.policy is SelectionPolicy.MIN_LAST_LATENCY:
            return collection.latencies10.last_latency(), True
        if self.policy is SelectionPolicy.MIN_AVERAGE10_LATENCIES:
            return collection.latencies10.avg_latency(), True
        if self.policy is SelectionPolicy.MIN_MOVING_AVERAGE_LATENCIES:
            moving = collection.moving_average
            return (moving if moving > timedelta(0) else None), True
        return None, False

    def _print_latencies(self) -> None:
        alive = [
            (d, self._latency[d], self._offset.get(d, timedelta(0)))
            for d in self._alive
            if d in self._latency
        ]
        alive.sort(key=lambda item: item[1] + item[2])
        lines = [f"Group '{self.group_name}' [{self.network_type}]:"]
        for rank, (d, latency, offset) in enumerate(alive, start=1):
            lines.append(
                f"{rank:4d}. [{d.property.subscription_tag}] {d.property.name}: "
                f"{latency_string(latency, offset)}"
            )
        self._logger.info("\n".join(lines))

    def _mark_alive(self, dialer: Dialer) -> None:
        index = self._index.get(dialer, -_INIT)
        if index >= 0:
            return
        if index == -_NOT_ALIVE:
            self._logger.info(
                "[NOT ALIVE --%s-> ALIVE] dialer=%s group=%s",
                self.network_type,
                dialer.property.name,
                self.group_name,
            )
        self._index[dialer] = len(self._alive)
        self._alive.append(dialer)

    def _mark_not_alive(self, dialer: Dialer) -> None:
        index = self._index.get(dialer, -_INIT)
        if index < 0:
            return
        self._logger.info(
            "[ALIVE --%s-> NOT ALIVE] dialer=%s group=%s",
            self.network_type,
            dialer.property.name,
            self.group_name,
        )
        if index >= len(self._alive):
            raise RuntimeError(f"index:{index} >= len(alive dialers):{len(self._alive)}")
        self._index[dialer] = -_NOT_ALIVE
        last = len(self._alive) - 1
        if index < last:
            # Move the last dialer into the freed slot.
            to_swap = self._alive[last]
            if to_swap is dialer:
                raise RuntimeError("dialer to remove is also the last alive dialer")
            self._index[to_swap] = index
            self._alive[index], self._alive[last] = self._alive[last], self._alive[index]
        self._alive.pop()

    def notify_latency_change(self, dialer: Dialer, alive: bool) -> None:
        """Record a new latency or alive state of ``dialer``.

        The alive-change callback is called when the group goes from having
        no best dialer to having one, or back.
        """
        callbacks: list[bool] = []
        with self._lock:
            raw_latency, min_policy = self._raw_latency(dialer)
            if alive:
                self._mark_alive(dialer)
            else:
                self._mark_not_alive(dialer)

            if raw_latency is not None:
                old_best = self._min_dialer
                self._latency[dialer] = raw_latency
                sorting = self.sorting_latency(dialer)
                if (
                    alive
                    and sorting <= self._min_latency
                    and sorting <= self._min_latency - self.tolerance
                ):
                    self._min_latency = sorting
                    self._min_dialer = dialer
                elif self._min_dialer is dialer:
                    self._min_latency = sorting
                    if not alive:
                        self._min_dialer = None
                        self._calc_min_latency()
                if self._min_dialer is not old_best:
                    if self._min_dialer is not None:
                        prefix = "re-"
                        old_name = "<nil>"
                        if old_best is None:
                            callbacks.append(True)
                            prefix = ""
                        else:
                            old_name = old_best.property.name
                        best = self._min_dialer
                        self._logger.info(
                            "Group %sselects dialer: %s=%s _new_dialer=%s _old_dialer=%s "
                            "group=%s network=%s",
                            prefix,
                            self.policy.value,
                            latency_string(
                                self._latency.get(best, timedelta(0)),
                                self._offset.get(best, timedelta(0)),
                            ),
                            best.property.name,
                            old_name,
                            self.group_name,
                            self.network_type,
                        )
                        self._print_latencies()
                    else:
                        callbacks.append(False)
                        self._logger.info(
                            "Group has no dialer alive: group=%s network=%s",
                            self.group_name,
                            self.network_type,
                        )
            elif alive and min_policy and self._min_dialer is None:
                # Before any latency is known, the first alive dialer is used.
                self._min_dialer = dialer
                self._logger.info(
                    "Group selects dialer: group=%s network=%s dialer=%s",
                    self.group_name,
                    self.network_type,
                    dialer.property.name,
                )
        for alive_now in callbacks:
            self._alive_change_callback(alive_now)

    def _calc_min_latency(self) -> None:
        min_latency = _HOUR
        min_dialer: Dialer | None = None
        for d in self._alive:
            if d not in self._latency:
                continue
            sorting = self.sorting_latency(d)
            if sorting < min_latency:
                min_latency = sorting
                min_dialer = d
        if self._min_dialer is None:
            self._min_latency = min_latency
            self._min_dialer = min_dialer
        elif (
            min_dialer is not None
            and min_latency <= self._min_latency
            and min_latency <= self._min_latency - self.tolerance
        ):
            self._min_latency = min_latency
            self._min_dialer = min_dialer