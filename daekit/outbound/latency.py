"""Latency bookkeeping, latency annotations and duration text."""

from __future__ import annotations

import re
import threading
from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from fractions import Fraction
from typing import Iterable

from ..routing.builder import Param

ANNOTATION_KEY_ADD_LATENCY = "add_latency"

_MICROSECOND = timedelta(microseconds=1)
_NS_UNITS = {
    "ns": 1,
    "us": 1_000,
    "\u00b5s": 1_000,
    "\u03bcs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_COMPONENT = re.compile(r"([0-9]*)(?:\.([0-9]*))?([^0-9.]*)")
_MAX_NS = (1 << 63) - 1


def _micros(duration: timedelta) -> int:
    return duration // _MICROSECOND


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``300ms``, ``-1.5h`` or ``2h45m``.

    Valid units are ``ns``, ``us`` (or ``µs``), ``ms``, ``s``, ``m`` and ``h``.
    """
    invalid = ValueError(f'time: invalid duration "{text}"')
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise invalid
    total = Fraction(0)
    position = 0
    while position < len(rest):
        match = _COMPONENT.match(rest, position)
        whole, frac, unit = match.group(1), match.group(2), match.group(3)
        if not whole and not frac:
            raise invalid
        if not unit:
            raise ValueError(f'time: missing unit in duration "{text}"')
        if unit not in _NS_UNITS:
            raise ValueError(f'time: unknown unit "{unit}" in duration "{text}"')
        value = Fraction(int(whole or "0"))
        if frac:
            value += Fraction(int(frac), 10 ** len(frac))
        total += value * _NS_UNITS[unit]
        if total > _MAX_NS:
            raise invalid
        position = match.end()
    micros = int(Fraction(int(total), 1000))
    return timedelta(microseconds=-micros if negative else micros)


def _format_micros(micros: int) -> str:
    if micros == 0:
        return "0s"
    sign = "-" if micros < 0 else ""
    u = abs(micros)
    if u < 1_000:
        return f"{sign}{u}\u00b5s"
    if u < 1_000_000:
        whole, frac = divmod(u, 1_000)
        fraction = f".{frac:03d}".rstrip("0") if frac else ""
        return f"{sign}{whole}{fraction}ms"
    seconds, frac = divmod(u, 1_000_000)
    fraction = f".{frac:06d}".rstrip("0") if frac else ""
    text = f"{seconds % 60}{fraction}s"
    minutes = seconds // 60
    if minutes:
        text = f"{minutes % 60}m{text}"
        hours = minutes // 60
        if hours:
            text = f"{hours}h{text}"
    return sign + text


def show_duration(duration: timedelta) -> str:
    """Render a duration truncated to whole milliseconds, e.g. ``1m30s``."""
    micros = _micros(duration)
    truncated = abs(micros) // 1_000 * 1_000
    return _format_micros(-truncated if micros < 0 else truncated)


def latency_string(real_latency: timedelta, latency_offset: timedelta) -> str:
    """Render a latency and, when there is one, its offset and their sum."""
    text = show_duration(real_latency)
    if latency_offset:
        sign = "-" if latency_offset < timedelta(0) else "+"
        text += (
            f"({sign}{show_duration(abs(latency_offset))}"
            f"={show_duration(real_latency + latency_offset)})"
        )
    return text


class LatenciesN:
    """The last ``n`` latencies and their sum. It is thread-safe."""

    def __init__(self, n: int) -> None:
        self.n = n
        self._latencies: deque[timedelta] = deque()
        self._sum = timedelta(0)
        self._lock = threading.Lock()

    def append_latency(self, latency: timedelta) -> None:
        """Append a latency, dropping the oldest once ``n`` are kept."""
        with self._lock:
            if len(self._latencies) >= self.n:
                self._sum -= self._latencies.popleft()
            self._sum += latency
            self._latencies.append(latency)

    def last_latency(self) -> timedelta | None:
        """The latest latency, or ``None`` if there is none."""
        with self._lock:
            return self._latencies[-1] if self._latencies else None

    def avg_latency(self) -> timedelta | None:
        """The average of the kept latencies, or ``None`` if there are none."""
        with self._lock:
            if not self._latencies:
                return None
            return timedelta(microseconds=int(Fraction(_micros(self._sum), len(self._latencies))))

    def __len__(self) -> int:
        with self._lock:
            return len(self._latencies)


@dataclass
class Annotation:
    """Settings attached to the dialers hit by a group filter."""

    add_latency: timedelta = timedelta(0)

    @classmethod
    def from_params(cls, params: Iterable[Param]) -> Annotation:
        """Build an annotation from filter annotation parameters."""
        annotation = cls()
        for param in params:
            if param.key != ANNOTATION_KEY_ADD_LATENCY:
                raise ValueError(f"unknown filter annotation: {param.key}")
            try:
                latency = parse_duration(param.val)
            except ValueError as err:
                raise ValueError(f"incorrect latency format: {err}") from err
            # Only the first setting is valid.
            if not annotation.add_latency:
                annotation.add_latency = latency
        return annotation