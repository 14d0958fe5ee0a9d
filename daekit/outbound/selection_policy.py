"""How a dialer group chooses among its dialers."""

from __future__ import annotations

import enum
import re
from dataclasses import dataclass
from typing import Sequence, Union

from ..routing.builder import Function

_DECIMAL = re.compile(r"[+-]?[0-9]+")


class SelectionPolicy(str, enum.Enum):
    """Names of the dialer selection policies."""

    RANDOM = "random"
    FIXED = "fixed"
    MIN_LAST_LATENCY = "min"
    MIN_AVERAGE10_LATENCIES = "min_avg10"
    MIN_MOVING_AVERAGE_LATENCIES = "min_moving_avg"


@dataclass
class DialerSelectionPolicy:
    """A selection policy and, for ``fixed``, the index of the chosen dialer."""

    policy: SelectionPolicy
    fixed_index: int = 0

    @classmethod
    def from_functions(cls, functions: Union[str, Sequence[Function]]) -> DialerSelectionPolicy:
        """Build the policy from the ``policy`` parameter of a group.

        The parameter is either a bare policy name or a list holding exactly
        one function, such as ``fixed(0)``.
        """
        if isinstance(functions, str):
            functions = [Function(name=functions)]
        if len(functions) != 1:
            raise ValueError(f"policy should be exact 1 function: got {len(functions)}")
        function = functions[0]
        try:
            policy = SelectionPolicy(function.name)
        except ValueError:
            raise ValueError(f"unexpected policy: {function.name}") from None
        if policy is not SelectionPolicy.FIXED:
            return cls(policy=policy)
        if function.negated:
            raise ValueError(f"policy param does not support not operator: !{function.name}()")
        if len(function.params) != 1 or function.params[0].key != "":
            raise ValueError(f'invalid "{function.name}" param format')
        raw_index = function.params[0].val
        if not _DECIMAL.fullmatch(raw_index):
            raise ValueError(
                f'invalid "{function.name}" param format: invalid syntax: {raw_index!r}'
            )
        return cls(policy=policy, fixed_index=int(raw_index))