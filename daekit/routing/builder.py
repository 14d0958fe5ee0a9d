"""Routing rules and their expansion into calls of per-function parsers."""

from __future__ import annotations

import enum
import logging
from dataclasses import dataclass, field
from typing import Callable, Protocol

OUTBOUND_LOGICAL_OR = "<OR>"
OUTBOUND_LOGICAL_AND = "<AND>"
OUTBOUND_PARAM_MARK = "mark"


class DomainKey(str, enum.Enum):
    """How a domain pattern is matched."""

    SUFFIX = "suffix"
    FULL = "full"
    KEYWORD = "keyword"
    REGEX = "regex"


@dataclass
class Param:
    """A parameter of a rule function, such as ``suffix: example.com``."""

    key: str
    val: str

    def to_string(self) -> str:
        """Render the parameter as it is written in a rule."""
        return f"{self.key}: {self.val}" if self.key else self.val


@dataclass
class Function:
    """A rule function, such as ``domain(suffix: example.com)``."""

    name: str
    params: list[Param] = field(default_factory=list)
    negated: bool = False

    def to_string(self) -> str:
        """Render the function as it is written in a rule."""
        params = ", ".join(param.to_string() for param in self.params)
        return f"{'!' if self.negated else ''}{self.name}({params})"


@dataclass
class RoutingRule:
    """Functions that must all match, and the outbound to use when they do."""

    and_functions: list[Function]
    outbound: Function


@dataclass
class DomainSet:
    """Domain patterns of one match set."""

    key: DomainKey
    rule_index: int
    domains: list[str]


@dataclass
class Outbound:
    """Where matched traffic goes, with its mark and whether it must be used."""

    name: str
    mark: int = 0
    must: bool = False


class DomainMatcher(Protocol):
    """Matches a domain against indexed sets of patterns."""

    def add_set(self, bit_index: int, patterns: list[str], key: DomainKey) -> None: ...

    def build(self) -> None: ...

    def match_domain_bitmap(self, domain: str) -> list[int]: ...


FunctionParser = Callable[[logging.Logger, Function, str, list, Outbound], None]


def group_param_values_by_key(params: list[Param]) -> tuple[dict[str, list[str]], list[str]]:
    """Group parameter values by key; keys are listed in first-seen order."""
    groups: dict[str, list[str]] = {}
    for param in params:
        groups.setdefault(param.key, []).append(param.val)
    return groups, list(groups)


def _parse_uint(text: str, bits: int) -> int:
    digits = text.lower()
    if not digits or not digits.isascii() or digits[0] in "+-" or digits != digits.strip():
        raise ValueError(f"invalid syntax: {text!r}")
    if digits.startswith(("0x", "0o", "0b")):
        value = int(digits, 0)
    elif len(digits) > 1 and digits[0] == "0":
        value = int(digits[1:], 8)
    else:
        value = int(digits, 10)
    if value >= 1 << bits:
        raise ValueError(f"value out of range: {text!r}")
    return value


def parse_outbound(raw_outbound: Function) -> Outbound:
    """Build an ``Outbound`` from the outbound function of a rule."""
    outbound = Outbound(name=raw_outbound.name)
    for param in raw_outbound.params:
        if param.key == OUTBOUND_PARAM_MARK:
            try:
                outbound.mark = _parse_uint(param.val, 32)
            except ValueError as err:
                raise ValueError(f"failed to parse mark: {err}") from err
        elif param.key == "":
            if param.val != "must":
                raise ValueError(f"unknown outbound param: {param.val}")
            outbound.must = True
        else:
            raise ValueError(f"unknown outbound param key: {param.key}")
    return outbound


class RulesBuilder:
    """Feeds every key group of every rule function to the registered parser."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._parsers: dict[str, FunctionParser] = {}

    def register_function_parser(self, func_name: str, parser: FunctionParser) -> None:
        """Use ``parser`` for functions named ``func_name``."""
        self._parsers[func_name] = parser

    def apply(self, rules: list[RoutingRule]) -> None:
        """Run the parsers over ``rules``.

        Key groups are joined by logical OR within a function and functions by
        logical AND; only the last group of the last function gets the real
        outbound name.
        """
        for rule in rules:
            self._logger.debug(
                "[rule] %s -> %s",
                " && ".join(function.to_string() for function in rule.and_functions),
                rule.outbound.to_string(),
            )
            outbound = parse_outbound(rule.outbound)
            last_function = len(rule.and_functions) - 1
            for i_func, function in enumerate(rule.and_functions):
                parser = self._parsers.get(function.name)
                if parser is None:
                    raise ValueError(f"unknown function: {function.name}")
                groups, key_order = group_param_values_by_key(function.params)
                for j_set, key in enumerate(key_order):
                    override = Outbound(OUTBOUND_LOGICAL_OR, outbound.mark, outbound.must)
                    if j_set == len(key_order) - 1:
                        override.name = (
                            outbound.name if i_func == last_function else OUTBOUND_LOGICAL_AND
                        )
                    self._logger.debug(
                        "\t%s%s(%s) -> %s",
                        "!" if function.negated else "",
                        function.name,
                        key,
                        override.name,
                    )
                    try:
                        parser(self._logger, function, key, groups[key], override)
                    except Exception as err:
                        raise ValueError(
                            f"failed to parse '{function.to_string()}': {err}"
                        ) from err