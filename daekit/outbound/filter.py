"""Selection of the dialers of a group by filters on their names and tags."""

from __future__ import annotations

import logging
import re
from typing import Iterable, Mapping, Sequence

from ..routing.builder import Function, Param
from .dialer import Dialer
from .latency import Annotation

FILTER_INPUT_NAME = "name"
FILTER_INPUT_SUBSCRIPTION_TAG = "subtag"
FILTER_INPUT_LINK = "link"

FILTER_KEY_NAME_REGEX = "regex"
FILTER_KEY_NAME_KEYWORD = "keyword"

FILTER_INPUT_SUBSCRIPTION_TAG_REGEX = "regex"


def _compile(pattern: str, function: Function) -> re.Pattern[str]:
    try:
        return re.compile(pattern)
    except re.error as err:
        raise ValueError(f"bad regexp in filter {function.to_string()}: {err}") from err


def _unsupported_key(key: str, function: Function) -> ValueError:
    return ValueError(f'unsupported filter key "{key}" in "filter: {function.name}()"')


class DialerSet:
    """All dialers known to the configuration, each with its subscription tag."""

    def __init__(
        self,
        logger: logging.Logger | None,
        tagged_dialers: Mapping[str, Iterable[Dialer]],
    ) -> None:
        self._logger = logger or logging.getLogger(__name__)
        self._dialers: list[Dialer] = []
        self._tags: dict[Dialer, str] = {}
        for tag, dialers in tagged_dialers.items():
            for dialer in dialers:
                self._dialers.append(dialer)
                self._tags[dialer] = tag

    @property
    def dialers(self) -> list[Dialer]:
        """Every dialer of the set."""
        return list(self._dialers)

    def _name_hit(self, dialer: Dialer, function: Function) -> bool:
        name = dialer.property.name
        for param in function.params:
            if param.key == FILTER_KEY_NAME_REGEX:
                if _compile(param.val, function).search(name):
                    return True
            elif param.key == FILTER_KEY_NAME_KEYWORD:
                if param.val in name:
                    return True
            elif param.key == "":
                if name == param.val:
                    return True
            else:
                raise _unsupported_key(param.key, function)
        return False

    def _tag_hit(self, dialer: Dialer, function: Function) -> bool:
        tag = self._tags.get(dialer, "")
        for param in function.params:
            if param.key == FILTER_INPUT_SUBSCRIPTION_TAG_REGEX:
                if _compile(param.val, function).search(tag):
                    return True
            elif param.key == "":
                if tag == param.val:
                    return True
            else:
                raise _unsupported_key(param.key, function)
        return False

    def _filter_hit(self, dialer: Dialer, filters: Sequence[Function]) -> bool:
        # Functions of one filter are joined by AND; their params by OR.
        for function in filters:
            if function.name == FILTER_INPUT_NAME:
                hit = self._name_hit(dialer, function)
            elif function.name == FILTER_INPUT_SUBSCRIPTION_TAG:
                hit = self._tag_hit(dialer, function)
            else:
                raise ValueError(f'unsupported filter input type: "{function.name}"')
            if hit == function.negated:
                return False
        return True

    def filter_and_annotate(
        self,
        filters: Sequence[Sequence[Function]],
        annotations: Sequence[Sequence[Param]],
    ) -> tuple[list[Dialer], list[Annotation]]:
        """Return the dialers hit by any filter, each with the annotation of
        the first filter that hits it.

        Without filters every dialer is returned with an empty annotation.
        """
        if len(filters) != len(annotations):
            raise ValueError(
                f"[CODE BUG]: unmatched annotations length: {len(filters)} filters "
                f"and {len(annotations)} annotations"
            )
        if not filters:
            return list(self._dialers), [Annotation() for _ in self._dialers]
        dialers: list[Dialer] = []
        filter_annotations: list[Annotation] = []
        for dialer in self._dialers:
            for conditions, params in zip(filters, annotations):
                if not self._filter_hit(dialer, conditions):
                    continue
                try:
                    annotation = Annotation.from_params(params)
                except ValueError as err:
                    raise ValueError(f"apply filter annotation: {err}") from err
                dialers.append(dialer)
                filter_annotations.append(annotation)
                break
        return dialers, filter_annotations

    def close(self) -> None:
        """Close every dialer; the last error met is raised after all are closed."""
        error: Exception | None = None
        for dialer in self._dialers:
            try:
                dialer.close()
            except Exception as err:
                error = err
        if error is not None:
            raise error