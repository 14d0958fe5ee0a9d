from datetime import timedelta

import pytest

from daekit.outbound.dialer import Dialer, GlobalOption, Property
from daekit.outbound.filter import DialerSet
from daekit.outbound.latency import Annotation
from daekit.routing.builder import Function, Param


@pytest.fixture
def setup():
    option = GlobalOption()
    hk = Dialer(option, Property(name="HK-01 disney"))
    sg = Dialer(option, Property(name="SG-02"))
    us = Dialer(option, Property(name="US-03 disney"))
    dialer_set = DialerSet(None, {"my_sub": [hk, sg], "other": [us]})
    return dialer_set, hk, sg, us


def run(dialer_set, *filters, annotations=None):
    if annotations is None:
        annotations = [[] for _ in filters]
    return dialer_set.filter_and_annotate(list(filters), annotations)


def test_no_filter_returns_all(setup):
    dialer_set, hk, sg, us = setup
    dialers, annotations = run(dialer_set)
    assert dialers == [hk, sg, us]
    assert annotations == [Annotation(), Annotation(), Annotation()]


def test_name_keyword(setup):
    dialer_set, hk, sg, us = setup
    dialers, _ = run(dialer_set, [Function("name", [Param("keyword", "disney")])])
    assert dialers == [hk, us]


def test_name_regex(setup):
    dialer_set, hk, sg, us = setup
    dialers, _ = run(dialer_set, [Function("name", [Param("regex", "^(HK|SG)")])])
    assert dialers == [hk, sg]


def test_name_exact(setup):
    dialer_set, hk, sg, us = setup
    dialers, _ = run(dialer_set, [Function("name", [Param("", "SG-02")])])
    assert dialers == [sg]


def test_negated_name(setup):
    dialer_set, hk, sg, us = setup
    dialers, _ = run(
        dialer_set, [Function("name", [Param("regex", "HK|TW|SG")], negated=True)]
    )
    assert dialers == [us]


def test_and_of_functions(setup):
    dialer_set, hk, sg, us = setup
    dialers, _ = run(
        dialer_set,
        [
            Function("name", [Param("regex", "HK|TW|SG")], negated=True),
            Function("name", [Param("keyword", "disney")]),
        ],
    )
    assert dialers == [us]


def test_subtag(setup):
    dialer_set, hk, sg, us = setup
    exact, _ = run(dialer_set, [Function("subtag", [Param("", "other")])])
    assert exact == [us]
    by_regex, _ = run(dialer_set, [Function("subtag", [Param("regex", "^my_")])])
    assert by_regex == [hk, sg]


def test_first_hitting_filter_gives_annotation(setup):
    dialer_set, hk, sg, us = setup
    dialers, annotations = run(
        dialer_set,
        [Function("name", [Param("keyword", "HK")])],
        [Function("name", [Param("keyword", "disney")])],
        annotations=[[Param("add_latency", "100ms")], []],
    )
    assert dialers == [hk, us]
    assert annotations[0].add_latency == timedelta(milliseconds=100)
    assert annotations[1] == Annotation()


def test_bad_regexp(setup):
    dialer_set = setup[0]
    with pytest.raises(ValueError, match="bad regexp in filter"):
        run(dialer_set, [Function("name", [Param("regex", "(")])])


def test_unsupported_key(setup):
    dialer_set = setup[0]
    with pytest.raises(ValueError, match="unsupported filter key"):
        run(dialer_set, [Function("subtag", [Param("keyword", "my")])])


def test_unsupported_input(setup):
    dialer_set = setup[0]
    with pytest.raises(ValueError, match="unsupported filter input type"):
        run(dialer_set, [Function("link", [Param("", "x")])])


def test_unmatched_annotation_length(setup):
    dialer_set = setup[0]
    with pytest.raises(ValueError, match="unmatched annotations length"):
        dialer_set.filter_and_annotate([[Function("name", [Param("", "SG-02")])]], [])


def test_bad_annotation(setup):
    dialer_set = setup[0]
    with pytest.raises(ValueError, match="apply filter annotation"):
        run(
            dialer_set,
            [Function("name", [Param("", "SG-02")])],
            annotations=[[Param("unknown", "1")]],
        )


def test_close_closes_dialers(setup):
    dialer_set, hk, sg, us = setup
    dialer_set.close()
    assert [d.closed for d in dialer_set.dialers] == [True, True, True]