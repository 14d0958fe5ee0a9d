import random
from datetime import timedelta

import pytest

from daekit.outbound.dialer import TIMEOUT, Dialer, GlobalOption, Property
from daekit.outbound.dialer_group import DialerGroup, NoAliveDialerError
from daekit.outbound.latency import Annotation
from daekit.outbound.network import NetworkType
from daekit.outbound.selection_policy import DialerSelectionPolicy, SelectionPolicy

TCP4 = NetworkType("tcp", "4", False)
TCP6 = NetworkType("tcp", "6", False)


def make_dialers(option, count):
    return [Dialer(option, Property(name=f"node{i}")) for i in range(count)]


def make_group(option, dialers, policy, callback=None):
    return DialerGroup(
        option,
        "test-group",
        dialers,
        [Annotation() for _ in dialers],
        policy,
        callback,
    )


def test_select_fixed():
    option = GlobalOption(check_interval=timedelta(seconds=15), check_dns_tcp=False)
    dialers = make_dialers(option, 2)
    group = make_group(option, dialers, DialerSelectionPolicy(SelectionPolicy.FIXED, 1))
    for _ in range(10):
        dialer, _ = group.select(TCP4, False)
        assert dialer is dialers[1]

    group.selection_policy.fixed_index = 0
    for _ in range(10):
        dialer, _ = group.select(TCP4, False)
        assert dialer is dialers[0]


def test_select_fixed_out_of_range():
    option = GlobalOption()
    dialers = make_dialers(option, 2)
    group = make_group(option, dialers, DialerSelectionPolicy(SelectionPolicy.FIXED, 5))
    with pytest.raises(ValueError, match="out of range"):
        group.select(TCP4)


def test_select_min_last_latency():
    option = GlobalOption(check_interval=timedelta(seconds=15))
    dialers = make_dialers(option, 3)
    group = make_group(option, dialers, DialerSelectionPolicy(SelectionPolicy.MIN_LAST_LATENCY))
    alive_set = group.must_get_alive_dialer_set(TCP4)
    for dialer, ms in zip(dialers, (300, 100, 200)):
        dialer.must_get_latencies10(TCP4).append_latency(timedelta(milliseconds=ms))
        alive_set.notify_latency_change(dialer, True)

    dialer, latency = group.select(TCP4, False)
    assert dialer is dialers[1]
    assert latency == timedelta(milliseconds=100)

    alive_set.notify_latency_change(dialers[1], False)
    dialer, latency = group.select(TCP4, False)
    assert dialer is dialers[2]
    assert latency == timedelta(milliseconds=200)


def test_select_random():
    random.seed(7)
    option = GlobalOption(check_interval=timedelta(seconds=15))
    dialers = make_dialers(option, 5)
    group = make_group(option, dialers, DialerSelectionPolicy(SelectionPolicy.RANDOM))
    count = [0] * len(dialers)
    for _ in range(100):
        dialer, _ = group.select(TCP4, False)
        count[dialers.index(dialer)] += 1
    assert all(c > 0 for c in count)
    assert sum(count) == 100


def test_set_alive():
    random.seed(11)
    option = GlobalOption(check_interval=timedelta(seconds=15))
    dialers = make_dialers(option, 5)
    group = make_group(option, dialers, DialerSelectionPolicy(SelectionPolicy.RANDOM))
    zero_target = 3
    group.must_get_alive_dialer_set(TCP4).notify_latency_change(dialers[zero_target], False)
    count = [0] * len(dialers)
    for _ in range(100):
        dialer, _ = group.select(TCP4, False)
        count[dialers.index(dialer)] += 1
    for i, c in enumerate(count):
        if i != zero_target:
            assert c > 0
    assert count[zero_target] == 0


def test_fallback_to_other_ip_version():
    option = GlobalOption()
    dialers = make_dialers(option, 2)
    group = make_group(option, dialers, DialerSelectionPolicy(SelectionPolicy.RANDOM))
    alive_set = group.must_get_alive_dialer_set(TCP4)
    for dialer in dialers:
        alive_set.notify_latency_change(dialer, False)

    with pytest.raises(NoAliveDialerError):
        group.select(TCP4, True)
    dialer, latency = group.select(TCP4, False)
    assert dialer in dialers
    assert latency == timedelta(0)


def test_single_dialer_is_used_when_not_alive():
    option = GlobalOption()
    dialers = make_dialers(option, 1)
    group = make_group(option, dialers, DialerSelectionPolicy(SelectionPolicy.RANDOM))
    group.must_get_alive_dialer_set(TCP4).notify_latency_change(dialers[0], False)
    dialer, latency = group.select(TCP4, True)
    assert dialer is dialers[0]
    assert latency == TIMEOUT


def test_empty_group_raises():
    option = GlobalOption()
    group = make_group(option, [], DialerSelectionPolicy(SelectionPolicy.RANDOM))
    with pytest.raises(ValueError, match="no dialer"):
        group.select(TCP4)


def test_init_callbacks():
    calls = []
    option = GlobalOption()
    dialers = make_dialers(option, 2)
    make_group(
        option,
        dialers,
        DialerSelectionPolicy(SelectionPolicy.RANDOM),
        lambda alive, nt, is_init: calls.append((alive, nt, is_init)),
    )
    assert calls == [
        (True, TCP4, True),
        (True, TCP6, True),
        (True, NetworkType("udp", "4", True), True),
        (True, NetworkType("udp", "6", True), True),
    ]


def test_registration_and_close():
    option = GlobalOption(check_dns_tcp=True)
    dialers = make_dialers(option, 2)
    group = make_group(option, dialers, DialerSelectionPolicy(SelectionPolicy.RANDOM))
    alive_set = group.must_get_alive_dialer_set(TCP4)
    assert dialers[0].collection(TCP4).alive_dialer_set_set == {alive_set: 1}
    assert group.must_get_alive_dialer_set(NetworkType("tcp", "4", True)) is not None
    group.close()
    for dialer in dialers:
        assert dialer.collection(TCP4).alive_dialer_set_set == {}


def test_udp_shares_dns_set():
    option = GlobalOption()
    group = make_group(option, make_dialers(option, 1), DialerSelectionPolicy(SelectionPolicy.RANDOM))
    assert group.must_get_alive_dialer_set(NetworkType("udp", "4", False)) is (
        group.must_get_alive_dialer_set(NetworkType("udp", "4", True))
    )


def test_fixed_policy_tracks_nothing():
    option = GlobalOption()
    group = make_group(option, make_dialers(option, 1), DialerSelectionPolicy(SelectionPolicy.FIXED))
    assert group.must_get_alive_dialer_set(TCP4) is None


def test_invalid_network_type():
    option = GlobalOption()
    group = make_group(option, make_dialers(option, 1), DialerSelectionPolicy(SelectionPolicy.RANDOM))
    with pytest.raises(ValueError):
        group.must_get_alive_dialer_set(NetworkType("sctp", "4", False))


def test_invalid_policy():
    option = GlobalOption()
    with pytest.raises(ValueError, match="Unexpected dialer selection policy"):
        make_group(option, make_dialers(option, 1), DialerSelectionPolicy("bogus"))