from datetime import timedelta

import pytest

from daekit.outbound.network import (
    COLLECTION_COUNT,
    IP_VERSION_4,
    IP_VERSION_6,
    L4_PROTO_TCP,
    L4_PROTO_UDP,
    Collection,
    NetworkType,
    collection_index,
)


def test_string_without_dns():
    nt = NetworkType(L4_PROTO_TCP, IP_VERSION_4, True)
    assert nt.string_without_dns() == "tcp4"


def test_str_marks_dns():
    nt = NetworkType(L4_PROTO_UDP, IP_VERSION_6, True)
    assert str(nt) == nt.string_without_dns() + "(DNS)"


def test_str_without_dns_flag():
    nt = NetworkType(L4_PROTO_UDP, IP_VERSION_6, False)
    assert str(nt) == nt.string_without_dns()


def test_distinct_slots_cover_all_collections():
    types = [
        NetworkType(L4_PROTO_TCP, IP_VERSION_4, True),
        NetworkType(L4_PROTO_TCP, IP_VERSION_6, True),
        NetworkType(L4_PROTO_UDP, IP_VERSION_4, True),
        NetworkType(L4_PROTO_UDP, IP_VERSION_6, True),
        NetworkType(L4_PROTO_TCP, IP_VERSION_4, False),
        NetworkType(L4_PROTO_TCP, IP_VERSION_6, False),
    ]
    assert sorted(collection_index(t) for t in types) == list(range(COLLECTION_COUNT))


@pytest.mark.parametrize("version", [IP_VERSION_4, IP_VERSION_6])
def test_udp_shares_dns_slot(version):
    plain = NetworkType(L4_PROTO_UDP, version, False)
    dns = NetworkType(L4_PROTO_UDP, version, True)
    assert collection_index(plain) == collection_index(dns)


def test_tcp_does_not_share_dns_slot():
    plain = NetworkType(L4_PROTO_TCP, IP_VERSION_4, False)
    dns = NetworkType(L4_PROTO_TCP, IP_VERSION_4, True)
    assert collection_index(plain) != collection_index(dns)
    assert collection_index(plain) in range(COLLECTION_COUNT)


@pytest.mark.parametrize(
    "nt",
    [NetworkType("sctp", IP_VERSION_4), NetworkType(L4_PROTO_TCP, "5")],
)
def test_invalid_network_type(nt):
    with pytest.raises(ValueError):
        collection_index(nt)


def test_network_type_is_hashable_and_equal_by_value():
    a = NetworkType(L4_PROTO_TCP, IP_VERSION_4)
    b = NetworkType(L4_PROTO_TCP, IP_VERSION_4)
    assert a == b
    assert len({a, b}) == 1


def test_collection_defaults():
    c = Collection()
    assert c.alive is True
    assert c.moving_average == timedelta(0)
    assert c.latencies10.n == 10
    assert c.latencies10.last_latency() is None
    assert c.alive_dialer_set_set == {}


def test_collections_do_not_share_state():
    a, b = Collection(), Collection()
    a.latencies10.append_latency(timedelta(milliseconds=5))
    assert b.latencies10.last_latency() is None