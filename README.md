# daekit

Building blocks for a transparent proxy. It finds the destination domain in the
first bytes of a TLS or HTTP connection, expands routing rules into calls of
per-function parsers, and tracks the health of outbound dialers so that a group
can pick one of them.

The package depends on nothing outside the standard library.

## Installation

```
pip install daekit
```

To run the test suite:

```
pip install "daekit[test]"
pytest
```

## Sniffing: `daekit.sniffing`

- `daekit.sniffing.tls.sniff_tls(data)` returns the SNI of a TLS 1.2/1.3
  ClientHello record. `extract_sni_from_tls(locator)` and
  `find_sni_extension(locator)` work on the handshake message and the extension
  list.
- `daekit.sniffing.http.sniff_http(data)` returns the raw value of the `Host`
  header of an HTTP request. `is_valid_http_method(method)` checks the method
  name.
- `daekit.sniffing.errors.normalize_domain(host)` lower-cases the host and
  strips surrounding space, IPv6 brackets, a port and a trailing dot.

Every failure is a subclass of `SniffingError`. `NotApplicableError` means the
data is not of that protocol. `NeedMoreError` means the record is not complete
yet. `NotFoundError` means the protocol matched but no domain was found.
`is_sniffing_error(err)` also follows `__cause__` chains.

```python
from daekit.sniffing.errors import NotApplicableError, normalize_domain
from daekit.sniffing.http import sniff_http
from daekit.sniffing.tls import sniff_tls

payload = b"GET / HTTP/1.1\r\nHost: Example.COM:8080\r\n\r\n"
try:
    host = sniff_tls(payload)
except NotApplicableError:
    host = sniff_http(payload)
print(normalize_domain(host))  # example.com
```

## QUIC helpers: `daekit.quicutils`

- `binary.big_endian_uvarint(buf)` decodes a QUIC variable-length integer. It
  returns the value and the number of bytes the integer used.
- `relocation.extract_crypto_frame_offset(...)` parses one frame.
  `relocation.reassemble_cryptos(offsets, payload)` collects the CRYPTO frames
  of a decrypted payload and keeps them sorted by stream offset. It raises
  `ConnectionClosedError`, `UnknownFrameTypeError` or `EOFError` when a frame
  cannot be used.
- `LinearLocator` reads across sorted CRYPTO frames as one byte stream and
  raises `MissingCryptoError` where there is a gap. `BytesLocator` offers the
  same interface over one byte string. The TLS sniffer accepts either.

## Routing rules: `daekit.routing.builder`

- `RoutingRule`, `Function`, `Param` and `DomainKey` describe rules such as
  `domain(suffix: example.com) && port(443) -> proxy`.
- `RulesBuilder.register_function_parser(name, parser)` registers a parser for
  a function name. `RulesBuilder.apply(rules)` calls the matching parser once
  for each key group of each function. The call gets an `Outbound` whose name
  is `<OR>` or `<AND>`, or the real outbound name for the last group of the
  last function.
- `parse_outbound(function)` reads an outbound such as `proxy(must, mark: 0x10)`.
- `group_param_values_by_key(params)` groups parameter values by key, keeping
  the keys in first-seen order.
- `DomainMatcher` is the protocol that a domain set matcher has to follow:
  `add_set`, `build` and `match_domain_bitmap`.

```python
from daekit.routing.builder import Function, Param, parse_outbound

print(parse_outbound(Function("proxy", [Param("", "must"), Param("mark", "0x10")])))
# Outbound(name='proxy', mark=16, must=True)
```

## Outbound dialers: `daekit.outbound`

- `latency`: `LatenciesN` keeps the last *n* latencies and their average.
  `Annotation.from_params(...)` reads `add_latency` annotations.
  `parse_duration` and `show_duration` handle texts such as `1m30s`.
  `latency_string` renders a latency together with its offset.
- `selection_policy`: `DialerSelectionPolicy.from_functions(...)` accepts the
  policies `random`, `fixed(n)`, `min`, `min_avg10` and `min_moving_avg`.
- `network`: `NetworkType` combines TCP or UDP, IPv4 or IPv6, and whether the
  traffic is DNS. Each type has a `Collection` of check state.
- `dialer`: `Dialer` keeps that state per network type.
  `Dialer.check(CheckOption(...))` runs a check function that you supply and
  records its latency or failure. `report_unavailable` marks a network type as
  failed.
- `alive_dialer_set`: `AliveDialerSet` knows which dialers of a group are alive
  for one network type and which one has the lowest latency, allowing for the
  annotated offset and the tolerance.
- `dialer_group`: `DialerGroup.select(network_type, strict_ip_version)` picks a
  dialer by the group's policy. When no dialer is alive and `strict_ip_version`
  is false, it tries the other IP version. When `strict_ip_version` is true and
  the group has exactly one dialer, that dialer is used. Otherwise it raises
  `NoAliveDialerError`.
- `filter`: `DialerSet.filter_and_annotate(filters, annotations)` picks dialers
  with `name(...)` and `subtag(...)` filters. Each picked dialer gets the
  annotation of the first filter that hit it.

```python
from daekit.outbound.dialer import Dialer, GlobalOption, Property
from daekit.outbound.dialer_group import DialerGroup
from daekit.outbound.latency import Annotation
from daekit.outbound.network import NetworkType
from daekit.outbound.selection_policy import DialerSelectionPolicy

option = GlobalOption()
dialers = [Dialer(option, Property(name="node-a")), Dialer(option, Property(name="node-b"))]
group = DialerGroup(
    option, "proxy", dialers, [Annotation(), Annotation()],
    DialerSelectionPolicy.from_functions("random"),
)
dialer, latency = group.select(NetworkType("tcp", "4"))
```

## What the package does not do

- It does not decrypt QUIC Initial packets, so it cannot sniff a domain from
  QUIC traffic. It only reassembles CRYPTO frames that are already decrypted.
- It has no ready-made domain matchers, only the `DomainMatcher` protocol.
- It opens no connections. Dialers carry no transport, and connectivity checks
  run only the check functions that the caller supplies.
- It has no command line, no configuration file parser and no proxy server.