# iodine

Python building blocks for tunnelling IPv4 traffic through DNS. It has no
dependencies beyond the standard library.

## Modules

### `iodine.protocol`

- `PROTOCOL_VERSION` (`0x00000502`) and `C_IN`, the Internet class.
- `RCode`: DNS response codes `NOERROR`, `FORMERR`, `SERVFAIL`,
  `NXDOMAIN`, `NOTIMP`, `REFUSED`.
- `QType`: record types `A`, `NS`, `CNAME`, `NULL`, `MX`, `TXT`, `SRV`.
- `DnsHeader`: a dataclass for the 12-byte DNS header. `pack()` returns
  it in network byte order and raises `ValueError` when a field is out of
  range. `DnsHeader.unpack(data)` parses the first 12 bytes of `data`
  and raises `ValueError` when fewer are given.

### `iodine.users`

- `Connection`: `RAW_UDP` or `DNS_NULL`.
- `TunUser`: the state of one user slot (id, tunnel address, activity
  and authentication flags, last packet time, queues and so on).
- `UserTable(my_ip, netbits)`: up to 16 user slots with consecutive
  addresses in the server's subnet, skipping the server's own address.
  The subnet's network address, broadcast address and the server take
  three addresses, so a `/29` gives 5 slots.
  - `len(table)` and `table[userid]` (raises `IndexError` for unknown ids).
  - `first_ip()`: the first slot's address as text.
  - `find_by_ip(ip)`: id of the active, authenticated, enabled user that
    sent a packet in the last 60 seconds and owns `ip`, else `None`.
  - `all_waiting_to_send()`: `True` unless some live user is on raw UDP,
    or on DNS with an empty outgoing packet queue.
  - `find_available()`: claims a slot that is unused or idle for over 60
    seconds and not disabled, resets its login state, and returns its id,
    or `None` when none is free.
  - `switch_codec(userid, encoder)` and `set_conn_type(userid, conn)`:
    set a user's encoder or connection type; unknown ids or types are
    ignored.

### `iodine.util`

- `get_resolvconf_addr(path="/etc/resolv.conf")`: the first
  `nameserver` entry of the file (cut to 15 characters), or `None`.
- `socket_setrtable(sock, rtable)`: binds a socket to a routing table
  where `socket.SO_RTABLE` exists; elsewhere it prints a notice to
  stderr. A failing `setsockopt` raises `OSError`.

### `iodine.tun`

- `netmask(netbits)`: the IPv4 netmask as an `IPv4Address`.
- `utun_unit(device)`: the macOS utun control unit for a name: `0` when
  it has no number, `n + 1` for a name carrying number `n`.
- `TunDevice`: an open tun interface, usable as a context manager.
  - `TunDevice.open(device=None)`: opens the named device, or the first
    free one (`dnsN` on Linux, `/dev/tunN` elsewhere, then `utunN` on
    macOS).
  - `read(size)` and `write(packet)`: packets carry a 4-byte prefix that
    is the platform's header, or zeros where the platform has none. On
    write the prefix is replaced by the platform header or dropped.
  - `set_ip(ip, other_ip, netbits)`: runs `ifconfig`, and off Linux
    also `route add` for the subnet. An invalid address raises
    `ValueError`, a failing command `subprocess.CalledProcessError`.
  - `set_mtu(mtu)`: runs `ifconfig ... mtu`; the MTU must lie in
    201..1500, else `ValueError`.
  - `fileno()` and `close()`.

## Installation

```
pip install .
```

Opening tun devices and configuring interfaces needs root privileges.

## Examples

```python
from iodine.users import UserTable

table = UserTable("10.0.0.1", 27)
print(len(table), table.first_ip())   # 16 10.0.0.2
userid = table.find_available()
```

```python
from iodine.tun import TunDevice

with TunDevice.open() as tun:
    tun.set_ip("10.0.0.1", "10.0.0.2", 27)
    tun.set_mtu(1130)
    packet = tun.read(64 * 1024)
```

```python
from iodine.protocol import DnsHeader

header = DnsHeader(id=1337, qdcount=1)
raw = header.pack()
assert DnsHeader.unpack(raw) == header
```

## What this package does not do

It has no tunnel client or server and no command to run. It does not
encode data into DNS names, build or parse whole DNS queries and answers,
or log users in. Tun devices on Windows are not supported:
`TunDevice.open` raises `OSError` there.

## Tests

```
pip install ".[test]"
pytest
```