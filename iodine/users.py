"""The server's table of tunnel users."""

from __future__ import annotations

import time
from collections import deque
from dataclasses import dataclass, field
from enum import IntEnum
from ipaddress import IPv4Address
from typing import Any

USERS = 16
OUTPACKETQ_LEN = 4
DNSCACHE_LEN = 4
QMEMPING_LEN = 30
QMEMDATA_LEN = 15
ACTIVE_TIMEOUT = 60


class Connection(IntEnum):
    """How data travels between a user and the server."""

    RAW_UDP = 0
    DNS_NULL = 1


@dataclass
class TunUser:
    """State kept for one tunnel user slot."""

    id: int
    tun_ip: IPv4Address
    active: bool = False
    authenticated: bool = False
    authenticated_raw: bool = False
    options_locked: bool = False
    disabled: bool = False
    last_pkt: float = 0.0
    seed: int = 0
    host: Any = None
    query_id: int = 0
    encoder: Any = None
    downenc: str = ""
    fragsize: int = 0
    conn: Connection = Connection.RAW_UDP
    lazy: bool = False
    inpacket: bytearray = field(default_factory=bytearray)
    outpacket: bytearray = field(default_factory=bytearray)
    outfragresent: int = 0
    out_acked_seqno: int = 0
    out_acked_fragment: int = 0
    outpacketq: deque = field(default_factory=lambda: deque(maxlen=OUTPACKETQ_LEN))
    dnscache: deque = field(default_factory=lambda: deque(maxlen=DNSCACHE_LEN))
    qmemping: deque = field(default_factory=lambda: deque(maxlen=QMEMPING_LEN))
    qmemdata: deque = field(default_factory=lambda: deque(maxlen=QMEMDATA_LEN))


def _recent(user: TunUser, now: float) -> bool:
    return user.last_pkt + ACTIVE_TIMEOUT > now


class UserTable:
    """Fixed set of user slots, each with its own address in the tunnel net."""

    def __init__(self, my_ip, netbits):
        if not 0 <= netbits <= 32:
            raise ValueError(f"netbits out of range (0..32): {netbits}")
        my_ip = IPv4Address(my_ip)
        mask = (0xFFFFFFFF << (32 - netbits)) & 0xFFFFFFFF
        network = int(my_ip) & mask
        # Network address, broadcast address and the server's own address.
        maxusers = (1 << (32 - netbits)) - 3
        count = max(0, min(maxusers, USERS))

        self._users: list[TunUser] = []
        skip = 0
        for i in range(count):
            ip = IPv4Address((network + i + skip + 1) & 0xFFFFFFFF)
            if ip == my_ip and skip == 0:
                skip += 1
                ip = IPv4Address((network + i + skip + 1) & 0xFFFFFFFF)
            self._users.append(TunUser(id=i, tun_ip=ip))

    def __len__(self) -> int:
        return len(self._users)

    def __getitem__(self, userid: int) -> TunUser:
        if not 0 <= userid < len(self._users):
            raise IndexError(f"no such user: {userid}")
        return self._users[userid]

    def first_ip(self) -> str:
        """Address of the first user slot, as dotted text."""
        if not self._users:
            raise IndexError("user table is empty")
        return str(self._users[0].tun_ip)

    def find_by_ip(self, ip) -> int | None:
        """Id of the live, authenticated user owning ``ip``, or None."""
        ip = IPv4Address(ip)
        now = time.time()
        for user in self._users:
            if (
                user.active
                and user.authenticated
                and not user.disabled
                and _recent(user, now)
                and user.tun_ip == ip
            ):
                return user.id
        return None

    def all_waiting_to_send(self) -> bool:
        """True when no live user could take another packet from the tun device.

        Reading from the tun device is held back while this is true, so that
        every client has a packet queued and can be answered back to back.
        """
        now = time.time()
        for user in self._users:
            if (
                user.active
                and not user.disabled
                and _recent(user, now)
                and (
                    user.conn == Connection.RAW_UDP
                    or (user.conn == Connection.DNS_NULL and not user.outpacketq)
                )
            ):
                return False
        return True

    def find_available(self) -> int | None:
        """Claim a free or timed-out slot and return its id, or None if all are taken."""
        now = time.time()
        for user in self._users:
            if (not user.active or user.last_pkt + ACTIVE_TIMEOUT < now) and not user.disabled:
                user.active = True
                user.authenticated = False
                user.authenticated_raw = False
                user.options_locked = False
                user.last_pkt = now
                user.fragsize = 4096
                user.conn = Connection.DNS_NULL
                return user.id
        return None

    def switch_codec(self, userid, encoder) -> None:
        """Set the upstream encoder of a user; unknown ids are ignored."""
        if 0 <= userid < len(self._users):
            self._users[userid].encoder = encoder

    def set_conn_type(self, userid, conn) -> None:
        """Set the connection type of a user; unknown ids or types are ignored."""
        if not 0 <= userid < len(self._users):
            return
        try:
            conn = Connection(conn)
        except ValueError:
            return
        self._users[userid].conn = conn