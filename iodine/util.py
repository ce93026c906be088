"""Host helpers: system resolver lookup and OpenBSD routing tables."""

from __future__ import annotations

import re
import socket
import sys

RESOLV_CONF = "/etc/resolv.conf"

_NAMESERVER = re.compile(r"nameserver\s*(\S{1,15})")


def get_resolvconf_addr(path=RESOLV_CONF) -> str | None:
    """Return the first nameserver listed in a resolv.conf file, or None.

    The address is cut to 15 characters, enough for dotted IPv4.
    """
    with open(path, encoding="ascii", errors="replace") as fp:
        for line in fp:
            match = _NAMESERVER.match(line)
            if match:
                return match.group(1)
    return None


def socket_setrtable(sock, rtable) -> None:
    """Bind ``sock`` to routing table ``rtable`` where the platform supports it."""
    option = getattr(socket, "SO_RTABLE", None)
    if option is None:
        print("Routing domain support is not available on this platform.", file=sys.stderr)
        return
    try:
        sock.setsockopt(socket.IPPROTO_IP, option, rtable)
    except OSError as exc:
        raise OSError(exc.errno, f"Failed to set routing table {rtable}") from exc