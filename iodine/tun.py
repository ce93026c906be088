"""Tunnel network device: opening, packet I/O and address setup."""

from __future__ import annotations

import errno
import os
import re
import socket
import struct
import subprocess
import sys
from ipaddress import IPv4Address

TUN_MAX_TRY = 50
HEADER_LEN = 4
DEFAULT_READ_SIZE = 64 * 1024

# The system tools live here; the tools are looked up with this PATH.
TOOL_PATH = "/sbin:/bin"

_LINUX_TUN_PATH = "/dev/net/tun"
_ANDROID_TUN_PATH = "/dev/tun"
_IFNAMSIZ = 16
_IFF_TUN = 0x0001
_TUNSETIFF = 0x400454CA

_UTUN_CONTROL_NAME = b"com.apple.net.utun_control"
_UTUN_OPT_IFNAME = 2
_CTLIOCGINFO = 0xC0644E03
_MAX_KCTL_NAME = 96

# Linux prefixes packets with the ethertype (0x0800 for IPv4), the BSDs
# that use a header prefix them with the address family (AF_INET).
_LINUX_HEADER = b"\x00\x00\x08\x00"
_BSD_HEADER = b"\x00\x00\x00\x02"

_UNIT_DIGITS = re.compile(r"\d+")


def _platform() -> str:
    return sys.platform


def _is_linux() -> bool:
    return _platform().startswith("linux")


def _is_darwin() -> bool:
    return _platform() == "darwin"


def _is_android() -> bool:
    return hasattr(sys, "getandroidapilevel")


def netmask(netbits) -> IPv4Address:
    """Return the IPv4 netmask with ``netbits`` leading one bits."""
    netbits = int(netbits)
    if not 0 <= netbits <= 32:
        raise ValueError(f"netbits out of range (0..32): {netbits}")
    return IPv4Address((0xFFFFFFFF << (32 - netbits)) & 0xFFFFFFFF)


def utun_unit(device) -> int:
    """Return the utun control unit for a device name.

    0 asks the kernel to pick a unit; a name carrying number ``n`` gives
    ``n + 1``.
    """
    if device is None:
        raise ValueError("no utun device name given")
    match = _UNIT_DIGITS.search(device)
    if match is None:
        return 0
    return int(match.group()) + 1


def _default_uses_header(name: str) -> bool:
    platform = _platform()
    if platform.startswith(("freebsd", "netbsd")):
        return False
    if platform == "darwin":
        # Darwin tun has no header, utun has one.
        return name.startswith("utun")
    return True


def _tool_env() -> dict:
    env = dict(os.environ)
    env["PATH"] = TOOL_PATH
    return env


def _run(command: list[str]) -> None:
    subprocess.run(command, check=True, env=_tool_env())


def _linux_set_iff(fd: int, name: str) -> str:
    import fcntl

    request = struct.pack(
        f"{_IFNAMSIZ}sH22x", name.encode()[: _IFNAMSIZ - 1], _IFF_TUN
    )
    result = fcntl.ioctl(fd, _TUNSETIFF, request)
    return result[:_IFNAMSIZ].split(b"\0", 1)[0].decode()


def _open_linux(device: str | None) -> tuple[int, str]:
    path = _ANDROID_TUN_PATH if _is_android() else _LINUX_TUN_PATH
    fd = os.open(path, os.O_RDWR)
    try:
        if device is not None:
            name = _linux_set_iff(fd, device)
            print(f"Opened {name}", file=sys.stderr)
            return fd, device
        for i in range(TUN_MAX_TRY):
            candidate = f"dns{i}"
            try:
                name = _linux_set_iff(fd, candidate)
            except OSError as exc:
                if exc.errno != errno.EBUSY:
                    raise
                continue
            print(f"Opened {name}", file=sys.stderr)
            return fd, candidate
        raise OSError(errno.EBUSY, "Couldn't set interface name")
    except BaseException:
        os.close(fd)
        raise


def _open_utun(device: str) -> tuple[int, str]:
    import fcntl

    unit = utun_unit(device)
    sock = socket.socket(
        socket.PF_SYSTEM, socket.SOCK_DGRAM, socket.SYSPROTO_CONTROL
    )
    try:
        info = struct.pack(f"I{_MAX_KCTL_NAME}s", 0, _UTUN_CONTROL_NAME)
        info = fcntl.ioctl(sock.fileno(), _CTLIOCGINFO, info)
        (ctl_id,) = struct.unpack_from("I", info)
        sock.connect((ctl_id, unit))
        raw = sock.getsockopt(socket.SYSPROTO_CONTROL, _UTUN_OPT_IFNAME, 10)
    except BaseException:
        sock.close()
        raise
    name = raw.split(b"\0", 1)[0].decode()
    print(f"Opened {name}", file=sys.stderr)
    return sock.detach(), name


def _open_bsd(device: str | None) -> tuple[int, str]:
    darwin = _is_darwin()
    if device is not None:
        if darwin and device.startswith("utun"):
            try:
                return _open_utun(device)
            except OSError:
                pass
        path = f"/dev/{device}"
        fd = os.open(path, os.O_RDWR)
        print(f"Opened {path}", file=sys.stderr)
        return fd, device

    for i in range(TUN_MAX_TRY):
        path = f"/dev/tun{i}"
        try:
            fd = os.open(path, os.O_RDWR)
        except OSError as exc:
            if exc.errno == errno.ENOENT:
                break
            continue
        print(f"Opened {path}", file=sys.stderr)
        return fd, f"tun{i}"

    if darwin:
        print("No tun devices found, trying utun", file=sys.stderr)
        for i in range(TUN_MAX_TRY):
            try:
                return _open_utun(f"utun{i}")
            except OSError:
                continue

    raise OSError(errno.ENODEV, "Failed to open tunneling device")


class TunDevice:
    """An open tun interface.

    Packets going in and out carry a 4-byte prefix: on write it is replaced
    by the header the platform expects (or dropped), on read it holds that
    header (or zeros where the platform has none).
    """

    def __init__(self, fd, name, uses_header=None):
        self._fd = fd
        self.name = name
        self.uses_header = (
            _default_uses_header(name) if uses_header is None else bool(uses_header)
        )
        self.header = _LINUX_HEADER if _is_linux() else _BSD_HEADER

    @classmethod
    def open(cls, device=None) -> TunDevice:
        """Open the named tun device, or the first free one when None."""
        if sys.platform.startswith("win"):
            raise OSError(errno.ENOSYS, "tun devices are not supported on Windows")
        if _is_linux():
            fd, name = _open_linux(device)
        else:
            fd, name = _open_bsd(device)
        return cls(fd, name)

    def fileno(self) -> int:
        return self._fd

    def close(self) -> None:
        if self._fd >= 0:
            os.close(self._fd)
        self._fd = -1

    def _require_open(self) -> int:
        if self._fd < 0:
            raise ValueError("tun device is closed")
        return self._fd

    def read(self, size=DEFAULT_READ_SIZE) -> bytes:
        """Read one packet, returned with its 4-byte prefix."""
        fd = self._require_open()
        if size < HEADER_LEN:
            raise ValueError(f"read size must be at least {HEADER_LEN}")
        if self.uses_header:
            return os.read(fd, size)
        return bytes(HEADER_LEN) + os.read(fd, size - HEADER_LEN)

    def write(self, packet) -> None:
        """Write one packet whose first 4 bytes are a prefix to be replaced."""
        fd = self._require_open()
        packet = bytes(packet)
        if len(packet) < HEADER_LEN:
            raise ValueError(f"packet shorter than its {HEADER_LEN}-byte prefix")
        if self.uses_header:
            data = self.header + packet[HEADER_LEN:]
        else:
            data = packet[HEADER_LEN:]
        written = os.write(fd, data)
        if written != len(data):
            raise OSError(errno.EIO, f"short write to tun: {written} of {len(data)}")

    def set_ip(self, ip, other_ip, netbits) -> None:
        """Give the interface its address and, off Linux, a route to the net."""
        try:
            address = IPv4Address(ip)
        except ValueError:
            raise ValueError(f"Invalid IP: {ip}!") from None
        mask = netmask(netbits)
        display_ip = str(other_ip) if _platform().startswith("freebsd") else str(address)

        print(f"Setting IP of {self.name} to {address}", file=sys.stderr)
        _run(["ifconfig", self.name, str(address), display_ip, "netmask", str(mask)])
        if _is_linux():
            return

        network = IPv4Address(int(address) & int(mask))
        print(f"Adding route {network}/{netbits} to {address}", file=sys.stderr)
        _run(["route", "add", f"{network}/{netbits}", str(address)])

    def set_mtu(self, mtu) -> None:
        """Set the interface MTU; it must lie in 201..1500."""
        mtu = int(mtu)
        if not 200 < mtu <= 1500:
            raise ValueError(f"MTU out of range: {mtu}")
        print(f"Setting MTU of {self.name} to {mtu}", file=sys.stderr)
        _run(["ifconfig", self.name, "mtu", str(mtu)])

    def __enter__(self) -> TunDevice:
        return self

    def __exit__(self, *args) -> None:
        self.close()