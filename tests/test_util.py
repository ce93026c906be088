import errno
import socket
from unittest import mock

import pytest

from iodine.util import get_resolvconf_addr, socket_setrtable


class FakeSocket:
    def __init__(self, fail=False):
        self.calls = []
        self.fail = fail

    def setsockopt(self, level, option, value):
        if self.fail:
            raise OSError(errno.EPERM, "not permitted")
        self.calls.append((level, option, value))


def test_first_nameserver_is_returned(tmp_path):
    conf = tmp_path / "resolv.conf"
    conf.write_text(
        "# generated\nsearch example.com\nnameserver 192.0.2.53\nnameserver 192.0.2.54\n"
    )
    assert get_resolvconf_addr(conf) == "192.0.2.53"


def test_nameserver_is_cut_to_fifteen_chars(tmp_path):
    conf = tmp_path / "resolv.conf"
    conf.write_text("nameserver 2001:db8::1234:5678\n")
    result = get_resolvconf_addr(conf)
    assert result == "2001:db8::1234:"
    assert len(result) <= 15


def test_no_nameserver(tmp_path):
    conf = tmp_path / "resolv.conf"
    conf.write_text("search example.com\n  nameserver 192.0.2.1\nnameserver\n")
    assert get_resolvconf_addr(conf) is None


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        get_resolvconf_addr(tmp_path / "absent.conf")


def test_setrtable_sets_option():
    sock = FakeSocket()
    with mock.patch.object(socket, "SO_RTABLE", 4129, create=True):
        socket_setrtable(sock, 5)
    assert sock.calls == [(socket.IPPROTO_IP, 4129, 5)]


def test_setrtable_failure_raises():
    sock = FakeSocket(fail=True)
    with mock.patch.object(socket, "SO_RTABLE", 4129, create=True):
        with pytest.raises(OSError, match="routing table 7"):
            socket_setrtable(sock, 7)


def test_setrtable_unsupported_reports(capsys):
    sock = FakeSocket()
    with mock.patch.object(socket, "SO_RTABLE", None, create=True):
        socket_setrtable(sock, 3)
    assert sock.calls == []
    assert "Routing domain support" in capsys.readouterr().err