import time
from ipaddress import IPv4Address, IPv4Network

import pytest

from iodine.users import USERS, Connection, UserTable


def test_init_users():
    table = UserTable("127.0.0.1", 27)
    assert len(table) == USERS
    for i in range(len(table)):
        user = table[i]
        assert user.id == i
        assert user.query_id == 0
        assert len(user.inpacket) == 0
        assert len(user.outpacket) == 0
        assert user.tun_ip == IPv4Address(f"127.0.0.{i + 2}")


def test_first_ip():
    assert UserTable("127.0.0.1", 27).first_ip() == "127.0.0.2"


def test_server_ip_is_skipped_and_ips_stay_in_net():
    table = UserTable("192.168.0.3", 27)
    ips = [table[i].tun_ip for i in range(len(table))]
    net = IPv4Network("192.168.0.3/27", strict=False)
    assert IPv4Address("192.168.0.3") not in ips
    assert len(set(ips)) == len(ips)
    assert all(ip in net for ip in ips)
    assert net.network_address not in ips
    assert net.broadcast_address not in ips


def test_find_user_by_ip():
    table = UserTable("127.0.0.1", 27)
    table[0].conn = Connection.DNS_NULL

    assert table.find_by_ip("10.0.0.1") is None
    assert table.find_by_ip("127.0.0.2") is None

    table[0].active = True
    assert table.find_by_ip("127.0.0.2") is None

    table[0].last_pkt = time.time()
    assert table.find_by_ip("127.0.0.2") is None

    table[0].authenticated = True
    assert table.find_by_ip("127.0.0.2") == 0


def test_all_users_waiting_to_send():
    table = UserTable("127.0.0.1", 27)
    assert table.all_waiting_to_send() is True

    table[0].conn = Connection.DNS_NULL
    table[0].active = True
    assert table.all_waiting_to_send() is True

    table[0].last_pkt = time.time()
    table[0].outpacket.clear()
    assert table.all_waiting_to_send() is False

    table[0].outpacketq.append(b"packet")
    assert table.all_waiting_to_send() is True


def test_find_available_user():
    table = UserTable("127.0.0.1", 27)

    for i in range(USERS):
        table[i].authenticated = True
        table[i].authenticated_raw = True
        assert table.find_available() == i
        assert table[i].authenticated is False
        assert table[i].authenticated_raw is False

    for _ in range(USERS):
        assert table.find_available() is None

    table[3].active = False
    assert table.find_available() == 3
    assert table.find_available() is None

    table[3].last_pkt = 55
    assert table.find_available() == 3
    assert table.find_available() is None


def test_find_available_user_small_net():
    table = UserTable("127.0.0.1", 29)
    assert len(table) == 5

    for i in range(5):
        assert table.find_available() == i

    for _ in range(USERS):
        assert table.find_available() is None

    table[3].active = False
    assert table.find_available() == 3
    assert table.find_available() is None

    table[3].last_pkt = 55
    assert table.find_available() == 3
    assert table.find_available() is None


def test_find_available_sets_dns_null():
    table = UserTable("127.0.0.1", 27)
    userid = table.find_available()
    assert table[userid].conn == Connection.DNS_NULL
    assert table[userid].fragsize == 4096


def test_disabled_user_is_never_handed_out():
    table = UserTable("127.0.0.1", 29)
    table[0].disabled = True
    assert table.find_available() == 1


def test_set_conn_type():
    table = UserTable("127.0.0.1", 27)
    table.set_conn_type(0, Connection.DNS_NULL)
    assert table[0].conn == Connection.DNS_NULL
    table.set_conn_type(0, 99)
    assert table[0].conn == Connection.DNS_NULL
    table.set_conn_type(USERS, Connection.RAW_UDP)
    assert table[USERS - 1].conn == Connection.RAW_UDP


def test_switch_codec():
    table = UserTable("127.0.0.1", 27)
    codec = object()
    table.switch_codec(2, codec)
    table.switch_codec(-1, object())
    assert table[2].encoder is codec
    assert table[0].encoder is None


def test_getitem_out_of_range():
    table = UserTable("127.0.0.1", 29)
    last = table[4]
    assert last.id == 4
    assert last.tun_ip == IPv4Address("127.0.0.6")
    with pytest.raises(IndexError):
        table[5]
    with pytest.raises(IndexError):
        table[-1]


def test_bad_netbits():
    with pytest.raises(ValueError):
        UserTable("127.0.0.1", 33)