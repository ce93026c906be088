"""DNS header layout and the protocol constants shared by client and server."""

from __future__ import annotations

import struct
from dataclasses import dataclass
from enum import IntEnum

PROTOCOL_VERSION = 0x00000502
"""Version of the tunnel protocol spoken between client and server."""

C_IN = 1
"""The Internet class for DNS questions and records."""

HEADER_SIZE = 12

_HEADER = struct.Struct("!HBBHHHH")


class RCode(IntEnum):
    """DNS response codes."""

    NOERROR = 0
    FORMERR = 1
    SERVFAIL = 2
    NXDOMAIN = 3
    NOTIMP = 4
    REFUSED = 5


class QType(IntEnum):
    """DNS record types used by the tunnel."""

    A = 1
    NS = 2
    CNAME = 5
    NULL = 10
    MX = 15
    TXT = 16
    SRV = 33


def _check_range(name: str, value: int, limit: int) -> int:
    value = int(value)
    if not 0 <= value <= limit:
        raise ValueError(f"{name} out of range (0..{limit}): {value}")
    return value


@dataclass
class DnsHeader:
    """The fixed 12-byte header that starts every DNS message."""

    id: int = 0
    qr: bool = False
    opcode: int = 0
    aa: bool = False
    tc: bool = False
    rd: bool = False
    ra: bool = False
    z: bool = False
    ad: bool = False
    cd: bool = False
    rcode: int = RCode.NOERROR
    qdcount: int = 0
    ancount: int = 0
    nscount: int = 0
    arcount: int = 0

    def pack(self) -> bytes:
        """Return the header in network byte order."""
        opcode = _check_range("opcode", self.opcode, 0xF)
        rcode = _check_range("rcode", self.rcode, 0xF)
        flags1 = (
            (bool(self.qr) << 7)
            | (opcode << 3)
            | (bool(self.aa) << 2)
            | (bool(self.tc) << 1)
            | bool(self.rd)
        )
        flags2 = (
            (bool(self.ra) << 7)
            | (bool(self.z) << 6)
            | (bool(self.ad) << 5)
            | (bool(self.cd) << 4)
            | rcode
        )
        return _HEADER.pack(
            _check_range("id", self.id, 0xFFFF),
            flags1,
            flags2,
            _check_range("qdcount", self.qdcount, 0xFFFF),
            _check_range("ancount", self.ancount, 0xFFFF),
            _check_range("nscount", self.nscount, 0xFFFF),
            _check_range("arcount", self.arcount, 0xFFFF),
        )

    @classmethod
    def unpack(cls, data: bytes) -> DnsHeader:
        """Parse the header at the start of ``data``; the rest is ignored."""
        if len(data) < HEADER_SIZE:
            raise ValueError(
                f"DNS header needs {HEADER_SIZE} bytes, got {len(data)}"
            )
        ident, flags1, flags2, qd, an, ns, ar = _HEADER.unpack_from(data)
        rcode_value = flags2 & 0xF
        rcode = RCode(rcode_value) if rcode_value in RCode._value2member_map_ else rcode_value
        return cls(
            id=ident,
            qr=bool(flags1 & 0x80),
            opcode=(flags1 >> 3) & 0xF,
            aa=bool(flags1 & 0x04),
            tc=bool(flags1 & 0x02),
            rd=bool(flags1 & 0x01),
            ra=bool(flags2 & 0x80),
            z=bool(flags2 & 0x40),
            ad=bool(flags2 & 0x20),
            cd=bool(flags2 & 0x10),
            rcode=rcode,
            qdcount=qd,
            ancount=an,
            nscount=ns,
            arcount=ar,
        )