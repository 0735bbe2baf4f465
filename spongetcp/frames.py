"""Wire formats for Ethernet frames, ARP messages and IPv4 datagrams."""

from __future__ import annotations

import ipaddress
import struct
from dataclasses import dataclass, field

ETHERNET_ADDRESS_LENGTH = 6
ETHERNET_BROADCAST = b"\xff" * ETHERNET_ADDRESS_LENGTH
ETHERNET_ZERO = bytes(ETHERNET_ADDRESS_LENGTH)


class ParseError(ValueError):
    """Raised when bytes cannot be parsed as the requested structure."""


def ethernet_to_string(address: bytes) -> str:
    """Format an Ethernet address as colon-separated lower-case hex."""
    return ":".join(f"{byte:02x}" for byte in bytes(address))


def _ethernet_address(value: bytes) -> bytes:
    value = bytes(value)
    if len(value) != ETHERNET_ADDRESS_LENGTH:
        raise ValueError(
            f"an Ethernet address has {ETHERNET_ADDRESS_LENGTH} bytes, not {len(value)}"
        )
    return value


def _internet_checksum(data: bytes) -> int:
    if len(data) % 2:
        data += b"\x00"
    total = sum(word for (word,) in struct.iter_unpack("!H", data))
    while total >> 16:
        total = (total & 0xFFFF) + (total >> 16)
    return ~total & 0xFFFF


@dataclass
class EthernetHeader:
    """Destination, source and EtherType of an Ethernet frame."""

    TYPE_IPv4 = 0x0800
    TYPE_ARP = 0x0806
    LENGTH = 14

    dst: bytes = ETHERNET_ZERO
    src: bytes = ETHERNET_ZERO
    type: int = 0

    def __post_init__(self) -> None:
        self.dst = _ethernet_address(self.dst)
        self.src = _ethernet_address(self.src)

    def serialize(self) -> bytes:
        return struct.pack("!6s6sH", self.dst, self.src, self.type)

    @classmethod
    def parse(cls, data: bytes) -> EthernetHeader:
        data = bytes(data)
        if len(data) < cls.LENGTH:
            raise ParseError("Ethernet header truncated")
        dst, src, ethertype = struct.unpack_from("!6s6sH", data)
        return cls(dst=dst, src=src, type=ethertype)

    def __str__(self) -> str:
        names = {self.TYPE_IPv4: "IPv4", self.TYPE_ARP: "ARP"}
        kind = names.get(self.type, f"0x{self.type:04x}")
        return (
            f"dst={ethernet_to_string(self.dst)}, "
            f"src={ethernet_to_string(self.src)}, type={kind}"
        )


@dataclass
class EthernetFrame:
    """An Ethernet header followed by its payload."""

    header: EthernetHeader = field(default_factory=EthernetHeader)
    payload: bytes = b""

    def serialize(self) -> bytes:
        return self.header.serialize() + bytes(self.payload)

    @classmethod
    def parse(cls, data: bytes) -> EthernetFrame:
        data = bytes(data)
        header = EthernetHeader.parse(data)
        return cls(header=header, payload=data[EthernetHeader.LENGTH :])


@dataclass
class ARPMessage:
    """An ARP request or reply mapping IPv4 addresses to Ethernet addresses."""

    OPCODE_REQUEST = 1
    OPCODE_REPLY = 2
    TYPE_ETHERNET = 1
    LENGTH = 28
    _FORMAT = "!HHBBH6sI6sI"

    opcode: int = OPCODE_REQUEST
    sender_ethernet_address: bytes = ETHERNET_ZERO
    sender_ip_address: int = 0
    target_ethernet_address: bytes = ETHERNET_ZERO
    target_ip_address: int = 0

    def __post_init__(self) -> None:
        self.sender_ethernet_address = _ethernet_address(self.sender_ethernet_address)
        self.target_ethernet_address = _ethernet_address(self.target_ethernet_address)

    def serialize(self) -> bytes:
        return struct.pack(
            self._FORMAT,
            self.TYPE_ETHERNET,
            EthernetHeader.TYPE_IPv4,
            ETHERNET_ADDRESS_LENGTH,
            4,
            self.opcode,
            self.sender_ethernet_address,
            self.sender_ip_address,
            self.target_ethernet_address,
            self.target_ip_address,
        )

    @classmethod
    def parse(cls, data: bytes) -> ARPMessage:
        data = bytes(data)
        if len(data) < cls.LENGTH:
            raise ParseError("ARP message truncated")
        (
            hardware_type,
            protocol_type,
            hardware_size,
            protocol_size,
            opcode,
            sender_eth,
            sender_ip,
            target_eth,
            target_ip,
        ) = struct.unpack_from(cls._FORMAT, data)
        if (
            hardware_type != cls.TYPE_ETHERNET
            or protocol_type != EthernetHeader.TYPE_IPv4
            or hardware_size != ETHERNET_ADDRESS_LENGTH
            or protocol_size != 4
            or opcode not in (cls.OPCODE_REQUEST, cls.OPCODE_REPLY)
        ):
            raise ParseError("unsupported ARP message")
        return cls(
            opcode=opcode,
            sender_ethernet_address=sender_eth,
            sender_ip_address=sender_ip,
            target_ethernet_address=target_eth,
            target_ip_address=target_ip,
        )

    def __str__(self) -> str:
        kind = "REQUEST" if self.opcode == self.OPCODE_REQUEST else "REPLY"
        return (
            f"opcode={kind}, "
            f"sender={ethernet_to_string(self.sender_ethernet_address)}"
            f"/{ipaddress.IPv4Address(self.sender_ip_address)}, "
            f"target={ethernet_to_string(self.target_ethernet_address)}"
            f"/{ipaddress.IPv4Address(self.target_ip_address)}"
        )


@dataclass
class IPv4Header:
    """The fields of an IPv4 header; addresses are 32-bit integers."""

    PROTO_TCP = 6
    MIN_LENGTH = 20
    _FORMAT = "!BBHHHBBHII"

    ver: int = 4
    hlen: int = 5
    tos: int = 0
    length: int = MIN_LENGTH
    ident: int = 0
    df: bool = True
    mf: bool = False
    offset: int = 0
    ttl: int = 64
    proto: int = PROTO_TCP
    cksum: int = field(default=0, compare=False)
    src: int = 0
    dst: int = 0

    def serialize(self) -> bytes:
        """Encode the header, filling in a correct checksum."""
        return self._pack(_internet_checksum(self._pack(0)))

    def _pack(self, cksum: int) -> bytes:
        if not 5 <= self.hlen <= 15:
            raise ValueError(f"header length {self.hlen} words is out of range")
        flags = (int(self.df) << 14) | (int(self.mf) << 13) | (self.offset & 0x1FFF)
        fixed = struct.pack(
            self._FORMAT,
            (self.ver << 4) | self.hlen,
            self.tos,
            self.length,
            self.ident,
            flags,
            self.ttl,
            self.proto,
            cksum,
            self.src,
            self.dst,
        )
        return fixed + bytes(self.hlen * 4 - self.MIN_LENGTH)

    @classmethod
    def parse(cls, data: bytes) -> IPv4Header:
        data = bytes(data)
        if len(data) < cls.MIN_LENGTH:
            raise ParseError("IPv4 header truncated")
        (
            ver_hlen,
            tos,
            length,
            ident,
            flags,
            ttl,
            proto,
            cksum,
            src,
            dst,
        ) = struct.unpack_from(cls._FORMAT, data)
        ver, hlen = ver_hlen >> 4, ver_hlen & 0x0F
        if ver != 4:
            raise ParseError(f"wrong IP version {ver}")
        if hlen < 5:
            raise ParseError("IPv4 header too short")
        if len(data) < hlen * 4:
            raise ParseError("IPv4 header truncated")
        if _internet_checksum(data[: hlen * 4]) != 0:
            raise ParseError("bad IPv4 checksum")
        return cls(
            ver=ver,
            hlen=hlen,
            tos=tos,
            length=length,
            ident=ident,
            df=bool(flags & 0x4000),
            mf=bool(flags & 0x2000),
            offset=flags & 0x1FFF,
            ttl=ttl,
            proto=proto,
            cksum=cksum,
            src=src,
            dst=dst,
        )

    def summary(self) -> str:
        """A one-line description of the header."""
        parts = [f"IPv{self.ver}", f"len={self.length}", f"protocol={self.proto}"]
        if self.ttl < 10:
            parts.append(f"ttl={self.ttl}")
        parts.append(f"src={ipaddress.IPv4Address(self.src)}")
        parts.append(f"dst={ipaddress.IPv4Address(self.dst)}")
        return ", ".join(parts)


@dataclass
class InternetDatagram:
    """An IPv4 header followed by its payload."""

    header: IPv4Header = field(default_factory=IPv4Header)
    payload: bytes = b""

    def serialize(self) -> bytes:
        return self.header.serialize() + bytes(self.payload)

    @classmethod
    def parse(cls, data: bytes) -> InternetDatagram:
        data = bytes(data)
        header = IPv4Header.parse(data)
        header_length = header.hlen * 4
        if header.length < header_length:
            raise ParseError("IPv4 total length shorter than its header")
        if header.length > len(data):
            raise ParseError("IPv4 datagram truncated")
        return cls(header=header, payload=data[header_length : header.length])