"""A network interface joining IPv4 to Ethernet, resolving next hops with ARP."""

from __future__ import annotations

import ipaddress
import logging
from collections import deque
from dataclasses import dataclass

from .frames import (
    ETHERNET_BROADCAST,
    ARPMessage,
    EthernetFrame,
    EthernetHeader,
    InternetDatagram,
    ParseError,
    ethernet_to_string,
)

logger = logging.getLogger(__name__)

ARP_RETRY_MS = 5000
MAPPING_LIFETIME_MS = 30000


def _ip_numeric(address) -> int:
    return int(ipaddress.IPv4Address(address))


@dataclass
class _RememberedAddress:
    ethernet_address: bytes
    age: int = 0


class NetworkInterface:
    """Translate IPv4 datagrams to Ethernet frames and back.

    Frames to be sent are appended to ``frames_out``. Next-hop Ethernet
    addresses are learned through ARP and remembered for thirty seconds;
    a request for the same address is repeated at most every five seconds.
    """

    def __init__(self, ethernet_address: bytes, ip_address) -> None:
        self.ethernet_address = EthernetHeader(src=ethernet_address).src
        self.ip_address = ipaddress.IPv4Address(ip_address)
        self.frames_out: deque[EthernetFrame] = deque()
        self._waiting: dict[int, deque[bytes]] = {}
        self._known: dict[int, _RememberedAddress] = {}
        self._pending_since: dict[int, int] = {}
        logger.debug(
            "network interface has Ethernet address %s and IP address %s",
            ethernet_to_string(self.ethernet_address),
            self.ip_address,
        )

    def send_datagram(self, dgram: InternetDatagram, next_hop) -> None:
        """Send ``dgram`` to ``next_hop``, asking for its Ethernet address if unknown."""
        next_hop_ip = _ip_numeric(next_hop)
        payload = dgram.serialize()

        known = self._known.get(next_hop_ip)
        if known is not None:
            self._emit(known.ethernet_address, EthernetHeader.TYPE_IPv4, payload)
            return

        self._waiting.setdefault(next_hop_ip, deque()).append(payload)

        waited = self._pending_since.get(next_hop_ip)
        if waited is not None and waited <= ARP_RETRY_MS:
            return
        self._pending_since[next_hop_ip] = 0

        request = ARPMessage(
            opcode=ARPMessage.OPCODE_REQUEST,
            sender_ethernet_address=self.ethernet_address,
            sender_ip_address=int(self.ip_address),
            target_ip_address=next_hop_ip,
        )
        self._emit(ETHERNET_BROADCAST, EthernetHeader.TYPE_ARP, request.serialize())

    def recv_frame(self, frame: EthernetFrame) -> InternetDatagram | None:
        """Handle an incoming frame; return the datagram it carries, if any."""
        header = frame.header
        if header.dst not in (self.ethernet_address, ETHERNET_BROADCAST):
            return None

        if header.type == EthernetHeader.TYPE_IPv4:
            try:
                return InternetDatagram.parse(frame.payload)
            except ParseError:
                return None

        if header.type != EthernetHeader.TYPE_ARP:
            raise ValueError(f"unsupported EtherType 0x{header.type:04x}")

        try:
            message = ARPMessage.parse(frame.payload)
        except ParseError:
            return None

        sender_eth = message.sender_ethernet_address
        sender_ip = message.sender_ip_address
        self._known[sender_ip] = _RememberedAddress(sender_eth)

        if self._pending_since.pop(sender_ip, None) is not None:
            for payload in self._waiting.pop(sender_ip, ()):
                self._emit(sender_eth, EthernetHeader.TYPE_IPv4, payload)

        if (
            message.opcode == ARPMessage.OPCODE_REQUEST
            and message.target_ip_address == int(self.ip_address)
        ):
            reply = ARPMessage(
                opcode=ARPMessage.OPCODE_REPLY,
                sender_ethernet_address=self.ethernet_address,
                sender_ip_address=int(self.ip_address),
                target_ethernet_address=sender_eth,
                target_ip_address=sender_ip,
            )
            self._emit(sender_eth, EthernetHeader.TYPE_ARP, reply.serialize())
        return None

    def tick(self, ms_since_last_tick: int) -> None:
        """Let time pass: age pending requests and forget stale mappings."""
        for ip in self._pending_since:
            self._pending_since[ip] += ms_since_last_tick
        for ip, remembered in list(self._known.items()):
            remembered.age += ms_since_last_tick
            if remembered.age > MAPPING_LIFETIME_MS:
                del self._known[ip]

    def _emit(self, dst: bytes, ethertype: int, payload: bytes) -> None:
        header = EthernetHeader(dst=dst, src=self.ethernet_address, type=ethertype)
        self.frames_out.append(EthernetFrame(header, payload))