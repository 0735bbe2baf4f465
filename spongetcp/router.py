"""An IP router performing longest-prefix-match forwarding between interfaces."""

from __future__ import annotations

import ipaddress
import logging
from collections import deque
from dataclasses import dataclass

from .frames import EthernetFrame, InternetDatagram
from .network_interface import NetworkInterface

logger = logging.getLogger(__name__)

_ALL_ONES = 0xFFFFFFFF


class AsyncNetworkInterface(NetworkInterface):
    """A network interface that queues received datagrams instead of returning them.

    Datagrams carried by incoming frames are appended to ``datagrams_out``
    for later retrieval by the owner; otherwise it behaves exactly like
    :class:`NetworkInterface`.
    """

    def __init__(self, ethernet_address: bytes, ip_address) -> None:
        super().__init__(ethernet_address, ip_address)
        self.datagrams_out: deque[InternetDatagram] = deque()

    def recv_frame(self, frame: EthernetFrame) -> None:
        """Handle an incoming frame, queueing any datagram it carries."""
        dgram = super().recv_frame(frame)
        if dgram is not None:
            self.datagrams_out.append(dgram)


@dataclass(frozen=True)
class _Route:
    route_prefix: int
    prefix_length: int
    next_hop: ipaddress.IPv4Address | None
    interface_num: int

    def matches(self, address: int) -> bool:
        mask = (_ALL_ONES << (32 - self.prefix_length)) & _ALL_ONES
        return (address & mask) == self.route_prefix


class Router:
    """A router with several network interfaces and a table of forwarding rules."""

    def __init__(self) -> None:
        self._interfaces: list[AsyncNetworkInterface] = []
        self._routes: list[_Route] = []

    def add_interface(self, interface: AsyncNetworkInterface) -> int:
        """Add an interface and return its index."""
        self._interfaces.append(interface)
        return len(self._interfaces) - 1

    def interface(self, n: int) -> AsyncNetworkInterface:
        """The interface with index ``n``."""
        if not 0 <= n < len(self._interfaces):
            raise IndexError(f"no interface with index {n}")
        return self._interfaces[n]

    def add_route(
        self,
        route_prefix: int,
        prefix_length: int,
        next_hop,
        interface_num: int,
    ) -> None:
        """Add a forwarding rule.

        ``next_hop`` is ``None`` when the network is directly attached, in
        which case datagrams go straight to their final destination.
        """
        if not 0 <= prefix_length <= 32:
            raise ValueError(f"prefix length {prefix_length} is out of range")
        hop = None if next_hop is None else ipaddress.IPv4Address(next_hop)
        logger.debug(
            "adding route %s/%d => %s on interface %d",
            ipaddress.IPv4Address(route_prefix),
            prefix_length,
            hop if hop is not None else "(direct)",
            interface_num,
        )
        self._routes.append(_Route(int(route_prefix), prefix_length, hop, interface_num))

    def route(self) -> None:
        """Forward every datagram received on every interface."""
        for interface in self._interfaces:
            queue = interface.datagrams_out
            while queue:
                self._route_one_datagram(queue.popleft())

    def _route_one_datagram(self, dgram: InternetDatagram) -> None:
        header = dgram.header
        if header.ttl <= 1:
            return
        header.ttl -= 1

        best: _Route | None = None
        for route in self._routes:
            if route.matches(header.dst) and (
                best is None or route.prefix_length >= best.prefix_length
            ):
                best = route
        if best is None:
            return

        next_hop = best.next_hop if best.next_hop is not None else header.dst
        self.interface(best.interface_num).send_datagram(dgram, next_hop)