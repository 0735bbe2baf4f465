"""A simulated network of hosts joined by a router, checking that datagrams arrive."""

from __future__ import annotations

import argparse
import ipaddress
import logging
import random
import sys
from collections import deque

from .frames import (
    ARPMessage,
    EthernetFrame,
    EthernetHeader,
    InternetDatagram,
    IPv4Header,
    ParseError,
)
from .router import AsyncNetworkInterface, Router

logger = logging.getLogger(__name__)

_GREEN = "\033[32;1m"
_RED = "\033[31;1m"
_NORMAL = "\033[m"


def random_host_ethernet_address(rng: random.Random) -> bytes:
    """A random, locally administered, unicast Ethernet address."""
    addr = bytearray(rng.getrandbits(8) for _ in range(6))
    addr[0] |= 0x02
    addr[0] &= 0xFE
    return bytes(addr)


def random_router_ethernet_address(rng: random.Random) -> bytes:
    """A random Ethernet address beginning 02:00:00."""
    addr = bytearray(rng.getrandbits(8) for _ in range(6))
    addr[0] = 0x02
    addr[1] = 0
    addr[2] = 0
    return bytes(addr)


def _ip(text: str) -> int:
    return int(ipaddress.IPv4Address(text))


def _text(payload: bytes) -> str:
    return bytes(payload).decode("latin-1")


def summary(frame: EthernetFrame) -> str:
    """A one-line description of a frame and what it carries."""
    ret = str(frame.header)
    if frame.header.type == EthernetHeader.TYPE_IPv4:
        try:
            dgram = InternetDatagram.parse(frame.payload)
        except ParseError:
            ret += " (bad IPv4)"
        else:
            ret += f' {dgram.header.summary()} payload="{_text(dgram.payload)}"'
    elif frame.header.type == EthernetHeader.TYPE_ARP:
        try:
            arp = ARPMessage.parse(frame.payload)
        except ParseError:
            ret += " (bad ARP)"
        else:
            ret += f" {arp}"
    return ret


class Host:
    """A host with one interface that sends datagrams and checks what it receives."""

    def __init__(self, name: str, my_address, next_hop, rng: random.Random) -> None:
        self.name = name
        self.address = ipaddress.IPv4Address(my_address)
        self.next_hop = ipaddress.IPv4Address(next_hop)
        self._rng = rng
        self.interface = AsyncNetworkInterface(
            random_host_ethernet_address(rng), self.address
        )
        self._expecting: list[InternetDatagram] = []

    def send_to(self, destination, ttl: int = 64) -> InternetDatagram:
        """Send a datagram with a random payload to ``destination`` and return it."""
        header = IPv4Header(
            src=int(self.address), dst=int(ipaddress.IPv4Address(destination))
        )
        payload = f"random payload: {{{self._rng.getrandbits(32)}}}".encode()
        header.length = header.hlen * 4 + len(payload)
        header.ttl = ttl
        dgram = InternetDatagram(header=header, payload=payload)

        self.interface.send_datagram(dgram, self.next_hop)
        logger.info(
            'Host %s trying to send datagram (with next hop = %s): %s payload="%s"',
            self.name,
            self.next_hop,
            header.summary(),
            _text(payload),
        )
        return dgram

    def expect(self, expected: InternetDatagram) -> None:
        """Record that ``expected`` should arrive at this host."""
        self._expecting.append(expected)

    def check(self) -> None:
        """Consume received datagrams; raise if any was unexpected or one is missing."""
        received = self.interface.datagrams_out
        while received:
            dgram = received[0]
            wire = dgram.serialize()
            match = next(
                (n for n, x in enumerate(self._expecting) if x.serialize() == wire), None
            )
            if match is None:
                raise RuntimeError(
                    f"Host {self.name} received unexpected Internet datagram: "
                    f'{dgram.header.summary()} payload="{_text(dgram.payload)}"'
                )
            del self._expecting[match]
            received.popleft()

        if self._expecting:
            expected = self._expecting[0]
            raise RuntimeError(
                f"Host {self.name} did NOT receive an expected Internet datagram: "
                f'{expected.header.summary()} payload="{_text(expected.payload)}"'
            )


class Network:
    """A router joining several small networks and their hosts."""

    def __init__(self, rng: random.Random) -> None:
        self._router = Router()

        def router_interface(address: str) -> int:
            return self._router.add_interface(
                AsyncNetworkInterface(random_router_ethernet_address(rng), address)
            )

        self._default_id = router_interface("171.67.76.46")
        self._eth0_id = router_interface("10.0.0.1")
        self._eth1_id = router_interface("172.16.0.1")
        self._eth2_id = router_interface("192.168.0.1")
        self._uun3_id = router_interface("198.178.229.1")
        self._hs4_id = router_interface("143.195.0.2")
        self._mit5_id = router_interface("128.30.76.255")

        self._hosts: dict[str, Host] = {}
        for name, address, next_hop in (
            ("applesauce", "10.0.0.2", "10.0.0.1"),
            ("default_router", "171.67.76.1", "0.0.0.0"),
            ("cherrypie", "192.168.0.2", "192.168.0.1"),
            ("hs_router", "143.195.0.1", "0.0.0.0"),
            ("dm42", "198.178.229.42", "198.178.229.1"),
            ("dm43", "198.178.229.43", "198.178.229.1"),
        ):
            self._hosts[name] = Host(name, address, next_hop, rng)

        router = self._router
        hs_router = self.host("hs_router").address
        router.add_route(
            _ip("0.0.0.0"), 0, self.host("default_router").address, self._default_id
        )
        router.add_route(_ip("10.0.0.0"), 8, None, self._eth0_id)
        router.add_route(_ip("172.16.0.0"), 16, None, self._eth1_id)
        router.add_route(_ip("192.168.0.0"), 24, None, self._eth2_id)
        router.add_route(_ip("198.178.229.0"), 24, None, self._uun3_id)
        router.add_route(_ip("143.195.0.0"), 17, hs_router, self._hs4_id)
        router.add_route(_ip("143.195.128.0"), 18, hs_router, self._hs4_id)
        router.add_route(_ip("143.195.192.0"), 19, hs_router, self._hs4_id)
        router.add_route(_ip("128.30.76.255"), 16, "128.30.0.1", self._mit5_id)

    def host(self, name: str) -> Host:
        """The host called ``name``."""
        try:
            found = self._hosts[name]
        except KeyError:
            raise RuntimeError(f"unknown host: {name}") from None
        if found.name != name:
            raise RuntimeError(f"invalid host: {name}")
        return found

    def simulate_physical_connections(self) -> None:
        """Carry pending frames across each link once."""
        router = self._router
        self._exchange_frames(
            ("router.default", router.interface(self._default_id)),
            ("default_router", self.host("default_router").interface),
        )
        self._exchange_frames(
            ("router.eth0", router.interface(self._eth0_id)),
            ("applesauce", self.host("applesauce").interface),
        )
        self._exchange_frames(
            ("router.eth2", router.interface(self._eth2_id)),
            ("cherrypie", self.host("cherrypie").interface),
        )
        self._exchange_frames(
            ("router.hs4", router.interface(self._hs4_id)),
            ("hs_router", self.host("hs_router").interface),
        )
        self._exchange_frames(
            ("router.uun3", router.interface(self._uun3_id)),
            ("dm42", self.host("dm42").interface),
            ("dm43", self.host("dm43").interface),
        )

    def simulate(self) -> None:
        """Run the network for a while, then check every host got what it expected."""
        for _ in range(256):
            self._router.route()
            self.simulate_physical_connections()
        for host in self._hosts.values():
            host.check()

    def _exchange_frames(self, *ends: tuple[str, AsyncNetworkInterface]) -> None:
        snapshots = [list(interface.frames_out) for _, interface in ends]
        for (src_name, _), frames in zip(ends, snapshots):
            for dst_name, dst in ends:
                if dst_name != src_name:
                    self._deliver(src_name, frames, dst_name, dst)
        for (_, interface), frames in zip(ends, snapshots):
            queue: deque[EthernetFrame] = interface.frames_out
            for _ in frames:
                queue.popleft()

    @staticmethod
    def _deliver(
        src_name: str,
        frames: list[EthernetFrame],
        dst_name: str,
        dst: AsyncNetworkInterface,
    ) -> None:
        for frame in frames:
            logger.info(
                "Transferring frame from %s to %s: %s", src_name, dst_name, summary(frame)
            )
            dst.recv_frame(frame)


def _expect_forwarded(network: Network, sender: str, destination, receiver: str) -> None:
    dgram = network.host(sender).send_to(destination)
    dgram.header.ttl -= 1
    network.host(receiver).expect(dgram)
    network.simulate()


def network_simulator(rng: random.Random | None = None) -> None:
    """Build the network and check that traffic is routed correctly; raise on failure."""
    rng = rng if rng is not None else random.Random()

    def banner(text: str) -> None:
        print(f"{_GREEN}\n\n{text}{_NORMAL}\n")

    logger.info("Constructing network.")
    network = Network(rng)

    banner("Testing traffic between two ordinary hosts (applesauce to cherrypie)...")
    _expect_forwarded(
        network, "applesauce", network.host("cherrypie").address, "cherrypie"
    )

    banner("Testing traffic between two ordinary hosts (cherrypie to applesauce)...")
    _expect_forwarded(
        network, "cherrypie", network.host("applesauce").address, "applesauce"
    )

    banner("Success! Testing applesauce sending to the Internet.")
    _expect_forwarded(network, "applesauce", "1.2.3.4", "default_router")

    banner("Success! Testing sending to the HS network and Internet.")
    _expect_forwarded(network, "applesauce", "143.195.131.17", "hs_router")
    _expect_forwarded(network, "cherrypie", "143.195.193.52", "hs_router")
    _expect_forwarded(network, "cherrypie", "143.195.223.255", "hs_router")
    _expect_forwarded(network, "cherrypie", "143.195.224.0", "default_router")

    banner("Success! Testing two hosts on the same network (dm42 to dm43)...")
    _expect_forwarded(network, "dm42", network.host("dm43").address, "dm43")

    banner("Success! Testing TTL expiration...")
    network.host("applesauce").send_to("1.2.3.4", 1)
    network.simulate()
    network.host("applesauce").send_to("1.2.3.4", 0)
    network.simulate()

    print(f"\n\n{_GREEN}Congratulations! All datagrams were routed successfully.{_NORMAL}")


def main(argv: list[str] | None = None) -> int:
    """Run the network simulation; return the process exit status."""
    parser = argparse.ArgumentParser(
        description="Route traffic through a simulated network and check delivery."
    )
    parser.parse_args(argv)
    try:
        network_simulator()
    except Exception as exc:  # noqa: BLE001 - report any failure as the exit status
        print(f"\n\n\n{_RED}Error: {exc}{_NORMAL}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())