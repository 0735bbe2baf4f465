import ipaddress

import pytest

from spongetcp.frames import (
    ETHERNET_BROADCAST,
    ARPMessage,
    EthernetFrame,
    EthernetHeader,
    InternetDatagram,
    IPv4Header,
)
from spongetcp.router import AsyncNetworkInterface, Router

MAC_A = b"\x02\x00\x00\x00\x00\x01"
MAC_B = b"\x02\x00\x00\x00\x00\x02"
MAC_C = b"\x02\x00\x00\x00\x00\x03"
NEIGHBOR_MAC = b"\x02\x00\x00\x00\x00\x09"


def ip(text):
    return int(ipaddress.IPv4Address(text))


def make_dgram(dst, ttl=64, payload=b"hello"):
    header = IPv4Header(src=ip("10.0.0.2"), dst=ip(dst), ttl=ttl)
    header.length = header.hlen * 4 + len(payload)
    return InternetDatagram(header=header, payload=payload)


def make_router():
    router = Router()
    first = router.add_interface(AsyncNetworkInterface(MAC_A, "10.0.0.1"))
    second = router.add_interface(AsyncNetworkInterface(MAC_B, "172.16.0.1"))
    third = router.add_interface(AsyncNetworkInterface(MAC_C, "192.168.0.1"))
    return router, first, second, third


def arp_targets(interface):
    result = []
    for frame in interface.frames_out:
        assert frame.header.type == EthernetHeader.TYPE_ARP
        assert frame.header.dst == ETHERNET_BROADCAST
        result.append(ARPMessage.parse(frame.payload).target_ip_address)
    return result


def test_add_interface_returns_consecutive_indices():
    router, first, second, third = make_router()
    assert (first, second, third) == (0, 1, 2)
    assert router.interface(1).ip_address == ipaddress.IPv4Address("172.16.0.1")


def test_unknown_interface_raises():
    router, *_ = make_router()
    with pytest.raises(IndexError):
        router.interface(3)


def test_bad_prefix_length_raises():
    router, *_ = make_router()
    with pytest.raises(ValueError):
        router.add_route(0, 33, None, 0)


def test_async_interface_queues_datagrams():
    interface = AsyncNetworkInterface(MAC_A, "10.0.0.1")
    dgram = make_dgram("10.0.0.1")
    frame = EthernetFrame(
        EthernetHeader(dst=MAC_A, src=NEIGHBOR_MAC, type=EthernetHeader.TYPE_IPv4),
        dgram.serialize(),
    )
    assert interface.recv_frame(frame) is None
    assert list(interface.datagrams_out) == [dgram]


def test_direct_route_asks_for_destination():
    router, first, second, _ = make_router()
    router.add_route(ip("172.16.0.0"), 16, None, second)
    router.interface(first).datagrams_out.append(make_dgram("172.16.5.5"))
    router.route()
    assert arp_targets(router.interface(second)) == [ip("172.16.5.5")]
    assert not router.interface(first).datagrams_out


def test_route_with_next_hop_asks_for_next_hop():
    router, first, second, _ = make_router()
    router.add_route(0, 0, "172.16.0.7", second)
    router.interface(first).datagrams_out.append(make_dgram("8.8.4.4"))
    router.route()
    assert arp_targets(router.interface(second)) == [ip("172.16.0.7")]


def test_longest_prefix_wins():
    router, first, second, third = make_router()
    router.add_route(ip("10.0.0.0"), 8, None, second)
    router.add_route(ip("10.1.0.0"), 16, None, third)
    router.interface(first).datagrams_out.append(make_dgram("10.1.2.3"))
    router.route()
    assert not router.interface(second).frames_out
    assert arp_targets(router.interface(third)) == [ip("10.1.2.3")]


def test_later_route_of_equal_length_wins():
    router, first, second, third = make_router()
    router.add_route(ip("10.0.0.0"), 8, None, second)
    router.add_route(ip("10.0.0.0"), 8, None, third)
    router.interface(first).datagrams_out.append(make_dgram("10.9.9.9"))
    router.route()
    assert not router.interface(second).frames_out
    assert arp_targets(router.interface(third)) == [ip("10.9.9.9")]


@pytest.mark.parametrize("ttl", [0, 1])
def test_expiring_datagram_is_dropped(ttl):
    router, first, second, _ = make_router()
    router.add_route(0, 0, None, second)
    router.interface(first).datagrams_out.append(make_dgram("172.16.0.9", ttl=ttl))
    router.route()
    assert not router.interface(second).frames_out


def test_unmatched_datagram_is_dropped():
    router, first, second, _ = make_router()
    router.add_route(ip("172.16.0.0"), 16, None, second)
    router.interface(first).datagrams_out.append(make_dgram("8.8.8.8"))
    router.route()
    assert all(not router.interface(n).frames_out for n in range(3))


def test_forwarded_datagram_has_ttl_decremented():
    router, first, second, _ = make_router()
    router.add_route(ip("172.16.0.0"), 16, None, second)
    out = router.interface(second)
    reply = ARPMessage(
        opcode=ARPMessage.OPCODE_REPLY,
        sender_ethernet_address=NEIGHBOR_MAC,
        sender_ip_address=ip("172.16.0.9"),
        target_ethernet_address=MAC_B,
        target_ip_address=ip("172.16.0.1"),
    )
    out.recv_frame(
        EthernetFrame(
            EthernetHeader(dst=MAC_B, src=NEIGHBOR_MAC, type=EthernetHeader.TYPE_ARP),
            reply.serialize(),
        )
    )
    assert not out.frames_out

    sent_ttl = 20
    router.interface(first).datagrams_out.append(make_dgram("172.16.0.9", ttl=sent_ttl))
    router.route()

    assert len(out.frames_out) == 1
    frame = out.frames_out[0]
    assert frame.header.dst == NEIGHBOR_MAC
    assert frame.header.src == MAC_B
    assert frame.header.type == EthernetHeader.TYPE_IPv4
    forwarded = InternetDatagram.parse(frame.payload)
    assert forwarded.header.ttl == sent_ttl - 1
    assert forwarded.header.dst == ip("172.16.0.9")
    assert forwarded.payload == b"hello"