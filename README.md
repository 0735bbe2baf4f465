# spongetcp

spongetcp is a small user-space networking toolkit in pure Python, with no
dependencies outside the standard library.

- `spongetcp.byte_stream.ByteStream` is an in-memory byte stream with a fixed
  capacity. Bytes are written at one end and read, in order, at the other.
- `spongetcp.stream_reassembler.StreamReassembler` takes substrings that
  arrive out of order or overlap and writes them into one in-order
  `ByteStream`. It never holds more than its capacity. When it is over, it
  discards the bytes that lie furthest along in the stream.
- `spongetcp.frames` holds the wire formats: `EthernetHeader`,
  `EthernetFrame`, `ARPMessage`, `IPv4Header` and `InternetDatagram`. Each has
  `serialize()` and a `parse()` classmethod. `parse()` raises `ParseError`
  when the bytes are malformed.
- `spongetcp.network_interface.NetworkInterface` wraps IPv4 datagrams in
  Ethernet frames and puts them on its `frames_out` queue.
  - It resolves next-hop hardware addresses with ARP and remembers each
    mapping for 30 seconds.
  - It sends at most one ARP request for an address every 5 seconds.
  - It answers ARP requests for its own IP address.
- `spongetcp.router` provides `AsyncNetworkInterface` and `Router`.
  - `AsyncNetworkInterface` queues the datagrams it receives on
    `datagrams_out`.
  - `Router` does longest-prefix-match forwarding between its interfaces.
    It drops a datagram whose TTL would reach zero and a datagram that no
    route matches.
- `spongetcp.stream_copy.bidirectional_stream_copy(sock, source, sink)`
  relays data both ways between a socket and two local files. These default to
  standard input and output.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Usage

### Byte streams

```python
from spongetcp.byte_stream import ByteStream

stream = ByteStream(15)
stream.write(b"cat")         # 3
stream.peek_output(3)        # b"cat"
stream.end_input()
stream.read(3)               # b"cat"
stream.eof()                 # True
```

`write` accepts only as many bytes as fit and returns that count. Writing
after `end_input()` raises `ValueError`. So does peeking or popping more bytes
than are buffered.

### Reassembling out-of-order data

```python
from spongetcp.stream_reassembler import StreamReassembler

reassembler = StreamReassembler(65000)
reassembler.push_substring(b"efgh", 4, True)   # last piece of the stream
reassembler.unassembled_bytes()                # 4
reassembler.push_substring(b"abcd", 0, False)
reassembler.stream_out().read(8)               # b"abcdefgh"
reassembler.stream_out().eof()                 # True
```

### Interfaces and routing

```python
from spongetcp.frames import InternetDatagram, IPv4Header
from spongetcp.router import AsyncNetworkInterface, Router

router = Router()
eth0 = router.add_interface(
    AsyncNetworkInterface(b"\x02\x00\x00\x00\x00\x01", "10.0.0.1")
)
router.add_route(0x0A000000, 8, None, eth0)   # 10.0.0.0/8, directly attached

header = IPv4Header(src=0x0A000002, dst=0x0A000003, length=20)
router.interface(eth0).send_datagram(InternetDatagram(header), "10.0.0.3")
frame = router.interface(eth0).frames_out.popleft()   # an ARP request, broadcast
```

Give `add_route` a next-hop address instead of `None` to send matching
datagrams through a gateway. Call `tick(ms)` on an interface to let time pass.
Call `router.route()` to forward everything the interfaces have received.

## Commands

- `spongetcp-network-simulator` builds a simulated network of six hosts around
  one router. It sends datagrams between the hosts and checks that each one
  arrives where it should. It also checks that datagrams whose TTL runs out
  are dropped. Progress banners go to standard output. Per-frame details are
  sent to the `logging` module. The command exits with status 1 and prints the
  error if any check fails.
- `spongetcp-tcp-native [-l] <host> <port>` relays standard input and output
  over one IPv4 TCP connection, made through the operating system's sockets.
  Without `-l` it connects to `<host>:<port>`. With `-l` it binds to
  `<host>:<port>` and accepts exactly one connection.
- `spongetcp-webget HOST PATH` sends an HTTP/1.1 `GET` for `PATH` to port 80 on
  `HOST`, with `Connection: close`. It writes the whole reply to standard
  output. The same thing is available as
  `spongetcp.webget.get_url(host, path, out)`.

## What it does not do

spongetcp has no TCP implementation of its own. It has no TCP sender,
receiver or connection state machine, and no TCP segment format.
`spongetcp-tcp-native` and `spongetcp-webget` use the operating system's TCP.
The package also cannot attach to TUN or TAP devices or capture live traffic.
The interfaces and router work only on frames that you hand to them, as the
network simulator does.