"""Copy data both ways between a socket and a pair of local file descriptors."""

from __future__ import annotations

import os
import selectors
import socket
import sys
from dataclasses import dataclass
from typing import BinaryIO, Callable

from .byte_stream import ByteStream

MAX_COPY_LENGTH = 65536
BUFFER_SIZE = 1048576

_Selector = getattr(selectors, "PollSelector", selectors.SelectSelector)


@dataclass
class _Rule:
    """A callback run when ``fd`` is ready for ``events`` and ``interest`` holds.

    The callback returns True once the rule has nothing more to do.
    """

    fd: int
    events: int
    callback: Callable[[], bool]
    interest: Callable[[], bool]
    cancel: Callable[[], None]
    active: bool = True


class _Copier:
    def __init__(self, sock: socket.socket, source: BinaryIO, sink: BinaryIO) -> None:
        self._sock = sock
        self._source_fd = source.fileno()
        self._sink = sink
        self._sink_fd = sink.fileno()
        self._outbound = ByteStream(BUFFER_SIZE)
        self._inbound = ByteStream(BUFFER_SIZE)
        self._outbound_shutdown = False
        self._inbound_shutdown = False

        sock.setblocking(False)
        os.set_blocking(self._source_fd, False)
        os.set_blocking(self._sink_fd, False)

        sock_fd = sock.fileno()
        self._rules = [
            _Rule(
                self._source_fd,
                selectors.EVENT_READ,
                self._read_source,
                self._want_source,
                self._outbound.end_input,
            ),
            _Rule(
                sock_fd,
                selectors.EVENT_WRITE,
                self._write_socket,
                self._want_socket_write,
                self._outbound.end_input,
            ),
            _Rule(
                sock_fd,
                selectors.EVENT_READ,
                self._read_socket,
                self._want_socket_read,
                self._inbound.end_input,
            ),
            _Rule(
                self._sink_fd,
                selectors.EVENT_WRITE,
                self._write_sink,
                self._want_sink,
                self._inbound.end_input,
            ),
        ]

    # -- rule 1: local input into the outbound stream -------------------------

    def _want_source(self) -> bool:
        return (
            not self._outbound.error()
            and self._outbound.remaining_capacity() > 0
            and not self._inbound.error()
        )

    def _read_source(self) -> bool:
        try:
            data = os.read(self._source_fd, self._outbound.remaining_capacity())
        except BlockingIOError:
            return False
        if not data:
            self._outbound.end_input()
            return True
        self._outbound.write(data)
        return False

    # -- rule 2: outbound stream into the socket ------------------------------

    def _want_socket_write(self) -> bool:
        return not self._outbound.buffer_empty() or (
            self._outbound.eof() and not self._outbound_shutdown
        )

    def _write_socket(self) -> bool:
        chunk = self._outbound.peek_output(
            min(MAX_COPY_LENGTH, self._outbound.buffer_size())
        )
        if chunk:
            try:
                sent = self._sock.send(chunk)
            except BlockingIOError:
                sent = 0
            self._outbound.pop_output(sent)
        if self._outbound.eof():
            self._sock.shutdown(socket.SHUT_WR)
            self._outbound_shutdown = True
            return True
        return False

    # -- rule 3: socket into the inbound stream -------------------------------

    def _want_socket_read(self) -> bool:
        return (
            not self._inbound.error()
            and self._inbound.remaining_capacity() > 0
            and not self._outbound.error()
        )

    def _read_socket(self) -> bool:
        try:
            data = self._sock.recv(self._inbound.remaining_capacity())
        except BlockingIOError:
            return False
        if not data:
            self._inbound.end_input()
            return True
        self._inbound.write(data)
        return False

    # -- rule 4: inbound stream into local output -----------------------------

    def _want_sink(self) -> bool:
        return not self._inbound.buffer_empty() or (
            self._inbound.eof() and not self._inbound_shutdown
        )

    def _write_sink(self) -> bool:
        chunk = self._inbound.peek_output(
            min(MAX_COPY_LENGTH, self._inbound.buffer_size())
        )
        if chunk:
            try:
                written = os.write(self._sink_fd, chunk)
            except BlockingIOError:
                written = 0
            self._inbound.pop_output(written)
        if self._inbound.eof():
            self._sink.close()
            self._inbound_shutdown = True
            return True
        return False

    # -- event loop ---------------------------------------------------------

    def run(self) -> None:
        while True:
            wanted = [rule for rule in self._rules if rule.active and rule.interest()]
            if not wanted:
                return
            masks: dict[int, int] = {}
            for rule in wanted:
                masks[rule.fd] = masks.get(rule.fd, 0) | rule.events
            with _Selector() as selector:
                for fd, mask in masks.items():
                    selector.register(fd, mask)
                ready = {key.fd: mask for key, mask in selector.select()}
            for rule in wanted:
                if not (ready.get(rule.fd, 0) & rule.events):
                    continue
                if not (rule.active and rule.interest()):
                    continue
                try:
                    if rule.callback():
                        rule.active = False
                except BlockingIOError:
                    continue
                except OSError:
                    rule.active = False
                    rule.cancel()


def bidirectional_stream_copy(
    sock: socket.socket,
    source: BinaryIO | None = None,
    sink: BinaryIO | None = None,
) -> None:
    """Copy ``source`` into ``sock`` and ``sock`` into ``sink`` until both directions end.

    ``source`` and ``sink`` default to standard input and standard output.
    When the local input ends, the socket is shut down for writing; when the
    peer's data ends, ``sink`` is closed.
    """
    source = sys.stdin.buffer if source is None else source
    sink = sys.stdout.buffer if sink is None else sink
    _Copier(sock, source, sink).run()