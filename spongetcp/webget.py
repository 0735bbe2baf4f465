"""Fetch a path from a web server with a plain HTTP/1.1 request and print the reply."""

from __future__ import annotations

import socket
import sys
from typing import BinaryIO

_CHUNK = 65536


def get_url(host: str, path: str, out: BinaryIO | None = None) -> None:
    """Request ``path`` from the ``http`` service on ``host``; write everything sent back to ``out``."""
    out = sys.stdout.buffer if out is None else out
    family, type_, proto, _, address = socket.getaddrinfo(
        host, "http", socket.AF_INET, socket.SOCK_STREAM
    )[0]
    request = f"GET {path} HTTP/1.1\r\nHOST:{host} \r\nConnection: close\r\n\r\n"
    with socket.socket(family, type_, proto) as sock:
        sock.connect(address)
        sock.sendall(request.encode("latin-1"))
        while chunk := sock.recv(_CHUNK):
            out.write(chunk)
    out.flush()


def main(argv: list[str] | None = None) -> int:
    """Fetch ``HOST PATH`` given on the command line; return the exit status."""
    prog = sys.argv[0] if sys.argv and sys.argv[0] else "webget"
    args = sys.argv[1:] if argv is None else list(argv)
    if len(args) != 2:
        print(f"Usage: {prog} HOST PATH", file=sys.stderr)
        print(f"\tExample: {prog} stanford.edu /class/cs144", file=sys.stderr)
        return 1
    host, path = args
    try:
        get_url(host, path)
    except OSError as exc:
        print(exc, file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())