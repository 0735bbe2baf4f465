"""Connect to, or accept one connection on, a TCP address and relay stdin/stdout over it."""

from __future__ import annotations

import socket
import sys

from .stream_copy import bidirectional_stream_copy

_LISTEN_BACKLOG = 16


def _usage(prog: str) -> str:
    return (
        f"Usage: {prog} [-l] <host> <port>\n\n"
        "  -l specifies listen mode; <host>:<port> is the listening address."
    )


def _resolve(host: str, port: str) -> tuple:
    infos = socket.getaddrinfo(host, port, socket.AF_INET, socket.SOCK_STREAM)
    return infos[0][4]


def open_socket(argv: list[str]) -> socket.socket:
    """Open the connected socket described by ``argv`` (arguments after the program name).

    ``[-l] <host> <port>``: in listen mode, bind to the address and accept
    exactly one connection; otherwise connect to it. Raises ValueError when
    the arguments are missing.
    """
    server_mode = bool(argv) and argv[0] == "-l"
    if len(argv) < 2 or (server_mode and len(argv) < 3):
        raise ValueError("required arguments are missing")

    if server_mode:
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as listener:
            listener.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
            listener.bind(_resolve(argv[1], argv[2]))
            listener.listen(_LISTEN_BACKLOG)
            conn, _ = listener.accept()
            return conn

    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    try:
        sock.connect(_resolve(argv[0], argv[1]))
    except BaseException:
        sock.close()
        raise
    return sock


def main(argv: list[str] | None = None) -> int:
    """Run the relay; return the process exit status."""
    prog = sys.argv[0] if sys.argv and sys.argv[0] else "tcp_native"
    args = sys.argv[1:] if argv is None else list(argv)
    try:
        sock = open_socket(args)
    except ValueError:
        print(_usage(prog), file=sys.stderr)
        return 1
    except OSError as exc:
        print(f"Exception: {exc}", file=sys.stderr)
        return 1
    try:
        with sock:
            bidirectional_stream_copy(sock)
    except OSError as exc:
        print(f"Exception: {exc}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())