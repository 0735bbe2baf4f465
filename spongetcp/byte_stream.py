"""A flow-controlled, in-memory, in-order byte stream."""

from __future__ import annotations


class ByteStream:
    """A finite byte stream with a fixed capacity.

    Bytes are written on the input side and read from the output side.
    The writer can end the input, after which no more bytes may be written.
    """

    def __init__(self, capacity: int) -> None:
        if capacity < 0:
            raise ValueError("capacity must not be negative")
        self._capacity = capacity
        self._buffer = bytearray()
        self._bytes_written = 0
        self._bytes_read = 0
        self._input_ended = False
        self._error = False

    # -- input side ---------------------------------------------------------

    def write(self, data: bytes) -> int:
        """Write as many bytes of ``data`` as fit; return how many were accepted."""
        if self._input_ended:
            raise ValueError("cannot write to a stream whose input has ended")
        count = min(len(data), self.remaining_capacity())
        self._buffer += data[:count]
        self._bytes_written += count
        return count

    def remaining_capacity(self) -> int:
        """Number of additional bytes the stream has room for."""
        return self._capacity - len(self._buffer)

    def end_input(self) -> None:
        """Signal that the writer has reached the end of the stream."""
        self._input_ended = True

    def set_error(self) -> None:
        """Mark the stream as having suffered an error."""
        self._error = True

    # -- output side --------------------------------------------------------

    def peek_output(self, length: int) -> bytes:
        """Return the next ``length`` bytes without removing them."""
        self._check_available(length)
        return bytes(self._buffer[:length])

    def pop_output(self, length: int) -> None:
        """Remove ``length`` bytes from the front of the buffer."""
        self._check_available(length)
        del self._buffer[:length]
        self._bytes_read += length

    def read(self, length: int) -> bytes:
        """Remove and return the next ``length`` bytes; empty once at end of stream."""
        if self.eof():
            return b""
        result = self.peek_output(length)
        self.pop_output(length)
        return result

    def input_ended(self) -> bool:
        """Whether the writer has ended the input."""
        return self._input_ended

    def error(self) -> bool:
        """Whether the stream has suffered an error."""
        return self._error

    def buffer_size(self) -> int:
        """Number of bytes currently available to read."""
        return len(self._buffer)

    def buffer_empty(self) -> bool:
        """Whether no bytes are waiting to be read."""
        return not self._buffer

    def eof(self) -> bool:
        """Whether the input has ended and every byte has been read."""
        return self._input_ended and not self._buffer

    # -- accounting ---------------------------------------------------------

    def bytes_written(self) -> int:
        """Total number of bytes accepted by ``write``."""
        return self._bytes_written

    def bytes_read(self) -> int:
        """Total number of bytes removed from the output side."""
        return self._bytes_read

    def _check_available(self, length: int) -> None:
        if length < 0:
            raise ValueError("length must not be negative")
        if length > len(self._buffer):
            raise ValueError(
                f"requested {length} bytes but only {len(self._buffer)} are buffered"
            )