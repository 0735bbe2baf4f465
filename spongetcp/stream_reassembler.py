"""Reassembly of possibly out-of-order, overlapping substrings into an in-order stream."""

from __future__ import annotations

from .byte_stream import ByteStream


class StreamReassembler:
    """Assemble excerpts of a byte stream into an in-order :class:`ByteStream`.

    The capacity limits the bytes held in total: those reassembled but not
    yet read from the output stream, plus those stored but not yet
    reassembled. Bytes that would exceed it are discarded, starting with
    the ones furthest along in the stream.
    """

    def __init__(self, capacity: int) -> None:
        self._output = ByteStream(capacity)
        self._capacity = capacity
        self._pending: dict[int, bytes] = {}
        self._unassembled = 0
        self._next_index = 0
        self._eof_index: int | None = None

    def push_substring(self, data: bytes, index: int, eof: bool) -> None:
        """Accept ``data`` starting at stream position ``index``.

        Any bytes that become contiguous are written to the output stream.
        If ``eof`` is true, the last byte of ``data`` is the last byte of
        the whole stream.
        """
        if index < 0:
            raise ValueError("index must not be negative")
        data = bytes(data)
        end = index + len(data)

        if eof:
            if self._eof_index is None:
                self._eof_index = end
            elif self._eof_index != end:
                raise ValueError(
                    f"stream end already set at {self._eof_index}, not {end}"
                )
            self._check_eof()

        if not data or end <= self._next_index:
            return

        begin = max(index, self._next_index)
        self._insert(data[begin - index :], begin)
        self._reassemble()

    def stream_out(self) -> ByteStream:
        """The reassembled, in-order byte stream."""
        return self._output

    def unassembled_bytes(self) -> int:
        """Number of bytes stored but not yet reassembled, each counted once."""
        return self._unassembled

    def empty(self) -> bool:
        """Whether no substrings are waiting to be assembled."""
        return self._unassembled == 0

    # -- internals ----------------------------------------------------------

    def _remaining_memory(self) -> int:
        return self._capacity - (self._unassembled + self._output.buffer_size())

    def _gaps(self, start: int, end: int) -> list[tuple[int, int]]:
        """Sub-ranges of ``[start, end)`` not covered by stored chunks."""
        gaps = []
        cursor = start
        for key in sorted(self._pending):
            chunk_end = key + len(self._pending[key])
            if chunk_end <= start:
                continue
            if key >= end:
                break
            if key > cursor:
                gaps.append((cursor, key))
            cursor = max(cursor, chunk_end)
        if cursor < end:
            gaps.append((cursor, end))
        return gaps

    def _insert(self, data: bytes, start: int) -> None:
        end = start + len(data)
        inserted = 0
        for gap_start, gap_end in self._gaps(start, end):
            self._pending[gap_start] = data[gap_start - start : gap_end - start]
            inserted += gap_end - gap_start

        remaining = self._remaining_memory()
        if inserted > remaining:
            excess = inserted - remaining
            for key in sorted(self._pending, reverse=True):
                chunk = self._pending[key]
                if len(chunk) > excess:
                    self._pending[key] = chunk[: len(chunk) - excess]
                    inserted -= excess
                    break
                del self._pending[key]
                inserted -= len(chunk)
                excess -= len(chunk)
                if excess == 0:
                    break

        self._unassembled += inserted

    def _reassemble(self) -> None:
        self._check_eof()
        while self._next_index in self._pending:
            chunk = self._pending.pop(self._next_index)
            room = self._output.remaining_capacity()
            if len(chunk) <= room:
                self._output.write(chunk)
                self._unassembled -= len(chunk)
                self._next_index += len(chunk)
                self._check_eof()
                continue
            self._output.write(chunk[:room])
            self._pending[self._next_index + room] = chunk[room:]
            self._unassembled -= room
            self._next_index += room
            break

    def _check_eof(self) -> None:
        if self._eof_index is not None and self._next_index == self._eof_index:
            self._output.end_input()