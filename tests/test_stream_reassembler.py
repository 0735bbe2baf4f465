import random

import pytest

from spongetcp.stream_reassembler import StreamReassembler


def _read_all(reassembler):
    stream = reassembler.stream_out()
    return stream.read(stream.buffer_size())


def test_in_order_single_push():
    r = StreamReassembler(65000)
    r.push_substring(b"abcd", 0, False)
    assert r.stream_out().bytes_written() == len(b"abcd")
    assert _read_all(r) == b"abcd"
    assert r.empty()
    assert not r.stream_out().input_ended()


def test_in_order_sequence():
    r = StreamReassembler(65000)
    r.push_substring(b"abcd", 0, False)
    r.push_substring(b"efgh", 4, False)
    assert _read_all(r) == b"abcdefgh"


def test_out_of_order_is_held_until_gap_filled():
    r = StreamReassembler(65000)
    r.push_substring(b"cd", 2, False)
    assert r.stream_out().buffer_size() == 0
    assert r.unassembled_bytes() == len(b"cd")
    assert not r.empty()
    r.push_substring(b"ab", 0, False)
    assert _read_all(r) == b"abcd"
    assert r.unassembled_bytes() == 0
    assert r.empty()


def test_overlapping_pushes_counted_once():
    r = StreamReassembler(65000)
    r.push_substring(b"bc", 1, False)
    r.push_substring(b"cd", 2, False)
    assert r.unassembled_bytes() == len(b"bcd")
    r.push_substring(b"a", 0, False)
    assert _read_all(r) == b"abcd"
    assert r.empty()


def test_fill_holes_between_stored_chunks():
    r = StreamReassembler(65000)
    r.push_substring(b"b", 1, False)
    r.push_substring(b"d", 3, False)
    r.push_substring(b"abcde", 0, False)
    assert _read_all(r) == b"abcde"
    assert r.unassembled_bytes() == 0


def test_overlap_with_assembled_prefix():
    r = StreamReassembler(65000)
    r.push_substring(b"abc", 0, False)
    r.push_substring(b"bcdef", 1, False)
    assert _read_all(r) == b"abcdef"


def test_duplicate_of_assembled_data_is_ignored():
    r = StreamReassembler(65000)
    r.push_substring(b"ab", 0, False)
    r.push_substring(b"a", 0, False)
    assert r.stream_out().bytes_written() == len(b"ab")
    assert r.unassembled_bytes() == 0


def test_eof_with_data():
    r = StreamReassembler(65000)
    r.push_substring(b"abc", 0, True)
    assert r.stream_out().input_ended()
    assert _read_all(r) == b"abc"
    assert r.stream_out().eof()


def test_eof_arrives_before_data():
    r = StreamReassembler(65000)
    r.push_substring(b"", 3, True)
    assert not r.stream_out().input_ended()
    r.push_substring(b"abc", 0, False)
    assert r.stream_out().input_ended()
    assert _read_all(r) == b"abc"


def test_eof_segment_out_of_order():
    r = StreamReassembler(65000)
    r.push_substring(b"cd", 2, True)
    assert not r.stream_out().input_ended()
    r.push_substring(b"ab", 0, False)
    assert r.stream_out().input_ended()
    assert _read_all(r) == b"abcd"


def test_conflicting_eof_raises():
    r = StreamReassembler(65000)
    r.push_substring(b"abc", 0, True)
    with pytest.raises(ValueError):
        r.push_substring(b"ab", 0, True)


def test_negative_index_raises():
    r = StreamReassembler(10)
    with pytest.raises(ValueError):
        r.push_substring(b"a", -1, False)


def test_capacity_limits_written_bytes():
    r = StreamReassembler(2)
    r.push_substring(b"abc", 0, False)
    assert r.stream_out().peek_output(2) == b"ab"
    assert r.stream_out().bytes_written() == len(b"ab")
    r.push_substring(b"c", 2, False)
    assert r.stream_out().bytes_written() == len(b"ab")
    assert r.unassembled_bytes() == 0
    assert _read_all(r) == b"ab"
    r.push_substring(b"c", 2, False)
    assert _read_all(r) == b"c"


def test_new_data_evicts_furthest_stored_bytes():
    r = StreamReassembler(3)
    r.push_substring(b"xyz", 1, False)
    assert r.unassembled_bytes() == len(b"xyz")
    r.push_substring(b"a", 0, False)
    assert _read_all(r) == b"axy"
    assert r.unassembled_bytes() == 0


def test_memory_never_exceeds_capacity():
    rng = random.Random(1234)
    capacity = 16
    r = StreamReassembler(capacity)
    data = bytes(rng.randrange(256) for _ in range(200))
    for _ in range(300):
        start = rng.randrange(len(data))
        end = min(len(data), start + rng.randrange(1, 10))
        r.push_substring(data[start:end], start, False)
        assert r.unassembled_bytes() + r.stream_out().buffer_size() <= capacity
        if rng.random() < 0.3:
            stream = r.stream_out()
            stream.pop_output(stream.buffer_size())


def test_random_shuffled_pieces_reassemble():
    rng = random.Random(42)
    data = bytes(rng.randrange(256) for _ in range(1000))
    pieces = []
    pos = 0
    while pos < len(data):
        size = rng.randrange(1, 30)
        start = max(0, pos - rng.randrange(0, 5))
        end = min(len(data), pos + size)
        pieces.append((start, end))
        pos = end
    rng.shuffle(pieces)
    r = StreamReassembler(len(data))
    for start, end in pieces:
        r.push_substring(data[start:end], start, end == len(data))
    assert r.empty()
    assert r.stream_out().input_ended()
    assert _read_all(r) == data
    assert r.stream_out().eof()