import logging
import struct
import threading
import time

import pytest

from loadshear.payloads import (
    PacketOperation,
    PacketOperationType,
    PayloadCounter,
    PayloadDescriptor,
    PayloadManager,
    PreparedPayload,
    TimestampFormat,
    write_numeric,
)

PACKET = bytes(range(32))


def test_write_numeric_eight_bytes_matches_struct():
    assert write_numeric(0x0102030405060708, 8, True) == struct.pack("<Q", 0x0102030405060708)
    assert write_numeric(0x0102030405060708, 8, False) == struct.pack(">Q", 0x0102030405060708)


def test_write_numeric_four_bytes_truncates():
    value = 0x1122334455667788
    assert write_numeric(value, 4, True) == struct.pack("<I", value & 0xFFFFFFFF)
    assert write_numeric(value, 4, False) == struct.pack(">I", value & 0xFFFFFFFF)


@pytest.mark.parametrize("length", [1, 2, 3, 5, 6, 7])
@pytest.mark.parametrize("little_endian", [True, False])
def test_write_numeric_roundtrip_odd_lengths(length, little_endian):
    value = 0xDEADBEEFCAFEBABE
    encoded = write_numeric(value, length, little_endian)
    assert len(encoded) == length
    order = "little" if little_endian else "big"
    assert int.from_bytes(encoded, order) == value & ((1 << (8 * length)) - 1)


def test_write_numeric_zero_length_is_empty():
    assert write_numeric(12345, 0, True) == b""


def test_packet_operation_constructors():
    ident = PacketOperation.identity(11)
    assert ident.type is PacketOperationType.IDENTITY
    assert ident.length == 11
    counter = PacketOperation.counter(8, True)
    assert counter.type is PacketOperationType.COUNTER
    assert counter.little_endian is True
    stamp = PacketOperation.timestamp(8, False, TimestampFormat.MILLISECONDS)
    assert stamp.type is PacketOperationType.TIMESTAMP
    assert stamp.time_format is TimestampFormat.MILLISECONDS
    assert stamp.little_endian is False


def test_packet_operation_limits_are_usable():
    counter = PayloadCounter(step=PacketOperation.MAX_STEP_SIZE)
    assert counter.fetch_add() == 0
    assert counter.fetch_add() == 0xFFFF
    encoded = write_numeric(2**64 - 1, PacketOperation.MAX_COUNTER_LENGTH, True)
    assert encoded == b"\xff" * 8
    stamp = PacketOperation.timestamp(
        PacketOperation.MAX_TIMESTAMP_LENGTH, True, TimestampFormat.SECONDS
    )
    assert stamp.length == 8


def test_payload_counter_fetch_add_returns_previous():
    counter = PayloadCounter(step=7)
    assert counter.fetch_add() == 0
    assert counter.fetch_add() == 7
    assert counter.value == 14


def test_payload_counter_wraps_at_64_bits():
    counter = PayloadCounter(step=2, value=2**64 - 1)
    assert counter.fetch_add() == 2**64 - 1
    assert counter.fetch_add() == 1


def test_payload_counter_rejects_large_step():
    with pytest.raises(ValueError):
        PayloadCounter(step=PacketOperation.MAX_STEP_SIZE + 1)


def test_payload_counter_threads_get_unique_values():
    counter = PayloadCounter(step=3)
    seen = []
    lock = threading.Lock()

    def work():
        local = [counter.fetch_add() for _ in range(1000)]
        with lock:
            seen.extend(local)

    threads = [threading.Thread(target=work) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(set(seen)) == 4000
    assert counter.value == 3 * 4000


def test_prepared_payload_clear_and_bytes():
    payload = PreparedPayload()
    payload.temps.extend(b"ab")
    payload.packet_slices.extend([b"xy", b"ab"])
    assert bytes(payload) == b"xyab"
    payload.clear()
    assert bytes(payload) == b""
    assert len(payload.temps) == 0


def test_identity_payload_reproduces_packet():
    manager = PayloadManager(
        [PayloadDescriptor(PACKET, [PacketOperation.identity(len(PACKET))])], [[]]
    )
    payload = manager.fill_payload(0, PreparedPayload())
    assert bytes(payload) == PACKET
    assert len(payload.temps) == 0


@pytest.mark.parametrize("length", range(8))
def test_counter_replaces_tail_and_advances(length):
    little_endian = bool(length % 2)
    descriptor = PayloadDescriptor(
        PACKET,
        [
            PacketOperation.identity(len(PACKET) - length),
            PacketOperation.counter(length, little_endian),
        ],
    )
    manager = PayloadManager([descriptor], [[1]])
    order = "little" if little_endian else "big"
    payload = PreparedPayload()

    manager.fill_payload(0, payload)
    first = bytes(payload)
    assert len(first) == len(PACKET)
    assert first[: len(PACKET) - length] == PACKET[: len(PACKET) - length]
    assert int.from_bytes(first[len(PACKET) - length :], order) == 0

    manager.fill_payload(0, payload)
    second = bytes(payload)
    assert len(second) == len(PACKET)
    if length:
        assert int.from_bytes(second[len(PACKET) - length :], order) == 1


def test_counter_in_middle_keeps_surrounding_bytes():
    descriptor = PayloadDescriptor(
        PACKET,
        [
            PacketOperation.identity(4),
            PacketOperation.counter(8, False),
            PacketOperation.identity(len(PACKET) - 12),
        ],
    )
    manager = PayloadManager([descriptor], [[7]])
    payload = PreparedPayload()
    for expected in (0, 7, 14):
        data = bytes(manager.fill_payload(0, payload))
        assert data[:4] == PACKET[:4]
        assert data[12:] == PACKET[12:]
        assert int.from_bytes(data[4:12], "big") == expected


def test_timestamp_seconds_is_current_time():
    descriptor = PayloadDescriptor(
        PACKET[:11],
        [
            PacketOperation.timestamp(8, True, TimestampFormat.SECONDS),
            PacketOperation.identity(3),
        ],
    )
    manager = PayloadManager([descriptor], [[]])
    before = int(time.time())
    data = bytes(manager.fill_payload(0, PreparedPayload()))
    after = int(time.time())
    assert before <= int.from_bytes(data[:8], "little") <= after
    assert data[8:] == PACKET[8:11]


def test_timestamp_milliseconds_big_endian():
    descriptor = PayloadDescriptor(
        PACKET, [PacketOperation.timestamp(8, False, TimestampFormat.MILLISECONDS)]
    )
    manager = PayloadManager([descriptor], [[]])
    before = time.time_ns() // 1_000_000
    data = bytes(manager.fill_payload(0, PreparedPayload()))
    after = time.time_ns() // 1_000_000
    assert before <= int.from_bytes(data, "big") <= after


def test_fill_payload_unknown_index_raises():
    manager = PayloadManager(
        [PayloadDescriptor(PACKET, [PacketOperation.identity(len(PACKET))])], [[]]
    )
    with pytest.raises(IndexError):
        manager.fill_payload(1, PreparedPayload())
    with pytest.raises(IndexError):
        manager.fill_payload(-1, PreparedPayload())


def test_payloads_have_independent_counters():
    ops = [PacketOperation.counter(8, True)]
    manager = PayloadManager(
        [PayloadDescriptor(PACKET[:8], ops), PayloadDescriptor(PACKET[:8], ops)],
        [[5], [5]],
    )
    payload = PreparedPayload()
    manager.fill_payload(0, payload)
    manager.fill_payload(0, payload)
    data = bytes(manager.fill_payload(1, payload))
    assert int.from_bytes(data, "little") == 0


def test_missing_step_lists_warn(caplog):
    descriptor = PayloadDescriptor(PACKET, [PacketOperation.identity(len(PACKET))])
    with caplog.at_level(logging.WARNING):
        manager = PayloadManager([descriptor, descriptor], [[]])
    assert "Not enough counter lists" in caplog.text
    assert bytes(manager.fill_payload(1, PreparedPayload())) == PACKET


def test_counter_without_step_raises():
    descriptor = PayloadDescriptor(PACKET[:8], [PacketOperation.counter(8, True)])
    manager = PayloadManager([descriptor], [[]])
    with pytest.raises(IndexError):
        manager.fill_payload(0, PreparedPayload())