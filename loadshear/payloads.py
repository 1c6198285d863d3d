"""Payload descriptions and the per-send preparation of counters and timestamps."""

from __future__ import annotations

import enum
import logging
import threading
import time
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import ClassVar, Union

logger = logging.getLogger(__name__)

_U64_MASK = (1 << 64) - 1


class PacketOperationType(enum.IntEnum):
    """What an operation puts into its part of the packet."""

    IDENTITY = 0
    COUNTER = 1
    TIMESTAMP = 2


class TimestampFormat(enum.IntEnum):
    """Unit of a timestamp written into a packet."""

    SECONDS = 0
    MILLISECONDS = 1
    MICROSECONDS = 2
    NANOSECONDS = 3


_NS_PER_UNIT = {
    TimestampFormat.SECONDS: 1_000_000_000,
    TimestampFormat.MILLISECONDS: 1_000_000,
    TimestampFormat.MICROSECONDS: 1_000,
    TimestampFormat.NANOSECONDS: 1,
}


@dataclass(frozen=True)
class PacketOperation:
    """One consecutive region of a packet and how to fill it."""

    MAX_LENGTH: ClassVar[int] = 0xFFFFFFFF
    MAX_STEP_SIZE: ClassVar[int] = 0xFFFF
    MAX_COUNTER_LENGTH: ClassVar[int] = 8
    MAX_TIMESTAMP_LENGTH: ClassVar[int] = 8

    type: PacketOperationType
    length: int
    little_endian: bool = False
    time_format: TimestampFormat = TimestampFormat.SECONDS

    @classmethod
    def identity(cls, length: int) -> PacketOperation:
        """Copy ``length`` bytes of the packet unchanged."""
        return cls(PacketOperationType.IDENTITY, length)

    @classmethod
    def counter(cls, length: int, little_endian: bool) -> PacketOperation:
        """Replace ``length`` bytes with a per-payload counter."""
        return cls(PacketOperationType.COUNTER, length, little_endian)

    @classmethod
    def timestamp(
        cls, length: int, little_endian: bool, time_format: TimestampFormat
    ) -> PacketOperation:
        """Replace ``length`` bytes with the current time in ``time_format``."""
        return cls(PacketOperationType.TIMESTAMP, length, little_endian, time_format)


class PayloadCounter:
    """A 64-bit wrapping counter, safe to advance from several threads."""

    def __init__(self, step: int = 0, value: int = 0) -> None:
        if not 0 <= step <= PacketOperation.MAX_STEP_SIZE:
            raise ValueError(f"counter step out of range: {step}")
        self.step = step
        self._value = value & _U64_MASK
        self._lock = threading.Lock()

    @property
    def value(self) -> int:
        return self._value

    def fetch_add(self) -> int:
        """Advance by ``step`` and return the value from before."""
        with self._lock:
            old = self._value
            self._value = (old + self.step) & _U64_MASK
        return old


@dataclass
class PayloadDescriptor:
    """Raw packet bytes and the operations applied to them on every send."""

    packet_data: bytes
    ops: list[PacketOperation] = field(default_factory=list)


Slice = Union[bytes, memoryview]


@dataclass
class PreparedPayload:
    """A packet ready for scatter-gather sending: static slices and inserted bytes."""

    temps: bytearray = field(default_factory=bytearray)
    packet_slices: list[Slice] = field(default_factory=list)

    def clear(self) -> None:
        self.temps.clear()
        self.packet_slices.clear()

    def __bytes__(self) -> bytes:
        return b"".join(self.packet_slices)

    def __len__(self) -> int:
        return sum(len(piece) for piece in self.packet_slices)


def write_numeric(value: int, length: int, little_endian: bool) -> bytes:
    """Encode the low ``length`` bytes of a 64-bit value in the given byte order."""
    if length < 0:
        raise ValueError(f"length cannot be negative: {length}")
    value &= _U64_MASK
    if length < 8:
        value &= (1 << (8 * length)) - 1
    return value.to_bytes(length, "little" if little_endian else "big")


def _timestamp_now(time_format: TimestampFormat) -> int:
    return time.time_ns() // _NS_PER_UNIT[time_format]


class PayloadManager:
    """Builds the bytes of each payload, advancing counters as it goes."""

    def __init__(
        self,
        payloads: Sequence[PayloadDescriptor],
        steps: Sequence[Sequence[int]],
    ) -> None:
        self._payloads = list(payloads)
        step_lists = [list(s) for s in steps]
        if len(self._payloads) > len(step_lists):
            logger.warning("Not enough counter lists!")
            step_lists.extend([] for _ in range(len(self._payloads) - len(step_lists)))
        self._counters = [
            [PayloadCounter(step) for step in step_list]
            for step_list in step_lists[: len(self._payloads)]
        ]

    def __len__(self) -> int:
        return len(self._payloads)

    def fill_payload(self, index: int, payload: PreparedPayload) -> PreparedPayload:
        """Fill ``payload`` with payload ``index``; raise IndexError if there is none."""
        if not 0 <= index < len(self._payloads):
            raise IndexError(f"no payload with index {index}")

        descriptor = self._payloads[index]
        view = memoryview(descriptor.packet_data)
        counters = iter(self._counters[index])

        payload.clear()
        offset = 0
        for op in descriptor.ops:
            if op.type is PacketOperationType.IDENTITY:
                payload.packet_slices.append(view[offset : offset + op.length])
            else:
                if op.type is PacketOperationType.COUNTER:
                    counter = next(counters, None)
                    if counter is None:
                        raise IndexError(f"payload {index} has no counter left for {op}")
                    value = counter.fetch_add()
                else:
                    value = _timestamp_now(op.time_format)
                encoded = write_numeric(value, op.length, op.little_endian)
                payload.temps.extend(encoded)
                payload.packet_slices.append(encoded)
            offset += op.length
        return payload