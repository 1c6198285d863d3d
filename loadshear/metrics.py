"""Per-shard traffic counters, latency histograms and their aggregation."""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from datetime import timedelta

NUM_BUCKETS = 16

# Latencies below 2**6 microseconds all land in the first bucket.
_MIN_BUCKET_BITS = 6
_LAST_BUCKET = NUM_BUCKETS - 1

_COUNTER_FIELDS = (
    "bytes_sent",
    "bytes_read",
    "connection_attempts",
    "failed_connections",
    "finished_connections",
    "connected_sessions",
)

_BUCKET_FIELDS = (
    "connection_latency_buckets",
    "send_latency_buckets",
    "read_latency_buckets",
)


def _empty_buckets() -> list[int]:
    return [0] * NUM_BUCKETS


def latency_bucket(latency_us: int) -> int:
    """Return the histogram bucket for a latency given in microseconds.

    Buckets are powers of two starting at 64us: bucket 0 holds anything
    below 64us, bucket 1 below 128us, and so on; bucket 15 holds the rest.
    """
    if latency_us < 0:
        raise ValueError(f"latency cannot be negative: {latency_us}")
    if latency_us < 1 << _MIN_BUCKET_BITS:
        return 0
    return min(latency_us.bit_length() - _MIN_BUCKET_BITS, _LAST_BUCKET)


@dataclass
class MetricsSnapshot:
    """Counters of one shard, or the sum over several shards, at one moment."""

    bytes_sent: int = 0
    bytes_read: int = 0
    connection_attempts: int = 0
    failed_connections: int = 0
    finished_connections: int = 0
    # Filled in by the shard, which alone knows its session pool.
    connected_sessions: int = 0
    connection_latency_buckets: list[int] = field(default_factory=_empty_buckets)
    send_latency_buckets: list[int] = field(default_factory=_empty_buckets)
    read_latency_buckets: list[int] = field(default_factory=_empty_buckets)

    def __iadd__(self, other: MetricsSnapshot) -> MetricsSnapshot:
        if not isinstance(other, MetricsSnapshot):
            return NotImplemented
        for name in _COUNTER_FIELDS:
            setattr(self, name, getattr(self, name) + getattr(other, name))
        for name in _BUCKET_FIELDS:
            setattr(
                self,
                name,
                [a + b for a, b in zip(getattr(self, name), getattr(other, name))],
            )
        return self

    def __add__(self, other: MetricsSnapshot) -> MetricsSnapshot:
        if not isinstance(other, MetricsSnapshot):
            return NotImplemented
        result = MetricsSnapshot()
        result += self
        result += other
        return result


@dataclass
class MetricsDelta:
    """Signed change between two snapshots."""

    bytes_sent: int = 0
    bytes_read: int = 0
    connection_attempts: int = 0
    failed_connections: int = 0
    finished_connections: int = 0
    # Usually negative while sessions wind down.
    connected_sessions: int = 0
    connection_latency_buckets: list[int] = field(default_factory=_empty_buckets)
    send_latency_buckets: list[int] = field(default_factory=_empty_buckets)
    read_latency_buckets: list[int] = field(default_factory=_empty_buckets)

    @classmethod
    def between(cls, current: MetricsSnapshot, previous: MetricsSnapshot) -> MetricsDelta:
        """Return ``current - previous`` field by field."""
        values: dict[str, object] = {
            name: getattr(current, name) - getattr(previous, name)
            for name in _COUNTER_FIELDS
        }
        for name in _BUCKET_FIELDS:
            values[name] = [
                a - b for a, b in zip(getattr(current, name), getattr(previous, name))
            ]
        return cls(**values)


@dataclass
class MetricsAggregate:
    """Newest snapshot summed over all shards, its change, and its time offset."""

    current_snapshot_aggregate: MetricsSnapshot = field(default_factory=MetricsSnapshot)
    change_aggregate: MetricsDelta = field(default_factory=MetricsDelta)
    offset: timedelta = field(default_factory=timedelta)


class ShardMetrics:
    """Counters recorded by a single shard."""

    def __init__(self) -> None:
        self._bytes_sent = 0
        self._bytes_read = 0
        self._connection_attempts = 0
        self._failed_connections = 0
        self._finished_connections = 0
        self._connection_latency_buckets = _empty_buckets()
        self._send_latency_buckets = _empty_buckets()
        self._read_latency_buckets = _empty_buckets()

    def record_connection_latency(self, latency_us: int) -> None:
        self._connection_latency_buckets[latency_bucket(latency_us)] += 1

    def record_send_latency(self, latency_us: int) -> None:
        self._send_latency_buckets[latency_bucket(latency_us)] += 1

    def record_read_latency(self, latency_us: int) -> None:
        self._read_latency_buckets[latency_bucket(latency_us)] += 1

    def record_bytes_sent(self, count: int) -> None:
        self._bytes_sent += count

    def record_bytes_read(self, count: int) -> None:
        self._bytes_read += count

    def record_connection_attempt(self) -> None:
        self._connection_attempts += 1

    def record_connection_fail(self) -> None:
        self._failed_connections += 1

    def record_connection_success(self) -> None:
        self._finished_connections += 1

    def fetch_snapshot(self) -> MetricsSnapshot:
        """Return a copy of the counters; ``connected_sessions`` is left at zero."""
        return MetricsSnapshot(
            bytes_sent=self._bytes_sent,
            bytes_read=self._bytes_read,
            connection_attempts=self._connection_attempts,
            failed_connections=self._failed_connections,
            finished_connections=self._finished_connections,
            connection_latency_buckets=list(self._connection_latency_buckets),
            send_latency_buckets=list(self._send_latency_buckets),
            read_latency_buckets=list(self._read_latency_buckets),
        )


@dataclass
class OrchestratorMetrics:
    """History of snapshots reported by each shard."""

    shard_metric_history: list[list[MetricsSnapshot]] = field(default_factory=list)

    def get_aggregate_delta(self) -> MetricsAggregate:
        """Sum the latest snapshot of every shard and its change from the one before."""
        current = MetricsSnapshot()
        previous = MetricsSnapshot()
        for history in self.shard_metric_history:
            if not history:
                continue
            current += history[-1]
            if len(history) >= 2:
                previous += history[-2]
        return MetricsAggregate(
            current_snapshot_aggregate=current,
            change_aggregate=MetricsDelta.between(current, previous),
        )