# loadshear

Building blocks for a load generator that targets TCP and UDP endpoints.
The package has four modules:

- `loadshear.payloads` builds packets from templates. It can insert
  counters and timestamps into them.
- `loadshear.metrics` holds per-shard counters and latency histograms, and
  adds them up across shards.
- `loadshear.handlers` defines the interface for parsing response headers
  and bodies, and includes a handler that does nothing.
- `loadshear.resolver` finds files named in scripts and reads them.

## Installation

```
pip install loadshear
```

## Payloads

A `PayloadDescriptor` holds the raw packet bytes (`packet_data`) and a list
of `PacketOperation`s (`ops`). The operations are applied in order, and each
one covers the next `length` bytes of the packet:

- `PacketOperation.identity(length)` copies those bytes unchanged.
- `PacketOperation.counter(length, little_endian)` writes the current value
  of a per-payload counter. The counter then moves forward by its step.
- `PacketOperation.timestamp(length, little_endian, time_format)` writes the
  current wall-clock time. The unit is set by `TimestampFormat`: `SECONDS`,
  `MILLISECONDS`, `MICROSECONDS` or `NANOSECONDS`.

A `PayloadManager` takes the list of descriptors. It also takes one list of
counter steps per descriptor, with one step for each counter operation, in
order. If you give fewer step lists than descriptors, the manager logs a
warning and treats the missing lists as empty.

`fill_payload(index, payload)` clears the `PreparedPayload` and fills it again.
It also returns it:

- `packet_slices` holds the pieces to send in order: views into the static
  packet and the encoded counter and timestamp bytes.
- `temps` holds the inserted bytes.
- `bytes(payload)` joins all the slices.
- `len(payload)` is the total number of bytes.

`fill_payload` raises `IndexError` in two cases: when there is no payload at
`index`, and when a counter operation has no step configured for it.

```python
from loadshear.payloads import (
    PacketOperation, PayloadDescriptor, PayloadManager, PreparedPayload,
    TimestampFormat,
)

descriptor = PayloadDescriptor(
    packet_data=bytes(16),
    ops=[
        PacketOperation.counter(8, little_endian=True),
        PacketOperation.timestamp(8, little_endian=False,
                                  time_format=TimestampFormat.MILLISECONDS),
    ],
)

manager = PayloadManager([descriptor], [[1]])

prepared = manager.fill_payload(0, PreparedPayload())
wire = bytes(prepared)   # counter 0, then the time in ms, big-endian
```

Counters are `PayloadCounter` objects. They wrap at 64 bits, and their steps
must be between 0 and 65535. `fetch_add()` is thread-safe and returns the
value from before the step.

`write_numeric(value, length, little_endian)` encodes the low `length` bytes
of a 64-bit value.

## Metrics

`ShardMetrics` records events for one shard:

- bytes sent and bytes read;
- connection attempts, failures and successes;
- connection, send and read latencies, given in microseconds.

Latencies go into 16 histogram buckets, which `latency_bucket(latency_us)`
computes:

- bucket 0 holds anything under 64µs;
- each later bucket doubles the bound;
- bucket 15 holds everything above.

A negative latency raises `ValueError`.

`fetch_snapshot()` returns a copy of the counters as a `MetricsSnapshot`.
Snapshots can be added with `+` and `+=`. `MetricsDelta.between(current,
previous)` gives the signed change between two snapshots, field by field.

`OrchestratorMetrics.shard_metric_history` holds one list of snapshots per
shard. `get_aggregate_delta()` sums the latest snapshot of every shard, and
separately the one before it. It returns a `MetricsAggregate` with those sums
and their difference.

```python
from loadshear.metrics import OrchestratorMetrics, ShardMetrics

shard = ShardMetrics()
shard.record_connection_attempt()
shard.record_connection_success()
shard.record_send_latency(300)
shard.record_bytes_sent(1024)

orchestrator = OrchestratorMetrics()
orchestrator.shard_metric_history.append([shard.fetch_snapshot()])
aggregate = orchestrator.get_aggregate_delta()
print(aggregate.current_snapshot_aggregate.bytes_sent)   # 1024
```

## Message handlers

`MessageHandler` is an abstract base class with two methods:

- `parse_header(buffer)` returns a `HeaderResult`, holding `length` and a
  `HeaderStatus` of `OK`, `ERROR` or `TIMEOUT`;
- `parse_message(header, body, callback)` passes a `ResponsePacket` to the
  callback.

`NOPMessageHandler` always reports a body length of 0 with status `OK`, and
always answers with an empty `ResponsePacket`.

## Resolving and reading files

- `expand_tilde(path)` replaces a leading `~/` with `$HOME`.
- `expand_env_variables(path)` replaces each `$NAME` that is followed by `/`
  with the value of that variable. An unset variable becomes nothing. A
  trailing `$NAME` that no `/` closes is dropped.
- `resolve_file(raw)` always expands `~/`. It expands variables only after
  `set_global_resolve_options(ResolverOptions(expand_envs=True))` has been
  called. It then returns the canonical path of the file, which must exist.
- `get_file_size(path)` returns the size of a regular file, and 0 for
  anything else.
- `read_binary_file(path)` returns the whole contents of a file. An empty
  file counts as an error.
- `read_bytes_to_contiguous(path, buffer)` fills a writable buffer from the
  start of the file.

When something goes wrong, these functions raise `ResolveError`.

```python
from loadshear.resolver import (
    ResolverOptions, read_binary_file, resolve_file, set_global_resolve_options,
)

set_global_resolve_options(ResolverOptions(expand_envs=True))
path = resolve_file("$HOME/packets/test-packet.bin")
data = read_binary_file(path)
```

## What the package does not do

The package does not do any networking. It has:

- no TCP or UDP sessions or session pools;
- no shards or orchestrator that schedule create, connect, send, flood,
  drain and disconnect actions;
- no interpreter for load scripts;
- no handler that runs user-supplied WebAssembly;
- no command-line program.

Those parts are left to the caller, who can build them on the pieces above.

## Running the tests

```
pip install -e ".[test]"
pytest
```