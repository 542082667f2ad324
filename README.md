# statelessdb

Building blocks for compute servers that keep no state of their own. The
client holds its state in encrypted form and sends it back with each request.
The server decrypts it, works on it, encrypts the result and returns it.

The package uses only the standard library.

## What is inside

| Module                  | Purpose                                                                                   |
|-------------------------|-------------------------------------------------------------------------------------------|
| `statelessdb.logs`      | Leveled, per-context loggers (`Logger`, `LogLevel`, `LogMessage`, `new_logger`, `stop_all`) |
| `statelessdb.helpers`   | Small utilities: `contains_zero`, `count_zero`, `millis_to_iso`, `compare_slices`, `compare_maps` |
| `statelessdb.pools`     | Reusable object pools, kept per size (`MemoryPool`, `MemoryPoolManager`)                  |
| `statelessdb.events`    | `Event`, the `EventBus` interface, the in-process `LocalEventBus` and the buffering `EventManager` |
| `statelessdb.states`    | `ComputeState`, the default state carried between requests, and `new_time_now()`          |
| `statelessdb.metrics`   | Counters and histograms (`Counter`, `CounterVec`, `Histogram`, `Registry`) and helpers to record them |
| `statelessdb.requests`  | `ComputeRequest`, `EncryptedRequestManager` and `RequestResponseManager`                   |
| `statelessdb.workers`   | A thread-backed `WorkerPool` with blocking and non-blocking publishing, and work stealing |

## Helpers

```python
from statelessdb.helpers import millis_to_iso, compare_maps, count_zero

millis_to_iso(0)                       # '1970-01-01T00:00:00Z'
compare_maps({"a": 1}, {"a": 1})       # True
count_zero([0, 1, 0, 2])               # 2
```

## Logging

`new_logger(context)` creates a `Logger`, starts it and registers it so that
`stop_all()` can stop it; `stop_all()` also runs at interpreter exit. By
default a logger queues info, warning and error messages and a background
thread writes them to standard error, while `debugf` messages are dropped.
A `Logger` built with `debug=True` writes every visible message at once,
debug messages included. A message is visible when its level is at or below
the logger's level (`with_level`) and the call depth it was logged from is at
or below the logger's depth (`with_depth`). A `sink` callable can take the
place of standard error.

## States

`ComputeState` holds an id, an owner, created and updated times in
milliseconds, and `public` and `private` dictionaries. Two states compare
equal when those fields match; the events attached with `add_event` take no
part in the comparison. `new_time_now()` returns the current Unix time in
milliseconds.

## Metrics

```python
from statelessdb.metrics import (
    linear_buckets,
    record_http_request_metric,
    record_failed_operation_metric,
)

linear_buckets(0, 10, 5)               # [0, 10, 20, 30, 40]
record_http_request_metric("/compute")
record_failed_operation_metric("encrypt")
```

The package keeps three built-in metrics: `http_requests_total` by path,
`compute_failed_operations_total` by operation, and the
`compute_failed_attempts` histogram. `must_register(*collectors)` registers
them, together with any collectors you add, in `DEFAULT_REGISTRY`. A
`Registry` raises `ValueError` when a name is registered twice.

## Request handling

An `EncryptedRequestManager` is built from an encryptor, a decryptor, a
function that makes a new state and a function that makes a new request. The
encryptor needs an `encrypt(state)` method returning a string; the decryptor
needs a `decrypt(data, state)` method that fills the given state.

`decode_request(body)` decodes a JSON request body into a request object,
such as `ComputeRequest`, whose `private` property holds the encrypted state.
`handle_with(handler)` turns the manager into a `RequestResponseManager`,
whose `process_bytes(body)` does the following:

1. It decodes the body. If the body is malformed, it raises `BadRequestBodyError`.
2. If the request's private field is not empty, it decrypts a new state from it. If that fails, it raises `DecryptStateError`. Otherwise the state is `None`.
3. It calls your handler with the request and the state, and takes the state it returns.
4. It encrypts that state. If that fails, it raises `EncryptStateError`.
5. It returns what the function given to `with_response` builds from the state and the encrypted string, or `None` if no such function was given.

All three errors derive from `RequestError`. `with_methods(...)` records which
HTTP methods the route accepts; `methods` lists them.

## Worker pools

A `WorkerPool(buffer_size, context=None)` runs a fixed number of worker
threads over a bounded job queue:

- `start(workers, func)` starts the workers. Starting a running pool raises `CannotStartPoolError`; starting a stopped pool again raises `WorkerFuncAlreadyInitializedError`.
- `publish(job)` blocks while the queue is full.
- `try_publish(job)` returns `False` at once when the queue is full.
- `try_steal_work()` lets the caller run one queued job itself and returns `False` when none is waiting.
- `stop()` closes the queue and waits for the workers to finish the jobs in it.

Publishing to, or stealing from, a pool that is not running raises
`PoolClosedError`. The optional `context` is a `threading.Event`; once it is
set, the workers stop without draining the queue and the pool shuts down.
`published_jobs`, `started_jobs` and `finished_jobs` count the jobs.

## Events

A `LocalEventBus` passes each `Event` to the `queue.Queue` channels
subscribed to its type. An `EventManager` sits on top of a bus. It keeps
recent events for each resource id, which `get_buffered_events(state_id,
since)` returns, and it puts the creation time of each new event on the
notification queues of local subscribers. A background thread discards
expired events periodically. Close the manager with `close()` or use it as a
context manager.

## What the package does not do

The package contains no encryption of its own: you supply the encryptor and
decryptor. It runs no HTTP server and exposes no metrics endpoint; the
request managers and metrics are meant to be called from a server you
provide. It has no command-line program.