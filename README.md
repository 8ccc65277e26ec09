# echolab

A collection of small, self-contained networking programs built on the
Python standard library alone: TCP echo servers in several concurrency
styles, an echo client, a TLS echo server, a name resolver, and a few
concurrency helpers (a strand that runs tasks one at a time, a repeating
timer and a thread-pool query helper). It also provides identifier
generators: Snowflake-style 64-bit IDs, random UUID v4 strings, simple
numeric UIDs and session IDs.

## Installation

```
pip install .
```

To run the test suite:

```
pip install ".[test]"
pytest
```

## Commands

Each command below is installed with the package. All of them log to
standard error through the `logging` module at INFO level.

| Command | What it does |
| --- | --- |
| `echolab-echo-server` | Asyncio echo server (`--host`, default `0.0.0.0`; `--port`, default 9527). Each connection is echoed until the peer closes it; with `--once`, a single read is echoed and the connection is closed. |
| `echolab-echo-client` | Connects to `--host`/`--port` (default 127.0.0.1:9527) and echoes back whatever the server sends until it disconnects. With `--message TEXT` it sends the text once and prints the reply. |
| `echolab-ssl-server` | TLS echo server (`--port`, default 4433) that echoes one read per connection. Certificate chain and key come from `--cert` and `--key` (default `resources/servercert.pem` and `resources/serverkey.pem`). |
| `echolab-master-worker` | Master/worker echo server (`--port`, default 9986; `--workers`, default twice the CPU count). The master thread accepts connections and deals them round-robin to worker threads, each with its own event loop. |
| `echolab-per-client-server` | Blocking echo server (`--port`, default 9996) that starts one thread per client. |
| `echolab-pool-server` | Blocking echo server (`--port`, default 9996) whose sessions run on a thread pool of `--pool-size` threads. |
| `echolab-resolve` | Resolves `HOST SERVICE` (default `test.pp.com 9527`), logs every TCP endpoint found, then connects to the first one and closes again. |
| `echolab-tasks` | Runs one demonstration: `pool`, `strand`, `timer`, `query` or `concurrency`. |
| `echolab-coroutine` | Steps through a small traced coroutine and prints its value after each step. |

Start a server in one terminal:

```
echolab-echo-server
```

and talk to it from another:

```
echolab-echo-client --message "Hello from basic client!"
```

## Using the library

### Echo server and client (`echolab.echo`)

```python
import asyncio
from echolab.echo import EchoServer, echo_once

async def demo():
    async with EchoServer("127.0.0.1", 0) as server:
        reply = await echo_once("127.0.0.1", server.port, "Hello from basic client!")
        print(reply)  # b'Hello from basic client!'

asyncio.run(demo())
```

`EchoServer(host, port, once)` has `start()` and `close()` coroutines and
a `port` property giving the bound port once started. `echo_session(reader,
writer)` is the per-connection echo loop, and `run_echo_client(host, port)`
connects and runs that loop on the client side.

### TLS echo server (`echolab.ssl_server`)

`make_server_context(certfile, keyfile)` builds a server-side
`ssl.SSLContext` that accepts TLS 1.2 or newer only. Pass it to
`SslEchoServer(host, port, ssl_context)`, then `await start()`;
`await close()` shuts it down. The `port` property reports the bound port.
Each connection has one read echoed back and is then closed.

### Threaded servers

`echolab.master_worker.MasterWorkerTcpServer(host, port, worker_count)`,
`echolab.threaded_servers.ThreadPerClientServer(host, port)` and
`echolab.threaded_servers.ThreadPoolServer(host, port, pool_size)` are
blocking servers that bind in their constructor. Call `run()` (master/worker)
or `serve_forever()` from a thread of your choice, and `stop()` or
`shutdown()` to end it; all three work as context managers. The `address`
property reports the bound `(host, port)`, which is handy when binding to
port 0. A `worker_count` or `pool_size` of 0 or less means twice the CPU
count, or 4 when that cannot be determined (`default_worker_count()`).

`ThreadPoolServer` holds a pool thread for as long as a client stays
connected, so `pool_size` bounds how many clients are served at once; it
stops accepting at the first accept error, while the other two log the
error and keep accepting.

### Name resolution (`echolab.resolver`)

- `await resolve(host, service)` returns the distinct `(address, port)`
  TCP endpoints.
- `await connect_to_server(host, service)` connects to the first of them,
  closes the connection and returns that endpoint; it raises `OSError` when
  nothing resolves or the connection fails.

### Concurrency helpers (`echolab.tasks`)

- `Strand(executor=None)`: `post(fn)` queues a callable; callables posted to
  the same strand never run at the same time and run in the order they were
  posted. With an executor they run on its threads; without one, `drain()`
  runs them in the calling thread. `drain()` waits until all have finished
  and re-raises the first exception a handler raised.
- `run_strand_demo(task_count=50, workers=None)` increments a shared counter
  from tasks on a strand over a thread pool and returns
  `(task index, counter)` pairs in execution order.
- `await trigger_timer_times(interval_ms, count, on_fire=None)` fires every
  `interval_ms` milliseconds, calling `on_fire(n)` each time, until it has
  fired `count` times (always at least once); it returns the number of
  firings and raises `ValueError` for negative arguments.
- `await async_query_value(pool, key)` computes `"value for " + key` on the
  executor and resumes on the calling event loop.
- `run_thread_pool_demo(workers=None)` runs two tasks on a pool and returns
  their messages in submission order.
- `default_thread_count()` is twice the CPU count, or 4.

### Coroutine stepping (`echolab.coroutine`)

`CoroRet(factory, trace)` drives a generator one step per `move_next()`,
which returns `True` once the body has returned. `get()` gives the latest
yielded or returned value (0 before any), and `done()` tells whether it has
finished. Yielding `SUSPEND` suspends without a value. `simple_coroutine()`
yields 42 and 100, then returns 200.

### Identifiers (`echolab.uid_generator`)

```python
from echolab.uid_generator import (
    generate_snowflake_id,
    generate_uuid_v4,
    generate_simple_uid,
    generate_session_id,
    uniqueness_info,
)

print(generate_uuid_v4())       # e.g. 3f2b8c1e-9a4d-4c6e-8b1f-0d2e4a6c8e10
print(generate_session_id())    # "sess_" followed by a hex Snowflake ID
for info in uniqueness_info():
    print(info.type, "-", info.recommended_use)
```

A Snowflake ID packs a 41-bit millisecond timestamp (counted from the epoch
1288834974657), a 10-bit machine ID and a 12-bit sequence number. A simple
UID packs 32 bits of microsecond time, a 16-bit thread ID and a 16-bit
counter. `thread_id_str()` returns the current thread's identifier as text.

## What it does not do

- There is no configuration file for logging; the commands use the
  standard `logging` module with a fixed INFO-level format.
- Servers never drop idle connections: a client stays connected until it
  closes or the server is stopped.
- There is no benchmarking or load-testing command.