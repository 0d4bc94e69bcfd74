# flowgate

flowgate provides the pieces of a layer 4 load-balancing proxy for TCP and
UDP traffic, built on asyncio:

- `flowgate.domain` – the `Backend` model (address, weight, active
  connection counter) and the errors `NoBackendsError`,
  `ProxyStartedError` and `ProxyStoppedError`.
- `flowgate.balancer` – `RoundRobin` (smooth weighted round-robin) and
  `LeastConn` (fewest active connections, ties go to the higher weight,
  then to the first in the list).
- `flowgate.registry` – `InMemory`, a versioned backend list that can be
  swapped at runtime; `RoundRobin` resets its state when the version changes.
- `flowgate.backoff` – `Exponential`, a doubling delay capped at a maximum.
- `flowgate.limiter` – `Concurrency`, an async cap on concurrent work; a
  limit of 0 or less disables it.
- `flowgate.tcp.proxy` – `TcpProxy`, a TCP listener with an accept loop,
  backoff on transient accept errors, a concurrency limiter and graceful
  shutdown.
- `flowgate.tcp.ops` – `set_keepalive`, `close_write` and
  `is_benign_close` helpers for asyncio stream writers.
- `flowgate.udp.proxy` – `UdpProxy` and `UdpTimeouts`: a UDP relay that
  keeps one backend session per client address.
- `flowgate.udp.session` and `flowgate.udp.table` – `Session` and
  `Table`, the per-client session and the table that evicts idle sessions.
- `flowgate.config`, `flowgate.logger`, `flowgate.app` – configuration
  loading, logging setup and the `flowgate` command.

## Installation

```
pip install .
```

For running the test suite:

```
pip install ".[test]"
pytest
```

## Configuration and the command

`load_config(env_file)` loads the dotenv file if it exists, then reads the
YAML file named by the `CONFIG_PATH` environment variable:

```yaml
env: dev          # "prod" switches logging to JSON
log_level: info   # debug, info, warn or error; anything else means info
backends:
  - addr: 127.0.0.1:9001
    weight: 5
  - addr: 127.0.0.1:9002
    weight: 1
```

`ENV` and `LOG_LEVEL` in the environment override `env` and `log_level`;
they default to `dev` and `info`. A missing `CONFIG_PATH` or an unreadable
file raises `RuntimeError`.

```
CONFIG_PATH=./config.yaml flowgate
flowgate --env-file other.env
```

The command loads the configuration, sets up logging on stdout (text, or JSON
when `env` is `prod`, with `version` and `instance_id` fields) and logs
`App starting...`.

## Balancers

```python
from flowgate.balancer import LeastConn, RoundRobin
from flowgate.domain import Backend
from flowgate.registry import InMemory

registry = InMemory([
    Backend.create("10.0.0.1:80", 5, 0),   # id "10.0.0.1:80#0"
    Backend.create("10.0.0.2:80", 1, 1),
])

rr = RoundRobin(registry)
backend = rr.pick()

lc = LeastConn(registry)
backend = lc.pick()          # increments backend.active_conns
lc.release(backend)          # decrements, never below zero

old = registry.swap([Backend.create("10.0.0.3:80", 1, 0)])  # bumps the version
```

`Backend.create` turns a weight of 0 or less into 1. `pick()` raises
`NoBackendsError` when there are no backends.

## UDP proxy

```python
import asyncio, logging
from flowgate.udp.proxy import UdpProxy, UdpTimeouts

async def serve(balancer):
    proxy = UdpProxy("dns", "127.0.0.1:5353", balancer,
                     UdpTimeouts(session_idle=30.0, backend_read=5.0, dial=2.0),
                     logging.getLogger("flowgate"))
    await proxy.start()
    print(proxy.addr())
    ...
    await proxy.shutdown(timeout=5.0)
```

Each new client address picks a backend and gets its own backend socket;
replies go back to that client. Sessions idle longer than `session_idle`
seconds are evicted and their backend released. `start()` raises
`ValueError` when `session_idle` is not positive, `ProxyStartedError` when
already started and `ProxyStoppedError` after shutdown. `shutdown()` raises
`TimeoutError` when workers do not finish in time.

## TCP proxy

```python
from flowgate.backoff import Exponential
from flowgate.limiter import Concurrency
from flowgate.tcp.proxy import TcpProxy

proxy = TcpProxy("web", "127.0.0.1:8080", handler,
                 Concurrency(1000), Exponential(0.005, 1.0), log)
await proxy.start()
...
await proxy.shutdown(timeout=5.0)
```

`handler` is any object with an `async handle(reader, writer)` method; it is
called with the asyncio streams of each accepted connection.

## What the package does not do

- It has no ready-made TCP connection handler: `TcpProxy` accepts
  connections but relaying bytes to a backend is left to the handler you
  pass in.
- The `flowgate` command does not start any proxy; it only loads the
  configuration, sets up logging and logs a startup message. The `backends`
  list in the configuration is read but not used by the command.
- There is no helper for running shutdown hooks on signals; call
  `shutdown()` on the proxies yourself.