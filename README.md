# simtime

A simulated clock for deterministic tests. Time does not advance on its own:
a `TimeRuntime` moves it forward to the next pending timer, so code that
sleeps, waits on timeouts or ticks on intervals behaves the same way on every
run, and runs as fast as the machine allows.

All durations are plain non-negative integers of nanoseconds. Wall-clock
times are integers of nanoseconds since the Unix epoch.

## What is in it

- `simtime.instant.Instant`: a point on the simulated monotonic clock,
  ordered and hashable. It offers `duration_since` (raises `ValueError` if the
  other instant is later), `checked_duration_since` and `checked_add` /
  `checked_sub` (return `None` when out of range), and
  `saturating_duration_since` (returns 0 instead of going negative). Adding
  or subtracting an integer duration gives an `Instant`; subtracting two
  instants gives a duration.
- `simtime.errors.Elapsed`: a `TimeoutError` raised when a timeout's deadline
  passes first. Its message is "deadline has elapsed".
- `simtime.timer.Timer`: a priority queue of deadlines with callbacks, each
  owned by a node. `add`, `expire(now)`, `next()`, and
  `disable_node_and_remove_events` / `enable_node`: a disabled node's pending
  callbacks are removed and handed back, and new ones are not scheduled.
- `simtime.clock`:
  - `Clock`: the mock clock. It starts one day past its instant origin and
    never moves backwards through `set_elapsed`.
  - `TimeHandle`: a clock plus its timer queue, with `now_instant`,
    `now_time`, `elapsed`, `sleep`, `sleep_until`, `timeout`, `add_timer`,
    `add_timer_for_node`, `wake_at`, `disable_node_and_cancel_timers` and
    `enable_node`. `TimeHandle.current()` returns the handle of the entered
    runtime (`RuntimeError` if none); `TimeHandle.try_current()` returns `None`
    instead.
  - `TimeRuntime`: owns a handle. `enter()` is a context manager making it
    current, `advance_to_next_event()` jumps to the earliest timer and fires
    it (returning `False` when none is pending), and `advance(duration)` moves
    time by hand.
  - `Sleep` and `Timeout`: futures with `poll(waker)`.
  - Module functions `now`, `elapsed`, `sleep`, `sleep_until`, `timeout`,
    `timeout_at`, and `current_node` / `in_node` for choosing which node
    timers belong to.
- `simtime.interval`: `interval(period)` (first tick now) and
  `interval_at(start, period)`, returning an `Interval` with `poll_tick`,
  `tick()`, `reset()`, `period`, `deadline` and a settable
  `missed_tick_behavior`. `MissedTickBehavior` is `BURST` (the default),
  `DELAY` or `SKIP`, and applies once a tick is more than 5 ms late. A period
  that is not positive raises `ValueError`.
- `simtime.mpsc`: a multi-producer, single-consumer queue whose consumer
  takes a random pending element. `channel()` returns a `Sender` and a
  `Receiver`. `Sender.send` raises `SendError` (holding the value) once the
  receiver is gone. `Receiver.try_recv_random(rng)` takes a
  `random.Random`-like object and raises `ChannelEmpty` or
  `ChannelDisconnected` (both `TryRecvError`) when nothing is queued.

## Using it

Futures follow a small polling protocol. `poll(waker)` returns the result
once it is ready. Otherwise it returns `simtime.clock.PENDING` and arranges
for `waker()`, any zero-argument callable, to be called later. When nothing
is ready, advance the runtime to the next timer event:

```python
from simtime.clock import PENDING, TimeRuntime, now, sleep, timeout
from simtime.errors import Elapsed

SECOND = 1_000_000_000

runtime = TimeRuntime()
with runtime.enter():
    start = now()
    nap = sleep(SECOND)
    while nap.poll(lambda: None) is PENDING:
        runtime.advance_to_next_event()
    assert now().duration_since(start) >= SECOND

    guarded = timeout(SECOND, sleep(2 * SECOND))
    try:
        while guarded.poll(lambda: None) is PENDING:
            runtime.advance_to_next_event()
    except Elapsed:
        print("timed out")
```

Intervals work the same way through `poll_tick`, which returns the instant
the tick was due:

```python
from simtime.clock import PENDING, TimeRuntime
from simtime.interval import interval

with TimeRuntime().enter() as handle:
    pass

runtime = TimeRuntime()
with runtime.enter():
    ticker = interval(100_000_000)
    ticks = []
    while len(ticks) < 3:
        due = ticker.poll_tick(lambda: None)
        if due is PENDING:
            runtime.advance_to_next_event()
        else:
            ticks.append(due)
```

`Sleep`, `Timeout` and `Interval.tick()` can also be awaited. Awaiting one
yields the future itself to whatever drives the coroutine, which is expected
to poll it and send the result back.

The environment variable `MSIM_BASE_TIME` (whole seconds since the Unix
epoch) fixes the wall-clock time at which the simulation starts. A value that
is not an unsigned 64-bit integer raises `ValueError`. Without the variable, a
time within the year 2022 is picked from the runtime's random source, which
you can pass as `TimeRuntime(rng=random.Random(seed))`.

## What it does not do

There is no task scheduler or event loop. The package provides the clock,
timers and pollable futures, and your own driver polls them and calls
`advance_to_next_event`. It does not replace the process's real clocks:
`time.time()`, `time.monotonic()` and the like keep reporting real time. It
has no simulated network.

## Running the tests

```
pip install -e .[test]
pytest
```