import random

import pytest

from simtime.clock import (
    PENDING,
    Clock,
    Sleep,
    TimeHandle,
    TimeRuntime,
    Timeout,
    current_node,
    elapsed,
    in_node,
    now,
    sleep,
    sleep_until,
    timeout,
    timeout_at,
)
from simtime.errors import Elapsed
from simtime.instant import Instant

SEC = 1_000_000_000
DAY = 86_400 * SEC
YEAR = 365 * DAY


@pytest.fixture(autouse=True)
def _no_base_time(monkeypatch):
    monkeypatch.delenv("MSIM_BASE_TIME", raising=False)


def block_on(runtime, coro):
    """Drive a coroutine whose awaitables yield themselves for polling."""
    with runtime.enter():
        woken = False

        def wake():
            nonlocal woken
            woken = True

        try:
            pending = coro.send(None)
        except StopIteration as stop:
            return stop.value
        while True:
            woken = False
            error = None
            try:
                result = pending.poll(wake)
            except Exception as exc:
                error = exc
                result = None
            if error is None and result is PENDING:
                while not woken:
                    if not runtime.advance_to_next_event():
                        raise RuntimeError("deadlock")
                continue
            try:
                if error is not None:
                    pending = coro.throw(error)
                else:
                    pending = coro.send(result)
            except StopIteration as stop:
                return stop.value


class _ReadyNow:
    def __init__(self, value):
        self.value = value

    def poll(self, waker):
        return self.value


def test_time():
    runtime = TimeRuntime(random.Random(1))

    async def body():
        t0 = now()
        await sleep(1 * SEC)
        assert elapsed(t0) >= 1 * SEC
        await sleep_until(t0 + 2 * SEC)
        assert elapsed(t0) >= 2 * SEC
        await sleep(20 * SEC)
        assert elapsed(t0) >= 22 * SEC
        await timeout(2 * SEC, sleep(1 * SEC))
        with pytest.raises(Elapsed):
            await timeout(1 * SEC, sleep(2 * SEC))
        return elapsed(t0)

    total = block_on(runtime, body())
    assert total >= 24 * SEC
    assert total < 25 * SEC


def test_system_clock_is_deterministic_for_seed():
    first = TimeRuntime(random.Random(1)).handle.now_time()
    second = TimeRuntime(random.Random(1)).handle.now_time()
    assert first == second
    base = first - DAY
    assert 52 * YEAR <= base < 53 * YEAR


def test_base_time_from_env(monkeypatch):
    monkeypatch.setenv("MSIM_BASE_TIME", "1453807127")
    runtime = TimeRuntime(random.Random(1))
    assert runtime.handle.now_time() == 1453807127 * SEC + DAY


def test_bad_base_time_raises(monkeypatch):
    monkeypatch.setenv("MSIM_BASE_TIME", "not-a-number")
    with pytest.raises(ValueError):
        TimeRuntime(random.Random(1))


def test_clock_starts_one_day_in():
    clock = Clock(5 * SEC)
    assert clock.elapsed() == DAY
    assert clock.now_instant() == Instant(DAY)
    assert clock.now_time() == 5 * SEC + DAY
    assert clock.time_since_clock_base() == 0


def test_clock_set_elapsed_never_goes_back():
    clock = Clock(0)
    clock.set_elapsed(DAY + 10)
    clock.set_elapsed(DAY + 3)
    assert clock.elapsed() == DAY + 10
    clock.advance(5)
    assert clock.time_since_clock_base() == 15


def test_current_outside_runtime():
    assert TimeHandle.try_current() is None
    with pytest.raises(RuntimeError):
        TimeHandle.current()
    with pytest.raises(RuntimeError):
        now()


def test_enter_sets_current():
    runtime = TimeRuntime(random.Random(2))
    with runtime.enter() as handle:
        assert TimeHandle.current() is runtime.handle
        assert handle is runtime.handle
        assert now() == runtime.now_instant()
    assert TimeHandle.try_current() is None


def test_advance_to_next_event_without_events():
    runtime = TimeRuntime(random.Random(3))
    assert runtime.advance_to_next_event() is False
    assert runtime.handle.elapsed() == DAY


def test_advance_to_next_event_fires_and_moves_clock():
    runtime = TimeRuntime(random.Random(3))
    handle = runtime.handle
    fired = []
    handle.add_timer(handle.now_instant() + 10, lambda: fired.append("a"))
    assert runtime.advance_to_next_event() is True
    assert fired == ["a"]
    assert handle.elapsed() == DAY + 10 + 50
    assert handle.time_since_clock_base() == 60


def test_runtime_advance():
    runtime = TimeRuntime(random.Random(4))
    runtime.advance(5)
    assert runtime.handle.time_since_clock_base() == 5
    assert runtime.now_instant() == Instant(DAY + 5)


def test_disable_node_cancels_timers():
    runtime = TimeRuntime(random.Random(5))
    handle = runtime.handle
    fired = []
    deadline = handle.now_instant() + 10
    handle.add_timer_for_node(7, deadline, lambda: fired.append(7))
    handle.add_timer_for_node(8, deadline, lambda: fired.append(8))
    handle.disable_node_and_cancel_timers(7)
    assert runtime.advance_to_next_event()
    assert fired == [8]

    handle.add_timer_for_node(7, handle.now_instant() + 10, lambda: fired.append(7))
    assert runtime.advance_to_next_event() is False

    handle.enable_node(7)
    handle.add_timer_for_node(7, handle.now_instant() + 10, lambda: fired.append(7))
    assert runtime.advance_to_next_event()
    assert fired == [8, 7]


def test_enable_node_not_disabled_raises():
    runtime = TimeRuntime(random.Random(5))
    with pytest.raises(ValueError):
        runtime.handle.enable_node(42)


def test_in_node_sets_current_node_for_timers():
    runtime = TimeRuntime(random.Random(6))
    handle = runtime.handle
    fired = []
    assert current_node() == 0
    with in_node(3):
        assert current_node() == 3
        handle.add_timer(handle.now_instant() + 1, lambda: fired.append(3))
    assert current_node() == 0
    handle.add_timer(handle.now_instant() + 1, lambda: fired.append(0))
    handle.disable_node_and_cancel_timers(3)
    runtime.advance_to_next_event()
    assert fired == [0]


def test_wake_at_calls_waker():
    runtime = TimeRuntime(random.Random(7))
    handle = runtime.handle
    calls = []
    handle.wake_at(handle.now_instant() + 100, lambda: calls.append(True))
    assert calls == []
    runtime.advance_to_next_event()
    assert calls == [True]


def test_sleep_poll_and_reset():
    runtime = TimeRuntime(random.Random(8))
    handle = runtime.handle
    woken = []
    start = handle.now_instant()
    pause = handle.sleep(SEC)
    assert pause.deadline == start + SEC
    assert pause.is_elapsed() is False
    assert pause.poll(lambda: woken.append(1)) is PENDING
    runtime.advance_to_next_event()
    assert woken == [1]
    assert pause.is_elapsed() is True
    assert pause.poll(lambda: None) is None
    pause.reset(start + 5 * SEC)
    assert pause.deadline == start + 5 * SEC
    assert pause.is_elapsed() is False


def test_sleep_until_past_deadline_is_elapsed():
    runtime = TimeRuntime(random.Random(9))
    handle = runtime.handle
    pause = handle.sleep_until(handle.now_instant() - SEC)
    assert isinstance(pause, Sleep)
    assert pause.is_elapsed() is True


def test_timeout_returns_inner_value():
    runtime = TimeRuntime(random.Random(10))
    guarded = runtime.handle.timeout(SEC, _ReadyNow(42))
    assert isinstance(guarded, Timeout)
    assert guarded.poll(lambda: None) == 42


def test_timeout_pending_then_elapsed():
    runtime = TimeRuntime(random.Random(11))
    guarded = runtime.handle.timeout(SEC, runtime.handle.sleep(2 * SEC))
    assert guarded.poll(lambda: None) is PENDING
    runtime.advance_to_next_event()
    with pytest.raises(Elapsed):
        guarded.poll(lambda: None)


def test_timeout_at_past_deadline_elapses_immediately():
    runtime = TimeRuntime(random.Random(12))
    with runtime.enter():
        guarded = timeout_at(now() - SEC, sleep(SEC))
        with pytest.raises(Elapsed):
            guarded.poll(lambda: None)


def test_timeout_at_future_deadline_completes():
    runtime = TimeRuntime(random.Random(13))

    async def body():
        await timeout_at(now() + 3 * SEC, sleep(SEC))
        return "done"

    assert block_on(runtime, body()) == "done"