"""要求キューのテスト。"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Any
from unittest.mock import patch

import pytest

from oracleworld.config import SchedulerConfig
from oracleworld.errors import (
    OracleAuthError,
    OracleGenericError,
    OracleRateLimitError,
)
from oracleworld.scheduler import RequestScheduler


class _WaitRecorder:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


class _Clock:
    def __init__(self, now: float = 0.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


def _unit(
    name: str,
    events: list[str],
    *,
    gate: asyncio.Event | None = None,
) -> Callable[[], Awaitable[str]]:
    async def run() -> str:
        events.append(f"start:{name}")
        if gate is not None:
            await gate.wait()
        await asyncio.sleep(0)
        events.append(f"end:{name}")
        return name

    return run


async def _settle_loop(rounds: int = 10) -> None:
    for _ in range(rounds):
        await asyncio.sleep(0)


def test_units_are_drained_strictly_one_after_another() -> None:
    events: list[str] = []
    waits = _WaitRecorder()

    async def run() -> list[Any]:
        scheduler = RequestScheduler(clock=_Clock())
        gate = asyncio.Event()
        first = scheduler.submit("openai", _unit("a", events, gate=gate))
        second = scheduler.submit("anthropic", _unit("b", events))
        third = scheduler.submit("openai", _unit("c", events))
        assert scheduler.queue_length == 3

        await _settle_loop()
        assert events == ["start:a"]
        assert scheduler.in_flight == 1
        assert scheduler.waiting == 2

        gate.set()
        results = await asyncio.gather(first, second, third)
        assert scheduler.queue_length == 0
        return results

    with patch("oracleworld.scheduler._wait", new=waits):
        results = asyncio.run(run())

    assert results == ["a", "b", "c"]
    assert events == ["start:a", "end:a", "start:b", "end:b", "start:c", "end:c"]
    # openai の窓は a の成功で開き、c は窓の残り全体を待つ
    assert waits.delays == [60.0]


def test_rate_limited_unit_is_requeued_ahead_of_later_units() -> None:
    events: list[str] = []
    lengths: list[int] = []
    waits = _WaitRecorder()
    attempts = {"a": 0}

    async def run() -> list[Any]:
        scheduler = RequestScheduler(clock=_Clock())

        async def flaky() -> str:
            attempts["a"] += 1
            lengths.append(scheduler.queue_length)
            events.append(f"run:a{attempts['a']}")
            if attempts["a"] < 3:
                raise OracleRateLimitError(
                    "Rate limit exceeded",
                    provider="openrouter",
                    details={"status": 429, "retry_after": 5.0},
                )
            return "a"

        async def later() -> str:
            lengths.append(scheduler.queue_length)
            events.append("run:b")
            return "b"

        first = scheduler.submit("openrouter", flaky)
        second = scheduler.submit("anthropic", later)
        return await asyncio.gather(first, second)

    with patch("oracleworld.scheduler._wait", new=waits):
        results = asyncio.run(run())

    assert results == ["a", "b"]
    assert events == ["run:a1", "run:a2", "run:a3", "run:b"]
    assert lengths == [2, 2, 2, 1]
    assert waits.delays == [5.0, 5.0]


def test_requeue_wait_covers_open_window() -> None:
    clock = _Clock()
    waits = _WaitRecorder()
    attempts = {"n": 0}

    async def run() -> None:
        scheduler = RequestScheduler(SchedulerConfig(requests_per_window=10), clock=clock)
        await scheduler.run("openai", _unit("warmup", []))
        clock.now = 20.0

        async def throttled() -> str:
            attempts["n"] += 1
            if attempts["n"] == 1:
                raise OracleRateLimitError("Rate limit exceeded", provider="openai", details={"status": 429})
            return "ok"

        assert await scheduler.run("openai", throttled) == "ok"

    with patch("oracleworld.scheduler._wait", new=waits):
        asyncio.run(run())

    assert waits.delays == [40.0]


def test_max_requeues_converts_to_rejection() -> None:
    runs = {"n": 0}
    events: list[str] = []

    async def run() -> tuple[BaseException | None, str]:
        scheduler = RequestScheduler(SchedulerConfig(max_requeues=2), clock=_Clock())

        async def always_limited() -> str:
            runs["n"] += 1
            raise OracleRateLimitError("Rate limit exceeded", provider="openai", details={"status": 429})

        doomed = scheduler.submit("openai", always_limited)
        after = scheduler.submit("openai", _unit("b", events))
        results = await asyncio.gather(doomed, after, return_exceptions=True)
        return results[0], results[1]

    with patch("oracleworld.scheduler._wait", new=_WaitRecorder()):
        error, value = asyncio.run(run())

    assert runs["n"] == 3
    assert isinstance(error, OracleRateLimitError)
    assert error.details["requeues"] == 2
    assert value == "b"


def test_other_failures_reject_without_requeue() -> None:
    runs = {"n": 0}

    async def run() -> list[Any]:
        scheduler = RequestScheduler(clock=_Clock())

        async def unauthorized() -> str:
            runs["n"] += 1
            raise OracleAuthError("Authentication failed", provider="openai", details={"status": 401})

        async def crashes() -> str:
            raise RuntimeError("boom")

        first = scheduler.submit("openai", unauthorized)
        second = scheduler.submit("anthropic", crashes)
        third = scheduler.submit("gemini", _unit("c", []))
        return await asyncio.gather(first, second, third, return_exceptions=True)

    with patch("oracleworld.scheduler._wait", new=_WaitRecorder()):
        auth, generic, value = asyncio.run(run())

    assert runs["n"] == 1
    assert isinstance(auth, OracleAuthError)
    assert isinstance(generic, OracleGenericError)
    assert "boom" in generic.message
    assert generic.provider == "anthropic"
    assert isinstance(generic.__cause__, RuntimeError)
    assert value == "c"


def test_counting_window_waits_only_at_limit() -> None:
    waits = _WaitRecorder()

    async def run() -> None:
        scheduler = RequestScheduler(SchedulerConfig(requests_per_window=2), clock=_Clock())
        futures = [scheduler.submit("openai", _unit(name, [])) for name in ("a", "b", "c")]
        await asyncio.gather(*futures)
        state = scheduler.rate_limit_state("openai")
        assert state is not None
        assert state.count == 3
        assert state.reset_time == 60.0

    with patch("oracleworld.scheduler._wait", new=waits):
        asyncio.run(run())

    assert waits.delays == [60.0]


def test_window_reopens_after_it_elapses() -> None:
    clock = _Clock()
    waits = _WaitRecorder()

    async def run() -> None:
        scheduler = RequestScheduler(clock=clock)
        await scheduler.run("openai", _unit("a", []))
        first = scheduler.rate_limit_state("openai")
        clock.now = 61.0
        await scheduler.run("openai", _unit("b", []))
        second = scheduler.rate_limit_state("openai")
        assert first is not None and second is not None
        assert (first.count, first.reset_time) == (1, 60.0)
        assert (second.count, second.reset_time) == (1, 121.0)
        assert scheduler.rate_limit_state("anthropic") is None

    with patch("oracleworld.scheduler._wait", new=waits):
        asyncio.run(run())

    assert waits.delays == []


def test_per_provider_mode_overlaps_distinct_providers() -> None:
    events: list[str] = []

    async def run() -> None:
        scheduler = RequestScheduler(SchedulerConfig(per_provider=True), clock=_Clock())
        gate = asyncio.Event()
        first = scheduler.submit("openai", _unit("a", events, gate=gate))
        second = scheduler.submit("anthropic", _unit("b", events))
        third = scheduler.submit("openai", _unit("c", events))

        await _settle_loop()
        assert "start:a" in events
        assert "end:b" in events
        assert "start:c" not in events
        assert scheduler.queue_length == 2

        gate.set()
        await asyncio.gather(first, second, third)

    with patch("oracleworld.scheduler._wait", new=_WaitRecorder()):
        asyncio.run(run())

    assert events.index("end:a") < events.index("start:c")


def test_aclose_cancels_pending_units() -> None:
    async def run() -> list[bool]:
        scheduler = RequestScheduler(clock=_Clock())
        gate = asyncio.Event()
        first = scheduler.submit("openai", _unit("a", [], gate=gate))
        second = scheduler.submit("openai", _unit("b", []))
        await _settle_loop()
        await scheduler.aclose()
        with pytest.raises(RuntimeError):
            scheduler.submit("openai", _unit("c", []))
        return [first.cancelled(), second.cancelled(), scheduler.queue_length == 0]

    assert asyncio.run(run()) == [True, True, True]


def test_submit_requires_running_loop() -> None:
    scheduler = RequestScheduler()
    with pytest.raises(RuntimeError):
        scheduler.submit("openai", _unit("a", []))


@pytest.mark.parametrize(
    "config",
    [
        SchedulerConfig(window_seconds=-1),
        SchedulerConfig(requests_per_window=0),
        SchedulerConfig(max_requeues=-1),
    ],
)
def test_invalid_scheduler_config(config: SchedulerConfig) -> None:
    with pytest.raises(ValueError):
        RequestScheduler(config)


def test_cancelled_unit_is_rejected_and_queue_moves_on() -> None:
    async def run() -> tuple[BaseException | None, str, int]:
        scheduler = RequestScheduler(clock=_Clock())

        async def cancelled_inside() -> str:
            inner: asyncio.Future[str] = asyncio.get_running_loop().create_future()
            inner.cancel()
            return await inner

        first = scheduler.submit("openai", cancelled_inside)
        second = scheduler.submit("anthropic", _unit("b", []))
        results = await asyncio.gather(first, second, return_exceptions=True)
        return results[0], results[1], scheduler.queue_length

    with patch("oracleworld.scheduler._wait", new=_WaitRecorder()):
        error, value, length = asyncio.run(run())

    assert isinstance(error, OracleGenericError)
    assert error.message == "Request was cancelled"
    assert isinstance(error.__cause__, asyncio.CancelledError)
    assert value == "b"
    assert length == 0
