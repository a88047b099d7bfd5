"""要求キュー。

投入された作業単位を到着順に1件ずつ実行し、プロバイダごとのレート制限窓を管理する。
RATE_LIMIT で失敗した作業単位は、自分より後に投入された作業単位より前へ再投入され、
窓が明けるまでキュー全体（プロバイダ単位モードでは当該プロバイダ）の送出を止める。
"""

from __future__ import annotations

import asyncio
import bisect
import dataclasses
import itertools
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from oracleworld.config import SchedulerConfig
from oracleworld.errors import OracleError, OracleGenericError, OracleRateLimitError
from oracleworld.validation import validate_scheduler_config

logger = logging.getLogger(__name__)

_GLOBAL_LANE = "*"


async def _wait(seconds: float) -> None:
    """窓待機。"""

    if seconds > 0:
        await asyncio.sleep(seconds)


@dataclass(slots=True)
class WorkUnit:
    """実行対象の作業単位。

    Attributes:
        provider_id: プロバイダ識別子。
        run: 実行する非同期処理。
    """

    provider_id: str
    run: Callable[[], Awaitable[Any]]


@dataclass(slots=True)
class RateLimitState:
    """プロバイダごとのレート制限窓。

    Attributes:
        count: 現在の窓内での成功回数。
        reset_time: 窓が明ける時刻（単調時計）。
    """

    count: int = 0
    reset_time: float = 0.0

    def is_open(self, now: float) -> bool:
        return now < self.reset_time

    def remaining(self, now: float) -> float:
        return max(0.0, self.reset_time - now)

    def record(self, now: float, window_seconds: float) -> None:
        """成功1回を記録する。窓が明けていれば新しい窓を開く。"""

        if now >= self.reset_time:
            self.count = 1
            self.reset_time = now + window_seconds
        else:
            self.count += 1


@dataclass(slots=True, eq=False)
class QueueEntry:
    """キュー内の作業単位。

    Attributes:
        sequence: 投入順序番号。
        work: 作業単位。
        future: 呼び出し元へ返す結果ハンドル。
        enqueued_at: 投入時刻（UNIX秒）。
        requeues: レート制限による再投入回数。
        runs: 実行回数。
    """

    sequence: int
    work: WorkUnit
    future: asyncio.Future[Any]
    enqueued_at: float = field(default_factory=time.time)
    requeues: int = 0
    runs: int = 0

    @property
    def provider_id(self) -> str:
        return self.work.provider_id


class RequestScheduler:
    """プロバイダ呼び出しを直列化・流量制御する要求キュー。"""

    def __init__(
        self,
        config: SchedulerConfig | None = None,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """キューを初期化する。

        Args:
            config: キュー設定。
            clock: 窓計算に用いる単調時計。
        """

        self._config = config or SchedulerConfig()
        validate_scheduler_config(self._config)
        self._clock = clock
        self._sequence = itertools.count()
        self._queue: list[QueueEntry] = []
        self._in_flight: dict[int, QueueEntry] = {}
        self._busy_lanes: set[str] = set()
        self._rate_limits: dict[str, RateLimitState] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def config(self) -> SchedulerConfig:
        return self._config

    @property
    def queue_length(self) -> int:
        """未確定（待機中＋実行中）の作業単位数。"""

        return len(self._queue) + len(self._in_flight)

    @property
    def waiting(self) -> int:
        """送出待ちの作業単位数。"""

        return len(self._queue)

    @property
    def in_flight(self) -> int:
        """実行中の作業単位数。"""

        return len(self._in_flight)

    def __len__(self) -> int:
        return self.queue_length

    def rate_limit_state(self, provider_id: str) -> RateLimitState | None:
        """プロバイダのレート制限窓の写しを返す。"""

        state = self._rate_limits.get(provider_id)
        return dataclasses.replace(state) if state is not None else None

    def submit(
        self,
        provider_id: str,
        run: Callable[[], Awaitable[Any]],
    ) -> asyncio.Future[Any]:
        """作業単位を投入する。

        実行中のイベントループから呼び出すこと。

        Args:
            provider_id: プロバイダ識別子。
            run: 実行する非同期処理（通常はプロバイダクライアント呼び出しのクロージャ）。

        Returns:
            結果または OracleError で一度だけ確定するFuture。
        """

        if self._closed:
            raise RuntimeError("RequestScheduler はクローズ済みです。")
        loop = asyncio.get_running_loop()
        entry = QueueEntry(
            sequence=next(self._sequence),
            work=WorkUnit(provider_id=str(provider_id), run=run),
            future=loop.create_future(),
        )
        self._queue.append(entry)
        logger.debug(
            "queue | enqueued #%d for %s (length=%d)",
            entry.sequence,
            entry.provider_id,
            self.queue_length,
        )
        self._dispatch()
        return entry.future

    async def run(self, provider_id: str, run: Callable[[], Awaitable[Any]]) -> Any:
        """作業単位を投入し、確定まで待つ。"""

        return await self.submit(provider_id, run)

    def _lane_for(self, provider_id: str) -> str:
        return provider_id if self._config.per_provider else _GLOBAL_LANE

    def _dispatch(self) -> None:
        """空いているレーンの先頭エントリを送出する。"""

        loop = asyncio.get_running_loop()
        for entry in list(self._queue):
            lane = self._lane_for(entry.provider_id)
            if lane in self._busy_lanes:
                continue
            self._busy_lanes.add(lane)
            self._queue.remove(entry)
            self._in_flight[entry.sequence] = entry
            task = loop.create_task(self._drain_step(entry, lane))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

    async def _drain_step(self, entry: QueueEntry, lane: str) -> None:
        try:
            await self._wait_for_window(entry.provider_id)
            entry.runs += 1
            logger.debug(
                "queue | running #%d for %s (run %d)",
                entry.sequence,
                entry.provider_id,
                entry.runs,
            )
            try:
                result = await entry.work.run()
            except OracleRateLimitError as exc:
                await self._handle_rate_limit(entry, exc)
            except OracleError as exc:
                self._settle(entry, error=exc)
            except asyncio.CancelledError as exc:
                if self._closed:
                    raise
                cancelled = OracleGenericError(
                    "Request was cancelled",
                    provider=entry.provider_id,
                    details={"original_error": type(exc).__name__},
                )
                cancelled.__cause__ = exc
                self._settle(entry, error=cancelled)
            except Exception as exc:  # noqa: BLE001
                wrapped = OracleGenericError(
                    f"Request failed: {exc}",
                    provider=entry.provider_id,
                    details={"original_error": str(exc) or type(exc).__name__},
                )
                wrapped.__cause__ = exc
                self._settle(entry, error=wrapped)
            else:
                self._record_success(entry.provider_id)
                self._settle(entry, result=result)
        finally:
            self._busy_lanes.discard(lane)
            if not self._closed:
                self._dispatch()

    def _settle(
        self,
        entry: QueueEntry,
        *,
        result: Any = None,
        error: OracleError | None = None,
    ) -> None:
        self._in_flight.pop(entry.sequence, None)
        if entry.future.done():
            return
        if error is not None:
            logger.debug("queue | rejected #%d: %s", entry.sequence, error.kind.value)
            entry.future.set_exception(error)
        else:
            logger.debug("queue | fulfilled #%d", entry.sequence)
            entry.future.set_result(result)

    async def _handle_rate_limit(self, entry: QueueEntry, exc: OracleRateLimitError) -> None:
        limit = self._config.max_requeues
        if limit is not None and entry.requeues >= limit:
            exc.details["requeues"] = entry.requeues
            logger.warning(
                "queue | #%d for %s still rate limited after %d requeues; rejecting",
                entry.sequence,
                entry.provider_id,
                entry.requeues,
            )
            self._settle(entry, error=exc)
            return

        entry.requeues += 1
        self._in_flight.pop(entry.sequence, None)
        bisect.insort(self._queue, entry, key=lambda e: e.sequence)
        wait = self._rate_limit_wait(entry.provider_id, exc)
        logger.info(
            "queue | #%d for %s rate limited; requeued (%d) and waiting %.2fs",
            entry.sequence,
            entry.provider_id,
            entry.requeues,
            wait,
        )
        await _wait(wait)

    def _rate_limit_wait(self, provider_id: str, exc: OracleRateLimitError) -> float:
        state = self._rate_limits.get(provider_id)
        window_wait = state.remaining(self._clock()) if state is not None else 0.0
        return max(window_wait, exc.retry_after or 0.0)

    async def _wait_for_window(self, provider_id: str) -> None:
        state = self._rate_limits.get(provider_id)
        if state is None:
            return
        now = self._clock()
        if not state.is_open(now):
            return
        limit = self._config.requests_per_window
        if limit is not None and state.count < limit:
            return
        wait = state.remaining(now)
        logger.info("queue | waiting %.2fs for %s rate limit window", wait, provider_id)
        await _wait(wait)

    def _record_success(self, provider_id: str) -> None:
        state = self._rate_limits.setdefault(provider_id, RateLimitState())
        state.record(self._clock(), self._config.window_seconds)

    async def aclose(self) -> None:
        """実行中の処理を取り消し、未確定の結果ハンドルをキャンセルする。"""

        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for entry in [*self._queue, *self._in_flight.values()]:
            if not entry.future.done():
                entry.future.cancel()
        self._queue.clear()
        self._in_flight.clear()

    async def __aenter__(self) -> "RequestScheduler":
        """非同期コンテキスト開始。"""

        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """非同期コンテキスト終了。"""

        await self.aclose()
