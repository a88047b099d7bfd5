"""HTTP実行補助。"""

from __future__ import annotations

import asyncio
import math
import random
import time
from dataclasses import dataclass
from email.utils import parsedate_to_datetime
from typing import TYPE_CHECKING

import httpx

from oracleworld.enums import ErrorKind

if TYPE_CHECKING:
    from collections.abc import Mapping


@dataclass(slots=True)
class WaitDecision:
    """待機時間決定結果。

    Attributes:
        seconds: 待機秒。
        source: 待機根拠。
    """

    seconds: float
    source: str


def parse_retry_after(value: str | None) -> float | None:
    """Retry-Afterヘッダを秒へ変換する。"""

    if not value:
        return None
    text = value.strip()
    try:
        seconds = float(text)
    except ValueError:
        pass
    else:
        if not math.isfinite(seconds):
            return None
        return max(0.0, seconds)
    try:
        dt = parsedate_to_datetime(text)
    except (TypeError, ValueError):
        return None
    return max(0.0, dt.timestamp() - time.time())


def exponential_backoff(
    *,
    attempt: int,
    base: float,
    cap: float,
    jitter: float,
) -> float:
    """上限つき指数バックオフにゆらぎを加えた待機秒を計算する。

    ``min(base * 2**attempt, cap) + uniform(0, jitter)`` を返すため、
    結果は ``cap + jitter`` を超えない。

    Args:
        attempt: 0始まりの試行番号。
        base: 基準秒。
        cap: ゆらぎ加算前の上限秒。
        jitter: ゆらぎの最大秒。

    Returns:
        待機秒。
    """

    try:
        delay = min(base * (2 ** attempt), cap)
    except OverflowError:
        delay = cap
    if jitter <= 0:
        return delay
    return delay + random.uniform(0.0, jitter)


def decide_wait_seconds(*, retry_after: float | None, backoff: float) -> WaitDecision:
    """待機秒を統合決定する。

    サーバー指定の待機秒があればそれを優先する。
    """

    if retry_after is None:
        return WaitDecision(seconds=backoff, source="backoff")
    return WaitDecision(seconds=retry_after, source="retry_after")


def classify_http_status(status_code: int) -> ErrorKind | None:
    """HTTPステータスを失敗分類へ写像する。成功時はNone。"""

    if status_code == 429:
        return ErrorKind.RATE_LIMIT
    if status_code in {401, 403}:
        return ErrorKind.AUTH_ERROR
    if 200 <= status_code < 300:
        return None
    return ErrorKind.GENERIC_ERROR


def is_timeout_error(exc: BaseException) -> bool:
    """タイムアウトによる中断かを判定する。"""

    return isinstance(exc, (httpx.TimeoutException, asyncio.TimeoutError, TimeoutError))


def is_transport_error(exc: BaseException) -> bool:
    """通信層の失敗かを判定する。"""

    return isinstance(exc, (httpx.TransportError, OSError))


def build_request_headers(
    *,
    api_key: str,
    user_agent: str,
    extra: Mapping[str, str] | None = None,
) -> dict[str, str]:
    """標準ヘッダを構築する。呼び出し側の追加ヘッダが優先される。"""

    headers = {
        "Content-Type": "application/json",
        "Authorization": f"Bearer {api_key}",
        "User-Agent": user_agent,
    }
    if extra:
        headers.update(extra)
    return headers


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """ログ出力用に認証ヘッダを伏せる。"""

    hidden = {"authorization", "x-api-key"}
    return {k: ("***" if k.lower() in hidden else v) for k, v in headers.items()}
