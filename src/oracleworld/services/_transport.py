"""サービス層向けトランスポート共通処理。

1回の論理API呼び出しを、タイムアウト・失敗分類・指数バックオフつき再試行で実行する。
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import httpx

from oracleworld.config import CallConfig, RetryConfig
from oracleworld.enums import ErrorKind, HttpMethod
from oracleworld.errors import (
    OracleAuthError,
    OracleError,
    OracleGenericError,
    OracleNetworkError,
    OracleRateLimitError,
)
from oracleworld.http import (
    build_request_headers,
    classify_http_status,
    decide_wait_seconds,
    exponential_backoff,
    is_timeout_error,
    is_transport_error,
    parse_retry_after,
    redact_headers,
)

logger = logging.getLogger(__name__)

_NON_RETRYABLE = {ErrorKind.AUTH_ERROR, ErrorKind.VALIDATION_ERROR}
_BINARY_CONTENT_PREFIXES = ("audio/", "image/", "video/", "application/octet-stream")


@dataclass(slots=True)
class Attempt:
    """1回の試行記録。

    Attributes:
        index: 0始まりの試行番号。
        started_at: 開始時刻（UNIX秒）。
        error: 失敗時の分類済み例外。成功時はNone。
    """

    index: int
    started_at: float
    error: OracleError | None = None

    @property
    def succeeded(self) -> bool:
        return self.error is None


async def _wait(seconds: float) -> None:
    """再試行前の待機。"""

    if seconds > 0:
        await asyncio.sleep(seconds)


def _compute_backoff_seconds(*, attempt: int, retry_config: RetryConfig) -> float:
    """再試行用バックオフ待機秒を計算する。"""

    return exponential_backoff(
        attempt=attempt,
        base=retry_config.base_delay,
        cap=retry_config.max_delay,
        jitter=retry_config.jitter_span,
    )


def _error_body(response: httpx.Response) -> dict[str, Any]:
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {"body": data}


def _error_message(data: Mapping[str, Any], response: httpx.Response) -> str:
    error = data.get("error")
    if isinstance(error, Mapping) and error.get("message"):
        return str(error["message"])
    if isinstance(error, str) and error:
        return error
    if data.get("message"):
        return str(data["message"])
    return response.reason_phrase or f"HTTP {response.status_code}"


def classify_response(response: httpx.Response, *, provider: str) -> OracleError | None:
    """HTTPレスポンスを分類する。

    Args:
        response: HTTPレスポンス。
        provider: プロバイダ識別子。

    Returns:
        失敗時は分類済み例外、2xxの場合はNone。
    """

    kind = classify_http_status(response.status_code)
    if kind is None:
        return None
    status = response.status_code
    if kind == ErrorKind.RATE_LIMIT:
        return OracleRateLimitError(
            "Rate limit exceeded",
            provider=provider,
            details={
                "status": status,
                "retry_after": parse_retry_after(response.headers.get("retry-after")),
            },
        )
    if kind == ErrorKind.AUTH_ERROR:
        return OracleAuthError(
            "Authentication failed",
            provider=provider,
            details={"status": status},
        )
    data = _error_body(response)
    return OracleGenericError(
        f"API error: {_error_message(data, response)}",
        provider=provider,
        details={"status": status, "data": data},
    )


def classify_exception(
    exc: Exception,
    *,
    provider: str,
    url: str,
    timeout: float,
) -> OracleError:
    """送信中に発生した例外を分類する。"""

    if isinstance(exc, OracleError):
        return exc
    if is_timeout_error(exc):
        return OracleNetworkError(
            "Request timed out",
            provider=provider,
            details={"timeout": timeout, "url": url},
        )
    if is_transport_error(exc):
        return OracleNetworkError(
            f"Network error: {exc}",
            provider=provider,
            details={"original_error": str(exc) or type(exc).__name__, "url": url},
        )
    return OracleGenericError(
        f"Request failed: {exc}",
        provider=provider,
        details={"original_error": str(exc) or type(exc).__name__, "url": url},
    )


def decode_body(response: httpx.Response) -> Any:
    """成功レスポンス本文を解析する。

    JSONはdict/listへ、音声や画像などのバイナリはbytesへ、その他のテキストはstrへ変換する。

    Raises:
        ValueError: JSONと宣言された本文を解析できない場合。
    """

    if not response.content:
        return {}
    content_type = response.headers.get("content-type", "").lower()
    if "json" in content_type:
        return response.json()
    if content_type.startswith(_BINARY_CONTENT_PREFIXES):
        return response.content
    try:
        return response.json()
    except ValueError:
        return response.text


async def _send(
    *,
    client: httpx.AsyncClient,
    method: HttpMethod,
    url: str,
    payload: Any,
    headers: Mapping[str, str],
    timeout: float,
) -> httpx.Response:
    # asyncio.timeout は通常完了時にタイマーを解除する
    async with asyncio.timeout(timeout):
        if method == HttpMethod.GET or payload is None:
            return await client.request(method.value, url, headers=headers)
        return await client.request(method.value, url, headers=headers, json=payload)


async def perform_async_request(
    *,
    client: httpx.AsyncClient,
    config: CallConfig,
    retry_config: RetryConfig,
    endpoint: str,
    payload: Any = None,
    method: HttpMethod | str = HttpMethod.POST,
    headers: Mapping[str, str] | None = None,
    max_retries: int | None = None,
) -> Any:
    """非同期要求を再試行つきで実行する。

    AUTH_ERROR と VALIDATION_ERROR は即時に送出する。RATE_LIMIT は Retry-After
    があればその秒数、なければ指数バックオフ分待機して再試行する。NETWORK_ERROR と
    GENERIC_ERROR は指数バックオフ後に再試行する。試行回数を使い切ったときは最後の
    分類済み例外を送出する。

    Args:
        client: httpx非同期クライアント。
        config: 呼び出し設定。
        retry_config: 再試行設定。
        endpoint: ベースURLからの相対パス。
        payload: 送信本文。GETでは送信しない。
        method: HTTPメソッド。
        headers: 追加ヘッダ。
        max_retries: 最大再試行回数。未指定時は retry_config に従う。

    Returns:
        解析済みレスポンス本文。

    Raises:
        OracleError: 最終試行の分類済み失敗。
    """

    retries = retry_config.max_retries if max_retries is None else max_retries
    if retries < 0:
        raise ValueError("max_retries は0以上を指定してください。")
    method_norm = method if isinstance(method, HttpMethod) else HttpMethod(str(method).upper())
    url = f"{config.base_url}{endpoint}"
    request_headers = build_request_headers(
        api_key=config.api_key,
        user_agent=config.user_agent,
        extra=headers,
    )
    total_attempts = retries + 1

    for index in range(total_attempts):
        attempt = Attempt(index=index, started_at=time.time())
        logger.debug(
            "%s | %s %s (attempt %d/%d) headers=%s",
            config.provider,
            method_norm.value,
            url,
            index + 1,
            total_attempts,
            redact_headers(request_headers),
        )
        cause: Exception | None = None
        try:
            response = await _send(
                client=client,
                method=method_norm,
                url=url,
                payload=payload,
                headers=request_headers,
                timeout=config.timeout,
            )
        except Exception as exc:  # noqa: BLE001
            cause = exc
            attempt.error = classify_exception(
                exc,
                provider=config.provider,
                url=url,
                timeout=config.timeout,
            )
        else:
            attempt.error = classify_response(response, provider=config.provider)
            if attempt.error is None:
                try:
                    result = decode_body(response)
                except ValueError as exc:
                    cause = exc
                    attempt.error = OracleGenericError(
                        "API error: response body could not be parsed",
                        provider=config.provider,
                        details={"status": response.status_code, "data": {}},
                    )
                else:
                    logger.debug(
                        "%s | request succeeded (attempt %d/%d)",
                        config.provider,
                        index + 1,
                        total_attempts,
                    )
                    return result

        error = attempt.error
        if error.kind in _NON_RETRYABLE or index >= retries:
            error.details["attempts"] = index + 1
            if cause is not None and cause is not error:
                raise error from cause
            raise error

        retry_after = error.details.get("retry_after") if error.kind == ErrorKind.RATE_LIMIT else None
        backoff = _compute_backoff_seconds(attempt=index, retry_config=retry_config)
        wait = decide_wait_seconds(retry_after=retry_after, backoff=backoff)
        logger.warning(
            "%s | %s on attempt %d/%d: %s; retrying in %.2fs (%s)",
            config.provider,
            error.kind.value,
            index + 1,
            total_attempts,
            error.message,
            wait.seconds,
            wait.source,
        )
        await _wait(wait.seconds)

    raise OracleGenericError("要求の実行に失敗しました。", provider=config.provider)
