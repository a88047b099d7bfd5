"""公開クライアント実装。"""

from __future__ import annotations

import asyncio
import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import httpx

from oracleworld.config import (
    API_KEY_ENV_PREFIX,
    DEFAULT_TIMEOUT,
    DEFAULT_USER_AGENT,
    DEFAULT_WINDOW_SECONDS,
    RetryConfig,
    SchedulerConfig,
)
from oracleworld.cost import CostEstimator
from oracleworld.enums import GenerationType, Provider
from oracleworld.history import HistoryStore
from oracleworld.scheduler import RequestScheduler
from oracleworld.services.base import ProviderService
from oracleworld.services.registry import available_providers, create_provider
from oracleworld.types import CostEstimate, GenerationResult, ModelInfo, ProviderInfo
from oracleworld.validation import normalize_provider, validate_retry_config

logger = logging.getLogger(__name__)


def env_var_name(provider: Provider | str) -> str:
    """プロバイダの認証情報を読む環境変数名。"""

    return f"{API_KEY_ENV_PREFIX}{str(provider).upper().replace('-', '_')}_API_KEY"


def api_keys_from_env(environ: Mapping[str, str] | None = None) -> dict[str, str]:
    """環境変数から設定済みの認証情報を集める。"""

    env = os.environ if environ is None else environ
    keys: dict[str, str] = {}
    for provider in Provider:
        value = env.get(env_var_name(provider))
        if value:
            keys[provider.value] = value
    return keys


class AsyncOracleClient:
    """生成AIプロバイダの非同期クライアント。

    すべての生成要求は内部の RequestScheduler を経由して送出される。
    """

    def __init__(
        self,
        *,
        api_keys: Mapping[str, str | None] | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        user_agent: str = DEFAULT_USER_AGENT,
        base_urls: Mapping[str, str] | None = None,
        retry_max_retries: int = 3,
        retry_base_delay: float = 1.0,
        retry_max_delay: float = 30.0,
        retry_jitter_span: float = 1.0,
        window_seconds: float = DEFAULT_WINDOW_SECONDS,
        requests_per_window: int | None = None,
        max_requeues: int | None = None,
        per_provider: bool = False,
        history: HistoryStore | None = None,
        history_path: str | Path | None = None,
        http_client: httpx.AsyncClient | None = None,
        proxy: str | None = None,
        limits: httpx.Limits | None = None,
    ) -> None:
        """クライアントを初期化する。

        Args:
            api_keys: プロバイダ識別子ごとの認証情報。
            timeout: 1試行あたりのタイムアウト秒。
            user_agent: User-Agent。
            base_urls: プロバイダごとのベースURL上書き。
            retry_max_retries: 最大再試行回数。
            retry_base_delay: バックオフ基準秒。
            retry_max_delay: バックオフ上限秒。
            retry_jitter_span: バックオフ待機に加えるゆらぎの最大秒。
            window_seconds: レート制限窓の長さ秒。
            requests_per_window: 窓あたりの許容回数。
            max_requeues: レート制限による再投入の上限。
            per_provider: プロバイダ単位で直列化するか。
            history: 生成履歴の保存先。
            history_path: 生成履歴ファイル。history 未指定時のみ使用。
            http_client: 外部httpx.AsyncClient。
            proxy: プロキシ。
            limits: httpx接続制御。
        """

        if timeout <= 0:
            raise ValueError("timeout は0より大きい値を指定してください。")
        self._retry = RetryConfig(
            max_retries=retry_max_retries,
            base_delay=retry_base_delay,
            max_delay=retry_max_delay,
            jitter_span=retry_jitter_span,
        )
        validate_retry_config(self._retry)
        self._scheduler = RequestScheduler(
            SchedulerConfig(
                window_seconds=window_seconds,
                requests_per_window=requests_per_window,
                max_requeues=max_requeues,
                per_provider=per_provider,
            )
        )

        self._api_keys: dict[str, str] = {
            normalize_provider(key).value: value for key, value in (api_keys or {}).items() if value
        }
        self._base_urls = {normalize_provider(key).value: url for key, url in (base_urls or {}).items()}
        self._timeout = timeout
        self._user_agent = user_agent

        self._owns_client = http_client is None
        if http_client is None:
            client_kwargs: dict[str, Any] = {"timeout": timeout}
            if proxy is not None:
                client_kwargs["proxy"] = proxy
            if limits is not None:
                client_kwargs["limits"] = limits
            self._http_client = httpx.AsyncClient(**client_kwargs)
        else:
            self._http_client = http_client

        if history is None and history_path is not None:
            history = HistoryStore(history_path)
        self.history = history
        self._services: dict[str, ProviderService] = {}

    @classmethod
    def from_env(
        cls,
        environ: Mapping[str, str] | None = None,
        **kwargs: Any,
    ) -> "AsyncOracleClient":
        """環境変数 ORACLEWORLD_<PROVIDER>_API_KEY から認証情報を読み込む。"""

        return cls(api_keys=api_keys_from_env(environ), **kwargs)

    @property
    def scheduler(self) -> RequestScheduler:
        return self._scheduler

    @property
    def retry_config(self) -> RetryConfig:
        return self._retry

    @property
    def queue_length(self) -> int:
        """未確定の要求数。"""

        return self._scheduler.queue_length

    def provider(self, name: Provider | str) -> ProviderService:
        """プロバイダサービスを取得する。

        Raises:
            OracleValidationError: 未知・未実装のプロバイダ、または認証情報未設定の場合。
        """

        provider = normalize_provider(name)
        service = self._services.get(provider.value)
        if service is None:
            service = create_provider(
                provider,
                client=self._http_client,
                api_key=self._api_keys.get(provider.value, ""),
                retry_config=self._retry,
                timeout=self._timeout,
                base_url=self._base_urls.get(provider.value),
                user_agent=self._user_agent,
            )
            self._services[provider.value] = service
        return service

    def available_providers(self) -> list[ProviderInfo]:
        """認証情報が設定されたプロバイダ一覧。"""

        return available_providers(self._api_keys)

    def available_models(
        self,
        provider: Provider | str,
        type: GenerationType | str = GenerationType.IMAGE,
    ) -> list[ModelInfo]:
        return self.provider(provider).available_models(type)

    def estimate_cost(self, provider: Provider | str, **params: Any) -> CostEstimate:
        """送信前の費用を見積もる。認証情報は不要。"""

        return CostEstimator.estimate(normalize_provider(provider).value, **params)

    async def _submit(
        self,
        provider: Provider | str,
        operation: str,
        params: dict[str, Any],
        tags: list[str] | None,
    ) -> GenerationResult:
        service = self.provider(provider)
        method = getattr(service, operation)
        result: GenerationResult = await self._scheduler.submit(
            service.provider,
            lambda: method(**params),
        )
        if self.history is not None:
            entry = {
                **result.to_payload(),
                "prompt": params.get("prompt") or params.get("text"),
                "tags": tags or [],
            }
            try:
                saved = await asyncio.to_thread(self.history.save, entry)
            except OSError as exc:
                logger.warning("client | %s result not recorded in history: %s", operation, exc)
            else:
                logger.debug("client | %s result recorded as %s", operation, saved["id"])
        return result

    async def generate_image(
        self,
        provider: Provider | str,
        *,
        tags: list[str] | None = None,
        **params: Any,
    ) -> GenerationResult:
        """画像を生成する。"""

        return await self._submit(provider, "generate_image", params, tags)

    async def generate_text(
        self,
        provider: Provider | str,
        *,
        tags: list[str] | None = None,
        **params: Any,
    ) -> GenerationResult:
        """テキストを生成する。"""

        return await self._submit(provider, "generate_text", params, tags)

    async def generate_speech(
        self,
        provider: Provider | str,
        *,
        tags: list[str] | None = None,
        **params: Any,
    ) -> GenerationResult:
        """音声を合成する。"""

        return await self._submit(provider, "generate_speech", params, tags)

    async def remove_background(
        self,
        provider: Provider | str,
        *,
        tags: list[str] | None = None,
        **params: Any,
    ) -> GenerationResult:
        """画像の背景を除去する。"""

        return await self._submit(provider, "remove_background", params, tags)

    async def transform_image(
        self,
        provider: Provider | str,
        *,
        tags: list[str] | None = None,
        **params: Any,
    ) -> GenerationResult:
        """画像を変換する。"""

        return await self._submit(provider, "transform_image", params, tags)

    async def aclose(self) -> None:
        """キューを停止し、内部Clientをクローズする。"""

        await self._scheduler.aclose()
        if self._owns_client:
            await self._http_client.aclose()

    async def __aenter__(self) -> "AsyncOracleClient":
        """非同期コンテキスト開始。"""

        return self

    async def __aexit__(self, exc_type: Any, exc: Any, tb: Any) -> None:
        """非同期コンテキスト終了。"""

        await self.aclose()
