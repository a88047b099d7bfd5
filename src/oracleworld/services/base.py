"""プロバイダサービスの共通基底。"""

from __future__ import annotations

import time
from collections.abc import Mapping
from typing import Any, ClassVar

import httpx

from oracleworld.config import CallConfig, RetryConfig
from oracleworld.cost import CostEstimator
from oracleworld.enums import GenerationType, HttpMethod
from oracleworld.errors import OracleUnsupportedOperationError
from oracleworld.services._transport import perform_async_request
from oracleworld.types import CostEstimate, ModelInfo
from oracleworld.validation import require_params


def image_urls(response: Any) -> list[str]:
    """画像系レスポンスの data[] からURL（またはbase64）を取り出す。"""

    data = response.get("data", []) if isinstance(response, dict) else []
    return [item.get("url") or item.get("b64_json", "") for item in data if isinstance(item, dict)]


def speech_audio(response: Any) -> str | bytes | None:
    """音声系レスポンスから音声本体またはURLを取り出す。"""

    if isinstance(response, (bytes, str)):
        return response
    if isinstance(response, dict):
        return response.get("url") or response.get("data")
    return None


class ProviderService:
    """プロバイダごとの生成操作を束ねるサービス。

    サブクラスは対応する操作のみ上書きする。未対応の操作は
    OracleUnsupportedOperationError（GENERIC_ERROR）を送出する。
    """

    provider: ClassVar[str] = ""
    display_name: ClassVar[str] = ""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient,
        config: CallConfig,
        retry_config: RetryConfig,
    ) -> None:
        self._client = client
        self._config = config
        self._retry = retry_config

    @property
    def config(self) -> CallConfig:
        return self._config

    async def execute(
        self,
        endpoint: str,
        payload: Any = None,
        *,
        method: HttpMethod | str = HttpMethod.POST,
        headers: Mapping[str, str] | None = None,
        max_retries: int | None = None,
    ) -> Any:
        """1回の論理API呼び出しを実行する。

        Args:
            endpoint: ベースURLからの相対パス。
            payload: 送信本文。
            method: HTTPメソッド。
            headers: 追加ヘッダ。
            max_retries: 最大再試行回数。

        Returns:
            解析済みレスポンス本文。
        """

        return await perform_async_request(
            client=self._client,
            config=self._config,
            retry_config=self._retry,
            endpoint=endpoint,
            payload=payload,
            method=method,
            headers=headers,
            max_retries=max_retries,
        )

    def _validate(self, params: Mapping[str, Any], required: list[str]) -> None:
        require_params(params, required, provider=self.provider)

    def _unsupported(self, operation: str, message: str | None = None) -> OracleUnsupportedOperationError:
        return OracleUnsupportedOperationError(operation, provider=self.provider, message=message)

    def _metadata(self, **values: Any) -> dict[str, Any]:
        return {**values, "timestamp": int(time.time() * 1000)}

    async def generate_image(self, **params: Any) -> Any:
        raise self._unsupported("generate_image")

    async def generate_text(self, **params: Any) -> Any:
        raise self._unsupported("generate_text")

    async def generate_speech(self, **params: Any) -> Any:
        raise self._unsupported("generate_speech")

    async def remove_background(self, **params: Any) -> Any:
        raise self._unsupported("remove_background")

    async def transform_image(self, **params: Any) -> Any:
        raise self._unsupported("transform_image")

    async def estimate_cost(self, **params: Any) -> CostEstimate:
        """送信前の費用を見積もる。"""

        return CostEstimator.estimate(self.provider, **params)

    def available_models(self, type: GenerationType | str = GenerationType.IMAGE) -> list[ModelInfo]:
        """選択可能なモデル一覧を返す。"""

        return []
