"""Anthropic APIサービス。"""

from __future__ import annotations

from typing import Any

from oracleworld.cost import CostEstimator
from oracleworld.enums import GenerationType, Provider
from oracleworld.services.base import ProviderService
from oracleworld.types import GenerationResult, ModelInfo

ANTHROPIC_VERSION = "2023-06-01"

_TEXT_MODELS = [
    ModelInfo("claude-3-opus-20240229", "Claude 3 Opus", GenerationType.TEXT, "$0.015/1K tokens"),
    ModelInfo("claude-3-sonnet-20240229", "Claude 3 Sonnet", GenerationType.TEXT, "$0.003/1K tokens"),
    ModelInfo("claude-3-haiku-20240307", "Claude 3 Haiku", GenerationType.TEXT, "$0.00025/1K tokens"),
]


class AnthropicService(ProviderService):
    """Claudeモデル（テキストのみ）。"""

    provider = Provider.ANTHROPIC
    display_name = "Anthropic"

    async def generate_text(self, **params: Any) -> GenerationResult:
        """テキストを生成する。"""

        self._validate(params, ["prompt", "model"])
        payload: dict[str, Any] = {
            "model": params["model"],
            "messages": [{"role": "user", "content": params["prompt"]}],
            "max_tokens": params.get("max_tokens") or 1000,
        }
        if params.get("system_prompt"):
            payload["system"] = params["system_prompt"]
        response = await self.execute(
            "/messages",
            payload,
            headers={
                "anthropic-version": ANTHROPIC_VERSION,
                "x-api-key": self._config.api_key,
            },
        )
        usage = response.get("usage") or {}
        tokens = int(usage.get("input_tokens") or 0) + int(usage.get("output_tokens") or 0)
        return GenerationResult(
            type=GenerationType.TEXT,
            provider=self.provider,
            model=params["model"],
            text=response["content"][0]["text"],
            cost=CostEstimator.text_cost(self.provider, params["model"], tokens),
            metadata=self._metadata(prompt=params["prompt"], request_id=response.get("id")),
        )

    async def generate_image(self, **params: Any) -> GenerationResult:
        raise self._unsupported("generate_image", "Image generation not supported by Anthropic")

    async def generate_speech(self, **params: Any) -> GenerationResult:
        raise self._unsupported("generate_speech", "Speech generation not supported by Anthropic")

    async def remove_background(self, **params: Any) -> GenerationResult:
        raise self._unsupported("remove_background", "Background removal not supported by Anthropic")

    async def transform_image(self, **params: Any) -> GenerationResult:
        raise self._unsupported("transform_image", "Image transformation not supported by Anthropic")

    def available_models(self, type: GenerationType | str = GenerationType.TEXT) -> list[ModelInfo]:
        return list(_TEXT_MODELS) if str(type) == GenerationType.TEXT else []
