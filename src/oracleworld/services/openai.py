"""OpenAI APIサービス。"""

from __future__ import annotations

from typing import Any

from oracleworld.cost import CostEstimator
from oracleworld.enums import GenerationType, Provider
from oracleworld.services.base import ProviderService, image_urls, speech_audio
from oracleworld.types import GenerationResult


class OpenAIService(ProviderService):
    """OpenAI直接接続。"""

    provider = Provider.OPENAI
    display_name = "OpenAI"

    async def generate_image(self, **params: Any) -> GenerationResult:
        """画像を生成する。"""

        self._validate(params, ["prompt", "model"])
        response = await self.execute(
            "/images/generations",
            {
                "model": params["model"],
                "prompt": params["prompt"],
                "n": params.get("count") or 1,
                "size": f"{params.get('width') or 1024}x{params.get('height') or 1024}",
                "quality": params.get("quality") or "standard",
            },
        )
        return GenerationResult(
            type=GenerationType.IMAGE,
            provider=self.provider,
            model=params["model"],
            images=image_urls(response),
            cost=CostEstimator.image_cost(self.provider, params["model"], params.get("count")),
            metadata=self._metadata(prompt=params["prompt"]),
        )

    async def generate_text(self, **params: Any) -> GenerationResult:
        """テキストを生成する。"""

        self._validate(params, ["prompt", "model"])
        response = await self.execute(
            "/chat/completions",
            {
                "model": params["model"],
                "messages": [{"role": "user", "content": params["prompt"]}],
                "max_tokens": params.get("max_tokens") or 1000,
            },
        )
        usage = response.get("usage") or {}
        return GenerationResult(
            type=GenerationType.TEXT,
            provider=self.provider,
            model=params["model"],
            text=response["choices"][0]["message"]["content"],
            cost=CostEstimator.text_cost(
                self.provider, params["model"], int(usage.get("total_tokens") or 0)
            ),
            metadata=self._metadata(prompt=params["prompt"]),
        )

    async def generate_speech(self, **params: Any) -> GenerationResult:
        """音声を合成する。"""

        self._validate(params, ["text", "model"])
        response = await self.execute(
            "/audio/speech",
            {
                "model": params["model"],
                "input": params["text"],
                "voice": params.get("voice") or "alloy",
            },
        )
        return GenerationResult(
            type=GenerationType.SPEECH,
            provider=self.provider,
            model=params["model"],
            audio=speech_audio(response),
            cost=CostEstimator.speech_cost(self.provider, params["model"], params["text"]),
            metadata=self._metadata(text=params["text"]),
        )

    async def remove_background(self, **params: Any) -> GenerationResult:
        raise self._unsupported("remove_background", "Background removal not supported by OpenAI")

    async def transform_image(self, **params: Any) -> GenerationResult:
        """画像を編集する。"""

        self._validate(params, ["image_data", "prompt"])
        response = await self.execute(
            "/images/edits",
            {
                "image": params["image_data"],
                "prompt": params["prompt"],
                "n": params.get("count") or 1,
            },
        )
        return GenerationResult(
            type=GenerationType.IMAGE_TRANSFORM,
            provider=self.provider,
            model=params.get("model"),
            images=image_urls(response),
            metadata=self._metadata(mode=params.get("mode")),
        )
