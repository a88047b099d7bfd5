"""OpenRouter APIサービス。"""

from __future__ import annotations

from typing import Any

from oracleworld.cost import PRICING, CostEstimator
from oracleworld.enums import GenerationType, Provider, TransformMode
from oracleworld.services.base import ProviderService, image_urls, speech_audio
from oracleworld.types import GenerationResult, ModelInfo
from oracleworld.validation import normalize_transform_mode


class OpenRouterService(ProviderService):
    """OpenRouter経由のテキスト・音声・画像編集。

    OpenRouterは画像の新規生成に対応しない。
    """

    provider = Provider.OPENROUTER
    display_name = "OpenRouter"

    async def generate_image(self, **params: Any) -> GenerationResult:
        raise self._unsupported(
            "generate_image",
            "Image generation is not supported by OpenRouter. "
            "Please use OpenAI, Midjourney, or Replicate for image generation.",
        )

    async def generate_text(self, **params: Any) -> GenerationResult:
        """テキストを生成する。

        Args:
            **params: prompt, model（必須）、max_tokens, temperature, system_prompt。

        Returns:
            生成結果。費用は応答の usage.total_tokens から計算する。
        """

        self._validate(params, ["prompt", "model"])
        messages = [{"role": "user", "content": params["prompt"]}]
        if params.get("system_prompt"):
            messages.insert(0, {"role": "system", "content": params["system_prompt"]})
        response = await self.execute(
            "/chat/completions",
            {
                "model": params["model"],
                "messages": messages,
                "max_tokens": params.get("max_tokens") or 1000,
                "temperature": params.get("temperature") or 0.7,
            },
        )
        tokens_used = int((response.get("usage") or {}).get("total_tokens") or 0)
        return GenerationResult(
            type=GenerationType.TEXT,
            provider=self.provider,
            model=params["model"],
            text=response["choices"][0]["message"]["content"],
            cost=CostEstimator.text_cost(self.provider, params["model"], tokens_used),
            metadata=self._metadata(
                prompt=params["prompt"],
                tokens_used=tokens_used,
                request_id=response.get("id"),
            ),
        )

    async def generate_speech(self, **params: Any) -> GenerationResult:
        """音声を合成する。"""

        self._validate(params, ["text", "model"])
        payload: dict[str, Any] = {
            "model": params["model"],
            "input": params["text"],
            "voice": params.get("voice") or "alloy",
        }
        if params.get("speed"):
            payload["speed"] = params["speed"]
        response = await self.execute("/audio/speech", payload)
        return GenerationResult(
            type=GenerationType.SPEECH,
            provider=self.provider,
            model=params["model"],
            audio=speech_audio(response),
            cost=CostEstimator.speech_cost(self.provider, params["model"], params["text"]),
            metadata=self._metadata(text=params["text"], voice=params.get("voice")),
        )

    async def remove_background(self, **params: Any) -> GenerationResult:
        raise self._unsupported(
            "remove_background",
            "Background removal not supported by OpenRouter. Use a specialized provider.",
        )

    async def transform_image(self, **params: Any) -> GenerationResult:
        """画像を変換する。upscaling は variations エンドポイントを使う。"""

        self._validate(params, ["image_data", "prompt", "mode"])
        mode = normalize_transform_mode(params["mode"])
        model = params.get("model") or "dall-e-2"
        payload: dict[str, Any] = {
            "model": model,
            "image": params["image_data"],
            "prompt": params["prompt"],
            "n": params.get("count") or 1,
            "size": f"{params.get('width') or 1024}x{params.get('height') or 1024}",
        }
        endpoint = "/images/edits"
        if mode == TransformMode.UPSCALING:
            endpoint = "/images/variations"
            del payload["prompt"]
        response = await self.execute(endpoint, payload)
        return GenerationResult(
            type=GenerationType.IMAGE_TRANSFORM,
            provider=self.provider,
            model=model,
            images=image_urls(response),
            cost=CostEstimator.image_cost(self.provider, model, params.get("count")),
            metadata=self._metadata(mode=mode.value, prompt=params["prompt"]),
        )

    def available_models(self, type: GenerationType | str = GenerationType.IMAGE) -> list[ModelInfo]:
        gen_type = GenerationType(str(type))
        if gen_type == GenerationType.IMAGE:
            return []
        return [
            ModelInfo(model_id, model_id, pricing.type, pricing.cost_label())
            for model_id, pricing in PRICING[self.provider].items()
            if pricing.type == gen_type
        ]
