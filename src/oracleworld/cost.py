"""費用見積もりと価格カタログ。"""

from __future__ import annotations

import math
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import Any

from oracleworld.enums import GenerationType, Provider
from oracleworld.types import CostEstimate, CostInfo


_FOUR_PLACES = Decimal("0.0001")
DEFAULT_MAX_TOKENS = 1000
CHARS_PER_TOKEN = 4


@dataclass(slots=True, frozen=True)
class ModelPricing:
    """モデル単価。

    Attributes:
        type: 生成種別。
        per_image: 1枚あたり（USD）。
        per_1k_tokens: 1000トークンあたり（USD）。
        per_character: 1文字あたり（USD）。
    """

    type: GenerationType
    per_image: float | None = None
    per_1k_tokens: float | None = None
    per_character: float | None = None

    def cost_label(self) -> str:
        if self.type == GenerationType.IMAGE:
            return f"${self.per_image}/image"
        if self.type == GenerationType.TEXT:
            return f"${self.per_1k_tokens}/1K tokens"
        return f"${self.per_character}/char"


def _image(price: float) -> ModelPricing:
    return ModelPricing(type=GenerationType.IMAGE, per_image=price)


def _text(price: float) -> ModelPricing:
    return ModelPricing(type=GenerationType.TEXT, per_1k_tokens=price)


def _speech(price: float) -> ModelPricing:
    return ModelPricing(type=GenerationType.SPEECH, per_character=price)


PRICING: dict[str, dict[str, ModelPricing]] = {
    Provider.OPENROUTER: {
        "dall-e-3": _image(0.04),
        "dall-e-2": _image(0.02),
        "stable-diffusion-xl": _image(0.002),
        "stable-diffusion-2": _image(0.001),
        "gpt-4": _text(0.03),
        "gpt-4-turbo": _text(0.01),
        "gpt-3.5-turbo": _text(0.001),
        "claude-3-opus": _text(0.015),
        "claude-3-sonnet": _text(0.003),
        "claude-3-haiku": _text(0.00025),
        "tts-1": _speech(0.000015),
        "tts-1-hd": _speech(0.00003),
    },
    Provider.OPENAI: {
        "dall-e-3": _image(0.04),
        "dall-e-2": _image(0.02),
        "gpt-4": _text(0.03),
        "gpt-4-turbo": _text(0.01),
        "gpt-3.5-turbo": _text(0.001),
        "tts-1": _speech(0.000015),
        "tts-1-hd": _speech(0.00003),
    },
    Provider.ANTHROPIC: {
        "claude-3-opus": _text(0.015),
        "claude-3-sonnet": _text(0.003),
        "claude-3-haiku": _text(0.00025),
    },
}


def estimate_tokens(text: str | None) -> int:
    """文字数からトークン数を概算する（約4文字で1トークン）。"""

    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def round_cost(value: float) -> Decimal:
    """金額を小数4桁へ丸める。"""

    return Decimal(str(value)).quantize(_FOUR_PLACES, rounding=ROUND_HALF_UP)


def lookup_pricing(provider: str, model: str | None) -> ModelPricing | None:
    """価格カタログを引く。"""

    if model is None:
        return None
    return PRICING.get(str(provider), {}).get(model)


class CostEstimator:
    """送信前および送信後の費用計算。"""

    @staticmethod
    def estimate(
        provider: str,
        model: str | None = None,
        type: GenerationType | str | None = None,
        *,
        count: int | None = None,
        prompt: str | None = None,
        max_tokens: int | None = None,
        text: str | None = None,
        **_: Any,
    ) -> CostEstimate:
        """生成要求の費用を見積もる。

        Args:
            provider: プロバイダ識別子。
            model: モデルID。
            type: 生成種別。
            count: 画像枚数。
            prompt: テキスト生成のプロンプト。
            max_tokens: 出力トークン上限。
            text: 音声合成の入力文。

        Returns:
            見積もり結果。価格不明の場合は estimated=False。
        """

        provider_pricing = PRICING.get(str(provider))
        if provider_pricing is None:
            return CostEstimate(
                estimated=False,
                message=f"Pricing information not available for provider: {provider}",
            )
        pricing = provider_pricing.get(model or "")
        if pricing is None:
            return CostEstimate(
                estimated=False,
                message=f"Pricing information not available for model: {model}",
            )

        try:
            gen_type = GenerationType(str(type)) if type is not None else pricing.type
        except ValueError:
            return CostEstimate(estimated=False, message=f"Unknown generation type: {type}")

        if gen_type == GenerationType.IMAGE and pricing.per_image is not None:
            images = count or 1
            cost = pricing.per_image * images
            breakdown: dict[str, Any] = {"images_count": images, "cost_per_image": pricing.per_image}
        elif gen_type == GenerationType.TEXT and pricing.per_1k_tokens is not None:
            input_tokens = estimate_tokens(prompt)
            output_tokens = max_tokens or DEFAULT_MAX_TOKENS
            total = input_tokens + output_tokens
            cost = (total / 1000) * pricing.per_1k_tokens
            breakdown = {
                "input_tokens": input_tokens,
                "output_tokens": output_tokens,
                "total_tokens": total,
                "cost_per_1k_tokens": pricing.per_1k_tokens,
            }
        elif gen_type == GenerationType.SPEECH and pricing.per_character is not None:
            characters = len(text or "")
            cost = characters * pricing.per_character
            breakdown = {"characters": characters, "cost_per_character": pricing.per_character}
        else:
            return CostEstimate(
                estimated=False,
                message=f"Pricing for {gen_type.value} not available for model: {model}",
            )

        return CostEstimate(estimated=True, cost=str(round_cost(cost)), breakdown=breakdown)

    @staticmethod
    def image_cost(provider: str, model: str | None, count: int | None) -> CostInfo:
        """画像生成の実費用。"""

        pricing = lookup_pricing(provider, model)
        if pricing is None or pricing.per_image is None:
            return CostInfo()
        images = count or 1
        return CostInfo(
            amount=float(round_cost(pricing.per_image * images)),
            estimated=False,
            breakdown={"images_count": images, "cost_per_image": pricing.per_image},
        )

    @staticmethod
    def text_cost(provider: str, model: str | None, tokens_used: int) -> CostInfo:
        """テキスト生成の実費用（報告トークン数から計算）。"""

        pricing = lookup_pricing(provider, model)
        if pricing is None or pricing.per_1k_tokens is None:
            return CostInfo()
        return CostInfo(
            amount=float(round_cost((tokens_used / 1000) * pricing.per_1k_tokens)),
            estimated=False,
            breakdown={"tokens_used": tokens_used, "cost_per_1k_tokens": pricing.per_1k_tokens},
        )

    @staticmethod
    def speech_cost(provider: str, model: str | None, text: str | None) -> CostInfo:
        """音声合成の実費用。"""

        pricing = lookup_pricing(provider, model)
        if pricing is None or pricing.per_character is None:
            return CostInfo()
        characters = len(text or "")
        return CostInfo(
            amount=float(round_cost(characters * pricing.per_character)),
            estimated=False,
            breakdown={"characters": characters, "cost_per_character": pricing.per_character},
        )
