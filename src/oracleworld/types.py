"""公開型と内部共通データ構造。"""

from __future__ import annotations

import base64
from dataclasses import dataclass, field
from typing import Any

from oracleworld.enums import GenerationType


@dataclass(slots=True)
class CostInfo:
    """生成結果に付随する費用。

    Attributes:
        amount: 金額（USD）。
        currency: 通貨。
        estimated: 概算値か。
        breakdown: 内訳。
    """

    amount: float = 0.0
    currency: str = "USD"
    estimated: bool = True
    breakdown: dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class CostEstimate:
    """送信前の費用見積もり。

    Attributes:
        estimated: 見積もりが得られたか。
        cost: 小数4桁で丸めた金額文字列。
        currency: 通貨。
        breakdown: 内訳。
        message: 見積もり不能時の理由。
    """

    estimated: bool
    cost: str | None = None
    currency: str = "USD"
    breakdown: dict[str, Any] = field(default_factory=dict)
    message: str | None = None


@dataclass(slots=True)
class ModelInfo:
    """選択可能なモデル。"""

    id: str
    name: str
    type: GenerationType
    cost_info: str | None = None


@dataclass(slots=True)
class ProviderInfo:
    """プロバイダ表示情報。"""

    id: str
    name: str


@dataclass(slots=True)
class GenerationResult:
    """生成結果。

    Attributes:
        type: 生成種別。
        provider: プロバイダ識別子。
        model: 使用モデル。
        images: 画像URL一覧。
        text: 生成テキスト。
        audio: 音声URLまたは音声バイト列。
        cost: 費用。
        metadata: プロンプトやリクエストIDなどの付随情報。
    """

    type: GenerationType
    provider: str
    model: str | None = None
    images: list[str] = field(default_factory=list)
    text: str | None = None
    audio: str | bytes | None = None
    cost: CostInfo = field(default_factory=CostInfo)
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def success(self) -> bool:
        return True

    def to_payload(self) -> dict[str, Any]:
        """JSON保存可能な辞書へ変換する。"""

        audio: Any = self.audio
        if isinstance(audio, bytes):
            audio = {"base64": base64.b64encode(audio).decode("ascii")}
        return {
            "success": True,
            "type": self.type.value,
            "provider": self.provider,
            "model": self.model,
            "images": list(self.images),
            "text": self.text,
            "audio": audio,
            "cost": {
                "amount": self.cost.amount,
                "currency": self.cost.currency,
                "estimated": self.cost.estimated,
                "breakdown": dict(self.cost.breakdown),
            },
            "metadata": dict(self.metadata),
        }
