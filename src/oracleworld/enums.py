"""列挙型定義。"""

from __future__ import annotations

from enum import StrEnum


class ErrorKind(StrEnum):
    """呼び出し元へ公開する失敗分類。

    Attributes:
        RATE_LIMIT: 上流のレート制限（HTTP 429）。
        AUTH_ERROR: 認証情報の拒否（HTTP 401/403）。
        NETWORK_ERROR: タイムアウトまたは通信層の失敗。
        VALIDATION_ERROR: 送信前の入力不足。
        GENERIC_ERROR: 上記以外の失敗応答。
    """

    RATE_LIMIT = "RATE_LIMIT"
    AUTH_ERROR = "AUTH_ERROR"
    NETWORK_ERROR = "NETWORK_ERROR"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    GENERIC_ERROR = "GENERIC_ERROR"


class Provider(StrEnum):
    """プロバイダ識別子。

    StrEnumのため、文字列としても利用可能（例: Provider.OPENAI == "openai"）。
    """

    OPENROUTER = "openrouter"
    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    DEEPSEEK = "deepseek"
    MIDJOURNEY = "midjourney"
    STABLE_DIFFUSION = "stable-diffusion"
    GEMINI = "gemini"
    REPLICATE = "replicate"


class GenerationType(StrEnum):
    """生成種別。"""

    IMAGE = "image"
    TEXT = "text"
    SPEECH = "speech"
    BACKGROUND_REMOVAL = "background-removal"
    IMAGE_TRANSFORM = "image-transform"


class TransformMode(StrEnum):
    """画像変換モード。"""

    SKETCH = "sketch"
    STYLE_TRANSFER = "style-transfer"
    INPAINTING = "inpainting"
    OUTPAINTING = "outpainting"
    UPSCALING = "upscaling"


class HttpMethod(StrEnum):
    """送信メソッド。"""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
