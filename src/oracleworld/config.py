"""設定値定義。"""

from __future__ import annotations

from dataclasses import dataclass

from oracleworld.enums import Provider

DEFAULT_USER_AGENT = "oracleworld/0.1.0"
DEFAULT_TIMEOUT = 60.0
DEFAULT_WINDOW_SECONDS = 60.0
API_KEY_ENV_PREFIX = "ORACLEWORLD_"

BASE_URLS: dict[str, str] = {
    Provider.OPENROUTER: "https://openrouter.ai/api/v1",
    Provider.OPENAI: "https://api.openai.com/v1",
    Provider.ANTHROPIC: "https://api.anthropic.com/v1",
    Provider.MIDJOURNEY: "https://api.midjourney.com/v1",
    Provider.REPLICATE: "https://api.replicate.com/v1",
}

IMAGE_DIMENSIONS: dict[str, tuple[int, int]] = {
    "portrait": (512, 768),
    "landscape": (768, 512),
    "square": (512, 512),
    "icon": (256, 256),
    "token": (400, 400),
    "scene": (1920, 1080),
}


@dataclass(slots=True, frozen=True)
class CallConfig:
    """プロバイダクライアント単位の不変設定。

    Attributes:
        api_key: 認証情報。
        base_url: APIベースURL。
        provider: プロバイダ識別子。
        timeout: 1試行あたりのタイムアウト秒。
        user_agent: User-Agent。
    """

    api_key: str
    base_url: str
    provider: str
    timeout: float = DEFAULT_TIMEOUT
    user_agent: str = DEFAULT_USER_AGENT

    def __repr__(self) -> str:
        return (
            f"CallConfig(api_key='***', base_url={self.base_url!r}, "
            f"provider={self.provider!r}, timeout={self.timeout!r})"
        )


@dataclass(slots=True)
class RetryConfig:
    """再試行設定。

    Attributes:
        max_retries: 最大再試行回数（総試行回数は max_retries + 1）。
        base_delay: 指数バックオフの基準秒。
        max_delay: バックオフ上限秒（ゆらぎ加算前）。
        jitter_span: 加算するゆらぎの最大秒。
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    jitter_span: float = 1.0


@dataclass(slots=True)
class SchedulerConfig:
    """要求キュー設定。

    Attributes:
        window_seconds: プロバイダごとのレート制限窓の長さ秒。
        requests_per_window: 窓あたりの許容回数。Noneのとき窓が開いている間は常に待機する。
        max_requeues: レート制限による再投入の上限。Noneのとき無制限。
        per_provider: Trueのときプロバイダ単位で直列化し、異なるプロバイダは並行に送出する。
    """

    window_seconds: float = DEFAULT_WINDOW_SECONDS
    requests_per_window: int | None = None
    max_requeues: int | None = None
    per_provider: bool = False
