"""プロバイダ識別子からサービスを組み立てる。"""

from __future__ import annotations

from collections.abc import Mapping

import httpx

from oracleworld.config import BASE_URLS, DEFAULT_TIMEOUT, DEFAULT_USER_AGENT, CallConfig, RetryConfig
from oracleworld.enums import Provider
from oracleworld.errors import OracleValidationError
from oracleworld.services.anthropic import AnthropicService
from oracleworld.services.base import ProviderService
from oracleworld.services.midjourney import MidjourneyService
from oracleworld.services.openai import OpenAIService
from oracleworld.services.openrouter import OpenRouterService
from oracleworld.services.replicate import ReplicateService
from oracleworld.types import ProviderInfo
from oracleworld.validation import normalize_provider

SERVICES: dict[Provider, type[ProviderService]] = {
    Provider.OPENROUTER: OpenRouterService,
    Provider.OPENAI: OpenAIService,
    Provider.ANTHROPIC: AnthropicService,
    Provider.MIDJOURNEY: MidjourneyService,
    Provider.REPLICATE: ReplicateService,
}

DISPLAY_NAMES: dict[Provider, str] = {
    Provider.OPENROUTER: "OpenRouter",
    Provider.OPENAI: "OpenAI",
    Provider.ANTHROPIC: "Anthropic",
    Provider.DEEPSEEK: "DeepSeek",
    Provider.MIDJOURNEY: "Midjourney",
    Provider.STABLE_DIFFUSION: "Stable Diffusion",
    Provider.GEMINI: "Google Gemini",
    Provider.REPLICATE: "Replicate",
}


def create_provider(
    provider: Provider | str,
    *,
    client: httpx.AsyncClient,
    api_key: str,
    retry_config: RetryConfig | None = None,
    timeout: float = DEFAULT_TIMEOUT,
    base_url: str | None = None,
    user_agent: str = DEFAULT_USER_AGENT,
) -> ProviderService:
    """プロバイダサービスを生成する。

    Args:
        provider: プロバイダ識別子。
        client: 共有する httpx.AsyncClient。
        api_key: 認証情報。
        retry_config: 再試行設定。
        timeout: 1試行あたりのタイムアウト秒。
        base_url: ベースURLの上書き。
        user_agent: User-Agent。

    Returns:
        プロバイダサービス。

    Raises:
        OracleValidationError: 未知または未実装のプロバイダ、認証情報が空の場合。
    """

    provider_norm = normalize_provider(provider)
    service_cls = SERVICES.get(provider_norm)
    if service_cls is None:
        raise OracleValidationError(
            f"Provider {provider_norm.value} not yet implemented",
            provider=provider_norm.value,
        )
    if not api_key:
        raise OracleValidationError(
            f"API key for {provider_norm.value} is not configured",
            provider=provider_norm.value,
            details={"missing": ["api_key"]},
        )
    config = CallConfig(
        api_key=api_key,
        base_url=base_url or BASE_URLS[provider_norm],
        provider=provider_norm.value,
        timeout=timeout,
        user_agent=user_agent,
    )
    return service_cls(client=client, config=config, retry_config=retry_config or RetryConfig())


def is_available(provider: Provider | str, api_keys: Mapping[str, str | None]) -> bool:
    """認証情報が設定されているか。"""

    return bool(api_keys.get(str(provider)))


def available_providers(api_keys: Mapping[str, str | None]) -> list[ProviderInfo]:
    """認証情報が設定されたプロバイダを列挙する。"""

    return [
        ProviderInfo(id=provider.value, name=DISPLAY_NAMES[provider])
        for provider in Provider
        if is_available(provider, api_keys)
    ]
