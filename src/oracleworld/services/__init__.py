"""サービス層モジュール。"""

from oracleworld.services.anthropic import AnthropicService
from oracleworld.services.base import ProviderService
from oracleworld.services.midjourney import MidjourneyService
from oracleworld.services.openai import OpenAIService
from oracleworld.services.openrouter import OpenRouterService
from oracleworld.services.registry import available_providers, create_provider, is_available
from oracleworld.services.replicate import ReplicateService

__all__ = [
    "AnthropicService",
    "MidjourneyService",
    "OpenAIService",
    "OpenRouterService",
    "ProviderService",
    "ReplicateService",
    "available_providers",
    "create_provider",
    "is_available",
]
