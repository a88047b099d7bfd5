"""Midjourneyサービス。

公開APIが存在しないため、入力検証後に未対応として失敗する。
"""

from __future__ import annotations

from typing import Any

from oracleworld.enums import Provider
from oracleworld.services.base import ProviderService
from oracleworld.types import GenerationResult


class MidjourneyService(ProviderService):
    provider = Provider.MIDJOURNEY
    display_name = "Midjourney"

    async def generate_image(self, **params: Any) -> GenerationResult:
        self._validate(params, ["prompt"])
        raise self._unsupported(
            "generate_image",
            "Midjourney client requires specific API integration",
        )

    async def transform_image(self, **params: Any) -> GenerationResult:
        self._validate(params, ["image_data", "prompt"])
        raise self._unsupported(
            "transform_image",
            "Midjourney transformations require specific API integration",
        )
