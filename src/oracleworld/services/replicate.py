"""Replicate APIサービス。"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from oracleworld.enums import GenerationType, HttpMethod, Provider
from oracleworld.errors import OracleGenericError, OracleNetworkError
from oracleworld.services.base import ProviderService
from oracleworld.types import GenerationResult, ModelInfo

logger = logging.getLogger(__name__)

POLL_INTERVAL = 1.0
MAX_POLLS = 60

_IMAGE_MODELS = [
    ModelInfo(
        "stability-ai/sdxl:39ed52f2a78e934b3ba6e2a89f5b1c712de7dfea535525255b1aa35c5565e08b",
        "Stable Diffusion XL",
        GenerationType.IMAGE,
        "~$0.003/image",
    ),
    ModelInfo("black-forest-labs/flux-schnell", "FLUX Schnell (Fast)", GenerationType.IMAGE, "~$0.003/image"),
    ModelInfo("black-forest-labs/flux-dev", "FLUX Dev (Quality)", GenerationType.IMAGE, "~$0.025/image"),
    ModelInfo(
        "stability-ai/stable-diffusion:db21e45d3f7023abc2a46ee38a23973f6dce16bb082a930b0c49861f96d1e5bf",
        "Stable Diffusion v1.5",
        GenerationType.IMAGE,
        "~$0.001/image",
    ),
]


async def _poll_wait(seconds: float) -> None:
    await asyncio.sleep(seconds)


class ReplicateService(ProviderService):
    """Replicate上の画像生成モデル。予測を作成し完了までポーリングする。"""

    provider = Provider.REPLICATE
    display_name = "Replicate"

    async def generate_image(self, **params: Any) -> GenerationResult:
        """画像を生成する。"""

        self._validate(params, ["prompt", "model"])
        prediction = await self.execute(
            "/predictions",
            {
                "version": params["model"],
                "input": {
                    "prompt": params["prompt"],
                    "negative_prompt": params.get("negative_prompt"),
                    "width": params.get("width") or 1024,
                    "height": params.get("height") or 1024,
                    "num_outputs": params.get("count") or 1,
                },
            },
        )
        result = await self._poll_prediction(prediction["id"])
        output = result.get("output")
        images = output if isinstance(output, list) else [output]
        return GenerationResult(
            type=GenerationType.IMAGE,
            provider=self.provider,
            model=params["model"],
            images=[str(x) for x in images if x],
            metadata=self._metadata(prompt=params["prompt"], prediction_id=prediction["id"]),
        )

    async def _poll_prediction(self, prediction_id: str, max_polls: int = MAX_POLLS) -> dict[str, Any]:
        """予測が確定するまでポーリングする。

        Raises:
            OracleGenericError: 予測が failed / canceled になった場合。
            OracleNetworkError: ポーリング回数を使い切った場合。
        """

        for poll in range(max_polls):
            prediction = await self.execute(
                f"/predictions/{prediction_id}",
                method=HttpMethod.GET,
            )
            status = prediction.get("status")
            if status == "succeeded":
                return prediction
            if status in {"failed", "canceled"}:
                raise OracleGenericError(
                    f"Prediction failed: {prediction.get('error') or 'Unknown error'}",
                    provider=self.provider,
                    details={"prediction_id": prediction_id, "prediction_status": status},
                )
            logger.debug("%s | prediction %s is %s (poll %d)", self.provider, prediction_id, status, poll + 1)
            await _poll_wait(POLL_INTERVAL)

        raise OracleNetworkError(
            "Prediction timed out",
            provider=self.provider,
            details={"prediction_id": prediction_id, "polls": max_polls},
        )

    async def generate_text(self, **params: Any) -> GenerationResult:
        raise self._unsupported(
            "generate_text",
            "Text generation not supported by Replicate client. Use OpenRouter instead.",
        )

    def available_models(self, type: GenerationType | str = GenerationType.IMAGE) -> list[ModelInfo]:
        return list(_IMAGE_MODELS) if str(type) == GenerationType.IMAGE else []
