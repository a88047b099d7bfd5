"""入力正規化と送信前バリデーション。"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from oracleworld.config import RetryConfig, SchedulerConfig
from oracleworld.enums import GenerationType, Provider, TransformMode
from oracleworld.errors import OracleValidationError


def _is_missing(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (str, bytes, list, tuple, dict)) and len(value) == 0:
        return True
    return False


def require_params(
    params: Mapping[str, Any],
    required: Iterable[str],
    *,
    provider: str | None = None,
) -> None:
    """必須入力の欠落を検査する。

    Args:
        params: 入力値。
        required: 必須項目名。
        provider: 例外に付与するプロバイダ識別子。

    Raises:
        OracleValidationError: 欠落項目がある場合。details["missing"] に項目名一覧を持つ。
    """

    missing = [key for key in required if _is_missing(params.get(key))]
    if missing:
        raise OracleValidationError(
            f"Missing required parameters: {', '.join(missing)}",
            provider=provider,
            details={"missing": missing},
        )


def normalize_provider(value: Provider | str) -> Provider:
    """プロバイダ識別子を正規化する。

    Raises:
        OracleValidationError: 未知の識別子の場合。
    """

    if isinstance(value, Provider):
        return value
    normalized = str(value).strip().lower().replace("_", "-")
    try:
        return Provider(normalized)
    except ValueError as exc:
        raise OracleValidationError(
            f"Unknown provider: {value}",
            details={"provider": str(value)},
        ) from exc


def normalize_generation_type(value: GenerationType | str) -> GenerationType:
    """生成種別を正規化する。"""

    if isinstance(value, GenerationType):
        return value
    try:
        return GenerationType(str(value).strip().lower())
    except ValueError as exc:
        raise OracleValidationError(
            f"Unknown generation type: {value}",
            details={"type": str(value)},
        ) from exc


def normalize_transform_mode(value: TransformMode | str) -> TransformMode:
    """画像変換モードを正規化する。"""

    if isinstance(value, TransformMode):
        return value
    try:
        return TransformMode(str(value).strip().lower())
    except ValueError as exc:
        raise OracleValidationError(
            f"Unknown transform mode: {value}",
            details={"mode": str(value)},
        ) from exc


def validate_retry_config(config: RetryConfig) -> None:
    """再試行設定を検査する。"""

    if config.max_retries < 0:
        raise ValueError("max_retries は0以上を指定してください。")
    if config.base_delay < 0 or config.max_delay < 0:
        raise ValueError("base_delay / max_delay は0以上を指定してください。")
    if config.jitter_span < 0:
        raise ValueError("jitter_span は0以上を指定してください。")


def validate_scheduler_config(config: SchedulerConfig) -> None:
    """キュー設定を検査する。"""

    if config.window_seconds < 0:
        raise ValueError("window_seconds は0以上を指定してください。")
    if config.requests_per_window is not None and config.requests_per_window < 1:
        raise ValueError("requests_per_window は1以上を指定してください。")
    if config.max_requeues is not None and config.max_requeues < 0:
        raise ValueError("max_requeues は0以上を指定してください。")
