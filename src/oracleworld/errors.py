"""例外定義。"""

from __future__ import annotations

from typing import Any

from oracleworld.enums import ErrorKind


class OracleError(Exception):
    """分類済み失敗の基底クラス。

    呼び出し元が観測する失敗はすべてこの型（またはサブクラス）になる。

    Attributes:
        kind: 失敗分類。
        message: 人間向けメッセージ。
        provider: 発生元プロバイダ識別子。
        details: 分類ごとの付随情報（status, retry_after, missing など）。
    """

    kind: ErrorKind = ErrorKind.GENERIC_ERROR

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.provider = provider
        self.details = dict(details or {})

    @property
    def status(self) -> int | None:
        """HTTPステータス。付随しない場合はNone。"""

        value = self.details.get("status")
        return int(value) if value is not None else None

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(kind={self.kind.value!r}, "
            f"message={self.message!r}, provider={self.provider!r})"
        )


class OracleRateLimitError(OracleError):
    """HTTP 429 の失敗。"""

    kind = ErrorKind.RATE_LIMIT

    @property
    def retry_after(self) -> float | None:
        """サーバー指定の待機秒。"""

        value = self.details.get("retry_after")
        return float(value) if value is not None else None


class OracleAuthError(OracleError):
    """HTTP 401/403 の失敗。再試行しない。"""

    kind = ErrorKind.AUTH_ERROR


class OracleNetworkError(OracleError):
    """タイムアウトまたは通信層の失敗。"""

    kind = ErrorKind.NETWORK_ERROR


class OracleValidationError(OracleError):
    """送信前バリデーションエラー。再試行しない。"""

    kind = ErrorKind.VALIDATION_ERROR

    @property
    def missing(self) -> list[str]:
        """不足している入力項目名。"""

        return list(self.details.get("missing", []))


class OracleGenericError(OracleError):
    """その他の失敗応答。"""

    kind = ErrorKind.GENERIC_ERROR


class OracleUnsupportedOperationError(OracleGenericError):
    """プロバイダが対応しない操作。"""

    def __init__(self, operation: str, *, provider: str | None = None, message: str | None = None) -> None:
        super().__init__(
            message or f"{operation} is not supported by {provider or 'this provider'}",
            provider=provider,
            details={"operation": operation},
        )
        self.operation = operation


_ERROR_CLASSES: dict[ErrorKind, type[OracleError]] = {
    ErrorKind.RATE_LIMIT: OracleRateLimitError,
    ErrorKind.AUTH_ERROR: OracleAuthError,
    ErrorKind.NETWORK_ERROR: OracleNetworkError,
    ErrorKind.VALIDATION_ERROR: OracleValidationError,
    ErrorKind.GENERIC_ERROR: OracleGenericError,
}


def make_error(
    kind: ErrorKind | str,
    message: str,
    *,
    provider: str | None = None,
    details: dict[str, Any] | None = None,
) -> OracleError:
    """分類から対応する例外を生成する。

    Args:
        kind: 失敗分類。
        message: メッセージ。
        provider: 発生元プロバイダ識別子。
        details: 付随情報。

    Returns:
        分類に対応する例外インスタンス。
    """

    kind_norm = kind if isinstance(kind, ErrorKind) else ErrorKind(kind)
    klass = _ERROR_CLASSES[kind_norm]
    return klass(message, provider=provider, details=details)
