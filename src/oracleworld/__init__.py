"""oracleworld 公開API。"""

from oracleworld.client import AsyncOracleClient
from oracleworld.config import CallConfig, RetryConfig, SchedulerConfig
from oracleworld.cost import CostEstimator
from oracleworld.enums import ErrorKind, GenerationType, HttpMethod, Provider, TransformMode
from oracleworld.errors import (
    OracleAuthError,
    OracleError,
    OracleGenericError,
    OracleNetworkError,
    OracleRateLimitError,
    OracleUnsupportedOperationError,
    OracleValidationError,
)
from oracleworld.history import HistoryStore
from oracleworld.scheduler import QueueEntry, RateLimitState, RequestScheduler, WorkUnit
from oracleworld.services import available_providers, create_provider
from oracleworld.services._transport import perform_async_request
from oracleworld.types import CostEstimate, CostInfo, GenerationResult, ModelInfo, ProviderInfo

__all__ = [
    "AsyncOracleClient",
    "CallConfig",
    "CostEstimate",
    "CostEstimator",
    "CostInfo",
    "ErrorKind",
    "GenerationResult",
    "GenerationType",
    "HistoryStore",
    "HttpMethod",
    "ModelInfo",
    "OracleAuthError",
    "OracleError",
    "OracleGenericError",
    "OracleNetworkError",
    "OracleRateLimitError",
    "OracleUnsupportedOperationError",
    "OracleValidationError",
    "Provider",
    "ProviderInfo",
    "QueueEntry",
    "RateLimitState",
    "RequestScheduler",
    "RetryConfig",
    "SchedulerConfig",
    "TransformMode",
    "WorkUnit",
    "available_providers",
    "create_provider",
    "perform_async_request",
]
