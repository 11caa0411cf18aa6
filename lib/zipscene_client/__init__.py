from .client import ZipsceneRpcClient
from .config_types import (
    NoCredentials,
    PasswordCredentials,
    ServerConfig,
    TokenCredentials,
    resolve_credentials,
)
from .data import ZipsceneDataClient
from .errors import (
    ApiClientError,
    ErrorCode,
    InvalidArgument,
    RpcError,
    TokenExpired,
    UnexpectedEnd,
    ZipsceneClientError,
)

__all__ = [
    "ZipsceneRpcClient",
    "ZipsceneDataClient",
    "ServerConfig",
    "PasswordCredentials",
    "TokenCredentials",
    "NoCredentials",
    "resolve_credentials",
    "ZipsceneClientError",
    "InvalidArgument",
    "ApiClientError",
    "UnexpectedEnd",
    "RpcError",
    "TokenExpired",
    "ErrorCode",
]
