from __future__ import annotations

from enum import Enum
from typing import Any


class ErrorCode(str, Enum):
    TOKEN_EXPIRED = "token_expired"
    BAD_ACCESS_TOKEN = "bad_access_token"
    OTHER = "other"

    @classmethod
    def classify(cls, code: str | None) -> ErrorCode:
        if code == cls.TOKEN_EXPIRED.value:
            return cls.TOKEN_EXPIRED
        if code == cls.BAD_ACCESS_TOKEN.value:
            return cls.BAD_ACCESS_TOKEN
        return cls.OTHER


class ZipsceneClientError(Exception):
    """Base client error."""


class InvalidArgument(ZipsceneClientError):
    """Client configuration is unusable."""

    code = "invalid_argument"


class ApiClientError(ZipsceneClientError):
    """Transport failure, malformed response or failed authentication."""

    def __init__(self, message: str, *, code: str = "api_client_error", data: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.code = code
        self.data = data or {}

    @classmethod
    def wrap(cls, exc: BaseException, message: str | None = None) -> ApiClientError:
        if isinstance(exc, ApiClientError) and message is None:
            return exc
        code = getattr(exc, "code", None)
        if not isinstance(code, str) or not code:
            code = "api_client_error"
        wrapped = cls(message or str(exc) or exc.__class__.__name__, code=code)
        wrapped.__cause__ = exc
        return wrapped


class UnexpectedEnd(ApiClientError):
    def __init__(self, message: str = "Never received successful end of data for request stream"):
        super().__init__(message, code="unexpected_end")


class RpcError(ZipsceneClientError):
    """Error envelope returned by the server."""

    def __init__(self, code: str, message: str | None = None, data: dict[str, Any] | None = None):
        super().__init__(message or code)
        self.code = code
        self.message = message or code
        self.data = data or {}
        self.kind = ErrorCode.classify(code)

    @property
    def is_auth_error(self) -> bool:
        return self.kind is not ErrorCode.OTHER

    @classmethod
    def from_envelope(cls, error: Any) -> RpcError:
        if not isinstance(error, dict):
            return cls("internal_error", str(error))
        code = str(error.get("code") or "internal_error")
        message = error.get("message")
        data = {k: v for k, v in error.items() if k not in {"code", "message"}}
        return cls(code, str(message) if message else None, data)

    def __str__(self) -> str:
        if self.message and self.message != self.code:
            return f"{self.code}: {self.message}"
        return self.code


class TokenExpired(RpcError):
    def __init__(self, message: str = "Provided access token has expired"):
        super().__init__(ErrorCode.TOKEN_EXPIRED.value, message)
