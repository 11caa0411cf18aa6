from __future__ import annotations

from dataclasses import dataclass, field

from .errors import InvalidArgument

DEFAULT_ROUTE_VERSION = 2
DEFAULT_AUTH_ROUTE_VERSION = 1


@dataclass(frozen=True)
class ServerConfig:
    server: str
    auth_server: str | None = None
    route_version: int = DEFAULT_ROUTE_VERSION
    auth_route_version: int = DEFAULT_AUTH_ROUTE_VERSION
    timeout_s: float = 30.0
    client_version: str | None = None

    def __post_init__(self) -> None:
        server = (self.server or "").strip().rstrip("/")
        if not server:
            raise InvalidArgument("server is not configured")
        object.__setattr__(self, "server", server)
        auth_server = (self.auth_server or "").strip().rstrip("/")
        object.__setattr__(self, "auth_server", auth_server or server)

    def url(self, *, auth: bool = False) -> str:
        if auth:
            return f"{self.auth_server}/v{self.auth_route_version}/jsonrpc"
        return f"{self.server}/v{self.route_version}/jsonrpc"


@dataclass(frozen=True)
class PasswordCredentials:
    email: str
    password: str = field(repr=False)
    user_namespace_id: str | None = None


@dataclass(frozen=True)
class TokenCredentials:
    access_token: str = field(repr=False)


@dataclass(frozen=True)
class NoCredentials:
    pass


Credentials = PasswordCredentials | TokenCredentials | NoCredentials


def resolve_credentials(
        *,
        email: str | None = None,
        password: str | None = None,
        user_namespace_id: str | None = None,
        access_token: str | None = None,
        no_auth: bool = False,
) -> Credentials:
    if email and password:
        return PasswordCredentials(email=email, password=password, user_namespace_id=user_namespace_id or None)
    if access_token:
        return TokenCredentials(access_token=access_token)
    if no_auth:
        return NoCredentials()
    raise InvalidArgument("No API credentials configured")
