from __future__ import annotations

import asyncio
import base64
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

from .config_types import Credentials, NoCredentials, PasswordCredentials, ServerConfig, TokenCredentials
from .errors import ApiClientError, InvalidArgument, RpcError, TokenExpired
from .session import ClientSession
from .transport import Transport

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SingleFlight(Generic[T]):
    """Share one in-flight coroutine between every concurrent caller.

    The first caller starts the work as a task; later callers await the same
    task until it finishes. Each caller awaits through ``asyncio.shield`` so a
    cancelled caller does not cancel the work for the others.
    """

    def __init__(self) -> None:
        self._task: asyncio.Task[T] | None = None

    @property
    def pending(self) -> bool:
        return self._task is not None and not self._task.done()

    def forget(self) -> None:
        # The task keeps running for whoever already awaits it.
        self._task = None

    async def run(self, fn: Callable[[], Awaitable[T]]) -> T:
        task = self._task
        if task is None or task.done():
            task = asyncio.ensure_future(fn())
            self._task = task
            task.add_done_callback(self._clear)
        return await asyncio.shield(task)

    def _clear(self, task: asyncio.Task[T]) -> None:
        if self._task is task:
            self._task = None
        if not task.cancelled():
            # Mark the exception retrieved when nobody is left awaiting it.
            task.exception()


def bearer_header(access_token: str | None) -> dict[str, str]:
    if not access_token:
        return {}
    encoded = base64.b64encode(access_token.encode("utf-8")).decode("ascii")
    return {"Authorization": f"Bearer {encoded}"}


class Authenticator:
    def __init__(
            self,
            cfg: ServerConfig,
            credentials: Credentials,
            session: ClientSession,
            transport: Transport,
    ):
        self._cfg = cfg
        self._credentials = credentials
        self._session = session
        self._transport = transport
        self._flight: SingleFlight[str | None] = SingleFlight()
        if isinstance(credentials, TokenCredentials):
            session.access_token = credentials.access_token

    @property
    def credentials(self) -> Credentials:
        return self._credentials

    @property
    def pending(self) -> bool:
        return self._flight.pending

    def invalidate(self) -> None:
        """Drop the current token after the server rejected it."""
        self._session.expire()
        self._flight.forget()

    async def authenticate(self, force_expired: bool = False) -> str | None:
        if force_expired:
            self.invalidate()
        if self._flight.pending:
            return await self._flight.run(self._acquire)
        if self._session.access_token:
            return self._session.access_token
        return await self._flight.run(self._acquire)

    async def _acquire(self) -> str | None:
        try:
            token = await self._run_strategy()
        except Exception as exc:
            self._session.access_token = None
            logger.warning("authentication failed: %s", exc)
            raise ApiClientError.wrap(exc, f"Authentication failed: {exc}") from exc
        self._session.access_token = token
        self._session.access_token_expired = False
        return token

    async def _run_strategy(self) -> str | None:
        creds = self._credentials
        if isinstance(creds, NoCredentials):
            return None
        if isinstance(creds, TokenCredentials):
            if self._session.access_token_expired:
                raise TokenExpired()
            return creds.access_token
        if isinstance(creds, PasswordCredentials):
            return await self._login(creds)
        raise InvalidArgument(f"Unsupported credentials: {type(creds).__name__}")

    async def _login(self, creds: PasswordCredentials) -> str:
        body: dict[str, Any] = {
            "method": "login",
            "params": {
                "userNamespaceId": creds.user_namespace_id,
                "email": creds.email,
                "password": creds.password,
            },
            "id": self._session.next_auth_request_id(),
        }
        logger.debug("login as %s via %s", creds.email, self._cfg.url(auth=True))
        response = await self._transport.post_json(self._cfg.url(auth=True), body)
        if response.get("error"):
            raise RpcError.from_envelope(response["error"])
        result = response.get("result")
        token = result.get("accessToken") if isinstance(result, dict) else None
        if not isinstance(token, str) or not token:
            raise ApiClientError("login response didn't include an access token")
        logger.debug("login succeeded for %s", creds.email)
        return token
