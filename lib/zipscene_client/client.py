from __future__ import annotations

import logging
from typing import Any, AsyncIterator

import httpx

from .auth import Authenticator, bearer_header
from .config_types import Credentials, ServerConfig
from .errors import ApiClientError, RpcError, UnexpectedEnd
from .session import ClientSession
from .transport import Transport, decode_line

logger = logging.getLogger(__name__)

STREAM_MAX_ATTEMPTS = 2


class ZipsceneRpcClient:
    """JSON-RPC client that authenticates on demand.

    ``request`` returns the ``result`` of a single JSON-RPC response and
    ``request_stream`` yields the data objects of a newline-delimited JSON
    response. Both re-authenticate when the server reports ``token_expired``
    or ``bad_access_token``.
    """

    def __init__(
            self,
            cfg: ServerConfig,
            credentials: Credentials,
            *,
            transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._cfg = cfg
        self._session = ClientSession()
        self._t = Transport(cfg, transport=transport)
        self._auth = Authenticator(cfg, credentials, self._session, self._t)

    @property
    def config(self) -> ServerConfig:
        return self._cfg

    @property
    def credentials(self) -> Credentials:
        return self._auth.credentials

    @property
    def session(self) -> ClientSession:
        return self._session

    async def authenticate(self, force_expired: bool = False) -> str | None:
        return await self._auth.authenticate(force_expired)

    async def aclose(self) -> None:
        await self._t.close()

    async def __aenter__(self) -> ZipsceneRpcClient:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    def _envelope(self, method: str, params: dict[str, Any] | None, request_id: int | None) -> dict[str, Any]:
        if request_id is None:
            request_id = self._session.next_request_id()
        return {"method": method, "params": params if params is not None else {}, "id": request_id}

    async def _headers(self, extra_headers: dict[str, str] | None, *, no_auth: bool) -> dict[str, str]:
        token = None if no_auth else await self._auth.authenticate()
        headers = bearer_header(token)
        if extra_headers:
            headers.update(extra_headers)
        return headers

    async def request(
            self,
            method: str,
            params: dict[str, Any] | None = None,
            *,
            max_retries: int = 1,
            extra_headers: dict[str, str] | None = None,
            no_auth: bool = False,
            no_reauth: bool = False,
            request_id: int | None = None,
    ) -> dict[str, Any]:
        """Call ``method`` and return its ``result``.

        ``no_reauth`` raises auth errors as they come instead of logging in
        again; ``no_auth`` additionally sends no token at all.
        """
        body = self._envelope(method, params, request_id)
        url = self._cfg.url()
        attempts = max(1, int(max_retries))

        for attempt in range(1, attempts + 1):
            headers = await self._headers(extra_headers, no_auth=no_auth)
            logger.debug("rpc %s id=%s attempt %d/%d", method, body["id"], attempt, attempts)
            response = await self._t.post_json(url, body, headers=headers)

            error = response.get("error")
            if not error:
                result = response.get("result")
                return result if result is not None else {}

            rpc_error = RpcError.from_envelope(error)
            if not rpc_error.is_auth_error or no_auth or no_reauth:
                raise rpc_error
            if attempt == attempts:
                self._auth.invalidate()
                raise rpc_error
            logger.debug("rpc %s id=%s rejected token (%s), re-authenticating", method, body["id"], rpc_error.code)
            await self._auth.authenticate(force_expired=True)

    def request_stream(
            self,
            method: str,
            params: dict[str, Any] | None = None,
            *,
            extra_headers: dict[str, str] | None = None,
            no_auth: bool = False,
            no_reauth: bool = False,
            request_id: int | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        body = self._envelope(method, params, request_id)
        return self._stream(body, extra_headers=extra_headers, no_auth=no_auth, no_reauth=no_reauth)

    async def _stream(
            self,
            body: dict[str, Any],
            *,
            extra_headers: dict[str, str] | None,
            no_auth: bool,
            no_reauth: bool,
    ) -> AsyncIterator[dict[str, Any]]:
        url = self._cfg.url()
        for attempt in range(1, STREAM_MAX_ATTEMPTS + 1):
            headers = await self._headers(extra_headers, no_auth=no_auth)
            logger.debug("rpc stream %s id=%s attempt %d", body["method"], body["id"], attempt)
            forwarded = False
            saw_success = False
            retry = False

            async with self._t.stream_lines(url, body, headers=headers) as lines:
                async for line in lines:
                    line = line.strip()
                    if not line:
                        continue
                    entry = decode_line(line)

                    if entry.get("keepAlive") is True:
                        continue
                    if entry.get("success") is True:
                        saw_success = True
                        continue
                    if entry.get("error"):
                        rpc_error = RpcError.from_envelope(entry["error"])
                        can_retry = (
                            not forwarded and not no_auth and not no_reauth and attempt < STREAM_MAX_ATTEMPTS
                        )
                        if rpc_error.is_auth_error and can_retry:
                            retry = True
                            break
                        raise rpc_error
                    if saw_success:
                        raise ApiClientError("Received line of data after success object")

                    yield entry
                    forwarded = True

            if retry:
                logger.debug("rpc stream %s id=%s rejected token, re-authenticating", body["method"], body["id"])
                await self._auth.authenticate(force_expired=True)
                continue
            if not saw_success:
                raise UnexpectedEnd()
            return

    async def request_raw(
            self,
            method: str,
            params: dict[str, Any] | None = None,
            *,
            extra_headers: dict[str, str] | None = None,
            no_auth: bool = False,
            request_id: int | None = None,
    ) -> AsyncIterator[str]:
        """Yield the raw response body of ``method`` line by line.

        Used for downloads whose body is not a JSON-RPC envelope. No auth
        retry is attempted; an error status raises ``ApiClientError`` or the
        ``RpcError`` carried in the body.
        """
        body = self._envelope(method, params, request_id)
        headers = await self._headers(extra_headers, no_auth=no_auth)
        logger.debug("rpc raw %s id=%s", method, body["id"])
        async with self._t.stream_lines(self._cfg.url(), body, headers=headers, raw=True) as lines:
            async for line in lines:
                yield line
