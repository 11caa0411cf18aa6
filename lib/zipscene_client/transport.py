from __future__ import annotations

import json
import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator

import httpx

from .config_types import ServerConfig
from .errors import ApiClientError, RpcError

logger = logging.getLogger(__name__)


def _status_error(url: str, r: httpx.Response, data: Any = None) -> ApiClientError:
    msg = f"POST {url} failed with {r.status_code}"
    if isinstance(data, dict) and data.get("detail"):
        msg = f"{msg}: {data['detail']}"
    detail = r.text[:1000] if r.text else f"HTTP {r.status_code}"
    return ApiClientError(msg, data={"status_code": r.status_code, "body": detail})


def _is_envelope(data: Any) -> bool:
    return isinstance(data, dict) and isinstance(data.get("error"), dict)


class Transport:
    """JSON-over-HTTP POST primitives shared by the RPC client."""

    def __init__(self, cfg: ServerConfig, *, transport: httpx.AsyncBaseTransport | None = None):
        self._cfg = cfg
        user_agent = "zipscene-client"
        if cfg.client_version:
            user_agent = f"{user_agent}/{cfg.client_version}"
        self._client = httpx.AsyncClient(
            timeout=cfg.timeout_s,
            headers={"User-Agent": user_agent},
            follow_redirects=True,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    async def post_json(self, url: str, body: dict[str, Any], *, headers: dict[str, str] | None = None) -> dict[str, Any]:
        try:
            r = await self._client.post(url, json=body, headers=headers)
        except httpx.HTTPError as e:
            raise ApiClientError.wrap(e, f"POST {url} failed: {e}") from e

        try:
            data = r.json()
        except ValueError as e:
            detail = r.text[:1000] if r.text else f"HTTP {r.status_code}"
            raise ApiClientError(
                f"POST {url} returned a non-JSON response ({r.status_code})",
                data={"status_code": r.status_code, "body": detail},
            ) from e

        # error envelopes are passed on whatever the status; anything else >= 400 is a failure
        if r.status_code >= 400 and not _is_envelope(data):
            raise _status_error(url, r, data)

        if not isinstance(data, dict):
            raise ApiClientError(
                f"POST {url} returned an unexpected JSON payload",
                data={"status_code": r.status_code},
            )
        return data

    @asynccontextmanager
    async def stream_lines(
            self,
            url: str,
            body: dict[str, Any],
            *,
            headers: dict[str, str] | None = None,
            raw: bool = False,
    ) -> AsyncIterator[AsyncIterator[str]]:
        try:
            async with self._client.stream("POST", url, json=body, headers=headers) as r:
                if r.status_code >= 400:
                    await r.aread()
                    try:
                        data = r.json()
                    except ValueError:
                        data = None
                    if not _is_envelope(data):
                        raise _status_error(url, r, data)
                    if raw:
                        raise RpcError.from_envelope(data["error"])
                    yield _single_line(json.dumps(data))
                else:
                    yield _wrap_line_errors(r.aiter_lines(), url)
        except httpx.HTTPError as e:
            raise ApiClientError.wrap(e, f"POST {url} stream failed: {e}") from e


async def _single_line(line: str) -> AsyncIterator[str]:
    yield line


async def _wrap_line_errors(lines: AsyncIterator[str], url: str) -> AsyncIterator[str]:
    try:
        async for line in lines:
            yield line
    except httpx.HTTPError as e:
        raise ApiClientError.wrap(e, f"POST {url} stream failed: {e}") from e


def decode_line(line: str) -> dict[str, Any]:
    try:
        entry = json.loads(line)
    except ValueError as e:
        raise ApiClientError(
            "Received invalid line from request stream",
            data={"line": line[:1000]},
        ) from e
    if not isinstance(entry, dict):
        raise ApiClientError(
            "Received invalid line from request stream",
            data={"line": line[:1000]},
        )
    return entry
