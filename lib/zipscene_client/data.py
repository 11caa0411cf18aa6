from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator

from .client import ZipsceneRpcClient
from .errors import ApiClientError, RpcError, ZipsceneClientError

logger = logging.getLogger(__name__)

FILE_SERVICE_POLL_INTERVAL = 5.0

EXPORT_STRATEGIES = ("stream", "file")


def _drop_none(params: dict[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in params.items() if v is not None}


class ZipsceneDataClient:
    """Query helpers for one DMP profile type (``person``, ``household``...).

    ``file_service_client`` is an RPC client for the file service; when the
    DMP has file exports enabled, ``export`` goes through it instead of
    streaming directly.
    """

    def __init__(
            self,
            client: ZipsceneRpcClient,
            profile_type: str,
            *,
            file_service_client: ZipsceneRpcClient | None = None,
            poll_interval: float = FILE_SERVICE_POLL_INTERVAL,
    ):
        self.client = client
        self.method_base = profile_type.strip().lower()
        self.file_service_client = file_service_client
        self.poll_interval = poll_interval

    def _method(self, verb: str) -> str:
        return f"{self.method_base}.{verb}"

    async def aclose(self) -> None:
        try:
            await self.client.aclose()
        finally:
            if self.file_service_client is not None:
                await self.file_service_client.aclose()

    async def get(self, id: Any, *, fields: list[str] | None = None, timeout: int | None = None) -> Any:
        params = _drop_none({"fields": fields, "timeout": timeout, "keys": {"id": id}})
        result = await self.client.request(self._method("get"), params)
        return result.get("result")

    async def query(
            self,
            query: dict[str, Any] | None = None,
            *,
            fields: list[str] | None = None,
            sort: list[str] | None = None,
            skip: int | None = None,
            limit: int | None = None,
            timeout: int | None = None,
    ) -> list[dict[str, Any]]:
        params = _drop_none(
            {
                "query": query or {},
                "fields": fields,
                "sort": sort,
                "skip": skip,
                "limit": limit,
                "timeout": timeout,
            }
        )
        result = await self.client.request(self._method("query"), params)
        return list(result.get("results") or [])

    async def count(self, query: dict[str, Any] | None = None, *, timeout: int | None = None) -> int:
        params = _drop_none({"query": query or {}, "timeout": timeout})
        result = await self.client.request(self._method("count"), params)
        return int(result.get("result") or 0)

    async def aggregate(
            self,
            query: dict[str, Any] | None,
            agg: dict[str, Any] | list[dict[str, Any]],
            *,
            sort: list[str] | None = None,
            limit: int | None = None,
            scan_limit: int | None = None,
            timeout: int | None = None,
    ) -> Any:
        """Run one aggregate spec, or a list of them in a single call.

        Specs are keyed ``a0``, ``a1``... on the wire; a list input returns a
        list of results in the same order.
        """
        specs = agg if isinstance(agg, list) else [agg]
        aggregates = {f"a{i}": spec for i, spec in enumerate(specs)}
        params = _drop_none(
            {
                "query": query or {},
                "aggregates": aggregates,
                "sort": sort,
                "limit": limit,
                "scanLimit": scan_limit,
                "timeout": timeout,
            }
        )
        result = await self.client.request(self._method("aggregate"), params)
        results = result.get("results") or {}
        if isinstance(agg, list):
            return [results.get(f"a{i}") for i in range(len(specs))]
        return results.get("a0")

    async def export(
            self,
            query: dict[str, Any] | None = None,
            *,
            fields: list[str] | None = None,
            sort: list[str] | None = None,
            limit: int | None = None,
            timeout: int | None = None,
            strategy: str | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield every object matching ``query``.

        ``strategy`` is ``"stream"`` (read the DMP export stream), ``"file"``
        (export to the file service and download the result) or ``None`` to
        use the file service whenever the DMP reports it is available.
        """
        if strategy is not None and strategy not in EXPORT_STRATEGIES:
            raise ApiClientError(f"Unknown export strategy: {strategy}", code="invalid_argument")
        params = _drop_none(
            {
                "query": query or {},
                "fields": fields,
                "sort": sort,
                "limit": limit,
                "timeout": timeout,
            }
        )

        if await self._export_strategy(strategy) == "stream":
            rows = self.client.request_stream(self._method("export"), params)
        else:
            rows = self._file_export(params)
        async for row in rows:
            yield row

    async def _export_strategy(self, requested: str | None) -> str:
        if requested == "stream":
            return "stream"
        options = await self.client.request("get-dmp-options", {})
        if options.get("fileService") and self.file_service_client is not None:
            return "file"
        if requested == "file":
            if self.file_service_client is None:
                raise ApiClientError("File service not configured", code="unsupported_operation")
            raise ApiClientError("File service not enabled in DMP", code="unsupported_operation")
        return "stream"

    async def _file_export(self, params: dict[str, Any]) -> AsyncIterator[dict[str, Any]]:
        files = self.file_service_client
        assert files is not None
        result = await self.client.request(self._method("file-export"), params)
        file_id = result.get("fileId")
        if not file_id:
            raise ApiClientError("file export didn't return a file id")

        try:
            await self._wait_for_file(file_id)
            async for line in files.request_raw("download-file", {"fileId": file_id}):
                line = line.strip()
                if not line:
                    continue
                try:
                    row = json.loads(line)
                except ValueError as e:
                    raise ApiClientError(
                        "Error parsing export line",
                        code="invalid_argument",
                        data={"line": line[:1000]},
                    ) from e
                yield row
        finally:
            try:
                await files.request("delete-file", {"fileId": file_id})
            except ZipsceneClientError as e:
                logger.warning("could not delete exported file %s from file service: %s", file_id, e)

    async def _wait_for_file(self, file_id: str) -> None:
        files = self.file_service_client
        assert files is not None
        while True:
            await asyncio.sleep(self.poll_interval)
            state = await files.request("get-file-status", {"fileId": file_id})
            status = state.get("status")
            logger.debug("file %s status %s", file_id, status)
            if status == "FINISHED":
                return
            if status == "PENDING":
                continue
            if status == "CANCELLED":
                raise ApiClientError("File export cancelled", code="internal_error")
            if status == "ERROR":
                error = state.get("error")
                if isinstance(error, dict) and error.get("code") and error.get("message"):
                    raise RpcError.from_envelope(error)
                raise ApiClientError("Error exporting file", code="internal_error")
            raise ApiClientError(f"Unexpected file service state: {status}", code="internal_error")
