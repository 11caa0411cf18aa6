from __future__ import annotations

import httpx
import pytest

from zipscene_client import ApiClientError, RpcError, ZipsceneDataClient

from rpc_fakes import GOOD_TOKEN, bearer, ndjson, rpc_result


@pytest.mark.asyncio
async def test_get_wraps_id_in_keys(api, make_client) -> None:
    api.on("person.get", rpc_result({"result": {"id": "p1", "name": "Ann"}}))
    data = ZipsceneDataClient(make_client(), "Person")

    assert await data.get("p1", fields=["name"]) == {"id": "p1", "name": "Ann"}
    assert api.calls[0]["body"]["params"] == {"fields": ["name"], "keys": {"id": "p1"}}


@pytest.mark.asyncio
async def test_query_drops_unset_options(api, make_client) -> None:
    api.on("person.query", rpc_result({"results": [{"id": 1}, {"id": 2}]}))
    data = ZipsceneDataClient(make_client(), "person")

    results = await data.query({"age": {"$gt": 30}}, sort=["-age"], limit=2)

    assert results == [{"id": 1}, {"id": 2}]
    assert api.calls[0]["body"]["params"] == {"query": {"age": {"$gt": 30}}, "sort": ["-age"], "limit": 2}


@pytest.mark.asyncio
async def test_count(api, make_client) -> None:
    api.on("household.count", rpc_result({"result": 42}))
    data = ZipsceneDataClient(make_client(), "household")

    assert await data.count() == 42
    assert api.calls[0]["body"]["params"] == {"query": {}}


@pytest.mark.asyncio
async def test_single_aggregate(api, make_client) -> None:
    api.on("person.aggregate", rpc_result({"results": {"a0": [{"key": ["x"], "count": 3}]}}))
    data = ZipsceneDataClient(make_client(), "person")

    result = await data.aggregate({}, {"groupBy": "city"}, scan_limit=100)

    assert result == [{"key": ["x"], "count": 3}]
    params = api.calls[0]["body"]["params"]
    assert params["aggregates"] == {"a0": {"groupBy": "city"}}
    assert params["scanLimit"] == 100


@pytest.mark.asyncio
async def test_multiple_aggregates_keep_order(api, make_client) -> None:
    api.on("person.aggregate", rpc_result({"results": {"a1": "second", "a0": "first"}}))
    data = ZipsceneDataClient(make_client(), "person")

    result = await data.aggregate({}, [{"stats": "age"}, {"groupBy": "city"}])

    assert result == ["first", "second"]
    assert api.calls[0]["body"]["params"]["aggregates"] == {"a0": {"stats": "age"}, "a1": {"groupBy": "city"}}


@pytest.mark.asyncio
async def test_export_streams_rows(api, make_client) -> None:
    api.on(
        "person.export",
        lambda body, request: httpx.Response(200, content=ndjson({"id": 1}, {"id": 2}, {"success": True})),
    )
    data = ZipsceneDataClient(make_client(), "person")

    rows = [row async for row in data.export({"id": {"$in": [1, 2]}}, fields=["id"], strategy="stream")]

    assert rows == [{"id": 1}, {"id": 2}]
    assert api.calls[0]["body"]["params"] == {"query": {"id": {"$in": [1, 2]}}, "fields": ["id"]}


FILE_SERVER = "http://files.test"


def _file_service(api, statuses, download):  # noqa: ANN001
    states = list(statuses)

    def _status(body, request):  # noqa: ANN001
        state = states.pop(0) if len(states) > 1 else states[0]
        return httpx.Response(200, json={"result": state, "id": body["id"]})

    api.on("get-dmp-options", rpc_result({"fileService": True}))
    api.on("person.file-export", rpc_result({"fileId": "f1"}))
    api.on("get-file-status", _status)
    api.on("download-file", download)
    api.on("delete-file", rpc_result({}))


def _data_with_files(make_client) -> ZipsceneDataClient:  # noqa: ANN001
    return ZipsceneDataClient(
        make_client(),
        "person",
        file_service_client=make_client(server=FILE_SERVER),
        poll_interval=0,
    )


@pytest.mark.asyncio
async def test_export_through_file_service(api, make_client) -> None:
    _file_service(
        api,
        [{"status": "PENDING"}, {"status": "FINISHED"}],
        lambda body, request: httpx.Response(200, content=b'{"id": 1}\n\n{"id": 2}\n'),
    )
    data = _data_with_files(make_client)

    rows = [row async for row in data.export({"age": 30}, limit=5)]

    assert rows == [{"id": 1}, {"id": 2}]
    assert [(c["host"], c["body"]["method"]) for c in api.calls] == [
        ("dmp.test", "get-dmp-options"),
        ("dmp.test", "person.file-export"),
        ("files.test", "get-file-status"),
        ("files.test", "get-file-status"),
        ("files.test", "download-file"),
        ("files.test", "delete-file"),
    ]
    assert api.calls[1]["body"]["params"] == {"query": {"age": 30}, "limit": 5}
    assert api.calls[4]["body"]["params"] == {"fileId": "f1"}
    assert api.calls[4]["headers"]["authorization"] == bearer(GOOD_TOKEN)


@pytest.mark.asyncio
async def test_export_streams_when_dmp_has_no_file_service(api, make_client) -> None:
    api.on("get-dmp-options", rpc_result({"fileService": False}))
    api.on("person.export", lambda body, request: httpx.Response(200, content=ndjson({"id": 1}, {"success": True})))
    data = _data_with_files(make_client)

    rows = [row async for row in data.export()]

    assert rows == [{"id": 1}]
    assert [c["body"]["method"] for c in api.calls] == ["get-dmp-options", "person.export"]


@pytest.mark.asyncio
async def test_file_strategy_requires_file_service(api, make_client) -> None:
    api.on("get-dmp-options", rpc_result({"fileService": True}))
    data = ZipsceneDataClient(make_client(), "person")

    with pytest.raises(ApiClientError, match="File service not configured") as exc_info:
        [row async for row in data.export(strategy="file")]

    assert exc_info.value.code == "unsupported_operation"


@pytest.mark.asyncio
async def test_file_strategy_requires_dmp_support(api, make_client) -> None:
    api.on("get-dmp-options", rpc_result({}))
    data = _data_with_files(make_client)

    with pytest.raises(ApiClientError, match="File service not enabled in DMP"):
        [row async for row in data.export(strategy="file")]


@pytest.mark.asyncio
async def test_file_export_error_state_is_raised_and_file_deleted(api, make_client) -> None:
    _file_service(
        api,
        [{"status": "ERROR", "error": {"code": "limit_exceeded", "message": "Too many rows"}}],
        rpc_result({}),
    )
    data = _data_with_files(make_client)

    with pytest.raises(RpcError) as exc_info:
        [row async for row in data.export()]

    assert exc_info.value.code == "limit_exceeded"
    assert api.calls[-1]["body"]["method"] == "delete-file"


@pytest.mark.parametrize(
    "state, message",
    [
        ({"status": "CANCELLED"}, "File export cancelled"),
        ({"status": "ERROR"}, "Error exporting file"),
        ({"status": "LOST"}, "Unexpected file service state: LOST"),
    ],
)
@pytest.mark.asyncio
async def test_file_export_bad_states(api, make_client, state, message) -> None:
    _file_service(api, [state], rpc_result({}))
    data = _data_with_files(make_client)

    with pytest.raises(ApiClientError, match=message):
        [row async for row in data.export()]


@pytest.mark.asyncio
async def test_file_export_invalid_line(api, make_client) -> None:
    _file_service(
        api,
        [{"status": "FINISHED"}],
        lambda body, request: httpx.Response(200, content=b'{"id": 1}\nnot json\n'),
    )
    data = _data_with_files(make_client)

    rows: list = []
    with pytest.raises(ApiClientError, match="Error parsing export line") as exc_info:
        async for row in data.export():
            rows.append(row)

    assert rows == [{"id": 1}]
    assert exc_info.value.code == "invalid_argument"
    assert api.calls[-1]["body"]["method"] == "delete-file"


@pytest.mark.asyncio
async def test_file_download_error_status(api, make_client) -> None:
    _file_service(
        api,
        [{"status": "FINISHED"}],
        lambda body, request: httpx.Response(404, json={"error": {"code": "not_found", "message": "No file"}}),
    )
    data = _data_with_files(make_client)

    with pytest.raises(RpcError) as exc_info:
        [row async for row in data.export()]

    assert exc_info.value.code == "not_found"
