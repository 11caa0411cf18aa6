from __future__ import annotations

import asyncio

import pytest

from zipscene_client import ApiClientError
from zipscene_client.auth import SingleFlight, bearer_header

from rpc_fakes import AUTH_SERVER, BAD_PASSWORD, EXPIRED_TOKEN, GOOD_TOKEN


def test_bearer_header_base64_encodes_token() -> None:
    assert bearer_header("T1") == {"Authorization": "Bearer VDE="}
    assert bearer_header(None) == {}


@pytest.mark.asyncio
async def test_login_sends_credentials_to_auth_endpoint(api, make_client) -> None:
    client = make_client(user_namespace_id="zs")

    token = await client.authenticate()

    assert token == GOOD_TOKEN
    assert len(api.logins) == 1
    login = api.logins[0]
    assert login["path"] == "/v1/jsonrpc"
    assert login["body"]["method"] == "login"
    assert login["body"]["params"] == {
        "userNamespaceId": "zs",
        "email": "admin@admin.com",
        "password": "abc123",
    }
    assert client.session.access_token == GOOD_TOKEN
    assert client.config.auth_server == AUTH_SERVER


@pytest.mark.asyncio
async def test_cached_token_is_reused(api, make_client) -> None:
    client = make_client()

    tokens = [await client.authenticate() for _ in range(5)]

    assert tokens == [GOOD_TOKEN] * 5
    assert len(api.logins) == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_login(api, make_client) -> None:
    api.login_delay = 0.05
    client = make_client()

    tokens = await asyncio.gather(*(client.authenticate() for _ in range(10)))

    assert tokens == [GOOD_TOKEN] * 10
    assert len(api.logins) == 1


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_failure(api, make_client) -> None:
    api.login_delay = 0.05
    client = make_client(password=BAD_PASSWORD)

    results = await asyncio.gather(*(client.authenticate() for _ in range(4)), return_exceptions=True)

    assert len(api.logins) == 1
    assert all(isinstance(r, ApiClientError) for r in results)
    assert {r.code for r in results} == {"authentication_error"}
    assert client.session.access_token is None


@pytest.mark.asyncio
async def test_failed_login_is_not_cached(api, make_client) -> None:
    client = make_client(password=BAD_PASSWORD)

    for _ in range(2):
        with pytest.raises(ApiClientError) as exc_info:
            await client.authenticate()
        assert exc_info.value.code == "authentication_error"

    assert len(api.logins) == 2


@pytest.mark.asyncio
async def test_force_expired_logs_in_again(api, make_client) -> None:
    api.tokens = [EXPIRED_TOKEN, GOOD_TOKEN]
    client = make_client()

    assert await client.authenticate() == EXPIRED_TOKEN
    assert await client.authenticate(force_expired=True) == GOOD_TOKEN
    assert client.session.access_token_expired is False
    assert len(api.logins) == 2


@pytest.mark.asyncio
async def test_provided_token_never_hits_network(api, make_client) -> None:
    client = make_client(email=None, password=None, access_token=GOOD_TOKEN)

    assert await client.authenticate() == GOOD_TOKEN
    assert api.logins == []


@pytest.mark.asyncio
async def test_expired_provided_token_cannot_be_refreshed(api, make_client) -> None:
    client = make_client(email=None, password=None, access_token=GOOD_TOKEN)

    with pytest.raises(ApiClientError) as exc_info:
        await client.authenticate(force_expired=True)

    assert exc_info.value.code == "token_expired"
    assert client.session.access_token is None
    assert api.logins == []


@pytest.mark.asyncio
async def test_no_auth_resolves_without_token(api, make_client) -> None:
    client = make_client(email=None, password=None, no_auth=True)

    assert await client.authenticate() is None
    assert api.logins == []


@pytest.mark.asyncio
async def test_login_without_access_token_in_result(api, make_client) -> None:
    api.tokens = [""]
    client = make_client()

    with pytest.raises(ApiClientError, match="didn't include an access token"):
        await client.authenticate()


@pytest.mark.asyncio
async def test_single_flight_forget_starts_new_run() -> None:
    calls = 0
    release = asyncio.Event()

    async def work() -> int:
        nonlocal calls
        calls += 1
        await release.wait()
        return calls

    flight: SingleFlight[int] = SingleFlight()
    first = asyncio.ensure_future(flight.run(work))
    await asyncio.sleep(0)
    assert flight.pending
    flight.forget()
    second = asyncio.ensure_future(flight.run(work))
    await asyncio.sleep(0)
    release.set()

    assert await first == 2
    assert await second == 2
    assert calls == 2
    assert not flight.pending
