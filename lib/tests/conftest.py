from __future__ import annotations

from typing import Any

import pytest

from rpc_fakes import AUTH_SERVER, SERVER, FakeApi
from zipscene_client import ServerConfig, ZipsceneRpcClient, resolve_credentials


@pytest.fixture
def api() -> FakeApi:
    return FakeApi()


@pytest.fixture
def make_client(api: FakeApi):
    def _make(**overrides: Any) -> ZipsceneRpcClient:
        cred_args = {
            "user_namespace_id": overrides.pop("user_namespace_id", None),
            "email": overrides.pop("email", "admin@admin.com"),
            "password": overrides.pop("password", "abc123"),
            "access_token": overrides.pop("access_token", None),
            "no_auth": overrides.pop("no_auth", False),
        }
        cfg = ServerConfig(**{"server": SERVER, "auth_server": AUTH_SERVER, **overrides})
        return ZipsceneRpcClient(cfg, resolve_credentials(**cred_args), transport=api.transport())

    return _make
