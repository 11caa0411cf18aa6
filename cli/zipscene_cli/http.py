from __future__ import annotations

import asyncio
import logging
from importlib import metadata
from typing import Any, Awaitable, Callable, TypeVar

import typer

from zipscene_client import (
    ApiClientError,
    InvalidArgument,
    RpcError,
    ServerConfig,
    ZipsceneClientError,
    ZipsceneDataClient,
    ZipsceneRpcClient,
    resolve_credentials,
)
from zipscene_client.config_types import Credentials

from . import console
from .config import AppConfig, normalize_base_url
from .options import CliOptions

logger = logging.getLogger(__name__)

T = TypeVar("T")
C = TypeVar("C", ZipsceneRpcClient, ZipsceneDataClient)


def cli_version() -> str:
    try:
        return metadata.version("zipscene-api-client")
    except metadata.PackageNotFoundError:
        return "0.0.0"


def prompt_password(email: str) -> str:
    return typer.prompt(f"Password for {email}", hide_input=True)


def resolve_cli_credentials(cfg: AppConfig, opts: CliOptions) -> Credentials:
    """Pick credentials from flags first, then from the config file.

    A token stored by ``zipscene auth login`` is preferred over a configured
    username so that the password is not prompted for on every call.
    """
    if opts.access_token:
        return resolve_credentials(access_token=opts.access_token)

    email = opts.username
    if not email and not cfg.auth.access_token:
        email = cfg.auth.username
    if email:
        password = opts.password or cfg.auth.password or prompt_password(email)
        return resolve_credentials(
            email=email,
            password=password,
            user_namespace_id=cfg.auth.user_namespace_id or None,
        )

    if cfg.auth.access_token:
        return resolve_credentials(access_token=cfg.auth.access_token)
    raise InvalidArgument("Must supply either an access token or username")


def make_client(
        cfg: AppConfig,
        opts: CliOptions,
        *,
        service: str | None = None,
        credentials: Credentials | None = None,
        server: str | None = None,
) -> ZipsceneRpcClient:
    name = service or cfg.default_service
    svc = cfg.services.get(name)
    if svc is None:
        raise InvalidArgument(f"Service not found: {name}")

    server = normalize_base_url(server or opts.server or svc.server)
    auth_server = normalize_base_url(opts.auth_server or cfg.auth.server)
    server_cfg = ServerConfig(
        server=server,
        auth_server=auth_server or None,
        route_version=svc.route_version,
        auth_route_version=cfg.auth.route_version,
        client_version=cli_version(),
    )
    if credentials is None:
        credentials = resolve_cli_credentials(cfg, opts)
    logger.debug("client for service %s at %s (auth %s)", name, server_cfg.server, server_cfg.auth_server)
    return ZipsceneRpcClient(server_cfg, credentials)


def run_async(client: C, fn: Callable[[C], Awaitable[T]]) -> T:
    """Run ``fn(client)`` on a fresh event loop, closing the client afterwards.

    Client errors are printed and turned into exit code 2.
    """

    async def _run() -> T:
        try:
            return await fn(client)
        finally:
            await client.aclose()

    try:
        return asyncio.run(_run())
    except ZipsceneClientError as e:
        fail(e)


def fail(exc: ZipsceneClientError) -> Any:
    code = getattr(exc, "code", None)
    if isinstance(exc, RpcError):
        console.err(f"Request failed: {exc}")
    elif isinstance(exc, ApiClientError) and code not in (None, "api_client_error"):
        console.err(f"{exc} ({code})")
    else:
        console.err(str(exc))
    if code in ("token_expired", "bad_access_token"):
        console.info("Run: zipscene auth login")
    raise typer.Exit(code=2)
