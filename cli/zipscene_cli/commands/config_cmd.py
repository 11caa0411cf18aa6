from __future__ import annotations

import typer

from .. import console
from ..config import ServiceConfig, config_path, load_config, normalize_base_url, save_config
from ..options import get_options

app = typer.Typer(help="Manage the local config file (~/.config/zipscene/config.toml).")


def _state(value: str) -> str:
    return "(set)" if value else "(empty)"


@app.command("show")
def show_config(ctx: typer.Context):
    opts = get_options(ctx)
    cfg = load_config(opts.config_path)
    console.console.print(f"path={config_path(opts.config_path)}")
    console.console.print(
        f"auth.server={cfg.auth.server or '-'} auth.route_version={cfg.auth.route_version} "
        f"auth.username={cfg.auth.username or '-'} auth.password={_state(cfg.auth.password)} "
        f"auth.access_token={_state(cfg.auth.access_token)}"
    )
    for name, svc in sorted(cfg.services.items()):
        marker = " (default)" if name == cfg.default_service else ""
        console.console.print(
            f"services.{name}.server={svc.server or '-'} services.{name}.route_version={svc.route_version}{marker}"
        )


@app.command("set")
def set_config(
        ctx: typer.Context,
        auth_server: str | None = typer.Option(None, "--auth-server", help="Set auth server URL."),
        auth_route_version: int | None = typer.Option(None, "--auth-route-version", min=1),
        username: str | None = typer.Option(None, "--username", "--email", help="Set default username."),
        user_namespace_id: str | None = typer.Option(None, "--user-namespace-id"),
        service: str | None = typer.Option(None, "--service", "-s", help="Service to update (default: default service)."),
        server: str | None = typer.Option(None, "--server", help="Set the service server URL."),
        route_version: int | None = typer.Option(None, "--route-version", min=1),
        default_service: str | None = typer.Option(None, "--default-service", help="Set the default service."),
):
    opts = get_options(ctx)
    cfg = load_config(opts.config_path)

    if auth_server is not None:
        cfg.auth.server = normalize_base_url(auth_server)
    if auth_route_version is not None:
        cfg.auth.route_version = auth_route_version
    if username is not None:
        cfg.auth.username = username.strip()
    if user_namespace_id is not None:
        cfg.auth.user_namespace_id = user_namespace_id.strip()
    if default_service is not None:
        cfg.default_service = default_service.strip()
        cfg.services.setdefault(cfg.default_service, ServiceConfig())

    if server is not None or route_version is not None:
        name = service or cfg.default_service
        svc = cfg.services.setdefault(name, ServiceConfig())
        if server is not None:
            svc.server = normalize_base_url(server)
        if route_version is not None:
            svc.route_version = route_version

    saved = save_config(cfg, opts.config_path)
    console.ok(f"Config updated: {saved}")
