from __future__ import annotations

from dataclasses import replace

import typer

from zipscene_client import ZipsceneClientError, resolve_credentials

from .. import console
from ..config import load_config, save_config
from ..http import fail, make_client, prompt_password, run_async
from ..options import get_options

app = typer.Typer(help="Auth commands.")


@app.command("login")
def login(
        ctx: typer.Context,
        username: str | None = typer.Option(None, "--username", "--email", help="Username/email for login."),
        password: str | None = typer.Option(None, "--password", help="Password, prompted if not given."),
        service: str | None = typer.Option(None, "--service", "-s", help="Service whose config to use."),
):
    """Log in with a password and store the access token in the config file."""
    opts = get_options(ctx)
    cfg = load_config(opts.config_path)
    email = username or opts.username or cfg.auth.username
    if not email:
        email = typer.prompt("Username")
    secret = password or opts.password or prompt_password(email)

    try:
        creds = resolve_credentials(
            email=email,
            password=secret,
            user_namespace_id=cfg.auth.user_namespace_id or None,
        )
        client = make_client(cfg, replace(opts, access_token=None), service=service, credentials=creds)
    except ZipsceneClientError as e:
        fail(e)

    token = run_async(client, lambda c: c.authenticate())

    cfg.auth.username = email
    cfg.auth.access_token = token or ""
    save_path = save_config(cfg, opts.config_path)
    console.ok(f"Login successful. Token saved to {save_path}.")


@app.command("logout")
def logout(ctx: typer.Context):
    """Clear the stored access token."""
    opts = get_options(ctx)
    cfg = load_config(opts.config_path)
    cfg.auth.access_token = ""
    save_path = save_config(cfg, opts.config_path)
    console.ok(f"Token cleared from {save_path}.")
