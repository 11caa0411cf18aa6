from __future__ import annotations

from dataclasses import dataclass

import typer


@dataclass
class CliOptions:
    config_path: str | None = None
    server: str | None = None
    auth_server: str | None = None
    username: str | None = None
    password: str | None = None
    access_token: str | None = None
    pretty: bool = True


def get_options(ctx: typer.Context) -> CliOptions:
    obj = ctx.obj
    if isinstance(obj, CliOptions):
        return obj
    return CliOptions()
