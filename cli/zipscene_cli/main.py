from __future__ import annotations

import typer

from .commands import auth_cmd, config_cmd, data_cmd, rpc_cmd
from .logging_ import setup_logging
from .options import CliOptions


def _build_app() -> typer.Typer:
    app = typer.Typer(
        name="zipscene",
        help="Zipscene API CLI",
        no_args_is_help=True,
    )

    app.add_typer(auth_cmd.app, name="auth")
    app.add_typer(config_cmd.app, name="config")
    app.command("rpc")(rpc_cmd.rpc)
    app.command("get")(data_cmd.get)
    app.command("query")(data_cmd.query)
    app.command("count")(data_cmd.count)
    app.command("aggregate")(data_cmd.aggregate)
    app.command("export")(data_cmd.export)

    @app.callback()
    def _main(
            ctx: typer.Context,
            config: str | None = typer.Option(
                None, "--config", envvar="ZIPSCENE_CONFIG", help="Path to config file."
            ),
            server: str | None = typer.Option(None, "--server", help="Override API server to connect to."),
            auth_server: str | None = typer.Option(
                None, "--auth-server", help="URL for auth server used for authentication."
            ),
            username: str | None = typer.Option(
                None, "--username", "--email", help="Username/email to authenticate with."
            ),
            password: str | None = typer.Option(
                None, "--password", help="Password to authenticate with, prompted if not specified."
            ),
            access_token: str | None = typer.Option(
                None, "--access-token", envvar="ZIPSCENE_ACCESS_TOKEN", help="Access token to authenticate with."
            ),
            pretty: bool = typer.Option(True, "--pretty/--no-pretty", help="Pretty-print JSON output."),
            verbose: bool = typer.Option(False, "-v", "--verbose", help="Verbose logs."),
    ):
        setup_logging(verbose)
        if access_token and (username or password):
            raise typer.BadParameter("--access-token cannot be combined with --username/--password")
        ctx.obj = CliOptions(
            config_path=config,
            server=server,
            auth_server=auth_server,
            username=username,
            password=password,
            access_token=access_token,
            pretty=pretty,
        )

    return app


app = _build_app()
