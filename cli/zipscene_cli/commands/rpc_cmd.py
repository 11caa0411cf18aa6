from __future__ import annotations

import typer

from zipscene_client import ZipsceneClientError

from .. import console
from ..config import load_config
from ..http import fail, make_client, run_async
from ..options import get_options
from ..params import load_object


def rpc(
        ctx: typer.Context,
        method: str = typer.Option(..., "--method", "-m", help="RPC method to call."),
        params: str | None = typer.Option(
            None,
            "--params",
            "-p",
            help="Parameters for the RPC call, as a JSON or YAML object.",
        ),
        params_file: str | None = typer.Option(None, "--params-file", help="Load parameters from a file."),
        service: str | None = typer.Option(None, "--service", "-s", help="Service to connect to."),
        max_retries: int = typer.Option(1, "--max-retries", min=1, help="Attempts when the token is rejected."),
):
    """Run a raw RPC API call and print its result."""
    opts = get_options(ctx)
    try:
        body = load_object(params, params_file)
        cfg = load_config(opts.config_path)
        client = make_client(cfg, opts, service=service)
    except ZipsceneClientError as e:
        fail(e)

    result = run_async(client, lambda c: c.request(method, body, max_retries=max_retries))
    console.print_json(result, pretty=opts.pretty)
