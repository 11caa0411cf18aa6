from __future__ import annotations

from typing import Any

import typer

from zipscene_client import ZipsceneClientError, ZipsceneDataClient

from .. import console
from ..config import load_config
from ..http import fail, make_client, resolve_cli_credentials, run_async
from ..options import get_options
from ..params import load_object, split_list

QUERY_HELP = "Query filter as a JSON or YAML object."
FILE_SERVICE = "file"


def _data_client(ctx: typer.Context, profile_type: str, service: str | None) -> ZipsceneDataClient:
    """Data client for ``service``, wired to the file service when one is configured."""
    opts = get_options(ctx)
    try:
        cfg = load_config(opts.config_path)
        creds = resolve_cli_credentials(cfg, opts)
        client = make_client(cfg, opts, service=service, credentials=creds)
        files = None
        file_cfg = cfg.services.get(FILE_SERVICE)
        if file_cfg is not None and file_cfg.server:
            files = make_client(cfg, opts, service=FILE_SERVICE, credentials=creds, server=file_cfg.server)
        return ZipsceneDataClient(client, profile_type, file_service_client=files)
    except ZipsceneClientError as e:
        fail(e)


def _query(text: str | None, path: str | None) -> dict[str, Any]:
    try:
        return load_object(text, path)
    except ZipsceneClientError as e:
        fail(e)


def query(
        ctx: typer.Context,
        profile_type: str = typer.Argument(..., help="Profile type, e.g. person."),
        query_text: str | None = typer.Option(None, "--query", "-q", help=QUERY_HELP),
        query_file: str | None = typer.Option(None, "--query-file", help="Load the query from a file."),
        fields: str | None = typer.Option(None, "--fields", help="Comma-separated fields to return."),
        sort: str | None = typer.Option(None, "--sort", help="Comma-separated sort fields, '-' for descending."),
        skip: int | None = typer.Option(None, "--skip", min=0),
        limit: int | None = typer.Option(None, "--limit", min=0),
        timeout: int | None = typer.Option(None, "--timeout", help="Server-side timeout in seconds."),
        service: str | None = typer.Option(None, "--service", "-s", help="Service to connect to."),
):
    """Run a query and print the matching objects."""
    q = _query(query_text, query_file)
    data = _data_client(ctx, profile_type, service)
    results = run_async(
        data,
        lambda _: data.query(q, fields=split_list(fields), sort=split_list(sort), skip=skip, limit=limit,
                             timeout=timeout),
    )
    console.print_json(results, pretty=get_options(ctx).pretty)


def count(
        ctx: typer.Context,
        profile_type: str = typer.Argument(..., help="Profile type, e.g. person."),
        query_text: str | None = typer.Option(None, "--query", "-q", help=QUERY_HELP),
        query_file: str | None = typer.Option(None, "--query-file", help="Load the query from a file."),
        timeout: int | None = typer.Option(None, "--timeout", help="Server-side timeout in seconds."),
        service: str | None = typer.Option(None, "--service", "-s", help="Service to connect to."),
):
    """Count the objects matching a query."""
    q = _query(query_text, query_file)
    data = _data_client(ctx, profile_type, service)
    total = run_async(data, lambda _: data.count(q, timeout=timeout))
    console.print_json(total, pretty=get_options(ctx).pretty)


def get(
        ctx: typer.Context,
        profile_type: str = typer.Argument(..., help="Profile type, e.g. person."),
        object_id: str = typer.Argument(..., help="Object id."),
        fields: str | None = typer.Option(None, "--fields", help="Comma-separated fields to return."),
        service: str | None = typer.Option(None, "--service", "-s", help="Service to connect to."),
):
    """Fetch a single object by id."""
    data = _data_client(ctx, profile_type, service)
    obj = run_async(data, lambda _: data.get(object_id, fields=split_list(fields)))
    console.print_json(obj, pretty=get_options(ctx).pretty)


def aggregate(
        ctx: typer.Context,
        profile_type: str = typer.Argument(..., help="Profile type, e.g. person."),
        agg_text: str | None = typer.Option(None, "--agg", "-a", help="Aggregate spec as a JSON or YAML object."),
        agg_file: str | None = typer.Option(None, "--agg-file", help="Load the aggregate spec from a file."),
        query_text: str | None = typer.Option(None, "--query", "-q", help=QUERY_HELP),
        query_file: str | None = typer.Option(None, "--query-file", help="Load the query from a file."),
        scan_limit: int | None = typer.Option(None, "--scan-limit", min=0),
        limit: int | None = typer.Option(None, "--limit", min=0),
        service: str | None = typer.Option(None, "--service", "-s", help="Service to connect to."),
):
    """Run an aggregate over the objects matching a query."""
    q = _query(query_text, query_file)
    spec = _query(agg_text, agg_file)
    if not spec:
        console.err("Aggregate spec is required (--agg or --agg-file).")
        raise typer.Exit(code=2)
    data = _data_client(ctx, profile_type, service)
    result = run_async(data, lambda _: data.aggregate(q, spec, limit=limit, scan_limit=scan_limit))
    console.print_json(result, pretty=get_options(ctx).pretty)


def export(
        ctx: typer.Context,
        profile_type: str = typer.Argument(..., help="Profile type, e.g. person."),
        query_text: str | None = typer.Option(None, "--query", "-q", help=QUERY_HELP),
        query_file: str | None = typer.Option(None, "--query-file", help="Load the query from a file."),
        fields: str | None = typer.Option(None, "--fields", help="Comma-separated fields to return."),
        sort: str | None = typer.Option(None, "--sort", help="Comma-separated sort fields, '-' for descending."),
        limit: int | None = typer.Option(None, "--limit", min=0),
        timeout: int | None = typer.Option(None, "--timeout", help="Server-side timeout in seconds."),
        service: str | None = typer.Option(None, "--service", "-s", help="Service to connect to."),
        strategy: str = typer.Option(
            "auto", "--strategy", help="Export strategy: stream, file (via the file service) or auto."
        ),
):
    """Stream matching objects, one JSON document per line."""
    q = _query(query_text, query_file)
    data = _data_client(ctx, profile_type, service)

    async def _drain(_: ZipsceneDataClient) -> None:
        stream = data.export(
            q,
            fields=split_list(fields),
            sort=split_list(sort),
            limit=limit,
            timeout=timeout,
            strategy=None if strategy == "auto" else strategy,
        )
        async for row in stream:
            console.print_line(row)

    run_async(data, _drain)
