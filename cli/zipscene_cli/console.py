from __future__ import annotations

import json

from rich.console import Console
from rich.markup import escape

console = Console()
err_console = Console(stderr=True)


def print_json(data, *, pretty: bool = True) -> None:
    if pretty:
        console.print_json(data=data)
    else:
        console.print(json.dumps(data, ensure_ascii=False), soft_wrap=True, highlight=False, markup=False, emoji=False)


def print_line(data) -> None:
    """One compact JSON document per line, for streamed rows."""
    console.print(json.dumps(data, ensure_ascii=False), soft_wrap=True, highlight=False, markup=False, emoji=False)


def info(msg: str) -> None:
    console.print(f"[bold cyan]•[/] {escape(msg)}")


def ok(msg: str) -> None:
    console.print(f"[bold green]OK[/] {escape(msg)}")


def warn(msg: str) -> None:
    err_console.print(f"[bold yellow]WARN[/] {escape(msg)}")


def err(msg: str) -> None:
    err_console.print(f"[bold red]ERR[/] {escape(msg)}")
