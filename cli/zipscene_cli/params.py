from __future__ import annotations

from typing import Any

import yaml

from zipscene_client import InvalidArgument


def _parse_object(text: str, source: str) -> dict[str, Any]:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise InvalidArgument(f"Invalid JSON/YAML object in {source}: {e}") from e
    if not isinstance(data, dict):
        raise InvalidArgument(f"Invalid JSON/YAML object in {source}")
    return data


def merge(base: dict[str, Any], other: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge ``other`` into ``base``; nested objects are combined, other values replaced."""
    for key, value in other.items():
        current = base.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merge(current, value)
        else:
            base[key] = value
    return base


def load_object(text: str | None = None, path: str | None = None) -> dict[str, Any]:
    """Merge an inline JSON/YAML object with one loaded from ``path``."""
    obj: dict[str, Any] = {}
    if text:
        merge(obj, _parse_object(text, "argument"))
    if path:
        try:
            with open(path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            raise InvalidArgument(f"Cannot read {path}: {e.strerror or e}") from e
        merge(obj, _parse_object(content, path))
    return obj


def split_list(value: str | None) -> list[str] | None:
    if not value:
        return None
    items = [item.strip() for item in value.split(",")]
    return [item for item in items if item] or None
