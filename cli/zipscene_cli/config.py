from __future__ import annotations

import os
import tomllib
from dataclasses import dataclass, field
from typing import Any

import tomli_w
from platformdirs import user_config_dir

from zipscene_client.config_types import DEFAULT_AUTH_ROUTE_VERSION, DEFAULT_ROUTE_VERSION

APP_NAME = "zipscene"
CONFIG_FILENAME = "config.toml"
ENV_CONFIG_PATH = "ZIPSCENE_CONFIG"
DEFAULT_SERVICE = "dmp"


@dataclass
class AuthConfig:
    server: str = ""
    route_version: int = DEFAULT_AUTH_ROUTE_VERSION
    username: str = ""
    password: str = ""
    access_token: str = ""
    user_namespace_id: str = ""


@dataclass
class ServiceConfig:
    server: str = ""
    route_version: int = DEFAULT_ROUTE_VERSION


@dataclass
class AppConfig:
    auth: AuthConfig = field(default_factory=AuthConfig)
    services: dict[str, ServiceConfig] = field(default_factory=dict)
    default_service: str = DEFAULT_SERVICE


def config_path(override: str | None = None) -> str:
    if override:
        return override
    env_value = os.getenv(ENV_CONFIG_PATH, "").strip()
    if env_value:
        return env_value
    return os.path.join(user_config_dir(APP_NAME), CONFIG_FILENAME)


def default_config() -> AppConfig:
    return AppConfig(
        auth=AuthConfig(),
        services={DEFAULT_SERVICE: ServiceConfig()},
        default_service=DEFAULT_SERVICE,
    )


def normalize_base_url(raw: str | None) -> str:
    value = (raw or "").strip()
    if not value:
        return ""
    value = value.rstrip("/")
    lowered = value.lower()
    if lowered.startswith("http://") or lowered.startswith("https://"):
        return value

    host = value.split("/", 1)[0]
    host = host.split(":", 1)[0].lower()
    if host in {"localhost", "127.0.0.1", "0.0.0.0"}:
        scheme = "http://"
    else:
        scheme = "https://"
    return f"{scheme}{value}"


def _int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _str(value: Any) -> str:
    return str(value or "").strip()


def from_toml(data: dict[str, Any]) -> AppConfig:
    auth_raw = data.get("auth") or {}
    if not isinstance(auth_raw, dict):
        auth_raw = {}
    auth = AuthConfig(
        server=normalize_base_url(_str(auth_raw.get("server"))),
        route_version=_int(auth_raw.get("route_version"), DEFAULT_AUTH_ROUTE_VERSION),
        # "email" is accepted as an alias of "username"
        username=_str(auth_raw.get("username") or auth_raw.get("email")),
        password=str(auth_raw.get("password") or ""),
        access_token=_str(auth_raw.get("access_token")),
        user_namespace_id=_str(auth_raw.get("user_namespace_id")),
    )

    services: dict[str, ServiceConfig] = {}
    services_raw = data.get("services") or {}
    if isinstance(services_raw, dict):
        for name, v in services_raw.items():
            if not isinstance(v, dict):
                continue
            services[str(name)] = ServiceConfig(
                server=normalize_base_url(_str(v.get("server"))),
                route_version=_int(v.get("route_version"), DEFAULT_ROUTE_VERSION),
            )
    if not services:
        services = {DEFAULT_SERVICE: ServiceConfig()}

    default_service = _str(data.get("default_service")) or DEFAULT_SERVICE
    return AppConfig(auth=auth, services=services, default_service=default_service)


def to_toml(cfg: AppConfig) -> dict[str, Any]:
    return {
        "default_service": cfg.default_service,
        "auth": {
            "server": cfg.auth.server,
            "route_version": cfg.auth.route_version,
            "username": cfg.auth.username,
            "password": cfg.auth.password,
            "access_token": cfg.auth.access_token,
            "user_namespace_id": cfg.auth.user_namespace_id,
        },
        "services": {
            name: {"server": s.server, "route_version": s.route_version}
            for name, s in cfg.services.items()
        },
    }


def load_config(path: str | None = None) -> AppConfig:
    try:
        with open(config_path(path), "rb") as f:
            data = tomllib.load(f)
        return from_toml(data)
    except FileNotFoundError:
        return default_config()


def save_config(cfg: AppConfig, path: str | None = None) -> str:
    path = config_path(path)
    os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
    with open(path, "wb") as f:
        f.write(tomli_w.dumps(to_toml(cfg)).encode("utf-8"))
    os.chmod(path, 0o600)
    return path
