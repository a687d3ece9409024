from __future__ import annotations

import os
from datetime import timedelta
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

_ENV_PREFIX = "AUTHGRID_"


class ServerConfig(BaseModel):
    host: str = "127.0.0.1"
    port: int = Field(default=8080, ge=1, le=65535)
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])
    session_cookie: str = "authgrid_session"


class ChallengeConfig(BaseModel):
    ttl_s: int = Field(default=120, ge=1, le=300)

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_s)


class SessionConfig(BaseModel):
    ttl_s: int = Field(default=24 * 60 * 60, ge=60)

    @property
    def ttl(self) -> timedelta:
        return timedelta(seconds=self.ttl_s)


class StorageConfig(BaseModel):
    backend: Literal["memory", "sqlite"] = "memory"
    db_path: Path = Path("./data/authgrid.db")


class RateLimitConfig(BaseModel):
    enabled: bool = True
    rate_per_s: float = Field(default=100.0, gt=0)
    burst: int = Field(default=200, ge=1)


class ClientConfig(BaseModel):
    api_url: str = "http://localhost:8080"
    keystore: Literal["file", "keyring"] = "file"
    keystore_dir: Path = Path("~/.authgrid")
    allow_fallback: bool = True
    """Permit ECDSA P-256 when Ed25519 is unavailable locally."""
    timeout_s: float = Field(default=10.0, gt=0)

    @property
    def resolved_keystore_dir(self) -> Path:
        return self.keystore_dir.expanduser()


class AuthgridSettings(BaseSettings):
    handle_domain: str = "authgrid.net"
    log_level: str = "INFO"
    log_json: bool = False
    server: ServerConfig = Field(default_factory=ServerConfig)
    challenges: ChallengeConfig = Field(default_factory=ChallengeConfig)
    sessions: SessionConfig = Field(default_factory=SessionConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    rate_limit: RateLimitConfig = Field(default_factory=RateLimitConfig)
    client: ClientConfig = Field(default_factory=ClientConfig)

    model_config = SettingsConfigDict(
        env_prefix=_ENV_PREFIX,
        env_nested_delimiter="__",
        extra="ignore",
    )

    @model_validator(mode="after")
    def _validate_handle_domain(self) -> AuthgridSettings:
        if not self.handle_domain or "@" in self.handle_domain:
            raise ValueError("handle_domain must be a bare domain name")
        return self


def _coerce_env_value(value: str) -> object:
    parsed = yaml.safe_load(value)
    return value if parsed is None else parsed


def _set_nested(mapping: dict[str, object], path: list[str], value: object) -> None:
    current = mapping
    for key in path[:-1]:
        existing = current.get(key)
        if not isinstance(existing, dict):
            existing = {}
            current[key] = existing
        current = existing
    current[path[-1]] = value


def _apply_env_overrides(data: dict[str, object]) -> dict[str, object]:
    merged = dict(data)
    for key, raw_value in os.environ.items():
        if not key.startswith(_ENV_PREFIX):
            continue
        path = key[len(_ENV_PREFIX) :].lower().split("__")
        _set_nested(merged, path, _coerce_env_value(raw_value))
    return merged


def load_config(path: str | Path = "config/authgrid.yaml") -> AuthgridSettings:
    config_path = Path(path)
    if not config_path.exists():
        raise FileNotFoundError(f"config file not found: {config_path}")

    loaded = yaml.safe_load(config_path.read_text(encoding="utf-8")) or {}
    if not isinstance(loaded, dict):
        raise ValueError("config file must contain a top-level mapping")

    raw = loaded.get("authgrid", loaded)
    if not isinstance(raw, dict):
        raise ValueError("authgrid config section must be a mapping")

    return AuthgridSettings.model_validate(_apply_env_overrides(raw))


def load_config_or_default(path: str | Path | None) -> AuthgridSettings:
    """Like ``load_config`` but a missing file yields env-only settings."""
    if path is not None and Path(path).exists():
        return load_config(path)
    return AuthgridSettings.model_validate(_apply_env_overrides({}))


__all__ = [
    "AuthgridSettings",
    "ChallengeConfig",
    "ClientConfig",
    "RateLimitConfig",
    "ServerConfig",
    "SessionConfig",
    "StorageConfig",
    "load_config",
    "load_config_or_default",
]
