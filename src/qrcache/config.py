from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal

from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from .cache.disk import DEFAULT_MAX_AGE, DEFAULT_MAX_SIZE
from .cache.memory import DEFAULT_BYTE_LIMIT, DEFAULT_COUNT_LIMIT
from .network.fetcher import (
    DEFAULT_MAX_CONCURRENT_DOWNLOADS,
    DEFAULT_REQUEST_TIMEOUT,
    DEFAULT_RESOURCE_TIMEOUT,
)
from .resilience.backoff import RETRY_PRESETS, RetryConfig

DEFAULT_USER_AGENT = "QRCache/1.0"
DEFAULT_CACHE_DIR = Path(".cache/qrcache")

RetryPreset = Literal["default", "aggressive", "conservative"]


class CacheSettings(BaseModel):
    cache_dir: Path = Field(default=DEFAULT_CACHE_DIR)
    logs_dir: Path = Field(default=Path("logs"))
    memory_byte_limit: int = Field(default=DEFAULT_BYTE_LIMIT, gt=0)
    memory_count_limit: int = Field(default=DEFAULT_COUNT_LIMIT, gt=0)
    disk_byte_limit: int = Field(default=DEFAULT_MAX_SIZE, ge=0)
    disk_max_age_seconds: float = Field(default=DEFAULT_MAX_AGE, ge=0)
    max_concurrent_downloads: int = Field(default=DEFAULT_MAX_CONCURRENT_DOWNLOADS, ge=1)
    request_timeout: float = Field(default=DEFAULT_REQUEST_TIMEOUT, gt=0)
    resource_timeout: float = Field(default=DEFAULT_RESOURCE_TIMEOUT, gt=0)
    retry_preset: RetryPreset = Field(default="default")
    user_agent: str = Field(default=DEFAULT_USER_AGENT)

    model_config = {
        "frozen": True,
    }

    @property
    def retry_config(self) -> RetryConfig:
        return RETRY_PRESETS[self.retry_preset]


def _env_int(key: str, default: int) -> int:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return int(value)


def _env_float(key: str, default: float) -> float:
    value = os.getenv(key)
    if value is None or value.strip() == "":
        return default
    return float(value)


def _cli_or_env_int(cli_value: Any | None, env_key: str, default: int) -> int:
    if cli_value is not None:
        return int(cli_value)
    return _env_int(env_key, default)


def _cli_or_env_float(cli_value: Any | None, env_key: str, default: float) -> float:
    if cli_value is not None:
        return float(cli_value)
    return _env_float(env_key, default)


def load_settings(cli_args: dict[str, Any] | None = None) -> CacheSettings:
    load_dotenv()
    cli_args = cli_args or {}

    data: dict[str, Any] = {
        "cache_dir": Path(cli_args.get("cache_dir") or os.getenv("QRCACHE_DIR", str(DEFAULT_CACHE_DIR))).expanduser(),
        "logs_dir": Path(cli_args.get("logs_dir") or os.getenv("LOGS_DIR", "logs")).expanduser(),
        "memory_byte_limit": _cli_or_env_int(cli_args.get("memory_bytes"), "MEMORY_CACHE_BYTES", DEFAULT_BYTE_LIMIT),
        "memory_count_limit": _cli_or_env_int(cli_args.get("memory_count"), "MEMORY_CACHE_COUNT", DEFAULT_COUNT_LIMIT),
        "disk_byte_limit": _cli_or_env_int(cli_args.get("disk_bytes"), "DISK_CACHE_BYTES", DEFAULT_MAX_SIZE),
        "disk_max_age_seconds": _cli_or_env_float(cli_args.get("max_age"), "DISK_CACHE_MAX_AGE", DEFAULT_MAX_AGE),
        "max_concurrent_downloads": _cli_or_env_int(
            cli_args.get("max_concurrent"), "MAX_CONCURRENT_DOWNLOADS", DEFAULT_MAX_CONCURRENT_DOWNLOADS
        ),
        "request_timeout": _cli_or_env_float(cli_args.get("request_timeout"), "REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT),
        "resource_timeout": _cli_or_env_float(cli_args.get("resource_timeout"), "RESOURCE_TIMEOUT", DEFAULT_RESOURCE_TIMEOUT),
        "retry_preset": (cli_args.get("retry_preset") or os.getenv("RETRY_PRESET", "default")).lower(),
        "user_agent": cli_args.get("user_agent") or os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
    }

    try:
        settings = CacheSettings(**data)
    except ValidationError as exc:
        raise RuntimeError(f"Invalid configuration: {exc}")

    settings.logs_dir.mkdir(parents=True, exist_ok=True)
    return settings
