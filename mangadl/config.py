"""Configuration model and loaders for mangadl.

Responsibilities:
- Define download tuning (timeouts, wave sizes, retry policy) as a typed dataclass.
- Provide loader entry points for YAML- and environment-based configuration.

Key types:
- `DownloaderConfig`: normalized runtime settings for one download run.
- `ConfigLoader`: static construction helpers for `DownloaderConfig`.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
import os
from pathlib import Path
from typing import Any, Mapping

import yaml

from .parsing import (
    normalize_optional_string,
    parse_int_in_range,
    parse_positive_float,
)


_DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/108.0.0.0 Safari/537.36"
)


@dataclass(slots=True)
class DownloaderConfig:
    """Runtime configuration for one download run.

    Attributes:
        api_base_url: Root URL of the MangaDex REST API.
        user_agent: `User-Agent` header sent with every request.
        referer: `Referer` header sent with every request.
        request_timeout_seconds: Per-request timeout, API and page downloads alike.
        default_page_limit: Page size used when walking paginated chapter feeds.
        volumes_per_batch: Volume jobs started per wave.
        chapters_per_batch: Chapter downloads started per wave.
        pages_per_batch: Page downloads started per wave.
        retry_delay_ms: First backoff delay before a chapter retry.
        max_retries: Total attempts per chapter, first attempt included.
        zip_compression_level: Deflate level for zip artifacts (0-9).
        output_dir: Root directory receiving per-manga output folders.
    """

    api_base_url: str = "https://api.mangadex.org"
    user_agent: str = _DEFAULT_USER_AGENT
    referer: str = "https://mangadex.org"
    request_timeout_seconds: float = 30.0
    default_page_limit: int = 500
    volumes_per_batch: int = 2
    chapters_per_batch: int = 5
    pages_per_batch: int = 5
    retry_delay_ms: int = 10000
    max_retries: int = 5
    zip_compression_level: int = 6
    output_dir: Path = field(default_factory=lambda: Path("downloads"))

    @property
    def headers(self) -> dict[str, str]:
        """Return the HTTP headers shared by API and page requests."""

        return {"User-Agent": self.user_agent, "Referer": self.referer}

    def validate(self) -> None:
        """Validate configuration values before any download starts."""

        if not self.api_base_url.strip():
            raise ValueError("`api_base_url` must be a non-empty URL.")
        if self.request_timeout_seconds <= 0:
            raise ValueError("`request_timeout_seconds` must be a positive number.")
        for name in (
            "default_page_limit",
            "volumes_per_batch",
            "chapters_per_batch",
            "pages_per_batch",
            "max_retries",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"`{name}` must be a positive integer.")
        if self.retry_delay_ms < 0:
            raise ValueError("`retry_delay_ms` must not be negative.")
        if not 0 <= self.zip_compression_level <= 9:
            raise ValueError("`zip_compression_level` must be between 0 and 9.")


class ConfigLoader:
    """Factory methods for loading configuration from external sources."""

    _FIELD_NAMES = frozenset(item.name for item in fields(DownloaderConfig))
    _ENV_PREFIX = "MANGADL_"

    @staticmethod
    def from_yaml(path: Path) -> DownloaderConfig:
        """Load configuration from a YAML mapping file."""

        raw_text = path.read_text(encoding="utf-8")
        try:
            payload = yaml.safe_load(raw_text)
        except yaml.YAMLError as exc:
            raise ValueError(f"YAML config `{path}` could not be parsed: {exc}") from exc
        if payload is None:
            payload = {}
        if not isinstance(payload, Mapping):
            raise ValueError(f"YAML config `{path}` must contain a top-level mapping.")
        return ConfigLoader._build_config_from_mapping(payload, f"YAML config `{path}`")

    @staticmethod
    def from_env(env: Mapping[str, str] | None = None) -> DownloaderConfig:
        """Load configuration overrides from `MANGADL_*` environment variables."""

        source = env if env is not None else os.environ
        payload: dict[str, Any] = {}
        for name in ConfigLoader._FIELD_NAMES:
            env_key = f"{ConfigLoader._ENV_PREFIX}{name.upper()}"
            value = normalize_optional_string(source.get(env_key))
            if value is not None:
                payload[name] = value
        return ConfigLoader._build_config_from_mapping(payload, "Environment")

    @staticmethod
    def _build_config_from_mapping(
        payload: Mapping[str, Any], source_label: str
    ) -> DownloaderConfig:
        """Build and validate a config from a loosely typed mapping."""

        unknown = sorted(set(payload).difference(ConfigLoader._FIELD_NAMES))
        if unknown:
            key_list = ", ".join(unknown)
            raise ValueError(f"{source_label} includes unsupported key(s): {key_list}.")

        defaults = DownloaderConfig()
        try:
            config = DownloaderConfig(
                api_base_url=ConfigLoader._string(payload, "api_base_url", defaults.api_base_url),
                user_agent=ConfigLoader._string(payload, "user_agent", defaults.user_agent),
                referer=ConfigLoader._string(payload, "referer", defaults.referer),
                request_timeout_seconds=(
                    parse_positive_float(
                        payload["request_timeout_seconds"], "request_timeout_seconds"
                    )
                    if "request_timeout_seconds" in payload
                    else defaults.request_timeout_seconds
                ),
                default_page_limit=ConfigLoader._int(
                    payload, "default_page_limit", defaults.default_page_limit
                ),
                volumes_per_batch=ConfigLoader._int(
                    payload, "volumes_per_batch", defaults.volumes_per_batch
                ),
                chapters_per_batch=ConfigLoader._int(
                    payload, "chapters_per_batch", defaults.chapters_per_batch
                ),
                pages_per_batch=ConfigLoader._int(
                    payload, "pages_per_batch", defaults.pages_per_batch
                ),
                retry_delay_ms=ConfigLoader._int(
                    payload, "retry_delay_ms", defaults.retry_delay_ms, minimum=0
                ),
                max_retries=ConfigLoader._int(payload, "max_retries", defaults.max_retries),
                zip_compression_level=ConfigLoader._int(
                    payload,
                    "zip_compression_level",
                    defaults.zip_compression_level,
                    minimum=0,
                    maximum=9,
                ),
                output_dir=Path(
                    ConfigLoader._string(payload, "output_dir", str(defaults.output_dir))
                ),
            )
        except ValueError as exc:
            raise ValueError(f"{source_label}: {exc}") from exc
        config.validate()
        return config

    @staticmethod
    def _string(payload: Mapping[str, Any], key: str, default: str) -> str:
        if key not in payload:
            return default
        value = normalize_optional_string(payload[key])
        if value is None:
            raise ValueError(f"`{key}` must be a non-empty string.")
        return value

    @staticmethod
    def _int(
        payload: Mapping[str, Any],
        key: str,
        default: int,
        *,
        minimum: int = 1,
        maximum: int | None = None,
    ) -> int:
        if key not in payload:
            return default
        return parse_int_in_range(payload[key], key, minimum=minimum, maximum=maximum)
