"""Client configuration loading and validation."""

from __future__ import annotations

import json
import os
from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, ClassVar, Dict, Iterator, Literal, Optional, Tuple

import yaml
from pydantic import AnyHttpUrl, Field, PositiveFloat
from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from yeep_client.environment import is_browser

DEFAULT_CONFIG_LOCATIONS: tuple[Path, ...] = (
    Path("./config/yeep.yaml"),
    Path("./config/yeep.yml"),
    Path("~/.config/yeep/client.yaml"),
)

CONFIG_PARSERS: Dict[str, Callable[[str], Any]] = {
    ".yaml": yaml.safe_load,
    ".yml": yaml.safe_load,
    ".json": json.loads,
}

AuthType = Literal["bearer", "cookie"]


def config_file_candidates() -> Iterator[Path]:
    """Yield config file locations in lookup order; ``YEEP_CONFIG_FILE`` wins."""

    explicit = os.getenv("YEEP_CONFIG_FILE")
    if explicit:
        yield Path(explicit).expanduser()
    for location in DEFAULT_CONFIG_LOCATIONS:
        yield location.expanduser()


def read_config_file(path: Path) -> Dict[str, Any]:
    """Parse ``path`` by suffix and return its top-level mapping."""

    parse = CONFIG_PARSERS.get(path.suffix.lower())
    if parse is None:
        raise ValueError(f"Unsupported client config format: {path}")
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise RuntimeError(f"Cannot read client config file {path}") from exc
    try:
        raw = parse(text)
    except (yaml.YAMLError, ValueError) as exc:
        raise ValueError(f"Client config file {path} is not valid {path.suffix[1:].upper()}") from exc
    if raw is None:
        return {}
    if not isinstance(raw, dict):
        raise ValueError(f"Client config file {path} must hold a mapping, not {type(raw).__name__}")
    return raw


class ConfigFileSource(PydanticBaseSettingsSource):
    """Settings source backed by the first existing config file."""

    def get_field_value(self, field: FieldInfo, field_name: str) -> Tuple[Any, str, bool]:
        # values are returned in bulk from __call__
        return None, field_name, False

    def __call__(self) -> Dict[str, Any]:
        for path in config_file_candidates():
            if path.suffix.lower() in CONFIG_PARSERS and path.is_file():
                data = read_config_file(path)
                data.setdefault("config_path", path)
                return data
        return {}


class ClientSettings(BaseSettings):
    """Validated settings for a client instance."""

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_prefix="YEEP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Remote service
    base_url: AnyHttpUrl = Field(
        description="Base URL of the remote service, e.g. https://demo.yeep.com.",
    )
    schema_path: str = Field(
        default="/api/docs",
        description="Path of the schema document describing callable operations.",
    )
    operation_method: str = Field(
        default="post",
        description="HTTP method that marks a schema entry as a callable operation.",
    )
    request_timeout_seconds: PositiveFloat = Field(
        default=30.0,
        description="Per-request timeout applied by the HTTP transport.",
    )

    # Session
    auth_type: Optional[AuthType] = Field(
        default=None,
        description="Session variant; defaults to cookie in a browser and bearer elsewhere.",
    )
    refresh_margin_seconds: float = Field(
        default=10.0,
        ge=0,
        description="Renew bearer tokens this many seconds before they expire.",
    )
    refresh_retry_floor_seconds: PositiveFloat = Field(
        default=0.3,
        description="Base delay used for refresh retries when the failed attempt was immediate.",
    )
    refresh_retry_max_delay_seconds: PositiveFloat = Field(
        default=600.0,
        description="Upper bound for the exponential refresh retry delay.",
    )
    refresh_retry_jitter: float = Field(
        default=0.1,
        ge=0,
        le=1,
        description="Jitter factor applied to refresh retry delays (0.0-1.0).",
    )
    visibility_tracking: Optional[bool] = Field(
        default=None,
        description="Pause refreshes while the host page is hidden; defaults to browser detection.",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO",
        description="Minimum log level used by the command line entrypoint.",
    )

    config_path: Path | None = Field(
        default=None,
        description="Resolved path to the on-disk config that seeded the settings.",
        exclude=True,
    )

    @field_validator("log_level", "auth_type", "operation_method", mode="before")
    @classmethod
    def _normalize_case(cls, value: Any, info) -> Any:
        if not isinstance(value, str):
            return value
        if info.field_name == "log_level":
            return value.upper()
        return value.lower()

    @field_validator("schema_path")
    @classmethod
    def _ensure_leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else f"/{value}"

    @property
    def resolved_auth_type(self) -> AuthType:
        if self.auth_type is not None:
            return self.auth_type
        return "cookie" if is_browser() else "bearer"

    @property
    def resolved_visibility_tracking(self) -> bool:
        if self.visibility_tracking is not None:
            return self.visibility_tracking
        return is_browser()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[ClientSettings],
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            ConfigFileSource(settings_cls),
            env_settings,
            dotenv_settings,
            file_secret_settings,
        )


@lru_cache()
def get_settings() -> ClientSettings:
    """Return memoized client settings."""

    return ClientSettings()
