"""Load server settings from an optional ``taskboard.yaml`` and the environment.

Precedence, lowest first: built-in defaults, the YAML file (``taskboard.yaml``
in the working directory, or the path in ``TASKBOARD_CONFIG``), then
``TASKBOARD_*`` environment variables.
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any, Literal, Mapping, Optional

import yaml
from loguru import logger
from pydantic import BaseModel, Field, ValidationError, field_validator

from .constants import (
    CONFIG_ENV_VAR,
    CONFIG_FILE,
    DEFAULT_HEARTBEAT_SECONDS,
    DEFAULT_PAGE_LIMIT,
    DEFAULT_TOKEN_EXPIRE_MINUTES,
    ENV_PREFIX,
    MAX_PAGE_LIMIT,
    STATE_DIR_NAME,
)


class Settings(BaseModel):
    """Runtime configuration for the API server and its collaborators."""

    host: str = "127.0.0.1"
    port: int = 3000
    cors_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])
    enable_cors: bool = True

    store_backend: Literal["memory", "file"] = "memory"
    state_dir: Path = Field(default_factory=lambda: Path.cwd() / STATE_DIR_NAME)

    jwt_secret: str = "dev-secret-change-in-production"
    jwt_algorithm: str = "HS256"
    token_expire_minutes: int = DEFAULT_TOKEN_EXPIRE_MINUTES

    log_level: str = "INFO"
    default_page_limit: int = DEFAULT_PAGE_LIMIT
    max_page_limit: int = MAX_PAGE_LIMIT
    heartbeat_seconds: float = DEFAULT_HEARTBEAT_SECONDS

    @field_validator("cors_origins", mode="before")
    @classmethod
    def _split_origins(cls, value: Any) -> Any:
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return value

    @field_validator("log_level")
    @classmethod
    def _upper_level(cls, value: str) -> str:
        return value.upper()


def load_config_file(path: Path) -> tuple[dict[str, Any], str | None]:
    """Load the optional YAML config file.

    Args:
        path: Location of the config file.

    Returns:
        A tuple of `(config, error_message)`. If the file is missing, returns `({}, None)`.
    """
    if not path.exists():
        return {}, None
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        return {}, f"Unable to read {path}: {exc}"
    if data is None:
        return {}, None
    if not isinstance(data, dict):
        return {}, f"{path} must contain a mapping at the top level"
    return data, None


def _env_overrides(env: Mapping[str, str]) -> dict[str, Any]:
    out: dict[str, Any] = {}
    for name in Settings.model_fields:
        key = f"{ENV_PREFIX}{name.upper()}"
        if key in env:
            out[name] = env[key]
    return out


def load_settings(
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build :class:`Settings` from defaults, the YAML file, and the environment.

    Args:
        config_path: Explicit config file; falls back to ``TASKBOARD_CONFIG`` or
            ``./taskboard.yaml``.
        env: Environment mapping (defaults to ``os.environ``).

    Returns:
        Validated settings.  An unreadable config file is logged and ignored.
    """
    env = os.environ if env is None else env
    if config_path is None:
        config_path = Path(env.get(CONFIG_ENV_VAR) or CONFIG_FILE)

    data, err = load_config_file(config_path)
    if err:
        logger.warning("Ignoring config file: {}", err)
    data.update(_env_overrides(env))
    try:
        return Settings(**data)
    except ValidationError as exc:
        raise ValueError(f"Invalid taskboard settings: {exc}") from exc
