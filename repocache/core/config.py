import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import PositiveInt, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from repocache.core.errors import InvalidInput

log = logging.getLogger(__name__)


class Config(BaseSettings):
    """Singleton that provides default configuration for the application process."""

    model_config = SettingsConfigDict(
        env_prefix="REPOCACHE_", case_sensitive=False, extra="forbid"
    )

    requests_timeout: PositiveInt = 300
    concurrency_limit: PositiveInt = 8
    chunk_size: PositiveInt = 8192
    retry_attempts: PositiveInt = 5


_config: Config | None = None


def get_config() -> Config:
    """Get the configuration singleton."""
    global _config

    if not _config:
        _config = Config()

    return _config


def set_config(path: Path) -> None:
    """Set global config variable using input from file."""
    global _config

    _config = _parse_config_file(path)
    log.debug(f"Using configuration from {path}")


def _parse_config_file(path: Path) -> Config:
    try:
        with path.open("rb") as f:
            data: Any = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        raise InvalidInput(f"Could not read config file {path}: {e}") from e

    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise InvalidInput(
            f"Config file {path} must contain a mapping, got {type(data).__name__}",
            solution="Write the config file as 'option: value' pairs.",
        )

    try:
        return Config.model_validate(data)
    except ValidationError as e:
        loc = e.errors()[0]["loc"]
        msg = e.errors()[0]["msg"]
        raise InvalidInput(f"Invalid configuration in {path}: '{loc}: {msg}'") from e
