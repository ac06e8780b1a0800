"""Runtime configuration: cloud credentials and network timeouts.

Values come from the PLUM_* environment variables, optionally overridden by
a YAML file:

    username: me@example.com
    password: hunter2
    api_timeout: 8
    command_timeout: 5
    discovery_interval: 300
"""

from __future__ import annotations

import os
from pathlib import Path
from typing import Self, cast

import yaml
from pydantic import BaseModel, Field, SecretStr

from plum_lightpad import const
from plum_lightpad.logging_abstraction import get_logger

logger = get_logger(__name__)

_ENV_OVERRIDES: dict[str, str] = {
    "api_base": "PLUM_API_BASE",
    "api_timeout": "PLUM_API_TIMEOUT",
    "command_timeout": "PLUM_COMMAND_TIMEOUT",
    "discovery_interval": "PLUM_DISCOVERY_INTERVAL",
}


class PlumConfig(BaseModel):
    username: str | None = None
    password: SecretStr | None = None
    api_base: str = const.PLUM_API_BASE
    api_timeout: float = Field(default=const.PLUM_API_TIMEOUT, gt=0)
    command_timeout: float = Field(default=const.PLUM_COMMAND_TIMEOUT, gt=0)
    discovery_interval: float = Field(default=const.PLUM_DISCOVERY_INTERVAL, ge=0)

    @property
    def has_credentials(self) -> bool:
        return bool(self.username and self.password and self.password.get_secret_value())

    @classmethod
    def from_env(cls) -> Self:
        """Build a config from the PLUM_* environment variables.

        Raises:
            pydantic.ValidationError: a timeout or interval is not a valid number

        """
        data: dict[str, object] = {
            "username": os.environ.get("PLUM_ACCOUNT_USERNAME") or None,
            "password": os.environ.get("PLUM_ACCOUNT_PASSWORD") or None,
        }
        for field_name, env_var in _ENV_OVERRIDES.items():
            value = os.environ.get(env_var)
            if value:
                data[field_name] = value
        return cls.model_validate(data)

    @classmethod
    def load(cls, path: Path) -> Self:
        """Load a YAML config file on top of the environment settings.

        Raises:
            OSError: the file cannot be read
            yaml.YAMLError: the file is not valid YAML
            pydantic.ValidationError: a value has the wrong type or range

        """
        logger.debug("Loading config file: %s", path)
        with path.open(encoding="utf-8") as f:
            raw: object = yaml.safe_load(f)
        if raw is None:
            raw = {}
        if not isinstance(raw, dict):
            msg = f"Config file {path} must contain a mapping, got {type(raw).__name__}"
            raise ValueError(msg)
        base = cls.from_env().model_dump(exclude_none=True)
        merged = base | cast("dict[str, object]", raw)
        return cls.model_validate(merged)
