"""Server configuration — load rsheet.yaml settings."""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from rsheet.contracts.common import ConfigError
from rsheet.io.fileops import read_text_safe

CONFIG_FILENAME = "rsheet.yaml"


class ServerConfig(BaseModel):
    """Settings for ``rsheet serve``."""

    model_config = ConfigDict(extra="forbid")

    transport: Literal["stdio", "tcp"] = "stdio"
    host: str = "127.0.0.1"
    port: int = Field(default=6991, ge=0, le=65535)
    reply_format: Literal["json", "text"] = "json"
    events: bool = False
    trace: Optional[str] = None

    @classmethod
    def load(cls, path: str | Path) -> "ServerConfig":
        """Load config from a YAML file."""
        try:
            text = read_text_safe(path)
            data = yaml.safe_load(text) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"Cannot read config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigError(f"Config {path} must be a mapping/object.")
        try:
            return cls(**data)
        except ValidationError as e:
            raise ConfigError(f"Invalid config {path}: {e}") from e

    @classmethod
    def load_from_dir(cls, directory: str | Path) -> "ServerConfig | None":
        """Try to load rsheet.yaml from a directory. Returns None if not found."""
        path = Path(directory) / CONFIG_FILENAME
        if path.exists():
            return cls.load(path)
        return None

    def merged(self, **overrides: Any) -> "ServerConfig":
        """Return a copy with every non-None override applied."""
        updates = {k: v for k, v in overrides.items() if v is not None}
        try:
            return self.model_validate({**self.model_dump(), **updates})
        except ValidationError as e:
            raise ConfigError(f"Invalid option: {e}") from e
