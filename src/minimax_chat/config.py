"""Configuration for the MiniMax chat client.

Config discovery for ``load_config`` (first match wins):
  1. Explicit path argument
  2. ``./minimax_chat.yaml``
  3. ``~/.config/minimax-chat/config.yaml``
  4. Built-in defaults

``MINIMAX_API_KEY`` / ``MINIMAX_BASE_URL`` fill in values the file leaves out.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field

_logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.minimax.io/v1"

API_KEY_ENV = "MINIMAX_API_KEY"
BASE_URL_ENV = "MINIMAX_BASE_URL"


class ClientConfig(BaseModel):
    """Connection and retry settings shared by every call on a client."""

    base_url: str = DEFAULT_BASE_URL
    api_key: str = ""
    reasoning_split: bool = False
    max_retries: int = Field(3, ge=0)
    retry_delay: float = Field(1.0, ge=0)  # seconds; doubles per retry
    timeout: float = Field(120, gt=0)
    connect_timeout: float = Field(30, gt=0)
    stream_read_timeout: float = Field(60, gt=0)

    @classmethod
    def from_env(cls, **overrides: Any) -> ClientConfig:
        """Build a config from environment variables plus explicit overrides."""
        raw: dict[str, Any] = {}
        _apply_env(raw)
        raw.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(raw)


class ModelSettings(BaseModel):
    """Per-model sampling defaults.  Unset fields fall back to built-ins."""

    temperature: Optional[float] = Field(None, gt=0.0, le=1.0)
    top_p: Optional[float] = Field(None, gt=0.0, le=1.0)
    max_tokens: Optional[int] = Field(None, gt=0)


CONFIG_FILENAME = "minimax_chat.yaml"

_SEARCH_PATHS = [
    Path(CONFIG_FILENAME),
    Path.home() / ".config" / "minimax-chat" / "config.yaml",
]


def _apply_env(raw: dict[str, Any]) -> None:
    if not raw.get("api_key") and os.environ.get(API_KEY_ENV):
        raw["api_key"] = os.environ[API_KEY_ENV]
    if not raw.get("base_url") and os.environ.get(BASE_URL_ENV):
        raw["base_url"] = os.environ[BASE_URL_ENV]


def load_config(path: str | Path | None = None) -> ClientConfig:
    """Load a :class:`ClientConfig` from YAML.

    Parameters
    ----------
    path:
        Explicit config path.  If *None*, search default locations.

    Raises
    ------
    FileNotFoundError
        An explicit *path* was given but does not exist.
    """
    config_path: Path | None = None

    if path is not None:
        config_path = Path(path)
        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
    else:
        for candidate in _SEARCH_PATHS:
            if candidate.exists():
                config_path = candidate
                break

    raw: dict[str, Any] = {}
    if config_path is None:
        _logger.info("No config file found, using defaults")
    else:
        _logger.info("Loading config from %s", config_path)
        with open(config_path) as f:
            raw = yaml.safe_load(f) or {}

    _apply_env(raw)
    return ClientConfig.model_validate(raw)
