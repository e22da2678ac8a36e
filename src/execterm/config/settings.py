"""Configuration management for execterm.

Loads settings from a YAML configuration file with environment variable
overrides for the execution backend address and its access token.
Supports .env files.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field, SecretStr
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource

from execterm.domain.models import Language

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config/execterm.yaml")


class BackendConfig(BaseModel):
    url: str = Field(default="ws://127.0.0.1:5000/ws/run", description="WebSocket endpoint")
    token: SecretStr = Field(default=SecretStr(""), description="Opaque access token")
    token_param: str = Field(default="token", min_length=1)
    open_timeout: float = Field(default=10.0, gt=0)
    http_base_url: str = Field(default="http://127.0.0.1:5000")
    http_timeout: float = Field(default=30.0, gt=0)


class TerminalConfig(BaseModel):
    backspace_code: Literal["\x7f", "\b"] = Field(
        default="\x7f", description="Control byte sent to the backend for Backspace"
    )
    exit_label: str = Field(default="[Process exited]", min_length=1)
    stopped_label: str = Field(default="[Stopped by user]", min_length=1)


class SessionConfig(BaseModel):
    restart_policy: Literal["replace", "ignore"] = Field(default="replace")
    default_language: Language = Field(default=Language.PYTHON)


class LoggingConfig(BaseModel):
    level: str = Field(default="INFO")
    format: str = Field(
        default="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    file: str | None = Field(default=None)
    transport_level: str = Field(default="WARNING", description="Level for the websockets library logger")


class Settings(BaseSettings):
    """Root configuration for execterm.

    Loads from YAML file and supports environment variable overrides.
    Reads .env files automatically.
    """

    model_config = {
        "env_prefix": "EXECTERM_",
        "env_nested_delimiter": "__",
        "env_file": ".env",
        "env_file_encoding": "utf-8",
        "extra": "ignore",
    }

    backend: BackendConfig = Field(default_factory=BackendConfig)
    terminal: TerminalConfig = Field(default_factory=TerminalConfig)
    session: SessionConfig = Field(default_factory=SessionConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs and must not mask EXECTERM_* vars
        return env_settings, dotenv_settings, init_settings, file_secret_settings


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from YAML + .env + environment variables.

    Priority: EXECTERM_* env vars > .env > EXECUTION_* vars > YAML file > defaults
    """
    path = Path(config_path) if config_path else DEFAULT_CONFIG_PATH

    _load_dotenv()

    yaml_data = {}
    if path.exists():
        with open(path) as f:
            yaml_data = yaml.safe_load(f) or {}
        logger.info("Loaded configuration from %s", path)
    else:
        logger.warning("Config file %s not found, using defaults + env vars", path)

    _apply_env_overrides(yaml_data)

    return Settings(**yaml_data)


def _load_dotenv() -> None:
    """Load .env file into os.environ if it exists."""
    env_path = Path(".env")
    if not env_path.exists():
        return
    with open(env_path) as f:
        for line in f:
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            if "=" in line:
                key, _, value = line.partition("=")
                key = key.strip()
                value = value.strip()
                if not os.environ.get(key):
                    os.environ[key] = value


def _apply_env_overrides(yaml_data: dict) -> None:
    """Apply environment variable overrides for non-prefixed vars."""
    backend_url = os.environ.get("EXECUTION_BACKEND_URL", "")
    token = os.environ.get("EXECUTION_TOKEN", "")

    if not (backend_url or token):
        return

    backend = yaml_data.setdefault("backend", {})
    if backend_url:
        backend["url"] = backend_url
    if token and not backend.get("token"):
        backend["token"] = token
