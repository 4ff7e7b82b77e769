"""Configuration loader with .env and YAML support."""

import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv


DEFAULT_STATE_FILE = "./data/import_state.yaml"
DEFAULT_PAUSE_MS = 3000
DEFAULT_READY_TIMEOUT = 30.0


class ConfigError(Exception):
    """Configuration error."""
    pass


class Config:
    """Importer configuration loaded from .env and config/importer.yaml."""

    def __init__(
        self,
        config_dir: Optional[Path] = None,
        env_file: Optional[Path] = None
    ):
        """Initialize configuration.

        Args:
            config_dir: Directory containing config files. Defaults to ./config
            env_file: Path to .env file. Defaults to ./.env
        """
        self._base_dir = Path.cwd()
        self._config_dir = config_dir or self._base_dir / "config"
        self._env_file = env_file or self._base_dir / ".env"

        load_dotenv(self._env_file)

        self._importer_config = self._load_yaml("importer.yaml")

    def _load_yaml(self, filename: str) -> dict:
        """Load a YAML config file."""
        filepath = self._config_dir / filename
        if not filepath.exists():
            return {}
        with open(filepath, "r") as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ConfigError(f"{filepath} must contain a mapping at the top level")
        return data

    @property
    def bot_token(self) -> str:
        """Get Discord bot token from environment."""
        token = os.getenv("DISCORD_BOT_TOKEN")
        if not token:
            raise ConfigError(
                "DISCORD_BOT_TOKEN not set. "
                "Add it to .env file or set as environment variable."
            )
        return token

    @property
    def guild_id(self) -> str:
        """Get the destination guild ID."""
        guild_id = self._importer_config.get("guild_id")
        if not guild_id:
            raise ConfigError(
                "guild_id not set in config/importer.yaml. "
                "Set it to the ID of the server the logs are imported into."
            )
        return str(guild_id)

    @property
    def state_file(self) -> Path:
        """Get the state file path."""
        path = Path(self._importer_config.get("state_file", DEFAULT_STATE_FILE))
        if not path.is_absolute():
            path = self._base_dir / path
        return path

    @property
    def pause_ms(self) -> int:
        """Get the pause after each sent message in milliseconds (default 3000)."""
        value = self._importer_config.get("pause_ms", DEFAULT_PAUSE_MS)
        try:
            pause_ms = int(value)
        except (TypeError, ValueError):
            raise ConfigError(f"pause_ms must be an integer, got {value!r}")
        if pause_ms < 0:
            raise ConfigError(f"pause_ms must not be negative, got {pause_ms}")
        return pause_ms

    @property
    def ready_timeout(self) -> float:
        """Get seconds to wait for the gateway session to become ready (default 30)."""
        value = self._importer_config.get("ready_timeout", DEFAULT_READY_TIMEOUT)
        try:
            return float(value)
        except (TypeError, ValueError):
            raise ConfigError(f"ready_timeout must be a number, got {value!r}")


# Global config instance
_config: Optional[Config] = None


def get_config() -> Config:
    """Get global config instance."""
    global _config
    if _config is None:
        _config = Config()
    return _config


def reload_config() -> Config:
    """Reload configuration from files."""
    global _config
    _config = Config()
    return _config
