"""Tests for config module."""

import pytest

from log_importer.config import Config, ConfigError


@pytest.fixture
def config_dir(temp_dir):
    path = temp_dir / "config"
    path.mkdir()
    return path


@pytest.fixture
def no_token(monkeypatch):
    """Remove DISCORD_BOT_TOKEN for the test and restore it afterwards."""
    monkeypatch.setenv("DISCORD_BOT_TOKEN", "placeholder")
    monkeypatch.delenv("DISCORD_BOT_TOKEN")


class TestConfig:
    """Tests for Config loading."""

    def test_defaults(self, temp_dir, config_dir, no_token):
        config = Config(config_dir=config_dir, env_file=temp_dir / ".env")
        assert config.pause_ms == 3000
        assert config.ready_timeout == 30.0
        assert config.state_file.name == "import_state.yaml"
        assert config.state_file.is_absolute()

    def test_missing_token(self, temp_dir, config_dir, no_token):
        config = Config(config_dir=config_dir, env_file=temp_dir / ".env")
        with pytest.raises(ConfigError) as exc_info:
            config.bot_token
        assert "DISCORD_BOT_TOKEN" in str(exc_info.value)

    def test_token_from_env_file(self, temp_dir, config_dir, no_token):
        env_file = temp_dir / ".env"
        env_file.write_text("DISCORD_BOT_TOKEN=from-dotenv\n")
        config = Config(config_dir=config_dir, env_file=env_file)
        assert config.bot_token == "from-dotenv"

    def test_missing_guild(self, temp_dir, config_dir):
        config = Config(config_dir=config_dir, env_file=temp_dir / ".env")
        with pytest.raises(ConfigError):
            config.guild_id

    def test_yaml_values(self, temp_dir, config_dir):
        (config_dir / "importer.yaml").write_text(
            "guild_id: 123456789012345678\n"
            f"state_file: {temp_dir / 'custom.json'}\n"
            "pause_ms: 2500\n"
            "ready_timeout: 10\n"
        )
        config = Config(config_dir=config_dir, env_file=temp_dir / ".env")
        assert config.guild_id == "123456789012345678"
        assert config.state_file == temp_dir / "custom.json"
        assert config.pause_ms == 2500
        assert config.ready_timeout == 10.0

    @pytest.mark.parametrize("value", ["-1", "soon"])
    def test_bad_pause(self, temp_dir, config_dir, value):
        (config_dir / "importer.yaml").write_text(f"pause_ms: {value}\n")
        config = Config(config_dir=config_dir, env_file=temp_dir / ".env")
        with pytest.raises(ConfigError):
            config.pause_ms

    def test_non_mapping_yaml(self, temp_dir, config_dir):
        (config_dir / "importer.yaml").write_text("- a\n- b\n")
        with pytest.raises(ConfigError):
            Config(config_dir=config_dir, env_file=temp_dir / ".env")
