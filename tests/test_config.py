"""Tests for configuration persistence system."""

import json

import pytest

from piano_studio.core import config as config_module
from piano_studio.core.config import ConfigManager


@pytest.fixture
def temp_config_dir(tmp_path):
    """Provide a temporary config directory for testing."""
    return tmp_path / "test_config"


@pytest.fixture
def config(temp_config_dir):
    """Provide a ConfigManager instance with temporary storage."""
    return ConfigManager(config_dir=temp_config_dir)


class TestConfigInit:
    """Test configuration initialization."""

    def test_creates_default_config_if_not_exists(self, config, temp_config_dir):
        """Should create default config.json if it doesn't exist."""
        assert (temp_config_dir / "config.json").exists()
        loaded = json.loads((temp_config_dir / "config.json").read_text(encoding="utf-8"))
        assert loaded["version"] == "1.0"
        assert loaded["tempo"] == {"bpm": 120, "beats_per_measure": 4, "beat_unit": 4}
        assert "midi" in loaded
        assert "recording" in loaded

    def test_creates_config_directory(self, temp_config_dir):
        assert not temp_config_dir.exists()
        ConfigManager(config_dir=temp_config_dir)
        assert temp_config_dir.exists()


class TestConfigGet:
    def test_get_section(self, config):
        tempo = config.get("tempo")
        assert isinstance(tempo, dict)
        assert "bpm" in tempo

    def test_get_nested_key(self, config):
        assert config.get("tempo.beat_unit") == 4

    def test_get_nonexistent_key_returns_default(self, config):
        assert config.get("nonexistent.key", "default") == "default"

    def test_get_through_scalar_returns_default(self, config):
        assert config.get("tempo.bpm.deeper", 7) == 7


class TestConfigSet:
    def test_set_nested_key(self, config, temp_config_dir):
        """Should set nested config value and persist to disk."""
        config.set("midi.last_port", "Test Port")
        assert config.get("midi.last_port") == "Test Port"

        reloaded = ConfigManager(config_dir=temp_config_dir)
        assert reloaded.get("midi.last_port") == "Test Port"

    def test_set_creates_missing_intermediate_keys(self, config):
        config.set("new.deep.nested.key", 42)
        assert config.get("new.deep.nested.key") == 42

    def test_update_multiple(self, config, temp_config_dir):
        config.update({"tempo.bpm": 96, "tempo.beat_unit": 8})
        reloaded = ConfigManager(config_dir=temp_config_dir)
        assert reloaded.get("tempo.bpm") == 96
        assert reloaded.get("tempo.beat_unit") == 8
        assert reloaded.get("tempo.beats_per_measure") == 4


class TestConfigPersistence:
    def test_merges_new_defaults(self, temp_config_dir):
        temp_config_dir.mkdir(parents=True)
        (temp_config_dir / "config.json").write_text(
            json.dumps({"tempo": {"bpm": 72}}), encoding="utf-8",
        )
        config = ConfigManager(config_dir=temp_config_dir)
        assert config.get("tempo.bpm") == 72
        assert config.get("tempo.beat_unit") == 4
        assert config.get("midi.auto_connect") is True

    def test_corrupt_file_uses_defaults(self, temp_config_dir, caplog):
        temp_config_dir.mkdir(parents=True)
        (temp_config_dir / "config.json").write_text("{not json", encoding="utf-8")
        config = ConfigManager(config_dir=temp_config_dir)
        assert config.get("tempo.bpm") == 120
        assert "Failed to load config" in caplog.text

    def test_non_object_root_uses_defaults(self, temp_config_dir):
        temp_config_dir.mkdir(parents=True)
        (temp_config_dir / "config.json").write_text("[1, 2]", encoding="utf-8")
        assert ConfigManager(config_dir=temp_config_dir).get("tempo.bpm") == 120

    def test_reset(self, config):
        config.set("tempo.bpm", 200)
        config.reset()
        assert config.get("tempo.bpm") == 120

    def test_get_all_is_copy(self, config):
        snapshot = config.get_all()
        snapshot["tempo"]["bpm"] = 1
        assert config.get("tempo.bpm") == 120


class TestGlobalConfig:
    def test_singleton(self, monkeypatch, tmp_path):
        monkeypatch.setattr(config_module, "_global_config", None)
        monkeypatch.setattr(config_module.Path, "home", staticmethod(lambda: tmp_path))
        first = config_module.get_config()
        assert first is config_module.get_config()
        assert first.config_dir == tmp_path / ".piano_studio"
