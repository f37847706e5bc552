"""Unit tests for noted.config and noted._logging."""

import logging
from pathlib import Path

import pytest

from noted._logging import configure_logging
from noted.config import NotedConfig, load_config
from noted.errors import ConfigurationError


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch):
    for name in ("NOTED_NOTES_PATH", "NOTED_TEMPLATES_PATH", "NOTED_FILE_FORMAT", "NOTED_LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)


class TestNotedConfig:
    def test_defaults(self, tmp_path: Path):
        config = NotedConfig(notes_path=tmp_path, user="alex")
        assert config.templates_path == tmp_path / ".templates"
        assert config.bundles_path == tmp_path / ".templates" / "bundles"
        assert config.file_format == "md"
        assert config.embed_cache_ttl == 3600.0

    def test_bundles_follow_custom_templates(self, tmp_path: Path):
        config = NotedConfig(notes_path=tmp_path, templates_path=tmp_path / "tpl")
        assert config.bundles_path == tmp_path / "tpl" / "bundles"
        config.templates_path = None
        assert config.bundles_path == tmp_path / ".templates" / "bundles"

    def test_invalid_file_format(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            NotedConfig(notes_path=tmp_path, file_format="docx")


class TestLoadConfig:
    def test_from_toml(self, tmp_path: Path):
        config_file = tmp_path / "noted.toml"
        config_file.write_text(
            f'[noted]\nnotes_path = "{tmp_path.as_posix()}"\nfile_format = "txt"\nmin_relevance_score = 0.3\n',
            encoding="utf-8",
        )
        config = load_config(config_file)
        assert config.notes_path == tmp_path
        assert config.file_format == "txt"
        assert config.min_relevance_score == 0.3

    def test_environment_then_overrides(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("NOTED_NOTES_PATH", str(tmp_path))
        monkeypatch.setenv("NOTED_FILE_FORMAT", "txt")
        assert load_config().file_format == "txt"
        assert load_config(file_format="md").file_format == "md"
        assert load_config().notes_path == tmp_path

    def test_missing_notes_path(self):
        with pytest.raises(ConfigurationError, match="notes_path"):
            load_config()

    def test_missing_or_invalid_file(self, tmp_path: Path):
        with pytest.raises(ConfigurationError):
            load_config(tmp_path / "absent.toml")
        bad = tmp_path / "bad.toml"
        bad.write_text("notes_path = [", encoding="utf-8")
        with pytest.raises(ConfigurationError):
            load_config(bad)


class TestConfigureLogging:
    @pytest.fixture()
    def package_logger(self):
        logger = logging.getLogger("noted")
        saved = (list(logger.handlers), logger.level, logger.propagate)
        logger.handlers.clear()
        yield logger
        logger.handlers[:] = saved[0]
        logger.setLevel(saved[1])
        logger.propagate = saved[2]

    def test_configures_once(self, package_logger: logging.Logger):
        first = configure_logging("debug")
        second = configure_logging("error")
        assert first is second is package_logger
        assert len(package_logger.handlers) == 1
        assert package_logger.level == logging.DEBUG

    def test_level_from_environment(self, package_logger: logging.Logger, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("NOTED_LOG_LEVEL", "warning")
        configure_logging()
        assert package_logger.level == logging.WARNING
