"""Tests for LouveAI configuration."""

from pathlib import Path

import pytest

from louveai.core.config import (
    DEFAULT_CATEGORIES,
    AppConfig,
    Category,
    CategoryCatalog,
    ensure_config_exists,
    get_config_dir,
    get_config_path,
)


class TestConfigPaths:
    """Tests for config directory functions."""

    def test_get_config_dir_returns_path(self):
        """Verify get_config_dir returns a Path."""
        assert "louveai" in str(get_config_dir())

    def test_get_config_path_returns_toml(self):
        """Verify get_config_path points to config.toml."""
        assert get_config_path().name == "config.toml"

    def test_xdg_config_home_is_honored(self, monkeypatch, tmp_path):
        """XDG_CONFIG_HOME relocates the config directory on Linux."""
        monkeypatch.setattr("louveai.core.config.sys.platform", "linux")
        monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path))

        assert get_config_dir() == tmp_path / "louveai"


class TestCategoryCatalog:
    """Tests for the category catalog."""

    def test_preserves_order(self):
        catalog = CategoryCatalog(DEFAULT_CATEGORIES)

        assert catalog.keys == ["caminho", "verdade", "vida", "harpa", "gratidao", "outros"]

    def test_resolve_by_key_and_label(self):
        """Keys and labels resolve case-insensitively."""
        catalog = CategoryCatalog(DEFAULT_CATEGORIES)

        assert catalog.resolve("HARPA").key == "harpa"
        assert catalog.resolve("  harpa cristã ").key == "harpa"

    def test_resolve_unknown_returns_none(self):
        catalog = CategoryCatalog(DEFAULT_CATEGORIES)

        assert catalog.resolve("Louvor Livre") is None
        assert catalog.resolve("") is None

    def test_get_unknown_raises_key_error(self):
        with pytest.raises(KeyError):
            CategoryCatalog(DEFAULT_CATEGORIES).get("missing")

    def test_rejects_empty_catalog(self):
        with pytest.raises(ValueError):
            CategoryCatalog([])

    def test_rejects_duplicate_keys(self):
        with pytest.raises(ValueError):
            CategoryCatalog([Category("a", "A"), Category("a", "Also A")])


class TestAppConfig:
    """Tests for AppConfig load/save."""

    def test_defaults(self):
        config = AppConfig()

        assert config.recent_window_days == 30
        assert config.recent_window_ms == 30 * 24 * 60 * 60 * 1000
        assert len(config.catalog) == 6
        assert config.category_counts == {"caminho": 2, "verdade": 2}

    def test_save_and_load_roundtrip(self, tmp_path):
        """Saved values come back on load."""
        path = tmp_path / "config.toml"
        config = AppConfig(
            model="google/gemini-2.5-flash",
            recent_window_days=14,
            global_prompt="Culto de missões",
            category_counts={"harpa": 1, "outros": 3},
            liturgy=["Abertura", "Louvor"],
            categories=[Category("harpa", "Harpa Cristã"), Category("outros", "Outros")],
            db_path=tmp_path / "data.db",
            log_dir=tmp_path / "logs",
        )
        config.save(path)

        loaded = AppConfig.load(path)

        assert loaded.model == "google/gemini-2.5-flash"
        assert loaded.recent_window_days == 14
        assert loaded.global_prompt == "Culto de missões"
        assert loaded.category_counts == {"harpa": 1, "outros": 3}
        assert loaded.liturgy == ["Abertura", "Louvor"]
        assert loaded.catalog.keys == ["harpa", "outros"]
        assert loaded.db_path == tmp_path / "data.db"
        assert loaded.log_dir == tmp_path / "logs"

    def test_load_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load(tmp_path / "missing.toml")

    def test_load_rejects_negative_quota(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("[generation.category_counts]\nharpa = -1\n")

        with pytest.raises(ValueError):
            AppConfig.load(path)

    def test_log_level_from_file_and_environment(self, tmp_path, monkeypatch):
        path = tmp_path / "config.toml"
        path.write_text('[logging]\nlevel = "INFO"\n')

        assert AppConfig.load(path).log_level == "INFO"

        monkeypatch.setenv("LOUVEAI_LOG_LEVEL", "warning")
        assert AppConfig.load(path).log_level == "warning"

    def test_load_rejects_unknown_log_level(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text('[logging]\nlevel = "chatty"\n')

        with pytest.raises(ValueError):
            AppConfig.load(path)

    def test_environment_overrides(self, tmp_path, monkeypatch):
        """Environment variables take precedence over the file."""
        path = tmp_path / "config.toml"
        AppConfig(db_path=tmp_path / "file.db").save(path)
        monkeypatch.setenv("LOUVEAI_MODEL", "env/model")
        monkeypatch.setenv("LOUVEAI_DB_PATH", str(tmp_path / "env.db"))

        loaded = AppConfig.load(path)

        assert loaded.model == "env/model"
        assert loaded.db_path == tmp_path / "env.db"


class TestEnsureConfigExists:
    """Tests for ensure_config_exists()."""

    def test_creates_default_file(self, tmp_path):
        path = tmp_path / "louveai" / "config.toml"

        config = ensure_config_exists(path)

        assert path.exists()
        assert isinstance(config, AppConfig)

    def test_corrupted_file_is_replaced(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text("this is [not toml")

        config = ensure_config_exists(path)

        assert config.recent_window_days == 30
        assert AppConfig.load(path).recent_window_days == 30
