"""Tests for configuration: vault discovery and the settings file."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from notelinker.config import (
    ConfigurationError,
    _discover_vault_root,
    get_cache_path,
    get_settings_path,
    get_vault_root,
    load_settings,
    save_settings,
)
from notelinker.models import Settings


# =============================================================================
# Vault discovery
# =============================================================================


class TestVaultRoot:
    def test_explicit_path_wins(self, tmp_vault: Path, tmp_path: Path):
        other = tmp_path / "other"
        other.mkdir()
        assert get_vault_root(other) == other.resolve()

    def test_env_var(self, tmp_vault: Path):
        assert get_vault_root() == tmp_vault.resolve()

    def test_env_var_must_be_directory(self, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("NOTELINKER_VAULT_ROOT", str(tmp_path / "missing"))
        with pytest.raises(ConfigurationError, match="not a directory"):
            get_vault_root()

    def test_explicit_path_must_exist(self, tmp_path: Path):
        with pytest.raises(ConfigurationError, match="does not exist"):
            get_vault_root(tmp_path / "missing")

    def test_discovers_obsidian_vault_from_subdirectory(self, tmp_path: Path):
        vault = tmp_path / "notes"
        (vault / ".obsidian").mkdir(parents=True)
        nested = vault / "a" / "b"
        nested.mkdir(parents=True)

        assert _discover_vault_root(nested) == vault.resolve()

    def test_discovery_gives_up(self, tmp_path: Path):
        assert _discover_vault_root(tmp_path, max_depth=1) is None

    def test_state_dir_override(self, tmp_vault: Path, tmp_path: Path, monkeypatch):
        monkeypatch.setenv("NOTELINKER_STATE_DIR", str(tmp_path / "state"))
        assert get_settings_path(tmp_vault) == tmp_path / "state" / "settings.yaml"
        assert get_cache_path(tmp_vault) == tmp_path / "state" / "title_index.json"

    def test_default_state_dir(self, tmp_vault: Path):
        assert get_cache_path(tmp_vault) == tmp_vault / ".notelinker" / "title_index.json"


# =============================================================================
# Settings
# =============================================================================


class TestSettingsModel:
    def test_defaults(self):
        settings = Settings()
        assert settings.excluded_folders == []
        assert settings.page_size == 10
        assert settings.enable_wiki_links is False
        assert settings.respect_case is False
        assert settings.exclude_frontmatter is True
        assert settings.rewrite_strategy == "spans"

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("archive, templates", ["archive", "templates"]),
            ("archive\ntemplates\n", ["archive", "templates"]),
            (" , ", []),
            (None, []),
            (["a", " b "], ["a", "b"]),
        ],
    )
    def test_excluded_folders_parsing(self, raw, expected):
        assert Settings(excludedFolders=raw).excluded_folders == expected

    @pytest.mark.parametrize("size", [4, 51])
    def test_page_size_bounds(self, size):
        with pytest.raises(ValidationError):
            Settings(pageSize=size)

    def test_unknown_strategy_rejected(self):
        with pytest.raises(ValidationError):
            Settings(rewriteStrategy="everywhere")

    def test_to_scan_configuration(self):
        config = Settings(
            excludedFolders="archive",
            enableWikiLinks=True,
            respectCase=True,
            excludeFrontmatter=False,
        ).to_scan_configuration()

        assert config.excluded_path_prefixes == frozenset({"archive"})
        assert config.use_bracketed_link_syntax
        assert config.respect_case_on_replace
        assert not config.exclude_leading_metadata_block
        assert config.is_excluded("archive/x.md")


class TestSettingsFile:
    def test_missing_file_gives_defaults(self, tmp_path: Path):
        assert load_settings(tmp_path / "settings.yaml") == Settings()

    def test_save_and_load(self, tmp_path: Path):
        path = tmp_path / "state" / "settings.yaml"
        settings = Settings(excludedFolders=["archive"], pageSize=25, enableWikiLinks=True)

        save_settings(settings, path)

        assert "pageSize: 25" in path.read_text(encoding="utf-8")
        assert load_settings(path) == settings

    def test_unknown_keys_ignored(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("pageSize: 20\nsomethingElse: true\n", encoding="utf-8")
        assert load_settings(path).page_size == 20

    def test_empty_file_gives_defaults(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("", encoding="utf-8")
        assert load_settings(path) == Settings()

    def test_invalid_yaml(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("pageSize: [unclosed\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="Could not read"):
            load_settings(path)

    def test_not_a_mapping(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("- just\n- a list\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="mapping"):
            load_settings(path)

    def test_invalid_value(self, tmp_path: Path):
        path = tmp_path / "settings.yaml"
        path.write_text("pageSize: 500\n", encoding="utf-8")
        with pytest.raises(ConfigurationError, match="pageSize"):
            load_settings(path)
