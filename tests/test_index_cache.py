"""Tests for the persisted title index cache."""

import json
from pathlib import Path

from notelinker.index_cache import load_cache, save_cache
from notelinker.parser import TitleEntry, TitleIndex


class TestIndexCache:
    def test_missing_cache(self, tmp_path: Path):
        assert load_cache(tmp_path / "nope.json") is None

    def test_save_writes_camel_case_json(self, tmp_path: Path):
        path = tmp_path / "state" / "title_index.json"
        index = TitleIndex([TitleEntry("A", "A.md")], fresh=True)

        save_cache(index, path, vault_mtime=42.0)

        data = json.loads(path.read_text(encoding="utf-8"))
        assert data == {"titleEntries": [{"title": "A", "path": "A.md"}], "isFresh": True, "vaultMtime": 42.0}

    def test_round_trip(self, tmp_path: Path):
        path = tmp_path / "title_index.json"
        index = TitleIndex([TitleEntry("A", "A.md"), TitleEntry("Notes", "b/Notes.md")])

        save_cache(index, path)
        snapshot = load_cache(path)

        assert snapshot is not None
        assert not snapshot.is_fresh
        assert TitleIndex.from_snapshot(snapshot).entries == index.entries

    def test_legacy_cache_without_mtime(self, tmp_path: Path):
        path = tmp_path / "title_index.json"
        path.write_text(json.dumps({"titleEntries": [], "isFresh": True}), encoding="utf-8")

        snapshot = load_cache(path)
        assert snapshot is not None
        assert snapshot.vault_mtime == 0.0

    def test_corrupt_cache_ignored(self, tmp_path: Path, caplog):
        path = tmp_path / "title_index.json"
        path.write_text("{not json", encoding="utf-8")

        with caplog.at_level("WARNING"):
            assert load_cache(path) is None
        assert "Ignoring unreadable index cache" in caplog.text

    def test_wrong_shape_ignored(self, tmp_path: Path):
        path = tmp_path / "title_index.json"
        path.write_text(json.dumps({"titleEntries": "nope"}), encoding="utf-8")
        assert load_cache(path) is None
