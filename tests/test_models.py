"""Tests for data models."""

import tempfile
from pathlib import Path

import pytest

from metatags.models.config import (
    MetaTagsSettings,
    apply_env_overrides,
    normalize_folder,
)
from metatags.models.document import Document, TagCacheEntry, TemplateSnapshot


@pytest.fixture(autouse=True)
def clear_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in ("METATAGS_TAG_BASE", "METATAGS_TEMPLATE_FOLDER", "METATAGS_PRUNE_EMPTY"):
        monkeypatch.delenv(name, raising=False)


class TestMetaTagsSettings:
    """Tests for MetaTagsSettings model."""

    def test_defaults(self) -> None:
        settings = MetaTagsSettings()

        assert settings.tag_base == "mt"
        assert settings.template_folder is None
        assert settings.prune_empty_on_remove is False
        assert settings.debounce_seconds == 0.5
        assert settings.recent_write_window == 2.0
        assert settings.ignored_keys == {"tags", "mt"}

    def test_tag_base_cleaned(self) -> None:
        settings = MetaTagsSettings(tag_base=" #meta/ ")

        assert settings.tag_base == "meta"
        assert settings.ignored_keys == {"tags", "meta"}

    def test_empty_tag_base_rejected(self) -> None:
        with pytest.raises(ValueError):
            MetaTagsSettings(tag_base="  ")

    def test_folder_normalized(self) -> None:
        assert normalize_folder("/Templates/") == "Templates"
        assert normalize_folder("Meta\\Templates") == "Meta/Templates"
        assert normalize_folder("") is None
        assert normalize_folder("/") is None
        assert normalize_folder(None) is None

    def test_to_dict(self) -> None:
        settings = MetaTagsSettings(template_folder="Templates", prune_empty_on_remove=True)

        result = settings.to_dict()

        assert result["tag_base"] == "mt"
        assert result["template_folder"] == "Templates"
        assert result["prune_empty_on_remove"] is True

    def test_from_dict(self) -> None:
        data = {
            "tag_base": "meta",
            "template_folder": "T/",
            "prune_empty_on_remove": True,
            "debounce_seconds": 1,
        }

        settings = MetaTagsSettings.from_dict(data)

        assert settings.tag_base == "meta"
        assert settings.template_folder == "T"
        assert settings.prune_empty_on_remove is True
        assert settings.debounce_seconds == 1.0

    def test_save_and_load(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / ".metatags.yaml"
            settings = MetaTagsSettings(tag_base="meta", template_folder="Templates")

            settings.save(config_path)
            loaded = MetaTagsSettings.load(config_path, use_env=False)

            assert loaded == settings

    def test_load_missing_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            settings = MetaTagsSettings.load(Path(tmpdir) / ".metatags.yaml", use_env=False)

            assert settings == MetaTagsSettings()

    def test_load_rejects_non_mapping(self) -> None:
        with tempfile.TemporaryDirectory() as tmpdir:
            config_path = Path(tmpdir) / ".metatags.yaml"
            config_path.write_text("- just\n- a list\n")

            with pytest.raises(ValueError):
                MetaTagsSettings.load(config_path, use_env=False)

    def test_env_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("METATAGS_TAG_BASE", "meta")
        monkeypatch.setenv("METATAGS_TEMPLATE_FOLDER", "")
        monkeypatch.setenv("METATAGS_PRUNE_EMPTY", "yes")

        data = apply_env_overrides({"tag_base": "mt", "template_folder": "Templates"})

        assert data == {
            "tag_base": "meta",
            "template_folder": None,
            "prune_empty_on_remove": True,
        }

    def test_resolve_state_file(self) -> None:
        root = Path("/vault")

        assert MetaTagsSettings().resolve_state_file(root) == root / ".metatags-state.json"
        assert MetaTagsSettings(state_file=None).resolve_state_file(root) is None
        assert MetaTagsSettings(state_file="/tmp/s.json").resolve_state_file(root) == Path("/tmp/s.json")


class TestDocumentModels:
    """Tests for document bookkeeping models."""

    def test_document_name(self) -> None:
        doc = Document(path="Templates/Book.md", raw_text="")

        assert doc.name == "Book"

    def test_snapshot_round_trip(self) -> None:
        snapshot = TemplateSnapshot(template_name="Book", properties={"author": ""})

        restored = TemplateSnapshot.from_dict("Book", snapshot.to_dict())

        assert restored == snapshot

    def test_tag_cache_entry_sorted(self) -> None:
        entry = TagCacheEntry(path="a.md", tags={"z", "a"})

        assert entry.to_list() == ["a", "z"]
        assert TagCacheEntry.from_list("a.md", None).tags == set()
