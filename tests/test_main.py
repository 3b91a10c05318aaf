"""Tests for the command line interface."""

from pathlib import Path

import pytest

from metatags.core import frontmatter
from metatags.main import main
from metatags.models.config import CONFIG_FILENAME, MetaTagsSettings


@pytest.fixture
def vault(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    for name in ("METATAGS_TAG_BASE", "METATAGS_TEMPLATE_FOLDER", "METATAGS_PRUNE_EMPTY"):
        monkeypatch.delenv(name, raising=False)
    (tmp_path / "Templates").mkdir()
    (tmp_path / "Notes").mkdir()
    (tmp_path / "Templates" / "Book.md").write_text("---\nauthor: ''\ngenre: fiction\n---\n")
    (tmp_path / "Notes" / "dune.md").write_text("---\ntags: [mt/Book]\ngenre: ''\n---\n\nBody\n")
    return tmp_path


def read_fields(path: Path) -> dict:
    return frontmatter.parse(path.read_text())[0]


class TestCli:
    """Tests for metatags subcommands."""

    def test_no_command(self) -> None:
        assert main([]) == 1

    def test_init(self, vault: Path) -> None:
        assert main(["--vault", str(vault), "init", "--template-folder", "Templates"]) == 0

        settings = MetaTagsSettings.load(vault / CONFIG_FILENAME, use_env=False)
        assert settings.template_folder == "Templates"

        assert main(["--vault", str(vault), "init"]) == 1
        assert main(["--vault", str(vault), "init", "--force"]) == 0

    def test_apply(self, vault: Path) -> None:
        main(["--vault", str(vault), "init", "--template-folder", "Templates"])

        assert main(["--vault", str(vault), "apply", "Notes/dune.md"]) == 0

        assert read_fields(vault / "Notes" / "dune.md") == {
            "tags": ["mt/Book"],
            "genre": "",
            "author": "",
        }

    def test_scan_then_propagate(self, vault: Path) -> None:
        main(["--vault", str(vault), "init", "--template-folder", "Templates"])
        assert main(["--vault", str(vault), "scan"]) == 0
        assert (vault / ".metatags-state.json").exists()

        (vault / "Templates" / "Book.md").write_text("---\nauthor: ''\nyear: null\n---\n")

        assert main(["--vault", str(vault), "propagate", "Templates/Book.md", "--yes"]) == 0
        assert read_fields(vault / "Notes" / "dune.md") == {"tags": ["mt/Book"], "year": None}
        assert main(["--vault", str(vault), "status"]) == 0

    def test_prune(self, vault: Path) -> None:
        main(["--vault", str(vault), "init", "--template-folder", "Templates"])

        assert main(["--vault", str(vault), "prune", "Notes/dune.md", "Book"]) == 0
        assert read_fields(vault / "Notes" / "dune.md") == {"tags": ["mt/Book"]}

    def test_path_outside_vault(self, vault: Path, tmp_path_factory: pytest.TempPathFactory) -> None:
        outside = tmp_path_factory.mktemp("elsewhere") / "note.md"
        outside.write_text("text")

        assert main(["--vault", str(vault), "apply", str(outside)]) == 1
