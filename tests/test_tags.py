"""Tests for tag extraction and template references."""

from metatags.core.state import SyncState
from metatags.core.tags import (
    TagIndex,
    current_tags,
    diff_tags,
    field_tags,
    normalize_tag,
    parse_reference,
    reference_names,
)
from metatags.core.vault import inline_tags
from metatags.models.document import ParsedMetadata, TagReference


class TestCurrentTags:
    """Tests for combining inline and frontmatter tags."""

    def test_union_of_inline_and_field_tags(self) -> None:
        metadata = ParsedMetadata(tags=["#mt/Book"], fields={"tags": ["reading", "#mt/Person"]})

        assert current_tags(metadata) == {"mt/Book", "reading", "mt/Person"}

    def test_field_tags_string_form(self) -> None:
        assert field_tags("a, b c") == ["a", "b", "c"]
        assert field_tags(None) == []
        assert field_tags(["x", None, 3]) == ["x", "3"]

    def test_none_metadata(self) -> None:
        assert current_tags(None) == set()

    def test_normalize(self) -> None:
        assert normalize_tag(" #mt/Book ") == "mt/Book"


class TestReferences:
    """Tests for parsing base/name references."""

    def test_parse_reference(self) -> None:
        assert parse_reference("mt/Book", "mt") == TagReference(base="mt", name="Book")
        assert parse_reference("mt/Book", "mt").tag == "mt/Book"

    def test_bare_base_is_not_a_reference(self) -> None:
        assert parse_reference("mt", "mt") is None
        assert parse_reference("mt/", "mt") is None

    def test_other_tags_ignored(self) -> None:
        assert parse_reference("mtx/Book", "mt") is None
        assert parse_reference("reading", "mt") is None

    def test_reference_names_sorted(self) -> None:
        tags = {"mt/Person", "mt/Book", "reading", "mt"}

        assert reference_names(tags, "mt") == ["Book", "Person"]

    def test_diff_tags(self) -> None:
        added, removed = diff_tags({"a", "b"}, {"b", "c"})

        assert added == {"c"}
        assert removed == {"a"}


class TestInlineTags:
    """Tests for inline #tag extraction from bodies."""

    def test_finds_tags(self) -> None:
        assert inline_tags("Read #mt/Book and #reading today") == ["mt/Book", "reading"]

    def test_skips_code_and_headings(self) -> None:
        body = "# Heading\n\n`#code` and\n```\n#fenced\n```\nreal #tag\n"

        assert inline_tags(body) == ["tag"]

    def test_skips_numbers_and_anchors(self) -> None:
        assert inline_tags("issue #123 and [link](page#section)") == []


class TestTagIndex:
    """Tests for the per-document tag cache."""

    def test_update_and_previous(self) -> None:
        index = TagIndex(SyncState())

        assert index.previous("a.md") == set()
        assert not index.known("a.md")

        index.update("a.md", {"mt/Book"})

        assert index.known("a.md")
        assert index.previous("a.md") == {"mt/Book"}

    def test_forget(self) -> None:
        index = TagIndex(SyncState())
        index.update("a.md", {"x"})

        index.forget("a.md")

        assert not index.known("a.md")
