"""Tests for the frontmatter codec."""

from metatags.core import frontmatter


class TestParse:
    """Tests for frontmatter.parse."""

    def test_fields_and_body(self) -> None:
        raw = "---\ntitle: Hello\ncount: 3\n---\n\nBody text\n"

        fields, body = frontmatter.parse(raw)

        assert fields == {"title": "Hello", "count": 3}
        assert body == "Body text\n"

    def test_keeps_field_order(self) -> None:
        raw = "---\nzeta: 1\nalpha: 2\nmid: 3\n---\n"

        fields, _ = frontmatter.parse(raw)

        assert list(fields) == ["zeta", "alpha", "mid"]

    def test_no_block(self) -> None:
        fields, body = frontmatter.parse("Just a note\n")

        assert fields == {}
        assert body == "Just a note\n"

    def test_empty_block(self) -> None:
        fields, body = frontmatter.parse("---\n---\nBody\n")

        assert fields == {}
        assert body == "Body\n"

    def test_malformed_yaml_is_body(self) -> None:
        raw = "---\nkey: [unclosed\n---\nBody\n"

        fields, body = frontmatter.parse(raw)

        assert fields == {}
        assert body == raw
        assert frontmatter.is_well_formed(raw) is False

    def test_non_mapping_is_body(self) -> None:
        raw = "---\n- a\n- b\n---\nBody\n"

        fields, body = frontmatter.parse(raw)

        assert fields == {}
        assert body == raw
        assert frontmatter.is_well_formed(raw) is False

    def test_well_formed(self) -> None:
        assert frontmatter.is_well_formed("no block at all")
        assert frontmatter.is_well_formed("---\na: 1\n---\n")

    def test_marker_must_open_the_text(self) -> None:
        raw = "Intro\n---\na: 1\n---\n"

        fields, body = frontmatter.parse(raw)

        assert fields == {}
        assert body == raw


class TestSerialize:
    """Tests for frontmatter.serialize."""

    def test_block_then_blank_line(self) -> None:
        text = frontmatter.serialize({"a": 1, "b": "x"}, "Body\n")

        assert text == "---\na: 1\nb: x\n---\n\nBody\n"

    def test_empty_fields_omit_block(self) -> None:
        assert frontmatter.serialize({}, "Body\n") == "Body\n"

    def test_empty_fields_with_marker_body_keep_block(self) -> None:
        text = frontmatter.serialize({}, "---\nnot: frontmatter\n---\n")

        fields, body = frontmatter.parse(text)

        assert fields == {}
        assert body == "---\nnot: frontmatter\n---\n"

    def test_leading_blank_lines_normalized(self) -> None:
        text = frontmatter.serialize({"a": 1}, "\n\n\nBody")

        assert text == "---\na: 1\n---\n\nBody"

    def test_parse_serialize_is_stable(self) -> None:
        raw = "---\ntags:\n- one\n- mt/Book\nauthor: ''\nrating: null\n---\n\n# Title\n\ntext\n"

        fields, body = frontmatter.parse(raw)
        again = frontmatter.serialize(fields, body)

        assert frontmatter.parse(again) == (fields, body)
        assert frontmatter.serialize(*frontmatter.parse(again)) == again

    def test_unicode_values(self) -> None:
        text = frontmatter.serialize({"titre": "Été"}, "")

        assert "Été" in text

    def test_replace_fields(self) -> None:
        raw = "---\na: 1\n---\n\nBody\n"

        text = frontmatter.replace_fields(raw, {"b": 2})

        assert text == "---\nb: 2\n---\n\nBody\n"
