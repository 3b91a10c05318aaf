"""YAML frontmatter codec.

A document is an optional leading block::

    ---
    key: value
    ---

followed by exactly one blank line and the free-form body. Parsing never
raises: a malformed block is logged and the whole text is treated as body.
"""

import logging
import re
from typing import Any

import yaml

logger = logging.getLogger(__name__)

MARKER = "---"

_BLOCK_RE = re.compile(
    r"\A---[ \t]*\r?\n(?P<yaml>.*?)^(?:---|\.\.\.)[ \t]*(?:\r?\n|\Z)",
    re.DOTALL | re.MULTILINE,
)
_LEADING_BLANK_RE = re.compile(r"\A(?:[ \t]*\r?\n)+")


def _strip_leading_blank_lines(text: str) -> str:
    return _LEADING_BLANK_RE.sub("", text)


def has_block(raw_text: str) -> bool:
    """Check whether the text starts with a frontmatter block."""
    return _BLOCK_RE.match(raw_text) is not None


def parse(raw_text: str) -> tuple[dict[str, Any], str]:
    """Split raw document text into frontmatter fields and body.

    Args:
        raw_text: Full document text

    Returns:
        Tuple of (fields, body). Fields keep their order from the file.
    """
    match = _BLOCK_RE.match(raw_text)
    if not match:
        return {}, _strip_leading_blank_lines(raw_text)

    try:
        fields = yaml.safe_load(match.group("yaml"))
    except yaml.YAMLError as e:
        logger.warning("Failed to parse frontmatter: %s", e)
        return {}, raw_text

    if fields is None:
        fields = {}
    if not isinstance(fields, dict):
        logger.warning("Frontmatter is not a mapping (got %s)", type(fields).__name__)
        return {}, raw_text

    body = raw_text[match.end():]
    return fields, _strip_leading_blank_lines(body)


def is_well_formed(raw_text: str) -> bool:
    """False when the text has a block that parse() had to discard."""
    match = _BLOCK_RE.match(raw_text)
    if not match:
        return True
    try:
        fields = yaml.safe_load(match.group("yaml"))
    except yaml.YAMLError:
        return False
    return fields is None or isinstance(fields, dict)


def dump_fields(fields: dict[str, Any]) -> str:
    """Render fields as YAML, keeping insertion order."""
    if not fields:
        return ""
    return yaml.safe_dump(
        fields,
        default_flow_style=False,
        sort_keys=False,
        allow_unicode=True,
    )


def serialize(fields: dict[str, Any], body: str) -> str:
    """Render fields and body back into document text.

    An empty field map produces no block, unless the body itself begins with a
    marker line (it would be read back as frontmatter), in which case an empty
    block is written first.
    """
    body = _strip_leading_blank_lines(body)
    if not fields and not has_block(body) and not body.startswith(MARKER + "\n"):
        return body
    return f"{MARKER}\n{dump_fields(fields)}{MARKER}\n\n{body}"


def replace_fields(raw_text: str, fields: dict[str, Any]) -> str:
    """Replace the frontmatter of raw_text, keeping its body."""
    _, body = parse(raw_text)
    return serialize(fields, body)
