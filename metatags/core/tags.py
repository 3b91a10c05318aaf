"""Tag extraction, tag deltas and template references."""

import re
from typing import Any, Iterable

from ..models.document import ParsedMetadata, TagReference
from .state import SyncState

_TAG_SPLIT_RE = re.compile(r"[,\s]+")


def normalize_tag(tag: Any) -> str:
    """Strip whitespace and a leading '#' from a tag."""
    text = str(tag).strip()
    if text.startswith("#"):
        text = text[1:]
    return text.strip()


def field_tags(value: Any) -> list[str]:
    """Tags declared in the frontmatter 'tags' value (scalar or list form)."""
    if value is None:
        return []
    if isinstance(value, str):
        return [t for t in _TAG_SPLIT_RE.split(value) if t]
    if isinstance(value, (list, tuple, set)):
        return [str(t) for t in value if t is not None]
    return [str(value)]


def current_tags(metadata: ParsedMetadata | None) -> set[str]:
    """Combine inline and frontmatter tags into one normalized set."""
    if metadata is None:
        return set()

    raw: list[Any] = list(metadata.tags)
    raw.extend(field_tags(metadata.fields.get("tags")))

    tags = set()
    for tag in raw:
        normalized = normalize_tag(tag)
        if normalized:
            tags.add(normalized)
    return tags


def diff_tags(previous: set[str], current: set[str]) -> tuple[set[str], set[str]]:
    """Return (added, removed) between two tag sets."""
    return current - previous, previous - current


def parse_reference(tag: str, base: str) -> TagReference | None:
    """Parse a ``base/name`` tag, or return None if it is not a reference."""
    prefix = f"{base}/"
    if not tag.startswith(prefix):
        return None
    name = tag[len(prefix):].strip()
    if not name:
        return None
    return TagReference(base=base, name=name)


def reference_names(tags: Iterable[str], base: str) -> list[str]:
    """Template names referenced by tags, sorted for a stable application order."""
    names = set()
    for tag in tags:
        ref = parse_reference(tag, base)
        if ref is not None:
            names.add(ref.name)
    return sorted(names)


class TagIndex:
    """Tracks the tag set of each document as of its last processed change."""

    def __init__(self, state: SyncState) -> None:
        self.state = state

    def previous(self, path: str) -> set[str]:
        """Last processed tags for path (empty if never seen)."""
        entry = self.state.get_tags(path)
        return set(entry.tags) if entry is not None else set()

    def known(self, path: str) -> bool:
        return self.state.get_tags(path) is not None

    def update(self, path: str, tags: set[str]) -> None:
        """Record tags for path; call only after the change is fully processed."""
        self.state.update_tags(path, tags)

    def forget(self, path: str) -> None:
        self.state.remove_tags(path)
