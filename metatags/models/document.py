"""Data models for documents, templates and their sync bookkeeping."""

from dataclasses import dataclass, field
from pathlib import PurePosixPath
from typing import Any

import yaml


@dataclass
class ParsedMetadata:
    """What the host indexer knows about a document."""

    tags: list[str] = field(default_factory=list)  # inline tags, "#" optional
    fields: dict[str, Any] = field(default_factory=dict)  # parsed frontmatter


@dataclass
class Document:
    """A vault document split into frontmatter fields and body."""

    path: str  # vault-relative POSIX path
    raw_text: str
    fields: dict[str, Any] = field(default_factory=dict)
    body: str = ""

    @property
    def name(self) -> str:
        """File stem, used as the template name."""
        return PurePosixPath(self.path).stem


@dataclass
class Template:
    """A document whose fields act as defaults for referencing documents."""

    name: str
    path: str
    properties: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TagReference:
    """A ``base/name`` tag binding a document to a template."""

    base: str
    name: str

    @property
    def tag(self) -> str:
        return f"{self.base}/{self.name}"


@dataclass
class TemplateSnapshot:
    """Last property set fully propagated for a template."""

    template_name: str
    properties: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary.

        Properties are kept as YAML text so values such as dates reload with
        the type the template had.
        """
        return {
            "properties": yaml.safe_dump(
                self.properties,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            ),
        }

    @classmethod
    def from_dict(cls, template_name: str, data: dict[str, Any]) -> "TemplateSnapshot":
        """Create from dictionary."""
        text = (data or {}).get("properties")
        properties = yaml.safe_load(text) if isinstance(text, str) else None
        if not isinstance(properties, dict):
            properties = {}
        return cls(template_name=template_name, properties=properties)


@dataclass
class TagCacheEntry:
    """Tag set of a document as of its last fully processed change."""

    path: str
    tags: set[str] = field(default_factory=set)

    def to_list(self) -> list[str]:
        """Sorted tag list for JSON serialization."""
        return sorted(self.tags)

    @classmethod
    def from_list(cls, path: str, tags: list[str]) -> "TagCacheEntry":
        """Create from a serialized tag list."""
        return cls(path=path, tags=set(tags or []))
