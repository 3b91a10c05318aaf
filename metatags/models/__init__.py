"""Data models for the MetaTags sync engine."""

from .config import (
    CONFIG_FILENAME,
    DEFAULT_TAG_BASE,
    MetaTagsSettings,
    apply_env_overrides,
    normalize_folder,
)
from .document import (
    Document,
    ParsedMetadata,
    TagCacheEntry,
    TagReference,
    Template,
    TemplateSnapshot,
)

__all__ = [
    "CONFIG_FILENAME",
    "DEFAULT_TAG_BASE",
    "Document",
    "MetaTagsSettings",
    "ParsedMetadata",
    "TagCacheEntry",
    "TagReference",
    "Template",
    "TemplateSnapshot",
    "apply_env_overrides",
    "normalize_folder",
]
