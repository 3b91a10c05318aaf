"""Process-scoped sync state: tag cache and template snapshots."""

import copy
import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from ..models.document import TagCacheEntry, TemplateSnapshot

logger = logging.getLogger(__name__)


@dataclass
class SyncStateData:
    """Complete sync state for all tracked documents and templates."""

    version: str = "1.0"
    tags: dict[str, TagCacheEntry] = field(default_factory=dict)
    templates: dict[str, TemplateSnapshot] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "version": self.version,
            "tags": {k: v.to_list() for k, v in self.tags.items()},
            "templates": {k: v.to_dict() for k, v in self.templates.items()},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SyncStateData":
        """Create from dictionary."""
        tags = {}
        for path, tag_list in (data.get("tags") or {}).items():
            tags[path] = TagCacheEntry.from_list(path, tag_list)
        templates = {}
        for name, properties in (data.get("templates") or {}).items():
            templates[name] = TemplateSnapshot.from_dict(name, properties)
        return cls(
            version=data.get("version", "1.0"),
            tags=tags,
            templates=templates,
        )


class SyncState:
    """Holds the tag cache and template snapshots owned by the sync engine.

    Entries are only advanced after the corresponding write succeeded, so the
    state never reflects an uncommitted change. With a state file the data
    survives restarts; without one it lives for the process only.
    """

    def __init__(self, state_file: Path | None = None) -> None:
        """Initialize state manager.

        Args:
            state_file: Optional path to a JSON state file
        """
        self.state_file = Path(state_file) if state_file is not None else None
        self._state: SyncStateData | None = None

    @property
    def state(self) -> SyncStateData:
        """Get or load the state data."""
        if self._state is None:
            self._state = self._load_state()
        return self._state

    def _load_state(self) -> SyncStateData:
        """Load state from disk or create empty."""
        if self.state_file is not None and self.state_file.exists():
            try:
                with open(self.state_file, encoding="utf-8") as f:
                    data = json.load(f)
                return SyncStateData.from_dict(data)
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.warning("Ignoring unreadable state file %s: %s", self.state_file, e)
        return SyncStateData()

    def save(self) -> None:
        """Save state to disk (no-op without a state file)."""
        if self.state_file is None:
            return
        self.state_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.state_file, "w", encoding="utf-8") as f:
            json.dump(self.state.to_dict(), f, indent=2)
            f.write("\n")

    # -------------------------------------------------------------------------
    # Tag cache
    # -------------------------------------------------------------------------

    def get_tags(self, path: str) -> TagCacheEntry | None:
        return self.state.tags.get(path)

    def update_tags(self, path: str, tags: set[str]) -> None:
        self.state.tags[path] = TagCacheEntry(path=path, tags=set(tags))

    def remove_tags(self, path: str) -> None:
        self.state.tags.pop(path, None)

    # -------------------------------------------------------------------------
    # Template snapshots
    # -------------------------------------------------------------------------

    def get_snapshot(self, template_name: str) -> TemplateSnapshot | None:
        return self.state.templates.get(template_name)

    def record_snapshot(self, template_name: str, properties: dict[str, Any]) -> None:
        """Store a deep copy of properties as the template's baseline."""
        self.state.templates[template_name] = TemplateSnapshot(
            template_name=template_name,
            properties=copy.deepcopy(properties),
        )

    def remove_snapshot(self, template_name: str) -> None:
        self.state.templates.pop(template_name, None)

    def list_templates(self) -> list[str]:
        return sorted(self.state.templates)

    def list_tracked_documents(self) -> list[str]:
        return sorted(self.state.tags)

    def get_status_summary(self) -> dict[str, Any]:
        """Get a summary of sync state."""
        return {
            "state_file": str(self.state_file) if self.state_file else None,
            "tracked_documents": len(self.list_tracked_documents()),
            "templates": [
                {
                    "name": name,
                    "properties": list(self.state.templates[name].properties),
                }
                for name in self.list_templates()
            ],
        }
