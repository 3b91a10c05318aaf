"""Template discovery, resolution and property diffing."""

import logging
from pathlib import PurePosixPath
from typing import Any

from ..models.config import MetaTagsSettings
from ..models.document import Template
from . import frontmatter
from .host import DocumentHost
from .state import SyncState
from .tags import current_tags

logger = logging.getLogger(__name__)


def template_name(path: str) -> str:
    """Template name for a document path (its file stem)."""
    return PurePosixPath(path).stem


class TemplateRegistry:
    """Knows which documents are templates and what they currently declare."""

    def __init__(self, host: DocumentHost, settings: MetaTagsSettings, state: SyncState) -> None:
        self.host = host
        self.settings = settings
        self.state = state

    @property
    def ignored_keys(self) -> set[str]:
        return self.settings.ignored_keys

    @property
    def reference_prefix(self) -> str:
        return f"{self.settings.tag_base}/"

    def in_template_folder(self, path: str) -> bool:
        folder = self.settings.template_folder
        if folder is None:
            return False
        return PurePosixPath(path).is_relative_to(folder) and path != folder

    def is_template(self, path: str, tags: set[str]) -> bool:
        """Classify a document for the current pass.

        With a template folder configured, location decides; otherwise the
        bare base tag does.
        """
        if self.settings.template_folder is not None:
            return self.in_template_folder(path)
        return self.settings.tag_base in tags

    async def load_template(self, path: str) -> Template:
        """Read a template's current properties straight from its text."""
        raw = await self.host.read_text(path)
        properties, _ = frontmatter.parse(raw)
        return Template(name=template_name(path), path=path, properties=properties)

    async def _candidates(self, name: str) -> list[str]:
        matches = []
        for path in sorted(await self.host.list_documents()):
            if template_name(path) != name:
                continue
            if self.settings.template_folder is not None:
                if self.in_template_folder(path):
                    matches.append(path)
                continue
            metadata = await self.host.get_parsed_metadata(path)
            if self.is_template(path, current_tags(metadata)):
                matches.append(path)
        return matches

    async def resolve(self, name: str) -> Template | None:
        """Find the template called name, or None if the reference is inert.

        Several templates sharing a name resolve to the first in sorted path
        order; a direct child of the template folder is preferred.
        """
        matches = await self._candidates(name)
        if not matches:
            logger.debug("No template named %r", name)
            return None

        folder = self.settings.template_folder
        if folder is not None:
            direct = f"{folder}/{name}.md"
            if direct in matches:
                matches.remove(direct)
                matches.insert(0, direct)

        if len(matches) > 1:
            logger.warning(
                "Template name %r is ambiguous (%s); using %s",
                name,
                ", ".join(matches),
                matches[0],
            )

        try:
            return await self.load_template(matches[0])
        except FileNotFoundError:
            logger.debug("Template %s disappeared before it could be read", matches[0])
            return None

    @staticmethod
    def diff_properties(
        old: dict[str, Any],
        new: dict[str, Any],
        ignored_keys: set[str],
    ) -> tuple[list[str], list[str]]:
        """Return (added, removed) property names between two template revisions.

        Only keys are compared; value changes of existing keys are not reported.
        """
        added = [k for k in new if k not in old and k not in ignored_keys]
        removed = [k for k in old if k not in new and k not in ignored_keys]
        return added, removed

    async def bound_documents(self, name: str) -> list[str]:
        """Paths of documents currently referencing template name."""
        tag = f"{self.reference_prefix}{name}"
        bound = []
        for path in sorted(await self.host.list_documents()):
            metadata = await self.host.get_parsed_metadata(path)
            tags = current_tags(metadata)
            if tag in tags and not self.is_template(path, tags):
                bound.append(path)
        return bound

    async def scan(self) -> dict[str, str]:
        """Seed a snapshot for every template that has none yet.

        Snapshots loaded from a state file are kept, so edits made while the
        engine was not running are still diffed against the old baseline. A
        name shared by several templates is seeded from the one ``resolve``
        picks.

        Returns:
            Mapping of template name to path
        """
        names: list[str] = []
        for path in sorted(await self.host.list_documents()):
            metadata = await self.host.get_parsed_metadata(path)
            if not self.is_template(path, current_tags(metadata)):
                continue
            name = template_name(path)
            if name not in names:
                names.append(name)

        found: dict[str, str] = {}
        for name in names:
            template = await self.resolve(name)
            if template is None:
                continue
            found[name] = template.path
            if self.state.get_snapshot(name) is None:
                self.state.record_snapshot(name, template.properties)
        logger.info("Found %d template(s)", len(found))
        return found
