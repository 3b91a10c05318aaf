"""Template synchronization engine.

Three write-causing operations:

- ``apply_template``: merge template defaults into a document that gained a
  reference. Document values always win; the first referenced template wins
  over later ones.
- ``propagate_template_change``: push a template's added/removed properties to
  every bound document. Added keys are copied only where absent; removed keys
  are deleted only where empty.
- ``prune_on_reference_removed``: drop empty properties a document only had
  because of a template it no longer references.

``handle_change`` ties them to host change notifications, and ``notify_changed``
is the debounced, reentrancy-safe entry point for host callbacks.
"""

import copy
import logging
from dataclasses import dataclass, field
from typing import Any, Iterable

from ..models.config import MetaTagsSettings
from ..models.document import Document
from . import frontmatter
from .guard import Debouncer, OperationKind, RecentWrites, ReentrancyGuard
from .host import DocumentHost, HostWriteError
from .registry import TemplateRegistry, template_name
from .state import SyncState
from .tags import TagIndex, current_tags, diff_tags, reference_names

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Result of a sync operation."""

    success: bool
    operation: str  # "apply", "propagate" or "prune"
    path: str
    message: str
    mutated: set[str] = field(default_factory=set)
    skipped: bool = False
    declined: bool = False
    failed_paths: list[str] = field(default_factory=list)


class SyncObserver:
    """Optional UI hooks; the engine never depends on what they do."""

    def paths_changed(self, paths: set[str]) -> None:
        """Documents the engine just rewrote."""

    def template_fields(self, path: str, fields: dict[str, set[str]]) -> None:
        """Fields of an opened document that come from each referenced template."""


def is_empty(value: Any) -> bool:
    """True for values a user has not really filled in."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple, set)):
        return not value
    return False


def merge_properties(
    document_fields: dict[str, Any],
    template_properties: Iterable[dict[str, Any]],
    ignored_keys: set[str],
) -> dict[str, Any]:
    """Merge template defaults under a document's own fields.

    The document's keys keep their order; missing template keys are appended
    in reference order, first template first.
    """
    merged = dict(document_fields)
    for properties in template_properties:
        for key, value in properties.items():
            if key in ignored_keys or key in merged:
                continue
            merged[key] = copy.deepcopy(value)
    return merged


def apply_property_delta(
    document_fields: dict[str, Any],
    template_properties: dict[str, Any],
    added: list[str],
    removed: list[str],
) -> tuple[dict[str, Any], list[str]]:
    """Apply a template's property delta to one document's fields.

    Returns:
        Tuple of (new fields, keys deleted from the document)
    """
    new_fields = dict(document_fields)
    for key in added:
        if key not in new_fields:
            new_fields[key] = copy.deepcopy(template_properties[key])
    deleted = [key for key in removed if key in new_fields and is_empty(new_fields[key])]
    for key in deleted:
        del new_fields[key]
    return new_fields, deleted


class SyncEngine:
    """Keeps documents consistent with the templates they reference."""

    def __init__(
        self,
        host: DocumentHost,
        settings: MetaTagsSettings,
        state: SyncState | None = None,
        observer: SyncObserver | None = None,
    ) -> None:
        """Initialize the engine.

        Args:
            host: Document store, indexer and confirmation UI
            settings: Engine settings
            state: Tag cache and template snapshots (in-memory if not provided)
            observer: Optional UI hooks
        """
        self.host = host
        self.settings = settings
        self.state = state or SyncState()
        self.observer = observer or SyncObserver()

        self.registry = TemplateRegistry(host, settings, self.state)
        self.tag_index = TagIndex(self.state)
        self.guard = ReentrancyGuard()
        self.recent = RecentWrites(settings.recent_write_window)
        self.debouncer = Debouncer(settings.debounce_seconds)

    @property
    def ignored_keys(self) -> set[str]:
        return self.settings.ignored_keys

    async def _write(self, path: str, text: str) -> None:
        await self.host.write_text(path, text)
        self.recent.mark(path)
        logger.info("Updated %s", path)

    def _report(self, result: SyncResult) -> SyncResult:
        if result.mutated:
            self.observer.paths_changed(set(result.mutated))
        return result

    async def _read_document(self, path: str) -> Document | None:
        """Read and parse a document; None if it is gone or its block is broken."""
        try:
            raw = await self.host.read_text(path)
        except FileNotFoundError:
            logger.debug("Document %s no longer exists", path)
            return None
        if not frontmatter.is_well_formed(raw):
            logger.warning("Leaving %s untouched: malformed frontmatter", path)
            return None
        fields, body = frontmatter.parse(raw)
        return Document(path=path, raw_text=raw, fields=fields, body=body)

    # =========================================================================
    # Apply
    # =========================================================================

    async def apply_template(self, path: str, names: list[str]) -> SyncResult:
        """Merge the named templates' properties into a document.

        Args:
            path: Document path
            names: Template names in reference order; unresolved names are skipped

        Returns:
            SyncResult with the document in ``mutated`` if it was rewritten
        """
        with self.guard.hold(OperationKind.APPLY, path):
            document = await self._read_document(path)
            if document is None:
                return SyncResult(
                    success=False,
                    operation="apply",
                    path=path,
                    message="Document missing or has malformed frontmatter",
                )
            fields = document.fields

            templates = []
            for name in names:
                template = await self.registry.resolve(name)
                if template is None or template.path == path:
                    continue
                templates.append(template)

            if not templates:
                return SyncResult(
                    success=True,
                    operation="apply",
                    path=path,
                    message="No referenced template found",
                    skipped=True,
                )

            merged = merge_properties(fields, (t.properties for t in templates), self.ignored_keys)
            if merged == fields:
                return SyncResult(
                    success=True,
                    operation="apply",
                    path=path,
                    message="Already in sync",
                    skipped=True,
                )

            try:
                await self._write(path, frontmatter.replace_fields(document.raw_text, merged))
            except HostWriteError as e:
                logger.error("Failed to write %s: %s", path, e)
                return SyncResult(
                    success=False,
                    operation="apply",
                    path=path,
                    message=f"Write failed: {e}",
                    failed_paths=[path],
                )

        applied = ", ".join(t.name for t in templates)
        return self._report(SyncResult(
            success=True,
            operation="apply",
            path=path,
            message=f"Applied {applied}",
            mutated={path},
        ))

    # =========================================================================
    # Propagate
    # =========================================================================

    async def propagate_template_change(self, path: str) -> SyncResult:
        """Push a template's added and removed properties to bound documents.

        Only the file its name resolves to propagates; edits
        to a shadowed duplicate are ignored. The template's snapshot only
        advances once every bound document was written. If the change would
        delete properties whose previous template value was non-empty, the host
        must confirm first; declining restores the template's previous
        properties instead. Documents another operation is still working on
        are left alone and keep the snapshot from advancing.
        """
        name = template_name(path)
        with self.guard.hold(OperationKind.PROPAGATE, path):
            active = await self.registry.resolve(name)
            if active is None or active.path != path:
                logger.warning(
                    "Ignoring change to %s: %r resolves to %s",
                    path,
                    name,
                    active.path if active is not None else "no template",
                )
                return SyncResult(
                    success=True,
                    operation="propagate",
                    path=path,
                    message=f"Not the active template for {name}",
                    skipped=True,
                )

            template_doc = await self._read_document(path)
            if template_doc is None:
                return SyncResult(
                    success=False,
                    operation="propagate",
                    path=path,
                    message="Template missing or has malformed frontmatter",
                )
            new_props = template_doc.fields

            snapshot = self.state.get_snapshot(name)
            old_props = snapshot.properties if snapshot is not None else {}
            added, removed = self.registry.diff_properties(old_props, new_props, self.ignored_keys)

            if not added and not removed:
                self.state.record_snapshot(name, new_props)
                return SyncResult(
                    success=True,
                    operation="propagate",
                    path=path,
                    message="No property changes",
                    skipped=True,
                )

            logger.info(
                "Template %s changed (added: %s, removed: %s)",
                name,
                ", ".join(added) or "-",
                ", ".join(removed) or "-",
            )
            bound = [p for p in await self.registry.bound_documents(name) if p != path]

            destructive = await self._destructive_deletions(bound, new_props, added, removed, old_props)
            if destructive:
                message = (
                    f"The following properties will be removed from notes with the "
                    f"MetaTag \"{name}\":\n"
                    + "\n".join(f"  {doc}: {', '.join(keys)}" for doc, keys in destructive.items())
                    + "\n\nDo you want to proceed?"
                )
                if not await self.host.confirm_destructive_change(message):
                    return await self._revert_template(template_doc, name, old_props)

            mutated: set[str] = set()
            failed: list[str] = []
            for doc_path in bound:
                if self.guard.is_held(doc_path):
                    logger.warning("Skipping %s: another operation is updating it", doc_path)
                    failed.append(doc_path)
                    continue
                with self.guard.hold(OperationKind.PROPAGATE, doc_path):
                    document = await self._read_document(doc_path)
                    if document is None:
                        continue
                    new_fields, _ = apply_property_delta(document.fields, new_props, added, removed)
                    if new_fields == document.fields:
                        continue
                    try:
                        await self._write(doc_path, frontmatter.replace_fields(document.raw_text, new_fields))
                        mutated.add(doc_path)
                    except HostWriteError as e:
                        logger.error("Failed to write %s: %s", doc_path, e)
                        failed.append(doc_path)

        if failed:
            return self._report(SyncResult(
                success=False,
                operation="propagate",
                path=path,
                message=f"Could not update {len(failed)} document(s); template baseline kept",
                mutated=mutated,
                failed_paths=failed,
            ))

        self.state.record_snapshot(name, new_props)
        return self._report(SyncResult(
            success=True,
            operation="propagate",
            path=path,
            message=f"Propagated {name} to {len(mutated)} of {len(bound)} document(s)",
            mutated=mutated,
        ))

    async def _destructive_deletions(
        self,
        bound: list[str],
        new_props: dict[str, Any],
        added: list[str],
        removed: list[str],
        old_props: dict[str, Any],
    ) -> dict[str, list[str]]:
        """Planned deletions of properties whose old template value was non-empty."""
        meaningful = [key for key in removed if not is_empty(old_props.get(key))]
        if not meaningful:
            return {}

        planned: dict[str, list[str]] = {}
        for doc_path in bound:
            document = await self._read_document(doc_path)
            if document is None:
                continue
            _, deleted = apply_property_delta(document.fields, new_props, added, meaningful)
            if deleted:
                planned[doc_path] = deleted
        return planned

    async def _revert_template(
        self,
        template_doc: Document,
        name: str,
        old_props: dict[str, Any],
    ) -> SyncResult:
        path = template_doc.path
        logger.info("Destructive change to %s declined; restoring previous properties", name)
        try:
            await self._write(path, frontmatter.replace_fields(template_doc.raw_text, old_props))
        except HostWriteError as e:
            logger.error("Failed to restore template %s: %s", path, e)
            return SyncResult(
                success=False,
                operation="propagate",
                path=path,
                message=f"Change declined but the template could not be restored: {e}",
                declined=True,
                failed_paths=[path],
            )
        return self._report(SyncResult(
            success=True,
            operation="propagate",
            path=path,
            message="Change declined; template restored",
            mutated={path},
            declined=True,
        ))

    # =========================================================================
    # Prune
    # =========================================================================

    async def prune_on_reference_removed(
        self,
        path: str,
        name: str,
        keep: Iterable[str] = (),
    ) -> SyncResult:
        """Delete a document's empty properties that come from template name.

        Args:
            path: Document path
            name: Template the document stopped referencing
            keep: Keys to leave alone (e.g. still provided by other templates)
        """
        with self.guard.hold(OperationKind.PRUNE, path):
            template = await self.registry.resolve(name)
            if template is None:
                return SyncResult(
                    success=True,
                    operation="prune",
                    path=path,
                    message=f"No template named {name}",
                    skipped=True,
                )

            document = await self._read_document(path)
            if document is None:
                return SyncResult(
                    success=False,
                    operation="prune",
                    path=path,
                    message="Document missing or has malformed frontmatter",
                )
            fields = document.fields

            protected = self.ignored_keys | set(keep)
            pruned = [
                key
                for key in template.properties
                if key not in protected and key in fields and is_empty(fields[key])
            ]
            if not pruned:
                return SyncResult(
                    success=True,
                    operation="prune",
                    path=path,
                    message="Nothing to prune",
                    skipped=True,
                )

            new_fields = {k: v for k, v in fields.items() if k not in pruned}
            try:
                await self._write(path, frontmatter.replace_fields(document.raw_text, new_fields))
            except HostWriteError as e:
                logger.error("Failed to write %s: %s", path, e)
                return SyncResult(
                    success=False,
                    operation="prune",
                    path=path,
                    message=f"Write failed: {e}",
                    failed_paths=[path],
                )

        return self._report(SyncResult(
            success=True,
            operation="prune",
            path=path,
            message=f"Removed empty {', '.join(pruned)}",
            mutated={path},
        ))

    # =========================================================================
    # Change notifications
    # =========================================================================

    async def initialize(self) -> dict[str, str]:
        """Startup scan: seed the tag cache and template snapshots.

        Returns:
            Mapping of template name to path
        """
        for path in sorted(await self.host.list_documents()):
            if self.tag_index.known(path):
                continue
            metadata = await self.host.get_parsed_metadata(path)
            self.tag_index.update(path, current_tags(metadata))
        templates = await self.registry.scan()
        self.state.save()
        return templates

    def should_drop(self, path: str) -> bool:
        """True if a notification for path is an echo of the engine's own work."""
        if self.guard.is_held(path):
            logger.debug("Dropping notification for %s: being processed", path)
            return True
        if self.recent.is_recent(path):
            logger.debug("Dropping notification for %s: just written", path)
            return True
        return False

    def notify_changed(self, path: str) -> None:
        """Host callback for a changed document; must run on the event loop."""
        if self.should_drop(path):
            return
        if self.debouncer.pending(path):
            logger.debug("Restarting quiet window for %s", path)
        self.debouncer.schedule(path, self.handle_change)

    async def handle_change(self, path: str) -> list[SyncResult]:
        """Process the current state of one changed document."""
        if self.should_drop(path):
            return []

        with self.guard.hold(OperationKind.DISPATCH, path):
            metadata = await self.host.get_parsed_metadata(path)
            if metadata is None:
                self._forget(path)
                self.state.save()
                return []

            tags = current_tags(metadata)
            previous = self.tag_index.previous(path)

            if self.registry.is_template(path, tags):
                results = [await self.propagate_template_change(path)]
            else:
                if self._was_tag_template(previous):
                    logger.info("%s is no longer a template", path)
                    self.state.remove_snapshot(template_name(path))
                added, removed = diff_tags(previous, tags)
                results = await self._process_references(path, tags, added, removed)

            if all(r.success for r in results):
                self.tag_index.update(path, tags)
            self.state.save()
            return results

    async def _process_references(
        self,
        path: str,
        tags: set[str],
        added: set[str],
        removed: set[str],
    ) -> list[SyncResult]:
        base = self.settings.tag_base
        added_names = reference_names(added, base)
        removed_names = reference_names(removed, base)
        results: list[SyncResult] = []

        if removed_names and self.settings.prune_empty_on_remove:
            remaining = await self._template_keys(reference_names(tags, base))
            for name in removed_names:
                results.append(await self.prune_on_reference_removed(path, name, keep=remaining))

        if added_names:
            results.append(await self.apply_template(path, added_names))

        return results

    async def _template_keys(self, names: list[str]) -> set[str]:
        keys: set[str] = set()
        for name in names:
            template = await self.registry.resolve(name)
            if template is not None:
                keys.update(template.properties)
        return keys

    def _was_tag_template(self, previous: set[str]) -> bool:
        return self.settings.template_folder is None and self.settings.tag_base in previous

    def _forget(self, path: str) -> None:
        previous = self.tag_index.previous(path)
        if self._was_tag_template(previous) or self.registry.in_template_folder(path):
            self.state.remove_snapshot(template_name(path))
        self.tag_index.forget(path)
        logger.debug("Forgot %s", path)

    def notify_deleted(self, path: str) -> None:
        """Host callback for a deleted document."""
        self._forget(path)
        self.state.save()

    async def notify_opened(self, path: str) -> dict[str, set[str]]:
        """Report which fields of an opened document come from its templates."""
        metadata = await self.host.get_parsed_metadata(path)
        if metadata is None:
            return {}

        derived: dict[str, set[str]] = {}
        for name in reference_names(current_tags(metadata), self.settings.tag_base):
            template = await self.registry.resolve(name)
            if template is None:
                continue
            keys = (set(template.properties) & set(metadata.fields)) - self.ignored_keys
            if keys:
                derived[name] = keys

        self.observer.template_fields(path, derived)
        return derived

    async def close(self) -> None:
        """Cancel pending windows and wait for running passes."""
        self.debouncer.cancel_all()
        await self.debouncer.drain()
        self.recent.clear()
