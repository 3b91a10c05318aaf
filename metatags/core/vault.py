"""Filesystem vault: a directory of Markdown notes acting as the host."""

import asyncio
import inspect
import logging
import os
import re
from pathlib import Path
from tempfile import NamedTemporaryFile
from typing import Awaitable, Callable

from ..models.document import ParsedMetadata
from . import frontmatter
from .host import DocumentHost, HostWriteError

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIX = ".md"

ConfirmCallback = Callable[[str], bool | Awaitable[bool]]

_FENCED_CODE_RE = re.compile(r"^(```|~~~).*?^\1", re.DOTALL | re.MULTILINE)
_INLINE_CODE_RE = re.compile(r"`[^`\n]*`")
_INLINE_TAG_RE = re.compile(r"(?<![\w#&/])#([\w][\w/-]*)")


def inline_tags(body: str) -> list[str]:
    """Find ``#tag`` annotations in a body, ignoring code and purely numeric tags."""
    text = _FENCED_CODE_RE.sub("", body)
    text = _INLINE_CODE_RE.sub("", text)
    tags = []
    for match in _INLINE_TAG_RE.finditer(text):
        tag = match.group(1).rstrip("/")
        if tag and not tag.isdigit() and tag not in tags:
            tags.append(tag)
    return tags


class VaultHost(DocumentHost):
    """Host backed by Markdown files under a root directory.

    Document paths are POSIX paths relative to the root. Hidden files and
    directories (names starting with ".") are not documents.
    """

    def __init__(self, root: Path, confirm: ConfirmCallback | None = None) -> None:
        """Initialize the vault.

        Args:
            root: Vault root directory
            confirm: Callback asked before destructive propagation (refuses if None)
        """
        self.root = Path(root).resolve()
        self._confirm = confirm

        if not self.root.is_dir():
            raise ValueError(f"Vault root is not a directory: {self.root}")

    def absolute(self, path: str) -> Path:
        """Absolute filesystem path of a document, refusing paths outside the vault."""
        full = (self.root / path).resolve()
        if not full.is_relative_to(self.root):
            raise ValueError(f"Path escapes the vault: {path}")
        return full

    def relative(self, abs_path: str | Path) -> str | None:
        """Document path for a filesystem path, or None if it is not a document."""
        try:
            rel = Path(abs_path).resolve().relative_to(self.root)
        except ValueError:
            return None
        posix = rel.as_posix()
        return posix if self.is_document(posix) else None

    @staticmethod
    def is_document(path: str) -> bool:
        parts = path.split("/")
        if any(part.startswith(".") for part in parts):
            return False
        return path.endswith(DOCUMENT_SUFFIX)

    def _scan(self) -> list[str]:
        paths = []
        for item in self.root.rglob(f"*{DOCUMENT_SUFFIX}"):
            if not item.is_file():
                continue
            rel = item.relative_to(self.root).as_posix()
            if self.is_document(rel):
                paths.append(rel)
        return sorted(paths)

    def _write_atomic(self, target: Path, text: str) -> None:
        tmp_file = None
        try:
            with NamedTemporaryFile(
                "w",
                encoding="utf-8",
                delete=False,
                dir=str(target.parent),
                prefix=".",
                suffix=".tmp",
                newline="",
            ) as tmp:
                tmp.write(text)
                tmp.flush()
                os.fsync(tmp.fileno())
                tmp_file = tmp.name
            os.replace(tmp_file, target)
        except OSError:
            if tmp_file and os.path.exists(tmp_file):
                os.unlink(tmp_file)
            raise

    async def read_text(self, path: str) -> str:
        full = self.absolute(path)
        return await asyncio.to_thread(full.read_text, encoding="utf-8")

    async def write_text(self, path: str, text: str) -> None:
        full = self.absolute(path)
        if not full.parent.is_dir():
            raise HostWriteError(f"Folder does not exist for {path}", path=path)
        try:
            await asyncio.to_thread(self._write_atomic, full, text)
        except OSError as e:
            raise HostWriteError(f"Failed to write {path}: {e}", path=path, cause=e) from e

    async def list_documents(self) -> list[str]:
        return await asyncio.to_thread(self._scan)

    async def get_parsed_metadata(self, path: str) -> ParsedMetadata | None:
        try:
            raw = await self.read_text(path)
        except FileNotFoundError:
            return None
        fields, body = frontmatter.parse(raw)
        return ParsedMetadata(tags=inline_tags(body), fields=fields)

    async def confirm_destructive_change(self, message: str) -> bool:
        if self._confirm is None:
            logger.warning("Destructive change refused (no confirmation available)")
            return False
        answer = self._confirm(message)
        if inspect.isawaitable(answer):
            answer = await answer
        return bool(answer)
