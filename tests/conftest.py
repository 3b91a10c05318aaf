"""Shared fixtures: an in-memory document host."""

import pytest

from metatags.core import frontmatter
from metatags.core.host import DocumentHost, HostWriteError
from metatags.core.vault import inline_tags
from metatags.models.config import MetaTagsSettings
from metatags.models.document import ParsedMetadata


class FakeHost(DocumentHost):
    """Dictionary-backed host that records writes and confirmation prompts."""

    def __init__(self, documents: dict[str, str] | None = None, confirm: bool = True) -> None:
        self.documents = dict(documents or {})
        self.confirm_answer = confirm
        self.confirm_messages: list[str] = []
        self.writes: list[str] = []
        self.fail_writes: set[str] = set()

    async def read_text(self, path: str) -> str:
        if path not in self.documents:
            raise FileNotFoundError(path)
        return self.documents[path]

    async def write_text(self, path: str, text: str) -> None:
        if path in self.fail_writes:
            raise HostWriteError(f"Write rejected: {path}", path=path)
        self.documents[path] = text
        self.writes.append(path)

    async def list_documents(self) -> list[str]:
        return sorted(self.documents)

    async def get_parsed_metadata(self, path: str) -> ParsedMetadata | None:
        if path not in self.documents:
            return None
        fields, body = frontmatter.parse(self.documents[path])
        return ParsedMetadata(tags=inline_tags(body), fields=fields)

    async def confirm_destructive_change(self, message: str) -> bool:
        self.confirm_messages.append(message)
        return self.confirm_answer

    def fields(self, path: str) -> dict:
        return frontmatter.parse(self.documents[path])[0]


@pytest.fixture
def settings() -> MetaTagsSettings:
    return MetaTagsSettings(
        template_folder="Templates",
        debounce_seconds=0.01,
        recent_write_window=0.0,
        state_file=None,
    )


@pytest.fixture
def make_host():
    """Factory for a FakeHost preloaded with documents."""
    return FakeHost
