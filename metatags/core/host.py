"""Host contract consumed by the sync engine."""

from abc import ABC, abstractmethod

from ..models.document import ParsedMetadata


class HostWriteError(Exception):
    """Exception raised when the host rejects a document write."""

    def __init__(self, message: str, path: str | None = None, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.path = path
        self.cause = cause


class DocumentHost(ABC):
    """Document store, indexer and confirmation UI the engine runs against.

    Paths are vault-relative POSIX strings. Implementations deliver change
    notifications by calling the engine's ``notify_*`` methods.
    """

    @abstractmethod
    async def read_text(self, path: str) -> str:
        """Read the raw text of a document.

        Raises:
            FileNotFoundError: If the document does not exist
        """

    @abstractmethod
    async def write_text(self, path: str, text: str) -> None:
        """Replace the raw text of a document.

        Raises:
            HostWriteError: If the write is rejected
        """

    @abstractmethod
    async def list_documents(self) -> list[str]:
        """All document paths, in a stable order."""

    @abstractmethod
    async def get_parsed_metadata(self, path: str) -> ParsedMetadata | None:
        """Indexed tags and fields for a document, or None if unknown.

        May lag behind the latest write by one indexing cycle.
        """

    async def confirm_destructive_change(self, message: str) -> bool:
        """Ask the user to confirm a change that deletes document properties.

        The default refuses, so destructive propagation needs an explicit UI.
        """
        return False
