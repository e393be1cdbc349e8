"""Abstract object store interface."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import BinaryIO, Optional, Sequence

from datasetmanager.core.config import StoreConfig


@dataclass(frozen=True)
class ObjectInfo:
    """One item returned by a prefix listing.

    Non-recursive listings also return common sub-prefixes; those carry
    ``is_prefix=True``, a key ending in ``/`` and no size or timestamp.
    """

    key: str
    size: int = 0
    last_modified: Optional[datetime] = None
    is_prefix: bool = False


class ObjectStore(ABC):
    """Bucket-scoped key/value object store.

    Implementations are bound to a single bucket through the ``StoreConfig``
    they are constructed with and contain no business logic.
    """

    def __init__(self, config: StoreConfig):
        self.config = config

    @property
    def bucket_name(self) -> str:
        return self.config.bucket

    @abstractmethod
    async def put(self, key: str, stream: BinaryIO, length: int, content_type: str) -> None:
        """Store ``length`` bytes read from ``stream`` under ``key``.

        Args:
            key: Object key
            stream: Readable binary stream positioned at the payload start
            length: Number of bytes to read from the stream
            content_type: MIME type recorded with the object
        """
        pass

    @abstractmethod
    async def get(self, key: str) -> BinaryIO:
        """Open ``key`` for reading.

        Raises:
            ObjectNotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    async def delete(self, key: str) -> None:
        """Remove ``key``.

        Raises:
            ObjectNotFoundError: If the key does not exist
        """
        pass

    @abstractmethod
    async def compose(self, target_key: str, source_keys: Sequence[str]) -> None:
        """Concatenate ``source_keys`` in the given order into ``target_key``.

        Raises:
            ObjectNotFoundError: If a source key does not exist
            ComposeRejectedError: If the store refuses the composition
        """
        pass

    @abstractmethod
    async def list_prefix(self, prefix: str, recursive: bool = False) -> list[ObjectInfo]:
        """List keys starting with ``prefix``.

        With ``recursive=False`` the listing stops at the next ``/`` after the
        prefix and returns each common sub-prefix once.
        """
        pass

    @abstractmethod
    def get_backend_name(self) -> str:
        """Return backend identifier."""
        pass
