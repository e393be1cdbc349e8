"""Directory-style listing over a flat key space."""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Optional, Union

from datasetmanager.storage.base import ObjectStore

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DirectoryEntry:
    """A synthetic directory: every key sharing this first path segment."""

    name: str
    is_dir: Literal[True] = True


@dataclass(frozen=True)
class FileEntry:
    """A key with no further separator below the listed prefix."""

    name: str
    size: int
    last_modified: Optional[datetime]
    is_dir: Literal[False] = False


ListingEntry = Union[DirectoryEntry, FileEntry]


class ListingProjector:
    """Projects one level of the key space as directories and files."""

    def __init__(self, store: ObjectStore):
        self.store = store

    async def list_entries(self, prefix: str) -> list[ListingEntry]:
        """List one level below ``prefix``. ``"/"`` is the root."""
        if prefix == "/":
            prefix = ""

        entries: list[ListingEntry] = []
        seen_dirs: set[str] = set()
        for item in await self.store.list_prefix(prefix, recursive=False):
            remaining = item.key[len(prefix):]
            if not remaining:
                continue

            if "/" in remaining:
                dir_name = remaining[: remaining.index("/") + 1]
                if dir_name not in seen_dirs:
                    seen_dirs.add(dir_name)
                    entries.append(DirectoryEntry(name=dir_name))
            else:
                entries.append(
                    FileEntry(name=remaining, size=item.size, last_modified=item.last_modified)
                )

        logger.debug(
            f"Listed {len(entries)} entries under {prefix!r}",
            extra={"prefix": prefix, "entries": len(entries)},
        )
        return entries
