"""Archive extraction into individual objects."""

import logging
import zipfile
import zlib
from dataclasses import dataclass, field
from typing import BinaryIO, List, Optional

from datasetmanager.core.exceptions import ArchiveCorruptError
from datasetmanager.storage.base import ObjectStore

logger = logging.getLogger(__name__)

MEMBER_CONTENT_TYPE = "application/octet-stream"

_CORRUPT_ARCHIVE_ERRORS = (zipfile.BadZipFile, zipfile.LargeZipFile, zlib.error, EOFError)


class _MemberReader:
    """Reads exactly the declared size of an archive member.

    Raises EOFError when the member data ends before its declared size.
    """

    def __init__(self, member: BinaryIO, size: int):
        self._member = member
        self._remaining = size

    def read(self, size: int = -1) -> bytes:
        if self._remaining <= 0:
            return b""
        if size is None or size < 0 or size > self._remaining:
            size = self._remaining
        data = self._member.read(size)
        if not data:
            raise EOFError(f"Archive member truncated with {self._remaining} bytes missing")
        self._remaining -= len(data)
        return data


@dataclass
class SkippedEntry:
    """An archive member that was not stored."""

    path: str
    reason: str  # unsafe_path, encrypted, too_large or entry_limit


@dataclass
class ExtractionResult:
    """Objects written by one extraction."""

    count: int = 0
    keys: List[str] = field(default_factory=list)
    skipped: List[SkippedEntry] = field(default_factory=list)


def sanitize_entry_path(name: str) -> Optional[str]:
    """Normalize an archive member name into a relative key suffix.

    Returns:
        The cleaned relative path, or None if the name must be rejected
    """
    segments = [s for s in name.replace("\\", "/").split("/") if s not in ("", ".")]
    if not segments:
        return None
    if ".." in segments:
        return None
    # Windows drive letters such as C:
    if segments[0].endswith(":"):
        return None
    return "/".join(segments)


def destination_key(prefix: str, relative_path: str) -> str:
    """Join a destination prefix and a sanitized member path."""
    prefix = prefix.rstrip("/")
    if not prefix:
        return relative_path
    return f"{prefix}/{relative_path}"


class ArchiveExtractor:
    """Writes every file of a ZIP archive as its own object under a prefix."""

    def __init__(
        self,
        store: ObjectStore,
        max_entries: int = 10_000,
        max_entry_size_mb: int = 500,
    ):
        """Initialize extractor with limits.

        Args:
            store: Object store receiving the extracted members
            max_entries: Maximum number of objects written per archive
            max_entry_size_mb: Maximum uncompressed size per member in MB
        """
        self.store = store
        self.max_entries = max_entries
        self.max_entry_size_bytes = max_entry_size_mb * 1024 * 1024

    async def extract(self, archive_stream: BinaryIO, destination_prefix: str) -> ExtractionResult:
        """Extract a ZIP archive member by member into the store.

        Members are read one at a time and streamed straight into the store
        with their uncompressed length, so memory use is bounded per member.
        Objects written before a failure are kept.

        Args:
            archive_stream: Seekable binary stream holding the archive
            destination_prefix: Key prefix the member paths are placed under

        Returns:
            ExtractionResult with the count of objects written

        Raises:
            ArchiveCorruptError: If the archive is corrupt or truncated
        """
        logger.info(
            "Starting archive extraction",
            extra={"destination_prefix": destination_prefix},
        )
        result = ExtractionResult()

        try:
            with zipfile.ZipFile(archive_stream) as archive:
                for info in archive.infolist():
                    if info.is_dir():
                        continue

                    reason = self._skip_reason(info, result)
                    relative_path = sanitize_entry_path(info.filename)
                    if relative_path is None:
                        reason = "unsafe_path"
                    if reason:
                        logger.warning(
                            f"Skipping archive member {info.filename}: {reason}",
                            extra={"member": info.filename, "reason": reason},
                        )
                        result.skipped.append(SkippedEntry(path=info.filename, reason=reason))
                        continue

                    key = destination_key(destination_prefix, relative_path)
                    with archive.open(info) as member:
                        await self.store.put(
                            key, _MemberReader(member, info.file_size), info.file_size, MEMBER_CONTENT_TYPE
                        )
                    result.count += 1
                    result.keys.append(key)

        except _CORRUPT_ARCHIVE_ERRORS as e:
            logger.error(
                f"Corrupted ZIP archive: {e}",
                extra={"destination_prefix": destination_prefix, "written": result.count},
            )
            raise ArchiveCorruptError(f"Corrupted ZIP archive: {e}") from e

        logger.info(
            f"Extracted {result.count} objects to {destination_prefix}",
            extra={
                "destination_prefix": destination_prefix,
                "written": result.count,
                "skipped": len(result.skipped),
            },
        )
        return result

    def _skip_reason(self, info: zipfile.ZipInfo, result: ExtractionResult) -> Optional[str]:
        if info.flag_bits & 0x1:
            return "encrypted"
        if info.file_size > self.max_entry_size_bytes:
            return "too_large"
        if result.count >= self.max_entries:
            return "entry_limit"
        return None
