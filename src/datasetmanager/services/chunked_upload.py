"""Chunked upload coordination.

Parts of a chunked upload are stored as ordinary objects under
``{target_key}/{upload_id}/{part_number}`` and composed into the target
object on completion. The store's namespace is the only record of an
upload session; nothing is kept in process between calls.
"""

import io
import logging
from dataclasses import dataclass, field
from typing import Sequence

from datasetmanager.core.exceptions import (
    GatewayError,
    ObjectNotFoundError,
    PartMissingError,
)
from datasetmanager.storage.base import ObjectStore

logger = logging.getLogger(__name__)

PART_CONTENT_TYPE = "application/octet-stream"


@dataclass
class UploadSession:
    """Parts stored so far for one chunked upload."""

    upload_id: str
    target_key: str
    received_parts: set[int] = field(default_factory=set)


@dataclass
class CompletionResult:
    """Outcome of a successful completion.

    ``cleanup_failures`` lists part keys that could not be deleted after the
    target object was composed. The target object is valid either way.
    """

    target_key: str
    part_count: int
    cleanup_failures: list[str] = field(default_factory=list)

    @property
    def cleanup_partial(self) -> bool:
        return bool(self.cleanup_failures)


def part_key(target_key: str, upload_id: str, part_number: int) -> str:
    """Return the key of one transient part."""
    return f"{target_key}/{upload_id}/{part_number}"


def _validate_upload_id(upload_id: str) -> None:
    if not upload_id or not upload_id.strip():
        raise ValueError("uploadId is required")
    if "/" in upload_id:
        raise ValueError("uploadId must not contain '/'")


def _validate_target_key(target_key: str) -> None:
    if not target_key or not target_key.strip("/"):
        raise ValueError("target path is required")


class ChunkedUploadCoordinator:
    """Stores upload parts and assembles them into their target object."""

    def __init__(self, store: ObjectStore):
        self.store = store

    async def upload_chunk(
        self, upload_id: str, part_number: int, data: bytes, target_key: str
    ) -> str:
        """Store one part. Re-uploading a part number replaces its content.

        Returns:
            Key of the stored part
        """
        _validate_upload_id(upload_id)
        _validate_target_key(target_key)
        if part_number < 1:
            raise ValueError("partNumber must be a positive integer")

        key = part_key(target_key, upload_id, part_number)
        await self.store.put(key, io.BytesIO(data), len(data), PART_CONTENT_TYPE)

        logger.info(
            f"Stored part {part_number} of upload {upload_id}",
            extra={
                "upload_id": upload_id,
                "part_number": part_number,
                "target_key": target_key,
                "size_bytes": len(data),
            },
        )
        return key

    async def get_session(self, upload_id: str, target_key: str) -> UploadSession:
        """Rebuild the session from the part objects present in the store."""
        _validate_upload_id(upload_id)
        _validate_target_key(target_key)

        parts_prefix = f"{target_key}/{upload_id}/"
        session = UploadSession(upload_id=upload_id, target_key=target_key)
        for item in await self.store.list_prefix(parts_prefix, recursive=True):
            suffix = item.key[len(parts_prefix):]
            if suffix.isdigit():
                session.received_parts.add(int(suffix))
        return session

    async def complete_upload(
        self, upload_id: str, target_key: str, part_numbers: Sequence[int]
    ) -> CompletionResult:
        """Compose the listed parts, in the given order, into ``target_key``.

        Callers are expected to complete an upload at most once; concurrent
        completions of the same upload are not serialized.

        Raises:
            ValueError: If no part numbers are given
            PartMissingError: If a listed part was never stored
            ComposeRejectedError: If the store refuses the composition
        """
        if not part_numbers:
            raise ValueError("partNumbers must not be empty")

        session = await self.get_session(upload_id, target_key)
        missing = [n for n in part_numbers if n not in session.received_parts]
        if missing:
            logger.warning(
                f"Cannot complete upload {upload_id}: missing parts {sorted(set(missing))}",
                extra={"upload_id": upload_id, "target_key": target_key},
            )
            raise PartMissingError(upload_id, target_key, missing)

        part_keys = [part_key(target_key, upload_id, n) for n in part_numbers]
        try:
            await self.store.compose(target_key, part_keys)
        except ObjectNotFoundError as e:
            # A part disappeared after the check, e.g. a concurrent completion
            session = await self.get_session(upload_id, target_key)
            missing = [n for n in part_numbers if n not in session.received_parts]
            raise PartMissingError(upload_id, target_key, missing or part_numbers) from e

        result = CompletionResult(target_key=target_key, part_count=len(part_numbers))
        for key in dict.fromkeys(part_keys):
            try:
                await self.store.delete(key)
            except GatewayError as e:
                logger.warning(
                    f"Failed to delete part {key} after completing upload {upload_id}: {e}",
                    extra={"upload_id": upload_id, "target_key": target_key, "part_key": key},
                )
                result.cleanup_failures.append(key)

        logger.info(
            f"Completed upload {upload_id} into {target_key}",
            extra={
                "upload_id": upload_id,
                "target_key": target_key,
                "part_count": len(part_numbers),
                "cleanup_failures": len(result.cleanup_failures),
            },
        )
        return result
