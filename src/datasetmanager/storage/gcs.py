"""Google Cloud Storage object store backend."""

import asyncio
import logging
from typing import BinaryIO, Optional, Sequence

from google.api_core.exceptions import BadRequest, GoogleAPIError, NotFound, PreconditionFailed
from google.cloud import storage

from datasetmanager.core.config import StoreConfig
from datasetmanager.core.exceptions import (
    ComposeRejectedError,
    ObjectNotFoundError,
    StoreUnavailableError,
)
from datasetmanager.storage.base import ObjectInfo, ObjectStore

logger = logging.getLogger(__name__)

# GCS accepts at most 32 source objects per compose request
MAX_COMPOSE_SOURCES = 32


class GCSObjectStore(ObjectStore):
    """Google Cloud Storage backend."""

    def __init__(self, config: StoreConfig):
        super().__init__(config)
        self._client: Optional[storage.Client] = None
        self._bucket: Optional[storage.Bucket] = None

    def _get_bucket(self) -> storage.Bucket:
        """Lazy-load and cache GCS bucket."""
        if self._bucket is None:
            if not self.config.bucket:
                raise ValueError("GCS_BUCKET_NAME not configured")

            self._client = storage.Client(project=self.config.project_id or None)
            self._bucket = self._client.bucket(self.config.bucket)

        return self._bucket

    async def put(self, key: str, stream: BinaryIO, length: int, content_type: str) -> None:
        """Upload ``length`` bytes from ``stream`` to GCS."""
        blob = self._get_bucket().blob(key)
        try:
            await asyncio.to_thread(
                blob.upload_from_file,
                stream,
                size=length,
                content_type=content_type,
                rewind=False,
            )
        except GoogleAPIError as e:
            logger.error(
                f"Failed to upload {key}: {e}",
                extra={"bucket": self.bucket_name, "key": key, "error": str(e)},
            )
            raise StoreUnavailableError(f"Failed to upload gs://{self.bucket_name}/{key}: {e}") from e

    async def get(self, key: str) -> BinaryIO:
        """Open a streaming reader for ``key``."""
        bucket = self._get_bucket()
        try:
            blob = await asyncio.to_thread(bucket.get_blob, key)
        except GoogleAPIError as e:
            raise StoreUnavailableError(f"Failed to read gs://{self.bucket_name}/{key}: {e}") from e

        if blob is None:
            raise ObjectNotFoundError(key)
        return blob.open("rb")

    async def delete(self, key: str) -> None:
        blob = self._get_bucket().blob(key)
        try:
            await asyncio.to_thread(blob.delete)
        except NotFound as e:
            raise ObjectNotFoundError(key) from e
        except GoogleAPIError as e:
            raise StoreUnavailableError(f"Failed to delete gs://{self.bucket_name}/{key}: {e}") from e

    async def compose(self, target_key: str, source_keys: Sequence[str]) -> None:
        """Compose sources into ``target_key``.

        More than 32 sources are folded in batches: the first batch creates
        the target, every following batch is appended with the current target
        as its first source. If a later batch fails, the partially composed
        target is deleted before the error is raised.
        """
        if not source_keys:
            raise ComposeRejectedError("Compose requires at least one source object")

        bucket = self._get_bucket()
        target = bucket.blob(target_key)
        target.content_type = "application/octet-stream"

        batches = [list(source_keys[:MAX_COMPOSE_SOURCES])]
        rest = list(source_keys[MAX_COMPOSE_SOURCES:])
        step = MAX_COMPOSE_SOURCES - 1
        batches.extend(rest[i:i + step] for i in range(0, len(rest), step))

        for index, batch in enumerate(batches):
            sources = [bucket.blob(key) for key in batch]
            if index > 0:
                sources.insert(0, bucket.blob(target_key))
            try:
                await asyncio.to_thread(target.compose, sources)
            except Exception as e:
                if index > 0:
                    await self._discard_partial(target_key)
                if isinstance(e, NotFound):
                    raise ObjectNotFoundError(", ".join(batch)) from e
                if isinstance(e, (BadRequest, PreconditionFailed)):
                    raise ComposeRejectedError(f"Compose of {target_key} rejected: {e}") from e
                if isinstance(e, GoogleAPIError):
                    raise StoreUnavailableError(f"Failed to compose {target_key}: {e}") from e
                raise

        logger.info(
            f"Composed {target_key} from {len(source_keys)} objects",
            extra={"bucket": self.bucket_name, "key": target_key, "batches": len(batches)},
        )

    async def _discard_partial(self, target_key: str) -> None:
        try:
            await asyncio.to_thread(self._get_bucket().blob(target_key).delete)
        except GoogleAPIError as e:
            logger.warning(
                f"Failed to remove partially composed object {target_key}: {e}",
                extra={"bucket": self.bucket_name, "key": target_key},
            )

    async def list_prefix(self, prefix: str, recursive: bool = False) -> list[ObjectInfo]:
        return await asyncio.to_thread(self._list_prefix, prefix, recursive)

    def _list_prefix(self, prefix: str, recursive: bool) -> list[ObjectInfo]:
        bucket = self._get_bucket()
        try:
            iterator = self._client.list_blobs(
                bucket,
                prefix=prefix or None,
                delimiter=None if recursive else "/",
            )
            results = [
                ObjectInfo(key=blob.name, size=blob.size or 0, last_modified=blob.updated)
                for blob in iterator
            ]
        except GoogleAPIError as e:
            raise StoreUnavailableError(f"Failed to list gs://{self.bucket_name}/{prefix}: {e}") from e

        # Prefixes are only populated once all pages have been consumed
        results.extend(ObjectInfo(key=p, is_prefix=True) for p in sorted(iterator.prefixes))
        return results

    def get_backend_name(self) -> str:
        return "gcs"
