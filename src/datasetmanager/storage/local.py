"""Local filesystem object store backend."""

import asyncio
import logging
import os
import shutil
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import BinaryIO, Sequence
from urllib.parse import quote, unquote

from datasetmanager.core.config import StoreConfig
from datasetmanager.core.exceptions import ObjectNotFoundError, StoreUnavailableError
from datasetmanager.storage.base import ObjectInfo, ObjectStore

logger = logging.getLogger(__name__)

CHUNK_SIZE = 65536  # 64KB chunks


class LocalObjectStore(ObjectStore):
    """Object store kept in one flat directory per bucket.

    Each key is stored as a single file named after the URL-quoted key, so a
    key may be an object and the prefix of other keys at the same time.
    """

    def __init__(self, config: StoreConfig):
        super().__init__(config)
        self.base_path = Path(config.base_path)

    @property
    def objects_dir(self) -> Path:
        return self.base_path / self.bucket_name

    @property
    def staging_dir(self) -> Path:
        return self.base_path / ".staging"

    def _object_path(self, key: str) -> Path:
        if not key or key in (".", ".."):
            raise ValueError(f"Invalid object key: {key!r}")
        return self.objects_dir / quote(key, safe="")

    def _staging_file(self) -> tuple[int, str]:
        self.objects_dir.mkdir(parents=True, exist_ok=True)
        self.staging_dir.mkdir(parents=True, exist_ok=True)
        return tempfile.mkstemp(dir=self.staging_dir)

    async def put(self, key: str, stream: BinaryIO, length: int, content_type: str) -> None:
        """Stream ``length`` bytes into the object file via a staging file."""
        try:
            await asyncio.to_thread(self._put, key, stream, length)
        except OSError as e:
            raise StoreUnavailableError(f"Failed to store {key}: {e}") from e
        logger.debug(
            f"Stored {key}",
            extra={"key": key, "size_bytes": length, "content_type": content_type},
        )

    def _put(self, key: str, stream: BinaryIO, length: int) -> None:
        target = self._object_path(key)
        fd, tmp_name = self._staging_file()
        try:
            remaining = length
            with os.fdopen(fd, "wb") as f:
                while remaining > 0:
                    chunk = stream.read(min(CHUNK_SIZE, remaining))
                    if not chunk:
                        raise ValueError(
                            f"Stream for {key} ended after {length - remaining} of {length} bytes"
                        )
                    f.write(chunk)
                    remaining -= len(chunk)
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def get(self, key: str) -> BinaryIO:
        try:
            return open(self._object_path(key), "rb")
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key) from e
        except OSError as e:
            raise StoreUnavailableError(f"Failed to open {key}: {e}") from e

    async def delete(self, key: str) -> None:
        try:
            self._object_path(key).unlink()
        except FileNotFoundError as e:
            raise ObjectNotFoundError(key) from e
        except OSError as e:
            raise StoreUnavailableError(f"Failed to delete {key}: {e}") from e

    async def compose(self, target_key: str, source_keys: Sequence[str]) -> None:
        """Concatenate sources into a staging file, then move it into place."""
        try:
            await asyncio.to_thread(self._compose, target_key, list(source_keys))
        except OSError as e:
            raise StoreUnavailableError(f"Failed to compose {target_key}: {e}") from e

    def _compose(self, target_key: str, source_keys: list[str]) -> None:
        target = self._object_path(target_key)
        fd, tmp_name = self._staging_file()
        try:
            with os.fdopen(fd, "wb") as out:
                for source_key in source_keys:
                    try:
                        with open(self._object_path(source_key), "rb") as src:
                            shutil.copyfileobj(src, out, CHUNK_SIZE)
                    except FileNotFoundError as e:
                        raise ObjectNotFoundError(source_key) from e
            os.replace(tmp_name, target)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

    async def list_prefix(self, prefix: str, recursive: bool = False) -> list[ObjectInfo]:
        return await asyncio.to_thread(self._list_prefix, prefix, recursive)

    def _list_prefix(self, prefix: str, recursive: bool) -> list[ObjectInfo]:
        if not self.objects_dir.exists():
            return []

        keys = sorted(
            key
            for key in (unquote(entry.name) for entry in os.scandir(self.objects_dir))
            if key.startswith(prefix)
        )

        results: list[ObjectInfo] = []
        seen_prefixes: set[str] = set()
        for key in keys:
            rest = key[len(prefix):]
            if not recursive and "/" in rest:
                sub_prefix = prefix + rest[: rest.index("/") + 1]
                if sub_prefix not in seen_prefixes:
                    seen_prefixes.add(sub_prefix)
                    results.append(ObjectInfo(key=sub_prefix, is_prefix=True))
                continue

            try:
                stat = self._object_path(key).stat()
            except FileNotFoundError:
                # Deleted between scandir and stat
                continue
            results.append(
                ObjectInfo(
                    key=key,
                    size=stat.st_size,
                    last_modified=datetime.fromtimestamp(stat.st_mtime, tz=timezone.utc),
                )
            )
        return results

    def get_backend_name(self) -> str:
        return "local"
