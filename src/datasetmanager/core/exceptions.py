"""Exceptions raised by the gateway core and its object store facade."""

from typing import Sequence


class GatewayError(Exception):
    """Base exception for the Dataset Manager gateway."""
    pass


class ObjectNotFoundError(GatewayError):
    """Raised when a key does not exist in the object store."""

    def __init__(self, key: str):
        super().__init__(f"Object not found: {key}")
        self.key = key


class StoreUnavailableError(GatewayError):
    """Raised when the backing object store cannot be reached or refuses access."""
    pass


class ComposeRejectedError(GatewayError):
    """Raised when the object store refuses to compose the requested sources."""
    pass


class PartMissingError(GatewayError):
    """Raised when a chunked upload is completed with parts that were never stored."""

    def __init__(self, upload_id: str, target_key: str, missing: Sequence[int]):
        self.upload_id = upload_id
        self.target_key = target_key
        self.missing = sorted(set(missing))
        parts = ", ".join(str(n) for n in self.missing)
        super().__init__(
            f"Upload {upload_id} for {target_key} is missing part(s): {parts}"
        )


class ArchiveCorruptError(GatewayError):
    """Raised when an uploaded archive is corrupt or truncated."""
    pass
