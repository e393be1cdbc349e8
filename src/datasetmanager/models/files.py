"""File API data models."""

from datetime import datetime
from typing import List, Literal, Optional, Union

from pydantic import BaseModel


class DirectoryItem(BaseModel):
    """Directory entry of a listing."""

    name: str
    is_dir: Literal[True] = True


class FileItem(BaseModel):
    """File entry of a listing."""

    name: str
    is_dir: Literal[False] = False
    size: int
    last_modified: Optional[datetime] = None


ListingItem = Union[DirectoryItem, FileItem]


class UploadResponse(BaseModel):
    """Response model for single-shot upload."""

    key: str
    size_bytes: int
    content_type: str
    storage_backend: str


class SkippedMember(BaseModel):
    path: str
    reason: str


class ArchiveUploadResponse(BaseModel):
    """Response model for an archive expanded into objects."""

    destination_prefix: str
    count: int
    keys: List[str]
    skipped: List[SkippedMember] = []


class ChunkUploadResponse(BaseModel):
    """Response model for one stored chunk."""

    upload_id: str
    part_number: int
    part_key: str
    size_bytes: int


class UploadPartsResponse(BaseModel):
    """Parts currently stored for a chunked upload."""

    upload_id: str
    target_key: str
    received_parts: List[int]


class CompleteUploadResponse(BaseModel):
    """Response model for a completed chunked upload."""

    key: str
    part_count: int
    cleanup_partial: bool
    cleanup_failures: List[str] = []


class DeleteResponse(BaseModel):
    key: str
    deleted: bool = True
