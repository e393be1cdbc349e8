"""Core gateway services.

Chunked upload assembly, archive extraction and directory-style listing,
each built only on the object store facade.
"""

from datasetmanager.services.archive_extractor import ArchiveExtractor, ExtractionResult
from datasetmanager.services.chunked_upload import (
    ChunkedUploadCoordinator,
    CompletionResult,
    UploadSession,
)
from datasetmanager.services.listing import DirectoryEntry, FileEntry, ListingProjector

__all__ = [
    "ArchiveExtractor",
    "ExtractionResult",
    "ChunkedUploadCoordinator",
    "CompletionResult",
    "UploadSession",
    "ListingProjector",
    "DirectoryEntry",
    "FileEntry",
]
