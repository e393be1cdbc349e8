"""File manager API routes."""

import logging
import mimetypes
from typing import BinaryIO, Iterator, List, Union
from urllib.parse import quote

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from fastapi.responses import StreamingResponse

from datasetmanager.core.config import Settings, settings as app_settings
from datasetmanager.core.exceptions import (
    ArchiveCorruptError,
    ComposeRejectedError,
    GatewayError,
    ObjectNotFoundError,
    PartMissingError,
    StoreUnavailableError,
)
from datasetmanager.core.logging import object_key_context
from datasetmanager.models.files import (
    ArchiveUploadResponse,
    ChunkUploadResponse,
    CompleteUploadResponse,
    DeleteResponse,
    DirectoryItem,
    FileItem,
    ListingItem,
    SkippedMember,
    UploadPartsResponse,
    UploadResponse,
)
from datasetmanager.services.archive_extractor import ArchiveExtractor
from datasetmanager.services.chunked_upload import ChunkedUploadCoordinator
from datasetmanager.services.listing import DirectoryEntry, ListingProjector
from datasetmanager.storage.base import ObjectStore

router = APIRouter(prefix="/api/files", tags=["files"])
logger = logging.getLogger(__name__)

DOWNLOAD_CHUNK_SIZE = 65536


def get_settings(request: Request) -> Settings:
    return getattr(request.app.state, "settings", app_settings)


def get_object_store(request: Request) -> ObjectStore:
    """Object store created by the application factory."""
    return request.app.state.object_store


def get_coordinator(store: ObjectStore = Depends(get_object_store)) -> ChunkedUploadCoordinator:
    return ChunkedUploadCoordinator(store)


def get_extractor(
    store: ObjectStore = Depends(get_object_store),
    settings: Settings = Depends(get_settings),
) -> ArchiveExtractor:
    return ArchiveExtractor(
        store,
        max_entries=settings.ARCHIVE_MAX_ENTRIES,
        max_entry_size_mb=settings.ARCHIVE_MAX_ENTRY_SIZE_MB,
    )


def get_listing(store: ObjectStore = Depends(get_object_store)) -> ListingProjector:
    return ListingProjector(store)


def _to_http_exception(e: Exception) -> HTTPException:
    """Translate a core failure into the HTTP error returned to the caller."""
    if isinstance(e, ObjectNotFoundError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PartMissingError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, ComposeRejectedError):
        return HTTPException(status_code=422, detail=str(e))
    if isinstance(e, (ArchiveCorruptError, ValueError)):
        return HTTPException(status_code=400, detail=str(e))
    if isinstance(e, StoreUnavailableError):
        return HTTPException(status_code=503, detail="Object store unavailable")
    return HTTPException(status_code=500, detail="Internal server error")


def _raise_for(e: Exception, operation: str) -> None:
    if isinstance(e, HTTPException):
        raise e
    if isinstance(e, (GatewayError, ValueError)):
        logger.warning(f"{operation} failed: {e}", extra={"error_type": type(e).__name__})
    else:
        logger.error(f"Unexpected error during {operation}: {e}", exc_info=True)
    raise _to_http_exception(e) from e


def _file_size(file: UploadFile) -> int:
    file.file.seek(0, 2)  # Seek to end
    size_bytes = file.file.tell()
    file.file.seek(0)  # Reset to beginning
    return size_bytes


def _check_size(size_bytes: int, settings: Settings) -> None:
    if size_bytes > settings.max_upload_bytes:
        raise HTTPException(
            status_code=413,
            detail=f"File size exceeds maximum allowed size of {settings.MAX_UPLOAD_MB}MB",
        )


def _parse_part_numbers(values: List[str]) -> List[int]:
    """Accept repeated form fields as well as comma-separated values."""
    part_numbers = []
    for value in values:
        for token in value.split(","):
            token = token.strip()
            if not token:
                continue
            try:
                part_numbers.append(int(token))
            except ValueError:
                raise HTTPException(status_code=400, detail=f"Invalid part number: {token}")
    if not part_numbers:
        raise HTTPException(status_code=400, detail="partNumbers is required")
    return part_numbers


@router.post(
    "/upload",
    response_model=Union[UploadResponse, ArchiveUploadResponse],
    status_code=201,
)
async def upload_file(
    file: UploadFile = File(...),
    path: str = Form(""),
    store: ObjectStore = Depends(get_object_store),
    extractor: ArchiveExtractor = Depends(get_extractor),
    settings: Settings = Depends(get_settings),
) -> Union[UploadResponse, ArchiveUploadResponse]:
    """Upload a file under ``path``. ZIP archives are expanded into one object per member."""
    try:
        size_bytes = _file_size(file)
        _check_size(size_bytes, settings)

        file_name = file.filename or "unnamed"
        object_name = path + file_name
        object_key_context.set(object_name)

        if file_name.lower().endswith(".zip"):
            result = await extractor.extract(file.file, object_name)
            return ArchiveUploadResponse(
                destination_prefix=object_name,
                count=result.count,
                keys=result.keys,
                skipped=[SkippedMember(path=s.path, reason=s.reason) for s in result.skipped],
            )

        content_type = file.content_type or "application/octet-stream"
        await store.put(object_name, file.file, size_bytes, content_type)

        logger.info(
            f"Upload completed: key={object_name}, backend={store.get_backend_name()}, size={size_bytes}"
        )
        return UploadResponse(
            key=object_name,
            size_bytes=size_bytes,
            content_type=content_type,
            storage_backend=store.get_backend_name(),
        )
    except Exception as e:
        _raise_for(e, "upload")


@router.post("/upload/chunk", response_model=ChunkUploadResponse, status_code=201)
async def upload_chunk(
    chunk: UploadFile = File(...),
    uploadId: str = Form(...),
    partNumber: int = Form(...),
    path: str = Form(...),
    coordinator: ChunkedUploadCoordinator = Depends(get_coordinator),
    settings: Settings = Depends(get_settings),
) -> ChunkUploadResponse:
    """Store one part of a chunked upload."""
    try:
        _check_size(_file_size(chunk), settings)
        object_key_context.set(path)

        data = await chunk.read()
        key = await coordinator.upload_chunk(uploadId, partNumber, data, path)
        return ChunkUploadResponse(
            upload_id=uploadId,
            part_number=partNumber,
            part_key=key,
            size_bytes=len(data),
        )
    except Exception as e:
        _raise_for(e, "chunk upload")


@router.get("/upload/parts", response_model=UploadPartsResponse)
async def list_upload_parts(
    uploadId: str = Query(...),
    path: str = Query(...),
    coordinator: ChunkedUploadCoordinator = Depends(get_coordinator),
) -> UploadPartsResponse:
    """Report which parts of a chunked upload are stored."""
    try:
        session = await coordinator.get_session(uploadId, path)
        return UploadPartsResponse(
            upload_id=session.upload_id,
            target_key=session.target_key,
            received_parts=sorted(session.received_parts),
        )
    except Exception as e:
        _raise_for(e, "part listing")


@router.post("/upload/complete", response_model=CompleteUploadResponse)
async def complete_upload(
    uploadId: str = Form(...),
    path: str = Form(...),
    partNumbers: List[str] = Form(...),
    coordinator: ChunkedUploadCoordinator = Depends(get_coordinator),
) -> CompleteUploadResponse:
    """Assemble the stored parts, in the given order, into ``path``."""
    try:
        object_key_context.set(path)
        result = await coordinator.complete_upload(
            uploadId, path, _parse_part_numbers(partNumbers)
        )
        return CompleteUploadResponse(
            key=result.target_key,
            part_count=result.part_count,
            cleanup_partial=result.cleanup_partial,
            cleanup_failures=result.cleanup_failures,
        )
    except Exception as e:
        _raise_for(e, "upload completion")


@router.get("/list", response_model=List[ListingItem])
async def list_files(
    path: str = Query(""),
    listing: ListingProjector = Depends(get_listing),
) -> List[ListingItem]:
    """List the directories and files directly below ``path``."""
    try:
        entries = await listing.list_entries(path)
    except Exception as e:
        _raise_for(e, "listing")

    return [
        DirectoryItem(name=entry.name)
        if isinstance(entry, DirectoryEntry)
        else FileItem(name=entry.name, size=entry.size, last_modified=entry.last_modified)
        for entry in entries
    ]


def _iter_stream(stream: BinaryIO) -> Iterator[bytes]:
    try:
        while chunk := stream.read(DOWNLOAD_CHUNK_SIZE):
            yield chunk
    finally:
        stream.close()


@router.get("/download")
async def download_file(
    path: str = Query(...),
    store: ObjectStore = Depends(get_object_store),
) -> StreamingResponse:
    """Stream an object back as an attachment."""
    try:
        object_key_context.set(path)
        stream = await store.get(path)
    except Exception as e:
        _raise_for(e, "download")

    file_name = path[path.rfind("/") + 1:] or "download"
    content_type, _ = mimetypes.guess_type(file_name)
    return StreamingResponse(
        _iter_stream(stream),
        media_type=content_type or "application/octet-stream",
        headers={
            "Content-Disposition": f"attachment; filename*=UTF-8''{quote(file_name)}",
        },
    )


@router.delete("", response_model=DeleteResponse)
async def delete_file(
    path: str = Query(...),
    store: ObjectStore = Depends(get_object_store),
) -> DeleteResponse:
    """Delete one object."""
    try:
        object_key_context.set(path)
        await store.delete(path)
        logger.info(f"Deleted {path}")
        return DeleteResponse(key=path)
    except Exception as e:
        _raise_for(e, "delete")
