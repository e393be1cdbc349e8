"""Tests for the file manager API routes."""

import io
from unittest.mock import AsyncMock

from datasetmanager.core.exceptions import StoreUnavailableError


def _upload_chunk(client, upload_id, part_number, data, path):
    return client.post(
        "/api/files/upload/chunk",
        files={"chunk": ("blob", io.BytesIO(data), "application/octet-stream")},
        data={"uploadId": upload_id, "partNumber": str(part_number), "path": path},
    )


def test_chunked_upload_end_to_end(client):
    """Chunks uploaded out of order are assembled, downloadable and listed."""
    assert _upload_chunk(client, "u1", 2, b"B", "ds/video.mp4").status_code == 201
    assert _upload_chunk(client, "u1", 1, b"A", "ds/video.mp4").status_code == 201

    parts = client.get("/api/files/upload/parts", params={"uploadId": "u1", "path": "ds/video.mp4"})
    assert parts.json()["received_parts"] == [1, 2]

    response = client.post(
        "/api/files/upload/complete",
        data={"uploadId": "u1", "path": "ds/video.mp4", "partNumbers": ["1", "2"]},
    )
    assert response.status_code == 200
    assert response.json()["cleanup_partial"] is False

    download = client.get("/api/files/download", params={"path": "ds/video.mp4"})
    assert download.status_code == 200
    assert download.content == b"AB"
    assert download.headers["content-type"] == "video/mp4"
    assert "attachment" in download.headers["content-disposition"]

    listing = client.get("/api/files/list", params={"path": "ds/"})
    assert listing.status_code == 200
    entries = listing.json()
    assert len(entries) == 1
    assert entries[0]["name"] == "video.mp4"
    assert entries[0]["is_dir"] is False
    assert entries[0]["size"] == 2


def test_complete_accepts_comma_separated_part_numbers(client):
    _upload_chunk(client, "u2", 1, b"x", "a.bin")
    _upload_chunk(client, "u2", 2, b"y", "a.bin")

    response = client.post(
        "/api/files/upload/complete",
        data={"uploadId": "u2", "path": "a.bin", "partNumbers": "1,2"},
    )

    assert response.status_code == 200
    assert client.get("/api/files/download", params={"path": "a.bin"}).content == b"xy"


def test_complete_with_missing_part(client):
    _upload_chunk(client, "u3", 1, b"x", "m.bin")

    response = client.post(
        "/api/files/upload/complete",
        data={"uploadId": "u3", "path": "m.bin", "partNumbers": ["1", "2"]},
    )

    assert response.status_code == 409
    assert "2" in response.json()["detail"]
    assert client.get("/api/files/download", params={"path": "m.bin"}).status_code == 404


def test_complete_with_invalid_part_number(client):
    response = client.post(
        "/api/files/upload/complete",
        data={"uploadId": "u4", "path": "m.bin", "partNumbers": "one"},
    )

    assert response.status_code == 400


def test_upload_plain_file(client):
    response = client.post(
        "/api/files/upload",
        files={"file": ("report.csv", io.BytesIO(b"name,age\nJohn,30"), "text/csv")},
        data={"path": "reports/"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["key"] == "reports/report.csv"
    assert body["size_bytes"] == 16
    assert body["storage_backend"] == "local"

    listing = client.get("/api/files/list", params={"path": "/"}).json()
    assert listing == [{"name": "reports/", "is_dir": True}]


def test_upload_zip_is_extracted(client, make_zip):
    archive = make_zip([
        ("docs/readme.txt", b"hi"),
        ("../../etc/passwd", b"root"),
    ])

    response = client.post(
        "/api/files/upload",
        files={"file": ("bundle.zip", archive, "application/zip")},
        data={"path": "ds/"},
    )

    assert response.status_code == 201
    body = response.json()
    assert body["count"] == 1
    assert body["keys"] == ["ds/bundle.zip/docs/readme.txt"]
    assert body["skipped"] == [{"path": "../../etc/passwd", "reason": "unsafe_path"}]


def test_upload_corrupt_zip(client):
    response = client.post(
        "/api/files/upload",
        files={"file": ("broken.zip", io.BytesIO(b"not a zip"), "application/zip")},
    )

    assert response.status_code == 400


def test_upload_oversized_file(client):
    response = client.post(
        "/api/files/upload",
        files={"file": ("large.bin", io.BytesIO(b"x" * (1024 * 1024 + 1)), "application/octet-stream")},
    )

    assert response.status_code == 413


def test_delete(client):
    client.post(
        "/api/files/upload",
        files={"file": ("a.txt", io.BytesIO(b"a"), "text/plain")},
    )

    assert client.delete("/api/files", params={"path": "a.txt"}).status_code == 200
    assert client.delete("/api/files", params={"path": "a.txt"}).status_code == 404
    assert client.get("/api/files/list").json() == []


def test_download_missing(client):
    assert client.get("/api/files/download", params={"path": "nope.txt"}).status_code == 404


def test_store_unavailable_is_503(client, local_store):
    local_store.list_prefix = AsyncMock(side_effect=StoreUnavailableError("down"))

    response = client.get("/api/files/list")

    assert response.status_code == 503
