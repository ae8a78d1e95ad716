import builtins
import os

import pytest
from fastapi.testclient import TestClient

from conftest import FakeInstructorClient, FakeRasterizer, PDF_BYTES, PNG_BYTES
from cargo_extractor.api import routes
from cargo_extractor.api.routes import get_extraction_client, get_rasterizer
from cargo_extractor.core.config import settings
from cargo_extractor.main import app
from cargo_extractor.services.extractor import ExtractionClient


@pytest.fixture
def dirs(tmp_path, monkeypatch):
    upload_dir = tmp_path / "uploads"
    temp_dir = tmp_path / "temp_images"
    upload_dir.mkdir()
    monkeypatch.setattr(settings, "UPLOAD_DIR", str(upload_dir))
    monkeypatch.setattr(settings, "TEMP_IMAGES_DIR", str(temp_dir))
    return upload_dir, temp_dir


@pytest.fixture
def fakes():
    state = {"client": FakeInstructorClient([]), "rasterizer": FakeRasterizer(pages_per_pdf=3)}
    app.dependency_overrides[get_extraction_client] = lambda: ExtractionClient(client=state["client"])
    app.dependency_overrides[get_rasterizer] = lambda: state["rasterizer"]
    try:
        yield state
    finally:
        app.dependency_overrides.clear()


def test_health():
    client = TestClient(app)
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_metrics_exposed():
    response = TestClient(app).get("/metrics")
    assert response.status_code == 200
    assert "document_processing_total" in response.text


def test_upload_stores_files(dirs):
    upload_dir, _ = dirs
    client = TestClient(app)

    response = client.post(
        "/api/upload",
        files=[
            ("files", ("bill.pdf", PDF_BYTES, "application/pdf")),
            ("files", ("page.png", PNG_BYTES, "image/png")),
        ],
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["count"] == 2
    assert [f["originalname"] for f in body["files"]] == ["bill.pdf", "page.png"]
    stored = body["files"][0]
    assert stored["filename"].startswith("bill-") and stored["filename"].endswith(".pdf")
    assert (upload_dir / stored["filename"]).read_bytes() == PDF_BYTES


def test_upload_rejects_unsupported_type(dirs):
    response = TestClient(app).post("/api/upload", files=[("files", ("list.xlsx", b"PK\x03\x04", "application/octet-stream"))])

    assert response.status_code == 400
    assert response.json()["success"] is False
    assert "Invalid file type" in response.json()["message"]


def test_upload_rejects_oversized_file(dirs, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 10)

    response = TestClient(app).post("/api/upload", files=[("files", ("big.png", PNG_BYTES, "image/png"))])

    assert response.status_code == 400
    assert "too large" in response.json()["message"]
    assert "Maximum size is 10 bytes per file" in response.json()["message"]


def test_upload_writes_nothing_when_a_later_file_is_too_large(dirs, monkeypatch):
    upload_dir, _ = dirs
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 40)
    small = b"\x89PNG\r\n\x1a\n" + b"\x00" * 12
    big = b"\x89PNG\r\n\x1a\n" + b"\x00" * 122

    response = TestClient(app).post(
        "/api/upload",
        files=[("files", ("small.png", small, "image/png")), ("files", ("big.png", big, "image/png"))],
    )

    assert response.status_code == 400
    assert "big.png" in response.json()["message"]
    assert os.listdir(upload_dir) == []


def test_upload_limit_message_uses_kilobytes(dirs, monkeypatch):
    monkeypatch.setattr(settings, "MAX_UPLOAD_BYTES", 2048)

    response = TestClient(app).post("/api/upload", files=[("files", ("big.png", PNG_BYTES + b"\x00" * 4096, "image/png"))])

    assert response.status_code == 400
    assert "Maximum size is 2KB per file" in response.json()["message"]


def test_upload_removes_written_files_when_a_write_fails(dirs, monkeypatch):
    upload_dir, _ = dirs
    opened = []

    def failing_open(path, mode="r", *args, **kwargs):
        opened.append(path)
        if len(opened) == 2:
            raise OSError("No space left on device")
        return builtins.open(path, mode, *args, **kwargs)

    monkeypatch.setattr(routes, "open", failing_open, raising=False)

    response = TestClient(app, raise_server_exceptions=False).post(
        "/api/upload",
        files=[("files", ("bill.pdf", PDF_BYTES, "application/pdf")), ("files", ("page.png", PNG_BYTES, "image/png"))],
    )

    assert response.status_code == 500
    assert len(opened) == 2
    assert os.listdir(upload_dir) == []


def test_extract_merges_batches(dirs, fakes):
    upload_dir, temp_dir = dirs
    (upload_dir / "invoice.pdf").write_bytes(PDF_BYTES)
    fakes["client"].responses = [
        {"shipment_keys": {"invoice_number": "INV-1"}, "line_items": [{"description": "a"}, {"description": "b"}],
         "extraction_confidence": {"overall": 0.9}},
        {"line_items": [{"description": "c"}], "missing_fields": ["freight"], "extraction_confidence": {"overall": 0.5}},
    ]

    response = TestClient(app).post(
        "/api/extract",
        json={"filePaths": ["invoice.pdf"], "batchSize": 2, "documentType": "INVOICE"},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["success"] is True
    assert body["filesProcessed"] == 1
    assert body["documentType"] == "COMMERCIAL_INVOICE"
    assert body["pagesProcessed"] == 3
    assert body["batchesProcessed"] == 2
    assert len(body["data"]["line_items"]) == 3
    assert body["data"]["extraction_confidence"]["overall"] == pytest.approx(0.7)
    assert body["data"]["shipment_keys"]["invoice_number"] == "INV-1"
    assert not any(files for _, _, files in os.walk(temp_dir))


def test_extract_paths_cannot_escape_upload_dir(dirs, fakes, tmp_path):
    (tmp_path / "secret.png").write_bytes(PNG_BYTES)

    response = TestClient(app).post("/api/extract", json={"filePath": "../secret.png"})

    assert response.status_code == 404
    assert fakes["client"].calls == []


def test_extract_missing_files_is_404(dirs, fakes):
    response = TestClient(app).post("/api/extract", json={"filePaths": ["a.pdf", "b.png"]})

    assert response.status_code == 404
    body = response.json()
    assert body["success"] is False
    assert "a.pdf" in body["message"] and "b.png" in body["message"]


def test_extract_without_files_is_400(dirs, fakes):
    response = TestClient(app).post("/api/extract", json={})
    assert response.status_code == 400


@pytest.mark.parametrize("batch_size", [0, -1, "five"])
def test_extract_bad_batch_size_is_400(dirs, fakes, batch_size):
    (dirs[0] / "scan.png").write_bytes(PNG_BYTES)

    response = TestClient(app).post("/api/extract", json={"filePath": "scan.png", "batchSize": batch_size})

    assert response.status_code == 400
    assert fakes["client"].calls == []


def test_extract_provider_failure_is_500(dirs, fakes):
    import anthropic
    import httpx

    (dirs[0] / "scan.png").write_bytes(PNG_BYTES)
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    fakes["client"].responses = [anthropic.APITimeoutError(request=request)]

    response = TestClient(app).post("/api/extract", json={"filePath": "scan.png", "documentType": "HBL"})

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "Extraction provider error"
