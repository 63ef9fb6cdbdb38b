from __future__ import annotations

import httpx
import pytest
from fastapi.testclient import TestClient

from imgchain.api import app as api_app
from imgchain.config import ServiceConfig
from imgchain.service import ImageProcessingService

from conftest import FakeEngine


@pytest.fixture
def client(monkeypatch, uploads, out_dir, seed):
    cfg = ServiceConfig(uploads_dir=uploads, output_dir=out_dir)
    service = ImageProcessingService(cfg, engine=FakeEngine())
    monkeypatch.setattr(api_app, "get_service", lambda: service)
    return TestClient(api_app.app)


def test_health(client):
    r = client.get("/api/health")
    assert r.status_code == 200
    assert r.json()["status"] == "healthy"


def test_info(client):
    r = client.post("/api/info", json={"filename": "photo.jpg"})
    assert r.status_code == 200
    info = r.json()["info"]
    assert (info["width"], info["height"]) == (800, 600)
    assert info["format"] == "JPEG"


def test_info_missing_file(client):
    r = client.post("/api/info", json={"filename": "nope.jpg"})
    assert r.status_code == 404


def test_process(client, out_dir):
    r = client.post(
        "/api/process",
        json={
            "filename": "photo.jpg",
            "operations": [
                {"type": "crop", "params": {"width": 100, "height": 100}},
                {"type": "effects-grayscale", "params": {"intensity": 100}},
            ],
        },
    )
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["source"] == "local"
    assert body["requested"] == "photo.jpg"
    assert len(body["commands"]) == 2
    assert body["path"] == f"/output/{body['outputFile']}"
    assert (out_dir / body["outputFile"]).exists()


@pytest.mark.parametrize(
    "payload, status",
    [
        ({"filename": "photo.jpg", "operations": []}, 400),
        ({"filename": "photo.jpg", "operations": [{"type": "filter"}]}, 400),
        ({"filename": "photo.jpg", "operations": [{"type": "sparkle"}]}, 400),
        ({"filename": "photo.jpg", "operations": [{"type": "crop", "params": {"width": 5}}]}, 400),
        ({"filename": "missing.jpg", "operations": [{"type": "flip"}]}, 404),
        ({"filename": "  ", "operations": [{"type": "flip"}]}, 400),
    ],
)
def test_process_errors(client, payload, status):
    r = client.post("/api/process", json=payload)
    assert r.status_code == status


def test_engine_failure_is_500(monkeypatch, uploads, out_dir, seed):
    cfg = ServiceConfig(uploads_dir=uploads, output_dir=out_dir)
    service = ImageProcessingService(cfg, engine=FakeEngine(fail_on="flip"))
    monkeypatch.setattr(api_app, "get_service", lambda: service)
    r = TestClient(api_app.app).post("/api/process", json={"filename": "photo.jpg", "operations": [{"type": "flip"}]})
    assert r.status_code == 500
    detail = r.json()["detail"]
    assert detail["type"] == "EngineInvocationError"
    assert detail["step"] == 0
    assert list(out_dir.iterdir()) == []


def test_process_bad_format_is_not_a_server_error(client, out_dir):
    r = client.post(
        "/api/process",
        json={"filename": "photo.jpg", "operations": [{"type": "flip"}, {"type": "convert", "params": {"format": "png/x"}}]},
    )
    assert r.status_code == 200
    assert r.json()["outputFile"].endswith("_photo.jpg")
    assert [p.name for p in out_dir.iterdir()] == [r.json()["outputFile"]]


def test_process_null_params(client):
    r = client.post("/api/process", json={"filename": "photo.jpg", "operations": [{"type": "flip", "params": None}]})
    assert r.status_code == 200


def test_http_errors_share_the_pipeline_error_shape(client):
    r = client.post("/api/process", json={"filename": " ", "operations": [{"type": "flip"}]})
    assert r.status_code == 400
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "filename is required"
    assert body["detail"]["message"] == "filename is required"


def test_upload_file(client, uploads, seed):
    r = client.post("/api/upload", files={"image": ("holiday.jpg", seed.read_bytes(), "image/jpeg")})
    assert r.status_code == 200
    body = r.json()
    assert body["source"] == "local"
    assert body["originalName"] == "holiday.jpg"
    assert body["filename"].endswith(".jpg")
    assert body["path"] == f"/uploads/{body['filename']}"
    assert (uploads / body["filename"]).read_bytes() == seed.read_bytes()

    processed = client.post("/api/process", json={"filename": body["filename"], "operations": [{"type": "flip"}]})
    assert processed.status_code == 200


def test_upload_rejects_non_images(client, uploads, seed):
    before = sorted(p.name for p in uploads.iterdir())
    r = client.post("/api/upload", files={"image": ("notes.txt", b"hello", "text/plain")})
    assert r.status_code == 400
    assert r.json()["detail"]["type"] == "InvalidUploadError"
    assert sorted(p.name for p in uploads.iterdir()) == before


def test_upload_without_file(client):
    r = client.post("/api/upload", files={"attachment": ("a.jpg", b"x", "image/jpeg")})
    assert r.status_code == 400
    assert r.json()["error"] == "No file uploaded"


def test_upload_invalid_url(client):
    r = client.post("/api/upload", json={"url": "not-a-url"})
    assert r.status_code == 400
    assert r.json()["error"] == "Invalid URL"


def test_upload_from_url(monkeypatch, uploads, out_dir, seed):
    payload = seed.read_bytes()
    http = httpx.AsyncClient(
        transport=httpx.MockTransport(lambda request: httpx.Response(200, headers={"content-type": "image/jpeg"}, content=payload))
    )
    cfg = ServiceConfig(uploads_dir=uploads, output_dir=out_dir)
    service = ImageProcessingService(cfg, engine=FakeEngine(), http_client=http)
    monkeypatch.setattr(api_app, "get_service", lambda: service)

    r = TestClient(api_app.app).post("/api/upload", json={"url": "https://cdn.example.com/pics/cat.jpg"})
    assert r.status_code == 200
    body = r.json()
    assert body["source"] == "url"
    assert body["originalName"] == "cat.jpg"
    assert body["size"] == len(payload)
    assert (uploads / body["filename"]).exists()
