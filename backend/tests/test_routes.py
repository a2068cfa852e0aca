import io
import zipfile

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from webp_converter.api import routes
from webp_converter.conversion.service import get_conversion_service
from webp_converter.main import app


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def upload(client, data, name="image.png", content_type="image/png"):
    return client.post("/api/convert", files={"image": (name, data, content_type)})


def test_health_and_limits(client):
    assert client.get("/api/health").json() == {"status": "ok"}
    limits = client.get("/api/limits").json()
    assert limits["max_files"] == 10
    assert limits["min_file_size_bytes"] == 1024
    assert "image/png" in limits["accepted_types"]


def test_convert_png(client, png_bytes):
    resp = upload(client, png_bytes(48, 32))
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "image/webp"
    assert 'filename="converted.webp"' in resp.headers["content-disposition"]
    with Image.open(io.BytesIO(resp.content)) as img:
        assert img.format == "WEBP"
        assert img.size == (48, 32)


def test_convert_jpeg(client, jpeg_bytes):
    resp = upload(client, jpeg_bytes(), name="photo.jpg", content_type="image/jpeg")
    assert resp.status_code == 200


def test_missing_file(client):
    resp = client.post("/api/convert", data={"other": "x"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "No file provided"


def test_too_small(client):
    resp = upload(client, b"\x89PNG" + b"\x00" * 100)
    assert resp.status_code == 400
    assert "too small" in resp.json()["message"]


def test_wrong_type(client, png_bytes):
    resp = upload(client, png_bytes(), name="a.gif", content_type="image/gif")
    assert resp.status_code == 400
    assert resp.json()["message"] == "File must be a PNG, JPG, or JPEG image"


def test_too_large(client, png_bytes, monkeypatch):
    monkeypatch.setattr(routes, "MAX_IMAGE_SIZE_BYTES", 2000)
    resp = upload(client, png_bytes(64, 64))
    assert resp.status_code == 413
    assert "too large" in resp.json()["message"]


def test_undecodable_upload(client):
    resp = upload(client, b"this is not a png" * 100)
    assert resp.status_code == 400
    assert "Unsupported image format" in resp.json()["message"]


def test_internal_error_is_500(client, png_bytes):
    class Broken:
        def to_webp(self, data):
            raise RuntimeError("encoder exploded")

    app.dependency_overrides[get_conversion_service] = lambda: Broken()
    resp = upload(client, png_bytes())
    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to convert image. Please try again."


def _fetch_with(handler):
    async def dependency():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as c:
            yield c
    return dependency


def test_download_zip_skips_failed_items(client):
    def handler(request: httpx.Request) -> httpx.Response:
        if request.url.path == "/missing.webp":
            return httpx.Response(404)
        return httpx.Response(200, content=f"payload {request.url.path}".encode())

    app.dependency_overrides[routes.get_http_client] = _fetch_with(handler)
    resp = client.post(
        "/api/download-zip",
        json={"files": [
            {"name": "a.webp", "url": "http://files.test/a.webp"},
            {"name": "b.webp", "url": "http://files.test/missing.webp"},
            {"name": "c.webp", "url": "http://files.test/c.webp"},
            {"name": "bad"},
        ]},
    )
    assert resp.status_code == 200
    assert resp.headers["content-type"] == "application/zip"
    assert 'filename="converted-images.zip"' in resp.headers["content-disposition"]
    with zipfile.ZipFile(io.BytesIO(resp.content)) as zf:
        assert sorted(zf.namelist()) == ["a.webp", "c.webp"]
        assert zf.read("c.webp") == b"payload /c.webp"


def test_download_zip_requires_files(client):
    resp = client.post("/api/download-zip", json={"files": []})
    assert resp.status_code == 400
    assert resp.json()["message"] == "No files provided"


def test_download_zip_limits_count(client):
    files = [{"name": f"{i}.webp", "url": f"http://files.test/{i}.webp"} for i in range(21)]
    resp = client.post("/api/download-zip", json={"files": files})
    assert resp.status_code == 400
    assert "maximum 20" in resp.json()["message"]


def test_download_zip_archive_failure_is_500(client, monkeypatch):
    def handler(request):
        return httpx.Response(200, content=b"x")

    def broken_zip(entries, max_total_bytes=None):
        raise OSError("disk full")

    app.dependency_overrides[routes.get_http_client] = _fetch_with(handler)
    monkeypatch.setattr(routes, "build_zip", broken_zip)
    resp = client.post("/api/download-zip", json={"files": [{"name": "a.webp", "url": "http://files.test/a"}]})
    assert resp.status_code == 500
    assert resp.json()["message"] == "Failed to create ZIP file"


def test_malformed_body_is_400(client):
    resp = client.post("/api/download-zip", json={"files": "nope"})
    assert resp.status_code == 400
    assert resp.json()["message"] == "Invalid request"
