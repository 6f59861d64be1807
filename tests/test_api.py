"""HTTP surface: JSON and text previews, uploads and error mapping."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from archive_builders import make_zip
from archpeek.modules.api.api import app


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def test_health(client) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}


def test_preview_json(client, archive_dir) -> None:
    response = client.get("/preview", params={"path": str(archive_dir / "sample.rar")})

    assert response.status_code == 200
    data = response.json()
    assert data["format"] == "rar"
    assert data["entries_found"] == 4
    assert [n["name"] for n in data["tree"]] == ["docs", "src", "a.txt"]
    assert data["tree"][0]["children"][0]["size"] == 5


def test_preview_text(client, archive_dir) -> None:
    response = client.get("/preview.txt", params={"path": str(archive_dir / "sample.tar.bz2")})

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/plain")
    assert "sample.tar.bz2" in response.text
    assert "readme.md" in response.text


def test_missing_path_is_404(client, tmp_path) -> None:
    response = client.get("/preview", params={"path": str(tmp_path / "nope.zip")})
    assert response.status_code == 404


def test_unreadable_archive_is_422(client, tmp_path) -> None:
    bad = tmp_path / "bad.zip"
    bad.write_bytes(b"garbage")

    response = client.get("/preview", params={"path": str(bad)})

    assert response.status_code == 422
    assert response.json()["detail"].startswith("Unable to preview bad.zip")


def test_unknown_format_parameter_is_400(client, archive_dir) -> None:
    response = client.get("/preview", params={"path": str(archive_dir / "sample.zip"), "format": "7z"})
    assert response.status_code == 400


def test_upload_preview(client) -> None:
    data = make_zip({"x/": None, "x/y.txt": b"abc"})

    response = client.post("/preview/upload", files={"file": ("upload.zip", data, "application/zip")})

    assert response.status_code == 200
    body = response.json()
    assert body["path"] == "upload.zip"
    assert body["tree"][0]["name"] == "x"


def test_upload_of_garbage_is_422(client) -> None:
    response = client.post("/preview/upload", files={"file": ("junk.tar.gz", b"not gzip", "application/gzip")})
    assert response.status_code == 422
