"""REST-boundary tests for the upload and health endpoints."""

from __future__ import annotations

import json
from pathlib import Path

import pytest
from fastapi.testclient import TestClient

from hotswap.tests.doubles import ELF_BYTES, FakeServiceControl, corrupt, make_config, write_tar_gz
from rest_api.app import create_app


@pytest.fixture
def service() -> FakeServiceControl:
    return FakeServiceControl()


@pytest.fixture
def client(tmp_path: Path, service: FakeServiceControl):
    """Build a TestClient for an app rooted in ``tmp_path``."""
    config = make_config(tmp_path, max_file_size=1)
    app = create_app(config, service_control=service)
    with TestClient(app) as test_client:
        yield test_client


def _archive_bytes(tmp_path: Path, members) -> bytes:
    return write_tar_gz(tmp_path / "build-src.tar.gz", members).read_bytes()


def test_index_serves_upload_form(client: TestClient) -> None:
    response = client.get("/")
    assert response.status_code == 200
    assert "<title>Program Upgrade</title>" in response.text
    assert 'action="/upload"' in response.text
    assert 'name="file"' in response.text


def test_health_reports_configuration(client: TestClient, tmp_path: Path) -> None:
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {
        "ok": True,
        "target_dir": str(tmp_path / "app"),
        "service_name": "myapp",
        "backup": True,
        "service": False,
    }


def test_upload_tar_gz_installs_and_returns_log(client: TestClient, tmp_path: Path) -> None:
    payload = _archive_bytes(tmp_path, {"bin/app": ELF_BYTES})

    response = client.post("/upload", files={"file": ("build.tar.gz", payload, "application/gzip")})

    assert response.status_code == 200, response.text
    body = response.json()
    assert body["ok"] is True
    assert body["message_type"] == "success"
    assert body["error"] is None
    assert "4. Deploying new program..." in body["logs"]
    assert (tmp_path / "app" / "bin" / "app").read_bytes() == ELF_BYTES
    assert len(list((tmp_path / "app-bk").glob("backup_*.tar.gz"))) == 1
    staged = list((tmp_path / "uploads").iterdir())
    assert len(staged) == 1 and staged[0].name.endswith("_build.tar.gz")


def test_upload_client_path_is_reduced_to_basename(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/upload", files={"file": ("../../evil/app", ELF_BYTES, "application/octet-stream")})

    assert response.status_code == 200, response.text
    assert (tmp_path / "app" / "app").read_bytes() == ELF_BYTES
    assert not (tmp_path / "evil").exists()


def test_upload_failure_returns_error_payload(client: TestClient, tmp_path: Path) -> None:
    broken = corrupt(write_tar_gz(tmp_path / "broken.tar.gz", {"a": b"a" * 4096})).read_bytes()

    response = client.post("/upload", files={"file": ("build.tar.gz", broken, "application/gzip")})

    assert response.status_code == 500
    body = response.json()
    assert body["ok"] is False
    assert body["message_type"] == "error"
    assert body["error"]["code"] == "upgrade.install_failed"
    assert "ERROR:" in body["logs"]


def test_missing_file_is_rejected(client: TestClient) -> None:
    response = client.post("/upload", data={"note": "no file"})
    assert response.status_code == 400
    assert response.json()["code"] == "upload.missing_file"


def test_empty_file_is_rejected(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/upload", files={"file": ("app", b"", "application/octet-stream")})
    assert response.status_code == 400
    assert response.json()["code"] == "upload.empty"
    assert list((tmp_path / "uploads").iterdir()) == []


def test_oversized_upload_is_rejected_and_not_kept(client: TestClient, tmp_path: Path) -> None:
    oversized = b"x" * ((1 << 20) + 1)

    response = client.post("/upload", files={"file": ("app", oversized, "application/octet-stream")})

    assert response.status_code == 413
    body = response.json()
    assert body["code"] == "upload.too_large"
    assert str(1 << 20) in body["hint"]
    assert list((tmp_path / "uploads").iterdir()) == []
    assert not (tmp_path / "app" / "app").exists()


def test_browser_form_post_renders_html_result(client: TestClient, tmp_path: Path) -> None:
    payload = _archive_bytes(tmp_path, {"notes.txt": b"x"})

    response = client.post(
        "/upload",
        files={"file": ("build<b>.tar.gz", payload, "application/gzip")},
        headers={"Accept": "text/html,application/xhtml+xml"},
    )

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert '<div class="success"><strong>Upgrade succeeded.</strong></div>' in response.text
    assert "<pre>" in response.text
    assert "Starting upgrade: build&lt;b&gt;.tar.gz" in response.text
    assert "build<b>" not in response.text


def test_browser_rejection_renders_html(client: TestClient) -> None:
    response = client.post(
        "/upload",
        files={"file": ("app", b"", "application/octet-stream")},
        headers={"Accept": "text/html"},
    )
    assert response.status_code == 400
    assert "Uploaded file is empty" in response.text


def test_service_steps_run_when_enabled(tmp_path: Path) -> None:
    service = FakeServiceControl(missing=True)
    config = make_config(tmp_path, enable_service=True, service_name="ghost")

    with TestClient(create_app(config, service_control=service)) as test_client:
        response = test_client.post("/upload", files={"file": ("app", ELF_BYTES, "application/octet-stream")})

    body = response.json()
    assert response.status_code == 200
    assert body["message"] == "Upgrade succeeded with 2 warning(s)."
    assert service.calls == [("stop", "ghost"), ("start", "ghost")]


def test_cleanup_sweeper_follows_app_lifespan(tmp_path: Path) -> None:
    config = make_config(tmp_path, enable_cleanup=True)
    app = create_app(config, service_control=FakeServiceControl())

    with TestClient(app):
        assert app.state.sweeper.running is True
    assert app.state.sweeper.running is False


def test_error_payload_is_json_serializable(client: TestClient, tmp_path: Path) -> None:
    response = client.post("/upload", files={"file": (".gz", b"\x1f\x8b", "application/gzip")})
    assert response.status_code == 500
    assert json.loads(response.text)["error"]["code"] == "upgrade.invalid_filename"
