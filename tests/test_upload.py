"""Tests for the room photo upload endpoint."""
from unittest.mock import MagicMock

from tradesbook.routes import upload

PNG = b"\x89PNG\r\n\x1a\n" + b"\x00" * 64


def _configure_storage(monkeypatch):
    monkeypatch.setattr(upload, "R2_ACCOUNT_ID", "account")
    monkeypatch.setattr(upload, "R2_ACCESS_KEY_ID", "key")
    monkeypatch.setattr(upload, "R2_SECRET_ACCESS_KEY", "secret")


def test_rejects_non_images(client):
    r = client.post("/api/upload-room-photo", files={"file": ("notes.txt", b"hello", "text/plain")})
    assert r.status_code == 400


def test_rejects_long_filename(client):
    r = client.post("/api/upload-room-photo", files={"file": ("r" * 300 + ".png", PNG, "image/png")})
    assert r.status_code == 400


def test_rejects_empty_file(client):
    r = client.post("/api/upload-room-photo", files={"file": ("room.png", b"", "image/png")})
    assert r.status_code == 400


def test_storage_not_configured(client):
    r = client.post("/api/upload-room-photo", files={"file": ("room.png", PNG, "image/png")})
    assert r.status_code == 503


def test_upload(client, auth, customer, monkeypatch):
    _configure_storage(monkeypatch)
    r2 = MagicMock()
    r2.generate_presigned_url.return_value = "https://r2.example/room.png?sig=1"
    monkeypatch.setattr(upload, "get_r2_client", lambda: r2)

    auth.login(customer)
    r = client.post("/api/upload-room-photo", files={"file": ("room.jpg", PNG, "image/jpeg")})
    assert r.status_code == 200
    body = r.json()
    assert body["url"] == "https://r2.example/room.png?sig=1"
    assert body["key"].startswith(f"room-photos/user-{customer.id}/")
    assert body["key"].endswith(".jpg")

    put = r2.put_object.call_args.kwargs
    assert put["Body"] == PNG
    assert put["ContentType"] == "image/jpeg"


def test_provider_failure(client, monkeypatch):
    _configure_storage(monkeypatch)
    r2 = MagicMock()
    r2.put_object.side_effect = RuntimeError("R2 down")
    monkeypatch.setattr(upload, "get_r2_client", lambda: r2)

    r = client.post("/api/upload-room-photo", files={"file": ("room.png", PNG, "image/png")})
    assert r.status_code == 500
