"""
Tests for the object storage backends.
"""

import io

import pytest
import requests
from fastapi import UploadFile

from vidhub.errors import UploadError
from vidhub.services import media_storage
from vidhub.services.media_storage import HttpMediaStorage, LocalMediaStorage, get_media_storage, store_upload


class _Response:
    def __init__(self, payload, status=200):
        self._payload = payload
        self.status_code = status

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} error")

    def json(self):
        return self._payload


def _upload(name="clip.mp4", data=b"bytes"):
    return UploadFile(file=io.BytesIO(data), filename=name)


def test_local_storage_copies_file(tmp_path):
    storage = LocalMediaStorage(str(tmp_path / "media"), "/media/")

    result = store_upload(storage, _upload("clip.mp4", b"abc"))

    assert result.url.startswith("/media/")
    assert result.url.endswith(".mp4")
    stored = tmp_path / "media" / result.url.rsplit("/", 1)[1]
    assert stored.read_bytes() == b"abc"
    assert result.duration is None


def test_http_storage_returns_url_and_duration(monkeypatch):
    seen = {}

    def fake_post(url, files, headers, timeout):
        seen["url"] = url
        seen["body"] = files["file"][1].read()
        seen["headers"] = headers
        return _Response({"secure_url": "https://cdn.test/x.mp4", "duration": "31.5"})

    monkeypatch.setattr(media_storage.requests, "post", fake_post)

    result = store_upload(HttpMediaStorage("https://upload.test", api_key="k"), _upload(data=b"payload"))

    assert result.url == "https://cdn.test/x.mp4"
    assert result.duration == 31.5
    assert seen["body"] == b"payload"
    assert seen["headers"] == {"Authorization": "Bearer k"}


def test_http_storage_failure_is_upload_error(monkeypatch):
    monkeypatch.setattr(media_storage.requests, "post", lambda *a, **kw: _Response({}, status=500))

    with pytest.raises(UploadError) as exc:
        store_upload(HttpMediaStorage("https://upload.test"), _upload())
    assert exc.value.status_code == 502


def test_http_storage_without_url_is_upload_error(monkeypatch):
    monkeypatch.setattr(media_storage.requests, "post", lambda *a, **kw: _Response({"duration": 3}))

    with pytest.raises(UploadError):
        store_upload(HttpMediaStorage("https://upload.test"), _upload())


def test_backend_selection(monkeypatch, tmp_path):
    monkeypatch.delenv("MEDIA_UPLOAD_URL", raising=False)
    monkeypatch.setenv("MEDIA_ROOT", str(tmp_path))
    assert isinstance(get_media_storage(), LocalMediaStorage)

    monkeypatch.setenv("MEDIA_UPLOAD_URL", "https://upload.test")
    assert isinstance(get_media_storage(), HttpMediaStorage)


def test_storage_backends_must_implement_upload():
    class Incomplete(media_storage.MediaStorage):
        pass

    with pytest.raises(TypeError):
        Incomplete()
