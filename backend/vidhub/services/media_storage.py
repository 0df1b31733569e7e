"""Object storage collaborator.

Media bytes never reach the store: uploads are handed to a storage backend
that returns an opaque URL (plus duration, when the backend reports one).

Backends:
  - HttpMediaStorage: POSTs the file to MEDIA_UPLOAD_URL, expects JSON
    {"url": ..., "duration": ...}.
  - LocalMediaStorage: copies the file under MEDIA_ROOT and serves it from
    MEDIA_BASE_URL. Used when MEDIA_UPLOAD_URL is not set.
"""

import logging
import os
import shutil
import tempfile
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

import requests
from fastapi import UploadFile

from vidhub.errors import UploadError

logger = logging.getLogger(__name__)


@dataclass
class UploadResult:
    url: str
    duration: Optional[float] = None


class MediaStorage(ABC):
    @abstractmethod
    def upload(self, local_path: str) -> UploadResult:
        """Store the file at `local_path` and return where it is served from."""


class HttpMediaStorage(MediaStorage):
    """Upload through an HTTP media service (Cloudinary-style unsigned upload)."""

    def __init__(self, upload_url: str, api_key: str = "", timeout: float = 60):
        self.upload_url = upload_url
        self.api_key = api_key
        self.timeout = timeout

    def upload(self, local_path: str) -> UploadResult:
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        try:
            with open(local_path, "rb") as fh:
                response = requests.post(
                    self.upload_url,
                    files={"file": (Path(local_path).name, fh)},
                    headers=headers,
                    timeout=self.timeout,
                )
            response.raise_for_status()
            payload = response.json()
        except (OSError, requests.RequestException, ValueError) as exc:
            logger.error(f"Media upload of {local_path} failed: {exc}")
            raise UploadError() from exc

        url = payload.get("url") or payload.get("secure_url")
        if not url:
            logger.error(f"Media service returned no url for {local_path}")
            raise UploadError()
        duration = payload.get("duration")
        return UploadResult(url=url, duration=float(duration) if duration is not None else None)


class LocalMediaStorage(MediaStorage):
    def __init__(self, root: str, base_url: str):
        self.root = Path(root)
        self.base_url = base_url.rstrip("/")

    def upload(self, local_path: str) -> UploadResult:
        name = f"{uuid.uuid4().hex}{Path(local_path).suffix}"
        try:
            self.root.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(local_path, self.root / name)
        except OSError as exc:
            logger.error(f"Copying {local_path} into {self.root} failed: {exc}")
            raise UploadError() from exc
        return UploadResult(url=f"{self.base_url}/{name}")


def get_media_storage() -> MediaStorage:
    """FastAPI dependency selecting the backend from the environment."""
    upload_url = os.getenv("MEDIA_UPLOAD_URL", "").strip()
    if upload_url:
        return HttpMediaStorage(upload_url, api_key=os.getenv("MEDIA_API_KEY", ""))
    return LocalMediaStorage(os.getenv("MEDIA_ROOT", "./media"), os.getenv("MEDIA_BASE_URL", "/media"))


def store_upload(storage: MediaStorage, upload: UploadFile) -> UploadResult:
    """Spool an incoming UploadFile to disk, hand it to storage, clean up."""
    suffix = Path(upload.filename or "").suffix
    fd, tmp_path = tempfile.mkstemp(suffix=suffix)
    try:
        with os.fdopen(fd, "wb") as out:
            shutil.copyfileobj(upload.file, out)
        return storage.upload(tmp_path)
    finally:
        try:
            os.remove(tmp_path)
        except OSError:
            logger.warning(f"Could not remove temporary upload {tmp_path}")
