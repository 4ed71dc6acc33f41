# Overview: Product image storage on the local filesystem.

from __future__ import annotations

import os
import uuid

from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import ValidationError
from ..records import ImageUpload

ALLOWED_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}


class LocalImageStore:
    """
    Writes uploaded product images under a folder and returns their public URL.

    The stored name is a fresh UUID plus the original extension, so two
    uploads never collide and user-supplied names never reach the filesystem.
    """

    def __init__(self, folder: str, url_prefix: str = "/uploads", placeholder_url: str = ""):
        self.folder = folder
        self.url_prefix = url_prefix.rstrip("/")
        self.placeholder_url = placeholder_url

    @classmethod
    def from_app(cls, app=None) -> "LocalImageStore":
        app = app or current_app
        return cls(
            folder=app.config["UPLOAD_FOLDER"],
            url_prefix=app.config["IMAGE_URL_PREFIX"],
            placeholder_url=app.config["PLACEHOLDER_IMAGE_URL"],
        )

    def _extension(self, upload: ImageUpload) -> str:
        name = secure_filename(upload.filename or "")
        ext = name.rsplit(".", 1)[-1].lower() if "." in name else ""
        if ext not in ALLOWED_EXTENSIONS:
            raise ValidationError(
                f"image must be one of: {', '.join(sorted(ALLOWED_EXTENSIONS))}"
            )
        return ext

    def save(self, upload: ImageUpload) -> str:
        ext = self._extension(upload)
        if not upload.content:
            raise ValidationError("image file is empty")

        os.makedirs(self.folder, exist_ok=True)
        stored_name = f"{uuid.uuid4().hex}.{ext}"
        with open(os.path.join(self.folder, stored_name), "wb") as fh:
            fh.write(upload.content)
        return f"{self.url_prefix}/{stored_name}"

    def discard(self, url: str) -> None:
        """Remove a file written by save(); other URLs are ignored."""
        prefix = f"{self.url_prefix}/"
        if not url or not url.startswith(prefix):
            return
        path = os.path.join(self.folder, secure_filename(url[len(prefix):]))
        if os.path.exists(path):
            os.remove(path)

    def resolve(self, upload: ImageUpload | None) -> str:
        """URL for a new product: the stored upload, or the placeholder."""
        if upload is None:
            return self.placeholder_url
        return self.save(upload)
