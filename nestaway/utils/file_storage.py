"""
utils/file_storage.py

Image storage for property photos.

Two backends share one interface (`ObjectStorage`):

- `LocalFileStorage` writes to MEDIA_ROOT/properties and serves the files
  through the /media static mount.
- `CloudinaryStorage` pushes to Cloudinary and keeps its public_id as the
  storage id.

Routers never talk to a backend directly; the listing service validates and
reads every file first (`read_image`), then uploads.
"""

import io
import logging
import secrets
import time
import uuid
from dataclasses import dataclass
from pathlib import Path

import aiofiles
import cloudinary
import cloudinary.exceptions
import cloudinary.uploader
from fastapi import UploadFile
from fastapi.concurrency import run_in_threadpool

from nestaway.core.config import Settings
from nestaway.core.exceptions import UpstreamFailure, ValidationFailed

logger = logging.getLogger(__name__)

# ─── Content types ────────────────────────────────────────────────────────────

# Map file extensions → canonical content type
_EXT_TO_CONTENT_TYPE = {
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".png": "image/png",
    ".webp": "image/webp",
    ".gif": "image/gif",
    ".heic": "image/heic",
}

_CONTENT_TYPE_TO_EXT = {
    "image/jpeg": ".jpg",
    "image/png": ".png",
    "image/webp": ".webp",
    "image/gif": ".gif",
    "image/heic": ".heic",
}


@dataclass(frozen=True)
class ImagePayload:
    filename: str
    content_type: str
    extension: str
    data: bytes


@dataclass(frozen=True)
class StoredImage:
    url: str
    storage_id: str

    def to_document(self) -> dict:
        return {"url": self.url, "storageId": self.storage_id}


def _resolve_content_type(file: UploadFile) -> tuple[str, str]:
    """
    Return (content_type, extension) for the uploaded file.

    Some mobile clients send 'application/octet-stream' instead of the real
    MIME type, so we fall back to the filename extension.
    """
    content_type = (file.content_type or "").lower()
    filename = file.filename or ""
    ext = Path(filename).suffix.lower()

    if content_type.startswith("image/"):
        return content_type, _CONTENT_TYPE_TO_EXT.get(content_type, ext or ".jpg")

    if ext in _EXT_TO_CONTENT_TYPE:
        return _EXT_TO_CONTENT_TYPE[ext], ext if ext != ".jpeg" else ".jpg"

    raise ValidationFailed(
        "Only image files are allowed",
        errors=[f"'{filename}' is not an image file (content-type: '{content_type}')"],
    )


async def read_image(file: UploadFile, max_size_mb: int) -> ImagePayload:
    """Validate type and size of one upload and return its bytes. Nothing is stored."""
    content_type, ext = _resolve_content_type(file)

    contents = await file.read()
    if not contents:
        raise ValidationFailed("Only image files are allowed", errors=[f"'{file.filename}' is empty"])
    if len(contents) > max_size_mb * 1024 * 1024:
        raise ValidationFailed(
            f"File size too large. Maximum size is {max_size_mb}MB",
            errors=[f"'{file.filename}' is larger than {max_size_mb}MB"],
        )

    return ImagePayload(
        filename=file.filename or "",
        content_type=content_type,
        extension=ext,
        data=contents,
    )


# ─── Backends ─────────────────────────────────────────────────────────────────

class ObjectStorage:
    async def upload(self, image: ImagePayload) -> StoredImage:
        raise NotImplementedError

    async def delete(self, storage_id: str) -> None:
        raise NotImplementedError


class LocalFileStorage(ObjectStorage):
    def __init__(self, media_root: str, base_url: str):
        self.images_dir = Path(media_root) / "properties"
        self.base_url = base_url.rstrip("/")

    async def upload(self, image: ImagePayload) -> StoredImage:
        self.images_dir.mkdir(parents=True, exist_ok=True)

        filename = f"{uuid.uuid4().hex}{image.extension}"
        file_path = self.images_dir / filename

        try:
            async with aiofiles.open(file_path, "wb") as out:
                await out.write(image.data)
        except OSError as e:
            raise UpstreamFailure("Image upload failed") from e

        return StoredImage(url=f"{self.base_url}/media/properties/{filename}", storage_id=filename)

    async def delete(self, storage_id: str) -> None:
        # Storage ids are bare file names; never follow a path out of the folder
        file_path = self.images_dir / Path(storage_id).name
        if file_path.exists():
            file_path.unlink()


class CloudinaryStorage(ObjectStorage):
    def __init__(self, settings: Settings):
        if not (settings.CLOUDINARY_CLOUD_NAME and settings.CLOUDINARY_API_KEY and settings.CLOUDINARY_API_SECRET):
            raise RuntimeError(
                "STORAGE_BACKEND=cloudinary needs CLOUDINARY_CLOUD_NAME, CLOUDINARY_API_KEY and CLOUDINARY_API_SECRET"
            )
        cloudinary.config(
            cloud_name=settings.CLOUDINARY_CLOUD_NAME,
            api_key=settings.CLOUDINARY_API_KEY,
            api_secret=settings.CLOUDINARY_API_SECRET,
            secure=True,
        )
        self.folder = settings.CLOUDINARY_FOLDER

    async def upload(self, image: ImagePayload) -> StoredImage:
        public_id = f"property_{int(time.time() * 1000)}_{secrets.token_hex(4)}"
        try:
            res = await run_in_threadpool(
                cloudinary.uploader.upload,
                io.BytesIO(image.data),
                resource_type="image",
                folder=self.folder,
                public_id=public_id,
                format="jpg",
                overwrite=False,
            )
        except cloudinary.exceptions.Error as e:
            raise UpstreamFailure("Image upload failed. Please check Cloudinary configuration.") from e

        url = str(res.get("secure_url") or "").strip()
        storage_id = str(res.get("public_id") or "").strip()
        if not url or not storage_id:
            raise UpstreamFailure("Image upload failed")
        return StoredImage(url=url, storage_id=storage_id)

    async def delete(self, storage_id: str) -> None:
        try:
            await run_in_threadpool(cloudinary.uploader.destroy, storage_id, resource_type="image")
        except cloudinary.exceptions.Error as e:
            raise UpstreamFailure("Image delete failed") from e


def build_object_storage(settings: Settings) -> ObjectStorage:
    if settings.STORAGE_BACKEND == "cloudinary":
        return CloudinaryStorage(settings)
    if settings.STORAGE_BACKEND != "local":
        raise ValueError(f"Unknown STORAGE_BACKEND: {settings.STORAGE_BACKEND!r}")
    return LocalFileStorage(settings.MEDIA_ROOT, settings.BASE_URL)
