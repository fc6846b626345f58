"""
Blob storage provider and upload validation.

Two stores implement ``put(path, content, content_type) -> handle`` and
``get_url(handle)``:

    CloudinaryBlobStore  cloudinary.uploader (resource_type="auto")
    StorageBlobStore     Django ``default_storage``

``BLOB_STORE_BACKEND`` picks one; ``upload_file`` validates an uploaded
file, stores it under a unique name and returns a ``FileUploadResult``.
"""

import abc
import logging
import os
import re
import secrets
import time
from dataclasses import asdict, dataclass

import cloudinary
import cloudinary.uploader
import cloudinary.utils
from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.utils.module_loading import import_string

from ..errors import InvalidArgument

logger = logging.getLogger(__name__)

SUPPORTED_IMAGE_TYPES = (
    "image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml",
)
SUPPORTED_VIDEO_TYPES = (
    "video/mp4", "video/webm", "video/ogg", "video/quicktime",
)
SUPPORTED_DOCUMENT_TYPES = (
    "application/pdf",
    "application/msword",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.ms-powerpoint",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation",
    "text/plain",
    "application/zip",
    "application/x-rar-compressed",
)
SUPPORTED_FILE_TYPES = SUPPORTED_IMAGE_TYPES + SUPPORTED_VIDEO_TYPES + SUPPORTED_DOCUMENT_TYPES

MIME_EXTENSIONS = {
    "image/jpeg": "jpg",
    "image/png": "png",
    "image/gif": "gif",
    "image/webp": "webp",
    "image/svg+xml": "svg",
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/ogg": "ogg",
    "video/quicktime": "mov",
    "application/pdf": "pdf",
    "application/msword": "doc",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "docx",
    "application/vnd.ms-excel": "xls",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "xlsx",
    "application/vnd.ms-powerpoint": "ppt",
    "application/vnd.openxmlformats-officedocument.presentationml.presentation": "pptx",
    "text/plain": "txt",
    "application/zip": "zip",
    "application/x-rar-compressed": "rar",
}


# ============================================================================
# HELPERS
# ============================================================================

def is_image(file_type):
    return (file_type or "").startswith("image/")


def is_video(file_type):
    return (file_type or "").startswith("video/")


def is_supported_file_type(file_type):
    return file_type in SUPPORTED_FILE_TYPES


def extension_for_mime_type(file_type):
    return MIME_EXTENSIONS.get(file_type, "bin")


def file_icon(file_type):
    if is_image(file_type):
        return "image"
    if is_video(file_type):
        return "video"
    if file_type == "application/pdf":
        return "pdf"
    if "word" in (file_type or ""):
        return "doc"
    if "excel" in (file_type or "") or "spreadsheet" in (file_type or ""):
        return "sheet"
    if "powerpoint" in (file_type or "") or "presentation" in (file_type or ""):
        return "slides"
    if "zip" in (file_type or "") or "rar" in (file_type or ""):
        return "archive"
    return "file"


def unique_file_name(original_name):
    """``<millis>_<random>_<cleaned name>``"""
    base = os.path.basename(original_name or "file")
    cleaned = re.sub(r"[^A-Za-z0-9._-]", "_", base)
    return f"{int(time.time() * 1000)}_{secrets.token_hex(4)}_{cleaned}"


# ============================================================================
# BLOB STORES
# ============================================================================

class BlobStore(abc.ABC):

    @abc.abstractmethod
    def put(self, path, content, content_type=None):
        """Store ``content`` (bytes or file) under ``path``; return an opaque handle."""

    @abc.abstractmethod
    def get_url(self, handle):
        """Public URL of a stored blob."""


class StorageBlobStore(BlobStore):
    """Blobs kept in Django's default storage (local media or Cloudinary storage)."""

    def __init__(self, storage=None):
        self.storage = storage or default_storage

    def put(self, path, content, content_type=None):
        if isinstance(content, bytes):
            content = ContentFile(content)
        return self.storage.save(path, content)

    def get_url(self, handle):
        return self.storage.url(handle)


class CloudinaryBlobStore(BlobStore):
    """Blobs uploaded straight to Cloudinary; handles are ``<resource_type>:<public_id>``."""

    def __init__(self):
        credentials = getattr(settings, "CLOUDINARY_STORAGE", {})
        cloudinary.config(
            cloud_name=credentials.get("CLOUD_NAME"),
            api_key=credentials.get("API_KEY"),
            api_secret=credentials.get("API_SECRET"),
            secure=True,
        )

    def put(self, path, content, content_type=None):
        public_id, _ = os.path.splitext(path)
        result = cloudinary.uploader.upload(
            content, public_id=public_id, resource_type="auto", overwrite=False,
        )
        return f"{result['resource_type']}:{result['public_id']}"

    def get_url(self, handle):
        resource_type, _, public_id = handle.partition(":")
        url, _ = cloudinary.utils.cloudinary_url(public_id, resource_type=resource_type, secure=True)
        return url


_blob_store = None


def get_blob_store():
    global _blob_store
    if _blob_store is None:
        _blob_store = import_string(settings.BLOB_STORE_BACKEND)()
    return _blob_store


def reset_blob_store():
    global _blob_store
    _blob_store = None


# ============================================================================
# UPLOAD
# ============================================================================

@dataclass
class FileUploadResult:
    url: str
    file_name: str
    file_type: str
    file_size: int
    is_image: bool
    is_video: bool

    def to_dict(self):
        data = asdict(self)
        return {
            "url": data["url"],
            "fileName": data["file_name"],
            "fileType": data["file_type"],
            "fileSize": data["file_size"],
            "isImage": data["is_image"],
            "isVideo": data["is_video"],
            "fileIcon": file_icon(data["file_type"]),
        }


def validate_file(file):
    if file.size > settings.MAX_UPLOAD_SIZE:
        limit_mb = settings.MAX_UPLOAD_SIZE // (1024 * 1024)
        raise InvalidArgument(f"Файл слишком большой. Максимальный размер: {limit_mb} МБ")
    if not is_supported_file_type(file.content_type):
        raise InvalidArgument(f"Неподдерживаемый тип файла: {file.content_type}")


def upload_file(file, folder="uploads"):
    """Validate and store an uploaded file (a Django ``UploadedFile``)."""
    validate_file(file)

    name = file.name or "file"
    if not os.path.splitext(name)[1]:
        name = f"{name}.{extension_for_mime_type(file.content_type)}"

    store = get_blob_store()
    handle = store.put(f"{folder}/{unique_file_name(name)}", file, file.content_type)
    url = store.get_url(handle)

    logger.info(f"Uploaded {file.name} ({file.size} bytes) to {folder}")
    return FileUploadResult(
        url=url,
        file_name=file.name,
        file_type=file.content_type,
        file_size=file.size,
        is_image=is_image(file.content_type),
        is_video=is_video(file.content_type),
    )
