"""Profile photo storage.

Photos go to Cloudinary when ``CLOUDINARY_URL`` is configured, otherwise to
``MEDIA_ROOT`` on local disk, served under ``MEDIA_URL``. File names embed
the user id and the upload time so successive uploads never collide.
Replaced photos are left in place.
"""

import os
import shutil
import time

import cloudinary
import cloudinary.uploader
from fastapi import UploadFile

from .core import get_settings
from .logger import get_logger

PHOTO_FOLDER = "profile_photos"

logger = get_logger(__name__)
settings = get_settings()

if settings.CLOUDINARY_URL:
    cloudinary.config(cloudinary_url=settings.CLOUDINARY_URL)


class StorageError(Exception):
    """Raised when an upload could not be stored."""


def photo_filename(user_id: int, original_name: str, timestamp: int | None = None) -> str:
    """Build ``profile_<user id>_<unix time>.<ext>`` for an upload."""
    extension = original_name.rsplit(".", 1)[-1].lower()
    if timestamp is None:
        timestamp = int(time.time())
    return f"profile_{user_id}_{timestamp}.{extension}"


def store_profile_photo(user_id: int, upload: UploadFile) -> str:
    """
    Persist an uploaded profile photo and return its public URL.

    Args:
        user_id (int): Owner of the photo.
        upload (UploadFile): Validated image upload.

    Raises:
        StorageError: If Cloudinary did not return a URL.

    Returns:
        str: Public URL of the stored photo.
    """
    filename = photo_filename(user_id, upload.filename or "photo.jpg")

    if settings.CLOUDINARY_URL:
        result = cloudinary.uploader.upload(
            upload.file,
            folder=PHOTO_FOLDER,
            public_id=filename.rsplit(".", 1)[0],
        )
        url = result.get("secure_url")
        if not url:
            raise StorageError("Failed to upload profile photo")
        return url

    directory = os.path.join(settings.MEDIA_ROOT, PHOTO_FOLDER)
    os.makedirs(directory, exist_ok=True)
    with open(os.path.join(directory, filename), "wb") as target:
        shutil.copyfileobj(upload.file, target)
    logger.info("Stored profile photo %s", filename)
    return f"{settings.MEDIA_URL.rstrip('/')}/{PHOTO_FOLDER}/{filename}"
