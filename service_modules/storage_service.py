"""
Storage Service for CoachLink
Handles meal media and profile picture uploads to the local filesystem under MEDIA_ROOT, served from /media.
"""
import os
import uuid
import logging
from typing import Tuple, Optional, Iterable

from exceptions import ValidationError

logger = logging.getLogger("coachlink")

MEDIA_URL_PREFIX = "/media"


def get_media_root() -> str:
    """Folder holding uploaded files. Read on every call so tests can point it elsewhere."""
    return os.environ.get(
        "MEDIA_ROOT",
        os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "static", "uploads")
    )


def _get_local_path_for_type(upload_type: str) -> str:
    """Get the local folder path based on upload type."""
    base_path = get_media_root()
    paths = {
        "meal": os.path.join(base_path, "meals"),
        "avatar": os.path.join(base_path, "avatars"),
        "general": base_path
    }
    return paths.get(upload_type, base_path)


def upload_file(
    file_content: bytes,
    filename: str,
    upload_type: str = "general",
    user_id: Optional[str] = None
) -> Tuple[bool, str]:
    """
    Store a file and return (success, url_or_error_message).

    Files are renamed to a random name that keeps the original extension and
    grouped per user when a user id is given.
    """
    ext = os.path.splitext(filename)[1].lower()
    unique_name = f"{uuid.uuid4().hex}{ext}"

    try:
        local_path = _get_local_path_for_type(upload_type)
        if user_id:
            local_path = os.path.join(local_path, user_id)
        os.makedirs(local_path, exist_ok=True)

        file_path = os.path.join(local_path, unique_name)
        with open(file_path, "wb") as f:
            f.write(file_content)

        relative = os.path.relpath(file_path, get_media_root()).replace("\\", "/")
        return True, f"{MEDIA_URL_PREFIX}/{relative}"

    except OSError as e:
        logger.error(f"Local upload failed: {e}")
        return False, f"Local upload failed: {str(e)}"


def delete_file(url: str) -> bool:
    """
    Delete a previously uploaded file by its URL.

    Returns True if a file was removed. URLs outside the media folder are ignored.
    """
    if not url or not url.startswith(MEDIA_URL_PREFIX + "/"):
        return False

    media_root = os.path.abspath(get_media_root())
    file_path = os.path.abspath(os.path.join(media_root, url[len(MEDIA_URL_PREFIX) + 1:]))
    if not file_path.startswith(media_root + os.sep):
        return False

    if os.path.exists(file_path):
        os.remove(file_path)
        return True
    return False


def validate_upload(
    content: bytes,
    filename: str,
    content_type: Optional[str],
    max_size: int,
    allowed_extensions: Iterable[str],
    allowed_content_types: Iterable[str],
    kind: str = "images and videos"
):
    """Reject empty, oversized or wrongly typed uploads with a 400."""
    if not content:
        raise ValidationError("No file uploaded")
    if len(content) > max_size:
        raise ValidationError(f"File size exceeds {max_size // (1024 * 1024)}MB limit")

    ext = os.path.splitext(filename or "")[1].lower()
    if ext not in allowed_extensions:
        raise ValidationError(f"Invalid file type. Allowed: {kind}")
    if content_type and content_type.lower() not in allowed_content_types:
        raise ValidationError("Invalid content type")
