"""
Profile Service - the current user's profile picture.
"""
import os
from typing import Optional

from .base import HTTPException, logging, get_db_session, UserORM
from . import storage_service
from exceptions import StorageError, UserNotFound, ValidationError
from models import ProfilePictureResponse

logger = logging.getLogger("coachlink")

MAX_PICTURE_SIZE = int(os.getenv("MAX_PICTURE_SIZE", 5 * 1024 * 1024))  # 5MB
ALLOWED_PICTURE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
ALLOWED_PICTURE_CONTENT_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp"}


class ProfileService:
    """Service for uploading, reading and removing profile pictures."""

    def upload_profile_picture(self, current_user, content: bytes, filename: str,
                               content_type: Optional[str]) -> ProfilePictureResponse:
        """Store a new picture and drop the previous file, if any."""
        storage_service.validate_upload(
            content, filename, content_type, MAX_PICTURE_SIZE,
            ALLOWED_PICTURE_EXTENSIONS, ALLOWED_PICTURE_CONTENT_TYPES,
            kind="JPG, PNG, GIF and WEBP images"
        )

        db = get_db_session()
        try:
            user = db.query(UserORM).filter(UserORM.id == current_user.id).first()
            if not user:
                raise UserNotFound()

            ok, url = storage_service.upload_file(content, filename, upload_type="avatar", user_id=user.id)
            if not ok:
                raise StorageError("Failed to store profile picture")

            old_url = user.profile_picture
            user.profile_picture = url
            try:
                db.commit()
            except Exception:
                db.rollback()
                self._discard(url)
                raise

            if old_url:
                self._discard(old_url)

            logger.info(f"User {user.id} uploaded a profile picture")
            return ProfilePictureResponse(profile_picture=url)
        except HTTPException:
            db.rollback()
            raise
        finally:
            db.close()

    def get_profile_picture(self, current_user) -> ProfilePictureResponse:
        db = get_db_session()
        try:
            user = db.query(UserORM).filter(UserORM.id == current_user.id).first()
            if not user:
                raise UserNotFound()
            return ProfilePictureResponse(profile_picture=user.profile_picture)
        finally:
            db.close()

    def delete_profile_picture(self, current_user) -> dict:
        db = get_db_session()
        try:
            user = db.query(UserORM).filter(UserORM.id == current_user.id).first()
            if not user:
                raise UserNotFound()
            if not user.profile_picture:
                raise ValidationError("No profile picture to delete")

            old_url = user.profile_picture
            user.profile_picture = None
            db.commit()
            self._discard(old_url)

            logger.info(f"User {user.id} removed their profile picture")
            return {"message": "Profile picture deleted"}
        except HTTPException:
            db.rollback()
            raise
        finally:
            db.close()

    def _discard(self, url: str):
        # A leftover file never blocks the change
        try:
            storage_service.delete_file(url)
        except OSError as e:
            logger.warning(f"Could not delete profile picture {url}: {e}")


# Singleton instance
profile_service = ProfileService()


def get_profile_service() -> ProfileService:
    """Dependency injection helper."""
    return profile_service
