"""
Meal Log Service - same-day meal completion against the active diet plan, and adherence stats.
"""
import os
from typing import Optional

from .base import (
    HTTPException, IntegrityError, logging, date, datetime, timedelta,
    get_db_session, ClientProfileORM, MealORM, MealLogORM
)
from .access_policy import Role, require_role, resolve_target_client
from .assignment_service import get_active_assignment
from . import storage_service
from exceptions import (
    InvalidLogDate, NoActiveDietPlan, MealNotInDietPlan, MealAlreadyLogged,
    MealLogNotFound, StorageError
)
from models import (
    MealLogResponse, MealProgressItem, DailyMealProgressResponse, WeeklyMealProgressResponse
)

logger = logging.getLogger("coachlink")

MAX_MEDIA_SIZE = int(os.getenv("MAX_MEDIA_SIZE", 10 * 1024 * 1024))  # 10MB
ALLOWED_IMAGE_EXTENSIONS = {".jpg", ".jpeg", ".png", ".gif", ".webp"}
ALLOWED_VIDEO_EXTENSIONS = {".mp4", ".mov", ".avi", ".mkv", ".webm"}
ALLOWED_CONTENT_TYPES = {
    "image/jpeg", "image/png", "image/gif", "image/webp",
    "video/mp4", "video/quicktime", "video/x-msvideo", "video/x-matroska", "video/webm"
}


def _today() -> date:
    return date.today()


def plan_day_index(day: date) -> int:
    """Plan days run Monday = 0 .. Sunday = 6, which is exactly date.weekday()."""
    return day.weekday()


def adherence(completed: int, total: int) -> float:
    if total <= 0:
        return 0.0
    return round(completed / total * 100, 2)


def scheduled_meals(assignment, day: date) -> list:
    """Meals the assignment's plan schedules on a calendar date."""
    if assignment is None or assignment.diet_plan is None:
        return []
    index = plan_day_index(day)
    for plan_day in assignment.diet_plan.days:
        if plan_day.day_of_week == index:
            return list(plan_day.meals)
    return []


def _find_log(db, client_id: str, meal_id: int, log_date: date, live_only: bool = False):
    query = db.query(MealLogORM).filter(
        MealLogORM.client_id == client_id,
        MealLogORM.meal_id == meal_id,
        MealLogORM.log_date == log_date
    )
    if live_only:
        query = query.filter(MealLogORM.is_deleted == False)
    return query.first()


def _to_response(log: MealLogORM, meal_name: str) -> MealLogResponse:
    return MealLogResponse(
        id=log.id,
        meal_id=log.meal_id,
        meal_name=meal_name,
        log_date=log.log_date,
        completed_at=log.completed_at,
        is_completed=not log.is_deleted,
        media_url=log.media_url
    )


class MealLogService:
    """Service for logging meals and reporting diet adherence."""

    def log_meal(self, current_user, meal_id: int, log_date: date) -> MealLogResponse:
        """
        Mark a meal of today's plan day as eaten.

        Only today can be logged. A previously unlogged row is restored instead
        of inserting a second one.
        """
        require_role(current_user, Role.CLIENT)

        if log_date != _today():
            raise InvalidLogDate()

        db = get_db_session()
        try:
            assignment = get_active_assignment(db, current_user.id)
            if assignment is None:
                raise NoActiveDietPlan()

            meal = next((m for m in scheduled_meals(assignment, log_date) if m.id == meal_id), None)
            if meal is None:
                raise MealNotInDietPlan()

            now = datetime.utcnow()
            log = _find_log(db, current_user.id, meal_id, log_date)
            if log is not None:
                if not log.is_deleted:
                    raise MealAlreadyLogged()
                log.is_deleted = False
                log.deleted_at = None
                log.completed_at = now
                log.media_url = None
                log.diet_plan_assignment_id = assignment.id
            else:
                log = MealLogORM(
                    client_id=current_user.id,
                    meal_id=meal_id,
                    diet_plan_assignment_id=assignment.id,
                    log_date=log_date,
                    completed_at=now
                )
                db.add(log)

            try:
                db.commit()
            except IntegrityError:
                # A parallel request logged the same meal first
                db.rollback()
                logger.warning(f"Duplicate meal log for client {current_user.id}, meal {meal_id}, {log_date}")
                raise MealAlreadyLogged()

            logger.info(f"Client {current_user.id} logged meal {meal_id} for {log_date}")
            return _to_response(log, meal.name)
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to log meal {meal_id}: {e}")
            raise
        finally:
            db.close()

    def unlog_meal(self, current_user, meal_id: int, log_date: date) -> dict:
        """Soft-delete the live log so it can be restored by logging again."""
        require_role(current_user, Role.CLIENT)

        db = get_db_session()
        try:
            log = _find_log(db, current_user.id, meal_id, log_date, live_only=True)
            if log is None:
                raise MealLogNotFound()

            log.is_deleted = True
            log.deleted_at = datetime.utcnow()
            db.commit()

            logger.info(f"Client {current_user.id} unlogged meal {meal_id} for {log_date}")
            return {"message": "Meal unlogged"}
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to unlog meal {meal_id}: {e}")
            raise
        finally:
            db.close()

    def get_daily_progress(self, current_user, day: date, client_id: Optional[str] = None) -> DailyMealProgressResponse:
        """Scheduled meals of one day paired with their live logs, plus adherence."""
        db = get_db_session()
        try:
            target_id = resolve_target_client(current_user, client_id, lambda cid: self._load_profile(db, cid))
            return self._daily_progress(db, target_id, day)
        finally:
            db.close()

    def get_weekly_progress(self, current_user, start_date: date, client_id: Optional[str] = None) -> WeeklyMealProgressResponse:
        """Seven daily reports from start_date on, with totals across the week."""
        db = get_db_session()
        try:
            target_id = resolve_target_client(current_user, client_id, lambda cid: self._load_profile(db, cid))

            end_date = start_date + timedelta(days=6)
            daily = [self._daily_progress(db, target_id, start_date + timedelta(days=offset)) for offset in range(7)]

            total = sum(d.total_meals for d in daily)
            completed = sum(d.completed_meals for d in daily)

            return WeeklyMealProgressResponse(
                client_id=target_id,
                start_date=start_date,
                end_date=end_date,
                total_meals=total,
                completed_meals=completed,
                overall_adherence_percentage=adherence(completed, total),
                daily_progress=daily
            )
        finally:
            db.close()

    # ==================== MEDIA ====================

    def upload_meal_media(self, current_user, meal_id: int, log_date: date, content: bytes,
                          filename: str, content_type: Optional[str]) -> MealLogResponse:
        """Attach a photo or video to a live meal log, replacing any earlier one."""
        require_role(current_user, Role.CLIENT)
        self._validate_media(content, filename, content_type)

        db = get_db_session()
        try:
            log = _find_log(db, current_user.id, meal_id, log_date, live_only=True)
            if log is None:
                raise MealLogNotFound()

            ok, url = storage_service.upload_file(content, filename, upload_type="meal", user_id=current_user.id)
            if not ok:
                raise StorageError("Failed to store media")

            old_url = log.media_url
            log.media_url = url
            try:
                db.commit()
            except Exception:
                db.rollback()
                self._discard_media(url)
                raise

            # Best effort: a leftover file never blocks the new upload
            if old_url:
                self._discard_media(old_url)

            meal = db.query(MealORM).filter(MealORM.id == meal_id).first()
            return _to_response(log, meal.name if meal else "")
        except HTTPException:
            db.rollback()
            raise
        finally:
            db.close()

    def delete_meal_media(self, current_user, meal_id: int, log_date: date) -> dict:
        require_role(current_user, Role.CLIENT)

        db = get_db_session()
        try:
            log = _find_log(db, current_user.id, meal_id, log_date, live_only=True)
            if log is None or not log.media_url:
                raise MealLogNotFound()

            old_url = log.media_url
            log.media_url = None
            db.commit()
            self._discard_media(old_url)
            return {"message": "Media deleted"}
        except HTTPException:
            db.rollback()
            raise
        finally:
            db.close()

    # ==================== HELPERS ====================

    def _daily_progress(self, db, client_id: str, day: date) -> DailyMealProgressResponse:
        meals = scheduled_meals(get_active_assignment(db, client_id), day)
        if not meals:
            return DailyMealProgressResponse(
                date=day, total_meals=0, completed_meals=0, adherence_percentage=0, meals=[]
            )

        logs = db.query(MealLogORM).filter(
            MealLogORM.client_id == client_id,
            MealLogORM.log_date == day,
            MealLogORM.is_deleted == False
        ).all()
        logs_by_meal = {log.meal_id: log for log in logs}

        items = []
        for meal in meals:
            log = logs_by_meal.get(meal.id)
            items.append(MealProgressItem(
                meal_id=meal.id,
                meal_name=meal.name,
                meal_type=meal.meal_type,
                description=meal.description,
                is_completed=log is not None,
                completed_at=log.completed_at if log else None,
                media_url=log.media_url if log else None
            ))

        completed = sum(1 for item in items if item.is_completed)
        return DailyMealProgressResponse(
            date=day,
            total_meals=len(items),
            completed_meals=completed,
            adherence_percentage=adherence(completed, len(items)),
            meals=items
        )

    def _load_profile(self, db, client_id: str):
        return db.query(ClientProfileORM).filter(ClientProfileORM.id == client_id).first()

    def _validate_media(self, content: bytes, filename: str, content_type: Optional[str]):
        storage_service.validate_upload(
            content, filename, content_type, MAX_MEDIA_SIZE,
            ALLOWED_IMAGE_EXTENSIONS | ALLOWED_VIDEO_EXTENSIONS, ALLOWED_CONTENT_TYPES
        )

    def _discard_media(self, url: str):
        try:
            storage_service.delete_file(url)
        except OSError as e:
            logger.warning(f"Could not delete media {url}: {e}")


# Singleton instance
meal_log_service = MealLogService()


def get_meal_log_service() -> MealLogService:
    """Dependency injection helper."""
    return meal_log_service
