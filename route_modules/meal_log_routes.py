"""
Meal Log Routes - API endpoints for logging meals, attaching media and reading progress.
"""
from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, UploadFile, File, Form, Query
from auth import get_current_user, require_roles
from models import (
    LogMealRequest, UnlogMealRequest, MealLogResponse,
    DailyMealProgressResponse, WeeklyMealProgressResponse
)
from models_orm import UserORM
from service_modules.meal_log_service import MealLogService, get_meal_log_service

router = APIRouter()


@router.post("/api/meallog", response_model=MealLogResponse)
async def log_meal(
    request: LogMealRequest,
    service: MealLogService = Depends(get_meal_log_service),
    current_user: UserORM = Depends(require_roles("client"))
):
    """Mark one of today's planned meals as eaten."""
    return service.log_meal(current_user, request.meal_id, request.log_date)


@router.delete("/api/meallog")
async def unlog_meal(
    request: UnlogMealRequest,
    service: MealLogService = Depends(get_meal_log_service),
    current_user: UserORM = Depends(require_roles("client"))
):
    return service.unlog_meal(current_user, request.meal_id, request.log_date)


@router.get("/api/meallog/daily", response_model=DailyMealProgressResponse)
async def get_daily_progress(
    day: date = Query(..., alias="date"),
    client_id: Optional[str] = Query(None),
    service: MealLogService = Depends(get_meal_log_service),
    current_user: UserORM = Depends(get_current_user)
):
    """
    Planned meals for a date with completion state.
    Clients read their own; trainers and admins pass client_id.
    """
    return service.get_daily_progress(current_user, day, client_id)


@router.get("/api/meallog/weekly", response_model=WeeklyMealProgressResponse)
async def get_weekly_progress(
    start_date: date = Query(...),
    client_id: Optional[str] = Query(None),
    service: MealLogService = Depends(get_meal_log_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Seven days of progress starting at start_date."""
    return service.get_weekly_progress(current_user, start_date, client_id)


@router.post("/api/meallog/media", response_model=MealLogResponse)
async def upload_meal_media(
    file: UploadFile = File(...),
    meal_id: int = Form(...),
    log_date: date = Form(...),
    service: MealLogService = Depends(get_meal_log_service),
    current_user: UserORM = Depends(require_roles("client"))
):
    """Attach a photo or video to a logged meal."""
    content = await file.read()
    return service.upload_meal_media(current_user, meal_id, log_date, content, file.filename, file.content_type)


@router.delete("/api/meallog/media")
async def delete_meal_media(
    request: UnlogMealRequest,
    service: MealLogService = Depends(get_meal_log_service),
    current_user: UserORM = Depends(require_roles("client"))
):
    return service.delete_meal_media(current_user, request.meal_id, request.log_date)
