"""
Profile Routes - API endpoints for the current user's profile picture.
"""
from fastapi import APIRouter, Depends, UploadFile, File
from auth import get_current_user
from models import ProfilePictureResponse
from models_orm import UserORM
from service_modules.profile_service import ProfileService, get_profile_service

router = APIRouter()


@router.post("/api/profile-picture/upload", response_model=ProfilePictureResponse)
async def upload_profile_picture(
    file: UploadFile = File(...),
    service: ProfileService = Depends(get_profile_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Upload or replace the profile picture. JPG, PNG, GIF or WEBP up to 5MB."""
    content = await file.read()
    return service.upload_profile_picture(current_user, content, file.filename, file.content_type)


@router.get("/api/profile-picture", response_model=ProfilePictureResponse)
async def get_profile_picture(
    service: ProfileService = Depends(get_profile_service),
    current_user: UserORM = Depends(get_current_user)
):
    return service.get_profile_picture(current_user)


@router.delete("/api/profile-picture")
async def delete_profile_picture(
    service: ProfileService = Depends(get_profile_service),
    current_user: UserORM = Depends(get_current_user)
):
    return service.delete_profile_picture(current_user)
