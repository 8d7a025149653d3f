"""
Auth Routes - registration, login, the current user's profile and admin user management.
"""
from fastapi import APIRouter, Depends
from auth import get_current_user, require_roles
from models import RegisterRequest, LoginRequest, TokenResponse, UserResponse, UpdateProfileRequest
from models_orm import UserORM
from service_modules.auth_service import AuthService, get_auth_service

router = APIRouter()


@router.post("/api/auth/register")
async def register(
    request: RegisterRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Create a client or trainer account."""
    return service.register_user(request.email, request.password, request.username, request.role)


@router.post("/api/auth/login", response_model=TokenResponse)
async def login(
    request: LoginRequest,
    service: AuthService = Depends(get_auth_service)
):
    """Exchange email and password for a bearer token."""
    return service.authenticate_user(request.email, request.password)


@router.get("/api/users/me", response_model=UserResponse)
async def get_me(
    service: AuthService = Depends(get_auth_service),
    current_user: UserORM = Depends(get_current_user)
):
    return service.get_user(current_user.id)


@router.get("/api/users")
async def list_users(
    service: AuthService = Depends(get_auth_service),
    current_user: UserORM = Depends(require_roles("admin"))
):
    """All accounts. Admin only."""
    return service.list_users()


@router.put("/api/auth/me", response_model=UserResponse)
async def update_me(
    request: UpdateProfileRequest,
    service: AuthService = Depends(get_auth_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Change the display name and/or password."""
    return service.update_profile(current_user, request)


@router.get("/api/users/{user_id}", response_model=UserResponse)
async def get_user(
    user_id: str,
    service: AuthService = Depends(get_auth_service),
    current_user: UserORM = Depends(get_current_user)
):
    return service.get_user(user_id)


@router.delete("/api/users/{user_id}")
async def delete_user(
    user_id: str,
    service: AuthService = Depends(get_auth_service),
    current_user: UserORM = Depends(require_roles("admin"))
):
    """Delete an account and its data. Admin only."""
    return service.delete_user(current_user, user_id)
