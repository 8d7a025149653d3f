"""
Routes package - organized API routes.

This package provides modular route definitions.
Import the combined router for use in main.py.
"""
from fastapi import APIRouter

from .auth_routes import router as auth_router
from .invitation_routes import router as invitation_router
from .trainer_routes import router as trainer_router
from .client_routes import router as client_router
from .diet_plan_routes import router as diet_plan_router
from .meal_log_routes import router as meal_log_router
from .profile_routes import router as profile_router
from .connection_routes import router as connection_router

# Combined router that includes all sub-routers
combined_router = APIRouter()
combined_router.include_router(auth_router, tags=["auth"])
combined_router.include_router(invitation_router, tags=["invitations"])
combined_router.include_router(trainer_router, tags=["trainer"])
combined_router.include_router(client_router, tags=["client"])
combined_router.include_router(diet_plan_router, tags=["diet plans"])
combined_router.include_router(meal_log_router, tags=["meal logs"])
combined_router.include_router(profile_router, tags=["profile"])
combined_router.include_router(connection_router, tags=["connections"])

__all__ = ['combined_router', 'auth_router', 'invitation_router', 'trainer_router', 'client_router', 'diet_plan_router', 'meal_log_router', 'profile_router', 'connection_router']
