"""
Base service utilities and shared imports.
All services should import from here for common functionality.
"""
from fastapi import HTTPException
import uuid
import logging
from datetime import date, datetime, timedelta

from sqlalchemy.exc import IntegrityError

from database import get_db_session
from models_orm import (
    UserORM, ClientProfileORM, InvitationORM, TrainerClientHistoryORM,
    DietPlanORM, DietPlanDayORM, MealORM, DietPlanAssignmentORM, MealLogORM
)
from models import UserResponse

# Re-export for convenience
__all__ = [
    'HTTPException', 'IntegrityError', 'uuid', 'logging', 'date', 'datetime', 'timedelta',
    'get_db_session',
    'UserORM', 'ClientProfileORM', 'InvitationORM', 'TrainerClientHistoryORM',
    'DietPlanORM', 'DietPlanDayORM', 'MealORM', 'DietPlanAssignmentORM', 'MealLogORM',
    'user_to_response', 'lock_client_profile',
]

logger = logging.getLogger("coachlink")


def user_to_response(user: UserORM):
    if user is None:
        return None
    return UserResponse(
        id=user.id,
        email=user.email,
        username=user.username,
        role=user.role,
        created_at=user.created_at,
        profile_picture=user.profile_picture,
    )


def lock_client_profile(db, client_id: str):
    """Load a client profile with a row lock so per-client sequences serialize (no-op on SQLite)."""
    return db.query(ClientProfileORM).filter(
        ClientProfileORM.id == client_id
    ).with_for_update().first()
