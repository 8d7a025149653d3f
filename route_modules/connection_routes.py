"""
Connection Routes - removing any trainer/client link and reading any user's history.

Participants use the /me routes; these take explicit ids so an admin can act on anyone.
"""
from fastapi import APIRouter, Depends
from auth import get_current_user
from models_orm import UserORM
from service_modules.connection_service import ConnectionService, get_connection_service

router = APIRouter()


@router.delete("/api/connections/{trainer_id}/{client_id}")
async def remove_connection(
    trainer_id: str,
    client_id: str,
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(get_current_user)
):
    """End a link. Allowed for either participant or an admin."""
    return service.remove_connection(current_user, trainer_id, client_id)


@router.get("/api/users/{user_id}/history")
async def get_user_history(
    user_id: str,
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Closed connection intervals of a user. Only the user themself or an admin."""
    return service.get_user_history(current_user, user_id)
