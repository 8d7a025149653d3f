"""
Client Routes - API endpoints for a client's trainer connection.
"""
from fastapi import APIRouter, Depends
from auth import require_roles
from models_orm import UserORM
from service_modules.connection_service import ConnectionService, get_connection_service

router = APIRouter()


@router.get("/api/client/me/trainer")
async def get_my_trainer(
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(require_roles("client"))
):
    """The current trainer, or null when the client has none."""
    return service.get_my_trainer(current_user)


@router.delete("/api/client/me/trainer")
async def remove_my_trainer(
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(require_roles("client"))
):
    return service.remove_my_trainer(current_user)


@router.get("/api/client/me/trainer/history")
async def get_my_trainer_history(
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(require_roles("client"))
):
    """Previous trainers, most recently ended first."""
    return service.get_history(current_user, current_user.id, as_trainer=False)
