"""
Trainer Routes - API endpoints for a trainer's client roster and past clients.
"""
from fastapi import APIRouter, Depends
from auth import require_roles
from models_orm import UserORM
from service_modules.connection_service import ConnectionService, get_connection_service

router = APIRouter()


@router.get("/api/trainer/me/clients")
async def get_my_clients(
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(require_roles("trainer"))
):
    """Clients currently connected to the trainer."""
    return service.get_my_clients(current_user)


@router.get("/api/trainer/me/clients/history")
async def get_my_client_history(
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(require_roles("trainer"))
):
    """Ended connections, most recent first."""
    return service.get_history(current_user, current_user.id, as_trainer=True)


@router.delete("/api/trainer/me/clients/{client_id}")
async def remove_client(
    client_id: str,
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(require_roles("trainer"))
):
    return service.remove_connection(current_user, current_user.id, client_id)
