"""
Invitation Routes - API endpoints for trainer/client invitations.
"""
from fastapi import APIRouter, Depends
from auth import get_current_user
from models import CreateInvitationRequest, ResolveInvitationRequest, InvitationResponse
from models_orm import UserORM
from service_modules.connection_service import ConnectionService, get_connection_service

router = APIRouter()


@router.get("/api/invitations")
async def get_invitations(
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Invitations sent or received by the current user."""
    return service.list_invitations(current_user)


@router.post("/api/invitations", response_model=InvitationResponse)
async def create_invitation(
    request: CreateInvitationRequest,
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Invite a trainer (as a client) or a client (as a trainer) by email."""
    return service.create_invitation(current_user, request.email, request.message)


@router.put("/api/invitations/{invitation_id}", response_model=InvitationResponse)
async def resolve_invitation(
    invitation_id: int,
    request: ResolveInvitationRequest,
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Accept or reject a pending invitation."""
    return service.resolve_invitation(current_user, invitation_id, request.status)


@router.delete("/api/invitations/{invitation_id}")
async def delete_invitation(
    invitation_id: int,
    service: ConnectionService = Depends(get_connection_service),
    current_user: UserORM = Depends(get_current_user)
):
    return service.delete_invitation(current_user, invitation_id)
