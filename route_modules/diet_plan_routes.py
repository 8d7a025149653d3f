"""
Diet Plan Routes - API endpoints for diet plans and their assignment to clients.
"""
from typing import Optional
from fastapi import APIRouter, Depends
from auth import get_current_user, require_roles
from models import (
    CreateDietPlanRequest, UpdateDietPlanRequest, DietPlanResponse,
    AssignDietPlanRequest, SetAssignmentActiveRequest, DietPlanAssignmentResponse
)
from models_orm import UserORM
from service_modules.diet_plan_service import DietPlanService, get_diet_plan_service
from service_modules.assignment_service import AssignmentService, get_assignment_service

router = APIRouter()


@router.get("/api/dietplan")
async def list_diet_plans(
    service: DietPlanService = Depends(get_diet_plan_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Plans visible to the current user."""
    return service.list_diet_plans(current_user)


@router.post("/api/dietplan", response_model=DietPlanResponse)
async def create_diet_plan(
    request: CreateDietPlanRequest,
    service: DietPlanService = Depends(get_diet_plan_service),
    current_user: UserORM = Depends(require_roles("trainer"))
):
    """Create a 7-day plan owned by the current trainer."""
    return service.create_diet_plan(current_user, request)


# Registered before /api/dietplan/{diet_plan_id} so "assignments" is not read as an id
@router.get("/api/dietplan/assignments/{client_id}")
async def list_client_assignments(
    client_id: str,
    service: AssignmentService = Depends(get_assignment_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Every plan assigned to a client, active or not."""
    return service.list_assignments_for_client(current_user, client_id)


@router.get("/api/dietplan/assignments/{client_id}/active", response_model=Optional[DietPlanAssignmentResponse])
async def get_client_active_assignment(
    client_id: str,
    service: AssignmentService = Depends(get_assignment_service),
    current_user: UserORM = Depends(get_current_user)
):
    return service.get_active_assignment(current_user, client_id)


@router.post("/api/dietplan/assign")
async def assign_diet_plan(
    request: AssignDietPlanRequest,
    service: AssignmentService = Depends(get_assignment_service),
    current_user: UserORM = Depends(require_roles("trainer"))
):
    """Assign a plan to one or more of the trainer's clients."""
    return service.assign_to_clients(current_user, request.diet_plan_id, request.client_ids, request.is_active)


@router.get("/api/dietplan/{diet_plan_id}", response_model=DietPlanResponse)
async def get_diet_plan(
    diet_plan_id: int,
    service: DietPlanService = Depends(get_diet_plan_service),
    current_user: UserORM = Depends(get_current_user)
):
    return service.get_diet_plan(current_user, diet_plan_id)


@router.put("/api/dietplan/{diet_plan_id}", response_model=DietPlanResponse)
async def update_diet_plan(
    diet_plan_id: int,
    request: UpdateDietPlanRequest,
    service: DietPlanService = Depends(get_diet_plan_service),
    current_user: UserORM = Depends(get_current_user)
):
    """Rename a plan or replace its days."""
    return service.update_diet_plan(current_user, diet_plan_id, request)


@router.delete("/api/dietplan/{diet_plan_id}")
async def delete_diet_plan(
    diet_plan_id: int,
    service: DietPlanService = Depends(get_diet_plan_service),
    current_user: UserORM = Depends(get_current_user)
):
    return service.delete_diet_plan(current_user, diet_plan_id)


@router.put("/api/dietplan/{diet_plan_id}/assign/{client_id}", response_model=DietPlanAssignmentResponse)
async def set_assignment_active(
    diet_plan_id: int,
    client_id: str,
    request: SetAssignmentActiveRequest,
    service: AssignmentService = Depends(get_assignment_service),
    current_user: UserORM = Depends(require_roles("trainer"))
):
    """Activate or deactivate an existing assignment."""
    return service.set_active(current_user, diet_plan_id, client_id, request.is_active)


@router.delete("/api/dietplan/{diet_plan_id}/assign/{client_id}")
async def unassign_diet_plan(
    diet_plan_id: int,
    client_id: str,
    service: AssignmentService = Depends(get_assignment_service),
    current_user: UserORM = Depends(require_roles("trainer"))
):
    return service.unassign(current_user, diet_plan_id, client_id)
