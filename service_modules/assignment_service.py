"""
Assignment Service - attaches a trainer's diet plan to clients and keeps one active plan per client.
"""
from typing import List, Optional

from sqlalchemy.orm import selectinload

from .base import (
    HTTPException, IntegrityError, logging, datetime,
    get_db_session, ClientProfileORM, DietPlanORM, DietPlanDayORM, DietPlanAssignmentORM,
    lock_client_profile
)
from .access_policy import Role, require_role, trains_client, can_read_client_data, ensure
from exceptions import (
    ConflictError, DietPlanNotFound, DietPlanAssignmentNotFound, ForbiddenAccess, UserNotFound
)
from models import DietPlanAssignmentResponse

logger = logging.getLogger("coachlink")


def get_active_assignment(db, client_id: str) -> Optional[DietPlanAssignmentORM]:
    """The client's single active assignment, with plan days and meals loaded."""
    return db.query(DietPlanAssignmentORM).options(
        selectinload(DietPlanAssignmentORM.diet_plan)
        .selectinload(DietPlanORM.days)
        .selectinload(DietPlanDayORM.meals)
    ).filter(
        DietPlanAssignmentORM.client_id == client_id,
        DietPlanAssignmentORM.is_active == True
    ).first()


def deactivate_other_assignments(db, client_id: str, keep_id: Optional[int] = None):
    """Switch off every active assignment of the client except `keep_id`, and flush it out."""
    query = db.query(DietPlanAssignmentORM).filter(
        DietPlanAssignmentORM.client_id == client_id,
        DietPlanAssignmentORM.is_active == True
    )
    if keep_id is not None:
        query = query.filter(DietPlanAssignmentORM.id != keep_id)
    for assignment in query.all():
        assignment.is_active = False
    # The deactivations hit the database before anything is switched on
    db.flush()


def activate(db, assignment: DietPlanAssignmentORM, is_active: bool):
    if is_active:
        deactivate_other_assignments(db, assignment.client_id, keep_id=assignment.id)
    assignment.is_active = is_active
    db.flush()


def assignment_to_response(assignment: DietPlanAssignmentORM) -> DietPlanAssignmentResponse:
    return DietPlanAssignmentResponse(
        id=assignment.id,
        diet_plan_id=assignment.diet_plan_id,
        client_id=assignment.client_id,
        is_active=assignment.is_active,
        assigned_at=assignment.assigned_at,
        diet_plan_name=assignment.diet_plan.name if assignment.diet_plan else None
    )


class AssignmentService:
    """Service for assigning diet plans to clients and switching the active one."""

    def assign_to_clients(self, current_user, diet_plan_id: int, client_ids: List[str], make_active: bool) -> List[DietPlanAssignmentResponse]:
        """
        Assign a plan to several clients in one transaction.

        The trainer must own the plan and currently train every client. Existing
        (plan, client) rows are updated, missing ones created. Activating a plan
        switches off the client's other active plan first.
        """
        require_role(current_user, Role.TRAINER)

        db = get_db_session()
        try:
            plan = self._owned_plan(db, current_user, diet_plan_id)

            # Validate every client before touching anything. Locks are taken in id order.
            profiles = []
            for client_id in sorted(set(client_ids)):
                profile = lock_client_profile(db, client_id)
                if not profile:
                    raise UserNotFound(f"Client {client_id} not found")
                if not trains_client(current_user, profile):
                    raise ForbiddenAccess()
                profiles.append(profile)

            assignments = []
            for profile in profiles:
                assignment = db.query(DietPlanAssignmentORM).filter(
                    DietPlanAssignmentORM.diet_plan_id == plan.id,
                    DietPlanAssignmentORM.client_id == profile.id
                ).first()

                if not assignment:
                    assignment = DietPlanAssignmentORM(
                        diet_plan_id=plan.id,
                        client_id=profile.id,
                        is_active=False,
                        assigned_at=datetime.utcnow()
                    )
                    db.add(assignment)
                    db.flush()

                activate(db, assignment, make_active)
                assignments.append(assignment)

            db.commit()

            logger.info(
                f"Diet plan {plan.id} assigned to {len(assignments)} client(s) "
                f"by trainer {current_user.id} (active={make_active})"
            )
            return [assignment_to_response(a) for a in assignments]
        except IntegrityError:
            db.rollback()
            logger.warning(f"Concurrent assignment change for diet plan {diet_plan_id}")
            raise ConflictError("Assignment changed concurrently, please retry")
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to assign diet plan {diet_plan_id}: {e}")
            raise
        finally:
            db.close()

    def unassign(self, current_user, diet_plan_id: int, client_id: str) -> dict:
        """Remove the assignment row. Meal logs made under it are kept."""
        require_role(current_user, Role.TRAINER)

        db = get_db_session()
        try:
            self._owned_plan(db, current_user, diet_plan_id)

            assignment = db.query(DietPlanAssignmentORM).filter(
                DietPlanAssignmentORM.diet_plan_id == diet_plan_id,
                DietPlanAssignmentORM.client_id == client_id
            ).first()
            if not assignment:
                raise DietPlanAssignmentNotFound()

            db.delete(assignment)
            db.commit()
            logger.info(f"Diet plan {diet_plan_id} unassigned from client {client_id} by trainer {current_user.id}")
            return {"message": "Diet plan unassigned"}
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to unassign diet plan {diet_plan_id} from {client_id}: {e}")
            raise
        finally:
            db.close()

    def set_active(self, current_user, diet_plan_id: int, client_id: str, is_active: bool) -> DietPlanAssignmentResponse:
        """Switch an existing assignment on or off, keeping at most one active per client."""
        require_role(current_user, Role.TRAINER)

        db = get_db_session()
        try:
            self._owned_plan(db, current_user, diet_plan_id)

            profile = lock_client_profile(db, client_id)
            if not profile:
                raise UserNotFound()
            if not trains_client(current_user, profile):
                raise ForbiddenAccess()

            assignment = db.query(DietPlanAssignmentORM).filter(
                DietPlanAssignmentORM.diet_plan_id == diet_plan_id,
                DietPlanAssignmentORM.client_id == client_id
            ).first()
            if not assignment:
                raise DietPlanAssignmentNotFound()

            activate(db, assignment, is_active)
            db.commit()

            logger.info(f"Diet plan {diet_plan_id} for client {client_id} set active={is_active}")
            return assignment_to_response(assignment)
        except IntegrityError:
            db.rollback()
            logger.warning(f"Concurrent activation for client {client_id}")
            raise ConflictError("Assignment changed concurrently, please retry")
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update assignment {diet_plan_id}/{client_id}: {e}")
            raise
        finally:
            db.close()

    def list_assignments_for_client(self, current_user, client_id: str) -> List[DietPlanAssignmentResponse]:
        """Every assignment of a client, active or not, newest first."""
        db = get_db_session()
        try:
            profile = db.query(ClientProfileORM).filter(ClientProfileORM.id == client_id).first()
            ensure(can_read_client_data(current_user, client_id, profile))
            if not profile:
                raise UserNotFound()

            assignments = db.query(DietPlanAssignmentORM).options(
                selectinload(DietPlanAssignmentORM.diet_plan)
            ).filter(
                DietPlanAssignmentORM.client_id == client_id
            ).order_by(DietPlanAssignmentORM.assigned_at.desc(), DietPlanAssignmentORM.id.desc()).all()

            return [assignment_to_response(a) for a in assignments]
        finally:
            db.close()

    def get_active_assignment(self, current_user, client_id: str) -> Optional[DietPlanAssignmentResponse]:
        db = get_db_session()
        try:
            profile = db.query(ClientProfileORM).filter(ClientProfileORM.id == client_id).first()
            ensure(can_read_client_data(current_user, client_id, profile))
            if not profile:
                raise UserNotFound()

            assignment = get_active_assignment(db, client_id)
            return assignment_to_response(assignment) if assignment else None
        finally:
            db.close()

    def _owned_plan(self, db, current_user, diet_plan_id: int) -> DietPlanORM:
        plan = db.query(DietPlanORM).filter(DietPlanORM.id == diet_plan_id).first()
        if not plan:
            raise DietPlanNotFound()
        if plan.trainer_id != current_user.id:
            raise ForbiddenAccess()
        return plan


# Singleton instance
assignment_service = AssignmentService()


def get_assignment_service() -> AssignmentService:
    """Dependency injection helper."""
    return assignment_service
