"""
Diet Plan Service - trainer-authored weekly diet plans (7 days, 1-10 meals per day).
"""
from typing import List

from sqlalchemy.orm import selectinload

from .base import (
    HTTPException, logging, datetime,
    get_db_session, DietPlanORM, DietPlanDayORM, MealORM, DietPlanAssignmentORM
)
from .access_policy import Role, is_admin, is_role, require_role, can_read_diet_plan, can_write_diet_plan, ensure
from exceptions import DietPlanNotFound, ValidationError
from models import (
    CreateDietPlanRequest, UpdateDietPlanRequest, DietPlanDayDto,
    DietPlanResponse, DietPlanDayResponse, MealResponse, DietPlanAssignmentResponse
)

logger = logging.getLogger("coachlink")

DAYS_PER_PLAN = 7
MIN_MEALS_PER_DAY = 1
MAX_MEALS_PER_DAY = 10


def validate_days(days: List[DietPlanDayDto]):
    """A plan covers each weekday (0 = Monday .. 6 = Sunday) exactly once, 1-10 meals a day."""
    if len(days) != DAYS_PER_PLAN:
        raise ValidationError("Diet plan must have exactly 7 days")

    seen = set()
    for day in days:
        if day.day_of_week < 0 or day.day_of_week > 6:
            raise ValidationError("Day of week must be between 0 (Monday) and 6 (Sunday)")
        if day.day_of_week in seen:
            raise ValidationError(f"Day {day.day_of_week} appears more than once")
        seen.add(day.day_of_week)

        if len(day.meals) < MIN_MEALS_PER_DAY or len(day.meals) > MAX_MEALS_PER_DAY:
            raise ValidationError("Each day must have between 1 and 10 meals")


def build_days(days: List[DietPlanDayDto]) -> List[DietPlanDayORM]:
    return [
        DietPlanDayORM(
            day_of_week=day.day_of_week,
            meals=[
                MealORM(
                    name=meal.name,
                    description=meal.description,
                    meal_type=meal.meal_type,
                    notes=meal.notes
                )
                for meal in day.meals
            ]
        )
        for day in sorted(days, key=lambda d: d.day_of_week)
    ]


def plan_query(db):
    return db.query(DietPlanORM).options(
        selectinload(DietPlanORM.days).selectinload(DietPlanDayORM.meals),
        selectinload(DietPlanORM.assignments)
    )


def plan_to_response(plan: DietPlanORM) -> DietPlanResponse:
    return DietPlanResponse(
        id=plan.id,
        name=plan.name,
        trainer_id=plan.trainer_id,
        days=[
            DietPlanDayResponse(
                id=day.id,
                day_of_week=day.day_of_week,
                meals=[
                    MealResponse(
                        id=m.id,
                        name=m.name,
                        description=m.description,
                        meal_type=m.meal_type,
                        notes=m.notes
                    )
                    for m in day.meals
                ]
            )
            for day in plan.days
        ],
        assignments=[
            DietPlanAssignmentResponse(
                id=a.id,
                diet_plan_id=a.diet_plan_id,
                client_id=a.client_id,
                is_active=a.is_active,
                assigned_at=a.assigned_at,
                diet_plan_name=plan.name
            )
            for a in plan.assignments
        ],
        created_at=plan.created_at
    )


class DietPlanService:
    """Service for creating, reading, updating and deleting diet plans."""

    def list_diet_plans(self, current_user) -> List[DietPlanResponse]:
        """Clients get the plans assigned to them, trainers their own plans, admins every plan."""
        db = get_db_session()
        try:
            query = plan_query(db)
            if is_role(current_user, Role.CLIENT):
                query = query.join(DietPlanAssignmentORM).filter(
                    DietPlanAssignmentORM.client_id == current_user.id
                )
            elif is_role(current_user, Role.TRAINER):
                query = query.filter(DietPlanORM.trainer_id == current_user.id)
            elif not is_admin(current_user):
                return []

            plans = query.order_by(DietPlanORM.created_at.desc(), DietPlanORM.id.desc()).all()
            return [plan_to_response(p) for p in plans]
        finally:
            db.close()

    def get_diet_plan(self, current_user, diet_plan_id: int) -> DietPlanResponse:
        db = get_db_session()
        try:
            plan = plan_query(db).filter(DietPlanORM.id == diet_plan_id).first()
            if not plan:
                raise DietPlanNotFound()
            ensure(can_read_diet_plan(current_user, plan))
            return plan_to_response(plan)
        finally:
            db.close()

    def create_diet_plan(self, current_user, request: CreateDietPlanRequest) -> DietPlanResponse:
        """Only trainers author plans; admins included in that restriction."""
        require_role(current_user, Role.TRAINER)
        validate_days(request.days)

        db = get_db_session()
        try:
            plan = DietPlanORM(
                name=request.name,
                trainer_id=current_user.id,
                created_at=datetime.utcnow(),
                days=build_days(request.days)
            )
            db.add(plan)
            db.commit()

            plan = plan_query(db).filter(DietPlanORM.id == plan.id).first()
            logger.info(f"Diet plan {plan.id} created by trainer {current_user.id}")
            return plan_to_response(plan)
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to create diet plan: {e}")
            raise
        finally:
            db.close()

    def update_diet_plan(self, current_user, diet_plan_id: int, request: UpdateDietPlanRequest) -> DietPlanResponse:
        """
        Rename a plan and/or replace all of its days.

        Replacing days drops the old meals, and with them any meal logs that
        pointed at those meals.
        """
        if request.days is not None:
            validate_days(request.days)

        db = get_db_session()
        try:
            plan = plan_query(db).filter(DietPlanORM.id == diet_plan_id).first()
            if not plan:
                raise DietPlanNotFound()
            ensure(can_write_diet_plan(current_user, plan))

            if request.name is not None:
                plan.name = request.name

            if request.days is not None:
                plan.days.clear()
                # Old day rows must be gone before new ones reuse their (plan, day_of_week) keys
                db.flush()
                plan.days.extend(build_days(request.days))

            db.commit()

            plan = plan_query(db).filter(DietPlanORM.id == diet_plan_id).first()
            logger.info(f"Diet plan {diet_plan_id} updated by trainer {current_user.id}")
            return plan_to_response(plan)
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update diet plan {diet_plan_id}: {e}")
            raise
        finally:
            db.close()

    def delete_diet_plan(self, current_user, diet_plan_id: int) -> dict:
        """Delete a plan together with its assignments, days, meals and meal logs."""
        db = get_db_session()
        try:
            plan = plan_query(db).filter(DietPlanORM.id == diet_plan_id).first()
            if not plan:
                raise DietPlanNotFound()
            ensure(can_write_diet_plan(current_user, plan))

            db.delete(plan)
            db.commit()
            logger.info(f"Diet plan {diet_plan_id} deleted by trainer {current_user.id}")
            return {"message": "Diet plan deleted"}
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete diet plan {diet_plan_id}: {e}")
            raise
        finally:
            db.close()


# Singleton instance
diet_plan_service = DietPlanService()


def get_diet_plan_service() -> DietPlanService:
    """Dependency injection helper."""
    return diet_plan_service
