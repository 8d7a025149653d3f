from sqlalchemy import (
    Column, Integer, String, Boolean, ForeignKey, Text, Date, DateTime,
    Index, UniqueConstraint, text
)
from sqlalchemy.orm import relationship
from database import Base
from datetime import datetime

# --- CORE MODELS ---

class UserORM(Base):
    __tablename__ = "users"

    id = Column(String, primary_key=True, index=True)
    email = Column(String, unique=True, index=True, nullable=False)
    username = Column(String, index=True)
    hashed_password = Column(String)
    role = Column(String, index=True)  # client, trainer, admin
    is_active = Column(Boolean, default=True, index=True)
    profile_picture = Column(String, nullable=True)  # /media/avatars/... URL
    created_at = Column(DateTime, default=datetime.utcnow)

    client_profile = relationship(
        "ClientProfileORM", uselist=False, cascade="all, delete-orphan",
        foreign_keys="ClientProfileORM.id", back_populates="user"
    )


class ClientProfileORM(Base):
    """Current trainer link for a client. One-to-One with User, so PK is the same as User ID."""
    __tablename__ = "client_profile"

    id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True, index=True)
    trainer_id = Column(String, ForeignKey("users.id", ondelete="SET NULL"), index=True, nullable=True)
    invitation_accepted_at = Column(DateTime, nullable=True)  # When the current link started

    user = relationship("UserORM", foreign_keys=[id], back_populates="client_profile")
    trainer = relationship("UserORM", foreign_keys=[trainer_id])


# --- TRAINER / CLIENT RELATIONSHIP ---

class InvitationORM(Base):
    """Proposal between a client and a trainer. Resolved exactly once."""
    __tablename__ = "invitations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    trainer_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    initiator_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), nullable=False)  # Who sent it

    status = Column(String, default="pending", nullable=False)  # pending, accepted, rejected
    message = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    resolved_at = Column(DateTime, nullable=True)

    client = relationship("UserORM", foreign_keys=[client_id])
    trainer = relationship("UserORM", foreign_keys=[trainer_id])

    __table_args__ = (
        # Only one pending proposal per pair; resolved rows don't count
        Index(
            "uq_invitation_pending_pair", "client_id", "trainer_id", unique=True,
            sqlite_where=text("status = 'pending'"),
            postgresql_where=text("status = 'pending'"),
        ),
    )


class TrainerClientHistoryORM(Base):
    """Trainer-client link intervals. ended_at is NULL while the link is open."""
    __tablename__ = "trainer_client_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    trainer_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    client_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    started_at = Column(DateTime, nullable=False)
    ended_at = Column(DateTime, nullable=True, index=True)

    trainer = relationship("UserORM", foreign_keys=[trainer_id])
    client = relationship("UserORM", foreign_keys=[client_id])


# --- DIET PLANS ---

class DietPlanORM(Base):
    __tablename__ = "diet_plans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(100), nullable=False)
    trainer_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    trainer = relationship("UserORM")
    days = relationship(
        "DietPlanDayORM", back_populates="diet_plan", cascade="all, delete-orphan",
        order_by="DietPlanDayORM.day_of_week"
    )
    assignments = relationship(
        "DietPlanAssignmentORM", back_populates="diet_plan", cascade="all, delete-orphan"
    )


class DietPlanDayORM(Base):
    __tablename__ = "diet_plan_days"

    id = Column(Integer, primary_key=True, autoincrement=True)
    diet_plan_id = Column(Integer, ForeignKey("diet_plans.id", ondelete="CASCADE"), index=True, nullable=False)
    day_of_week = Column(Integer, nullable=False)  # 0 = Monday, 6 = Sunday

    diet_plan = relationship("DietPlanORM", back_populates="days")
    meals = relationship(
        "MealORM", back_populates="day", cascade="all, delete-orphan", order_by="MealORM.id"
    )

    __table_args__ = (
        UniqueConstraint("diet_plan_id", "day_of_week", name="uq_diet_plan_day"),
    )


class MealORM(Base):
    __tablename__ = "meals"

    id = Column(Integer, primary_key=True, autoincrement=True)
    day_id = Column(Integer, ForeignKey("diet_plan_days.id", ondelete="CASCADE"), index=True, nullable=False)
    name = Column(String(100), nullable=False)
    description = Column(String(500), nullable=True)
    meal_type = Column(String(50), nullable=False)  # breakfast, lunch, snack, ...
    notes = Column(String(500), nullable=True)

    day = relationship("DietPlanDayORM", back_populates="meals")
    logs = relationship("MealLogORM", back_populates="meal", cascade="all, delete-orphan", passive_deletes=True)


class DietPlanAssignmentORM(Base):
    """Join between a diet plan and a client. At most one active row per client."""
    __tablename__ = "diet_plan_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    diet_plan_id = Column(Integer, ForeignKey("diet_plans.id", ondelete="CASCADE"), index=True, nullable=False)
    client_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    is_active = Column(Boolean, default=False, nullable=False)
    assigned_at = Column(DateTime, default=datetime.utcnow)

    diet_plan = relationship("DietPlanORM", back_populates="assignments")

    __table_args__ = (
        UniqueConstraint("diet_plan_id", "client_id", name="uq_assignment_plan_client"),
        Index(
            "uq_assignment_active_client", "client_id", unique=True,
            sqlite_where=text("is_active = 1"),
            postgresql_where=text("is_active = true"),
        ),
    )


class MealLogORM(Base):
    """A client's completion of one meal on one date. Soft-deleted on unlog."""
    __tablename__ = "meal_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    client_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    meal_id = Column(Integer, ForeignKey("meals.id", ondelete="CASCADE"), index=True, nullable=False)
    # Kept after the assignment goes away so the history survives unassigning
    diet_plan_assignment_id = Column(
        Integer, ForeignKey("diet_plan_assignments.id", ondelete="SET NULL"), index=True, nullable=True
    )

    log_date = Column(Date, index=True, nullable=False)
    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    media_url = Column(String, nullable=True)  # Optional photo/video for accountability

    is_deleted = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime, nullable=True)

    meal = relationship("MealORM", back_populates="logs")

    __table_args__ = (
        UniqueConstraint("client_id", "meal_id", "log_date", name="uq_meal_log_client_meal_date"),
    )
