from pydantic import BaseModel, Field
from typing import List, Optional, Literal
from datetime import date, datetime

# --- AUTH / USERS ---
class RegisterRequest(BaseModel):
    email: str
    password: str = Field(..., min_length=6)
    username: Optional[str] = None
    role: Literal["client", "trainer"] = "client"

class LoginRequest(BaseModel):
    email: str
    password: str

class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user_id: str
    role: str

class UserResponse(BaseModel):
    id: str
    email: str
    username: Optional[str] = None
    role: str
    created_at: Optional[datetime] = None
    profile_picture: Optional[str] = None

class UpdateProfileRequest(BaseModel):
    username: Optional[str] = Field(default=None, max_length=100)
    current_password: Optional[str] = None  # Required when changing the password
    password: Optional[str] = Field(default=None, min_length=6)
    confirm_password: Optional[str] = None

class ProfilePictureResponse(BaseModel):
    profile_picture: Optional[str] = None

# --- INVITATIONS ---
class CreateInvitationRequest(BaseModel):
    email: str  # The counterpart: a trainer when a client invites, a client when a trainer invites
    message: Optional[str] = Field(default=None, max_length=500)

class ResolveInvitationRequest(BaseModel):
    status: Literal["accepted", "rejected"]

class InvitationResponse(BaseModel):
    id: int
    client_id: str
    client: Optional[UserResponse] = None
    trainer_id: str
    trainer: Optional[UserResponse] = None
    initiator_id: str
    status: str
    message: Optional[str] = None
    created_at: datetime
    resolved_at: Optional[datetime] = None

# --- CONNECTIONS ---
class ClientConnectionResponse(BaseModel):
    client: UserResponse
    invitation_accepted_at: Optional[datetime] = None

class TrainerConnectionResponse(BaseModel):
    trainer: UserResponse
    invitation_accepted_at: Optional[datetime] = None

class HistoryResponse(BaseModel):
    id: int
    trainer_id: str
    client_id: str
    counterpart: Optional[UserResponse] = None  # The trainer for a client's history, the client for a trainer's
    started_at: datetime
    ended_at: Optional[datetime] = None

# --- DIET PLANS ---
class MealDto(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    meal_type: str = Field(..., min_length=1, max_length=50)
    notes: Optional[str] = Field(default=None, max_length=500)

class DietPlanDayDto(BaseModel):
    day_of_week: int = Field(..., ge=0, le=6)  # 0 = Monday, 6 = Sunday
    meals: List[MealDto]

class CreateDietPlanRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    days: List[DietPlanDayDto]

class UpdateDietPlanRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    days: Optional[List[DietPlanDayDto]] = None

class MealResponse(BaseModel):
    id: int
    name: str
    description: Optional[str] = None
    meal_type: str
    notes: Optional[str] = None

class DietPlanDayResponse(BaseModel):
    id: int
    day_of_week: int
    meals: List[MealResponse]

class DietPlanAssignmentResponse(BaseModel):
    id: int
    diet_plan_id: int
    client_id: str
    is_active: bool
    assigned_at: Optional[datetime] = None
    diet_plan_name: Optional[str] = None

class DietPlanResponse(BaseModel):
    id: int
    name: str
    trainer_id: str
    days: List[DietPlanDayResponse]
    assignments: List[DietPlanAssignmentResponse] = []
    created_at: Optional[datetime] = None

class AssignDietPlanRequest(BaseModel):
    diet_plan_id: int
    client_ids: List[str] = Field(..., min_length=1)
    is_active: bool = True

class SetAssignmentActiveRequest(BaseModel):
    is_active: bool

# --- MEAL LOGS ---
class LogMealRequest(BaseModel):
    meal_id: int
    log_date: date

class UnlogMealRequest(BaseModel):
    meal_id: int
    log_date: date

class MealLogResponse(BaseModel):
    id: int
    meal_id: int
    meal_name: str
    log_date: date
    completed_at: datetime
    is_completed: bool
    media_url: Optional[str] = None

class MealProgressItem(BaseModel):
    meal_id: int
    meal_name: str
    meal_type: str
    description: Optional[str] = None
    is_completed: bool
    completed_at: Optional[datetime] = None
    media_url: Optional[str] = None

class DailyMealProgressResponse(BaseModel):
    date: date
    total_meals: int
    completed_meals: int
    adherence_percentage: float
    meals: List[MealProgressItem] = []

class WeeklyMealProgressResponse(BaseModel):
    client_id: str
    start_date: date
    end_date: date
    total_meals: int
    completed_meals: int
    overall_adherence_percentage: float
    daily_progress: List[DailyMealProgressResponse]
