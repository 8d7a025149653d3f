"""
Application errors.

Every error is an HTTPException subclass, so services raise them directly and
FastAPI renders them as {"detail": ...} with the matching status code.
"""
from fastapi import HTTPException, status


class AppException(HTTPException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Internal server error"

    def __init__(self, detail: str = None, headers: dict = None):
        super().__init__(status_code=self.status_code, detail=detail or self.default_detail, headers=headers)


# --- NOT FOUND (404) ---

class NotFoundError(AppException):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found"


class UserNotFound(NotFoundError):
    default_detail = "User not found"


class InvitationNotFound(NotFoundError):
    default_detail = "Invitation not found"


class DietPlanNotFound(NotFoundError):
    default_detail = "Diet plan not found"


class DietPlanAssignmentNotFound(NotFoundError):
    default_detail = "Diet plan is not assigned to this client"


class MealLogNotFound(NotFoundError):
    default_detail = "Meal log not found"


# --- FORBIDDEN (403) ---

class ForbiddenAccess(AppException):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Forbidden access"


# --- VALIDATION (400) ---

class ValidationError(AppException):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Invalid request"


class InvalidLogDate(ValidationError):
    default_detail = "Can only log meals for today"


class NoActiveDietPlan(ValidationError):
    default_detail = "Client has no active diet plan assignment"


class MealNotInDietPlan(ValidationError):
    default_detail = "Meal is not part of the active diet plan for this day"


# --- CONFLICT (409) ---

class ConflictError(AppException):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "Conflict"


class UserAlreadyExists(ConflictError):
    default_detail = "User already exists"


class InvitationAlreadyExists(ConflictError):
    default_detail = "Invitation already exists"


class InvitationAlreadyResolved(ConflictError):
    default_detail = "Invitation has already been resolved"


class MealAlreadyLogged(ConflictError):
    default_detail = "Meal is already logged for this date"


# --- AUTHENTICATION (401) ---
# All variants share one detail so a caller can't tell which check failed.

class AuthenticationError(AppException):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "Could not validate credentials"

    def __init__(self, detail: str = None):
        super().__init__(detail=detail, headers={"WWW-Authenticate": "Bearer"})


class InvalidCredentials(AuthenticationError):
    pass


class InvalidToken(AuthenticationError):
    pass


class MissingToken(AuthenticationError):
    pass


# --- SERVER (500) ---

class StorageError(AppException):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Failed to store file"
