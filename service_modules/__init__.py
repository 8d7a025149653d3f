"""
Services package - organized service modules.

Each module exposes a service class, a singleton instance and a
get_*_service() dependency helper for the route modules.
"""
from .base import *
from .auth_service import AuthService, auth_service, get_auth_service
from .connection_service import ConnectionService, connection_service, get_connection_service
from .diet_plan_service import DietPlanService, diet_plan_service, get_diet_plan_service
from .assignment_service import AssignmentService, assignment_service, get_assignment_service
from .meal_log_service import MealLogService, meal_log_service, get_meal_log_service
from .profile_service import ProfileService, profile_service, get_profile_service

__all__ = [
    'AuthService',
    'auth_service',
    'get_auth_service',
    'ConnectionService',
    'connection_service',
    'get_connection_service',
    'DietPlanService',
    'diet_plan_service',
    'get_diet_plan_service',
    'AssignmentService',
    'assignment_service',
    'get_assignment_service',
    'MealLogService',
    'meal_log_service',
    'get_meal_log_service',
    'ProfileService',
    'profile_service',
    'get_profile_service',
]
