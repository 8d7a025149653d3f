"""
Access Policy - role and ownership checks shared by the connection, assignment and meal log services.
"""
from enum import Enum

from exceptions import ForbiddenAccess, UserNotFound, ValidationError


class Role(str, Enum):
    CLIENT = "client"
    TRAINER = "trainer"
    ADMIN = "admin"


def is_role(user, role: Role) -> bool:
    return user is not None and user.role == role.value


def is_admin(user) -> bool:
    return is_role(user, Role.ADMIN)


def require_role(user, *roles: Role):
    """Raise ForbiddenAccess unless the user holds one of the given roles."""
    if not any(is_role(user, role) for role in roles):
        raise ForbiddenAccess()


def can_access_own(user, owner_id: str) -> bool:
    """Clients and trainers see their own rows, admins see everything."""
    return is_admin(user) or user.id == owner_id


def can_access_pair(user, client_id: str, trainer_id: str) -> bool:
    """Invitations and connections are visible to both parties and admins."""
    return is_admin(user) or user.id in (client_id, trainer_id)


def trains_client(user, profile) -> bool:
    """True when the user is the current trainer recorded on the client profile."""
    return profile is not None and profile.trainer_id is not None and profile.trainer_id == user.id


def can_read_client_data(user, client_id: str, profile) -> bool:
    if is_admin(user):
        return True
    if is_role(user, Role.CLIENT):
        return user.id == client_id
    if is_role(user, Role.TRAINER):
        return trains_client(user, profile)
    return False


def can_read_diet_plan(user, plan) -> bool:
    if is_admin(user):
        return True
    if is_role(user, Role.TRAINER):
        return plan.trainer_id == user.id
    if is_role(user, Role.CLIENT):
        return any(a.client_id == user.id for a in plan.assignments)
    return False


def can_write_diet_plan(user, plan) -> bool:
    # Plans are authored and maintained by their trainer only; admins don't override
    return is_role(user, Role.TRAINER) and plan.trainer_id == user.id


def ensure(allowed: bool):
    if not allowed:
        raise ForbiddenAccess()


def resolve_target_client(user, client_id, load_profile) -> str:
    """
    Work out whose data a progress query is about.

    Clients always read their own data (passing someone else's id is forbidden).
    Trainers and admins must name a client; trainers only their current clients.
    `load_profile` is called with the client id to fetch its ClientProfileORM.
    """
    if is_role(user, Role.CLIENT):
        if client_id is not None and client_id != user.id:
            raise ForbiddenAccess()
        return user.id

    if is_role(user, Role.TRAINER) or is_admin(user):
        if client_id is None:
            raise ValidationError("Client ID is required")
        profile = load_profile(client_id)
        ensure(can_read_client_data(user, client_id, profile))
        if profile is None:
            raise UserNotFound()
        return client_id

    raise ForbiddenAccess()
