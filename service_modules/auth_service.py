"""
Auth Service - handles user authentication and registration.
"""
from .base import (
    HTTPException, IntegrityError, uuid, logging,
    get_db_session, UserORM, ClientProfileORM, user_to_response
)
from .access_policy import Role, is_admin, ensure
from . import storage_service
from auth import verify_password, get_password_hash, create_access_token
from exceptions import InvalidCredentials, UserAlreadyExists, UserNotFound, ValidationError
from models import TokenResponse, UpdateProfileRequest, UserResponse

logger = logging.getLogger("coachlink")


class AuthService:
    """Service for managing authentication and user registration."""

    def authenticate_user(self, email: str, password: str) -> TokenResponse:
        """Check credentials and issue an access token."""
        db = get_db_session()
        try:
            user = db.query(UserORM).filter(
                UserORM.email == email.strip().lower(),
                UserORM.is_active == True
            ).first()
            # Unknown email and wrong password look identical to the caller
            if not user or not verify_password(password, user.hashed_password):
                raise InvalidCredentials()

            token = create_access_token({"sub": user.id, "role": user.role})
            return TokenResponse(access_token=token, user_id=user.id, role=user.role)
        finally:
            db.close()

    def register_user(self, email: str, password: str, username: str = None, role: str = Role.CLIENT.value) -> dict:
        """Register a new client or trainer. Clients also get an (unlinked) client profile."""
        if role not in (Role.CLIENT.value, Role.TRAINER.value):
            raise ValidationError("Role must be client or trainer")

        email = (email or "").strip().lower()
        if not email:
            raise ValidationError("Email is required")

        return self._create_user(email, password, username, role)

    def create_admin(self, email: str, password: str, username: str = None) -> dict:
        """Provision an admin account. Not reachable over HTTP."""
        return self._create_user(email.strip().lower(), password, username, Role.ADMIN.value)

    def _create_user(self, email: str, password: str, username: str, role: str) -> dict:
        logger.debug(f"register_user called for {email}")
        db = get_db_session()
        try:
            existing_user = db.query(UserORM).filter(UserORM.email == email).first()
            if existing_user:
                raise UserAlreadyExists()

            new_user = UserORM(
                id=str(uuid.uuid4()),
                email=email,
                username=username or email.split("@")[0],
                hashed_password=get_password_hash(password),
                role=role,
                is_active=True
            )
            if role == Role.CLIENT.value:
                new_user.client_profile = ClientProfileORM()
            db.add(new_user)

            db.commit()
            db.refresh(new_user)

            logger.info(f"Registered {role} {new_user.id}")
            return {"status": "success", "message": "User registered successfully", "user_id": new_user.id}
        except IntegrityError:
            db.rollback()
            raise UserAlreadyExists()
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Registration failed for {email}: {e}")
            raise
        finally:
            db.close()

    def get_user(self, user_id: str) -> UserResponse:
        db = get_db_session()
        try:
            user = db.query(UserORM).filter(UserORM.id == user_id).first()
            if not user:
                raise UserNotFound()
            return user_to_response(user)
        finally:
            db.close()

    def list_users(self) -> list:
        db = get_db_session()
        try:
            users = db.query(UserORM).order_by(UserORM.created_at).all()
            return [user_to_response(u) for u in users]
        finally:
            db.close()

    def update_profile(self, current_user, request: UpdateProfileRequest) -> UserResponse:
        """
        Change the caller's display name and/or password.

        A new password must be confirmed and needs the current one.
        """
        db = get_db_session()
        try:
            user = db.query(UserORM).filter(UserORM.id == current_user.id).first()
            if not user:
                raise UserNotFound()

            if request.username and request.username.strip():
                user.username = request.username.strip()

            if request.password:
                if request.password != request.confirm_password:
                    raise ValidationError("Passwords do not match")
                if not request.current_password or not verify_password(request.current_password, user.hashed_password):
                    raise ValidationError("Current password is incorrect")
                user.hashed_password = get_password_hash(request.password)

            db.commit()
            db.refresh(user)

            logger.info(f"User {user.id} updated their profile (password changed={bool(request.password)})")
            return user_to_response(user)
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to update profile for {current_user.id}: {e}")
            raise
        finally:
            db.close()

    def delete_user(self, current_user, user_id: str) -> dict:
        """Remove an account and everything it owns. Admin only."""
        ensure(is_admin(current_user))
        if user_id == current_user.id:
            raise ValidationError("Admins cannot delete their own account")

        db = get_db_session()
        try:
            user = db.query(UserORM).filter(UserORM.id == user_id).first()
            if not user:
                raise UserNotFound()

            # Former clients of a deleted trainer become unlinked
            for profile in db.query(ClientProfileORM).filter(ClientProfileORM.trainer_id == user_id).all():
                profile.trainer_id = None
                profile.invitation_accepted_at = None

            picture = user.profile_picture
            db.delete(user)
            db.commit()

            if picture:
                try:
                    storage_service.delete_file(picture)
                except OSError as e:
                    logger.warning(f"Could not delete profile picture {picture}: {e}")

            logger.info(f"User {user_id} deleted by admin {current_user.id}")
            return {"message": "User deleted"}
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to delete user {user_id}: {e}")
            raise
        finally:
            db.close()


# Singleton instance
auth_service = AuthService()

def get_auth_service() -> AuthService:
    """Dependency injection helper."""
    return auth_service
