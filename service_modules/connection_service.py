"""
Connection Service - trainer/client invitations, active connections and connection history.
"""
from typing import List, Optional

from sqlalchemy.orm import joinedload

from .base import (
    HTTPException, IntegrityError, logging, datetime,
    get_db_session, UserORM, ClientProfileORM, InvitationORM, TrainerClientHistoryORM,
    user_to_response, lock_client_profile
)
from .access_policy import Role, is_admin, is_role, can_access_pair, can_access_own, ensure
from exceptions import (
    ForbiddenAccess, ValidationError, UserNotFound, InvitationNotFound,
    InvitationAlreadyExists, InvitationAlreadyResolved
)
from models import (
    InvitationResponse, ClientConnectionResponse, TrainerConnectionResponse, HistoryResponse
)

logger = logging.getLogger("coachlink")

PENDING = "pending"
ACCEPTED = "accepted"
REJECTED = "rejected"
RESOLVED_STATES = (ACCEPTED, REJECTED)


class ConnectionService:
    """Service for the trainer-client pairing lifecycle."""

    # ==================== INVITATIONS ====================

    def list_invitations(self, current_user) -> List[InvitationResponse]:
        """Invitations where the user is the client or the trainer. Admins see all of them."""
        db = get_db_session()
        try:
            query = db.query(InvitationORM).options(
                joinedload(InvitationORM.client), joinedload(InvitationORM.trainer)
            )
            if not is_admin(current_user):
                query = query.filter(
                    (InvitationORM.client_id == current_user.id) |
                    (InvitationORM.trainer_id == current_user.id)
                )
            invitations = query.order_by(InvitationORM.created_at.desc(), InvitationORM.id.desc()).all()
            return [self._to_response(i) for i in invitations]
        finally:
            db.close()

    def create_invitation(self, current_user, counterpart_email: str, message: Optional[str] = None) -> InvitationResponse:
        """
        Propose a connection. A client invites a trainer, a trainer invites a client.

        Raises UserNotFound when nobody has that email, ValidationError when the
        counterpart has the wrong role, InvitationAlreadyExists when the pair
        already has a pending invitation.
        """
        if is_role(current_user, Role.CLIENT):
            wanted_role = Role.TRAINER
        elif is_role(current_user, Role.TRAINER):
            wanted_role = Role.CLIENT
        else:
            raise ValidationError("Only clients and trainers can send invitations")

        if not counterpart_email:
            raise ValidationError(f"{wanted_role.value.capitalize()} email is required")

        db = get_db_session()
        try:
            counterpart = db.query(UserORM).filter(
                UserORM.email == counterpart_email.strip().lower()
            ).first()
            if not counterpart:
                raise UserNotFound()

            if counterpart.role != wanted_role.value:
                raise ValidationError(f"You can only send an invitation to a {wanted_role.value}")

            if wanted_role == Role.TRAINER:
                client_id, trainer_id = current_user.id, counterpart.id
            else:
                client_id, trainer_id = counterpart.id, current_user.id

            if self._pending_exists(db, client_id, trainer_id):
                raise InvitationAlreadyExists()

            invitation = InvitationORM(
                client_id=client_id,
                trainer_id=trainer_id,
                initiator_id=current_user.id,
                status=PENDING,
                message=message,
                created_at=datetime.utcnow()
            )
            db.add(invitation)
            try:
                db.commit()
            except IntegrityError:
                # Another request inserted the same pending pair first
                db.rollback()
                logger.warning(f"Duplicate pending invitation for client {client_id} / trainer {trainer_id}")
                raise InvitationAlreadyExists()

            invitation = self._load_invitation(db, invitation.id)
            logger.info(f"Invitation {invitation.id} created by {current_user.id} (client {client_id}, trainer {trainer_id})")
            return self._to_response(invitation)
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to create invitation: {e}")
            raise
        finally:
            db.close()

    def resolve_invitation(self, current_user, invitation_id: int, status: str) -> InvitationResponse:
        """
        Accept or reject a pending invitation.

        Accepting links the client to the trainer and opens a history interval.
        The client must not already have a trainer. A second resolve on the same
        invitation is rejected with InvitationAlreadyResolved.
        """
        db = get_db_session()
        try:
            invitation = db.query(InvitationORM).filter(
                InvitationORM.id == invitation_id
            ).with_for_update().first()
            if not invitation:
                raise InvitationNotFound()

            ensure(can_access_pair(current_user, invitation.client_id, invitation.trainer_id))

            if invitation.status != PENDING:
                raise InvitationAlreadyResolved()
            if status not in RESOLVED_STATES:
                raise ValidationError("Status must be accepted or rejected")

            now = datetime.utcnow()

            profile = None
            if status == ACCEPTED:
                profile = lock_client_profile(db, invitation.client_id)
                if not profile:
                    raise UserNotFound()
                if profile.trainer_id is not None:
                    raise ValidationError("Client already has a trainer. Please remove existing trainer first.")

            # Only the request that still sees it pending gets to resolve it
            claimed = db.query(InvitationORM).filter(
                InvitationORM.id == invitation_id,
                InvitationORM.status == PENDING
            ).update({"status": status, "resolved_at": now}, synchronize_session=False)
            if claimed == 0:
                logger.warning(f"Invitation {invitation_id} was resolved concurrently")
                raise InvitationAlreadyResolved()

            if profile is not None:
                profile.trainer_id = invitation.trainer_id
                profile.invitation_accepted_at = now
                db.add(TrainerClientHistoryORM(
                    trainer_id=invitation.trainer_id,
                    client_id=invitation.client_id,
                    started_at=now,
                    ended_at=None
                ))

            db.commit()

            logger.info(f"Invitation {invitation_id} {status} by {current_user.id}")
            return self._to_response(self._load_invitation(db, invitation_id))
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to resolve invitation {invitation_id}: {e}")
            raise
        finally:
            db.close()

    def delete_invitation(self, current_user, invitation_id: int) -> dict:
        """Withdraw or clear an invitation. Either party (or an admin) may delete it."""
        db = get_db_session()
        try:
            invitation = db.query(InvitationORM).filter(InvitationORM.id == invitation_id).first()
            if not invitation:
                raise InvitationNotFound()

            ensure(can_access_pair(current_user, invitation.client_id, invitation.trainer_id))

            db.delete(invitation)
            db.commit()
            logger.info(f"Invitation {invitation_id} deleted by {current_user.id}")
            return {"message": "Invitation deleted"}
        except HTTPException:
            db.rollback()
            raise
        finally:
            db.close()

    # ==================== CONNECTIONS ====================

    def get_my_clients(self, current_user) -> List[ClientConnectionResponse]:
        """Current clients of a trainer, with the date each link started."""
        if not is_role(current_user, Role.TRAINER):
            raise ForbiddenAccess()

        db = get_db_session()
        try:
            rows = db.query(ClientProfileORM, UserORM).join(
                UserORM, UserORM.id == ClientProfileORM.id
            ).filter(
                ClientProfileORM.trainer_id == current_user.id
            ).order_by(ClientProfileORM.invitation_accepted_at).all()

            return [
                ClientConnectionResponse(
                    client=user_to_response(user),
                    invitation_accepted_at=profile.invitation_accepted_at
                )
                for profile, user in rows
            ]
        finally:
            db.close()

    def get_my_trainer(self, current_user) -> Optional[TrainerConnectionResponse]:
        """The client's current trainer, or None when unlinked."""
        if not is_role(current_user, Role.CLIENT):
            raise ForbiddenAccess()

        db = get_db_session()
        try:
            profile = db.query(ClientProfileORM).filter(ClientProfileORM.id == current_user.id).first()
            if not profile:
                raise UserNotFound()
            if profile.trainer_id is None:
                return None

            trainer = db.query(UserORM).filter(UserORM.id == profile.trainer_id).first()
            if not trainer:
                return None

            return TrainerConnectionResponse(
                trainer=user_to_response(trainer),
                invitation_accepted_at=profile.invitation_accepted_at
            )
        finally:
            db.close()

    def remove_connection(self, current_user, trainer_id: str, client_id: str) -> dict:
        """
        End the link between a trainer and a client.

        The open history interval is closed (or a closed one appended when no
        open row exists), then the client's trainer fields are cleared.
        """
        db = get_db_session()
        try:
            profile = lock_client_profile(db, client_id)

            if not profile:
                ensure(is_admin(current_user) or current_user.id == client_id)
                raise UserNotFound()

            ensure(can_access_pair(current_user, client_id, trainer_id))

            if profile.trainer_id is None:
                raise ValidationError("Client has no trainer")
            if profile.trainer_id != trainer_id:
                # A trainer can only end their own links
                ensure(current_user.id != trainer_id)
                raise ValidationError("Client is not connected to this trainer")

            now = datetime.utcnow()
            started_at = profile.invitation_accepted_at or now

            open_row = db.query(TrainerClientHistoryORM).filter(
                TrainerClientHistoryORM.trainer_id == trainer_id,
                TrainerClientHistoryORM.client_id == client_id,
                TrainerClientHistoryORM.ended_at.is_(None)
            ).order_by(TrainerClientHistoryORM.started_at.desc()).first()

            if open_row:
                open_row.started_at = started_at
                open_row.ended_at = now
            else:
                db.add(TrainerClientHistoryORM(
                    trainer_id=trainer_id,
                    client_id=client_id,
                    started_at=started_at,
                    ended_at=now
                ))

            profile.trainer_id = None
            profile.invitation_accepted_at = None
            db.commit()

            logger.info(f"Connection trainer {trainer_id} / client {client_id} removed by {current_user.id}")
            return {"message": "Connection removed"}
        except HTTPException:
            db.rollback()
            raise
        except Exception as e:
            db.rollback()
            logger.error(f"Failed to remove connection {trainer_id}/{client_id}: {e}")
            raise
        finally:
            db.close()

    def remove_my_trainer(self, current_user) -> dict:
        """Client-side disconnect from whoever their trainer is."""
        if not is_role(current_user, Role.CLIENT):
            raise ForbiddenAccess()

        db = get_db_session()
        try:
            profile = db.query(ClientProfileORM).filter(ClientProfileORM.id == current_user.id).first()
            if not profile:
                raise UserNotFound()
            trainer_id = profile.trainer_id
        finally:
            db.close()

        if trainer_id is None:
            raise ValidationError("Client has no trainer")
        return self.remove_connection(current_user, trainer_id, current_user.id)

    def get_history(self, current_user, user_id: str, as_trainer: bool) -> List[HistoryResponse]:
        """Closed connection intervals for a trainer or a client, most recently ended first."""
        ensure(can_access_own(current_user, user_id))

        db = get_db_session()
        try:
            query = db.query(TrainerClientHistoryORM).filter(TrainerClientHistoryORM.ended_at.isnot(None))
            if as_trainer:
                query = query.options(joinedload(TrainerClientHistoryORM.client)).filter(
                    TrainerClientHistoryORM.trainer_id == user_id
                )
            else:
                query = query.options(joinedload(TrainerClientHistoryORM.trainer)).filter(
                    TrainerClientHistoryORM.client_id == user_id
                )

            rows = query.order_by(TrainerClientHistoryORM.ended_at.desc(), TrainerClientHistoryORM.id.desc()).all()
            return [
                HistoryResponse(
                    id=h.id,
                    trainer_id=h.trainer_id,
                    client_id=h.client_id,
                    counterpart=user_to_response(h.client if as_trainer else h.trainer),
                    started_at=h.started_at,
                    ended_at=h.ended_at
                )
                for h in rows
            ]
        finally:
            db.close()

    def get_user_history(self, current_user, user_id: str) -> List[HistoryResponse]:
        """History of any user, read from the trainer or client side depending on their role."""
        ensure(can_access_own(current_user, user_id))

        db = get_db_session()
        try:
            user = db.query(UserORM).filter(UserORM.id == user_id).first()
            if not user:
                raise UserNotFound()
            as_trainer = user.role == Role.TRAINER.value
        finally:
            db.close()

        return self.get_history(current_user, user_id, as_trainer=as_trainer)

    # ==================== HELPERS ====================

    def _pending_exists(self, db, client_id: str, trainer_id: str) -> bool:
        return db.query(InvitationORM).filter(
            InvitationORM.client_id == client_id,
            InvitationORM.trainer_id == trainer_id,
            InvitationORM.status == PENDING
        ).first() is not None

    def _load_invitation(self, db, invitation_id: int):
        return db.query(InvitationORM).options(
            joinedload(InvitationORM.client), joinedload(InvitationORM.trainer)
        ).filter(InvitationORM.id == invitation_id).first()

    def _to_response(self, invitation: InvitationORM) -> InvitationResponse:
        return InvitationResponse(
            id=invitation.id,
            client_id=invitation.client_id,
            client=user_to_response(invitation.client),
            trainer_id=invitation.trainer_id,
            trainer=user_to_response(invitation.trainer),
            initiator_id=invitation.initiator_id,
            status=invitation.status,
            message=invitation.message,
            created_at=invitation.created_at,
            resolved_at=invitation.resolved_at
        )


# Singleton instance
connection_service = ConnectionService()


def get_connection_service() -> ConnectionService:
    """Dependency injection helper."""
    return connection_service
