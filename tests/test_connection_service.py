import importlib
from datetime import datetime

import pytest
from sqlalchemy.exc import IntegrityError

from database import get_db_session
from exceptions import (
    ForbiddenAccess, InvitationAlreadyExists, InvitationAlreadyResolved,
    InvitationNotFound, UserNotFound, ValidationError
)
from models_orm import ClientProfileORM, InvitationORM, TrainerClientHistoryORM
from service_modules.connection_service import ConnectionService, connection_service

# The package re-exports the singleton under the module's name
connection_module = importlib.import_module("service_modules.connection_service")


def history_rows(trainer_id=None, client_id=None):
    db = get_db_session()
    try:
        query = db.query(TrainerClientHistoryORM)
        if trainer_id:
            query = query.filter(TrainerClientHistoryORM.trainer_id == trainer_id)
        if client_id:
            query = query.filter(TrainerClientHistoryORM.client_id == client_id)
        return query.all()
    finally:
        db.close()


def profile_of(client_id):
    db = get_db_session()
    try:
        return db.query(ClientProfileORM).filter(ClientProfileORM.id == client_id).first()
    finally:
        db.close()


# --- INVITATIONS ---

def test_trainer_invites_client(trainer, client_user):
    invitation = connection_service.create_invitation(trainer, client_user.email, "Let's train")
    assert invitation.status == "pending"
    assert invitation.client_id == client_user.id
    assert invitation.trainer_id == trainer.id
    assert invitation.initiator_id == trainer.id
    assert invitation.message == "Let's train"
    assert invitation.resolved_at is None


def test_client_invites_trainer(trainer, client_user):
    invitation = connection_service.create_invitation(client_user, trainer.email)
    assert invitation.client_id == client_user.id
    assert invitation.trainer_id == trainer.id
    assert invitation.initiator_id == client_user.id


def test_invite_unknown_email(trainer):
    with pytest.raises(UserNotFound):
        connection_service.create_invitation(trainer, "nobody@example.com")


def test_invite_wrong_role(make_user):
    trainer_a = make_user("trainer")
    trainer_b = make_user("trainer")
    with pytest.raises(ValidationError):
        connection_service.create_invitation(trainer_a, trainer_b.email)


def test_admin_cannot_invite(admin, client_user):
    with pytest.raises(ValidationError):
        connection_service.create_invitation(admin, client_user.email)


def test_only_one_pending_invitation_per_pair(trainer, client_user):
    connection_service.create_invitation(trainer, client_user.email)
    with pytest.raises(InvitationAlreadyExists):
        connection_service.create_invitation(trainer, client_user.email)
    # Same pair, other direction
    with pytest.raises(InvitationAlreadyExists):
        connection_service.create_invitation(client_user, trainer.email)


def test_reinvite_after_reject(trainer, client_user):
    first = connection_service.create_invitation(trainer, client_user.email)
    connection_service.resolve_invitation(client_user, first.id, "rejected")

    second = connection_service.create_invitation(trainer, client_user.email)
    assert second.id != first.id
    assert second.status == "pending"


def test_reject_does_not_link(trainer, client_user):
    invitation = connection_service.create_invitation(trainer, client_user.email)
    resolved = connection_service.resolve_invitation(client_user, invitation.id, "rejected")

    assert resolved.status == "rejected"
    assert resolved.resolved_at is not None
    assert profile_of(client_user.id).trainer_id is None
    assert history_rows(trainer_id=trainer.id) == []


def test_accept_links_client_and_opens_history(trainer, client_user):
    invitation = connection_service.create_invitation(trainer, client_user.email)
    resolved = connection_service.resolve_invitation(client_user, invitation.id, "accepted")

    assert resolved.status == "accepted"
    profile = profile_of(client_user.id)
    assert profile.trainer_id == trainer.id
    assert profile.invitation_accepted_at is not None

    rows = history_rows(trainer_id=trainer.id, client_id=client_user.id)
    assert len(rows) == 1
    assert rows[0].ended_at is None


def test_accept_when_client_already_has_trainer(make_user, client_user, connect):
    first_trainer = make_user("trainer")
    second_trainer = make_user("trainer")
    connect(first_trainer, client_user)

    invitation = connection_service.create_invitation(second_trainer, client_user.email)
    with pytest.raises(ValidationError):
        connection_service.resolve_invitation(client_user, invitation.id, "accepted")

    assert profile_of(client_user.id).trainer_id == first_trainer.id
    assert history_rows(trainer_id=second_trainer.id) == []
    # Still pending, so it can be accepted once the client is free
    pending = [i for i in connection_service.list_invitations(client_user) if i.id == invitation.id]
    assert pending[0].status == "pending"


def test_resolve_twice(trainer, client_user):
    invitation = connection_service.create_invitation(trainer, client_user.email)
    connection_service.resolve_invitation(client_user, invitation.id, "rejected")
    with pytest.raises(InvitationAlreadyResolved):
        connection_service.resolve_invitation(client_user, invitation.id, "accepted")


def test_resolve_by_outsider(make_user, trainer, client_user):
    outsider = make_user("client")
    invitation = connection_service.create_invitation(trainer, client_user.email)
    with pytest.raises(ForbiddenAccess):
        connection_service.resolve_invitation(outsider, invitation.id, "accepted")


def test_resolve_missing_invitation(client_user):
    with pytest.raises(InvitationNotFound):
        connection_service.resolve_invitation(client_user, 999, "accepted")


def test_resolve_invalid_status(trainer, client_user):
    invitation = connection_service.create_invitation(trainer, client_user.email)
    with pytest.raises(ValidationError):
        connection_service.resolve_invitation(client_user, invitation.id, "pending")


def test_admin_can_resolve(admin, trainer, client_user):
    invitation = connection_service.create_invitation(trainer, client_user.email)
    resolved = connection_service.resolve_invitation(admin, invitation.id, "accepted")
    assert resolved.status == "accepted"
    assert profile_of(client_user.id).trainer_id == trainer.id


def test_list_invitations_is_scoped(make_user, admin):
    trainer = make_user("trainer")
    client_a = make_user("client")
    client_b = make_user("client")
    connection_service.create_invitation(trainer, client_a.email)
    connection_service.create_invitation(trainer, client_b.email)

    assert len(connection_service.list_invitations(trainer)) == 2
    assert [i.client_id for i in connection_service.list_invitations(client_a)] == [client_a.id]
    assert len(connection_service.list_invitations(admin)) == 2


def test_delete_invitation(make_user, trainer, client_user):
    invitation = connection_service.create_invitation(trainer, client_user.email)

    with pytest.raises(ForbiddenAccess):
        connection_service.delete_invitation(make_user("client"), invitation.id)

    connection_service.delete_invitation(trainer, invitation.id)
    assert connection_service.list_invitations(trainer) == []

    with pytest.raises(InvitationNotFound):
        connection_service.delete_invitation(trainer, invitation.id)


# --- CONNECTIONS ---

def test_my_clients_and_my_trainer(trainer, client_user, connect):
    assert connection_service.get_my_trainer(client_user) is None

    connect(trainer, client_user)

    clients = connection_service.get_my_clients(trainer)
    assert [c.client.id for c in clients] == [client_user.id]
    assert clients[0].invitation_accepted_at is not None

    mine = connection_service.get_my_trainer(client_user)
    assert mine.trainer.id == trainer.id


def test_my_clients_requires_trainer(client_user):
    with pytest.raises(ForbiddenAccess):
        connection_service.get_my_clients(client_user)


def test_remove_connection_closes_history(trainer, client_user, connect):
    connect(trainer, client_user)
    accepted_at = profile_of(client_user.id).invitation_accepted_at

    connection_service.remove_connection(trainer, trainer.id, client_user.id)

    profile = profile_of(client_user.id)
    assert profile.trainer_id is None
    assert profile.invitation_accepted_at is None

    history = connection_service.get_history(trainer, trainer.id, as_trainer=True)
    assert len(history) == 1
    assert history[0].client_id == client_user.id
    assert history[0].started_at == accepted_at
    assert history[0].ended_at >= history[0].started_at
    assert history[0].counterpart.id == client_user.id

    client_history = connection_service.get_history(client_user, client_user.id, as_trainer=False)
    assert [h.trainer_id for h in client_history] == [trainer.id]
    assert client_history[0].counterpart.id == trainer.id


def test_history_hides_open_interval(trainer, client_user, connect):
    connect(trainer, client_user)
    assert connection_service.get_history(trainer, trainer.id, as_trainer=True) == []


def test_reconnect_builds_separate_intervals(trainer, client_user, connect):
    connect(trainer, client_user)
    connection_service.remove_my_trainer(client_user)
    connect(trainer, client_user)
    connection_service.remove_my_trainer(client_user)

    history = connection_service.get_history(client_user, client_user.id, as_trainer=False)
    assert len(history) == 2
    assert history[0].ended_at >= history[1].ended_at
    assert len(history_rows(trainer_id=trainer.id, client_id=client_user.id)) == 2


def test_remove_connection_without_trainer(trainer, client_user):
    with pytest.raises(ValidationError):
        connection_service.remove_connection(client_user, trainer.id, client_user.id)


def test_remove_other_trainers_client(make_user, client_user, connect):
    owner = make_user("trainer")
    other = make_user("trainer")
    connect(owner, client_user)

    with pytest.raises(ForbiddenAccess):
        connection_service.remove_connection(other, other.id, client_user.id)
    assert profile_of(client_user.id).trainer_id == owner.id


def test_remove_by_outsider(make_user, trainer, client_user, connect):
    connect(trainer, client_user)
    with pytest.raises(ForbiddenAccess):
        connection_service.remove_connection(make_user("client"), trainer.id, client_user.id)


def test_admin_removes_connection(admin, trainer, client_user, connect):
    connect(trainer, client_user)
    connection_service.remove_connection(admin, trainer.id, client_user.id)
    assert profile_of(client_user.id).trainer_id is None


def test_remove_my_trainer_when_unlinked(client_user):
    with pytest.raises(ValidationError):
        connection_service.remove_my_trainer(client_user)


def test_history_of_someone_else(make_user, trainer):
    with pytest.raises(ForbiddenAccess):
        connection_service.get_history(make_user("trainer"), trainer.id, as_trainer=True)


def test_history_of_any_user_for_admin(admin, trainer, client_user, connect):
    connect(trainer, client_user)
    connection_service.remove_connection(admin, trainer.id, client_user.id)

    as_trainer = connection_service.get_user_history(admin, trainer.id)
    as_client = connection_service.get_user_history(admin, client_user.id)

    assert [h.counterpart.id for h in as_trainer] == [client_user.id]
    assert [h.counterpart.id for h in as_client] == [trainer.id]


def test_history_of_any_user_needs_admin(make_user, trainer, client_user):
    with pytest.raises(ForbiddenAccess):
        connection_service.get_user_history(make_user("trainer"), trainer.id)
    with pytest.raises(UserNotFound):
        connection_service.get_user_history(make_user("admin"), "missing")


# --- CONCURRENT CHANGES ---

def test_reject_lands_while_accept_is_in_flight(monkeypatch, trainer, client_user):
    invitation = connection_service.create_invitation(trainer, client_user.email)
    original_lock = connection_module.lock_client_profile
    calls = []

    def reject_first(db, client_id):
        if not calls:
            calls.append(client_id)
            connection_service.resolve_invitation(trainer, invitation.id, "rejected")
        return original_lock(db, client_id)

    monkeypatch.setattr(connection_module, "lock_client_profile", reject_first)

    with pytest.raises(InvitationAlreadyResolved):
        connection_service.resolve_invitation(client_user, invitation.id, "accepted")

    assert calls == [client_user.id]
    assert connection_service.list_invitations(trainer)[0].status == "rejected"
    assert profile_of(client_user.id).trainer_id is None
    assert history_rows(trainer_id=trainer.id) == []


def test_duplicate_pending_insert_maps_to_conflict(monkeypatch, trainer, client_user):
    connection_service.create_invitation(trainer, client_user.email)
    monkeypatch.setattr(ConnectionService, "_pending_exists", lambda self, db, client_id, trainer_id: False)

    with pytest.raises(InvitationAlreadyExists):
        connection_service.create_invitation(client_user, trainer.email)

    assert len(connection_service.list_invitations(trainer)) == 1


def test_pending_pair_index(trainer, client_user):
    def invitation(status):
        return InvitationORM(
            client_id=client_user.id, trainer_id=trainer.id, initiator_id=trainer.id,
            status=status, created_at=datetime.utcnow()
        )

    db = get_db_session()
    try:
        # Resolved rows for the pair are not limited
        db.add_all([invitation("rejected"), invitation("rejected"), invitation("pending")])
        db.commit()

        db.add(invitation("pending"))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
    finally:
        db.close()
