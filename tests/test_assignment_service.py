import importlib

import pytest
from sqlalchemy.exc import IntegrityError

from database import get_db_session
from exceptions import ConflictError, DietPlanAssignmentNotFound, DietPlanNotFound, ForbiddenAccess, UserNotFound
from models_orm import DietPlanAssignmentORM
from service_modules.assignment_service import assignment_service
from service_modules.connection_service import connection_service

assignment_module = importlib.import_module("service_modules.assignment_service")


def active_rows(client_id):
    db = get_db_session()
    try:
        return db.query(DietPlanAssignmentORM).filter(
            DietPlanAssignmentORM.client_id == client_id,
            DietPlanAssignmentORM.is_active == True
        ).all()
    finally:
        db.close()


@pytest.fixture
def linked(trainer, client_user, connect):
    connect(trainer, client_user)
    return trainer, client_user


def test_assign_active(linked, make_plan):
    trainer, client = linked
    plan = make_plan(trainer)

    result = assignment_service.assign_to_clients(trainer, plan.id, [client.id], True)

    assert len(result) == 1
    assert result[0].is_active is True
    assert result[0].diet_plan_name == plan.name
    assert assignment_service.get_active_assignment(trainer, client.id).diet_plan_id == plan.id


def test_only_one_active_plan_per_client(linked, make_plan):
    trainer, client = linked
    first = make_plan(trainer, name="First")
    second = make_plan(trainer, name="Second")

    assignment_service.assign_to_clients(trainer, first.id, [client.id], True)
    assignment_service.assign_to_clients(trainer, second.id, [client.id], True)

    rows = active_rows(client.id)
    assert [r.diet_plan_id for r in rows] == [second.id]

    assignments = {a.diet_plan_id: a for a in assignment_service.list_assignments_for_client(client, client.id)}
    assert assignments[first.id].is_active is False
    assert assignments[second.id].is_active is True


def test_inactive_assignment_keeps_current_plan(linked, make_plan):
    trainer, client = linked
    current = make_plan(trainer, name="Current")
    spare = make_plan(trainer, name="Spare")

    assignment_service.assign_to_clients(trainer, current.id, [client.id], True)
    assignment_service.assign_to_clients(trainer, spare.id, [client.id], False)

    assert [r.diet_plan_id for r in active_rows(client.id)] == [current.id]


def test_reassign_updates_existing_row(linked, make_plan):
    trainer, client = linked
    plan = make_plan(trainer)

    first = assignment_service.assign_to_clients(trainer, plan.id, [client.id], False)
    again = assignment_service.assign_to_clients(trainer, plan.id, [client.id], True)

    assert first[0].id == again[0].id
    assert again[0].is_active is True
    assert len(assignment_service.list_assignments_for_client(trainer, client.id)) == 1


def test_assign_to_several_clients(make_user, trainer, connect, make_plan):
    clients = [make_user("client") for _ in range(3)]
    for c in clients:
        connect(trainer, c)
    plan = make_plan(trainer)

    result = assignment_service.assign_to_clients(trainer, plan.id, [c.id for c in clients], True)

    assert sorted(a.client_id for a in result) == sorted(c.id for c in clients)
    for c in clients:
        assert [r.diet_plan_id for r in active_rows(c.id)] == [plan.id]


def test_assign_is_all_or_nothing(make_user, linked, make_plan):
    trainer, client = linked
    stranger = make_user("client")
    plan = make_plan(trainer)

    with pytest.raises(ForbiddenAccess):
        assignment_service.assign_to_clients(trainer, plan.id, [client.id, stranger.id], True)

    assert active_rows(client.id) == []


def test_assign_unknown_client(linked, make_plan):
    trainer, _ = linked
    plan = make_plan(trainer)
    with pytest.raises(UserNotFound):
        assignment_service.assign_to_clients(trainer, plan.id, ["missing"], True)


def test_assign_someone_elses_plan(make_user, linked, make_plan):
    trainer, client = linked
    foreign_plan = make_plan(make_user("trainer"))
    with pytest.raises(ForbiddenAccess):
        assignment_service.assign_to_clients(trainer, foreign_plan.id, [client.id], True)


def test_assign_missing_plan(linked):
    trainer, client = linked
    with pytest.raises(DietPlanNotFound):
        assignment_service.assign_to_clients(trainer, 999, [client.id], True)


def test_client_cannot_assign(linked, make_plan):
    trainer, client = linked
    plan = make_plan(trainer)
    with pytest.raises(ForbiddenAccess):
        assignment_service.assign_to_clients(client, plan.id, [client.id], True)


def test_set_active_switches_plans(linked, make_plan):
    trainer, client = linked
    first = make_plan(trainer, name="First")
    second = make_plan(trainer, name="Second")
    assignment_service.assign_to_clients(trainer, first.id, [client.id], True)
    assignment_service.assign_to_clients(trainer, second.id, [client.id], False)

    result = assignment_service.set_active(trainer, second.id, client.id, True)

    assert result.is_active is True
    assert [r.diet_plan_id for r in active_rows(client.id)] == [second.id]

    assignment_service.set_active(trainer, second.id, client.id, False)
    assert active_rows(client.id) == []
    assert assignment_service.get_active_assignment(client, client.id) is None


def test_set_active_requires_current_client(linked, make_plan):
    trainer, client = linked
    plan = make_plan(trainer)
    assignment_service.assign_to_clients(trainer, plan.id, [client.id], False)
    connection_service.remove_my_trainer(client)

    with pytest.raises(ForbiddenAccess):
        assignment_service.set_active(trainer, plan.id, client.id, True)


def test_set_active_missing_assignment(linked, make_plan):
    trainer, client = linked
    plan = make_plan(trainer)
    with pytest.raises(DietPlanAssignmentNotFound):
        assignment_service.set_active(trainer, plan.id, client.id, True)


def test_unassign(linked, make_plan):
    trainer, client = linked
    plan = make_plan(trainer)
    assignment_service.assign_to_clients(trainer, plan.id, [client.id], True)

    assignment_service.unassign(trainer, plan.id, client.id)

    assert assignment_service.list_assignments_for_client(trainer, client.id) == []
    with pytest.raises(DietPlanAssignmentNotFound):
        assignment_service.unassign(trainer, plan.id, client.id)


def test_read_assignments_access(make_user, linked, make_plan):
    trainer, client = linked
    with pytest.raises(ForbiddenAccess):
        assignment_service.list_assignments_for_client(make_user("trainer"), client.id)
    with pytest.raises(ForbiddenAccess):
        assignment_service.list_assignments_for_client(make_user("client"), client.id)


def test_assign_with_duplicate_client_ids(linked, make_plan):
    trainer, client = linked
    plan = make_plan(trainer)

    result = assignment_service.assign_to_clients(trainer, plan.id, [client.id, client.id], True)

    assert [a.client_id for a in result] == [client.id]


def test_assign_locks_clients_in_id_order(monkeypatch, make_user, trainer, connect, make_plan):
    clients = [make_user("client") for _ in range(3)]
    for c in clients:
        connect(trainer, c)
    plan = make_plan(trainer)

    original_lock = assignment_module.lock_client_profile
    locked = []

    def recording_lock(db, client_id):
        locked.append(client_id)
        return original_lock(db, client_id)

    monkeypatch.setattr(assignment_module, "lock_client_profile", recording_lock)

    ids = [c.id for c in clients]
    assignment_service.assign_to_clients(trainer, plan.id, list(reversed(sorted(ids))) + [ids[0]], True)

    assert locked == sorted(ids)


# --- CONCURRENT CHANGES ---

def test_assign_conflict_when_another_plan_became_active(monkeypatch, linked, make_plan):
    trainer, client = linked
    first = make_plan(trainer, name="First")
    second = make_plan(trainer, name="Second")
    assignment_service.assign_to_clients(trainer, first.id, [client.id], True)

    # Nothing switches the current plan off, as when a parallel request activated it
    monkeypatch.setattr(assignment_module, "deactivate_other_assignments", lambda db, client_id, keep_id=None: None)

    with pytest.raises(ConflictError):
        assignment_service.assign_to_clients(trainer, second.id, [client.id], True)

    assert [r.diet_plan_id for r in active_rows(client.id)] == [first.id]
    assert len(assignment_service.list_assignments_for_client(trainer, client.id)) == 1


def test_set_active_conflict_when_another_plan_became_active(monkeypatch, linked, make_plan):
    trainer, client = linked
    first = make_plan(trainer, name="First")
    second = make_plan(trainer, name="Second")
    assignment_service.assign_to_clients(trainer, first.id, [client.id], True)
    assignment_service.assign_to_clients(trainer, second.id, [client.id], False)

    monkeypatch.setattr(assignment_module, "deactivate_other_assignments", lambda db, client_id, keep_id=None: None)

    with pytest.raises(ConflictError):
        assignment_service.set_active(trainer, second.id, client.id, True)

    assert [r.diet_plan_id for r in active_rows(client.id)] == [first.id]


def test_one_active_assignment_index(linked, make_plan):
    trainer, client = linked
    first = make_plan(trainer, name="First")
    second = make_plan(trainer, name="Second")
    third = make_plan(trainer, name="Third")

    db = get_db_session()
    try:
        # Inactive rows are not limited
        db.add_all([
            DietPlanAssignmentORM(diet_plan_id=first.id, client_id=client.id, is_active=True),
            DietPlanAssignmentORM(diet_plan_id=second.id, client_id=client.id, is_active=False),
        ])
        db.commit()

        db.add(DietPlanAssignmentORM(diet_plan_id=third.id, client_id=client.id, is_active=True))
        with pytest.raises(IntegrityError):
            db.commit()
        db.rollback()
    finally:
        db.close()
