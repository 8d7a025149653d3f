import os
import sys
import tempfile
import uuid

import pytest

# Point the app at a throwaway database and media folder before anything imports database.py
_TMP_DIR = tempfile.mkdtemp(prefix="coachlink_test_")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["MEDIA_ROOT"] = os.path.join(_TMP_DIR, "media")

sys.path.append(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from fastapi.testclient import TestClient

import models_orm  # noqa: F401
from database import Base, engine, get_db_session
from models import CreateDietPlanRequest, DietPlanDayDto, MealDto
from models_orm import UserORM
from service_modules.auth_service import auth_service
from service_modules.connection_service import connection_service
from service_modules.diet_plan_service import diet_plan_service

PASSWORD = "testpassword"


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


def load_user(user_id):
    db = get_db_session()
    try:
        user = db.query(UserORM).filter(UserORM.id == user_id).first()
        db.expunge(user)
        return user
    finally:
        db.close()


@pytest.fixture
def make_user():
    def _make(role="client", email=None):
        email = email or f"{role}_{uuid.uuid4().hex[:8]}@example.com"
        if role == "admin":
            result = auth_service.create_admin(email, PASSWORD)
        else:
            result = auth_service.register_user(email, PASSWORD, role=role)
        return load_user(result["user_id"])
    return _make


@pytest.fixture
def client_user(make_user):
    return make_user("client")


@pytest.fixture
def trainer(make_user):
    return make_user("trainer")


@pytest.fixture
def admin(make_user):
    return make_user("admin")


@pytest.fixture
def connect():
    """Link a trainer and a client through an accepted invitation."""
    def _connect(trainer_user, client):
        invitation = connection_service.create_invitation(trainer_user, client.email)
        return connection_service.resolve_invitation(client, invitation.id, "accepted")
    return _connect


def plan_request(name="Weekly Plan", meals_per_day=2):
    return CreateDietPlanRequest(
        name=name,
        days=[
            DietPlanDayDto(
                day_of_week=day,
                meals=[
                    MealDto(name=f"Meal {day}-{i}", meal_type="breakfast" if i == 0 else "lunch")
                    for i in range(meals_per_day)
                ]
            )
            for day in range(7)
        ]
    )


@pytest.fixture
def make_plan():
    def _make(trainer_user, name="Weekly Plan", meals_per_day=2):
        return diet_plan_service.create_diet_plan(trainer_user, plan_request(name, meals_per_day))
    return _make


def meals_for_day(plan, day_of_week):
    return next(d for d in plan.days if d.day_of_week == day_of_week).meals


@pytest.fixture
def api():
    from main import app
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth_headers(api):
    def _headers(user):
        response = api.post("/api/auth/login", json={"email": user.email, "password": PASSWORD})
        assert response.status_code == 200
        return {"Authorization": f"Bearer {response.json()['access_token']}"}
    return _headers
