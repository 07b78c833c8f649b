import os

# Point the app at an in-memory database before anything reads settings
os.environ["SQLALCHEMY_DATABASE_URI"] = "sqlite://"
os.environ["ALERT_SWEEP_ENABLED"] = "false"
os.environ["LOGS_PATH"] = ""
os.environ["SMTP_HOST"] = ""

from datetime import date, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient

from app.core import Base, SessionLocal, engine
from app.core.permissions import UserRole
from app.api.auth import create_user_token, get_password_hash
from app.models import AppUser
from app.schemas.drug import DrugCreate
from app.schemas.movement import MovementCreate
from app.services import DrugService, MovementService


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def users(db):
    """One active user per role plus a second driver"""
    created = {}
    for name, role in (
        ("admin", UserRole.ADMIN),
        ("warehouse", UserRole.WAREHOUSE),
        ("pharmacist", UserRole.PHARMACIST),
        ("driver", UserRole.DRIVER),
        ("driver2", UserRole.DRIVER),
    ):
        user = AppUser(
            username=name,
            email=f"{name}@pharmatrack.test",
            full_name=name.title(),
            hashed_password=get_password_hash("secret"),
            role=role.value,
        )
        db.add(user)
        created[name] = user
    db.commit()
    for user in created.values():
        db.refresh(user)
    return created


@pytest.fixture
def client(db):
    from main import app
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def auth(users):
    """auth("admin") -> Authorization header for that user"""
    def headers(name: str) -> dict:
        return {"Authorization": f"Bearer {create_user_token(users[name])}"}
    return headers


def drug_payload(**overrides) -> dict:
    data = {
        "name": "Amoxicillin 500mg",
        "generic_name": "Amoxicillin",
        "category": "antibiotics",
        "batch_no": "AMX-2026-01",
        "quantity": 100,
        "unit": "capsules",
        "price": Decimal("2.50"),
        "manufacturer": "Acme Pharma",
        "supplier": "MedSupply Co",
        "manufacture_date": date.today() - timedelta(days=200),
        "expiry_date": date.today() + timedelta(days=365),
        "location": "central-warehouse",
        "min_threshold": 50,
        "max_threshold": 1000,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_drug(db, users):
    def factory(**overrides):
        return DrugService.create_drug(db, DrugCreate(**drug_payload(**overrides)), users["admin"])
    return factory


@pytest.fixture
def make_movement(db, users):
    def factory(drug, quantity=30, **overrides):
        data = {
            "drug_id": drug.id,
            "quantity": quantity,
            "from_location": "central-warehouse",
            "to_location": "city-hospital",
        }
        data.update(overrides)
        return MovementService.create_movement(db, MovementCreate(**data), users["warehouse"])
    return factory
