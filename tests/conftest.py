import pytest
import os
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

os.environ.setdefault("DATABASE_URL", "sqlite://")

import pharmacy_inventory.models  # noqa: F401
from pharmacy_inventory.core.deps import get_db
from pharmacy_inventory.core.locks import medication_locks
from pharmacy_inventory.db.base import Base
from pharmacy_inventory.main import app
from pharmacy_inventory.repositories.sql import SqlInventoryStore


@pytest.fixture()
def test_context():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    session_local = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    Base.metadata.create_all(bind=engine)

    def override_get_db():
        db = session_local()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client, session_local

    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)
    medication_locks.clear()


@pytest.fixture()
def store(test_context):
    _, session_local = test_context
    db = session_local()
    try:
        yield SqlInventoryStore(db)
    finally:
        db.close()
