import os
import uuid

os.environ["SQLALCHEMY_DATABASE_URI"] = os.environ.get("TEST_DATABASE_URI", "sqlite://")

import pytest
from fastapi.testclient import TestClient
from sqlmodel import Session, SQLModel

from core.db import engine
from services import affiliate_ledger


@pytest.fixture(autouse=True)
def clean_db():
    SQLModel.metadata.create_all(engine)
    yield
    SQLModel.metadata.drop_all(engine)


@pytest.fixture
def db_session():
    with Session(engine) as session:
        yield session


@pytest.fixture
def affiliate(db_session: Session):
    return affiliate_ledger.create_affiliate(db_session, uuid.uuid4())


@pytest.fixture
def client():
    from main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def miss_once():
    """Wrap a lookup so its first call finds nothing, like a read racing another writer."""

    def wrap(lookup):
        calls = []

        def wrapper(*args, **kwargs):
            calls.append(args)
            if len(calls) == 1:
                return None
            return lookup(*args, **kwargs)

        return wrapper

    return wrap
