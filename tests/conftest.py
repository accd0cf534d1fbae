# tests/conftest.py
# PURPOSE: isolated wiring per test: temp SQLite file + in-memory cache and event bus,
# injected into the FastAPI app before the TestClient starts its lifespan.

# Ensure project root is on sys.path so `import taskflow` works when running pytest.
import sys, os

PROJECT_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if PROJECT_ROOT not in sys.path:
    sys.path.insert(0, PROJECT_ROOT)

import uuid

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from taskflow import db_models  # noqa: F401 (register tables)
from taskflow.auth import create_access_token
from taskflow.bootstrap import build_sql_container
from taskflow.cache import InMemoryTaskCache
from taskflow.db import Base
from taskflow.main import app
from taskflow.rate_limit import limiter
from taskflow.transport import InMemoryEventBus


@pytest.fixture()
def session_factory(tmp_path):
    # 1) Temporary SQLite file so data is isolated per test
    engine = create_engine(
        f"sqlite:///{tmp_path / 'taskflow-test.db'}",
        connect_args={"check_same_thread": False},
    )
    # 2) Create tables for tests
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)
    # 3) Cleanup
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def bus():
    return InMemoryEventBus(poll_interval=0.01)


@pytest.fixture()
def container(session_factory, bus):
    return build_sql_container(session_factory, cache=InMemoryTaskCache(), publisher=bus)


@pytest.fixture()
def client(container):
    # Inject our container; the lifespan leaves injected containers alone
    app.state.container = container
    app.state.dev_owner_id = None
    limiter.reset()

    with TestClient(app) as c:
        yield c

    app.state.container = None


@pytest.fixture()
def owner_id():
    return uuid.uuid4()


@pytest.fixture()
def auth_headers(owner_id):
    return {"Authorization": f"Bearer {create_access_token(owner_id)}"}


@pytest.fixture()
def other_headers():
    # A second, unrelated owner
    return {"Authorization": f"Bearer {create_access_token(uuid.uuid4())}"}
