import os

# Point the app at a throwaway in-memory database before it is imported
os.environ["CARGO_DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient

from cargo_planner.main import app
from cargo_planner.models import Base
from cargo_planner.schemas import Container, Item, Position
from cargo_planner.utils.database import SessionLocal, engine


def make_item(item_id="001", **overrides):
    data = {
        "itemId": item_id,
        "name": f"Item {item_id}",
        "width": 10,
        "depth": 10,
        "height": 10,
        "mass": 5,
        "priority": 50,
        "preferredZone": "Lab",
    }
    data.update(overrides)
    return Item(**data)


def make_container(container_id="C1", **overrides):
    data = {
        "containerId": container_id,
        "zone": "Lab",
        "width": 20,
        "depth": 20,
        "height": 20,
        "maxWeight": 50,
    }
    data.update(overrides)
    return Container(**data)


def box(start, end):
    return Position(
        startCoordinates=dict(zip(("width", "depth", "height"), start)),
        endCoordinates=dict(zip(("width", "depth", "height"), end)),
    )


@pytest.fixture
def item_factory():
    return make_item


@pytest.fixture
def container_factory():
    return make_container


@pytest.fixture
def db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    yield session
    session.close()


@pytest.fixture
def client(db):
    with TestClient(app) as test_client:
        yield test_client
