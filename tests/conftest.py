import asyncio
import os
from datetime import datetime

os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ["EMAIL_ENABLED"] = "false"
os.environ["MONGO_DB_NAME"] = "open_event_test"

import motor.motor_asyncio
from mongomock_motor import AsyncMongoMockClient

motor.motor_asyncio.AsyncIOMotorClient = AsyncMongoMockClient

import pytest
from fastapi.testclient import TestClient

import database
from auth.auth_utils import create_access_token, hash_password
from main import app
from middleware.rate_limiter import limiter

STRONG_PASSWORD = "Str0ng!Passw0rd"


def run(coro):
    return asyncio.run(coro)


@pytest.fixture()
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def clean_db():
    for collection in database.ALL_COLLECTIONS:
        run(collection.delete_many({}))
    limiter.reset()
    yield


@pytest.fixture(autouse=True)
def no_webhook_network(request, monkeypatch):
    if request.node.get_closest_marker("real_delivery"):
        return
    async def fake_deliver(delivery_id, client=None):
        return None
    monkeypatch.setattr("utils.webhook_dispatcher.deliver", fake_deliver)


def insert_user(name="Olive Organizer", email="olive@example.com", role="organizer", status="active",
                password=None):
    doc = {
        "name": name,
        "email": email,
        "role": role,
        "status": status,
        "created_at": datetime.utcnow(),
        "updated_at": datetime.utcnow(),
    }
    if password:
        doc["password_hash"] = hash_password(password)
    result = run(database.users_collection.insert_one(doc))
    doc["_id"] = result.inserted_id
    return doc


def auth_headers(user):
    token = create_access_token({"sub": str(user["_id"]), "email": user["email"], "role": user["role"]})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture()
def organizer():
    return insert_user()


@pytest.fixture()
def other_organizer():
    return insert_user(name="Oscar Other", email="oscar@example.com")


@pytest.fixture()
def admin():
    return insert_user(name="Ada Admin", email="ada@example.com", role="admin")


@pytest.fixture()
def superadmin():
    return insert_user(name="Sam Super", email="sam@example.com", role="superadmin")
