"""Shared fixtures: an in-memory store standing in for MongoDB, and app clients."""

import itertools

import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import USERS, utcnow_iso
from errors import DuplicateUser
from main import create_app
from schemas import User

SUPER_EMAIL = "admin@example.com"
SUPER_PASSWORD = "secret123"


class InMemoryStore:
    """Implements the MongoStore contract over plain dicts."""

    def __init__(self):
        self.collections = {}
        self.calls = 0
        self._ids = itertools.count(1)

    def _touch(self):
        self.calls += 1

    def ensure_indexes(self):
        pass

    def close(self):
        pass

    def find_user_by_email(self, email):
        self._touch()
        for doc in self.collections.get(USERS, []):
            if doc["email"] == email:
                return dict(doc)
        return None

    def insert_user(self, email, password_hash, role):
        if self.find_user_by_email(email):
            raise DuplicateUser()
        return self.create_document(USERS, User(email=email, password_hash=password_hash, role=role))

    def list_users(self):
        self._touch()
        docs = sorted(self.collections.get(USERS, []), key=lambda d: d["_seq"], reverse=True)
        return [{k: v for k, v in d.items() if k not in ("password_hash", "_seq")} for d in docs]

    def create_document(self, collection_name, data):
        self._touch()
        seq = next(self._ids)
        doc = data.model_dump(mode="json")
        doc.update({"_id": f"{seq:024x}", "created_at": utcnow_iso(), "_seq": seq})
        self.collections.setdefault(collection_name, []).append(doc)
        return doc["_id"]

    def get_documents(self, collection_name, limit=500):
        self._touch()
        docs = sorted(self.collections.get(collection_name, []), key=lambda d: d["_seq"], reverse=True)
        return [{k: v for k, v in d.items() if k != "_seq"} for d in docs[:limit]]


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        SECRET_KEY="test-secret-key-with-enough-length-for-hs256",
        ADMIN_EMAIL=SUPER_EMAIL,
        ADMIN_PASSWORD=SUPER_PASSWORD,
    )


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def client(settings, store):
    with TestClient(create_app(settings, store)) as test_client:
        yield test_client


def bearer(token):
    return {"Authorization": f"Bearer {token}"}


def login_token(client, email, password):
    response = client.post("/api/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return response.json()["token"]


@pytest.fixture
def super_token(client):
    return login_token(client, SUPER_EMAIL, SUPER_PASSWORD)


@pytest.fixture
def admin_token(client, super_token):
    response = client.post(
        "/api/users",
        json={"email": "staff@example.com", "password": "staffpass1"},
        headers=bearer(super_token),
    )
    assert response.status_code == 200, response.text
    return login_token(client, "staff@example.com", "staffpass1")


@pytest.fixture
def valid_feedback():
    return {
        "name": "Ada Lovelace",
        "email": "ada@example.com",
        "phone": "0123456789",
        "comments": "Great talk, very inspiring.",
        "overall_rating": 5,
    }


@pytest.fixture
def valid_prompt():
    return {
        "name": "Grace Hopper",
        "email": "grace@example.com",
        "phone": "(555) 123-4567",
        "prompt": "Write a haiku about compilers.",
    }
