"""
MongoDB access layer.

`MongoStore` owns the client and is constructed once by the application
factory; request handlers receive it through the `get_store` dependency.
Documents leave the store with `_id` converted to a string.
"""
import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import Request
from pydantic import BaseModel
from pymongo import DESCENDING, MongoClient
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import DuplicateUser, StoreUnavailable
from schemas import Role, User

logger = logging.getLogger(__name__)

USERS = "users"
FEEDBACK = "feedback_submissions"
PROMPTS = "prompt_submissions"


def utcnow_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _serialize(doc: Dict[str, Any]) -> Dict[str, Any]:
    doc = dict(doc)
    if "_id" in doc:
        doc["_id"] = str(doc["_id"])
    return doc


@contextmanager
def _store_call(operation: str):
    try:
        yield
    except DuplicateKeyError:
        raise
    except PyMongoError as e:
        logger.error("MongoDB %s failed: %s", operation, e)
        raise StoreUnavailable() from e


class MongoStore:
    def __init__(self, uri: str, database: str, client: Optional[MongoClient] = None):
        self.client = client or MongoClient(uri, serverSelectionTimeoutMS=5000, tz_aware=True)
        self.db = self.client[database]

    def ensure_indexes(self) -> None:
        with _store_call("create_index"):
            self.db[USERS].create_index("email", unique=True)
            self.db[FEEDBACK].create_index([("created_at", DESCENDING)])
            self.db[PROMPTS].create_index([("created_at", DESCENDING)])

    def close(self) -> None:
        self.client.close()

    # ---------------------- Users ----------------------

    def find_user_by_email(self, email: str) -> Optional[Dict[str, Any]]:
        with _store_call("find_user"):
            doc = self.db[USERS].find_one({"email": email})
        return _serialize(doc) if doc else None

    def insert_user(self, email: str, password_hash: str, role: Role) -> str:
        if self.find_user_by_email(email):
            raise DuplicateUser()
        user = User(email=email, password_hash=password_hash, role=role)
        try:
            return self.create_document(USERS, user)
        except DuplicateKeyError as e:
            raise DuplicateUser() from e

    def list_users(self) -> List[Dict[str, Any]]:
        with _store_call("list_users"):
            docs = list(self.db[USERS].find({}, {"password_hash": 0}).sort("created_at", DESCENDING))
        return [_serialize(d) for d in docs]

    # ---------------------- Documents ----------------------

    def create_document(self, collection_name: str, data: BaseModel) -> str:
        doc = data.model_dump(mode="json")
        doc["created_at"] = utcnow_iso()
        with _store_call(f"insert into {collection_name}"):
            result = self.db[collection_name].insert_one(doc)
        return str(result.inserted_id)

    def get_documents(self, collection_name: str, limit: int = 500) -> List[Dict[str, Any]]:
        with _store_call(f"find in {collection_name}"):
            cursor = (
                self.db[collection_name]
                .find({})
                .sort([("created_at", DESCENDING), ("_id", DESCENDING)])
                .limit(limit)
            )
            docs = list(cursor)
        return [_serialize(d) for d in docs]


def get_store(request: Request) -> MongoStore:
    return request.app.state.store
