"""
Dashboard client for the Feedback Hub API.

`SessionCache` persists the last login under the `admin_session` key of a
small JSON file, the way the browser dashboard keeps it in local storage.
`FeedbackHubClient` attaches the cached token to protected calls and drops
the cache as soon as a protected call comes back 401.
"""
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import requests
from pydantic import BaseModel, ValidationError

from schemas import Role

logger = logging.getLogger(__name__)

ADMIN_SESSION_KEY = "admin_session"
SESSION_VERSION = 1
DEFAULT_TIMEOUT = 10


class StoredSession(BaseModel):
    version: int = SESSION_VERSION
    loggedIn: bool = True
    email: str
    role: Role
    token: str


class SessionExpired(Exception):
    """A protected call was rejected; the cached session has been cleared."""


class ApiError(Exception):
    def __init__(self, status_code: int, message: str):
        super().__init__(f"{status_code}: {message}")
        self.status_code = status_code
        self.message = message


class SessionCache:
    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Any]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp, self.path)

    def save(self, session: StoredSession) -> None:
        data = self._read_all()
        data[ADMIN_SESSION_KEY] = session.model_dump(mode="json")
        self._write_all(data)

    def load(self) -> Optional[StoredSession]:
        raw = self._read_all().get(ADMIN_SESSION_KEY)
        if raw is None:
            return None
        try:
            session = StoredSession.model_validate(raw)
        except ValidationError:
            logger.debug("Ignoring corrupt cached session")
            return None
        if session.version != SESSION_VERSION or not session.loggedIn:
            return None
        return session

    def clear(self) -> None:
        data = self._read_all()
        if data.pop(ADMIN_SESSION_KEY, None) is not None:
            self._write_all(data)


class FeedbackHubClient:
    def __init__(self, base_url: str, cache: SessionCache, http: Optional[requests.Session] = None,
                 timeout: float = DEFAULT_TIMEOUT):
        self.base_url = base_url.rstrip("/")
        self.cache = cache
        self.http = http or requests.Session()
        self.timeout = timeout

    # ---------------------- Session ----------------------

    @property
    def session(self) -> Optional[StoredSession]:
        return self.cache.load()

    @property
    def logged_in(self) -> bool:
        return self.session is not None

    def login(self, email: str, password: str) -> StoredSession:
        data = self._request("POST", "/auth/login", json={"email": email, "password": password})
        session = StoredSession(email=data["user"]["email"], role=data["user"]["role"], token=data["token"])
        self.cache.save(session)
        return session

    def logout(self) -> None:
        # Tokens are stateless; signing out only forgets the local copy.
        self.cache.clear()

    # ---------------------- Public ----------------------

    def health(self) -> bool:
        return bool(self._request("GET", "/health").get("ok"))

    def submit_feedback(self, feedback: Dict[str, Any]) -> str:
        return self._request("POST", "/feedback", json=feedback)["insertedId"]

    def submit_prompt(self, prompt: Dict[str, Any]) -> str:
        return self._request("POST", "/prompts", json=prompt)["insertedId"]

    # ---------------------- Protected ----------------------

    def me(self) -> Dict[str, Any]:
        return self._protected("GET", "/auth/me")

    def list_feedback(self) -> List[Dict[str, Any]]:
        return self._protected("GET", "/feedback")

    def feedback_stats(self) -> Dict[str, Any]:
        return self._protected("GET", "/feedback/stats")

    def list_prompts(self) -> List[Dict[str, Any]]:
        return self._protected("GET", "/prompts")

    def list_users(self) -> List[Dict[str, Any]]:
        return self._protected("GET", "/users")

    def create_user(self, email: str, password: str) -> str:
        return self._protected("POST", "/users", json={"email": email, "password": password})["insertedId"]

    def export_csv(self, kind: str) -> str:
        return self._protected("GET", f"/{kind}/export", raw=True)

    # ---------------------- Transport ----------------------

    def _headers(self) -> Dict[str, str]:
        session = self.cache.load()
        if session:
            return {"Authorization": f"Bearer {session.token}"}
        return {}

    def _protected(self, method: str, path: str, **kwargs):
        try:
            return self._request(method, path, headers=self._headers(), **kwargs)
        except ApiError as e:
            if e.status_code == 401:
                self.cache.clear()
                raise SessionExpired(e.message) from e
            raise

    def _request(self, method: str, path: str, raw: bool = False, **kwargs):
        resp = self.http.request(method, f"{self.base_url}{path}", timeout=self.timeout, **kwargs)
        if resp.status_code >= 400:
            try:
                message = resp.json().get("error") or resp.reason
            except (AttributeError, ValueError):
                message = resp.reason or f"Request failed: {resp.status_code}"
            raise ApiError(resp.status_code, message)
        return resp.text if raw else resp.json()
