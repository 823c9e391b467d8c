"""Tests for the client-side session cache and the dashboard client."""

import json
from unittest.mock import MagicMock

import pytest

from client import ADMIN_SESSION_KEY, ApiError, FeedbackHubClient, SessionCache, SessionExpired, StoredSession
from schemas import Role

from conftest import SUPER_EMAIL, SUPER_PASSWORD


@pytest.fixture
def cache(tmp_path):
    return SessionCache(tmp_path / "session.json")


@pytest.fixture
def hub(client, cache):
    return FeedbackHubClient("http://testserver/api", cache, http=client)


class TestSessionCache:
    def test_load_without_file(self, cache):
        assert cache.load() is None

    def test_save_load_clear(self, cache):
        cache.save(StoredSession(email="a@b.com", role=Role.ADMIN, token="tok"))
        loaded = cache.load()
        assert loaded.loggedIn is True
        assert loaded.role is Role.ADMIN
        assert loaded.token == "tok"

        cache.clear()
        assert cache.load() is None

    def test_stored_shape(self, cache):
        cache.save(StoredSession(email="a@b.com", role=Role.SUPER_ADMIN, token="tok"))
        stored = json.loads(cache.path.read_text())[ADMIN_SESSION_KEY]
        assert stored == {"version": 1, "loggedIn": True, "email": "a@b.com", "role": "superAdmin", "token": "tok"}

    @pytest.mark.parametrize("content", [
        "{not json",
        "[]",
        json.dumps({ADMIN_SESSION_KEY: "just a string"}),
        json.dumps({ADMIN_SESSION_KEY: {"loggedIn": True, "email": "a@b.com", "role": "owner", "token": "t"}}),
        json.dumps({ADMIN_SESSION_KEY: {"version": 99, "loggedIn": True, "email": "a@b.com",
                                        "role": "admin", "token": "t"}}),
    ])
    def test_corrupt_content_is_treated_as_absent(self, cache, content):
        cache.path.write_text(content)
        assert cache.load() is None

    def test_clear_keeps_other_keys(self, cache):
        cache.path.write_text(json.dumps({"theme": "dark"}))
        cache.save(StoredSession(email="a@b.com", role=Role.ADMIN, token="tok"))
        cache.clear()
        assert json.loads(cache.path.read_text()) == {"theme": "dark"}


class TestFeedbackHubClient:
    def test_login_persists_session(self, hub, cache):
        session = hub.login("Admin@Example.com", SUPER_PASSWORD)
        assert session.role is Role.SUPER_ADMIN
        assert cache.load().email == SUPER_EMAIL
        assert hub.logged_in

    def test_cached_session_skips_login(self, hub, client, tmp_path):
        hub.login(SUPER_EMAIL, SUPER_PASSWORD)
        reopened = FeedbackHubClient("http://testserver/api", SessionCache(hub.cache.path), http=client)
        assert reopened.me()["role"] == "superAdmin"

    def test_protected_calls_attach_token(self, hub, valid_feedback):
        hub.submit_feedback(valid_feedback)
        hub.login(SUPER_EMAIL, SUPER_PASSWORD)
        assert len(hub.list_feedback()) == 1
        assert hub.feedback_stats()["count"] == 1

    def test_protected_call_without_session_is_rejected(self, hub):
        with pytest.raises(SessionExpired):
            hub.list_feedback()

    def test_rejected_token_clears_cache(self, hub, cache):
        cache.save(StoredSession(email="a@b.com", role=Role.SUPER_ADMIN, token="stale.token.value"))
        with pytest.raises(SessionExpired):
            hub.list_prompts()
        assert cache.load() is None
        assert not hub.logged_in

    def test_logout_only_clears_cache(self, hub, cache):
        hub.login(SUPER_EMAIL, SUPER_PASSWORD)
        hub.logout()
        assert cache.load() is None

    def test_super_admin_manages_users(self, hub):
        hub.login(SUPER_EMAIL, SUPER_PASSWORD)
        assert hub.create_user("helper@example.com", "helperpass")
        assert "helper@example.com" in {u["email"] for u in hub.list_users()}
        assert hub.export_csv("feedback").startswith("_id,")

    def test_error_message_from_body(self, cache):
        response = MagicMock(status_code=401)
        response.json.return_value = {"error": "Invalid credentials"}
        http = MagicMock()
        http.request.return_value = response

        hub = FeedbackHubClient("http://example.invalid/api", cache, http=http)
        with pytest.raises(ApiError) as exc_info:
            hub.login("a@b.com", "bad")
        assert exc_info.value.status_code == 401
        assert exc_info.value.message == "Invalid credentials"
        assert cache.load() is None
        http.request.assert_called_once_with(
            "POST", "http://example.invalid/api/auth/login",
            timeout=10, json={"email": "a@b.com", "password": "bad"},
        )
