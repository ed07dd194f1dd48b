"""
Endpoint tests for /external/send-email and /external/query-email.

Tests mock ALL external calls (Supabase, Resend) through FastAPI dependency
overrides. No real DB or API calls.

Coverage:
  - X-API-KEY and Authorization: Bearer authentication
  - 401 / 500 before any DB or provider call when the key check fails
  - {code, message, data} success envelope and {code, message} errors
  - Send validation, token resolution and provider failures over HTTP
  - Query size cap and filter wiring over HTTP
"""

import os
import pytest
from unittest.mock import MagicMock, Mock, patch

# Ensure env vars are set before importing anything that triggers app imports
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")

from fastapi.testclient import TestClient

from app.db import get_db
from app.routers.external import get_provider

API_KEY = "test-internal-key"

ENV = {
    "INTERNAL_API_KEY": API_KEY,
    "SYSTEM_SENDER_EMAIL": "noreply@mail.example.com",
    "SYSTEM_SENDER_NAME": "Example Mail",
}

SEND_URL = "/external/send-email"
QUERY_URL = "/external/query-email"


# ---------------------------------------------------------------------------
# Supabase mock helpers
# ---------------------------------------------------------------------------

def _make_email_chain(rows):
    """Chainable mock for the email table; every builder method returns itself."""
    mock = MagicMock()
    mock.select.return_value = mock
    mock.eq.return_value = mock
    mock.gte.return_value = mock
    mock.lte.return_value = mock
    mock.order.return_value = mock
    mock.limit.return_value = mock
    mock.execute.return_value = Mock(data=rows)
    return mock


def _make_db(tokens=None, email_rows=None):
    """db mock whose table() routes "setting" and "email" to separate chains."""
    setting_mock = MagicMock()
    setting_mock.select.return_value.limit.return_value.execute.return_value = Mock(
        data=[{"resend_tokens": tokens if tokens is not None else {"mail.example.com": "re_test"}}]
    )
    email_mock = _make_email_chain(email_rows or [])

    db = MagicMock()
    db.table.side_effect = lambda name: setting_mock if name == "setting" else email_mock
    db.email_chain = email_mock
    return db


def _email_row(email_id):
    return {
        "email_id": email_id,
        "send_email": "sender@example.org",
        "name": "Sender",
        "to_email": "inbox@mail.example.com",
        "subject": "Hello",
        "text": "hi",
        "content": "<p>hi</p>",
        "create_time": "2026-03-01 11:00:00",
    }


# ---------------------------------------------------------------------------
# App fixtures
# ---------------------------------------------------------------------------

@pytest.fixture()
def db():
    return _make_db()


@pytest.fixture()
def provider():
    mock = MagicMock()
    mock.send.return_value = {"id": "msg-123"}
    return mock


@pytest.fixture()
def client(db, provider):
    """TestClient with the database and Resend replaced by mocks."""
    from app.main import app

    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_provider] = lambda: provider
    with patch.dict(os.environ, ENV):
        yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(key=API_KEY):
    return {"X-API-KEY": key}


def _send_body(**overrides):
    body = {"to": ["a@b.com"], "subject": "S", "text": "T"}
    body.update(overrides)
    return body


# ===========================================================================
# Authentication
# ===========================================================================

class TestAuthentication:

    @pytest.mark.parametrize("url, body", [
        (SEND_URL, _send_body()),
        (QUERY_URL, {"toEmail": "inbox@mail.example.com"}),
    ])
    def test_missing_key_returns_401(self, client, db, provider, url, body):
        response = client.post(url, json=body)

        assert response.status_code == 401
        assert response.json() == {"code": 401, "message": "Invalid API key"}
        db.table.assert_not_called()
        provider.send.assert_not_called()

    @pytest.mark.parametrize("url, body", [
        (SEND_URL, _send_body()),
        (QUERY_URL, {"toEmail": "inbox@mail.example.com"}),
    ])
    def test_wrong_key_returns_401(self, client, db, provider, url, body):
        response = client.post(url, json=body, headers=_auth("wrong-key"))

        assert response.status_code == 401
        db.table.assert_not_called()
        provider.send.assert_not_called()

    def test_bearer_token_accepted(self, client, provider):
        response = client.post(
            SEND_URL,
            json=_send_body(),
            headers={"Authorization": f"Bearer {API_KEY}"},
        )

        assert response.status_code == 200
        provider.send.assert_called_once()

    def test_wrong_bearer_token_rejected(self, client):
        response = client.post(
            SEND_URL,
            json=_send_body(),
            headers={"Authorization": "Bearer wrong-key"},
        )

        assert response.status_code == 401

    def test_unconfigured_key_returns_500(self, client, provider):
        with patch.dict(os.environ, {"INTERNAL_API_KEY": ""}):
            response = client.post(SEND_URL, json=_send_body(), headers=_auth())

        assert response.status_code == 500
        assert response.json()["message"] == "API key not configured"
        provider.send.assert_not_called()

    def test_bad_key_checked_before_body(self, client):
        """An unauthenticated caller learns nothing about body validation."""
        response = client.post(SEND_URL, json={"to": []}, headers=_auth("wrong-key"))

        assert response.status_code == 401


# ===========================================================================
# POST /external/send-email
# ===========================================================================

class TestSendEmail:

    def test_success_envelope(self, client, provider):
        response = client.post(SEND_URL, json=_send_body(), headers=_auth())

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == 200
        assert body["message"] == "success"
        assert body["data"]["messageId"] == "msg-123"
        assert body["data"]["sentTo"] == ["a@b.com"]
        assert body["data"]["subject"] == "S"
        assert "sentAt" in body["data"]

    def test_provider_receives_resolved_token_and_payload(self, client, provider):
        client.post(
            SEND_URL,
            json=_send_body(html="<b>T</b>", fromName="Billing"),
            headers=_auth(),
        )

        token, payload = provider.send.call_args.args
        assert token == "re_test"
        assert payload == {
            "from": "Billing <noreply@mail.example.com>",
            "to": ["a@b.com"],
            "subject": "S",
            "text": "T",
            "html": "<b>T</b>",
        }

    def test_invalid_recipient_returns_400(self, client, db, provider):
        response = client.post(
            SEND_URL,
            json=_send_body(to=["a@b.com", "not-an-email"]),
            headers=_auth(),
        )

        assert response.status_code == 400
        assert response.json() == {
            "code": 400,
            "message": "Invalid email address: not-an-email",
        }
        provider.send.assert_not_called()
        db.table.assert_not_called()

    def test_missing_content_returns_400(self, client):
        response = client.post(
            SEND_URL, json={"to": ["a@b.com"], "subject": "S"}, headers=_auth()
        )

        assert response.status_code == 400

    def test_wrong_body_type_returns_400(self, client, provider):
        """A string where a list is expected is still a caller error."""
        response = client.post(
            SEND_URL, json=_send_body(to="a@b.com"), headers=_auth()
        )

        assert response.status_code == 400
        assert response.json()["code"] == 400
        provider.send.assert_not_called()

    def test_unknown_sender_domain_returns_500(self, client, provider):
        with patch.dict(os.environ, {"SYSTEM_SENDER_EMAIL": "noreply@unknown.example"}):
            response = client.post(SEND_URL, json=_send_body(), headers=_auth())

        assert response.status_code == 500
        assert "unknown.example" in response.json()["message"]
        provider.send.assert_not_called()

    def test_sender_not_configured_returns_500(self, client, provider):
        with patch.dict(os.environ, {"SYSTEM_SENDER_EMAIL": ""}):
            response = client.post(SEND_URL, json=_send_body(), headers=_auth())

        assert response.status_code == 500
        assert response.json()["message"] == "Sender email not configured"
        provider.send.assert_not_called()

    def test_provider_error_returns_500_with_message(self, client, provider):
        provider.send.return_value = {"error": {"message": "Domain not verified"}}

        response = client.post(SEND_URL, json=_send_body(), headers=_auth())

        assert response.status_code == 500
        assert "Domain not verified" in response.json()["message"]

    def test_provider_exception_is_not_leaked_raw(self, client, provider):
        provider.send.side_effect = ConnectionError("socket closed")

        response = client.post(SEND_URL, json=_send_body(), headers=_auth())

        assert response.status_code == 500
        assert response.json()["message"] == "Failed to send email: socket closed"


# ===========================================================================
# POST /external/query-email
# ===========================================================================

class TestQueryEmail:

    def test_returns_projected_rows(self, provider):
        from app.main import app

        db = _make_db(email_rows=[_email_row(2), _email_row(1)])
        app.dependency_overrides[get_db] = lambda: db
        app.dependency_overrides[get_provider] = lambda: provider
        try:
            with patch.dict(os.environ, ENV):
                response = TestClient(app).post(
                    QUERY_URL,
                    json={"toEmail": "inbox@mail.example.com"},
                    headers=_auth(),
                )
        finally:
            app.dependency_overrides.clear()

        assert response.status_code == 200
        body = response.json()
        assert body["code"] == 200
        assert [e["id"] for e in body["data"]] == [2, 1]
        assert body["data"][0]["fromEmail"] == "sender@example.org"
        assert body["data"][0]["createTime"] == "2026-03-01 11:00:00"

    def test_size_capped_at_50(self, client, db):
        response = client.post(
            QUERY_URL,
            json={"toEmail": "inbox@mail.example.com", "size": 1000},
            headers=_auth(),
        )

        assert response.status_code == 200
        db.email_chain.limit.assert_called_once_with(50)

    def test_default_size_is_10(self, client, db):
        client.post(QUERY_URL, json={"toEmail": "inbox@mail.example.com"}, headers=_auth())

        db.email_chain.limit.assert_called_once_with(10)
        db.email_chain.order.assert_called_once_with("email_id", desc=True)

    def test_base_filters_applied(self, client, db):
        client.post(QUERY_URL, json={"toEmail": "inbox@mail.example.com"}, headers=_auth())

        eq_calls = [c.args for c in db.email_chain.eq.call_args_list]
        assert ("to_email", "inbox@mail.example.com") in eq_calls
        assert ("type", 0) in eq_calls
        assert ("is_del", 0) in eq_calls

    def test_minutes_ago_ignores_start_time(self, client, db):
        client.post(
            QUERY_URL,
            json={
                "toEmail": "inbox@mail.example.com",
                "minutesAgo": 30,
                "startTime": "2000-01-01 00:00:00",
            },
            headers=_auth(),
        )

        gte_values = [c.args[1] for c in db.email_chain.gte.call_args_list]
        assert len(gte_values) == 1
        assert gte_values[0] != "2000-01-01 00:00:00"

    def test_invalid_to_email_returns_400(self, client, db):
        response = client.post(QUERY_URL, json={"toEmail": "nope"}, headers=_auth())

        assert response.status_code == 400
        db.table.assert_not_called()

    def test_missing_to_email_returns_400(self, client):
        response = client.post(QUERY_URL, json={}, headers=_auth())

        assert response.status_code == 400

    def test_huge_minutes_ago_is_accepted(self, client, db):
        response = client.post(
            QUERY_URL,
            json={"toEmail": "inbox@mail.example.com", "minutesAgo": 10000000000},
            headers=_auth(),
        )

        assert response.status_code == 200
        assert response.json()["code"] == 200
        db.email_chain.gte.assert_called_once_with("create_time", "1970-01-01 00:00:00")

    def test_database_error_returns_envelope(self, client, db):
        db.email_chain.execute.side_effect = Exception("timeout")

        response = client.post(
            QUERY_URL, json={"toEmail": "inbox@mail.example.com"}, headers=_auth()
        )

        assert response.status_code == 500
        assert response.json() == {"code": 500, "message": "Failed to query emails"}


# ===========================================================================
# Health
# ===========================================================================

class TestHealth:

    def test_health(self):
        from app.main import app

        response = TestClient(app).get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "ok"}

    def test_health_db_without_client_returns_503(self):
        from app.main import app

        with patch("app.main.supabase_admin", None):
            response = TestClient(app).get("/health/db")

        assert response.status_code == 503

    def test_health_db_reachable(self):
        from app.main import app

        with patch("app.main.supabase_admin") as mock_sb:
            mock_sb.table.return_value.select.return_value.limit.return_value.execute.return_value = Mock(data=[])
            response = TestClient(app).get("/health/db")

        assert response.status_code == 200
        mock_sb.table.assert_called_once_with("email")
