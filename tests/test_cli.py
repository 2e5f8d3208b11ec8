"""CLI tests — commands run against a mocked HTTP backend.

Learn: _client() is swapped for an httpx.AsyncClient on a MockTransport,
so each test states exactly which API responses the command sees and
asserts on what it printed.
"""

import json

import httpx
import pytest
from click.testing import CliRunner

from coursegate.cli import main as cli


@pytest.fixture()
def api(monkeypatch):
    """Route CLI HTTP calls to a handler table: {(method, path): response}."""
    routes = {}
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        key = (request.method, request.url.path)
        if key not in routes:
            return httpx.Response(404, json={"error": "Not found"})
        status, body = routes[key]
        return httpx.Response(status, json=body)

    def fake_client(token=None):
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        return httpx.AsyncClient(
            transport=httpx.MockTransport(handler),
            base_url="http://test",
            headers=headers,
        )

    monkeypatch.setattr(cli, "_client", fake_client)
    return routes, calls


def test_pending_lists_users(api):
    routes, calls = api
    routes[("GET", "/api/admin/users/pending")] = (
        200,
        {
            "users": [
                {
                    "id": "11111111-1111-1111-1111-111111111111",
                    "email": "new@example.com",
                    "first_name": "New",
                    "last_name": "User",
                    "created_at": "2026-01-01T00:00:00",
                }
            ]
        },
    )
    result = CliRunner().invoke(cli.main, ["pending", "--token", "tok"])
    assert result.exit_code == 0, result.output
    assert "new@example.com" in result.output
    assert "New User" in result.output
    assert calls[0].headers["Authorization"] == "Bearer tok"


def test_pending_empty(api):
    routes, _ = api
    routes[("GET", "/api/admin/users/pending")] = (200, {"users": []})
    result = CliRunner().invoke(cli.main, ["pending", "--token", "tok"])
    assert "No pending registrations." in result.output


def test_token_required(api, monkeypatch):
    monkeypatch.delenv("COURSEGATE_TOKEN", raising=False)
    result = CliRunner().invoke(cli.main, ["pending"])
    assert result.exit_code == 1


def test_approve_and_reject(api):
    routes, calls = api
    routes[("POST", "/api/admin/users/approve")] = (200, {"message": "User approved successfully"})

    result = CliRunner().invoke(cli.main, ["approve", "abc", "--token", "tok"])
    assert "User approved successfully" in result.output
    assert json.loads(calls[-1].content) == {"user_id": "abc", "approve": True}

    CliRunner().invoke(cli.main, ["approve", "abc", "--reject", "--token", "tok"])
    assert json.loads(calls[-1].content) == {"user_id": "abc", "approve": False}


def test_api_error_message_printed(api):
    routes, _ = api
    routes[("POST", "/api/admin/users/approve")] = (401, {"message": "Unauthorized"})
    result = CliRunner().invoke(cli.main, ["approve", "abc", "--token", "tok"])
    assert result.exit_code == 1
    assert "Error 401: Unauthorized" in result.output


def test_stats_json(api):
    routes, _ = api
    stats = {
        "total_users": 3,
        "active_users": 2,
        "pending_users": 1,
        "collections": {"users": 3},
    }
    routes[("GET", "/api/admin/stats")] = (200, stats)
    result = CliRunner().invoke(cli.main, ["stats", "--json", "--token", "tok"])
    assert result.exit_code == 0
    assert json.loads(result.output) == stats


def test_login_prints_token(api):
    routes, _ = api
    routes[("POST", "/api/auth/login")] = (200, {"access_token": "jwt-token"})
    result = CliRunner().invoke(cli.main, ["login", "admin@example.com", "--password", "pw"])
    assert result.exit_code == 0
    assert result.output.strip() == "jwt-token"
