"""Integration tests for member, log and join endpoints."""

from __future__ import annotations

import pytest
from membertx.factory import create_app
from membertx.models import Member
from tests.factories.member import MemberFactory
from tests.helpers.db import count_rows, log_exists, member_exists

MARKER = "logException"


def test_health(client) -> None:
    """Health endpoint reports the database and the active join policy."""

    resp = client.get("/api/v1/health")

    assert resp.status_code == 200
    body = resp.get_json()
    assert body["status"] == "ok" and body["db"] == "ok"
    assert body["join_policy"]["log_repository"] == "requires_new"


def test_request_id_is_echoed(client) -> None:
    resp = client.get("/api/v1/health", headers={"X-Request-ID": "req-42"})

    assert resp.headers["X-Request-ID"] == "req-42"


class TestMembersEndpoints:
    def test_create_and_fetch(self, client) -> None:
        created = client.post("/api/v1/members", json={"username": "alice"})

        assert created.status_code == 201
        data = created.get_json()["data"]
        assert data["username"] == "alice"

        fetched = client.get(f"/api/v1/members/{data['id']}")
        assert fetched.status_code == 200
        assert fetched.get_json()["data"]["id"] == data["id"]

    def test_duplicate_is_a_conflict(self, client) -> None:
        MemberFactory(username="bob")

        resp = client.post("/api/v1/members", json={"username": "bob"})

        assert resp.status_code == 409
        assert resp.mimetype == "application/problem+json"
        assert resp.get_json()["code"] == "conflict"

    def test_blank_username_is_rejected(self, client) -> None:
        resp = client.post("/api/v1/members", json={"username": "   "})

        assert resp.status_code == 422
        assert resp.get_json()["code"] == "validation_error"
        assert count_rows(Member) == 0

    def test_missing_member(self, client) -> None:
        resp = client.get("/api/v1/members/does-not-exist")

        assert resp.status_code == 404
        assert resp.get_json()["code"] == "not_found"

    def test_list_is_paginated(self, client) -> None:
        MemberFactory.create_batch(3)

        resp = client.get("/api/v1/members?limit=2&sort=-username")

        body = resp.get_json()
        assert resp.status_code == 200
        assert len(body["data"]) == 2
        assert body["meta"] == {"total": 3, "page": 1, "limit": 2}


class TestJoinEndpoint:
    def test_join_writes_member_and_log(self, client) -> None:
        resp = client.post("/api/v1/members/join", json={"username": "carol"})

        assert resp.status_code == 201
        data = resp.get_json()["data"]
        assert data["member"]["username"] == "carol"
        assert data["log_saved"] is True
        logs = client.get("/api/v1/logs?message=carol").get_json()["data"]
        assert [entry["message"] for entry in logs] == ["carol"]

    def test_join_trims_username_in_member_and_log(self, client) -> None:
        resp = client.post("/api/v1/members/join", json={"username": "  amy  "})

        assert resp.status_code == 201
        assert resp.get_json()["data"]["member"]["username"] == "amy"
        assert log_exists("amy")
        logs = client.get("/api/v1/logs?message=amy").get_json()["data"]
        assert [entry["message"] for entry in logs] == ["amy"]

    def test_join_existing_username_is_a_conflict(self, client) -> None:
        MemberFactory(username="bea")

        resp = client.post("/api/v1/members/join", json={"username": "bea"})

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "conflict"
        assert count_rows(Member) == 1
        assert not log_exists("bea")

    def test_failed_log_write_without_recovery(self, client) -> None:
        username = f"{MARKER}_dave"

        resp = client.post("/api/v1/members/join", json={"username": username})

        assert resp.status_code == 422
        assert resp.get_json()["code"] == "log_persistence_failed"
        assert not member_exists(username)

    def test_failed_log_write_with_recovery_keeps_member(self, client) -> None:
        username = f"{MARKER}_erin"

        resp = client.post("/api/v1/members/join", json={"username": username, "recover": True})

        assert resp.status_code == 201
        assert resp.get_json()["data"]["log_saved"] is False
        assert member_exists(username)
        assert not log_exists(username)

    def test_recovery_inside_one_transaction_is_an_unexpected_rollback(
        self, app, client
    ) -> None:
        """
        GIVEN the log write joins the use-case transaction
        WHEN the join recovers from a log failure
        THEN the API reports the silent rollback instead of a success.
        """
        from membertx.factory import JOIN_POLICY_KEY
        from membertx.services.members import JoinPolicy

        app.extensions[JOIN_POLICY_KEY] = JoinPolicy.from_config(
            {"LOG_REPOSITORY_PROPAGATION": "REQUIRED"}
        )
        try:
            username = f"{MARKER}_frank"
            resp = client.post(
                "/api/v1/members/join", json={"username": username, "recover": True}
            )
        finally:
            app.extensions[JOIN_POLICY_KEY] = JoinPolicy.from_config(app.config)

        assert resp.status_code == 409
        assert resp.get_json()["code"] == "unexpected_rollback"
        assert resp.get_json()["details"]["transaction"]
        assert not member_exists(username)


def test_unknown_propagation_fails_at_startup(database_uri) -> None:
    config = type(
        "BrokenConfig",
        (),
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": database_uri,
            "LOG_REPOSITORY_PROPAGATION": "NESTED",
        },
    )

    with pytest.raises(ValueError):
        create_app(config)
