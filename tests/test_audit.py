"""
Residential Admin - Audit Trail Tests

Tests for:
- AuditRecorder snapshots, changed fields and best-effort writes
- One audit row per mutation through the API
- Log queries, record history and statistics
- Retention purge

Run with: pytest tests/test_audit.py -v
"""

import logging
from datetime import timedelta

import pytest
from sqlmodel import select

from residential_admin.audit.models import AuditLog, AuditOperation
from residential_admin.audit.recorder import (
    AuditContext,
    AuditRecorder,
    compute_changed_fields,
    snapshot,
)
from residential_admin.time_utils import utcnow
from tests.conftest import auth_headers, login_user


def add_audit_row(db, age=timedelta(0), table_name="person", record_id="1",
                  operation="CREATE", user_id=None):
    row = AuditLog(
        table_name=table_name,
        record_id=record_id,
        operation=operation,
        new_values={"id": record_id},
        changed_fields=[],
        user_id=user_id,
        created_at=utcnow() - age,
    )
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


def person_body(document_number, **overrides):
    body = {
        "document_type": "CC",
        "document_number": document_number,
        "full_name": f"Residente {document_number}",
    }
    body.update(overrides)
    return body


# =============================================================================
# RECORDER TESTS
# =============================================================================

class TestSnapshots:
    """snapshot() and compute_changed_fields()."""

    def test_snapshot_drops_sensitive_fields(self):
        data = snapshot({
            "full_name": "Ana",
            "password_hash": "$2b$04$...",
            "token": "jwt",
            "refresh_token": "opaque",
        })

        assert data == {"full_name": "Ana"}

    def test_snapshot_is_json_safe(self):
        now = utcnow()

        data = snapshot({"updated_at": now, "status": AuditOperation.UPDATE})

        assert isinstance(data["updated_at"], str)
        assert data["status"] == "UPDATE"

    def test_snapshot_extra_exclusions(self):
        assert snapshot({"a": 1, "b": 2}, exclude=["b"]) == {"a": 1}

    def test_snapshot_of_none(self):
        assert snapshot(None) == {}

    def test_changed_fields(self):
        old = {"a": 1, "b": 2, "gone": True}
        new = {"a": 1, "b": 3, "added": "x"}

        assert compute_changed_fields(old, new) == ["added", "b", "gone"]

    def test_changed_fields_requires_both_snapshots(self):
        assert compute_changed_fields(None, {"a": 1}) == []
        assert compute_changed_fields({"a": 1}, None) == []
        assert compute_changed_fields({"a": 1}, {"a": 1}) == []


class TestAuditRecorder:
    """Best-effort audit writes."""

    @pytest.mark.asyncio
    async def test_record_update(self, session_factory, db_session):
        recorder = AuditRecorder(session_factory)

        result = await recorder.record(
            "person", 7, AuditOperation.UPDATE,
            old_values={"full_name": "Ana", "alias": None},
            new_values={"full_name": "Ana María", "alias": None},
            actor_id=1,
            ip_address="10.0.0.5",
        )

        assert result.recorded is True
        row = db_session.get(AuditLog, result.audit_id)
        assert row.record_id == "7"
        assert row.operation == "UPDATE"
        assert row.changed_fields == ["full_name"]
        assert row.user_id == 1
        assert row.ip_address == "10.0.0.5"

    @pytest.mark.asyncio
    async def test_record_change_uses_context(self, session_factory, db_session):
        recorder = AuditRecorder(session_factory)
        context = AuditContext(actor_id=3, ip_address="10.0.0.9", user_agent="pytest")

        result = await recorder.record_change(
            context, "role", 2, AuditOperation.DELETE, old_values={"name": "Guard"}
        )

        row = db_session.get(AuditLog, result.audit_id)
        assert row.user_id == 3
        assert row.user_agent == "pytest"
        assert row.new_values is None
        assert row.changed_fields == []

    @pytest.mark.asyncio
    async def test_failed_write_is_logged_and_swallowed(self, caplog):
        def broken_factory():
            raise RuntimeError("database unavailable")

        recorder = AuditRecorder(broken_factory)

        with caplog.at_level(logging.ERROR, logger="residential_admin.audit"):
            result = await recorder.record("person", 1, AuditOperation.CREATE, new_values={"id": 1})

        assert result.recorded is False
        assert "database unavailable" in result.error
        assert any(
            r.name == "residential_admin.audit" and r.levelno == logging.ERROR
            for r in caplog.records
        )


# =============================================================================
# MUTATION AUDITING TESTS
# =============================================================================

class TestMutationAuditing:
    """Every mutating API call appends exactly one row."""

    def test_creates_append_one_row_each(self, client, db_session, admin_user, admin_headers):
        for i in range(3):
            response = client.post(
                "/api/v1/persons", headers=admin_headers, json=person_body(f"7000000{i}")
            )
            assert response.status_code == 201

        rows = db_session.exec(
            select(AuditLog).where(AuditLog.table_name == "person", AuditLog.operation == "CREATE")
        ).all()
        assert len(rows) == 3
        for row in rows:
            assert row.old_values is None
            assert row.changed_fields == []
            assert row.user_id == admin_user.id

    def test_update_records_changed_fields(self, client, db_session, admin_headers):
        created = client.post(
            "/api/v1/persons", headers=admin_headers, json=person_body("70000010")
        ).json()["data"]

        client.put(
            f"/api/v1/persons/{created['id']}",
            headers=admin_headers,
            json={"alias": "Ana"},
        )

        row = db_session.exec(
            select(AuditLog).where(AuditLog.operation == "UPDATE")
        ).one()
        assert row.record_id == str(created["id"])
        assert "alias" in row.changed_fields
        assert "updated_at" in row.changed_fields
        assert row.old_values["alias"] is None
        assert row.new_values["alias"] == "Ana"

    def test_read_requests_are_not_audited(self, client, db_session, admin_headers):
        client.get("/api/v1/persons", headers=admin_headers)
        client.get("/api/v1/roles", headers=admin_headers)

        assert db_session.exec(select(AuditLog)).all() == []


# =============================================================================
# QUERY TESTS
# =============================================================================

class TestAuditQueries:
    """GET /audit/logs, /audit/history and /audit/stats."""

    def test_logs_are_paginated_newest_first(self, client, db_session, admin_headers):
        for i in range(5):
            add_audit_row(db_session, age=timedelta(minutes=10 - i), record_id=str(i))

        response = client.get("/api/v1/audit/logs?page=1&limit=2", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert [item["record_id"] for item in data["items"]] == ["4", "3"]
        assert data["pagination"] == {
            "page": 1,
            "limit": 2,
            "total": 5,
            "pages": 3,
            "has_next": True,
            "has_prev": False,
        }

    def test_logs_filters(self, client, db_session, admin_headers):
        add_audit_row(db_session, table_name="person", operation="CREATE", user_id=1)
        add_audit_row(db_session, table_name="person", operation="UPDATE", user_id=2)
        add_audit_row(db_session, table_name="role", operation="UPDATE", user_id=1)

        response = client.get(
            "/api/v1/audit/logs?table_name=person&operation=UPDATE", headers=admin_headers
        )
        items = response.json()["data"]["items"]
        assert len(items) == 1
        assert items[0]["user_id"] == 2

        response = client.get("/api/v1/audit/logs?user_id=1", headers=admin_headers)
        assert response.json()["data"]["pagination"]["total"] == 2

    def test_logs_date_range(self, client, db_session, admin_headers):
        add_audit_row(db_session, age=timedelta(days=10), record_id="old")
        add_audit_row(db_session, record_id="new")

        after = (utcnow() - timedelta(days=1)).isoformat()
        response = client.get(
            "/api/v1/audit/logs", headers=admin_headers, params={"created_after": after}
        )

        items = response.json()["data"]["items"]
        assert [item["record_id"] for item in items] == ["new"]

    def test_invalid_operation_filter(self, client, admin_headers):
        response = client.get("/api/v1/audit/logs?operation=EXPORT", headers=admin_headers)

        assert response.status_code == 400

    def test_record_history(self, client, admin_headers):
        created = client.post(
            "/api/v1/persons", headers=admin_headers, json=person_body("70000020")
        ).json()["data"]
        client.put(f"/api/v1/persons/{created['id']}", headers=admin_headers, json={"notes": "Torre 2"})

        response = client.get(f"/api/v1/audit/history/person/{created['id']}", headers=admin_headers)

        assert response.status_code == 200
        operations = [item["operation"] for item in response.json()["data"]["items"]]
        assert operations == ["UPDATE", "CREATE"]
        assert response.json()["meta"]["operation"] == "GET_HISTORY"

    def test_stats(self, client, db_session, admin_user, admin_headers):
        add_audit_row(db_session, operation="CREATE", user_id=admin_user.id)
        add_audit_row(db_session, operation="CREATE", user_id=admin_user.id, table_name="role")
        add_audit_row(db_session, operation="DELETE")
        add_audit_row(db_session, operation="DELETE", age=timedelta(days=400))

        response = client.get("/api/v1/audit/stats", headers=admin_headers)

        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["total"] == 4
        assert stats["today"] == 3
        assert stats["this_week"] == 3
        assert stats["this_month"] == 3
        assert stats["by_operation"] == {"CREATE": 2, "DELETE": 2}
        assert stats["by_table"] == {"person": 3, "role": 1}
        assert stats["by_user"] == {str(admin_user.id): 2, "anonymous": 2}

    def test_security_role_can_read(self, client, security_user):
        tokens = login_user(client, "seguridad", "password123")

        response = client.get("/api/v1/audit/stats", headers=auth_headers(tokens["access_token"]))

        assert response.status_code == 200

    def test_user_role_denied(self, client, regular_user):
        tokens = login_user(client, "usuario", "password123")
        headers = auth_headers(tokens["access_token"])

        assert client.get("/api/v1/audit/logs", headers=headers).status_code == 403
        assert client.get("/api/v1/audit/stats", headers=headers).status_code == 403
        assert client.get("/api/v1/audit/history/person/1", headers=headers).status_code == 403


# =============================================================================
# RETENTION TESTS
# =============================================================================

class TestAuditClean:
    """DELETE /audit/clean."""

    def test_clean_deletes_only_old_rows(self, client, db_session, admin_headers):
        add_audit_row(db_session, age=timedelta(days=100), record_id="old")
        add_audit_row(db_session, age=timedelta(days=10), record_id="recent")

        response = client.delete("/api/v1/audit/clean?days=90", headers=admin_headers)

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["deleted"] == 1
        assert data["days"] == 90
        assert data["dry_run"] is False

        remaining = db_session.exec(select(AuditLog.record_id)).all()
        assert remaining == ["recent"]

    def test_clean_defaults_to_retention_days(self, client, db_session, admin_headers):
        add_audit_row(db_session, age=timedelta(days=91), record_id="old")
        add_audit_row(db_session, age=timedelta(days=89), record_id="kept")

        response = client.delete("/api/v1/audit/clean", headers=admin_headers)

        assert response.json()["data"]["days"] == 90
        assert response.json()["data"]["deleted"] == 1

    def test_dry_run_deletes_nothing(self, client, db_session, admin_headers):
        add_audit_row(db_session, age=timedelta(days=100))
        add_audit_row(db_session, age=timedelta(days=200))

        response = client.delete("/api/v1/audit/clean?days=90&dry_run=true", headers=admin_headers)

        assert response.json()["data"]["deleted"] == 2
        assert response.json()["data"]["dry_run"] is True
        assert len(db_session.exec(select(AuditLog)).all()) == 2

    def test_days_must_be_positive(self, client, admin_headers):
        response = client.delete("/api/v1/audit/clean?days=0", headers=admin_headers)

        assert response.status_code == 400

    def test_security_role_cannot_clean(self, client, db_session, security_user):
        add_audit_row(db_session, age=timedelta(days=100))
        tokens = login_user(client, "seguridad", "password123")

        response = client.delete("/api/v1/audit/clean", headers=auth_headers(tokens["access_token"]))

        assert response.status_code == 403
        assert len(db_session.exec(select(AuditLog)).all()) == 1
